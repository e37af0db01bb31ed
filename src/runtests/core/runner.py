"""Bounded parallel execution of test assemblies."""

import asyncio
import logging
import os
from typing import Iterable, Optional

from rich.console import Console

from runtests.config import RunTestsConfig
from runtests.core.executor import Executor
from runtests.core.models import AssemblyInfo, ProcessResult, RunAllResult, TestResult

logger = logging.getLogger(__name__)


class RunCancelledError(Exception):
    """Raised when a run is cancelled before all assemblies finished."""

    pass


class TestRunner:
    """Runs assemblies through an executor with a bounded number in flight."""

    def __init__(
        self,
        config: RunTestsConfig,
        executor: Executor,
        console: Optional[Console] = None,
    ):
        """Initialize the test runner."""
        self.config = config
        self.executor = executor
        self.console = console or Console()

    @property
    def max_concurrency(self) -> int:
        test = self.config.test
        if test.sequential:
            return 1
        if test.parallelism:
            return test.parallelism
        # Oversubscribe; most assemblies spend a good share of time on IO.
        return max(1, int((os.cpu_count() or 1) * 1.5))

    async def run_all(
        self,
        assemblies: Iterable[AssemblyInfo],
        cancel: asyncio.Event,
    ) -> RunAllResult:
        """Run every assembly and aggregate the results.

        A failing or crashing assembly is counted and reported but never stops
        the others. Cancellation stops the run, kills whatever is still running
        and raises RunCancelledError.
        """
        max_running = self.max_concurrency
        waiting = list(assemblies)
        running: dict[asyncio.Task, AssemblyInfo] = {}
        completed: list[TestResult] = []
        failures = 0

        logger.debug("Running %d assemblies, at most %d at a time", len(waiting), max_running)

        cancel_waiter = asyncio.ensure_future(cancel.wait())
        try:
            while True:
                if cancel.is_set():
                    await self._abandon(running)
                    raise RunCancelledError("Test run was cancelled")

                for task in [t for t in running if t.done()]:
                    assembly = running.pop(task)
                    if task.cancelled():
                        self._print_error(f"Error: execution of {assembly.display_name} was cancelled")
                        failures += 1
                        continue

                    try:
                        test_result = task.result()
                    except Exception as e:
                        logger.debug("Execution of %s raised", assembly.display_name, exc_info=True)
                        self._print_error(f"Error: {e}")
                        failures += 1
                        continue

                    if not test_result.succeeded:
                        failures += 1
                        self._print_failure(test_result)
                    completed.append(test_result)

                while len(running) < max_running and waiting:
                    assembly = waiting.pop()
                    task = asyncio.ensure_future(self.executor.run_test(assembly, cancel))
                    running[task] = assembly

                self._print_status(len(running), len(waiting), len(completed), failures)

                if not running:
                    break

                await asyncio.wait(
                    [*running, cancel_waiter],
                    return_when=asyncio.FIRST_COMPLETED,
                )
        finally:
            cancel_waiter.cancel()

        process_results: list[ProcessResult] = []
        for test_result in completed:
            process_results.extend(test_result.process_results)

        return RunAllResult(
            succeeded=failures == 0,
            test_results=completed,
            process_results=process_results,
        )

    async def _abandon(self, running: dict[asyncio.Task, AssemblyInfo]) -> None:
        """Cancel running executions and wait for their processes to be killed."""
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
        running.clear()

    def _print_failure(self, test_result: TestResult) -> None:
        if test_result.results_display_file_path is not None:
            self._print_error(str(test_result.results_display_file_path))
            return

        for process_result in test_result.process_results:
            for line in process_result.error_lines:
                self._print_error(line)

    def _print_error(self, message: str) -> None:
        self.console.print(message, style="red", markup=False, highlight=False)

    def _print_status(self, running: int, queued: int, completed: int, failures: int) -> None:
        status = f"  {running:2} running, {queued:2} queued, {completed:2} completed"
        if failures > 0:
            status += f", {failures:2} failures"
        self.console.print(status, markup=False, highlight=False)
