"""Test assembly executor.

This module runs a single test assembly as an external process and turns
the process outcome into a TestResult. The scheduler only ever sees the
TestResult, so retries and results-file handling stay in here.
"""

import asyncio
import os
import shlex
from datetime import timedelta
from pathlib import Path
from typing import Optional, Protocol

from runtests.config import RunTestsConfig
from runtests.core.models import AssemblyInfo, ProcessResult, TestResult
from runtests.core.process import run_process


class Executor(Protocol):
    """What the runners need from an assembly executor."""

    async def run_test(self, assembly: AssemblyInfo, cancel: asyncio.Event) -> TestResult:
        ...

    def command_line_for(self, assembly: AssemblyInfo) -> str:
        ...


class ProcessTestExecutor:
    """Runs one test assembly per process and captures its output."""

    def __init__(self, config: RunTestsConfig, base_dir: Optional[Path] = None):
        """Initialize test executor.

        Args:
            config: runtests configuration
            base_dir: Directory relative config paths resolve against
        """
        self.config = config
        self.base_dir = base_dir or Path.cwd()
        self.results_directory = config.get_absolute_paths(self.base_dir)["results_directory"]

    def results_file_for(self, assembly: AssemblyInfo) -> Path:
        return self.results_directory / f"{assembly.display_name}{self.config.test.results_suffix}"

    def command_arguments(self, assembly: AssemblyInfo) -> list[str]:
        """Build the argument vector for running an assembly."""
        test = self.config.test
        cmd = shlex.split(test.command)
        cmd.append(str(assembly.assembly_path))
        cmd.extend(test.args)
        cmd.extend(assembly.extra_arguments)

        if test.results_argument:
            cmd.append(test.results_argument.format(results_file=self.results_file_for(assembly)))

        return cmd

    def command_line_for(self, assembly: AssemblyInfo) -> str:
        """Return the full command line for an assembly as a single string."""
        return shlex.join(self.command_arguments(assembly))

    async def run_test(self, assembly: AssemblyInfo, cancel: asyncio.Event) -> TestResult:
        """Run an assembly, retrying failed attempts up to ``test.retries`` times.

        Returns:
            TestResult decided by the last attempt

        Raises:
            ExecutionError: If cancellation was requested before the first attempt
            OSError: If the test command cannot be started
        """
        if cancel.is_set():
            raise ExecutionError(f"Cancelled before starting {assembly.display_name}")

        cmd = self.command_arguments(assembly)
        env = {**os.environ, **self.config.test.environment}

        if self.config.test.results_argument:
            self.results_directory.mkdir(parents=True, exist_ok=True)

        attempts: list[ProcessResult] = []
        for _ in range(self.config.test.retries + 1):
            result = await run_process(
                cmd,
                workdir=self.base_dir,
                timeout=self.config.test.timeout_seconds,
                env=env,
            )
            attempts.append(result)
            if result.exit_code == 0 or cancel.is_set():
                break

        return self._build_result(assembly, attempts)

    def _build_result(self, assembly: AssemblyInfo, attempts: list[ProcessResult]) -> TestResult:
        last = attempts[-1]
        succeeded = last.exit_code == 0

        diagnostics = None
        if len(attempts) > 1:
            exit_codes = ", ".join(str(a.exit_code) for a in attempts)
            diagnostics = (
                f"{assembly.display_name} ran {len(attempts)} times (exit codes: {exit_codes})"
            )

        results_display_file_path = None
        if not succeeded and self.config.test.results_argument:
            results_file = self.results_file_for(assembly)
            if results_file.exists():
                results_display_file_path = results_file

        return TestResult(
            assembly=assembly,
            succeeded=succeeded,
            elapsed=sum((a.elapsed for a in attempts), timedelta()),
            command_line=last.command,
            exit_code=last.exit_code,
            standard_output=last.standard_output,
            error_output=last.error_output,
            diagnostics=diagnostics,
            process_results=attempts,
            results_display_file_path=results_display_file_path,
        )


class ExecutionError(Exception):
    """Raised when an assembly cannot be executed."""

    pass
