"""Console summary of a completed test run."""

from datetime import timedelta
from pathlib import Path
from typing import Iterable, Optional

from rich.console import Console

from runtests.core.models import TestResult

SEPARATOR = "================"


def format_elapsed(elapsed: timedelta) -> str:
    """Format elapsed time as H:MM:SS.mmm."""
    total_ms = int(elapsed.total_seconds() * 1000)
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, ms = divmod(rest, 1000)
    return f"{hours}:{minutes:02}:{seconds:02}.{ms:03}"


def failure_log_name(display_name: str) -> str:
    return f"TestFailure-{display_name}.log"


class ResultReporter:
    """Prints the run summary and saves output logs for failed assemblies."""

    def __init__(self, log_files_directory: Path, console: Optional[Console] = None):
        """Initialize the reporter.

        Args:
            log_files_directory: Where failure logs are written
            console: Console to print to
        """
        self.log_files_directory = Path(log_files_directory)
        self.console = console or Console()

    def print_results(self, test_results: Iterable[TestResult]) -> list[Path]:
        """Print failures, the summary table and diagnostics, in that order.

        Returns:
            Paths of the failure logs that were written
        """
        results = sorted(test_results, key=lambda r: r.elapsed)

        log_paths = [self.print_failed_result(r) for r in results if not r.succeeded]

        self._print(SEPARATOR)
        for result in results:
            line = f"{result.display_name:<75}"
            line += f" {'PASSED' if result.succeeded else 'FAILED'}"
            line += f" {format_elapsed(result.elapsed)}"
            line += f" {'?' if result.diagnostics else ''}"
            self._print(line, style=None if result.succeeded else "red")
        self._print(SEPARATOR)

        # Diagnostics go last so they do not push the summary out of view.
        self._print("Extra run diagnostics for logging, did not impact run results")
        for result in results:
            if result.diagnostics:
                self._print(result.diagnostics)

        return log_paths

    def print_failed_result(self, result: TestResult) -> Path:
        """Print the details of a failed result and save its standard output."""
        self.log_files_directory.mkdir(parents=True, exist_ok=True)
        log_path = self.log_files_directory / failure_log_name(result.display_name)

        self._print(f"Errors {result.assembly_name}")
        if result.results_display_file_path is not None:
            self._print(f"Results: {result.results_display_file_path}", style="red")

        if result.error_output:
            self._print(result.error_output, style="red")
        else:
            self._print(f"Test run produced no error output but had exit code {result.exit_code}")

        self._print(f"Command: {result.command_line}")
        self._print(f"Output log: {log_path}")

        log_path.write_text(result.standard_output or "", encoding="utf-8")
        return log_path

    def _print(self, message: str, style: Optional[str] = None) -> None:
        self.console.print(message, style=style, markup=False, highlight=False)
