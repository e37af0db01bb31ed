"""Run result reporting."""

from runtests.report.console import ResultReporter, format_elapsed

__all__ = ["ResultReporter", "format_elapsed"]
