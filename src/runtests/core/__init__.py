"""Core test execution functionality."""

from runtests.core.executor import ProcessTestExecutor
from runtests.core.models import AssemblyInfo, ProcessResult, RunAllResult, TestResult
from runtests.core.runner import RunCancelledError, TestRunner

__all__ = [
    "AssemblyInfo",
    "ProcessResult",
    "ProcessTestExecutor",
    "RunAllResult",
    "RunCancelledError",
    "TestResult",
    "TestRunner",
]
