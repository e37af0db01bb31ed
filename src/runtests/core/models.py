"""Data models for assemblies, process results and run results."""

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class AssemblyInfo:
    """One unit of work: a test assembly plus what is needed to invoke it."""

    assembly_path: Path
    display_name: str = ""
    extra_arguments: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "assembly_path", Path(self.assembly_path))
        object.__setattr__(self, "extra_arguments", tuple(self.extra_arguments))
        if not self.display_name:
            object.__setattr__(self, "display_name", self.assembly_path.stem)

    @property
    def assembly_name(self) -> str:
        return self.assembly_path.name

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "assembly_path": str(self.assembly_path),
            "display_name": self.display_name,
            "extra_arguments": list(self.extra_arguments),
        }


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one OS process invocation."""

    command: str
    exit_code: int
    output_lines: tuple[str, ...] = ()
    error_lines: tuple[str, ...] = ()
    elapsed: timedelta = timedelta()

    @property
    def standard_output(self) -> str:
        return "\n".join(self.output_lines)

    @property
    def error_output(self) -> str:
        return "\n".join(self.error_lines)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "command": self.command,
            "exit_code": self.exit_code,
            "output_lines": list(self.output_lines),
            "error_lines": list(self.error_lines),
            "elapsed_seconds": self.elapsed.total_seconds(),
        }


@dataclass
class TestResult:
    """Outcome of running one assembly.

    ``succeeded`` is decided by the executor that produced the result and is
    never recomputed from ``process_results``.
    """

    assembly: AssemblyInfo
    succeeded: bool
    elapsed: timedelta = timedelta()
    command_line: str = ""
    exit_code: int = 0
    standard_output: str = ""
    error_output: str = ""
    diagnostics: Optional[str] = None
    process_results: list[ProcessResult] = field(default_factory=list)
    results_display_file_path: Optional[Path] = None

    @property
    def display_name(self) -> str:
        return self.assembly.display_name

    @property
    def assembly_name(self) -> str:
        return self.assembly.assembly_name

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "assembly": self.assembly.to_dict(),
            "succeeded": self.succeeded,
            "elapsed_seconds": self.elapsed.total_seconds(),
            "command_line": self.command_line,
            "exit_code": self.exit_code,
            "standard_output": self.standard_output,
            "error_output": self.error_output,
            "diagnostics": self.diagnostics,
            "process_results": [p.to_dict() for p in self.process_results],
            "results_display_file_path": (
                str(self.results_display_file_path)
                if self.results_display_file_path
                else None
            ),
        }


@dataclass
class RunAllResult:
    """Aggregate of a whole run."""

    succeeded: bool
    test_results: list[TestResult] = field(default_factory=list)
    process_results: list[ProcessResult] = field(default_factory=list)

    @property
    def failed_results(self) -> list[TestResult]:
        return [r for r in self.test_results if not r.succeeded]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "succeeded": self.succeeded,
            "test_results": [r.to_dict() for r in self.test_results],
            "process_results": [p.to_dict() for p in self.process_results],
        }
