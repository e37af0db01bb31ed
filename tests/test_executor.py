"""Tests for the test assembly executor."""

import asyncio
import os
import shlex
import sys
import textwrap

import pytest

from runtests.config import RunTestsConfig, TestConfig
from runtests.core.executor import ExecutionError, ProcessTestExecutor
from runtests.core.models import AssemblyInfo
from runtests.core.process import run_process


def make_script(directory, name, body):
    """Write a Python script that stands in for a test assembly."""
    path = directory / name
    path.write_text(textwrap.dedent(body))
    return path


def make_executor(tmp_path, **test_options):
    config = RunTestsConfig(
        test=TestConfig(command=shlex.quote(sys.executable), **test_options),
    )
    return ProcessTestExecutor(config, base_dir=tmp_path)


def run_test(executor, assembly):
    return asyncio.run(executor.run_test(assembly, asyncio.Event()))


class TestRunProcess:
    """Tests for run_process."""

    def test_captures_lines(self):
        """Test stdout and stderr are captured line by line."""
        result = asyncio.run(
            run_process(
                [sys.executable, "-c", "import sys; print('one'); print('two'); print('bad', file=sys.stderr)"]
            )
        )

        assert result.exit_code == 0
        assert result.output_lines == ("one", "two")
        assert result.error_lines == ("bad",)
        assert result.elapsed.total_seconds() > 0

    def test_preserves_exit_code(self):
        """Test the exit code is reported."""
        result = asyncio.run(run_process([sys.executable, "-c", "raise SystemExit(3)"]))
        assert result.exit_code == 3

    def test_timeout_kills_process(self):
        """Test a process exceeding its timeout is killed."""
        result = asyncio.run(
            run_process([sys.executable, "-c", "import time; time.sleep(30)"], timeout=1)
        )

        assert result.exit_code == -1
        assert "timed out" in result.error_output
        assert result.elapsed.total_seconds() < 30

    def test_missing_command_raises(self):
        """Test an unknown executable raises instead of returning a result."""
        with pytest.raises(OSError):
            asyncio.run(run_process(["nonexistentcommand123"]))

    def test_long_output_line(self):
        """Test a line longer than the default stream buffer is captured."""
        result = asyncio.run(
            run_process([sys.executable, "-c", "print('x' * 200000)"], timeout=60)
        )

        assert result.exit_code == 0
        assert result.output_lines == ("x" * 200000,)

    def test_unreadable_output_kills_process(self, tmp_path, monkeypatch):
        """Test the child is killed when its output cannot be read."""
        monkeypatch.setattr("runtests.core.process.STREAM_LIMIT", 1024)
        pid_file = tmp_path / "child.pid"
        script = make_script(tmp_path, "chatty.py", f"""
            import os, sys, time
            open({str(pid_file)!r}, "w").write(str(os.getpid()))
            sys.stdout.write("x" * 8192 + "\\n")
            sys.stdout.flush()
            time.sleep(30)
        """)

        with pytest.raises(ValueError):
            asyncio.run(run_process([sys.executable, str(script)], timeout=60))

        pid = int(pid_file.read_text())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)


class TestProcessTestExecutor:
    """Tests for ProcessTestExecutor."""

    def test_command_line(self, tmp_path):
        """Test the command line puts the assembly first, then the arguments."""
        executor = make_executor(tmp_path, args=["--verbose"])
        assembly = AssemblyInfo(assembly_path="tests/Fast.dll", extra_arguments=("--filter", "A B"))

        cmd = executor.command_arguments(assembly)

        assert cmd == [sys.executable, "tests/Fast.dll", "--verbose", "--filter", "A B"]
        assert executor.command_line_for(assembly) == shlex.join(cmd)

    def test_results_argument(self, tmp_path):
        """Test the results argument points into the results directory."""
        executor = make_executor(tmp_path, results_argument="--results={results_file}", results_suffix=".xml")
        assembly = AssemblyInfo(assembly_path="Slow.dll")

        cmd = executor.command_arguments(assembly)

        expected = tmp_path / "artifacts" / "TestResults" / "Slow.xml"
        assert cmd[-1] == f"--results={expected.resolve()}"

    def test_passing_assembly(self, tmp_path):
        """Test a zero exit code produces a successful result."""
        script = make_script(tmp_path, "passing.py", """
            print("all good")
        """)
        executor = make_executor(tmp_path)

        result = run_test(executor, AssemblyInfo(assembly_path=script))

        assert result.succeeded is True
        assert result.exit_code == 0
        assert result.standard_output == "all good"
        assert len(result.process_results) == 1
        assert result.diagnostics is None
        assert result.command_line == executor.command_line_for(AssemblyInfo(assembly_path=script))

    def test_failing_assembly(self, tmp_path):
        """Test a non-zero exit code produces a failed result with error output."""
        script = make_script(tmp_path, "failing.py", """
            import sys
            print("Assert.Equal() Failure", file=sys.stderr)
            sys.exit(2)
        """)
        executor = make_executor(tmp_path)

        result = run_test(executor, AssemblyInfo(assembly_path=script))

        assert result.succeeded is False
        assert result.exit_code == 2
        assert "Assert.Equal() Failure" in result.error_output
        assert result.results_display_file_path is None

    def test_environment_is_passed(self, tmp_path):
        """Test configured environment variables reach the process."""
        script = make_script(tmp_path, "env.py", """
            import os
            print(os.environ["RUNTESTS_VALUE"])
        """)
        executor = make_executor(tmp_path, environment={"RUNTESTS_VALUE": "configured"})

        result = run_test(executor, AssemblyInfo(assembly_path=script))

        assert result.standard_output == "configured"

    def test_retries_keep_every_attempt(self, tmp_path):
        """Test a flaky assembly is retried and every attempt is kept."""
        script = make_script(tmp_path, "flaky.py", """
            import pathlib, sys
            marker = pathlib.Path(__file__).with_suffix(".ran")
            if not marker.exists():
                marker.write_text("1")
                sys.exit(1)
            print("passed on retry")
        """)
        executor = make_executor(tmp_path, retries=2)

        result = run_test(executor, AssemblyInfo(assembly_path=script))

        assert result.succeeded is True
        assert [p.exit_code for p in result.process_results] == [1, 0]
        assert "ran 2 times" in result.diagnostics

    def test_failure_with_results_file(self, tmp_path):
        """Test a failed run points at the results file it produced."""
        script = make_script(tmp_path, "report.py", """
            import pathlib, sys
            path = pathlib.Path(sys.argv[1].split("=", 1)[1])
            path.write_text("<html></html>")
            sys.exit(1)
        """)
        executor = make_executor(tmp_path, results_argument="--results={results_file}")
        assembly = AssemblyInfo(assembly_path=script)

        result = run_test(executor, assembly)

        assert result.succeeded is False
        assert result.results_display_file_path == executor.results_file_for(assembly)
        assert result.results_display_file_path.exists()

    def test_cancelled_before_start(self, tmp_path):
        """Test nothing is started once cancellation was requested."""
        executor = make_executor(tmp_path)
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(ExecutionError):
            asyncio.run(executor.run_test(AssemblyInfo(assembly_path="x.py"), cancel))
