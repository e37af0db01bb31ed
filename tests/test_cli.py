"""Tests for the command-line interface."""

import json
import shlex
import sys

import pytest
from click.testing import CliRunner

from runtests.cli import build_assembly_infos, main
from runtests.config import RunTestsConfig, TestConfig


@pytest.fixture
def runner():
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def config_path(tmp_path):
    """Write a config that runs Python scripts as assemblies."""
    config = RunTestsConfig(test=TestConfig(command=shlex.quote(sys.executable), parallelism=2))
    path = tmp_path / "runtests.json"
    config.to_file(path)
    return path


def write_assembly(directory, name, exit_code):
    path = directory / name
    path.write_text(f"import sys\nprint('{name}')\nsys.exit({exit_code})\n")
    return str(path)


class TestInit:
    """Tests for the init command."""

    def test_creates_config(self, runner, tmp_path):
        """Test init writes a loadable configuration file."""
        output = tmp_path / "runtests.json"

        result = runner.invoke(main, ["init", "--output", str(output)])

        assert result.exit_code == 0
        assert output.exists()
        assert json.loads(output.read_text())["project"]["name"] == "my-tests"

    def test_refuses_to_overwrite(self, runner, tmp_path):
        """Test init keeps an existing file without --force."""
        output = tmp_path / "runtests.json"
        output.write_text("{}")

        result = runner.invoke(main, ["init", "--output", str(output)])

        assert result.exit_code == 1
        assert output.read_text() == "{}"


class TestRun:
    """Tests for the run command."""

    def test_missing_config(self, runner, tmp_path):
        """Test run fails cleanly without a configuration file."""
        result = runner.invoke(main, ["--config", str(tmp_path / "missing.json"), "run", "A.dll"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_all_pass(self, runner, tmp_path, config_path):
        """Test a passing run exits zero and prints the summary."""
        assemblies = [write_assembly(tmp_path, f"pass{i}.py", 0) for i in range(3)]

        result = runner.invoke(main, ["--config", str(config_path), "run", *assemblies])

        assert result.exit_code == 0, result.output
        assert result.output.count("PASSED") == 3
        assert "Test run succeeded" in result.output

    def test_failure_exits_nonzero(self, runner, tmp_path, config_path):
        """Test one failing assembly fails the run but the rest still run."""
        assemblies = [
            write_assembly(tmp_path, "good.py", 0),
            write_assembly(tmp_path, "bad.py", 4),
        ]

        result = runner.invoke(main, ["--config", str(config_path), "run", "--sequential", *assemblies])

        assert result.exit_code == 1
        assert "PASSED" in result.output
        assert "FAILED" in result.output
        assert (tmp_path / "artifacts" / "log" / "TestFailure-bad.log").read_text() == "bad.py"

    def test_invalid_parallelism(self, runner, tmp_path, config_path):
        """Test a parallelism below one is rejected."""
        result = runner.invoke(main, ["--config", str(config_path), "run", "-j", "0", "A.dll"])

        assert result.exit_code == 1
        assert "--parallelism" in result.output

    def test_same_named_failures_keep_separate_logs(self, runner, tmp_path, config_path):
        """Test failing assemblies sharing a file name each get their own log."""
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        assemblies = [
            write_assembly(tmp_path / "a", "Tests.py", 1),
            write_assembly(tmp_path / "b", "Tests.py", 2),
        ]

        result = runner.invoke(main, ["--config", str(config_path), "run", *assemblies])

        assert result.exit_code == 1
        log_dir = tmp_path / "artifacts" / "log"
        assert (log_dir / "TestFailure-a.Tests.log").exists()
        assert (log_dir / "TestFailure-b.Tests.log").exists()


class TestBuildAssemblyInfos:
    """Tests for build_assembly_infos."""

    def test_unique_stems_are_kept(self):
        """Test assemblies with distinct file names keep their stem."""
        infos = build_assembly_infos(("bin/Core.Tests.dll", "bin/Ide.Tests.dll"), ("--filter", "x"))

        assert [i.display_name for i in infos] == ["Core.Tests", "Ide.Tests"]
        assert all(i.extra_arguments == ("--filter", "x") for i in infos)

    def test_colliding_stems_use_directory(self):
        """Test assemblies sharing a stem are told apart by their directory."""
        infos = build_assembly_infos(("net8/Tests.dll", "net9/Tests.dll", "Other.dll"))

        assert [i.display_name for i in infos] == ["net8.Tests", "net9.Tests", "Other"]

    def test_still_ambiguous_names_are_numbered(self):
        """Test a repeated path still yields distinct display names."""
        infos = build_assembly_infos(("bin/Tests.dll", "bin/Tests.dll", "Tests.py"))

        names = [i.display_name for i in infos]
        assert names == ["bin.Tests", "bin.Tests_2", "Tests"]
        assert len(set(names)) == 3
