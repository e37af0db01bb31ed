"""Configuration management for runtests."""

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ProjectConfig(BaseModel):
    """Project identification and metadata."""

    name: str = Field(default="tests", description="Project name for identification")
    description: str = Field(default="", description="Brief description of the test suite")


class TestConfig(BaseModel):
    """Test execution configuration."""

    command: str = Field(default="dotnet test", description="Test runner command; the assembly path is appended")
    args: list[str] = Field(default_factory=list, description="Arguments placed after the assembly path")
    results_argument: Optional[str] = Field(
        default=None,
        description="Argument template for a results file, e.g. '--logger:html;LogFileName={results_file}'",
    )
    results_suffix: str = Field(default=".html", description="Suffix of the per-assembly results file")
    timeout_seconds: int = Field(default=1800, description="Timeout for a single test process")
    environment: dict[str, str] = Field(default_factory=dict, description="Additional environment variables")
    sequential: bool = Field(default=False, description="Run one assembly at a time")
    parallelism: Optional[int] = Field(default=None, description="Concurrency bound (default: 1.5 x CPU count)")
    retries: int = Field(default=0, description="Extra attempts for an assembly that failed")

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Timeout must be at least 1 second")
        return v

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Test command cannot be empty")
        return v

    @field_validator("parallelism")
    @classmethod
    def validate_parallelism(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("Parallelism must be at least 1")
        return v

    @field_validator("retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Retries cannot be negative")
        return v


class ReportConfig(BaseModel):
    """Report and log output configuration."""

    log_files_directory: str = Field(default="./artifacts/log", description="Directory for failure logs")
    results_directory: str = Field(default="./artifacts/TestResults", description="Directory for results files")


class HelixConfig(BaseModel):
    """Helix test farm submission configuration."""

    enabled: bool = Field(default=False, description="Submit to Helix instead of running locally")
    manifest_path: str = Field(default="helix-tmp.csproj", description="Where the generated manifest is written")
    build_command: list[str] = Field(
        default_factory=lambda: ["dotnet", "build"],
        description="Command used to build the manifest; the manifest path is appended",
    )
    target_queues: str = Field(default="Windows.10.Amd64.Open", description="Helix queues to target")
    creator: str = Field(default="runtests", description="Creator recorded on the Helix job")
    repository_name: str = Field(default="dotnet/roslyn", description="Default for BUILD_REPOSITORY_NAME")
    artifact_name: str = Field(default="Transport_Artifacts_Windows_Debug", description="Build artifact holding the payload")
    artifacts_url: str = Field(
        default=(
            "https://dev.azure.com/dnceng/public/_apis/build/builds/{build_id}"
            "/artifacts?artifactName={artifact_name}&api-version=6.0"
        ),
        description="Artifact metadata endpoint template",
    )
    setup_commands: list[str] = Field(
        default_factory=lambda: ["dotnet tool restore", "dotnet pwsh ./rehydrate.ps1"],
        description="Commands run on the Helix machine before the test command",
    )
    request_timeout_seconds: int = Field(default=60, description="Artifact endpoint request timeout")

    @field_validator("build_command")
    @classmethod
    def validate_build_command(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("Build command cannot be empty")
        return v


class RunTestsConfig(BaseModel):
    """Main configuration for runtests."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    test: TestConfig = Field(default_factory=TestConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    helix: HelixConfig = Field(default_factory=HelixConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "RunTestsConfig":
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            data = json.load(f)

        return cls.model_validate(data)

    @classmethod
    def find_and_load(cls, start_dir: Path | str | None = None) -> "RunTestsConfig":
        """Find and load configuration file, searching up the directory tree."""
        if start_dir is None:
            start_dir = Path.cwd()
        else:
            start_dir = Path(start_dir)

        config_names = ["runtests.json", ".runtests.json"]

        current = start_dir.resolve()
        while True:
            for name in config_names:
                config_path = current / name
                if config_path.exists():
                    return cls.from_file(config_path)
            if current == current.parent:
                break
            current = current.parent

        raise FileNotFoundError(
            "No configuration file found. Create runtests.json or run 'runtests init'"
        )

    def to_file(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)

    def get_absolute_paths(self, base_dir: Path | str | None = None) -> dict[str, Path]:
        """Get absolute paths for various config paths."""
        if base_dir is None:
            base_dir = Path.cwd()
        else:
            base_dir = Path(base_dir)

        return {
            "log_files_directory": (base_dir / self.report.log_files_directory).resolve(),
            "results_directory": (base_dir / self.report.results_directory).resolve(),
            "manifest_path": (base_dir / self.helix.manifest_path).resolve(),
        }


def get_default_config() -> RunTestsConfig:
    """Return a default configuration."""
    return RunTestsConfig(
        project=ProjectConfig(name="my-tests"),
        test=TestConfig(command="dotnet test", args=["--no-build"]),
    )


def create_example_config(output_path: Path | str) -> Path:
    """Create an example configuration file."""
    output_path = Path(output_path)
    config = get_default_config()
    config.project.description = "Unit test assemblies for my project"
    config.to_file(output_path)
    return output_path
