"""Command-line interface for runtests."""

import asyncio
import signal
import sys
from collections import Counter
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from runtests import __version__
from runtests.config import RunTestsConfig, create_example_config
from runtests.core.models import AssemblyInfo, RunAllResult
from runtests.core.runner import RunCancelledError
from runtests.log import setup_logging


console = Console()


def print_banner() -> None:
    """Print the runtests banner."""
    console.print(
        Panel.fit(
            "[bold blue]runtests[/bold blue] - parallel test assembly runner",
            subtitle=f"v{__version__}",
        )
    )


@click.group()
@click.version_option(version=__version__, prog_name="runtests")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False),
    help="Path to configuration file (default: runtests.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """runtests - run test assemblies in parallel or on Helix.

    Runs every assembly as its own process, keeps going when one fails,
    and prints a summary sorted by duration.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config
    setup_logging(verbose)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="runtests.json",
    help="Output path for configuration file",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite existing configuration")
@click.pass_context
def init(ctx: click.Context, output: str, force: bool) -> None:
    """Initialize a new runtests configuration file."""
    print_banner()

    output_path = Path(output)
    if output_path.exists() and not force:
        console.print(
            f"[yellow]Configuration file already exists:[/yellow] {output_path}"
        )
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        create_example_config(output_path)
        console.print(f"[green]Created configuration file:[/green] {output_path}")
        console.print("\nNext steps:")
        console.print("  1. Set test.command to the runner for your assemblies")
        console.print("  2. Run [bold]runtests run <assembly>...[/bold]")
    except OSError as e:
        console.print(f"[red]Error creating configuration:[/red] {e}")
        sys.exit(1)


@main.command()
@click.argument("assemblies", nargs=-1, required=True, type=click.Path())
@click.option("--sequential", is_flag=True, help="Run one assembly at a time")
@click.option("--parallelism", "-j", type=int, help="Maximum number of assemblies running at once")
@click.option("--helix", is_flag=True, help="Submit to Helix instead of running locally")
@click.option(
    "--filter",
    "extra_arguments",
    multiple=True,
    help="Extra argument passed to every assembly's test command",
)
@click.pass_context
def run(
    ctx: click.Context,
    assemblies: tuple[str, ...],
    sequential: bool,
    parallelism: Optional[int],
    helix: bool,
    extra_arguments: tuple[str, ...],
) -> None:
    """Run test ASSEMBLIES and report the results."""
    print_banner()

    config_path = ctx.obj.get("config_path")

    try:
        if config_path:
            config = RunTestsConfig.from_file(config_path)
        else:
            config = RunTestsConfig.find_and_load()
        console.print(f"[dim]Loaded config for project:[/dim] {config.project.name}")
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print("Run [bold]runtests init[/bold] to create a configuration file")
        sys.exit(1)
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(1)

    if sequential:
        config.test.sequential = True
    if parallelism is not None:
        if parallelism < 1:
            console.print("[red]Error:[/red] --parallelism must be at least 1")
            sys.exit(1)
        config.test.parallelism = parallelism
    if helix:
        config.helix.enabled = True

    base_dir = Path(config_path).parent if config_path else Path.cwd()
    assembly_infos = build_assembly_infos(assemblies, extra_arguments)

    from runtests.helix.environment import HelixConfigurationError

    try:
        result = asyncio.run(_run_tests(config, base_dir, assembly_infos))
    except RunCancelledError:
        console.print("\n[yellow]Test run cancelled[/yellow]")
        sys.exit(130)
    except HelixConfigurationError as e:
        console.print(f"[red]Helix configuration error:[/red] {e}")
        sys.exit(1)

    if result.succeeded:
        console.print("\n[green]Test run succeeded[/green]")
    else:
        console.print("\n[red]Test run failed![/red]")
        sys.exit(1)


def build_assembly_infos(
    paths: tuple[str, ...],
    extra_arguments: tuple[str, ...] = (),
) -> list[AssemblyInfo]:
    """Create assemblies with display names unique within the run.

    Display names key results files and failure logs, so assemblies sharing a
    file stem are prefixed with their directory name, and numbered if that is
    still ambiguous.
    """
    assembly_paths = [Path(p) for p in paths]
    stems = Counter(p.stem for p in assembly_paths)

    used: set[str] = set()
    infos = []
    for path in assembly_paths:
        name = path.stem
        if stems[name] > 1 and path.parent.name:
            name = f"{path.parent.name}.{name}"

        candidate, index = name, 1
        while candidate in used:
            index += 1
            candidate = f"{name}_{index}"
        used.add(candidate)

        infos.append(
            AssemblyInfo(assembly_path=path, display_name=candidate, extra_arguments=extra_arguments)
        )
    return infos


async def _run_tests(
    config: RunTestsConfig,
    base_dir: Path,
    assemblies: list[AssemblyInfo],
) -> RunAllResult:
    from runtests.core.executor import ProcessTestExecutor

    cancel = asyncio.Event()
    _install_cancel_handlers(cancel)

    executor = ProcessTestExecutor(config, base_dir)

    if config.helix.enabled:
        from runtests.helix.submitter import HelixSubmitter

        submitter = HelixSubmitter(config, executor, base_dir=base_dir, console=console)
        return await submitter.run_all(assemblies, cancel)

    from runtests.core.runner import TestRunner
    from runtests.report.console import ResultReporter

    runner = TestRunner(config, executor, console=console)
    result = await runner.run_all(assemblies, cancel)

    paths = config.get_absolute_paths(base_dir)
    reporter = ResultReporter(paths["log_files_directory"], console=console)
    reporter.print_results(result.test_results)

    return result


def _install_cancel_handlers(cancel: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform or outside the main thread
            pass


if __name__ == "__main__":
    main()
