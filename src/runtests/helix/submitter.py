"""Submission of a test run to Helix."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Iterable, Mapping, Optional

import httpx
from rich.console import Console

from runtests.config import RunTestsConfig
from runtests.core.executor import Executor
from runtests.core.models import AssemblyInfo, RunAllResult
from runtests.core.process import run_process
from runtests.core.runner import RunCancelledError
from runtests.helix.environment import HelixEnvironment, apply_environment_defaults
from runtests.helix.manifest import WorkItem, render_manifest, resolve_correlation_payload

logger = logging.getLogger(__name__)


class HelixSubmitter:
    """Runs assemblies on Helix by building a generated job manifest.

    The manifest build only reports one exit code, so a Helix run yields no
    per-assembly TestResults; the build's ProcessResult is the whole result.
    """

    def __init__(
        self,
        config: RunTestsConfig,
        executor: Executor,
        base_dir: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        console: Optional[Console] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.config = config
        self.executor = executor
        self.base_dir = base_dir or Path.cwd()
        self.environ = dict(os.environ if environ is None else environ)
        self.console = console or Console()
        self.http_client = http_client

    def build_environment(self) -> dict[str, str]:
        """Environment for the manifest build, with build defaults filled in."""
        env = dict(self.environ)
        added = apply_environment_defaults(env, self.config.helix)
        for name, value in added.items():
            logger.debug("Defaulting %s=%s", name, value)
        return env

    def build_manifest(self, assemblies: Iterable[AssemblyInfo], env: Mapping[str, str]) -> str:
        helix = self.config.helix
        environment = HelixEnvironment.from_environ(helix, env)
        payload = resolve_correlation_payload(environment, helix, self.http_client)

        work_items = [
            WorkItem(name=a.display_name, command=self.executor.command_line_for(a))
            for a in assemblies
        ]
        return render_manifest(work_items, environment, payload, helix)

    async def run_all(self, assemblies: Iterable[AssemblyInfo], cancel: asyncio.Event) -> RunAllResult:
        """Write the Helix manifest and build it.

        Raises:
            RunCancelledError: If cancellation was requested before the build finished
            HelixConfigurationError: If the CI environment is incomplete
        """
        if cancel.is_set():
            raise RunCancelledError("Test run was cancelled")

        env = self.build_environment()
        manifest = await asyncio.to_thread(self.build_manifest, list(assemblies), env)

        manifest_path = self.config.get_absolute_paths(self.base_dir)["manifest_path"]
        manifest_path.parent.mkdir(parents=True, exist_ok=True)
        manifest_path.write_text(manifest, encoding="utf-8")
        self.console.print(f"[dim]Wrote Helix manifest:[/dim] {manifest_path}")

        if cancel.is_set():
            raise RunCancelledError("Test run was cancelled")

        build = asyncio.ensure_future(
            run_process(
                [*self.config.helix.build_command, str(manifest_path)],
                workdir=self.base_dir,
                env=env,
            )
        )
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait([build, cancel_waiter], return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_waiter.cancel()

        if not build.done():
            # Cancelling the build task kills the build process
            build.cancel()
            await asyncio.gather(build, return_exceptions=True)
            raise RunCancelledError("Test run was cancelled")

        result = build.result()

        # TODO: map Helix work item results back to per-assembly TestResults
        return RunAllResult(
            succeeded=result.exit_code == 0,
            test_results=[],
            process_results=[result],
        )
