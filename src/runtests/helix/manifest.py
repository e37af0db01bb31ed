"""Helix job manifest rendering using Jinja2 templates."""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import httpx
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from runtests.config import HelixConfig
from runtests.helix.environment import HelixConfigurationError, HelixEnvironment

LOCAL_PAYLOAD = "$(RepoRoot)artifacts/testPayload"

_template_env = Environment(
    loader=FileSystemLoader(Path(__file__).parent / "templates"),
    autoescape=select_autoescape(["xml"]),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


@dataclass(frozen=True)
class WorkItem:
    """One Helix work item: a named command run on a test machine."""

    name: str
    command: str


@dataclass(frozen=True)
class CorrelationPayload:
    """The artifact bundle every work item runs against."""

    include: str
    uri: Optional[str] = None


def resolve_correlation_payload(
    environment: HelixEnvironment,
    config: HelixConfig,
    client: Optional[httpx.Client] = None,
) -> CorrelationPayload:
    """Locate the test payload for the work items.

    In Azure DevOps the payload is the build's published artifact; anywhere
    else it is the local artifacts directory.

    Raises:
        HelixConfigurationError: If the build id is missing, the artifact
            endpoint fails, or its response has no download URL
    """
    if not environment.is_azure_devops_run:
        return CorrelationPayload(include=LOCAL_PAYLOAD)

    build_id = environment.require_build_id()
    url = config.artifacts_url.format(build_id=build_id, artifact_name=config.artifact_name)

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=config.request_timeout_seconds)

    try:
        response = client.get(url)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as e:
        raise HelixConfigurationError(f"Could not read build artifact metadata from {url}: {e}") from e
    except ValueError as e:
        raise HelixConfigurationError(f"Build artifact metadata from {url} is not JSON") from e
    finally:
        if owns_client:
            client.close()

    download_url = (data.get("resource") or {}).get("downloadUrl")
    if not download_url:
        raise HelixConfigurationError(f"Build artifact metadata from {url} has no downloadUrl")

    return CorrelationPayload(include="testPayload", uri=download_url)


def render_manifest(
    work_items: Iterable[WorkItem],
    environment: HelixEnvironment,
    payload: CorrelationPayload,
    config: HelixConfig,
) -> str:
    """Render the MSBuild project that submits the work items to Helix."""
    template = _template_env.get_template("helix-project.xml")
    return template.render(
        work_items=list(work_items),
        environment=environment,
        payload=payload,
        config=config,
    )
