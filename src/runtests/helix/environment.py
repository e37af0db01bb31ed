"""Build environment inputs for Helix submission."""

import os
from collections.abc import Mapping, MutableMapping
from typing import Optional

from pydantic import BaseModel, Field

from runtests.config import HelixConfig

SOURCE_BRANCH = "BUILD_SOURCEBRANCH"
REPOSITORY_NAME = "BUILD_REPOSITORY_NAME"
TEAM_PROJECT = "SYSTEM_TEAMPROJECT"
BUILD_REASON = "BUILD_REASON"
BUILD_NUMBER = "BUILD_BUILDNUMBER"
BUILD_ID = "BUILD_BUILDID"
ACCESS_TOKEN = "SYSTEM_ACCESSTOKEN"


class HelixConfigurationError(Exception):
    """Raised when the build environment cannot support a Helix submission."""

    pass


def environment_defaults(config: HelixConfig) -> dict[str, str]:
    """Values the Helix SDK expects, used only where the build did not set them."""
    return {
        SOURCE_BRANCH: "local",
        REPOSITORY_NAME: config.repository_name,
        TEAM_PROJECT: "dnceng",
        BUILD_REASON: "pr",
    }


def apply_environment_defaults(environ: MutableMapping[str, str], config: HelixConfig) -> dict[str, str]:
    """Fill in missing build variables without overwriting existing ones.

    Returns:
        The variables that were added (empty when called a second time)
    """
    added = {}
    for name, value in environment_defaults(config).items():
        if name not in environ:
            environ[name] = value
            added[name] = value
    return added


class HelixEnvironment(BaseModel):
    """Build environment resolved once before a submission."""

    source_branch: str
    repository_name: str
    team_project: str
    build_reason: str
    build_number: str = Field(default="0")
    build_id: Optional[str] = Field(default=None, description="Raw BUILD_BUILDID value, if any")
    is_azure_devops_run: bool = Field(default=False, description="True when an access token is present")

    @classmethod
    def from_environ(
        cls,
        config: HelixConfig,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "HelixEnvironment":
        if environ is None:
            environ = os.environ

        values = {**environment_defaults(config), **environ}
        return cls(
            source_branch=values[SOURCE_BRANCH],
            repository_name=values[REPOSITORY_NAME],
            team_project=values[TEAM_PROJECT],
            build_reason=values[BUILD_REASON],
            build_number=values.get(BUILD_NUMBER, "0"),
            build_id=values.get(BUILD_ID),
            is_azure_devops_run=ACCESS_TOKEN in values,
        )

    def require_build_id(self) -> int:
        """Return the build id as an integer.

        Raises:
            HelixConfigurationError: If BUILD_BUILDID is missing or not an integer
        """
        try:
            return int(self.build_id)
        except (TypeError, ValueError):
            raise HelixConfigurationError(
                f"{BUILD_ID} environment variable must be set when running in Azure DevOps"
            ) from None
