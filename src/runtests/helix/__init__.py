"""Helix test farm submission."""

from runtests.helix.environment import HelixConfigurationError, HelixEnvironment
from runtests.helix.submitter import HelixSubmitter

__all__ = ["HelixConfigurationError", "HelixEnvironment", "HelixSubmitter"]
