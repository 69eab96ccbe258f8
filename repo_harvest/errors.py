"""Exceptions raised by the harvester."""

from __future__ import annotations


class RepoHarvestError(RuntimeError):
    """Base class for harvester failures."""


class ConfigurationError(RepoHarvestError):
    """Raised when a required setting is missing."""


class PlatformUnreachableError(RepoHarvestError):
    """Raised when the GitHub API cannot be reached at the transport level."""


class UnsupportedEncodingError(RepoHarvestError):
    """Raised when GitHub returns README content in an unknown encoding."""

    def __init__(self, encoding: str) -> None:
        super().__init__(f"Unsupported README encoding: {encoding}")
        self.encoding = encoding


__all__ = [
    "RepoHarvestError",
    "ConfigurationError",
    "PlatformUnreachableError",
    "UnsupportedEncodingError",
]
