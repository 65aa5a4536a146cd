"""Exception hierarchy shared by stackprobe components."""

from __future__ import annotations


class StackProbeError(Exception):
    """Base class for all stackprobe errors."""


class ProbeError(StackProbeError):
    """Raised when a file under a scanned root cannot be read."""

    def __init__(self, path: str, message: str | None = None) -> None:
        self.path = path
        super().__init__(message or path)


class NotFound(ProbeError):
    """The requested file does not exist under the probe root."""


class ReadError(ProbeError):
    """The file exists but could not be read (permissions, IO, decoding, size)."""


class RootNotFound(StackProbeError):
    """A project root handed to the engine does not exist or is not a directory."""

    def __init__(self, root: str) -> None:
        self.root = root
        super().__init__(f"Project root not found: {root}")


class ManifestParseError(StackProbeError):
    """A dependency manifest contains malformed content."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to parse {source}: {reason}")


class CatalogError(StackProbeError):
    """The indicator catalog is invalid."""


class ConfigError(StackProbeError):
    """Raised when the configuration file cannot be parsed."""


__all__ = [
    "CatalogError",
    "ConfigError",
    "ManifestParseError",
    "NotFound",
    "ProbeError",
    "ReadError",
    "RootNotFound",
    "StackProbeError",
]
