"""Error taxonomy shared by producer, seeder and consumer paths.

Per-artifact and per-URL errors are isolated by the callers: a batch logs
and counts them, then moves on.  Anything that is a ``RuntimeError`` but
not a ``MirrorError`` is treated as fatal and propagated unchanged.
"""

from __future__ import annotations


class MirrorError(RuntimeError):
    """Base class for expected, recoverable distribution failures."""


class ConfigurationIncompleteError(MirrorError):
    """Raised when the announce URL or size threshold is not known yet."""


class MetadataValidationError(MirrorError):
    """Raised when a torrent does not describe the artifact it is paired with.

    Typical cause: the declared length differs from the artifact's size on
    disk, or the torrent file itself cannot be decoded.
    """


class TransferFailedError(MirrorError):
    """Raised when creating or fetching a torrent fails (I/O, timeout,
    interruption, missing hash support).  Callers fall back to direct
    transfer."""


class DirectFetchError(TransferFailedError):
    """Raised when the direct (HTTP) fetcher cannot retrieve a URL."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LinkResolutionError(MirrorError):
    """Raised when a link entry cannot be read or parsed."""


class InvalidSeederTransition(MirrorError):
    """Raised when a directory seeder lifecycle transition is not valid."""


class ManifestError(MirrorError):
    """Raised when a build's artifact manifest cannot be parsed."""
