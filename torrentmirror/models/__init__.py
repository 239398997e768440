"""torrentmirror data models — Pydantic v2, frozen."""

from torrentmirror.models.builds import (
    BuildRef,
    DownloadReport,
    DownloadRequest,
    DownloadResult,
    ResolverContext,
    TransferMethod,
)
from torrentmirror.models.config import CONFIG_FIELDS, MEGABYTE, SeederConfig
from torrentmirror.models.seeder import VALID_TRANSITIONS, SeederState
from torrentmirror.models.torrents import FileLink, SeededTorrent, TorrentMetadata

__all__ = [
    # config
    "SeederConfig",
    "CONFIG_FIELDS",
    "MEGABYTE",
    # torrents
    "TorrentMetadata",
    "FileLink",
    "SeededTorrent",
    # seeder
    "SeederState",
    "VALID_TRANSITIONS",
    # builds
    "BuildRef",
    "ResolverContext",
    "TransferMethod",
    "DownloadRequest",
    "DownloadResult",
    "DownloadReport",
]
