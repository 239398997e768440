"""Distribution engine port.

The peer-wire and tracker protocols are not part of torrentmirror; the
core only talks to an engine through the ``DistributionEngine`` protocol
below.  ``MetadataCodec`` supplies the metadata half of the protocol
(create/save/load/identity) so engine backends only implement transfer.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from torrentmirror.core import metadata
from torrentmirror.models.torrents import TorrentMetadata


@runtime_checkable
class DistributionEngine(Protocol):
    """What the distribution core needs from a peer-to-peer backend."""

    @property
    def is_running(self) -> bool: ...

    def start(self, addresses: Sequence[str], announce_interval_sec: int) -> None:
        """Open the listening/advertising side bound to *addresses*."""
        ...

    def shutdown(self) -> None:
        """Withdraw everything and release network resources."""
        ...

    def set_announce_interval(self, seconds: int) -> None: ...

    def create_metadata(
        self, source: Path, announce: str, created_by: str = metadata.CREATED_BY
    ) -> TorrentMetadata:
        """Hash *source* into a torrent announcing to *announce*."""
        ...

    def seed(self, torrent: TorrentMetadata, source: Path) -> None:
        """Advertise *source* as the content of *torrent*.  Must not block."""
        ...

    def withdraw(self, info_hash: str) -> None: ...

    def fetch(
        self,
        torrent: TorrentMetadata,
        target: Path,
        work_dir: Path,
        timeout_sec: float,
        min_peers: int,
    ) -> None:
        """Download *torrent* into *target* or raise.

        Raises ``TransferFailedError`` for too few peers, bad pieces or an
        expired timeout, ``InterruptedError`` when cancelled, ``OSError``
        for local I/O problems.
        """
        ...

    def cancel(self, info_hash: str) -> None:
        """Abort an in-flight ``fetch`` of *info_hash*."""
        ...

    def count_reachable_peers(self, torrent: TorrentMetadata) -> int: ...

    def content_identity(self, torrent: TorrentMetadata) -> str: ...

    def save(self, torrent: TorrentMetadata, path: Path) -> Path: ...

    def load(self, data: bytes) -> TorrentMetadata: ...


class MetadataCodec:
    """Metadata operations shared by every engine backend."""

    def create_metadata(
        self,
        source: Path,
        announce: str,
        created_by: str = metadata.CREATED_BY,
    ) -> TorrentMetadata:
        return metadata.create_torrent(source, announce, created_by)

    def content_identity(self, torrent: TorrentMetadata) -> str:
        return torrent.info_hash

    def save(self, torrent: TorrentMetadata, path: Path) -> Path:
        return metadata.save_torrent(torrent, path)

    def load(self, data: bytes) -> TorrentMetadata:
        return metadata.decode_torrent(data)
