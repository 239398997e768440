"""Torrent metadata, link descriptors, and seeded-set entries."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

SHA1_DIGEST_SIZE = 20


class TorrentMetadata(BaseModel):
    """A single-file torrent.

    ``info_hash`` is the SHA-1 hex digest of the bencoded info dict
    (name, piece length, pieces, length) and is the content identity used
    everywhere else.  It is computed by ``torrentmirror.core.metadata`` and
    never supplied by callers.
    """

    model_config = ConfigDict(frozen=True)

    announce: str
    name: str
    piece_length: int
    pieces: bytes  # concatenated SHA-1 digests, 20 bytes per piece
    length: int
    info_hash: str
    created_by: str = ""
    creation_date: int | None = None

    @property
    def piece_count(self) -> int:
        return len(self.pieces) // SHA1_DIGEST_SIZE

    def piece_hash(self, index: int) -> bytes:
        start = index * SHA1_DIGEST_SIZE
        return self.pieces[start:start + SHA1_DIGEST_SIZE]

    def piece_size(self, index: int) -> int:
        """Size of piece *index*; only the last piece may be short."""
        if index == self.piece_count - 1:
            return self.length - index * self.piece_length
        return self.piece_length


class FileLink(BaseModel):
    """On-disk descriptor tying an artifact to its already-built torrent."""

    model_config = ConfigDict(frozen=True)

    torrent_file: Path
    artifact_file: Path

    @property
    def is_dangling(self) -> bool:
        return not self.torrent_file.is_file()


class SeededTorrent(BaseModel):
    """One entry of the bounded seeded set."""

    model_config = ConfigDict(frozen=True)

    info_hash: str
    artifact_file: Path
    torrent_file: Path | None = None
    name: str = ""
    length: int = 0
    seeded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
