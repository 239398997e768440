"""Torrent file codec: create, encode, decode, save, and cache on disk.

Torrent files live under a torrents root that mirrors the artifact
layout: ``<torrents-root>/<relative-artifact-path>.torrent``.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import bencodepy

from torrentmirror.core.errors import MetadataValidationError
from torrentmirror.core.hasher import DEFAULT_PIECE_LENGTH, hash_pieces, info_hash_hex
from torrentmirror.models.torrents import SHA1_DIGEST_SIZE, TorrentMetadata

logger = logging.getLogger(__name__)

TORRENT_FILE_SUFFIX = ".torrent"
CREATED_BY = "torrentmirror"
# Hidden directory inside a build's artifacts that holds published torrents.
HIDDEN_ARTIFACTS_DIR = ".mirror"
TORRENTS_DIR_PATH = f"{HIDDEN_ARTIFACTS_DIR}/torrents"


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


def _info_dict(name: str, piece_length: int, pieces: bytes, length: int) -> dict[str, Any]:
    return {
        "name": name,
        "piece length": piece_length,
        "pieces": pieces,
        "length": length,
    }


def create_torrent(
    source: Path,
    announce: str,
    created_by: str = CREATED_BY,
    *,
    piece_length: int = DEFAULT_PIECE_LENGTH,
) -> TorrentMetadata:
    """Hash *source* and build a single-file torrent announcing to *announce*.

    This reads the whole file and is the expensive step the link store
    exists to avoid repeating.
    """
    source = Path(source)
    pieces, length = hash_pieces(source, piece_length)
    info = _info_dict(source.name, piece_length, pieces, length)
    return TorrentMetadata(
        announce=announce,
        name=source.name,
        piece_length=piece_length,
        pieces=pieces,
        length=length,
        info_hash=info_hash_hex(info),
        created_by=created_by,
        creation_date=int(time.time()),
    )


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------


def encode_torrent(torrent: TorrentMetadata) -> bytes:
    """Serialize *torrent* to bencoded bytes."""
    data: dict[str, Any] = {
        "announce": torrent.announce,
        "info": _info_dict(torrent.name, torrent.piece_length, torrent.pieces, torrent.length),
    }
    if torrent.created_by:
        data["created by"] = torrent.created_by
    if torrent.creation_date is not None:
        data["creation date"] = torrent.creation_date
    return bencodepy.encode(data)


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


def decode_torrent(data: bytes) -> TorrentMetadata:
    """Parse bencoded torrent bytes.

    Raises
    ------
    MetadataValidationError
        If the bytes are not a single-file torrent.
    """
    try:
        decoded = bencodepy.decode(data)
    except Exception as exc:
        raise MetadataValidationError(f"Cannot decode torrent: {exc}") from exc

    if not isinstance(decoded, dict) or b"info" not in decoded:
        raise MetadataValidationError("Torrent has no info dictionary")
    info = decoded[b"info"]
    try:
        name = _text(info[b"name"])
        piece_length = int(info[b"piece length"])
        pieces = bytes(info[b"pieces"])
        length = int(info[b"length"])
    except (KeyError, TypeError, ValueError) as exc:
        raise MetadataValidationError(f"Malformed torrent info dictionary: {exc}") from exc

    if len(pieces) % SHA1_DIGEST_SIZE:
        raise MetadataValidationError("Torrent piece hashes are truncated")

    creation_date = decoded.get(b"creation date")
    return TorrentMetadata(
        announce=_text(decoded.get(b"announce", b"")),
        name=name,
        piece_length=piece_length,
        pieces=pieces,
        length=length,
        # Hash the info dict exactly as stored so identity survives round trips.
        info_hash=info_hash_hex(info),
        created_by=_text(decoded.get(b"created by", b"")),
        creation_date=int(creation_date) if creation_date is not None else None,
    )


# ---------------------------------------------------------------------------
# Disk
# ---------------------------------------------------------------------------


def save_torrent(torrent: TorrentMetadata, path: Path) -> Path:
    """Write *torrent* to *path* atomically, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encode_torrent(torrent))
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


def load_torrent_file(path: Path) -> TorrentMetadata:
    """Read and decode the torrent stored at *path*."""
    return decode_torrent(Path(path).read_bytes())


def torrent_file_path(torrents_dir: Path, artifact_path: str) -> Path:
    """Where the torrent for *artifact_path* (relative) is stored."""
    return Path(torrents_dir) / f"{artifact_path.lstrip('/')}{TORRENT_FILE_SUFFIX}"


def is_torrent_current(torrent_file: Path, artifact_file: Path) -> bool:
    """A cached torrent is current if it is not older than its artifact and
    declares the artifact's size."""
    try:
        if torrent_file.stat().st_mtime < artifact_file.stat().st_mtime:
            return False
        return load_torrent_file(torrent_file).length == artifact_file.stat().st_size
    except (OSError, MetadataValidationError):
        return False


def get_or_create_torrent(
    artifact_file: Path,
    artifact_path: str,
    torrents_dir: Path,
    announce: str,
    create: Callable[[Path, str], TorrentMetadata] | None = None,
) -> tuple[Path, TorrentMetadata]:
    """Return the cached torrent for an artifact, creating it if needed.

    *create* hashes the artifact when no current torrent exists; it
    defaults to ``create_torrent``.  Returns ``(torrent_file, torrent)``.
    """
    torrent_file = torrent_file_path(torrents_dir, artifact_path)
    if is_torrent_current(torrent_file, artifact_file):
        return torrent_file, load_torrent_file(torrent_file)

    torrent = (create or create_torrent)(artifact_file, announce)
    save_torrent(torrent, torrent_file)
    logger.debug("Created torrent %s for %s (%s)", torrent_file, artifact_file, torrent.info_hash)
    return torrent_file, torrent
