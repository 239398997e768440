"""Hashing helpers for torrent pieces and content identity.

SHA-1 is mandated by the torrent format for both piece digests and the
info hash.  Interpreters built without SHA-1 support (FIPS builds) raise
``TransferFailedError`` here instead of deep inside a transfer.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any

import bencodepy

from torrentmirror.core.errors import TransferFailedError

DEFAULT_PIECE_LENGTH = 512 * 1024
_READ_CHUNK = 1024 * 1024


def _sha1(data: bytes = b"") -> Any:
    try:
        return hashlib.new("sha1", data)
    except ValueError as exc:
        raise TransferFailedError(f"SHA-1 is not available: {exc}") from exc


def sha1_digest(data: bytes) -> bytes:
    """Return the raw 20-byte SHA-1 digest of *data*."""
    return _sha1(data).digest()


def hash_pieces(path: Path, piece_length: int = DEFAULT_PIECE_LENGTH) -> tuple[bytes, int]:
    """Hash *path* in fixed-size pieces.

    Returns ``(pieces, length)`` where ``pieces`` is the concatenation of
    every piece's SHA-1 digest and ``length`` the number of bytes read.
    """
    digests: list[bytes] = []
    length = 0
    piece = _sha1()
    filled = 0
    with open(path, "rb") as fh:
        while True:
            chunk = fh.read(min(_READ_CHUNK, piece_length - filled))
            if not chunk:
                break
            piece.update(chunk)
            filled += len(chunk)
            length += len(chunk)
            if filled == piece_length:
                digests.append(piece.digest())
                piece = _sha1()
                filled = 0
    if filled:
        digests.append(piece.digest())
    return b"".join(digests), length


def info_hash_hex(info: dict[str, Any]) -> str:
    """Content identity: SHA-1 hex digest of the bencoded info dict."""
    return _sha1(bencodepy.encode(info)).hexdigest()
