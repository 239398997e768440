"""In-process swarm engine.

``LocalSwarmEngine`` implements ``DistributionEngine`` for peers that share
one ``LocalSwarm`` registry: several hosts simulated in one process, a
single-host deployment with no tracker, or tests.  Seeding registers a
source file under the torrent's info hash; fetching reads pieces from
other running peers, checks each one against the torrent's SHA-1 piece
hashes, and moves the finished file into place atomically.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
import time
import uuid
from collections.abc import Sequence
from pathlib import Path

from torrentmirror.core.errors import TransferFailedError
from torrentmirror.core.hasher import sha1_digest
from torrentmirror.engine.base import MetadataCodec
from torrentmirror.models.torrents import TorrentMetadata

logger = logging.getLogger(__name__)


class LocalSwarm:
    """Registry of who advertises which info hash."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # info_hash -> {peer_id: (engine, source)}
        self._swarms: dict[str, dict[str, tuple[LocalSwarmEngine, Path]]] = {}

    def announce(self, info_hash: str, engine: LocalSwarmEngine, source: Path) -> None:
        with self._lock:
            self._swarms.setdefault(info_hash, {})[engine.peer_id] = (engine, source)

    def withdraw(self, info_hash: str, engine: LocalSwarmEngine) -> None:
        with self._lock:
            peers = self._swarms.get(info_hash)
            if peers is None:
                return
            peers.pop(engine.peer_id, None)
            if not peers:
                del self._swarms[info_hash]

    def peers(self, info_hash: str, *, exclude: str | None = None) -> list[tuple[str, Path]]:
        """Running peers advertising *info_hash*, as ``(peer_id, source)``."""
        with self._lock:
            entries = list(self._swarms.get(info_hash, {}).items())
        return [
            (peer_id, source)
            for peer_id, (engine, source) in entries
            if peer_id != exclude and engine.is_running
        ]


DEFAULT_SWARM = LocalSwarm()


class LocalSwarmEngine(MetadataCodec):
    """One peer of a ``LocalSwarm``.

    Parameters
    ----------
    swarm:
        Registry shared with the other peers.  Defaults to the process-wide
        ``DEFAULT_SWARM``.
    peer_id:
        Identifier of this peer (auto-generated).
    """

    def __init__(self, swarm: LocalSwarm | None = None, peer_id: str | None = None) -> None:
        self._swarm = swarm or DEFAULT_SWARM
        self.peer_id = peer_id or uuid.uuid4().hex[:12]
        self._lock = threading.Lock()
        self._running = False
        self._addresses: list[str] = []
        self._announce_interval_sec = 60
        self._seeding: dict[str, Path] = {}
        self._cancel_events: dict[str, threading.Event] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def addresses(self) -> list[str]:
        return list(self._addresses)

    @property
    def announce_interval_sec(self) -> int:
        return self._announce_interval_sec

    def start(self, addresses: Sequence[str], announce_interval_sec: int) -> None:
        with self._lock:
            self._addresses = list(addresses)
            self._announce_interval_sec = announce_interval_sec
            self._running = True
        logger.info("Peer %s listening on %s", self.peer_id, ", ".join(self._addresses) or "-")

    def shutdown(self) -> None:
        with self._lock:
            self._running = False
            seeding = list(self._seeding)
            self._seeding.clear()
            events = list(self._cancel_events.values())
        for info_hash in seeding:
            self._swarm.withdraw(info_hash, self)
        for event in events:
            event.set()
        logger.info("Peer %s shut down", self.peer_id)

    def set_announce_interval(self, seconds: int) -> None:
        self._announce_interval_sec = seconds

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def seed(self, torrent: TorrentMetadata, source: Path) -> None:
        with self._lock:
            self._seeding[torrent.info_hash] = Path(source)
        self._swarm.announce(torrent.info_hash, self, Path(source))

    def withdraw(self, info_hash: str) -> None:
        with self._lock:
            self._seeding.pop(info_hash, None)
        self._swarm.withdraw(info_hash, self)

    def seeded_hashes(self) -> set[str]:
        with self._lock:
            return set(self._seeding)

    def count_reachable_peers(self, torrent: TorrentMetadata) -> int:
        return len(self._swarm.peers(torrent.info_hash, exclude=self.peer_id))

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def cancel(self, info_hash: str) -> None:
        with self._lock:
            event = self._cancel_events.get(info_hash)
        if event is not None:
            event.set()

    def fetch(
        self,
        torrent: TorrentMetadata,
        target: Path,
        work_dir: Path,
        timeout_sec: float,
        min_peers: int,
    ) -> None:
        if not self._running:
            raise TransferFailedError(f"Peer {self.peer_id} is not running")

        peers = self._swarm.peers(torrent.info_hash, exclude=self.peer_id)
        if len(peers) < max(min_peers, 1):
            raise TransferFailedError(
                f"Only {len(peers)} seeders for {torrent.name}, need {min_peers}"
            )

        deadline = time.monotonic() + timeout_sec
        cancelled = threading.Event()
        with self._lock:
            self._cancel_events[torrent.info_hash] = cancelled

        work_dir = Path(work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=work_dir, prefix=f".{torrent.name}.", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as out:
                for index in range(torrent.piece_count):
                    if cancelled.is_set():
                        raise InterruptedError(f"Download of {torrent.name} was cancelled")
                    if time.monotonic() > deadline:
                        raise TransferFailedError(
                            f"Download of {torrent.name} timed out after {timeout_sec}s"
                        )
                    out.write(self._fetch_piece(torrent, index, peers))
            Path(target).parent.mkdir(parents=True, exist_ok=True)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        finally:
            with self._lock:
                self._cancel_events.pop(torrent.info_hash, None)
        logger.debug("Peer %s fetched %s from %d peers", self.peer_id, torrent.name, len(peers))

    @staticmethod
    def _fetch_piece(torrent: TorrentMetadata, index: int, peers: list[tuple[str, Path]]) -> bytes:
        """Read piece *index* from the first peer that serves it intact."""
        offset = index * torrent.piece_length
        size = torrent.piece_size(index)
        expected = torrent.piece_hash(index)
        # Rotate the starting peer per piece to spread the load.
        ordered = peers[index % len(peers):] + peers[:index % len(peers)]
        for peer_id, source in ordered:
            try:
                with open(source, "rb") as fh:
                    fh.seek(offset)
                    data = fh.read(size)
            except OSError as exc:
                logger.debug("Peer %s cannot serve piece %d: %s", peer_id, index, exc)
                continue
            if len(data) == size and sha1_digest(data) == expected:
                return data
            logger.warning("Peer %s served a corrupt piece %d of %s", peer_id, index, torrent.name)
        raise TransferFailedError(f"No peer served an intact piece {index} of {torrent.name}")

    def __repr__(self) -> str:
        state = "running" if self._running else "stopped"
        return f"LocalSwarmEngine(peer_id={self.peer_id!r}, {state}, seeding={len(self._seeding)})"
