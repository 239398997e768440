"""Bounded set of torrents currently advertised to peers.

The seeded set is the only mutable state shared by the scan loop, the
producer paths and the consumer path.  Every mutation (seed, remove,
evict) runs under one lock, and the capacity check, eviction and insert
happen in the same critical section.  Hashing and fetching never run
under this lock; callers hand in a finished ``TorrentMetadata``.

Eviction withdraws the torrent from the engine only.  Torrent files and
link entries stay on disk, so a later scan can seed them again.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from pathlib import Path

from torrentmirror.core.errors import MetadataValidationError
from torrentmirror.core.metadata import load_torrent_file
from torrentmirror.engine.base import DistributionEngine
from torrentmirror.models.torrents import SeededTorrent, TorrentMetadata

logger = logging.getLogger(__name__)


class TorrentSeeder:
    """Seeded-set bookkeeping on top of a ``DistributionEngine``.

    Parameters
    ----------
    engine:
        Backend that actually advertises content.
    max_torrents_to_seed:
        Capacity of the seeded set; ``<= 0`` means unbounded.
    """

    def __init__(self, engine: DistributionEngine, max_torrents_to_seed: int = 0) -> None:
        self._engine = engine
        self._max = max_torrents_to_seed
        self._lock = threading.RLock()
        # info_hash -> entry, oldest first
        self._seeded: OrderedDict[str, SeededTorrent] = OrderedDict()

    @property
    def engine(self) -> DistributionEngine:
        return self._engine

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    @property
    def max_torrents_to_seed(self) -> int:
        return self._max

    def set_max_torrents_to_seed(self, value: int) -> list[SeededTorrent]:
        """Change the capacity, evicting the oldest entries if now over it."""
        with self._lock:
            self._max = value
            if value <= 0:
                return []
            return self._evict_to(value)

    def _evict_to(self, limit: int) -> list[SeededTorrent]:
        evicted: list[SeededTorrent] = []
        while len(self._seeded) > limit:
            _, entry = self._seeded.popitem(last=False)
            self._engine.withdraw(entry.info_hash)
            evicted.append(entry)
            logger.debug("Evicted %s (%s) from the seeded set", entry.artifact_file, entry.info_hash)
        return evicted

    # ------------------------------------------------------------------
    # Seed
    # ------------------------------------------------------------------

    def seed_torrent(
        self,
        torrent: TorrentMetadata,
        artifact_file: Path,
        torrent_file: Path | None = None,
    ) -> SeededTorrent:
        """Start advertising *artifact_file* as the content of *torrent*.

        Raises
        ------
        MetadataValidationError
            If the artifact is missing or its size differs from the length
            the torrent declares.
        """
        artifact_file = Path(artifact_file).absolute()
        try:
            actual = artifact_file.stat().st_size
        except OSError as exc:
            raise MetadataValidationError(f"Cannot seed {artifact_file}: {exc}") from exc
        if actual != torrent.length:
            raise MetadataValidationError(
                f"Torrent {torrent.info_hash} declares {torrent.length} bytes but "
                f"{artifact_file} has {actual}"
            )

        entry = SeededTorrent(
            info_hash=torrent.info_hash,
            artifact_file=artifact_file,
            torrent_file=Path(torrent_file).absolute() if torrent_file else None,
            name=torrent.name,
            length=torrent.length,
        )
        with self._lock:
            existing = self._seeded.pop(entry.info_hash, None)
            if existing is not None and existing.artifact_file != artifact_file:
                self._engine.withdraw(existing.info_hash)
            if self._max > 0:
                self._evict_to(self._max - 1)
            self._seeded[entry.info_hash] = entry
            self._engine.seed(torrent, artifact_file)
        logger.info("Seeding %s (%s)", artifact_file, torrent.info_hash)
        return entry

    def seed_torrent_file(self, torrent_file: Path, artifact_file: Path) -> SeededTorrent:
        """Load *torrent_file* and seed it; see ``seed_torrent``."""
        return self.seed_torrent(load_torrent_file(torrent_file), artifact_file, torrent_file)

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def stop_seeding(self, info_hash: str) -> bool:
        with self._lock:
            entry = self._seeded.pop(info_hash, None)
            if entry is None:
                return False
            self._engine.withdraw(info_hash)
        return True

    def stop_seeding_by_path(self, artifact_file: Path) -> int:
        """Withdraw every entry serving *artifact_file*; returns how many."""
        artifact_file = Path(artifact_file).absolute()
        with self._lock:
            stale = [h for h, e in self._seeded.items() if e.artifact_file == artifact_file]
            for info_hash in stale:
                del self._seeded[info_hash]
                self._engine.withdraw(info_hash)
        if stale:
            logger.debug("Stopped seeding %s (%d torrents)", artifact_file, len(stale))
        return len(stale)

    def stop_all(self) -> int:
        with self._lock:
            hashes = list(self._seeded)
            self._seeded.clear()
            for info_hash in hashes:
                self._engine.withdraw(info_hash)
        return len(hashes)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_seeding(self, info_hash: str) -> bool:
        with self._lock:
            return info_hash in self._seeded

    def is_seeding_torrent_file(self, torrent_file: Path) -> bool:
        torrent_file = Path(torrent_file).absolute()
        with self._lock:
            return any(e.torrent_file == torrent_file for e in self._seeded.values())

    def seeded_torrents(self) -> list[SeededTorrent]:
        """Snapshot of the seeded set, oldest first."""
        with self._lock:
            return list(self._seeded.values())

    @property
    def number_of_seeded_torrents(self) -> int:
        with self._lock:
            return len(self._seeded)

    def __len__(self) -> int:
        return self.number_of_seeded_torrents
