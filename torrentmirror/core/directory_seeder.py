"""Directory seeder: keeps the link tree of a storage root seeded.

Lifecycle: STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED.

While RUNNING, a daemon thread scans the link tree every scan interval
and seeds the newest links that are not already in the seeded set.  That
scan is what restores seeding after a restart; nothing else is persisted.
Links whose artifact or torrent disappeared are garbage-collected by the
same scan.

Settings are read from a ``ConfigStore`` snapshot per call, so threshold,
capacity and announce interval changes apply without a restart.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from pathlib import Path

from torrentmirror.core.config_store import ConfigStore
from torrentmirror.core.errors import (
    InvalidSeederTransition,
    LinkResolutionError,
    MetadataValidationError,
)
from torrentmirror.core.file_link import LinkStore
from torrentmirror.core.network import get_self_addresses
from torrentmirror.core.torrent_seeder import TorrentSeeder
from torrentmirror.engine.base import DistributionEngine
from torrentmirror.models.config import SeederConfig
from torrentmirror.models.seeder import VALID_TRANSITIONS, SeederState
from torrentmirror.models.torrents import SeededTorrent, TorrentMetadata

logger = logging.getLogger(__name__)

DIRECTORY_SCAN_INTERVAL_SECONDS = 60
_JOIN_TIMEOUT_SECONDS = 30.0


class TorrentsDirectorySeeder:
    """Seeds every linked torrent under a storage directory.

    Parameters
    ----------
    storage_dir:
        Root of the link tree (created if missing).
    engine:
        Distribution engine used for advertising.
    config:
        Live configuration.  A private store with defaults is used when
        omitted.
    """

    def __init__(
        self,
        storage_dir: Path,
        engine: DistributionEngine,
        config: ConfigStore | None = None,
    ) -> None:
        self._config = config or ConfigStore()
        self._links = LinkStore(storage_dir)
        self._engine = engine
        self._seeder = TorrentSeeder(engine, self._config.current.max_seeded_torrents)

        self._lifecycle_lock = threading.RLock()
        self._state = SeederState.STOPPED
        self._stop_event = threading.Event()
        self._scan_thread: threading.Thread | None = None
        self._scan_interval_sec: float | None = None
        self._announce_uri: str | None = None
        self._unsubscribe = self._config.subscribe(self._on_config_changed)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SeederState:
        return self._state

    @property
    def is_stopped(self) -> bool:
        return self._state == SeederState.STOPPED

    @property
    def is_running(self) -> bool:
        return self._state == SeederState.RUNNING

    @property
    def storage_directory(self) -> Path:
        return self._links.storage_dir

    @property
    def link_store(self) -> LinkStore:
        return self._links

    @property
    def torrent_seeder(self) -> TorrentSeeder:
        return self._seeder

    @property
    def engine(self) -> DistributionEngine:
        return self._engine

    @property
    def config(self) -> SeederConfig:
        return self._config.current

    @property
    def announce_uri(self) -> str | None:
        return self._announce_uri

    @property
    def number_of_seeded_torrents(self) -> int:
        return self._seeder.number_of_seeded_torrents

    def get_shared_torrents(self) -> list[SeededTorrent]:
        return self._seeder.seeded_torrents()

    def _transition(self, target: SeederState) -> None:
        if target not in VALID_TRANSITIONS[self._state]:
            raise InvalidSeederTransition(
                f"Cannot move directory seeder from {self._state.value} to {target.value}"
            )
        logger.debug("Directory seeder %s -> %s", self._state.value, target.value)
        self._state = target

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        addresses: Sequence[str] | None = None,
        announce_uri: str | None = None,
        scan_interval_sec: float | None = None,
        announce_interval_sec: int | None = None,
    ) -> bool:
        """Start the engine and the scan loop.

        A no-op returning ``False`` when already running.  If local
        addresses cannot be resolved the failure is logged, the seeder
        stays STOPPED, and ``False`` is returned so the caller may retry.
        """
        with self._lifecycle_lock:
            if self._state != SeederState.STOPPED:
                return False
            self._transition(SeederState.STARTING)

            config = self._config.current
            try:
                bind = list(addresses) if addresses is not None else get_self_addresses()
            except OSError as exc:
                logger.warning("Failed to start torrent seeder: cannot resolve local addresses: %s", exc)
                self._transition(SeederState.STOPPED)
                return False

            self._announce_uri = announce_uri or config.announce_url
            self._scan_interval_sec = scan_interval_sec
            self._engine.start(bind, announce_interval_sec or config.announce_interval_sec)

            self._stop_event.clear()
            self._scan_thread = threading.Thread(
                target=self._scan_loop,
                name=f"torrent-seeder-{self.storage_directory.name}",
                daemon=True,
            )
            self._transition(SeederState.RUNNING)
            self._scan_thread.start()
            logger.info(
                "Torrent seeder started for %s (announce=%s)",
                self.storage_directory,
                self._announce_uri,
            )
            return True

    def stop(self) -> None:
        """Stop scanning, withdraw every torrent, release the engine.

        Waits for an in-flight scan to notice the stop signal.  Safe to call
        when already stopped.
        """
        with self._lifecycle_lock:
            if self._state != SeederState.RUNNING:
                return
            self._transition(SeederState.STOPPING)
            self._stop_event.set()
            thread, self._scan_thread = self._scan_thread, None
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=_JOIN_TIMEOUT_SECONDS)
                if thread.is_alive():
                    logger.warning("Scan thread did not finish within %.0fs", _JOIN_TIMEOUT_SECONDS)
            withdrawn = self._seeder.stop_all()
            self._engine.shutdown()
            self._transition(SeederState.STOPPED)
            logger.info("Torrent seeder stopped (%d torrents withdrawn)", withdrawn)

    def close(self) -> None:
        """Stop and drop the configuration subscription."""
        self.stop()
        self._unsubscribe()

    def __enter__(self) -> TorrentsDirectorySeeder:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Scan loop
    # ------------------------------------------------------------------

    def _scan_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.scan()
            except Exception:
                logger.exception("Torrent directory scan failed")
            interval = self._scan_interval_sec or self._config.current.scan_interval_sec
            self._stop_event.wait(interval)

    def scan(self) -> int:
        """One pass over the link tree; returns how many torrents were seeded."""
        max_seeded = self._config.current.max_seeded_torrents
        candidates: list[tuple[float, Path, Path]] = []
        for link_file in self._links.iter_links():
            if self._stop_event.is_set():
                return 0
            try:
                link = self._links.resolve(link_file)
                if not link.artifact_file.is_file() or link.is_dangling:
                    self._links.remove_link(link_file)
                    continue
                mtime = link_file.stat().st_mtime
            except (LinkResolutionError, OSError) as exc:
                logger.warning("Skipping link %s: %s", link_file, exc)
                continue
            candidates.append((mtime, link.torrent_file, link.artifact_file))

        # Newest links win when there are more than the seeded set can hold.
        candidates.sort(key=lambda c: c[0], reverse=True)
        if max_seeded > 0:
            candidates = candidates[:max_seeded]

        seeded = 0
        for _, torrent_file, artifact_file in reversed(candidates):
            if self._stop_event.is_set():
                break
            if self._seeder.is_seeding_torrent_file(torrent_file):
                continue
            try:
                self._seeder.seed_torrent_file(torrent_file, artifact_file)
                seeded += 1
            except (MetadataValidationError, OSError) as exc:
                logger.warning("Not seeding %s: %s", artifact_file, exc)
        if seeded:
            logger.info("Directory scan seeded %d torrents", seeded)
        return seeded

    # ------------------------------------------------------------------
    # Seeded set operations
    # ------------------------------------------------------------------

    def seed(self, torrent_file: Path, artifact_file: Path) -> SeededTorrent:
        """Seed a torrent file for an artifact; see ``TorrentSeeder.seed_torrent``."""
        return self._seeder.seed_torrent_file(torrent_file, artifact_file)

    def seed_torrent(
        self,
        torrent: TorrentMetadata,
        artifact_file: Path,
        torrent_file: Path | None = None,
    ) -> SeededTorrent:
        return self._seeder.seed_torrent(torrent, artifact_file, torrent_file)

    def stop_seeding_by_path(self, artifact_file: Path) -> int:
        return self._seeder.stop_seeding_by_path(artifact_file)

    def should_create_torrent_for(self, file: Path) -> bool:
        """Whether *file* is big enough to be worth a torrent (inclusive)."""
        file = Path(file)
        if file.is_dir():
            return False
        try:
            size = file.stat().st_size
        except OSError:
            return False
        return size >= self._config.current.file_size_threshold_bytes

    # ------------------------------------------------------------------
    # Live reconfiguration
    # ------------------------------------------------------------------

    def set_max_torrents_to_seed(self, value: int) -> None:
        self._config.update(max_seeded_torrents=value)

    def set_announce_interval(self, seconds: int) -> None:
        self._config.update(announce_interval_sec=seconds)

    def set_file_size_threshold_mb(self, value: int) -> None:
        self._config.update(file_size_threshold_mb=value)

    def _on_config_changed(self, field: str, value: object, snapshot: SeederConfig) -> None:
        if field == "max_seeded_torrents":
            evicted = self._seeder.set_max_torrents_to_seed(snapshot.max_seeded_torrents)
            if evicted:
                logger.info("Seeded set shrunk to %d, evicted %d", snapshot.max_seeded_torrents, len(evicted))
        elif field == "announce_interval_sec":
            self._engine.set_announce_interval(snapshot.announce_interval_sec)
        elif field == "announce_url":
            self._announce_uri = snapshot.announce_url

    def __repr__(self) -> str:
        return (
            f"TorrentsDirectorySeeder(storage={str(self.storage_directory)!r}, "
            f"state={self._state.value}, seeded={self.number_of_seeded_torrents})"
        )
