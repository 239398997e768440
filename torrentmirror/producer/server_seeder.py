"""Server-side producer: torrents for finished builds' artifacts.

When a build finishes, every artifact at or above the size threshold
gets a torrent published inside the build's artifacts
(``<artifacts>/.mirror/torrents/<relative-path>.torrent``, so agents can
fetch it over HTTP), a link under
``<storage>/<build-type-id>/<build-id>/`` and, when seeding is enabled,
a place in the seeded set.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from torrentmirror.core.config_store import ConfigStore
from torrentmirror.core.directory_seeder import TorrentsDirectorySeeder
from torrentmirror.core.errors import ConfigurationIncompleteError, MirrorError
from torrentmirror.core.metadata import TORRENT_FILE_SUFFIX, TORRENTS_DIR_PATH
from torrentmirror.engine.base import DistributionEngine
from torrentmirror.models.builds import BuildRef
from torrentmirror.models.config import SeederConfig
from torrentmirror.models.torrents import SeededTorrent
from torrentmirror.producer.publisher import announce_artifact, iter_artifact_files

logger = logging.getLogger(__name__)


class ServerTorrentsSeeder:
    """Build-server integration of the directory seeder.

    Implements ``HostLifecycle``.

    Parameters
    ----------
    storage_dir:
        Link-tree root, typically ``<plugin data>/torrents``.
    engine:
        Distribution engine for this host.
    config:
        Live configuration shared with the rest of the host.
    """

    def __init__(
        self,
        storage_dir: Path,
        engine: DistributionEngine,
        config: ConfigStore,
    ) -> None:
        self._config = config
        self._directory_seeder = TorrentsDirectorySeeder(storage_dir, engine, config)
        self._host_started = False
        config.subscribe(self._on_config_changed)

    @property
    def torrents_directory_seeder(self) -> TorrentsDirectorySeeder:
        return self._directory_seeder

    # ------------------------------------------------------------------
    # HostLifecycle
    # ------------------------------------------------------------------

    def on_host_started(self) -> None:
        if self._config.current.seeder_enabled:
            self.start_seeder()
        self._host_started = True

    def on_host_shutdown(self) -> None:
        self.stop_seeder()

    def on_build_started(self, build: BuildRef) -> None:
        pass

    def on_build_finished(self, build: BuildRef) -> None:
        if self._config.current.tracker_enabled:
            self.announce_build_artifacts(build)

    def on_config_changed(self, field: str, value: Any) -> None:
        self._config.update(**{field: value})

    def _on_config_changed(self, field: str, value: object, snapshot: SeederConfig) -> None:
        if field == "seeder_enabled" and self._host_started:
            if snapshot.seeder_enabled:
                self.start_seeder()
            else:
                self.stop_seeder()

    # ------------------------------------------------------------------
    # Seeder control
    # ------------------------------------------------------------------

    def start_seeder(self, scan_interval_sec: float | None = None) -> bool:
        config = self._config.current
        return self._directory_seeder.start(
            None,
            config.announce_url,
            scan_interval_sec,
            config.announce_interval_sec,
        )

    def stop_seeder(self) -> None:
        if not self._directory_seeder.is_stopped:
            self._directory_seeder.stop()

    # ------------------------------------------------------------------
    # Torrent files of a build
    # ------------------------------------------------------------------

    @staticmethod
    def get_torrent_files_base_dir(build: BuildRef) -> Path:
        if build.artifacts_dir is None:
            raise ValueError(f"Build {build.scope} has no artifacts directory")
        return build.artifacts_dir / TORRENTS_DIR_PATH

    def get_torrent_files(self, build: BuildRef) -> list[Path]:
        base_dir = self.get_torrent_files_base_dir(build)
        if not base_dir.is_dir():
            return []
        return sorted(p for p in base_dir.rglob(f"*{TORRENT_FILE_SUFFIX}") if p.is_file())

    def get_torrent_file(self, build: BuildRef, torrent_path: str) -> Path:
        return self.get_torrent_files_base_dir(build) / torrent_path

    @property
    def number_of_seeded_torrents(self) -> int:
        if self._directory_seeder.is_stopped:
            return 0
        return self._directory_seeder.number_of_seeded_torrents

    def get_shared_torrents(self) -> list[SeededTorrent]:
        return self._directory_seeder.get_shared_torrents()

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def announce_build_artifacts(self, build: BuildRef) -> int:
        """Create, link and seed torrents for a finished build.

        Returns the number of artifacts advertised.  A failure on one
        artifact is logged and does not stop the others.
        """
        # One snapshot per batch: a config change applies to the next build.
        config = self._config.current
        if not config.is_complete:
            build.build_log.message("Torrent tracker is not configured; skipping torrent creation")
            return 0

        if build.artifacts_dir is None or not build.artifacts_dir.is_dir():
            build.build_log.message(f"Build {build.scope} has no published artifacts")
            return 0

        torrents_dir = self.get_torrent_files_base_dir(build)
        announced = 0
        for artifact_file, artifact_path in iter_artifact_files(build.artifacts_dir):
            if self.process_artifact(build, artifact_file, artifact_path, torrents_dir, config):
                announced += 1
        logger.info("Build %s: %d artifacts announced", build.scope, announced)
        return announced

    def process_artifact(
        self,
        build: BuildRef,
        artifact_file: Path,
        artifact_path: str,
        torrents_dir: Path,
        config: SeederConfig,
    ) -> bool:
        try:
            torrent = announce_artifact(
                self._directory_seeder,
                config,
                artifact_file,
                artifact_path,
                build.scope,
                torrents_dir,
            )
        except ConfigurationIncompleteError:
            return False
        except (OSError, MirrorError) as exc:
            logger.warning("Failed to create torrent for %s: %s", artifact_file, exc)
            build.build_log.warning(f"Failed to create torrent for {artifact_path}: {exc}")
            return False
        return torrent is not None
