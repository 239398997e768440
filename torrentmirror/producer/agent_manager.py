"""Agent-side producer: seed what the agent itself publishes.

An agent that publishes an artifact already has the bytes locally, so it
can seed them right away and take load off the server.  Torrents and
links live in the agent cache: ``<cache>/torrents/<scope>/<path>.torrent``
next to ``<cache>/torrents/<scope>/<path>.link``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from torrentmirror.build_log import BuildLog
from torrentmirror.core.config_store import ConfigStore
from torrentmirror.core.directory_seeder import TorrentsDirectorySeeder
from torrentmirror.core.errors import MirrorError
from torrentmirror.engine.base import DistributionEngine
from torrentmirror.models.builds import BuildRef
from torrentmirror.models.config import SeederConfig
from torrentmirror.producer.publisher import announce_artifact

logger = logging.getLogger(__name__)

TORRENT_FOLDER_NAME = "torrents"
# Scope used for files published outside of any build.
NO_BUILD_SCOPE = "_local/_none"


class AgentTorrentsManager:
    """Build-agent integration of the directory seeder.

    Implements ``HostLifecycle``.

    Parameters
    ----------
    cache_dir:
        Agent cache directory; torrents go to ``<cache_dir>/torrents``.
    engine:
        Distribution engine for this agent.
    config:
        Live configuration, typically pushed from the server.
    """

    def __init__(
        self,
        cache_dir: Path,
        engine: DistributionEngine,
        config: ConfigStore,
    ) -> None:
        self._config = config
        self._directory_seeder = TorrentsDirectorySeeder(
            Path(cache_dir) / TORRENT_FOLDER_NAME, engine, config
        )
        self._build: BuildRef | None = None
        self._host_started = False
        config.subscribe(self._on_config_changed)

    @property
    def torrents_directory_seeder(self) -> TorrentsDirectorySeeder:
        return self._directory_seeder

    @property
    def is_torrent_client_started(self) -> bool:
        return self._directory_seeder.is_running

    @property
    def current_build(self) -> BuildRef | None:
        return self._build

    @property
    def config_store(self) -> ConfigStore:
        return self._config

    def settings_inited(self) -> bool:
        return self._config.current.is_complete

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
        self._build = build

    def on_build_finished(self, build: BuildRef) -> None:
        # Artifacts are published after the build finishes; keep its log.
        pass

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

    def start_seeder(self) -> bool:
        config = self._config.current
        started = self._directory_seeder.start(None, config.announce_url, None, config.announce_interval_sec)
        if not started and self._directory_seeder.is_stopped:
            logger.error("Failed to start torrent seeder")
        return started

    def stop_seeder(self) -> None:
        if not self._directory_seeder.is_stopped:
            self._directory_seeder.stop()

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish_files(self, files: Mapping[Path, str]) -> int:
        """Announce published files; maps each file to its target directory.

        Returns how many files were advertised.  Settings are re-read on
        every call, so tracker changes apply to the next publish.
        """
        config = self._config.current
        announced = 0
        for src_file, target_dir in files.items():
            if self.announce_new_file(Path(src_file), target_dir, config):
                announced += 1
        return announced

    def announce_new_file(self, src_file: Path, target_dir: str = "", config: SeederConfig | None = None) -> bool:
        config = config or self._config.current
        if not config.is_complete:
            return False

        artifact_path = f"{target_dir.strip('/')}/{src_file.name}" if target_dir.strip("/") else src_file.name
        scope = self._build.scope if self._build is not None else NO_BUILD_SCOPE
        torrents_dir = self._directory_seeder.storage_directory / scope
        try:
            torrent = announce_artifact(
                self._directory_seeder,
                config,
                src_file,
                artifact_path,
                scope,
                torrents_dir,
            )
        except (OSError, MirrorError) as exc:
            self._log_to_build(f"Can't start seeding {src_file}: {exc}", warning=True)
            return False

        if torrent is None:
            return False
        self._log_to_build(f"Seeding torrent for {src_file.absolute()}. Hash: {torrent.info_hash}")
        return True

    def _log_to_build(self, message: str, *, warning: bool = False) -> None:
        build_log: BuildLog | None = self._build.build_log if self._build is not None else None
        if build_log is None:
            logger.log(logging.WARNING if warning else logging.INFO, message)
        elif warning:
            build_log.warning(message)
        else:
            build_log.message(message)
