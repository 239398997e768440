"""Process configuration — env-driven, one instance per host.

Centralized settings using pydantic-settings for environment variable
support. Reads from a .env file and TORRENTMIRROR_* environment variables.

The values here are the *initial* seeder configuration.  Anything that
must change while the host is running goes through
``torrentmirror.core.config_store.ConfigStore``, which is seeded from
``MirrorSettings.to_seeder_config()``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from torrentmirror.models.config import SeederConfig

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class MirrorSettings(BaseSettings):
    """Host configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export TORRENTMIRROR_ANNOUNCE_URL=http://tracker.local:6969/announce
        export TORRENTMIRROR_FILE_SIZE_THRESHOLD_MB=10
        export TORRENTMIRROR_DOWNLOAD_TIMEOUT_SEC=600

    Or via .env file::

        TORRENTMIRROR_SEEDER_ENABLED=false
        TORRENTMIRROR_MAX_SEEDED_TORRENTS=200
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TORRENTMIRROR_",
        env_file_encoding="utf-8",
    )

    log_level: str = "INFO"

    # Storage paths
    storage_path: Path = Path(".torrentmirror/torrents")

    # Tracker / seeder
    announce_url: str | None = None
    file_size_threshold_mb: int = 10
    max_seeded_torrents: int = 1000
    announce_interval_sec: int = 60
    scan_interval_sec: int = 60
    seeder_enabled: bool = True
    tracker_enabled: bool = True

    # Consumer side
    download_timeout_sec: int = 300

    def to_seeder_config(self) -> SeederConfig:
        """Build the initial live configuration snapshot."""
        return SeederConfig(
            announce_url=self.announce_url,
            file_size_threshold_mb=self.file_size_threshold_mb,
            max_seeded_torrents=self.max_seeded_torrents,
            announce_interval_sec=self.announce_interval_sec,
            scan_interval_sec=self.scan_interval_sec,
            seeder_enabled=self.seeder_enabled,
            tracker_enabled=self.tracker_enabled,
            download_timeout_sec=self.download_timeout_sec,
        )


def configure_logging(level: str | int | None = None) -> None:
    """Install a root handler at *level* (defaults to ``settings.log_level``)."""
    logging.basicConfig(
        level=level if level is not None else settings.log_level.upper(),
        format=LOG_FORMAT,
    )


# Module-level singleton: import as `from torrentmirror.config import settings`
settings = MirrorSettings()
