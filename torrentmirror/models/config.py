"""Live seeder configuration snapshot."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

MEGABYTE = 1024 * 1024


class SeederConfig(BaseModel):
    """Immutable view of the seeder settings at one point in time.

    A running host never mutates a snapshot; it swaps in a new one through
    ``ConfigStore.update``.  ``announce_url`` stays ``None`` until a tracker
    is known, which makes every producer operation a no-op.
    """

    model_config = ConfigDict(frozen=True)

    announce_url: str | None = None
    file_size_threshold_mb: int = 10
    max_seeded_torrents: int = 1000  # <= 0 means unbounded
    announce_interval_sec: int = 60
    scan_interval_sec: int = 60
    seeder_enabled: bool = True
    tracker_enabled: bool = True
    download_timeout_sec: int = 300

    @property
    def file_size_threshold_bytes(self) -> int:
        return self.file_size_threshold_mb * MEGABYTE

    @property
    def is_complete(self) -> bool:
        """Whether enough is known to create torrents."""
        return bool(self.announce_url)


# Field names accepted by ``ConfigStore.update`` and ``on_config_changed``.
CONFIG_FIELDS: frozenset[str] = frozenset(SeederConfig.model_fields)
