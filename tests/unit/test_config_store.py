"""Tests for SeederConfig snapshots and the ConfigStore subscription model."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from torrentmirror.core.config_store import ConfigStore
from torrentmirror.models.config import MEGABYTE, SeederConfig


class TestSeederConfig:
    def test_defaults(self):
        config = SeederConfig()
        assert config.announce_url is None
        assert config.file_size_threshold_mb == 10
        assert config.download_timeout_sec == 300
        assert config.is_complete is False

    def test_threshold_bytes(self):
        assert SeederConfig(file_size_threshold_mb=3).file_size_threshold_bytes == 3 * MEGABYTE

    def test_complete_once_announce_known(self):
        assert SeederConfig(announce_url="http://t/announce").is_complete is True

    def test_frozen(self):
        config = SeederConfig()
        with pytest.raises(ValidationError):
            config.max_seeded_torrents = 5


class TestConfigStore:
    def test_update_swaps_snapshot(self):
        store = ConfigStore()
        before = store.current
        after = store.update(max_seeded_torrents=5)

        assert store.current is after
        assert after.max_seeded_torrents == 5
        assert before.max_seeded_torrents == 1000

    def test_listeners_see_changed_fields_only(self):
        store = ConfigStore(SeederConfig(max_seeded_torrents=5))
        seen = []
        store.subscribe(lambda field, value, snapshot: seen.append((field, value, snapshot)))

        store.update(max_seeded_torrents=5, announce_interval_sec=30)

        assert len(seen) == 1
        field, value, snapshot = seen[0]
        assert (field, value) == ("announce_interval_sec", 30)
        assert snapshot is store.current

    def test_unknown_field(self):
        store = ConfigStore()
        with pytest.raises(KeyError, match="bogus"):
            store.update(bogus=1)
        assert store.current == SeederConfig()

    def test_unsubscribe(self):
        store = ConfigStore()
        seen = []
        unsubscribe = store.subscribe(lambda *args: seen.append(args))
        unsubscribe()
        store.update(seeder_enabled=False)
        assert seen == []

    def test_failing_listener_does_not_block_others(self):
        store = ConfigStore()
        seen = []

        def _broken(field, value, snapshot):
            raise RuntimeError("listener bug")

        store.subscribe(_broken)
        store.subscribe(lambda field, value, snapshot: seen.append(field))

        store.update(announce_url="http://t/announce")
        assert seen == ["announce_url"]
        assert store.current.announce_url == "http://t/announce"
