"""Shared test fixtures for torrentmirror."""

from __future__ import annotations

import random
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from torrentmirror.core.config_store import ConfigStore
from torrentmirror.core.directory_seeder import TorrentsDirectorySeeder
from torrentmirror.core.errors import DirectFetchError
from torrentmirror.core.metadata import create_torrent, encode_torrent
from torrentmirror.engine.local import LocalSwarm, LocalSwarmEngine
from torrentmirror.models.builds import BuildRef, ResolverContext
from torrentmirror.models.config import MEGABYTE, SeederConfig
from torrentmirror.models.torrents import TorrentMetadata
from torrentmirror.producer.agent_manager import AgentTorrentsManager
from torrentmirror.transport.manifest import MANIFEST_NAME
from torrentmirror.transport.torrent_transport import (
    ARTIFACTS_TRANSPORT_PARAM,
    TORRENT_TRANSPORT_NAME,
)

ANNOUNCE_URL = "http://tracker.test:6969/announce"
LOOPBACK = ["127.0.0.1"]


class CountingEngine(LocalSwarmEngine):
    """``LocalSwarmEngine`` that records how often it was asked to fetch."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.fetch_calls: list[str] = []
        self.load_calls = 0

    def fetch(self, torrent: TorrentMetadata, *args: Any, **kwargs: Any) -> None:
        self.fetch_calls.append(torrent.info_hash)
        super().fetch(torrent, *args, **kwargs)

    def load(self, data: bytes) -> TorrentMetadata:
        self.load_calls += 1
        return super().load(data)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def swarm() -> LocalSwarm:
    """Provide a swarm registry private to the test."""
    return LocalSwarm()


@pytest.fixture
def make_engine(swarm: LocalSwarm) -> Iterator[Callable[..., CountingEngine]]:
    """Factory fixture: peers of the test swarm, shut down at teardown."""
    engines: list[CountingEngine] = []

    def _factory(peer_id: str | None = None, *, start: bool = False) -> CountingEngine:
        engine = CountingEngine(swarm, peer_id)
        if start:
            engine.start(LOOPBACK, 60)
        engines.append(engine)
        return engine

    yield _factory
    for engine in engines:
        engine.shutdown()


@pytest.fixture
def engine(make_engine: Callable[..., CountingEngine]) -> CountingEngine:
    """Provide one (not yet started) peer of the test swarm."""
    return make_engine("local")


@pytest.fixture
def make_config() -> Callable[..., SeederConfig]:
    """Factory fixture: a complete configuration with a 1 MB threshold."""

    def _factory(**overrides: Any) -> SeederConfig:
        defaults: dict[str, Any] = {
            "announce_url": ANNOUNCE_URL,
            "file_size_threshold_mb": 1,
            "max_seeded_torrents": 10,
            "scan_interval_sec": 3600,
        }
        defaults.update(overrides)
        return SeederConfig(**defaults)

    return _factory


@pytest.fixture
def config_store(make_config: Callable[..., SeederConfig]) -> ConfigStore:
    """Provide a live configuration store with test defaults."""
    return ConfigStore(make_config())


@pytest.fixture
def make_file() -> Callable[..., Path]:
    """Factory fixture: write a file of *size* pseudo-random bytes.

    ``sparse=True`` extends an empty file with ``truncate`` instead of
    writing, for the large-artifact scenarios.
    """

    def _factory(path: Path, size: int, *, seed: int = 0, sparse: bool = False) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as fh:
            if sparse:
                fh.truncate(size)
            else:
                fh.write(random.Random(seed).randbytes(size))
        return path

    return _factory


@pytest.fixture
def directory_seeder(
    tmp_dir: Path,
    engine: CountingEngine,
    config_store: ConfigStore,
) -> Iterator[TorrentsDirectorySeeder]:
    """Provide a directory seeder over ``<tmp>/storage``, closed at teardown."""
    seeder = TorrentsDirectorySeeder(tmp_dir / "storage", engine, config_store)
    yield seeder
    seeder.close()


# ---------------------------------------------------------------------------
# Consumer-side helpers: a published build and an agent to fetch it
# ---------------------------------------------------------------------------

SERVER_URL = "http://10.0.0.5:8111"
DOWNLOAD_BASE = f"{SERVER_URL}/repository/download"


class FakeFetcher:
    """In-memory ``DirectFetcher``; unknown URLs answer 404."""

    def __init__(self, responses: dict[str, bytes] | None = None) -> None:
        self.responses = dict(responses or {})
        self.requested: list[str] = []

    def get_bytes(self, url: str) -> bytes:
        self.requested.append(url)
        if url not in self.responses:
            raise DirectFetchError(f"Problem [404] while downloading {url}: Not Found", status_code=404)
        return self.responses[url]

    def download_to(self, url: str, target: Path) -> Path:
        data = self.get_bytes(url)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target


class PublishedBuild:
    """Build ``bt/42`` as the server publishes it: one 2 MB artifact with a
    torrent, its manifest, and the direct URLs of all three."""

    def __init__(self, artifact: Path, torrent: TorrentMetadata, seeders: list[LocalSwarmEngine]) -> None:
        self.artifact = artifact
        self.torrent = torrent
        self.seeders = seeders
        self.artifact_url = f"{DOWNLOAD_BASE}/bt/42/app.zip"
        self.torrent_url = f"{DOWNLOAD_BASE}/bt/42/.mirror/torrents/app.zip.torrent"
        self.manifest_url = f"{DOWNLOAD_BASE}/bt/42/{MANIFEST_NAME}"
        self.manifest = (
            b'<ivy-module version="2.0">'
            b'<info organisation="org" module="bt" revision="42"/>'
            b"<publications>"
            b'<artifact name="app" ext="zip"/>'
            b'<artifact name=".mirror/torrents/app.zip" ext="torrent"/>'
            b"</publications>"
            b"</ivy-module>"
        )
        self.fetcher = FakeFetcher({
            self.artifact_url: artifact.read_bytes(),
            self.torrent_url: encode_torrent(torrent),
            self.manifest_url: self.manifest,
        })


@pytest.fixture
def published_build(tmp_dir: Path, make_file: Callable[..., Path], make_engine) -> PublishedBuild:
    """A published build whose artifact two running peers seed."""
    artifact = make_file(tmp_dir / "server" / "app.zip", 2 * MEGABYTE, seed=42)
    torrent = create_torrent(artifact, ANNOUNCE_URL)
    seeders = [make_engine(f"seed-{n}", start=True) for n in range(2)]
    for seeder in seeders:
        seeder.seed(torrent, artifact)
    return PublishedBuild(artifact, torrent, seeders)


@pytest.fixture
def make_agent(
    tmp_dir: Path,
    make_config: Callable[..., SeederConfig],
) -> Iterator[Callable[..., AgentTorrentsManager]]:
    """Factory fixture: a started agent running build ``bt/42``."""
    agents: list[AgentTorrentsManager] = []

    def _factory(engine: LocalSwarmEngine, *, opt_in: bool = True, **overrides: Any) -> AgentTorrentsManager:
        agent = AgentTorrentsManager(tmp_dir / "agent-cache", engine, ConfigStore(make_config(**overrides)))
        agent.torrents_directory_seeder.start(LOOPBACK, scan_interval_sec=3600)
        parameters = {ARTIFACTS_TRANSPORT_PARAM: TORRENT_TRANSPORT_NAME} if opt_in else {}
        agent.on_build_started(BuildRef(build_type_id="bt", build_id="42", parameters=parameters))
        agents.append(agent)
        return agent

    yield _factory
    for agent in agents:
        agent.on_host_shutdown()


@pytest.fixture
def resolver_context() -> ResolverContext:
    return ResolverContext(server_url=SERVER_URL, username="agent", password="secret")
