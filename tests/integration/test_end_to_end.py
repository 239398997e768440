"""End-to-end integration tests: server publish through agent download.

These tests exercise ServerTorrentsSeeder, AgentTorrentsManager,
TorrentTransportFactory, ArtifactRetriever and LocalSwarmEngine working
together over one in-process swarm.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from torrentmirror.core.config_store import ConfigStore
from torrentmirror.core.errors import DirectFetchError
from torrentmirror.engine.local import LocalSwarm, LocalSwarmEngine
from torrentmirror.models.builds import BuildRef, DownloadRequest, ResolverContext, TransferMethod
from torrentmirror.models.config import MEGABYTE, SeederConfig
from torrentmirror.producer.agent_manager import AgentTorrentsManager
from torrentmirror.producer.server_seeder import ServerTorrentsSeeder
from torrentmirror.transport.manifest import MANIFEST_NAME
from torrentmirror.transport.retriever import ArtifactRetriever
from torrentmirror.transport.torrent_transport import (
    ARTIFACTS_TRANSPORT_PARAM,
    TORRENT_TRANSPORT_NAME,
    TorrentTransportFactory,
)

SERVER_URL = "http://10.0.0.5:8111"
DOWNLOAD_BASE = f"{SERVER_URL}/repository/download"
LOOPBACK = ["127.0.0.1"]


class ArtifactsDirFetcher:
    """Serves ``<DOWNLOAD_BASE>/<type>/<id>/<path>`` from build artifact dirs,
    the way the build server's download endpoint would."""

    def __init__(self) -> None:
        self.builds: dict[str, Path] = {}
        self.requested: list[str] = []

    def get_bytes(self, url: str) -> bytes:
        self.requested.append(url)
        path = url.split("?", 1)[0][len(DOWNLOAD_BASE) + 1:]
        build_type_id, build_id, relative = path.split("/", 2)
        artifacts = self.builds.get(f"{build_type_id}/{build_id}")
        if artifacts is None or not (artifacts / relative).is_file():
            raise DirectFetchError(f"Problem [404] while downloading {url}", status_code=404)
        return (artifacts / relative).read_bytes()

    def download_to(self, url: str, target: Path) -> Path:
        data = self.get_bytes(url)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target


def _write_manifest(build: BuildRef) -> None:
    """Publish the Ivy manifest listing every file of the build."""
    names = sorted(
        p.relative_to(build.artifacts_dir).as_posix()
        for p in build.artifacts_dir.rglob("*")
        if p.is_file() and p.name != MANIFEST_NAME
    )
    entries = []
    for name in names:
        stem, _, ext = name.rpartition(".")
        entries.append(f'<artifact name="{stem}" ext="{ext}"/>')
    (build.artifacts_dir / MANIFEST_NAME).write_text(
        '<ivy-module version="2.0">'
        f'<info organisation="org" module="{build.build_type_id}" revision="{build.build_id}"/>'
        f"<publications>{''.join(entries)}</publications>"
        "</ivy-module>",
        encoding="utf-8",
    )


class TestServerToAgent:
    """Publish on the server, seed from a second host, download on an agent."""

    @pytest.fixture
    def swarm(self) -> LocalSwarm:
        return LocalSwarm()

    @pytest.fixture
    def config(self) -> SeederConfig:
        return SeederConfig(
            announce_url="http://tracker.test:6969/announce",
            file_size_threshold_mb=1,
            scan_interval_sec=3600,
        )

    @pytest.fixture
    def hosts(self, tmp_path: Path, swarm: LocalSwarm, config: SeederConfig, monkeypatch):
        monkeypatch.setattr("torrentmirror.core.directory_seeder.get_self_addresses", lambda: LOOPBACK)
        server = ServerTorrentsSeeder(tmp_path / "server-data", LocalSwarmEngine(swarm, "server"), ConfigStore(config))
        publisher = AgentTorrentsManager(tmp_path / "agent-1", LocalSwarmEngine(swarm, "agent-1"), ConfigStore(config))
        consumer = AgentTorrentsManager(tmp_path / "agent-2", LocalSwarmEngine(swarm, "agent-2"), ConfigStore(config))
        for host in (server, publisher, consumer):
            host.on_host_started()
        yield server, publisher, consumer
        for host in (server, publisher, consumer):
            host.on_host_shutdown()

    @pytest.fixture
    def build(self, tmp_path: Path, hosts) -> BuildRef:
        server, publisher, _ = hosts
        artifacts = tmp_path / "artifacts" / "bt" / "42"
        artifacts.mkdir(parents=True)
        build = BuildRef(
            build_type_id="bt",
            build_id="42",
            artifacts_dir=artifacts,
            parameters={ARTIFACTS_TRANSPORT_PARAM: TORRENT_TRANSPORT_NAME},
        )

        # The publishing agent builds the artifact, seeds its copy, and uploads it.
        output = tmp_path / "agent-1" / "work" / "dist" / "app.zip"
        output.parent.mkdir(parents=True)
        output.write_bytes(bytes(range(256)) * (3 * MEGABYTE // 256))
        (artifacts / "dist").mkdir()
        (artifacts / "dist" / "app.zip").write_bytes(output.read_bytes())
        (artifacts / "notes.txt").write_text("small", encoding="utf-8")
        publisher.on_build_started(build)
        assert publisher.publish_files({output: "dist"}) == 1

        server.on_build_finished(build)
        _write_manifest(build)
        return build

    @pytest.fixture
    def fetcher(self, build: BuildRef) -> ArtifactsDirFetcher:
        direct = ArtifactsDirFetcher()
        direct.builds[build.scope] = build.artifacts_dir
        return direct

    def test_artifact_arrives_through_the_swarm(self, tmp_path, hosts, build, fetcher):
        _, _, consumer = hosts
        consumer.on_build_started(BuildRef(
            build_type_id="consumer",
            build_id="1",
            parameters={ARTIFACTS_TRANSPORT_PARAM: TORRENT_TRANSPORT_NAME},
        ))
        deps = tmp_path / "agent-2" / "work" / "deps"
        base = f"{DOWNLOAD_BASE}/bt/42"
        requests = [
            DownloadRequest(url=f"{base}/dist/app.zip", target=deps / "dist" / "app.zip"),
            DownloadRequest(url=f"{base}/notes.txt", target=deps / "notes.txt"),
            DownloadRequest(url=f"{base}/{MANIFEST_NAME}", target=deps / MANIFEST_NAME),
        ]

        report = ArtifactRetriever(TorrentTransportFactory(consumer), fetcher).download_all(
            ResolverContext(server_url=SERVER_URL), requests
        )

        assert report.failed == []
        methods = {r.url.rsplit("/", 1)[-1]: r.method for r in report.results}
        assert methods == {
            MANIFEST_NAME: TransferMethod.DIRECT,
            "app.zip": TransferMethod.TORRENT,
            "notes.txt": TransferMethod.DIRECT,
        }
        assert (deps / "dist" / "app.zip").read_bytes() == (build.artifacts_dir / "dist" / "app.zip").read_bytes()
        assert f"{base}/dist/app.zip" not in fetcher.requested

        # The consumer now seeds what it downloaded and links it for restarts.
        assert consumer.torrents_directory_seeder.number_of_seeded_torrents == 1
        assert (tmp_path / "agent-2" / "torrents" / "bt" / "42" / "dist" / "app.zip.link").is_file()
        assert (deps / ".mirror" / "torrents" / "dist" / "app.zip.torrent").is_file()

    def test_server_and_agent_agree_on_identity(self, hosts, build):
        server, publisher, _ = hosts
        server_hashes = {t.info_hash for t in server.get_shared_torrents()}
        agent_hashes = {t.info_hash for t in publisher.torrents_directory_seeder.get_shared_torrents()}
        assert len(server_hashes) == 1
        assert server_hashes == agent_hashes

    def test_server_restart_reseeds_from_links(self, tmp_path, swarm, config, hosts, build):
        server, _, _ = hosts
        server.on_host_shutdown()
        assert server.number_of_seeded_torrents == 0

        restarted = ServerTorrentsSeeder(tmp_path / "server-data", LocalSwarmEngine(swarm, "server-2"), ConfigStore(config))
        try:
            assert restarted.torrents_directory_seeder.scan() == 1
        finally:
            restarted.on_host_shutdown()
