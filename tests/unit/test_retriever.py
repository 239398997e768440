"""Tests for ArtifactRetriever — batch resolution with direct fallback."""

from __future__ import annotations

import pytest

from torrentmirror.models.builds import DownloadRequest, TransferMethod
from torrentmirror.transport.retriever import ArtifactRetriever
from torrentmirror.transport.torrent_transport import TorrentTransportFactory


@pytest.fixture
def download_requests(published_build, tmp_dir):
    deps = tmp_dir / "deps"
    # Manifest listed last on purpose: it must still be resolved first.
    return [
        DownloadRequest(url=published_build.artifact_url, target=deps / "app.zip"),
        DownloadRequest(url=published_build.manifest_url, target=deps / "artifacts-ivy.xml"),
    ]


def _retriever(agent, published_build) -> ArtifactRetriever:
    return ArtifactRetriever(TorrentTransportFactory(agent), published_build.fetcher)


class TestDownloadAll:
    def test_swarm_first(self, make_agent, engine, published_build, download_requests, resolver_context, tmp_dir):
        report = _retriever(make_agent(engine), published_build).download_all(resolver_context, download_requests)

        by_url = {r.url: r for r in report.results}
        assert report.results[0].url == published_build.manifest_url
        assert by_url[published_build.manifest_url].method == TransferMethod.DIRECT
        assert by_url[published_build.artifact_url].method == TransferMethod.TORRENT
        assert by_url[published_build.artifact_url].digest == published_build.torrent.info_hash
        assert len(report.via_torrent) == 1
        assert report.failed == []
        assert (tmp_dir / "deps" / "app.zip").read_bytes() == published_build.artifact.read_bytes()

    def test_opt_out_is_all_direct(self, make_agent, engine, published_build, download_requests, resolver_context, tmp_dir):
        report = _retriever(make_agent(engine, opt_in=False), published_build).download_all(
            resolver_context, download_requests
        )

        assert [r.method for r in report.results] == [TransferMethod.DIRECT, TransferMethod.DIRECT]
        assert engine.fetch_calls == []
        assert (tmp_dir / "deps" / "app.zip").read_bytes() == published_build.artifact.read_bytes()

    def test_one_peer_falls_back_to_direct(
        self, make_agent, engine, published_build, download_requests, resolver_context, tmp_dir
    ):
        published_build.seeders[0].shutdown()
        report = _retriever(make_agent(engine), published_build).download_all(resolver_context, download_requests)

        assert report.via_torrent == []
        assert len(report.succeeded) == 2
        assert engine.fetch_calls == []
        assert published_build.artifact_url in published_build.fetcher.requested

    def test_bad_url_does_not_abort_batch(
        self, make_agent, engine, published_build, download_requests, resolver_context, tmp_dir
    ):
        missing = DownloadRequest(url=published_build.artifact_url.replace("app.zip", "gone.zip"),
                                  target=tmp_dir / "deps" / "gone.zip")
        report = _retriever(make_agent(engine), published_build).download_all(
            resolver_context, [missing, *download_requests]
        )

        assert len(report.succeeded) == 2
        assert [r.url for r in report.failed] == [missing.url]
        assert "404" in report.failed[0].error
        assert not (tmp_dir / "deps" / "gone.zip").exists()
