"""Dependency resolution with swarm-first, direct-fallback transfer."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from torrentmirror.core.errors import DirectFetchError, TransferFailedError
from torrentmirror.models.builds import (
    DownloadReport,
    DownloadRequest,
    DownloadResult,
    ResolverContext,
    TransferMethod,
)
from torrentmirror.transport.direct import DirectFetcher, HttpDirectFetcher
from torrentmirror.transport.manifest import is_manifest_url
from torrentmirror.transport.torrent_transport import TorrentTransport, TorrentTransportFactory

logger = logging.getLogger(__name__)


class ArtifactRetriever:
    """Downloads a batch of artifact URLs for one build.

    Each URL is tried through the swarm when the factory hands out a
    transport, then directly.  One failing URL never stops the batch.

    Parameters
    ----------
    factory:
        Source of swarm transports.
    fetcher:
        Direct fetcher; an ``HttpDirectFetcher`` for the context is built
        per batch when omitted.
    """

    def __init__(self, factory: TorrentTransportFactory, fetcher: DirectFetcher | None = None) -> None:
        self._factory = factory
        self._fetcher = fetcher

    def download_all(
        self,
        context: ResolverContext,
        requests: Iterable[DownloadRequest],
    ) -> DownloadReport:
        """Download every request; manifests go first so the transport
        knows which artifacts have torrents."""
        ordered = sorted(requests, key=lambda r: not is_manifest_url(r.url))
        fetcher = self._fetcher or HttpDirectFetcher(context)
        try:
            transport = self._factory.get_transport(context, fetcher)
            results = [self._download(transport, fetcher, request) for request in ordered]
        finally:
            if self._fetcher is None and isinstance(fetcher, HttpDirectFetcher):
                fetcher.close()

        report = DownloadReport(results=results)
        logger.info(
            "Resolved %d dependencies: %d via torrent, %d failed",
            len(results),
            len(report.via_torrent),
            len(report.failed),
        )
        return report

    @staticmethod
    def _download(
        transport: TorrentTransport | None,
        fetcher: DirectFetcher,
        request: DownloadRequest,
    ) -> DownloadResult:
        if transport is not None:
            try:
                digest = transport.download_url_to(request.url, request.target)
            except TransferFailedError as exc:
                logger.info("Falling back to direct download of %s: %s", request.url, exc)
                digest = None
            if digest is not None:
                method = TransferMethod.DIRECT if is_manifest_url(request.url) else TransferMethod.TORRENT
                return DownloadResult(url=request.url, target=request.target, method=method, digest=digest)

        try:
            fetcher.download_to(request.url, request.target)
        except (DirectFetchError, OSError) as exc:
            logger.warning("Failed to download %s: %s", request.url, exc)
            return DownloadResult(url=request.url, target=request.target, error=str(exc))
        return DownloadResult(url=request.url, target=request.target, method=TransferMethod.DIRECT)
