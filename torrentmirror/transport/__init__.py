"""Consumer paths: swarm-first artifact retrieval with direct fallback."""

from torrentmirror.transport.artifact_path import ParsedArtifactPath
from torrentmirror.transport.direct import DirectFetcher, HttpDirectFetcher
from torrentmirror.transport.manifest import MANIFEST_NAME, ArtifactManifest, parse_manifest
from torrentmirror.transport.retriever import ArtifactRetriever
from torrentmirror.transport.torrent_transport import TorrentTransport, TorrentTransportFactory

__all__ = [
    "ParsedArtifactPath",
    "DirectFetcher",
    "HttpDirectFetcher",
    "MANIFEST_NAME",
    "ArtifactManifest",
    "parse_manifest",
    "ArtifactRetriever",
    "TorrentTransport",
    "TorrentTransportFactory",
]
