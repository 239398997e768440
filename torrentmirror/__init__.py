"""torrentmirror: peer-to-peer distribution of large build artifacts.

Producers (the artifact server and build agents) turn large published
files into torrents and seed them; consumers fetch dependencies from the
swarm when enough peers hold them and fall back to direct HTTP otherwise.
"""

__version__ = "0.1.0"
__description__ = "Torrent-based mirroring of large build artifacts between server and agents"

from torrentmirror.core.directory_seeder import TorrentsDirectorySeeder
from torrentmirror.producer.agent_manager import AgentTorrentsManager
from torrentmirror.producer.server_seeder import ServerTorrentsSeeder
from torrentmirror.transport.retriever import ArtifactRetriever
from torrentmirror.transport.torrent_transport import TorrentTransportFactory

__all__ = [
    "TorrentsDirectorySeeder",
    "ServerTorrentsSeeder",
    "AgentTorrentsManager",
    "TorrentTransportFactory",
    "ArtifactRetriever",
    "__version__",
]
