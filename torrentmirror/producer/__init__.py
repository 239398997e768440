"""Producer paths: turn published artifacts into seeded torrents."""

from torrentmirror.producer.agent_manager import AgentTorrentsManager
from torrentmirror.producer.lifecycle import HostLifecycle
from torrentmirror.producer.server_seeder import ServerTorrentsSeeder

__all__ = ["AgentTorrentsManager", "HostLifecycle", "ServerTorrentsSeeder"]
