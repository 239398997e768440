"""Distribution engine port and the in-process swarm backend."""

from torrentmirror.engine.base import DistributionEngine, MetadataCodec
from torrentmirror.engine.local import DEFAULT_SWARM, LocalSwarm, LocalSwarmEngine

__all__ = [
    "DistributionEngine",
    "MetadataCodec",
    "LocalSwarm",
    "LocalSwarmEngine",
    "DEFAULT_SWARM",
]
