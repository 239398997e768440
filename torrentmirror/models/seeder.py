"""Directory seeder lifecycle states."""

from __future__ import annotations

from enum import Enum


class SeederState(str, Enum):
    """Lifecycle of a ``TorrentsDirectorySeeder``."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


# Valid state transitions, enforced by TorrentsDirectorySeeder.
# STARTING may fall back to STOPPED when local addresses cannot be resolved.
VALID_TRANSITIONS: dict[SeederState, set[SeederState]] = {
    SeederState.STOPPED: {SeederState.STARTING},
    SeederState.STARTING: {SeederState.RUNNING, SeederState.STOPPED},
    SeederState.RUNNING: {SeederState.STOPPING},
    SeederState.STOPPING: {SeederState.STOPPED},
}
