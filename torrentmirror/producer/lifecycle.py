"""Inbound port for CI host events.

Whatever embeds torrentmirror (a build server, a build agent, a test)
calls these methods; the core never subscribes to a host event bus
itself.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from torrentmirror.models.builds import BuildRef


@runtime_checkable
class HostLifecycle(Protocol):
    def on_host_started(self) -> None: ...

    def on_host_shutdown(self) -> None: ...

    def on_build_started(self, build: BuildRef) -> None: ...

    def on_build_finished(self, build: BuildRef) -> None: ...

    def on_config_changed(self, field: str, value: Any) -> None: ...
