"""Build references and dependency download records."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from torrentmirror.build_log import BuildLog


class BuildRef(BaseModel):
    """The parts of a CI build the distribution core needs to know about.

    ``parameters`` are the build's shared configuration parameters; the
    consumer side reads the transport opt-in from them.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    build_type_id: str
    build_id: str
    artifacts_dir: Path | None = None
    parameters: dict[str, str] = {}
    build_log: BuildLog = Field(default_factory=BuildLog)

    @property
    def scope(self) -> str:
        """Link-store scope for this build: ``<build-type-id>/<build-id>``."""
        return f"{self.build_type_id}/{self.build_id}"


class ResolverContext(BaseModel):
    """Connection details for resolving artifact dependencies from a server."""

    model_config = ConfigDict(frozen=True)

    server_url: str
    username: str = ""
    password: str = ""
    connection_timeout: float = 60.0


class TransferMethod(str, Enum):
    TORRENT = "torrent"
    DIRECT = "direct"


class DownloadRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    target: Path


class DownloadResult(BaseModel):
    """Outcome of one dependency download."""

    model_config = ConfigDict(frozen=True)

    url: str
    target: Path
    method: TransferMethod | None = None
    digest: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DownloadReport(BaseModel):
    """Per-URL results of a dependency resolution batch."""

    model_config = ConfigDict(frozen=True)

    results: list[DownloadResult] = []

    @property
    def succeeded(self) -> list[DownloadResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[DownloadResult]:
        return [r for r in self.results if not r.ok]

    @property
    def via_torrent(self) -> list[DownloadResult]:
        return [r for r in self.succeeded if r.method == TransferMethod.TORRENT]
