"""Direct (HTTP) transfer: manifests, torrent files, and the fallback path."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx

from torrentmirror.core.errors import DirectFetchError
from torrentmirror.models.builds import ResolverContext

logger = logging.getLogger(__name__)

_STREAM_CHUNK = 1024 * 1024


@runtime_checkable
class DirectFetcher(Protocol):
    """Fetches URLs from the artifact server without the swarm."""

    def get_bytes(self, url: str) -> bytes:
        """Return the body of *url*; raise ``DirectFetchError`` otherwise."""
        ...

    def download_to(self, url: str, target: Path) -> Path:
        """Stream *url* into *target*; raise ``DirectFetchError`` otherwise."""
        ...


class HttpDirectFetcher:
    """``DirectFetcher`` over httpx with preemptive basic auth.

    Parameters
    ----------
    context:
        Server credentials and connection timeout.
    client:
        Pre-built client (tests pass one with a mock transport).  When
        omitted one is created from *context* and owned by this fetcher.
    """

    def __init__(self, context: ResolverContext, client: httpx.Client | None = None) -> None:
        self._context = context
        self._owns_client = client is None
        if client is None:
            auth = (context.username, context.password) if context.username else None
            client = httpx.Client(
                auth=auth,
                timeout=context.connection_timeout,
                follow_redirects=True,
            )
        self._client = client

    def get_bytes(self, url: str) -> bytes:
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            raise DirectFetchError(f"Problem while downloading {url}: {exc}") from exc
        if response.status_code != httpx.codes.OK:
            raise DirectFetchError(
                f"Problem [{response.status_code}] while downloading {url}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.content

    def download_to(self, url: str, target: Path) -> Path:
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as out, self._client.stream("GET", url) as response:
                if response.status_code != httpx.codes.OK:
                    raise DirectFetchError(
                        f"Problem [{response.status_code}] while downloading {url}: {response.reason_phrase}",
                        status_code=response.status_code,
                    )
                for chunk in response.iter_bytes(_STREAM_CHUNK):
                    out.write(chunk)
            os.replace(tmp_name, target)
        except httpx.HTTPError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise DirectFetchError(f"Problem while downloading {url}: {exc}") from exc
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Downloaded %s directly to %s", url, target)
        return target

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpDirectFetcher:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
