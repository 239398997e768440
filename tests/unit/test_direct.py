"""Tests for the httpx-based direct fetcher."""

from __future__ import annotations

import httpx
import pytest

from torrentmirror.core.errors import DirectFetchError
from torrentmirror.models.builds import ResolverContext
from torrentmirror.transport.direct import DirectFetcher, HttpDirectFetcher

CONTEXT = ResolverContext(server_url="http://ci.example.com", username="agent", password="secret")


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/ok":
        return httpx.Response(200, content=b"payload")
    if request.url.path == "/boom":
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(404)


@pytest.fixture
def fetcher():
    client = httpx.Client(transport=httpx.MockTransport(_handler))
    with HttpDirectFetcher(CONTEXT, client=client) as direct:
        yield direct
    client.close()


class TestHttpDirectFetcher:
    def test_is_a_direct_fetcher(self, fetcher):
        assert isinstance(fetcher, DirectFetcher)

    def test_get_bytes(self, fetcher):
        assert fetcher.get_bytes("http://ci.example.com/ok") == b"payload"

    def test_http_error_status(self, fetcher):
        with pytest.raises(DirectFetchError) as excinfo:
            fetcher.get_bytes("http://ci.example.com/missing")
        assert excinfo.value.status_code == 404

    def test_connection_error(self, fetcher):
        with pytest.raises(DirectFetchError, match="connection refused"):
            fetcher.get_bytes("http://ci.example.com/boom")

    def test_download_to(self, fetcher, tmp_dir):
        target = tmp_dir / "deps" / "app.zip"
        assert fetcher.download_to("http://ci.example.com/ok", target) == target
        assert target.read_bytes() == b"payload"
        assert [p.name for p in target.parent.iterdir()] == ["app.zip"]

    def test_failed_download_leaves_nothing(self, fetcher, tmp_dir):
        target = tmp_dir / "deps" / "app.zip"
        with pytest.raises(DirectFetchError):
            fetcher.download_to("http://ci.example.com/missing", target)
        assert list(target.parent.iterdir()) == []
