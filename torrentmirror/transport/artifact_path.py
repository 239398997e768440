"""Artifact download URLs and the torrent URLs derived from them.

An artifact URL looks like::

    <base>/download/<build-type-id>/<build-id>/<relative-path>[?query]

and its torrent is published by the server at::

    <base>/download/<build-type-id>/<build-id>/.mirror/torrents/<relative-path>.torrent[?query]
"""

from __future__ import annotations

import re
from urllib.parse import unquote

from torrentmirror.core.metadata import TORRENT_FILE_SUFFIX, TORRENTS_DIR_PATH

_ARTIFACT_URL = re.compile(
    r"^(?P<base>.*?/download/)"
    r"(?P<build_type_id>[^/?]+)/"
    r"(?P<build_id>[^/?]+)/"
    r"(?P<path>[^?]+)"
    r"(?P<query>\?.*)?$"
)


class ParsedArtifactPath:
    """Pieces of an artifact download URL.

    Raises
    ------
    ValueError
        If *url* is not an artifact download URL.
    """

    def __init__(self, url: str) -> None:
        match = _ARTIFACT_URL.match(url)
        if match is None:
            raise ValueError(f"Not an artifact download URL: {url}")
        self.url = url
        self.base = match.group("base")
        self.build_type_id = match.group("build_type_id")
        self.build_id = match.group("build_id")
        self._raw_path = match.group("path")
        self.query = match.group("query") or ""

    @property
    def artifact_path(self) -> str:
        """Relative path of the artifact inside the build's artifacts."""
        return unquote(self._raw_path)

    @property
    def torrent_path(self) -> str:
        """Relative path of the torrent inside the build's artifacts."""
        return f"{TORRENTS_DIR_PATH}/{self.artifact_path}{TORRENT_FILE_SUFFIX}"

    @property
    def torrent_url(self) -> str:
        return (
            f"{self.base}{self.build_type_id}/{self.build_id}/"
            f"{TORRENTS_DIR_PATH}/{self._raw_path}{TORRENT_FILE_SUFFIX}{self.query}"
        )

    @property
    def scope(self) -> str:
        return f"{self.build_type_id}/{self.build_id}"

    @property
    def relative_link_path(self) -> str:
        """Where the link for this artifact goes, relative to the storage root."""
        return f"{self.scope}/{self.artifact_path}"

    def __repr__(self) -> str:
        return f"ParsedArtifactPath({self.url!r})"
