"""Build artifact manifest (Ivy descriptor) parsing.

The manifest lists every published artifact of a build as
``<artifact name=".." ext=".."/>``.  An artifact has a torrent when the
manifest also lists ``.mirror/torrents/<artifact>.torrent``; only those
artifacts are ever fetched through the swarm.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from pydantic import BaseModel, ConfigDict

from torrentmirror.core.errors import ManifestError
from torrentmirror.core.metadata import HIDDEN_ARTIFACTS_DIR, TORRENT_FILE_SUFFIX, TORRENTS_DIR_PATH

MANIFEST_NAME = "artifacts-ivy.xml"


class ArtifactManifest(BaseModel):
    """What a manifest says about a build."""

    model_config = ConfigDict(frozen=True)

    module: str | None = None
    revision: str | None = None
    artifacts: frozenset[str] = frozenset()
    torrents: dict[str, str] = {}  # artifact path -> torrent path

    @property
    def digest(self) -> str | None:
        """Identity reported for the manifest download itself."""
        if self.module is None or self.revision is None:
            return None
        return f"{MANIFEST_NAME}_{self.module}_{self.revision}"


def is_manifest_url(url: str) -> bool:
    path = url.split("?", 1)[0]
    return path.rsplit("/", 1)[-1] == MANIFEST_NAME


def parse_manifest(data: bytes) -> ArtifactManifest:
    """Parse manifest bytes.

    Raises
    ------
    ManifestError
        If the bytes are not a well-formed Ivy module descriptor.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ManifestError(f"Cannot parse {MANIFEST_NAME}: {exc}") from exc
    if root.tag != "ivy-module":
        raise ManifestError(f"{MANIFEST_NAME} root is <{root.tag}>, expected <ivy-module>")

    names: set[str] = set()
    for artifact in root.findall("./publications/artifact"):
        name = artifact.get("name")
        if not name:
            continue
        ext = artifact.get("ext")
        names.add(f"{name}.{ext}" if ext else name)

    torrents: dict[str, str] = {}
    for name in names:
        if name.startswith(HIDDEN_ARTIFACTS_DIR):
            continue
        proposed = f"{TORRENTS_DIR_PATH}/{name}{TORRENT_FILE_SUFFIX}"
        if proposed in names:
            torrents[name] = proposed

    info = root.findall("./info")
    module = revision = None
    if len(info) == 1:
        module = info[0].get("module")
        revision = info[0].get("revision")

    return ArtifactManifest(
        module=module,
        revision=revision,
        artifacts=frozenset(names),
        torrents=torrents,
    )
