"""Link store: which artifacts already have a torrent.

Storage layout: {storage}/{scope}/{relative-artifact-path}.link
where scope is ``<build-type-id>/<build-id>``.

A link file is a small JSON descriptor naming the torrent file and the
artifact file.  Building a torrent means hashing the whole artifact, so
"is there a link whose torrent still exists" is the cheap check that
keeps that work to once per artifact, across restarts too.  Link files
are plain files, so no hard-link support is needed from the filesystem.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from torrentmirror.core.errors import LinkResolutionError
from torrentmirror.models.torrents import FileLink

logger = logging.getLogger(__name__)

LINK_SUFFIX = ".link"


class LinkStore:
    """Link entries under a storage root.

    Parameters
    ----------
    storage_dir:
        Root directory of the link tree.  Created if missing.
    """

    def __init__(self, storage_dir: Path) -> None:
        self._base = Path(storage_dir)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def storage_dir(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def link_dir(self, scope: str, artifact_path: str = "") -> Path:
        """Directory holding the link for *artifact_path* in *scope*."""
        parent = Path(artifact_path.lstrip("/")).parent if artifact_path else Path()
        return self._base / scope / parent

    def link_path(self, artifact_path: str, scope: str) -> Path:
        return self._base / scope / f"{artifact_path.lstrip('/')}{LINK_SUFFIX}"

    @staticmethod
    def link_file_for(artifact_file: Path, link_dir: Path) -> Path:
        return Path(link_dir) / f"{Path(artifact_file).name}{LINK_SUFFIX}"

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_link(self, artifact_file: Path, torrent_file: Path, link_dir: Path) -> Path:
        """Record that *torrent_file* describes *artifact_file*.

        Writes ``<link_dir>/<artifact name>.link`` atomically.  An identical
        existing link is left untouched; a dangling or different one is
        replaced.
        """
        link = FileLink(
            torrent_file=Path(torrent_file).absolute(),
            artifact_file=Path(artifact_file).absolute(),
        )
        link_file = self.link_file_for(artifact_file, link_dir)
        try:
            existing = self.resolve(link_file)
        except LinkResolutionError:
            existing = None
        if existing == link:
            return link_file

        link_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=link_file.parent, prefix=f".{link_file.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(link.model_dump_json())
            os.replace(tmp_name, link_file)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Linked %s -> %s", link.artifact_file, link.torrent_file)
        return link_file

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @staticmethod
    def resolve(link_file: Path) -> FileLink:
        """Read the torrent/artifact pair a link file points at."""
        try:
            return FileLink.model_validate_json(Path(link_file).read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            raise LinkResolutionError(f"Cannot read link {link_file}: {exc}") from exc

    def link_exists(self, artifact_path: str, scope: str) -> bool:
        """True iff a link for the artifact resolves to an existing torrent."""
        link_file = self.link_path(artifact_path, scope)
        if not link_file.is_file():
            return False
        try:
            return not self.resolve(link_file).is_dangling
        except LinkResolutionError:
            return False

    def iter_links(self) -> Iterator[Path]:
        """Every link file under the storage root, in no particular order."""
        stack = [self._base]
        while stack:
            directory = stack.pop()
            try:
                entries = list(os.scandir(directory))
            except OSError as exc:
                logger.warning("Cannot list %s: %s", directory, exc)
                continue
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(Path(entry.path))
                elif entry.name.endswith(LINK_SUFFIX):
                    yield Path(entry.path)

    def touch_link(self, artifact_path: str, scope: str) -> None:
        """Mark the link for *artifact_path* as the most recently published."""
        link_file = self.link_path(artifact_path, scope)
        try:
            os.utime(link_file)
        except FileNotFoundError:
            logger.debug("No link to touch at %s", link_file)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def remove_link(self, link_file: Path) -> None:
        """Delete a link whose artifact or torrent is gone."""
        Path(link_file).unlink(missing_ok=True)
        logger.debug("Removed link %s", link_file)
