"""Producer steps shared by the server and agent paths.

For one artifact: withdraw whatever was seeded at that path, reuse the
cached torrent if the link store knows it, otherwise hash the artifact,
save the torrent, link it, and seed it when seeding is enabled.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from torrentmirror.core.directory_seeder import TorrentsDirectorySeeder
from torrentmirror.core.errors import ConfigurationIncompleteError
from torrentmirror.core.metadata import (
    HIDDEN_ARTIFACTS_DIR,
    get_or_create_torrent,
    is_torrent_current,
    load_torrent_file,
    torrent_file_path,
)
from torrentmirror.models.config import SeederConfig
from torrentmirror.models.torrents import TorrentMetadata

logger = logging.getLogger(__name__)


def iter_artifact_files(artifacts_dir: Path) -> Iterator[tuple[Path, str]]:
    """Leaf artifacts under *artifacts_dir* as ``(file, relative_path)``.

    The hidden directory holding published torrents is skipped, and so is
    any directory that cannot be listed.
    """
    root = Path(artifacts_dir)
    stack = [root]
    while stack:
        directory = stack.pop()
        try:
            children = sorted(directory.iterdir())
        except OSError as exc:
            logger.warning("Cannot list %s: %s", directory, exc)
            continue
        for child in children:
            if child.is_dir():
                if directory == root and child.name == HIDDEN_ARTIFACTS_DIR:
                    continue
                stack.append(child)
            elif child.is_file():
                yield child, child.relative_to(root).as_posix()


def announce_artifact(
    seeder: TorrentsDirectorySeeder,
    config: SeederConfig,
    artifact_file: Path,
    artifact_path: str,
    scope: str,
    torrents_dir: Path,
) -> TorrentMetadata | None:
    """Make *artifact_file* available to peers.

    Returns the torrent, or ``None`` when the artifact is below the size
    threshold.  Hashing happens here, outside the seeded-set lock.

    Raises
    ------
    ConfigurationIncompleteError
        If no announce URL is configured yet.
    OSError, MirrorError
        For a failure on this artifact only; callers log and continue.
    """
    if not config.is_complete:
        raise ConfigurationIncompleteError("Announce URL is not configured")
    if not seeder.should_create_torrent_for(artifact_file):
        return None

    seeder.stop_seeding_by_path(artifact_file)

    links = seeder.link_store
    cached = torrent_file_path(torrents_dir, artifact_path)
    if links.link_exists(artifact_path, scope) and is_torrent_current(cached, artifact_file):
        torrent_file, torrent = cached, load_torrent_file(cached)
        # Republished: rank it as the newest link for the next scan.
        links.touch_link(artifact_path, scope)
    else:
        torrent_file, torrent = get_or_create_torrent(
            artifact_file,
            artifact_path,
            torrents_dir,
            config.announce_url or "",
            seeder.engine.create_metadata,
        )
        links.create_link(artifact_file, torrent_file, links.link_dir(scope, artifact_path))

    if config.seeder_enabled:
        seeder.seed_torrent(torrent, artifact_file, torrent_file)
        limit = config.max_seeded_torrents
        if limit > 0 and seeder.number_of_seeded_torrents >= limit:
            logger.debug("Reached max number of seeded torrents; the oldest will be evicted next")
    return torrent
