"""Consumer side: fetch artifact dependencies through the swarm.

``TorrentTransportFactory.get_transport`` decides whether a build may use
the swarm at all; ``TorrentTransport.download_url_to`` decides per URL.
Returning ``None`` from either means "use direct transfer"; raising
``TransferFailedError`` means "the swarm was tried and failed, retry
directly".  Any other ``RuntimeError`` is fatal and propagates unchanged.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path
from urllib.parse import urlparse

from torrentmirror.build_log import BuildLog
from torrentmirror.core.config_store import ConfigStore
from torrentmirror.core.directory_seeder import TorrentsDirectorySeeder
from torrentmirror.core.errors import (
    ManifestError,
    MetadataValidationError,
    MirrorError,
    TransferFailedError,
)
from torrentmirror.core.metadata import TORRENT_FILE_SUFFIX, TORRENTS_DIR_PATH
from torrentmirror.core.network import is_local_host
from torrentmirror.models.builds import BuildRef, ResolverContext
from torrentmirror.models.torrents import TorrentMetadata
from torrentmirror.producer.agent_manager import AgentTorrentsManager
from torrentmirror.transport.artifact_path import ParsedArtifactPath
from torrentmirror.transport.direct import DirectFetcher, HttpDirectFetcher
from torrentmirror.transport.manifest import is_manifest_url, parse_manifest

logger = logging.getLogger(__name__)

ARTIFACTS_TRANSPORT_PARAM = "artifacts.transport"
TORRENT_TRANSPORT_NAME = "TorrentTransport"
MIN_SEEDERS_COUNT_TO_TRY = 2


def should_use_torrent_transport(build: BuildRef) -> bool:
    """The build must opt in explicitly."""
    return build.parameters.get(ARTIFACTS_TRANSPORT_PARAM) == TORRENT_TRANSPORT_NAME


class TorrentTransportFactory:
    """Hands out a ``TorrentTransport`` when the swarm is usable.

    Parameters
    ----------
    agent_manager:
        The agent's producer side; supplies the running seeder, the
        current build and the live configuration.
    """

    def __init__(self, agent_manager: AgentTorrentsManager) -> None:
        self._agent_manager = agent_manager

    def get_transport(
        self,
        context: ResolverContext,
        fetcher: DirectFetcher | None = None,
    ) -> TorrentTransport | None:
        build = self._agent_manager.current_build
        if build is None:
            logger.debug("No running build; torrent transport is unavailable")
            return None
        build_log = build.build_log

        if not should_use_torrent_transport(build):
            build_log.message(f"Shouldn't use torrent transport for build type {build.build_type_id}")
            return None

        if is_local_host(urlparse(context.server_url).hostname):
            build_log.message("Shouldn't use torrent transport for localhost")
            return None

        if not self._agent_manager.is_torrent_client_started:
            build_log.message("Agent torrent manager didn't start. Torrent transport is unavailable")
            return None

        return TorrentTransport(
            self._agent_manager.torrents_directory_seeder,
            fetcher or HttpDirectFetcher(context),
            build_log,
            self._agent_manager.config_store,
        )


class TorrentTransport:
    """Per-build swarm transport.

    The build's manifest must be downloaded through this transport first:
    it tells the transport which artifacts have torrents at all.
    """

    def __init__(
        self,
        directory_seeder: TorrentsDirectorySeeder,
        fetcher: DirectFetcher,
        build_log: BuildLog,
        config: ConfigStore,
    ) -> None:
        self._directory_seeder = directory_seeder
        self._engine = directory_seeder.engine
        self._fetcher = fetcher
        self._build_log = build_log
        self._config = config
        self._torrents_for_artifacts: dict[str, str] = {}
        self._lock = threading.Lock()
        self._active: set[str] = set()
        self._interrupted = threading.Event()

    @property
    def torrents_for_artifacts(self) -> dict[str, str]:
        with self._lock:
            return dict(self._torrents_for_artifacts)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def download_url_to(self, url: str, target: Path) -> str | None:
        """Download *url* into *target* through the swarm.

        Returns
        -------
        str | None
            The torrent's info hash (or the manifest digest) on success,
            ``None`` when the swarm should not be used for this URL.

        Raises
        ------
        TransferFailedError
            If the swarm download was attempted and failed.
        """
        target = Path(target)
        if is_manifest_url(url):
            return self._parse_artifacts_list(url, target)

        try:
            parsed = ParsedArtifactPath(url)
        except ValueError:
            return None

        torrent = self._download_torrent(parsed)
        if torrent is None:
            return None

        config = self._config.current
        if torrent.length < config.file_size_threshold_bytes:
            self._log(f"{parsed.artifact_path} is below the torrent size threshold; downloading directly")
            return None

        self._build_log.progress_started(f"Downloading {target.name} via torrent.")
        try:
            seeders = self._engine.count_reachable_peers(torrent)
            if seeders < MIN_SEEDERS_COUNT_TO_TRY:
                self._log(f"Only {seeders} seeders for {url}; downloading directly")
                return None

            started = time.monotonic()
            self._fetch(torrent, target, config.download_timeout_sec)
            took_ms = int((time.monotonic() - started) * 1000) + 1
            self._log(
                f"Download successful. Avg speed {target.stat().st_size // took_ms} kb/s. Saving torrent.."
            )
            torrent_file = self._save_and_link(parsed, torrent, target)
            if config.seeder_enabled:
                self._share(torrent, target, torrent_file, parsed)
            return self._engine.content_identity(torrent)

        except (MirrorError, OSError) as exc:
            self._log(f"Unable to download torrent for {url}: {exc}", warning=True)
            raise TransferFailedError(f"Unable to download torrent for {url}") from exc
        except RuntimeError as exc:
            self._log(f"Unable to download artifact {url}: {exc}", warning=True)
            raise
        finally:
            self._build_log.progress_finished()

    def get_digest(self, url: str) -> str | None:
        """Info hash of the torrent for *url*, without downloading content."""
        try:
            parsed = ParsedArtifactPath(url)
        except ValueError:
            return None
        torrent = self._download_torrent(parsed)
        return None if torrent is None else self._engine.content_identity(torrent)

    def interrupt(self) -> None:
        """Cancel every in-flight swarm download of this transport."""
        self._interrupted.set()
        with self._lock:
            active = list(self._active)
        for info_hash in active:
            self._engine.cancel(info_hash)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch(self, torrent: TorrentMetadata, target: Path, timeout_sec: float) -> None:
        """Run the engine fetch with a hard wall-clock bound."""
        if self._interrupted.is_set():
            raise InterruptedError(f"Torrent download has been interrupted {torrent.name}")

        with self._lock:
            self._active.add(torrent.info_hash)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="torrent-fetch")
        try:
            future = executor.submit(
                self._engine.fetch,
                torrent,
                target,
                target.parent,
                timeout_sec,
                MIN_SEEDERS_COUNT_TO_TRY,
            )
            try:
                future.result(timeout=timeout_sec)
            except FutureTimeout as exc:
                self._engine.cancel(torrent.info_hash)
                raise TransferFailedError(
                    f"Torrent download of {torrent.name} timed out after {timeout_sec}s"
                ) from exc
        finally:
            executor.shutdown(wait=False)
            with self._lock:
                self._active.discard(torrent.info_hash)

    def _save_and_link(self, parsed: ParsedArtifactPath, torrent: TorrentMetadata, target: Path) -> Path:
        parent_dir = _real_parent_dir(target, parsed.artifact_path)
        if parent_dir is not None:
            torrent_file = parent_dir / parsed.torrent_path
        else:
            torrent_file = target.parent / TORRENTS_DIR_PATH / f"{target.name}{TORRENT_FILE_SUFFIX}"
        self._engine.save(torrent, torrent_file)

        links = self._directory_seeder.link_store
        link_dir = (links.storage_dir / parsed.relative_link_path).parent
        links.create_link(target, torrent_file, link_dir)
        return torrent_file

    def _share(
        self,
        torrent: TorrentMetadata,
        target: Path,
        torrent_file: Path,
        parsed: ParsedArtifactPath,
    ) -> None:
        try:
            self._directory_seeder.seed_torrent(torrent, target, torrent_file)
        except MetadataValidationError as exc:
            self._log(f"Downloaded {parsed.artifact_path} but cannot seed it: {exc}", warning=True)

    def _parse_artifacts_list(self, url: str, target: Path) -> str | None:
        try:
            data = self._fetcher.get_bytes(url)
            manifest = parse_manifest(data)
            with self._lock:
                self._torrents_for_artifacts.update(manifest.torrents)
            if manifest.digest is None:
                return None
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            return manifest.digest
        except (ManifestError, TransferFailedError, OSError) as exc:
            self._log(f"Unknown error while parsing {url}: {exc}", warning=True)
        return None

    def _download_torrent(self, parsed: ParsedArtifactPath) -> TorrentMetadata | None:
        with self._lock:
            known = parsed.artifact_path in self._torrents_for_artifacts
        if not known:
            return None
        try:
            return self._engine.load(self._fetcher.get_bytes(parsed.torrent_url))
        except MetadataValidationError as exc:
            logger.error("Invalid torrent at %s: %s", parsed.torrent_url, exc)
        except TransferFailedError as exc:
            self._log(f"Unable to download: {exc}")
        return None

    def _log(self, message: str, *, warning: bool = False) -> None:
        if warning:
            self._build_log.warning(message)
        else:
            self._build_log.message(message)


def _real_parent_dir(file: Path, relative_path: str) -> Path | None:
    """Directory that *relative_path* is relative to, given where *file*
    actually landed; ``None`` if *file* does not end with it."""
    path = file.absolute().as_posix()
    relative_path = relative_path.lstrip("/")
    if path == relative_path or path.endswith(f"/{relative_path}"):
        return Path(path[: len(path) - len(relative_path)])
    return None
