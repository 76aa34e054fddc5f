"""
Pipeline orchestrator for the two library synchronizations.

The local sync scans the library tree, reads tags on a fixed pool of worker
threads and stores the deduplicated (artist, album) pairs. The actual sync
resolves every local artist against the catalog and stores the releases.
Each run writes into a fresh version that is published only when the run
completes without cancellation.
"""

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from api.schemas import LocalAlbum, TagInfo, Version
from catalog.base import CatalogLibrary
from filesystem.scanner import SCAN_DONE, AtomicCounter, DirectoryScanner
from filesystem.tag_reader import read_tags
from pipeline.differ import normalize_string
from storage.database import ACTUAL, LOCAL, LibraryDatabase
from utils.exceptions import ReleasesWatcherError, StorageError, TagParseError
from utils.logging_config import log_progress_every

logger = logging.getLogger(__name__)

# End-of-stream marker for the results queues.
RESULTS_DONE = object()

PUT_POLL_SECONDS = 0.1


class LibraryWatcher:
    """
    Coordinates the local and actual library syncs against one store.
    """

    def __init__(
        self,
        db: LibraryDatabase,
        scanner: DirectoryScanner,
        library: Optional[CatalogLibrary],
        root: Path,
        excluded_path: Optional[Path] = None,
        read_workers: int = 10,
        channel_capacity: int = 100,
        progress_every: int = 100,
        keep_versions: int = 3,
        tag_reader: Callable[[Path], TagInfo] = read_tags,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the watcher.

        Args:
            db: Versioned album store
            scanner: Directory scanner producing audio file paths
            library: Catalog library; only needed by the actual sync
            root: Library root directory
            excluded_path: Subtree skipped by the scanner
            read_workers: Number of tag reading threads
            channel_capacity: Capacity of the catalog-to-store queue
            progress_every: Log a progress line every N stored albums
            keep_versions: Versions kept per stream after publishing
            tag_reader: Callable returning the tags of one file
            logger: Injected logger
        """
        self.db = db
        self.scanner = scanner
        self.library = library
        self.root = Path(root)
        self.excluded_path = Path(excluded_path) if excluded_path else None
        self.read_workers = max(1, read_workers)
        self.channel_capacity = max(1, channel_capacity)
        self.progress_every = progress_every
        self.keep_versions = keep_versions
        self.tag_reader = tag_reader
        self.logger = logger or logging.getLogger(__name__)

        self.stats = {
            'files_found': 0,
            'tag_errors': 0,
            'local_albums_stored': 0,
            'incorrect_albums': 0,
            'artists_processed': 0,
            'artists_failed': 0,
            'actual_albums_stored': 0,
        }
        self._stats_lock = threading.Lock()

    def _count(self, key: str, amount: int = 1):
        with self._stats_lock:
            self.stats[key] += amount

    # Local library

    def update_local_library(self, cancel_event: Optional[threading.Event] = None) -> Optional[Version]:
        """
        Scan the library, store its albums in a new version and publish it.

        Returns:
            The published version, or None when the run was cancelled

        Raises:
            ScanError: If the library root cannot be walked
            StorageError: If the version cannot be created or published
        """
        cancel_event = cancel_event or threading.Event()
        start_time = time.time()
        self.logger.info(f"Updating local library from {self.root}")

        version = self.db.create_local_version()
        paths: queue.Queue = queue.Queue()
        results: queue.Queue = queue.Queue()
        counter = AtomicCounter()

        # scanner + workers + fan-in closer
        with ThreadPoolExecutor(max_workers=self.read_workers + 2) as executor:
            scan_future = executor.submit(
                self.scanner.scan, self.root, self.excluded_path, paths, counter, cancel_event
            )
            workers = [
                executor.submit(self._read_worker, paths, results, cancel_event)
                for _ in range(self.read_workers)
            ]
            executor.submit(self._close_results, workers, results)

            stored = self._store_local_albums(results, version, cancel_event)

            for worker in workers:
                worker.result()
            scan_future.result()

        self._count('files_found', counter.value)

        if cancel_event.is_set():
            self.logger.warning(
                f"Local library update canceled, version {version.version_id} not published"
            )
            return None

        self.db.publish_local_version(version)
        self.db.prune_versions(LOCAL, self.keep_versions)
        self.logger.info(
            f"Local library updated: {stored} albums from {counter.value} files "
            f"in {time.time() - start_time:.2f} seconds"
        )
        return version

    def _read_worker(self, paths: queue.Queue, results: queue.Queue, cancel_event: threading.Event):
        while True:
            path = paths.get()
            if path is SCAN_DONE:
                # Let the sibling workers see the end of the stream too.
                paths.put(SCAN_DONE)
                return
            if cancel_event.is_set():
                continue
            try:
                tags = self.tag_reader(path)
            except TagParseError as e:
                self._count('tag_errors')
                self.logger.warning(f"Unable to read tags: {e}")
                continue
            except Exception as e:
                self._count('tag_errors')
                self.logger.error(f"Failed to read tags from {path}: {e}")
                continue
            results.put(tags)

    @staticmethod
    def _close_results(workers, results: queue.Queue):
        wait(workers)
        results.put(RESULTS_DONE)

    def _store_local_albums(
        self, results: queue.Queue, version: Version, cancel_event: threading.Event
    ) -> int:
        seen: Set[Tuple[str, str]] = set()
        stored = 0
        while True:
            tags = results.get()
            if tags is RESULTS_DONE:
                return stored
            if cancel_event.is_set():
                continue

            key = (tags.artist.strip(), tags.album.strip())
            if key in seen:
                continue
            seen.add(key)

            album = LocalAlbum(artist=key[0], name=key[1])
            if not album.is_correct:
                self._count('incorrect_albums')
                self.logger.warning(f"Incorrect tag: artist='{album.artist}' album='{album.name}'")

            try:
                self.db.insert_local_album(album, version)
            except StorageError as e:
                self.logger.error(f"Failed to store local album {album.artist} - {album.name}: {e}")
                continue

            stored += 1
            self._count('local_albums_stored')
            log_progress_every(stored, self.progress_every, self.logger,
                               "Stored {current} local albums")

    # Actual library

    def get_tracked_artists(self) -> List[str]:
        """Local artists minus the globally excluded ones."""
        artists = self.db.get_local_artists()
        excluded = {normalize_string(artist) for artist in self.db.get_excluded_artists()}
        tracked = [artist for artist in artists if normalize_string(artist) not in excluded]
        if len(tracked) != len(artists):
            self.logger.info(f"Skipping {len(artists) - len(tracked)} excluded artists")
        return tracked

    def update_actual_library(self, cancel_event: Optional[threading.Event] = None) -> Optional[Version]:
        """
        Resolve every tracked artist in the catalog and publish the releases.

        Per-artist catalog failures are logged and the artist is skipped. A
        storage failure aborts the run without publishing.

        Returns:
            The published version, or None when the run was cancelled
        """
        if self.library is None:
            raise ReleasesWatcherError("No catalog library configured")

        cancel_event = cancel_event or threading.Event()
        start_time = time.time()

        artists = self.get_tracked_artists()
        self.logger.info(f"Updating actual library for {len(artists)} artists from {self.library.name}")

        version = self.db.create_actual_version()
        warmed = self.library.warm_cache()

        albums: queue.Queue = queue.Queue(maxsize=self.channel_capacity)
        stop = threading.Event()

        with ThreadPoolExecutor(max_workers=1) as executor:
            producer = executor.submit(
                self._produce_actual_albums, artists, warmed, albums, cancel_event, stop
            )
            try:
                stored = self._store_actual_albums(albums, version)
            except BaseException:
                stop.set()
                raise
            producer.result()

        if cancel_event.is_set():
            self.logger.warning(
                f"Actual library update canceled, version {version.version_id} not published"
            )
            return None

        self.db.publish_actual_version(version)
        self.db.prune_versions(ACTUAL, self.keep_versions)
        self.logger.info(
            f"Actual library updated: {stored} albums for {len(artists)} artists "
            f"in {time.time() - start_time:.2f} seconds"
        )
        return version

    @staticmethod
    def _put(out: queue.Queue, item: Any, stop: threading.Event) -> bool:
        """Blocking put that gives up once the consumer has stopped."""
        while not stop.is_set():
            try:
                out.put(item, timeout=PUT_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def _produce_actual_albums(
        self,
        artists: List[str],
        warmed: Mapping[str, Any],
        out: queue.Queue,
        cancel_event: threading.Event,
        stop: threading.Event,
    ):
        try:
            for i, artist in enumerate(artists, 1):
                if cancel_event.is_set() or stop.is_set():
                    return
                self.logger.info(f"[{i}/{len(artists)}] Fetching releases for {artist}")
                try:
                    for album in self.library.get_releases_for_artist(artist, warmed):
                        if cancel_event.is_set() or not self._put(out, album, stop):
                            return
                except ReleasesWatcherError as e:
                    self._count('artists_failed')
                    self.logger.error(f"Failed to get releases for {artist}: {e}")
                    continue
                self._count('artists_processed')
        finally:
            self._put(out, RESULTS_DONE, stop)

    def _store_actual_albums(self, albums: queue.Queue, version: Version) -> int:
        stored = 0
        while True:
            album = albums.get()
            if album is RESULTS_DONE:
                return stored
            self.db.insert_actual_album(album, version)
            stored += 1
            self._count('actual_albums_stored')
            log_progress_every(stored, self.progress_every, self.logger,
                               "Stored {current} actual albums")

    def get_statistics(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self.stats)
