"""
Depth-first directory scanner feeding audio file paths to the tag workers.

The scanner is the only producer of its output queue. It always terminates
the stream with ``SCAN_DONE``, whether the walk completed, was cancelled or
failed, so consumers never wait on a producer that has gone away.
"""

import logging
import os
import queue
import threading
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional

from utils.exceptions import ScanError

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = ('.mp3', '.m4a')

# End-of-stream marker put on the output queue by the scanner.
SCAN_DONE = object()


class ScanStatus(str, Enum):
    COMPLETED = "completed"
    CANCELED = "canceled"


class AtomicCounter:
    """Integer counter safe to increment from several threads."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class DirectoryScanner:
    """Walks a library tree and emits audio files, pruning one excluded subtree."""

    def __init__(
        self,
        audio_extensions: Iterable[str] = AUDIO_EXTENSIONS,
        logger: Optional[logging.Logger] = None,
    ):
        self.audio_extensions = {ext.lower() for ext in audio_extensions}
        self.logger = logger or logging.getLogger(__name__)

    def iter_audio_files(
        self,
        root: Path,
        excluded_path: Optional[Path] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Iterator[Path]:
        """
        Yield audio files under ``root`` depth-first in name order.

        Args:
            root: Library root directory
            excluded_path: Directory skipped together with its whole subtree
            cancel_event: Stops the walk when set

        Raises:
            ScanError: If the root directory cannot be listed
        """
        root = Path(root)
        excluded = os.path.normpath(str(excluded_path)) if excluded_path else None

        if not root.is_dir():
            raise ScanError(str(root), "not a directory")

        stack = [str(root)]
        first = True
        while stack:
            if cancel_event is not None and cancel_event.is_set():
                return
            directory = stack.pop()
            if excluded is not None and os.path.normpath(directory) == excluded:
                self.logger.info(f"Skipping dir {directory}")
                continue

            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                if first:
                    raise ScanError(directory, str(e))
                self.logger.warning(f"Cannot read directory {directory}: {e}")
                continue
            first = False

            subdirs = []
            for entry in entries:
                if cancel_event is not None and cancel_event.is_set():
                    return
                try:
                    if entry.is_dir(follow_symlinks=False):
                        subdirs.append(entry.path)
                        continue
                    if not entry.is_file(follow_symlinks=False):
                        continue
                except OSError as e:
                    self.logger.warning(f"Cannot stat {entry.path}: {e}")
                    continue
                if excluded is not None and os.path.normpath(entry.path) == excluded:
                    continue
                if os.path.splitext(entry.name)[1].lower() in self.audio_extensions:
                    yield Path(entry.path)

            # Reversed so the first subdirectory is walked next.
            stack.extend(reversed(subdirs))

    def scan(
        self,
        root: Path,
        excluded_path: Optional[Path],
        out: queue.Queue,
        counter: AtomicCounter,
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanStatus:
        """
        Put every audio file path on ``out`` and finish with ``SCAN_DONE``.

        ``counter`` is incremented once per discovered file, for progress reporting.
        """
        status = ScanStatus.COMPLETED
        try:
            for path in self.iter_audio_files(root, excluded_path, cancel_event):
                out.put(path)
                counter.increment()
            if cancel_event is not None and cancel_event.is_set():
                status = ScanStatus.CANCELED
        finally:
            out.put(SCAN_DONE)

        if status is ScanStatus.CANCELED:
            self.logger.info(f"Scan canceled after {counter.value} files")
        else:
            self.logger.info(f"Scan completed: {counter.value} audio files")
        return status
