"""Tests for the depth-first directory scanner."""

import os
import queue
import threading
from pathlib import Path

import pytest

from filesystem.scanner import SCAN_DONE, AtomicCounter, DirectoryScanner, ScanStatus
from utils.exceptions import ScanError


def drain(out: queue.Queue):
    items = []
    while True:
        item = out.get_nowait()
        if item is SCAN_DONE:
            return items
        items.append(item)


@pytest.fixture
def library(tmp_path) -> Path:
    """Two eligible files, one ineligible file and an excluded sibling directory."""
    root = tmp_path / "Music"
    root.mkdir()
    (root / "01 - Intro.mp3").write_bytes(b"")
    (root / "02 - Song.m4a").write_bytes(b"")
    (root / "cover.txt").write_text("not audio")
    excluded = root / "Incoming"
    excluded.mkdir()
    (excluded / "new.mp3").write_bytes(b"")
    return root


class TestScan:
    """Scan of a library tree onto a queue."""

    def test_emits_only_eligible_files(self, library):
        out = queue.Queue()
        counter = AtomicCounter()

        status = DirectoryScanner().scan(library, library / "Incoming", out, counter)

        paths = drain(out)
        assert status is ScanStatus.COMPLETED
        assert sorted(p.name for p in paths) == ["01 - Intro.mp3", "02 - Song.m4a"]
        assert counter.value == 2

    def test_excluded_subtree_is_never_visited(self, library, mocker):
        scandir = mocker.spy(os, "scandir")
        out = queue.Queue()

        DirectoryScanner().scan(library, library / "Incoming", out, AtomicCounter())

        visited = [str(call.args[0]) for call in scandir.call_args_list]
        assert str(library / "Incoming") not in visited
        assert all("new.mp3" not in str(p) for p in drain(out))

    def test_without_exclusion_walks_everything(self, library):
        out = queue.Queue()
        counter = AtomicCounter()

        DirectoryScanner().scan(library, None, out, counter)

        assert counter.value == 3

    def test_extension_match_is_case_insensitive(self, tmp_path):
        (tmp_path / "LOUD.MP3").write_bytes(b"")
        out = queue.Queue()

        DirectoryScanner().scan(tmp_path, None, out, AtomicCounter())

        assert [p.name for p in drain(out)] == ["LOUD.MP3"]

    def test_cancelled_before_start_emits_nothing(self, library):
        out = queue.Queue()
        counter = AtomicCounter()
        cancel = threading.Event()
        cancel.set()

        status = DirectoryScanner().scan(library, None, out, counter, cancel)

        assert status is ScanStatus.CANCELED
        assert drain(out) == []
        assert counter.value == 0

    def test_missing_root_still_terminates_stream(self, tmp_path):
        out = queue.Queue()

        with pytest.raises(ScanError):
            DirectoryScanner().scan(tmp_path / "missing", None, out, AtomicCounter())

        assert out.get_nowait() is SCAN_DONE


class TestIterAudioFiles:
    """Walk order and cancellation of the underlying generator."""

    def test_depth_first_name_order(self, tmp_path):
        (tmp_path / "b").mkdir()
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "deep").mkdir()
        (tmp_path / "z.mp3").write_bytes(b"")
        (tmp_path / "b" / "2.mp3").write_bytes(b"")
        (tmp_path / "a" / "1.mp3").write_bytes(b"")
        (tmp_path / "a" / "deep" / "0.mp3").write_bytes(b"")

        paths = list(DirectoryScanner().iter_audio_files(tmp_path))

        relative = [p.relative_to(tmp_path).as_posix() for p in paths]
        assert relative == ["z.mp3", "a/1.mp3", "a/deep/0.mp3", "b/2.mp3"]

    def test_cancellation_yields_prefix(self, tmp_path):
        for i in range(5):
            (tmp_path / f"{i}.mp3").write_bytes(b"")
        scanner = DirectoryScanner()
        full = list(scanner.iter_audio_files(tmp_path))

        cancel = threading.Event()
        partial = []
        for path in scanner.iter_audio_files(tmp_path, cancel_event=cancel):
            partial.append(path)
            if len(partial) == 2:
                cancel.set()

        assert partial == full[:2]


class TestAtomicCounter:

    def test_concurrent_increments(self):
        counter = AtomicCounter()

        def work():
            for _ in range(1000):
                counter.increment()

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter.value == 8000
