"""Shared fixtures for the releases-watcher test suite."""

from typing import Iterable, Tuple

import pytest

from api.schemas import ActualAlbum, LocalAlbum
from storage.database import LibraryDatabase


class FakeClock:
    """Manually advanced clock for cache and rate limiter tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db(tmp_path) -> LibraryDatabase:
    """A fresh SQLite store in a temporary directory."""
    return LibraryDatabase(tmp_path / "library.db")


@pytest.fixture
def publish_local(db):
    """Publish a local version holding the given (artist, album) pairs."""

    def _publish(pairs: Iterable[Tuple[str, str]]):
        version = db.create_local_version()
        for artist, name in pairs:
            db.insert_local_album(LocalAlbum(artist=artist, name=name), version)
        db.publish_local_version(version)
        return version

    return _publish


@pytest.fixture
def publish_actual(db):
    """Publish an actual version holding the given albums."""

    def _publish(albums: Iterable[ActualAlbum]):
        version = db.create_actual_version()
        for album in albums:
            db.insert_actual_album(album, version)
        db.publish_actual_version(version)
        return version

    return _publish
