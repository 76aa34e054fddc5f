"""
SQLite-backed versioned store for local albums, actual albums and the catalog cache.

Each sync writes into a fresh unpublished version and publishes it at the end
with a single flag flip, so readers only ever see complete snapshots.
"""

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from api.schemas import ActualAlbum, ExcludedAlbum, Kind, LocalAlbum, Version
from utils.exceptions import StorageError, UnknownKindError

logger = logging.getLogger(__name__)

LOCAL = "local"
ACTUAL = "actual"

SCHEMA = """
CREATE TABLE IF NOT EXISTS versions (
    version_id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    published INTEGER NOT NULL DEFAULT 0,
    created_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_versions_kind_published ON versions(kind, published);

CREATE TABLE IF NOT EXISTS local_albums (
    version_id INTEGER NOT NULL,
    artist TEXT NOT NULL,
    name TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_local_albums_version ON local_albums(version_id);

CREATE TABLE IF NOT EXISTS actual_albums (
    version_id INTEGER NOT NULL,
    id TEXT NOT NULL,
    artist TEXT,
    name TEXT,
    year INTEGER,
    kind TEXT,
    url TEXT
);
CREATE INDEX IF NOT EXISTS idx_actual_albums_version ON actual_albums(version_id);

CREATE TABLE IF NOT EXISTS excluded_albums (
    artist TEXT NOT NULL,
    album TEXT NOT NULL,
    PRIMARY KEY (artist, album)
);

CREATE TABLE IF NOT EXISTS excluded_artists (
    artist TEXT PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS cache (
    entity TEXT NOT NULL,
    id TEXT NOT NULL,
    value BLOB NOT NULL,
    ts REAL NOT NULL,
    PRIMARY KEY (entity, id)
);
"""

PUBLISHED_VERSION = "SELECT version_id FROM versions WHERE kind = ? AND published = 1"


class LibraryDatabase:
    """Repository operations over a single SQLite file."""

    def __init__(self, db_file: Path, timeout: float = 30.0, logger: Optional[logging.Logger] = None):
        self.db_file = Path(db_file).expanduser()
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.db_file.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self):
        """Initialize the SQLite database schema."""
        with self._connect("initialization") as conn:
            conn.executescript(SCHEMA)
        self.logger.debug(f"Initialized library database: {self.db_file}")

    @contextmanager
    def _connect(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and always close it."""
        try:
            conn = sqlite3.connect(str(self.db_file), timeout=self.timeout)
        except sqlite3.Error as e:
            raise StorageError(operation, str(e))
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(operation, str(e))
        finally:
            conn.close()

    # Versions

    def _create_version(self, kind: str) -> Version:
        with self._connect(f"create {kind} version") as conn:
            cursor = conn.execute(
                "INSERT INTO versions (kind, published, created_at) VALUES (?, 0, ?)",
                (kind, time.time()),
            )
            version_id = cursor.lastrowid
        self.logger.debug(f"Created {kind} version {version_id}")
        return Version(version_id=version_id, kind=kind, published=False)

    def _publish_version(self, kind: str, version: Version):
        with self._connect(f"publish {kind} version") as conn:
            row = conn.execute(
                "SELECT kind FROM versions WHERE version_id = ?", (version.version_id,)
            ).fetchone()
            if row is None or row[0] != kind:
                raise StorageError(f"publish {kind} version",
                                   f"version {version.version_id} is not a {kind} version")
            conn.execute("UPDATE versions SET published = 0 WHERE kind = ? AND published = 1", (kind,))
            conn.execute("UPDATE versions SET published = 1 WHERE version_id = ?", (version.version_id,))
        self.logger.info(f"Published {kind} version {version.version_id}")

    def create_local_version(self) -> Version:
        return self._create_version(LOCAL)

    def create_actual_version(self) -> Version:
        return self._create_version(ACTUAL)

    def publish_local_version(self, version: Version):
        self._publish_version(LOCAL, version)

    def publish_actual_version(self, version: Version):
        self._publish_version(ACTUAL, version)

    def get_published_version_id(self, kind: str) -> Optional[int]:
        with self._connect(f"get published {kind} version") as conn:
            row = conn.execute(PUBLISHED_VERSION, (kind,)).fetchone()
        return row[0] if row else None

    def prune_versions(self, kind: str, keep: int) -> int:
        """
        Delete all but the ``keep`` most recent versions of a stream.

        The published version is always kept. Returns the number of versions removed.
        """
        table = "local_albums" if kind == LOCAL else "actual_albums"
        with self._connect(f"prune {kind} versions") as conn:
            rows = conn.execute(
                "SELECT version_id FROM versions WHERE kind = ? AND published = 0 "
                "ORDER BY version_id DESC",
                (kind,),
            ).fetchall()
            stale = [r[0] for r in rows[max(keep - 1, 0):]]
            for version_id in stale:
                conn.execute(f"DELETE FROM {table} WHERE version_id = ?", (version_id,))
                conn.execute("DELETE FROM versions WHERE version_id = ?", (version_id,))
        if stale:
            self.logger.info(f"Pruned {len(stale)} old {kind} versions")
        return len(stale)

    # Albums

    def insert_local_album(self, album: LocalAlbum, version: Version):
        with self._connect("insert local album") as conn:
            conn.execute(
                "INSERT INTO local_albums (version_id, artist, name) VALUES (?, ?, ?)",
                (version.version_id, album.artist, album.name),
            )

    def insert_actual_album(self, album: ActualAlbum, version: Version):
        with self._connect("insert actual album") as conn:
            conn.execute(
                "INSERT INTO actual_albums (version_id, id, artist, name, year, kind, url) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (version.version_id, album.id, album.artist, album.name,
                 album.year, album.kind.value, album.url),
            )

    def get_local_albums(self) -> List[LocalAlbum]:
        """Albums of the latest published local version."""
        with self._connect("get local albums") as conn:
            rows = conn.execute(
                f"SELECT version_id, artist, name FROM local_albums "
                f"WHERE version_id = ({PUBLISHED_VERSION}) ORDER BY rowid",
                (LOCAL,),
            ).fetchall()
        return [LocalAlbum(version_id=v, artist=a, name=n) for v, a, n in rows]

    def get_actual_albums(self) -> List[ActualAlbum]:
        """
        Albums of the latest published actual version.

        Rows whose kind text is not a known Kind are logged and skipped.
        """
        with self._connect("get actual albums") as conn:
            rows = conn.execute(
                f"SELECT version_id, id, artist, name, year, kind, url FROM actual_albums "
                f"WHERE version_id = ({PUBLISHED_VERSION}) ORDER BY rowid",
                (ACTUAL,),
            ).fetchall()

        albums = []
        for version_id, album_id, artist, name, year, kind, url in rows:
            try:
                parsed_kind = Kind.parse(kind)
            except UnknownKindError as e:
                self.logger.warning(f"Skipping actual album {album_id} ({artist} - {name}): {e}")
                continue
            albums.append(ActualAlbum(
                id=album_id,
                artist=artist or "",
                name=name or "",
                year=year,
                kind=parsed_kind,
                url=url,
                version_id=version_id,
            ))
        return albums

    def get_local_artists(self) -> List[str]:
        """Distinct non-empty artists of the latest published local version."""
        with self._connect("get local artists") as conn:
            rows = conn.execute(
                f"SELECT DISTINCT artist FROM local_albums "
                f"WHERE version_id = ({PUBLISHED_VERSION}) AND artist != '' ORDER BY artist",
                (LOCAL,),
            ).fetchall()
        return [r[0] for r in rows]

    # Exclusions

    def get_excluded_artists(self) -> List[str]:
        with self._connect("get excluded artists") as conn:
            rows = conn.execute("SELECT artist FROM excluded_artists ORDER BY artist").fetchall()
        return [r[0] for r in rows]

    def get_excluded_albums(self) -> List[ExcludedAlbum]:
        with self._connect("get excluded albums") as conn:
            rows = conn.execute(
                "SELECT artist, album FROM excluded_albums ORDER BY artist, album"
            ).fetchall()
        return [ExcludedAlbum(artist=a, album=n) for a, n in rows]

    def add_excluded_artist(self, artist: str):
        with self._connect("add excluded artist") as conn:
            conn.execute("INSERT OR IGNORE INTO excluded_artists (artist) VALUES (?)", (artist,))

    def add_excluded_album(self, artist: str, album: str):
        with self._connect("add excluded album") as conn:
            conn.execute(
                "INSERT OR IGNORE INTO excluded_albums (artist, album) VALUES (?, ?)",
                (artist, album),
            )

    # Cache

    def get_cache_entry(self, entity: str, entity_id: str, min_timestamp: float) -> Optional[bytes]:
        """Stored value for (entity, id) if it was written at or after ``min_timestamp``."""
        with self._connect("get cache entry") as conn:
            row = conn.execute(
                "SELECT value FROM cache WHERE entity = ? AND id = ? AND ts >= ?",
                (entity, entity_id, min_timestamp),
            ).fetchone()
        return bytes(row[0]) if row else None

    def insert_cache_entry(self, entity: str, entity_id: str, value: bytes, timestamp: float):
        """Store a value, replacing any previous one for the same key."""
        with self._connect("insert cache entry") as conn:
            conn.execute("""
                INSERT INTO cache (entity, id, value, ts) VALUES (?, ?, ?, ?)
                ON CONFLICT(entity, id) DO UPDATE SET
                    value = excluded.value,
                    ts = excluded.ts
            """, (entity, entity_id, sqlite3.Binary(value), timestamp))

    def get_all_cache_entries(self, entity: str, min_timestamp: float) -> Dict[str, bytes]:
        with self._connect("get all cache entries") as conn:
            rows = conn.execute(
                "SELECT id, value FROM cache WHERE entity = ? AND ts >= ?",
                (entity, min_timestamp),
            ).fetchall()
        return {entity_id: bytes(value) for entity_id, value in rows}
