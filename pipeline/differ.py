"""
Normalization and matching of local albums against catalog albums.

The Differ is a pure function of what it loads on each call: the latest
published local and actual versions, per-artist notification settings and
the exclusion lists. It keeps no state between calls.
"""

import logging
import re
from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional, Set, Tuple

from api.schemas import (
    ActualAlbum, ArtistSetting, ExcludedAlbum, MatchedAlbum,
    NormalizedKey, NotificationSetting,
)

logger = logging.getLogger(__name__)

BRACKETED = re.compile(r"[\(\[][^\)\]]*[\)\]]")

STAR = "★"


def remove_text_in_brackets(text: str) -> str:
    return BRACKETED.sub("", text)


def _is_kept(ch: str) -> bool:
    return ch.isalpha() or "0" <= ch <= "9" or ch == STAR


def normalize_string(text: str) -> str:
    """
    Matching form of a name: bracketed parts removed, lowercased, and only
    letters, ASCII digits and the star glyph kept.

    >>> normalize_string("Abbey Road [Deluxe Edition]")
    'abbeyroad'
    """
    text = remove_text_in_brackets(text or "").lower()
    return "".join(ch for ch in text if _is_kept(ch))


def normalize(artist: str, name: str) -> NormalizedKey:
    return NormalizedKey(artist=normalize_string(artist), name=normalize_string(name))


def _key(key: NormalizedKey) -> Tuple[str, str]:
    return key.artist, key.name


class Differ:
    """Computes the catalog albums missing from the local collection."""

    def __init__(
        self,
        db,
        settings=None,
        cutoff_year: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            db: Store providing published albums and exclusion lists
            settings: Collaborator with ``get_artist_settings()``; None means no settings
            cutoff_year: Albums released before this year are ignored
            logger: Injected logger
        """
        self.db = db
        self.settings = settings
        self.cutoff_year = cutoff_year
        self.logger = logger or logging.getLogger(__name__)

    def _load(self):
        local = self.db.get_local_albums()
        actual = self.db.get_actual_albums()
        artist_settings: List[ArtistSetting] = (
            self.settings.get_artist_settings() if self.settings is not None else []
        )
        excluded_albums: List[ExcludedAlbum] = self.db.get_excluded_albums()
        excluded_artists: List[str] = self.db.get_excluded_artists()
        self.logger.info(
            f"Loaded {len(local)} local albums, {len(actual)} actual albums, "
            f"{len(artist_settings)} artist settings, {len(excluded_albums)} excluded albums, "
            f"{len(excluded_artists)} excluded artists"
        )
        return local, actual, artist_settings, excluded_albums, excluded_artists

    @staticmethod
    def build_notification_lookup(artist_settings: Iterable[ArtistSetting]) -> Dict[str, NotificationSetting]:
        return {
            normalize_string(setting.artist_name): setting.notification
            for setting in artist_settings
        }

    def _make_policy(self, artist_settings, excluded_albums, excluded_artists):
        excluded_album_keys: Set[Tuple[str, str]] = {
            _key(normalize(album.artist, album.album)) for album in excluded_albums
        }
        excluded_artist_keys = {normalize_string(artist) for artist in excluded_artists}
        notifications = self.build_notification_lookup(artist_settings)

        def is_wanted(album: ActualAlbum, key: Tuple[str, str]) -> bool:
            if album.year is not None and self.cutoff_year and album.year < self.cutoff_year:
                return False
            if key in excluded_album_keys:
                return False
            if key[0] in excluded_artist_keys:
                return False
            notification = notifications.get(key[0])
            if notification is not None and not notification.is_release_in_scope(album.kind):
                self.logger.debug(
                    f"{album.kind.value} {album.artist} - {album.name} is outside "
                    f"'{notification.value}' scope, skipped"
                )
                return False
            return True

        return is_wanted

    def _check_key(self, key: Tuple[str, str], artist: str, name: str, source: str):
        if not key[0] or not key[1]:
            self.logger.warning(f"Empty normalized key for {source} album '{artist} - {name}'")

    def diff(self) -> List[ActualAlbum]:
        """
        Actual albums that are not owned locally and pass the exclusion,
        cutoff year and notification scope policy.
        """
        local, actual, artist_settings, excluded_albums, excluded_artists = self._load()
        is_wanted = self._make_policy(artist_settings, excluded_albums, excluded_artists)

        local_keys = {_key(normalize(album.artist, album.name)) for album in local}

        if self.cutoff_year:
            self.logger.info(f"Filtering albums released since {self.cutoff_year}")

        result: List[ActualAlbum] = []
        for album in actual:
            key = _key(normalize(album.artist, album.name))
            self._check_key(key, album.artist, album.name, "actual")
            if key in local_keys:
                continue
            if not is_wanted(album, key):
                continue
            result.append(album)

        self.logger.info(f"Found {len(result)} new releases")
        return result

    def matched(self) -> List[MatchedAlbum]:
        """
        Full local/actual correspondence table, one row per normalized key.

        Actual-only rows go through the same policy as ``diff``; rows with a
        local side always survive. When several catalog releases share a key
        the earliest one is kept.
        """
        local, actual, artist_settings, excluded_albums, excluded_artists = self._load()
        is_wanted = self._make_policy(artist_settings, excluded_albums, excluded_artists)

        rows: Dict[Tuple[str, str], Dict[str, object]] = {}

        for album in local:
            key = _key(normalize(album.artist, album.name))
            self._check_key(key, album.artist, album.name, "local")
            rows.setdefault(key, {}).setdefault("local", album)

        for album in actual:
            key = _key(normalize(album.artist, album.name))
            row = rows.setdefault(key, {})
            current = row.get("actual")
            if current is None or (album.year or 0) < (current.year or 0):
                row["actual"] = album

        result: List[MatchedAlbum] = []
        for key, row in rows.items():
            local_album = row.get("local")
            actual_album = row.get("actual")
            if local_album is None and not is_wanted(actual_album, key):
                continue
            result.append(MatchedAlbum(local=local_album, actual=actual_album))

        return sort_matched(result)


def _sort_key(matched: MatchedAlbum):
    if matched.actual is not None:
        return matched.actual.artist, matched.actual.year or 0, matched.actual.name, True
    return matched.local.artist, 0, matched.local.name, False


def sort_matched(rows: List[MatchedAlbum]) -> List[MatchedAlbum]:
    """
    Order rows by artist, then year when both rows have a catalog side, then
    name; catalog-bearing rows come before local-only rows on ties.
    """
    def compare(a: MatchedAlbum, b: MatchedAlbum) -> int:
        a_artist, a_year, a_name, a_actual = _sort_key(a)
        b_artist, b_year, b_name, b_actual = _sort_key(b)
        if a_artist != b_artist:
            return -1 if a_artist < b_artist else 1
        if a_actual and b_actual and a_year != b_year:
            return -1 if a_year < b_year else 1
        if a_name != b_name:
            return -1 if a_name < b_name else 1
        if a_actual != b_actual:
            return -1 if a_actual else 1
        return 0

    return sorted(rows, key=cmp_to_key(compare))
