"""
Discogs catalog library.

Only master releases where the artist has the Main role are considered, each
represented by its main release. Kind comes from the release's format
descriptions.
"""

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional

from api.discogs import DISCOGS_RELEASE_URL, DiscogsAPI
from api.rate_limiter import RateLimiter
from api.schemas import ActualAlbum, Kind
from caching.cache_manager import FreshnessCache
from catalog.base import EMPTY_SNAPSHOT, Freshness
from utils.exceptions import ArtistNotFoundError, CatalogError

ARTIST_SEARCH_ENTITY = "discogs_artist_search"
ARTIST_RELEASES_ENTITY = "discogs_artist_releases"
RELEASE_ENTITY = "discogs_release"

RELEASES_PAGE_SIZE = 500

EXCLUDED_DESCRIPTIONS = {"compilation", "mixed", "unofficial release", "promo"}
EXCLUDED_STYLES = {"Soundtrack", "Score"}


def format_descriptions(release: Dict[str, Any]) -> List[str]:
    descriptions = []
    for release_format in release.get("formats") or []:
        for description in release_format.get("descriptions") or []:
            descriptions.append(description.lower())
    return descriptions


def get_kind(release: Dict[str, Any]) -> Kind:
    descriptions = format_descriptions(release)
    if "album" in descriptions or "lp" in descriptions:
        return Kind.ALBUM
    if "single" in descriptions:
        return Kind.SINGLE
    if "ep" in descriptions:
        return Kind.EP
    return Kind.UNKNOWN


def is_excluded(release: Dict[str, Any]) -> bool:
    if any(d in EXCLUDED_DESCRIPTIONS for d in format_descriptions(release)):
        return True
    return any(style in EXCLUDED_STYLES for style in release.get("styles") or [])


def is_main_artist(release: Dict[str, Any], artist_id: int) -> bool:
    artists = release.get("artists") or []
    return bool(artists) and artists[0].get("id") == artist_id


class DiscogsLibrary:
    """Resolves tracked artists to Discogs master releases."""

    name = "discogs"

    def __init__(
        self,
        api: DiscogsAPI,
        cache: FreshnessCache,
        limiter: RateLimiter,
        freshness: Freshness = Freshness(),
        logger: Optional[logging.Logger] = None,
    ):
        self.api = api
        self.cache = cache
        self.limiter = limiter
        self.freshness = freshness
        self.logger = logger or logging.getLogger(__name__)

    def _api(self) -> DiscogsAPI:
        self.limiter.acquire()
        return self.api

    def warm_cache(self) -> Mapping[str, Any]:
        snapshot = self.cache.get_all_cache_entities(RELEASE_ENTITY, self.freshness.release)
        self.logger.info(f"Loaded {len(snapshot)} releases from cache")
        return snapshot

    def get_artist_id(self, artist: str) -> int:
        search = self.cache.get_cached(
            ARTIST_SEARCH_ENTITY, artist, self.freshness.artist_search,
            lambda: self._api().search_artists(artist),
        )
        results = search.get("results") or []
        if not results:
            raise ArtistNotFoundError(artist, "Discogs")
        return results[0]["id"]

    def get_artist_releases(self, artist_id: int, page: int) -> Dict[str, Any]:
        return self.cache.get_cached(
            ARTIST_RELEASES_ENTITY, f"{artist_id}_{page}", self.freshness.release_groups,
            lambda: self._api().artist_releases(artist_id, page, RELEASES_PAGE_SIZE),
        )

    def get_release(self, release_id: int, warmed: Mapping[str, Any]) -> Dict[str, Any]:
        key = str(release_id)
        if key in warmed:
            self.logger.debug(f"Loaded release {release_id} from warmed cache")
            return warmed[key]
        return self.cache.get_cached(
            RELEASE_ENTITY, key, self.freshness.release,
            lambda: self._api().release(release_id),
        )

    def _resolve(self, artist: str, warmed: Mapping[str, Any]) -> List[ActualAlbum]:
        artist_id = self.get_artist_id(artist)
        albums: List[ActualAlbum] = []

        page = 1
        while True:
            response = self.get_artist_releases(artist_id, page)
            entries = response.get("releases") or []
            pages = (response.get("pagination") or {}).get("pages") or 1

            for i, entry in enumerate(entries):
                if entry.get("type") != "master" or entry.get("role") != "Main":
                    continue
                main_release = entry.get("main_release")
                if main_release is None:
                    continue
                self.logger.debug(f"Fetching {i + 1} of {len(entries)} [page {page}/{pages}]")

                release = self.get_release(main_release, warmed)
                if is_excluded(release):
                    continue
                kind = get_kind(release)
                if kind is Kind.UNKNOWN:
                    self.logger.debug(f"Unknown kind of release {main_release}, skipped")
                    continue
                if not is_main_artist(release, artist_id):
                    continue

                albums.append(ActualAlbum(
                    id=str(release.get("id", main_release)),
                    artist=artist,
                    name=release.get("title") or entry.get("title") or "",
                    year=release.get("year"),
                    kind=kind,
                    url=release.get("uri") or DISCOGS_RELEASE_URL.format(id=main_release),
                ))

            if page >= pages or not entries:
                break
            page += 1

        return albums

    def get_releases_for_artist(
        self, artist: str, warmed: Optional[Mapping[str, Any]] = None
    ) -> Iterator[ActualAlbum]:
        """Yield the artist's Album/EP/Single releases, resolved as a whole."""
        try:
            albums = self._resolve(artist, warmed if warmed is not None else EMPTY_SNAPSHOT)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise CatalogError(f"Malformed Discogs response for '{artist}': {e!r}")
        self.logger.debug(f"Resolved {len(albums)} releases for {artist}")
        yield from albums
