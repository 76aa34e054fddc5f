"""
MusicBrainz catalog library.

Resolution per artist:
  1. artist search (cached, long freshness) -> first artist id
  2. release-group browse pages of 100 (cached per page) until the count is exhausted
  3. per studio release group: group lookup -> first release -> release lookup
     (cached by release id, pre-warmed in bulk at the start of a run)

All API calls pass through one rate limiter owned by the library.
"""

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional

from api.musicbrainz import MB_RELEASE_URL, MusicBrainzAPI
from api.rate_limiter import RateLimiter
from api.schemas import ActualAlbum, Kind
from caching.cache_manager import FreshnessCache
from catalog.base import EMPTY_SNAPSHOT, Freshness
from utils.exceptions import ArtistNotFoundError, CatalogError

ARTIST_SEARCH_ENTITY = "musicbrainz_artist_search"
RELEASE_GROUPS_ENTITY = "musicbrainz_artist_releasegroups"
RELEASE_GROUP_ENTITY = "musicbrainz_releasegroup"
RELEASE_ENTITY = "musicbrainz_release"

BROWSE_PAGE_SIZE = 100

PRIMARY_TYPES = {
    "Album": Kind.ALBUM,
    "EP": Kind.EP,
    "Single": Kind.SINGLE,
}

EXCLUDED_SECONDARY_TYPES = {
    "Compilation", "Live", "Remix", "DJ-mix", "Demo", "Mixtape/Street",
    "Soundtrack", "Audiobook", "Audio drama", "Spokenword", "Interview",
}

EXCLUDED_STATUSES = {
    "Bootleg", "Promotion", "Withdrawn", "Expunged", "Pseudo-Release",
}


def parse_year(date: Optional[str]) -> Optional[int]:
    """Year from a MusicBrainz partial date ('2016', '2016-01', '2016-01-08')."""
    if not date or len(date) < 4 or not date[:4].isdigit():
        return None
    year = int(date[:4])
    return year or None


def is_studio_release_group(release_group: Dict[str, Any]) -> bool:
    if release_group.get("primary-type") not in PRIMARY_TYPES:
        return False
    secondary_types = release_group.get("secondary-types") or []
    return not any(t in EXCLUDED_SECONDARY_TYPES for t in secondary_types)


def main_artist_id(release: Dict[str, Any]) -> Optional[str]:
    credits = release.get("artist-credit") or []
    if not credits:
        return None
    return (credits[0].get("artist") or {}).get("id")


class MusicBrainzLibrary:
    """Resolves tracked artists to MusicBrainz studio releases."""

    name = "musicbrainz"

    def __init__(
        self,
        api: MusicBrainzAPI,
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

    def _api(self) -> MusicBrainzAPI:
        self.limiter.acquire()
        return self.api

    def warm_cache(self) -> Mapping[str, Any]:
        snapshot = self.cache.get_all_cache_entities(RELEASE_ENTITY, self.freshness.release)
        self.logger.info(f"Loaded {len(snapshot)} releases from cache")
        return snapshot

    def get_artist_id(self, artist: str) -> str:
        result = self.cache.get_cached(
            ARTIST_SEARCH_ENTITY, artist, self.freshness.artist_search,
            lambda: self._api().search_artists(artist),
        )
        artists = result.get("artists") or []
        if not artists:
            raise ArtistNotFoundError(artist, "MusicBrainz")
        return artists[0]["id"]

    def get_release_groups_page(self, artist_id: str, offset: int) -> Dict[str, Any]:
        return self.cache.get_cached(
            RELEASE_GROUPS_ENTITY, f"{artist_id}_{offset}", self.freshness.release_groups,
            lambda: self._api().browse_release_groups(artist_id, offset, BROWSE_PAGE_SIZE),
        )

    def get_release_group(self, release_group_id: str) -> Dict[str, Any]:
        return self.cache.get_cached(
            RELEASE_GROUP_ENTITY, release_group_id, self.freshness.release_groups,
            lambda: self._api().lookup_release_group(release_group_id),
        )

    def get_release(self, release_id: str, warmed: Mapping[str, Any]) -> Dict[str, Any]:
        if release_id in warmed:
            self.logger.debug(f"Loaded release {release_id} from warmed cache")
            return warmed[release_id]
        return self.cache.get_cached(
            RELEASE_ENTITY, release_id, self.freshness.release,
            lambda: self._api().lookup_release(release_id),
        )

    def iter_release_groups(self, artist: str, artist_id: str) -> Iterator[Dict[str, Any]]:
        offset = 0
        while True:
            self.logger.debug(f"Checking release groups for {artist} (offset {offset})")
            page = self.get_release_groups_page(artist_id, offset)
            groups = page.get("release-groups") or []
            yield from groups
            offset += len(groups)
            total = page.get("release-group-count")
            if not groups or not isinstance(total, int) or offset >= total:
                break

    def _resolve(self, artist: str, warmed: Mapping[str, Any]) -> List[ActualAlbum]:
        artist_id = self.get_artist_id(artist)
        albums: List[ActualAlbum] = []

        for group in self.iter_release_groups(artist, artist_id):
            if not is_studio_release_group(group):
                continue
            kind = PRIMARY_TYPES[group["primary-type"]]

            group_details = self.get_release_group(group["id"])
            releases = group_details.get("releases") or []
            if not releases:
                continue
            release_id = releases[0]["id"]

            try:
                release = self.get_release(release_id, warmed)
            except CatalogError as e:
                self.logger.warning(f"Skipping release {release_id} of '{artist}': {e}")
                continue

            if release.get("status") in EXCLUDED_STATUSES:
                continue
            if main_artist_id(release) != artist_id:
                self.logger.debug(f"Release {release_id} is not by {artist} as main artist, skipped")
                continue

            albums.append(ActualAlbum(
                id=release_id,
                artist=artist,
                name=release.get("title") or group.get("title") or "",
                year=parse_year(release.get("date")) or parse_year(group.get("first-release-date")),
                kind=kind,
                url=MB_RELEASE_URL.format(id=release_id),
            ))

        return albums

    def get_releases_for_artist(
        self, artist: str, warmed: Optional[Mapping[str, Any]] = None
    ) -> Iterator[ActualAlbum]:
        """
        Yield the artist's Album/EP/Single releases.

        The whole artist is resolved before the first album is yielded, so a
        failure mid-way yields nothing for that artist.

        Raises:
            ArtistNotFoundError: If the search returns no artist
            CatalogError: If any API call fails or a response is malformed
        """
        try:
            albums = self._resolve(artist, warmed if warmed is not None else EMPTY_SNAPSHOT)
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise CatalogError(f"Malformed MusicBrainz response for '{artist}': {e!r}")
        self.logger.debug(f"Resolved {len(albums)} releases for {artist}")
        yield from albums
