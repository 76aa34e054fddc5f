"""
Contract shared by the catalog libraries.

A catalog library resolves a tracked artist name to its studio releases.
Implementations share no code through inheritance; each owns its API
fetcher, a Freshness Cache and one rate limiter for all of its calls.
"""

from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Protocol

from api.schemas import ActualAlbum

EMPTY_SNAPSHOT: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class Freshness:
    """Maximum cache age per catalog entity kind."""

    artist_search: timedelta = timedelta(days=90)
    release_groups: timedelta = timedelta(days=10)
    release: timedelta = timedelta(days=10)

    @classmethod
    def from_config(cls, freshness_days: Dict[str, float]) -> "Freshness":
        defaults = cls()
        return cls(
            artist_search=timedelta(days=freshness_days.get(
                'artist_search', defaults.artist_search.days)),
            release_groups=timedelta(days=freshness_days.get(
                'release_groups', defaults.release_groups.days)),
            release=timedelta(days=freshness_days.get(
                'release', defaults.release.days)),
        )


class CatalogLibrary(Protocol):
    name: str

    def warm_cache(self) -> Mapping[str, Any]:
        """Load every fresh cached release once, as a read-only snapshot."""
        ...

    def get_releases_for_artist(
        self, artist: str, warmed: Optional[Mapping[str, Any]] = None
    ) -> Iterator[ActualAlbum]:
        """Yield the artist's Album/EP/Single releases."""
        ...
