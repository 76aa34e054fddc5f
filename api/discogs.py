"""
Discogs API fetchers.

Every method maps to exactly one HTTP request; caching and rate limiting
are applied by the catalog library that calls them.
"""

from typing import Any, Dict

from api.client import CatalogHTTPClient
from utils.exceptions import ConfigurationError

DISCOGS_BASE = "https://api.discogs.com"
DISCOGS_RELEASE_URL = "https://www.discogs.com/release/{id}"


class DiscogsAPI:
    """Raw Discogs lookups returning decoded JSON documents."""

    def __init__(self, client: CatalogHTTPClient):
        self.client = client

    @classmethod
    def create(cls, token: str, user_agent: str, timeout: float = 30.0) -> "DiscogsAPI":
        if not token:
            raise ConfigurationError("catalog.discogs_token is required for the discogs provider")
        client = CatalogHTTPClient(
            DISCOGS_BASE,
            user_agent=user_agent,
            timeout=timeout,
            headers={"Authorization": f"Discogs token={token}"},
        )
        return cls(client)

    def search_artists(self, query: str, per_page: int = 300) -> Dict[str, Any]:
        return self.client.get_json("/database/search", params={
            "type": "artist",
            "q": query,
            "per_page": str(per_page),
        })

    def artist_releases(self, artist_id: int, page: int = 1, per_page: int = 500) -> Dict[str, Any]:
        return self.client.get_json(f"/artists/{artist_id}/releases", params={
            "page": str(page),
            "per_page": str(per_page),
            "sort": "year",
            "sort_order": "asc",
        })

    def release(self, release_id: int) -> Dict[str, Any]:
        return self.client.get_json(f"/releases/{release_id}")
