"""
MusicBrainz web service (ws/2) fetchers.

Every method maps to exactly one HTTP request; caching and rate limiting
are applied by the catalog library that calls them.
"""

from typing import Any, Dict

from api.client import CatalogHTTPClient

MB_BASE = "https://musicbrainz.org/ws/2"
MB_RELEASE_URL = "https://musicbrainz.org/release/{id}"


def build_user_agent(user_agent: str, contact: str = "") -> str:
    if contact:
        return f"{user_agent} ( {contact} )"
    return user_agent


class MusicBrainzAPI:
    """Raw MusicBrainz lookups returning decoded JSON documents."""

    def __init__(self, client: CatalogHTTPClient):
        self.client = client

    @classmethod
    def create(cls, user_agent: str, contact: str = "", timeout: float = 30.0) -> "MusicBrainzAPI":
        client = CatalogHTTPClient(
            MB_BASE,
            user_agent=build_user_agent(user_agent, contact),
            timeout=timeout,
        )
        return cls(client)

    def search_artists(self, query: str, limit: int = 25) -> Dict[str, Any]:
        return self.client.get_json("/artist", params={
            "query": query,
            "limit": str(limit),
            "fmt": "json",
        })

    def browse_release_groups(self, artist_id: str, offset: int = 0, limit: int = 100) -> Dict[str, Any]:
        return self.client.get_json("/release-group", params={
            "artist": artist_id,
            "limit": str(limit),
            "offset": str(offset),
            "fmt": "json",
        })

    def lookup_release_group(self, release_group_id: str) -> Dict[str, Any]:
        return self.client.get_json(f"/release-group/{release_group_id}", params={
            "inc": "releases",
            "fmt": "json",
        })

    def lookup_release(self, release_id: str) -> Dict[str, Any]:
        return self.client.get_json(f"/release/{release_id}", params={
            "inc": "release-groups+artist-credits",
            "fmt": "json",
        })
