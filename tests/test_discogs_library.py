"""Tests for the Discogs catalog library with a mocked web-service API."""

from unittest.mock import MagicMock

import pytest

from api.discogs import DiscogsAPI
from api.schemas import Kind
from caching.cache_manager import FreshnessCache
from catalog.discogs import DiscogsLibrary, get_kind, is_excluded
from utils.exceptions import (
    APICommunicationError, ArtistNotFoundError, CatalogError, ConfigurationError,
)

ARTIST_ID = 42


def release_doc(release_id, title, descriptions, year=2012, styles=None, artist_id=ARTIST_ID):
    return {
        "id": release_id,
        "title": title,
        "year": year,
        "uri": f"https://www.discogs.com/release/{release_id}-{title.replace(' ', '-')}",
        "artists": [{"id": artist_id, "name": "Muse"}],
        "formats": [{"name": "Vinyl", "descriptions": descriptions}],
        "styles": styles or [],
    }


RELEASES = {
    1: release_doc(1, "The 2nd Law", ["LP", "Album"]),
    3: release_doc(3, "Greatest Hits", ["Compilation"]),
    4: release_doc(4, "Madness", ["12\"", "EP"]),
    5: release_doc(5, "Twilight", ["Album"], styles=["Soundtrack"]),
    6: release_doc(6, "Box", ["Box Set"]),
}


@pytest.fixture
def api():
    api = MagicMock()
    api.search_artists.return_value = {"results": [{"id": ARTIST_ID, "title": "Muse"}]}
    pages = {
        1: {"pagination": {"page": 1, "pages": 2}, "releases": [
            {"id": 10, "type": "master", "role": "Main", "main_release": 1},
            {"id": 2, "type": "release", "role": "Main"},
            {"id": 11, "type": "master", "role": "Appearance", "main_release": 7},
            {"id": 12, "type": "master", "role": "Main", "main_release": 3},
        ]},
        2: {"pagination": {"page": 2, "pages": 2}, "releases": [
            {"id": 13, "type": "master", "role": "Main", "main_release": 4},
            {"id": 14, "type": "master", "role": "Main", "main_release": 5},
            {"id": 15, "type": "master", "role": "Main", "main_release": 6},
        ]},
    }
    api.artist_releases.side_effect = lambda artist_id, page, per_page: pages[page]
    api.release.side_effect = lambda rid: RELEASES[rid]
    return api


@pytest.fixture
def library(api, db, clock) -> DiscogsLibrary:
    return DiscogsLibrary(api, FreshnessCache(db, clock=clock), MagicMock())


class TestHelpers:

    @pytest.mark.parametrize("descriptions, kind", [
        (["LP", "Album"], Kind.ALBUM),
        (["7\"", "Single"], Kind.SINGLE),
        (["EP"], Kind.EP),
        (["Album", "EP"], Kind.ALBUM),
        (["Box Set"], Kind.UNKNOWN),
        ([], Kind.UNKNOWN),
    ])
    def test_get_kind(self, descriptions, kind):
        assert get_kind(release_doc(1, "x", descriptions)) is kind

    def test_is_excluded(self):
        assert is_excluded(release_doc(1, "x", ["Compilation"]))
        assert is_excluded(release_doc(1, "x", ["Unofficial Release", "Album"]))
        assert is_excluded(release_doc(1, "x", ["Album"], styles=["Score"]))
        assert not is_excluded(release_doc(1, "x", ["Album"], styles=["Alternative Rock"]))


class TestGetReleasesForArtist:

    def test_resolves_main_masters(self, library):
        albums = list(library.get_releases_for_artist("Muse"))

        assert [(a.id, a.name, a.kind) for a in albums] == [
            ("1", "The 2nd Law", Kind.ALBUM),
            ("4", "Madness", Kind.EP),
        ]
        assert all(a.artist == "Muse" for a in albums)
        assert albums[0].url.startswith("https://www.discogs.com/release/1")
        assert albums[0].year == 2012

    def test_pages_are_one_based(self, library, api):
        list(library.get_releases_for_artist("Muse"))

        pages = [call.args[1] for call in api.artist_releases.call_args_list]
        assert pages == [1, 2]

    def test_appearances_are_never_looked_up(self, library, api):
        list(library.get_releases_for_artist("Muse"))

        looked_up = {call.args[0] for call in api.release.call_args_list}
        assert looked_up == {1, 3, 4, 5, 6}

    def test_warmed_releases_are_not_fetched(self, library, api):
        list(library.get_releases_for_artist("Muse"))
        api.release.reset_mock()

        warmed = library.warm_cache()
        list(library.get_releases_for_artist("Muse", warmed))

        api.release.assert_not_called()

    def test_artist_not_found(self, library, api):
        api.search_artists.return_value = {"results": []}

        with pytest.raises(ArtistNotFoundError):
            list(library.get_releases_for_artist("Nobody"))

    def test_page_failure_aborts_artist(self, library, api):
        api.artist_releases.side_effect = APICommunicationError("GET failed: 429", 429)

        with pytest.raises(APICommunicationError):
            list(library.get_releases_for_artist("Muse"))


    def test_malformed_search_result_is_a_catalog_error(self, library, api):
        api.search_artists.return_value = {"results": [{"title": "Muse"}]}

        with pytest.raises(CatalogError, match="Malformed Discogs response"):
            list(library.get_releases_for_artist("Muse"))

class TestDiscogsAPI:

    def test_token_is_required(self):
        with pytest.raises(ConfigurationError):
            DiscogsAPI.create("", "Releases Watcher/1.0")

    def test_requests(self):
        client = MagicMock()
        api = DiscogsAPI(client)

        api.artist_releases(42, page=2)

        client.get_json.assert_called_once_with("/artists/42/releases", params={
            "page": "2", "per_page": "500", "sort": "year", "sort_order": "asc",
        })
