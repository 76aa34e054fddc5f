"""Tests for the Google Sheets collaborator with a mocked Sheets service."""

from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from api.schemas import ActualAlbum, Kind, LocalAlbum, MatchedAlbum, NotificationSetting
from reporting.sheets import (
    RELEASES_CLEAR_RANGE, RELEASES_RANGE, SETTINGS_DATA_RANGE, SETTINGS_HEADER_RANGE,
    GoogleSheets,
)
from utils.exceptions import ConfigurationError, ReportingError, SettingsError


def http_error(status=500, message="backend error"):
    resp = MagicMock(status=status, reason=message)
    content = ('{"error": {"message": "%s"}}' % message).encode("utf-8")
    return HttpError(resp, content)


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def values(service):
    return service.spreadsheets.return_value.values.return_value


@pytest.fixture
def sheets(service) -> GoogleSheets:
    return GoogleSheets(service, "spreadsheet-id")


def sheet_contents(values, header, rows):
    """Make values().get() return the header and data ranges in read order."""
    values.get.return_value.execute.side_effect = [
        {"values": [header]} if header else {},
        {"values": rows},
    ]


def written(values, value_range):
    for call in values.update.call_args_list:
        if call.kwargs["range"] == value_range:
            return call.kwargs["body"]["values"]
    return None


class TestGetArtistSettings:

    def test_parses_rows(self, sheets, values):
        sheet_contents(values, ["Artist", "Notification"], [
            ["Queen", "Albums only"],
            ["Blur"],
            ["Muse", ""],
            [],
            ["  ", "Do not track"],
            ["Björk", "Do not track"],
        ])

        settings = sheets.get_artist_settings()

        assert [(s.artist_name, s.notification) for s in settings] == [
            ("Queen", NotificationSetting.ALBUMS_ONLY),
            ("Blur", NotificationSetting.ALL_RELEASES),
            ("Muse", NotificationSetting.ALL_RELEASES),
            ("Björk", NotificationSetting.DO_NOT_TRACK),
        ]

    def test_unknown_value_names_the_row(self, sheets, values):
        sheet_contents(values, ["Artist", "Notification"], [
            ["Queen", "Albums only"],
            ["Blur", "Sometimes"],
        ])

        with pytest.raises(SettingsError, match="row 3"):
            sheets.get_artist_settings()

    def test_http_error(self, sheets, values):
        values.get.return_value.execute.side_effect = http_error(403, "forbidden")

        with pytest.raises(SettingsError, match="forbidden"):
            sheets.get_artist_settings()


class TestUpdateArtistsInSettings:

    def test_keeps_existing_values_and_sorts(self, sheets, values):
        sheet_contents(values, ["Artist", "Notification"], [["Queen", "Albums only"]])

        sheets.update_artists_in_settings([" Muse ", "Queen", "Blur", "Muse", ""])

        values.clear.assert_called_once_with(
            spreadsheetId="spreadsheet-id", range=SETTINGS_DATA_RANGE, body={}
        )
        assert written(values, SETTINGS_DATA_RANGE) == [
            ["Blur", "All releases"],
            ["Muse", "All releases"],
            ["Queen", "Albums only"],
        ]
        assert written(values, SETTINGS_HEADER_RANGE) is None

    def test_writes_missing_header(self, sheets, values):
        sheet_contents(values, None, [])

        sheets.update_artists_in_settings(["Queen"])

        assert written(values, SETTINGS_HEADER_RANGE) == [["Artist", "Notification"]]

    def test_no_artists_only_clears(self, sheets, values):
        sheet_contents(values, ["Artist", "Notification"], [])

        sheets.update_artists_in_settings([])

        values.clear.assert_called_once()
        values.update.assert_not_called()


class TestUpdateReleases:

    def test_clear_then_write(self, sheets, values):
        matched = [
            MatchedAlbum(
                local=LocalAlbum(artist="Queen", name="Jazz"),
                actual=ActualAlbum(id="r1", artist="Queen", name="Jazz", year=1978,
                                   kind=Kind.ALBUM, url="https://musicbrainz.org/release/r1"),
            ),
            MatchedAlbum(actual=ActualAlbum(id="r2", artist="Queen", name="Five Live",
                                            year=None, kind=Kind.EP)),
            MatchedAlbum(local=LocalAlbum(artist="Queen", name="Old Bootleg")),
        ]

        sheets.update_releases(matched)

        values.clear.assert_called_once_with(
            spreadsheetId="spreadsheet-id", range=RELEASES_CLEAR_RANGE, body={}
        )
        assert written(values, RELEASES_RANGE) == [
            ["Artist", "Album", "Local artist", "Local album", "Kind", "Year", "Link", "Status"],
            ["Queen", "Jazz", "Queen", "Jazz", "Album", "1978",
             "https://musicbrainz.org/release/r1", "In collection"],
            ["Queen", "Five Live", "", "", "EP", "", "", "New"],
            ["", "", "Queen", "Old Bootleg", "", "", "", "Not found"],
        ]

    def test_http_error(self, sheets, values):
        values.clear.return_value.execute.side_effect = http_error()

        with pytest.raises(ReportingError):
            sheets.update_releases([])


class TestFromConfig:

    def test_missing_spreadsheet_id(self, tmp_path):
        with pytest.raises(ConfigurationError):
            GoogleSheets.from_config(tmp_path / "credentials.json", "")

    def test_missing_credentials_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            GoogleSheets.from_config(tmp_path / "credentials.json", "spreadsheet-id")

    def test_builds_service(self, tmp_path, mocker):
        key_file = tmp_path / "credentials.json"
        key_file.write_text("{}")
        from_file = mocker.patch(
            "reporting.sheets.service_account.Credentials.from_service_account_file"
        )
        build = mocker.patch("reporting.sheets.build")

        sheets = GoogleSheets.from_config(key_file, "spreadsheet-id")

        from_file.assert_called_once()
        build.assert_called_once_with(
            "sheets", "v4", credentials=from_file.return_value, cache_discovery=False
        )
        assert sheets.service is build.return_value
