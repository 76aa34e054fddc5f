"""
Google Sheets collaborator: per-artist notification settings and the
releases report.

Both sheets are rewritten with clear-then-write semantics; nothing is diffed
against the previous content.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from api.schemas import ArtistSetting, MatchedAlbum, NotificationSetting
from reporting.releases_table import build_release_rows
from utils.exceptions import ConfigurationError, ReportingError, SettingsError

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']

SETTINGS_SHEET = "Settings"
SETTINGS_HEADER_RANGE = f"{SETTINGS_SHEET}!A1:B1"
SETTINGS_DATA_RANGE = f"{SETTINGS_SHEET}!A2:B"
SETTINGS_HEADER = ['Artist', 'Notification']

RELEASES_SHEET = "Releases"
RELEASES_RANGE = f"{RELEASES_SHEET}!A1:H"
RELEASES_CLEAR_RANGE = f"{RELEASES_SHEET}!A:H"


def _http_reason(e: HttpError) -> str:
    details = getattr(e, "error_details", None)
    if details:
        return str(details)
    content = getattr(e, "content", b"") or b""
    return content.decode("utf-8", errors="replace")[:300] or str(e)


def _is_header_empty(row: List[Any]) -> bool:
    return not row or all(not str(cell).strip() for cell in row)


class GoogleSheets:
    """Settings and report spreadsheet backed by the Sheets v4 API."""

    def __init__(self, service, spreadsheet_id: str, logger: Optional[logging.Logger] = None):
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, credentials_file: Path, spreadsheet_id: str,
                    logger: Optional[logging.Logger] = None) -> "GoogleSheets":
        """
        Build a client from a service-account key file.

        Raises:
            ConfigurationError: If the key file or spreadsheet id is missing
        """
        if not spreadsheet_id:
            raise ConfigurationError("sheets.spreadsheet_id is not set")
        credentials_file = Path(credentials_file).expanduser()
        if not credentials_file.is_file():
            raise ConfigurationError(f"Google credentials file not found: {credentials_file}")

        credentials = service_account.Credentials.from_service_account_file(
            str(credentials_file), scopes=SCOPES
        )
        service = build('sheets', 'v4', credentials=credentials, cache_discovery=False)
        return cls(service, spreadsheet_id, logger=logger)

    def _values(self):
        return self.service.spreadsheets().values()

    def _get(self, value_range: str) -> List[List[Any]]:
        response = self._values().get(
            spreadsheetId=self.spreadsheet_id,
            range=value_range,
            majorDimension='ROWS',
        ).execute()
        return response.get('values') or []

    def _clear(self, value_range: str):
        self._values().clear(
            spreadsheetId=self.spreadsheet_id, range=value_range, body={}
        ).execute()

    def _update(self, value_range: str, rows: List[List[Any]]):
        self._values().update(
            spreadsheetId=self.spreadsheet_id,
            range=value_range,
            valueInputOption='RAW',
            body={'majorDimension': 'ROWS', 'range': value_range, 'values': rows},
        ).execute()

    # Settings

    def _read_settings(self) -> Tuple[List[Any], List[ArtistSetting]]:
        try:
            header_rows = self._get(SETTINGS_HEADER_RANGE)
            rows = self._get(SETTINGS_DATA_RANGE)
        except HttpError as e:
            raise SettingsError(f"Cannot read settings sheet: {_http_reason(e)}") from e

        header = list(header_rows[0]) if header_rows else []
        settings: List[ArtistSetting] = []
        for index, row in enumerate(rows):
            if not row:
                continue
            artist = str(row[0]).strip()
            if not artist:
                continue
            raw = str(row[1]) if len(row) > 1 else ""
            try:
                notification = NotificationSetting.parse(raw)
            except SettingsError as e:
                # Row numbers are 1-based and the header takes row 1.
                raise SettingsError(f"Settings row {index + 2}: {e}") from e
            settings.append(ArtistSetting(artist_name=artist, notification=notification))
        return header, settings

    def get_artist_settings(self) -> List[ArtistSetting]:
        """
        Read every artist's notification setting.

        Raises:
            SettingsError: If the sheet cannot be read or holds an unknown value
        """
        _, settings = self._read_settings()
        self.logger.info(f"Loaded {len(settings)} artist settings")
        return settings

    def update_artists_in_settings(self, artists: Iterable[str]):
        """
        Rewrite the settings sheet with the given artists, keeping the
        notification values already chosen and defaulting new artists to
        'All releases'.
        """
        header, settings = self._read_settings()
        existing: Dict[str, NotificationSetting] = {
            setting.artist_name: setting.notification for setting in settings
        }

        names = sorted({artist.strip() for artist in artists if artist and artist.strip()})
        rows = [
            [name, existing.get(name, NotificationSetting.ALL_RELEASES).value]
            for name in names
        ]
        new_artists = sum(1 for name in names if name not in existing)

        try:
            if _is_header_empty(header):
                self._update(SETTINGS_HEADER_RANGE, [list(SETTINGS_HEADER)])
            self._clear(SETTINGS_DATA_RANGE)
            if rows:
                self._update(SETTINGS_DATA_RANGE, rows)
        except HttpError as e:
            raise SettingsError(f"Cannot update settings sheet: {_http_reason(e)}") from e

        self.logger.info(f"Settings updated: {len(rows)} artists, {new_artists} new")

    # Releases

    def update_releases(self, matched: List[MatchedAlbum]):
        """Replace the releases sheet with the matched table."""
        rows = build_release_rows(matched)
        try:
            self._clear(RELEASES_CLEAR_RANGE)
            self._update(RELEASES_RANGE, rows)
        except HttpError as e:
            raise ReportingError(f"Cannot update releases sheet: {_http_reason(e)}") from e
        self.logger.info(f"Releases sheet updated with {len(matched)} rows")
