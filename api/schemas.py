"""
Pydantic schemas for the releases-watcher data model.

Local albums come from audio tags, actual albums from a release catalog.
Both are immutable once created; a new sync publishes a new version instead
of mutating rows.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.exceptions import SettingsError, UnknownKindError


class Kind(str, Enum):
    """Release category assigned from catalog format metadata."""

    UNKNOWN = "Unknown"
    ALBUM = "Album"
    EP = "EP"
    SINGLE = "Single"

    @classmethod
    def parse(cls, value: str) -> "Kind":
        """Map persisted kind text to a Kind, raising UnknownKindError otherwise."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise UnknownKindError(value)


class NotificationSetting(str, Enum):
    """Per-artist policy controlling which kinds of new releases are surfaced."""

    ALL_RELEASES = "All releases"
    ALBUMS_AND_EP = "Albums and EP"
    ALBUMS_ONLY = "Albums only"
    DO_NOT_TRACK = "Do not track"

    @classmethod
    def parse(cls, raw: str) -> "NotificationSetting":
        """Parse a settings cell. A blank cell means all releases."""
        value = (raw or "").strip()
        if not value:
            return cls.ALL_RELEASES
        for setting in cls:
            if setting.value == value:
                return setting
        raise SettingsError(f"unknown notification value {raw!r}")

    def is_release_in_scope(self, kind: Kind) -> bool:
        return kind in NOTIFICATION_SCOPE.get(self, frozenset())


NOTIFICATION_SCOPE = {
    NotificationSetting.ALL_RELEASES: frozenset({Kind.ALBUM, Kind.EP, Kind.SINGLE, Kind.UNKNOWN}),
    NotificationSetting.ALBUMS_AND_EP: frozenset({Kind.ALBUM, Kind.EP}),
    NotificationSetting.ALBUMS_ONLY: frozenset({Kind.ALBUM}),
    NotificationSetting.DO_NOT_TRACK: frozenset(),
}


class TagInfo(BaseModel):
    """Artist and album read from one audio file."""

    model_config = ConfigDict(frozen=True)

    artist: str = Field(default="", description="Artist tag")
    album: str = Field(default="", description="Album tag")


class LocalAlbum(BaseModel):
    """An (artist, album) pair present in the local collection."""

    model_config = ConfigDict(frozen=True)

    artist: str = Field(..., description="Artist as tagged, trimmed")
    name: str = Field(..., description="Album name as tagged, trimmed")
    version_id: Optional[int] = Field(default=None, description="Version the album belongs to")

    @property
    def is_correct(self) -> bool:
        """Both artist and album must be non-empty."""
        return bool(self.artist) and bool(self.name)


class ActualAlbum(BaseModel):
    """A release known to the external catalog for a tracked artist."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Catalog release id")
    artist: str = Field(..., description="Tracked (local) artist name")
    name: str = Field(..., description="Release title")
    year: Optional[int] = Field(default=None, description="Release year if known")
    kind: Kind = Field(default=Kind.UNKNOWN, description="Album, EP or Single")
    url: Optional[str] = Field(default=None, description="Catalog web page of the release")
    version_id: Optional[int] = Field(default=None, description="Version the album belongs to")

    @field_validator('year', mode='before')
    @classmethod
    def parse_year(cls, v):
        """Treat empty and zero years as unknown."""
        if v is None or v == "" or v == 0 or v == "0":
            return None
        try:
            return int(v)
        except (ValueError, TypeError):
            return None


class Version(BaseModel):
    """An atomically publishable snapshot of the local or actual album set."""

    model_config = ConfigDict(frozen=True)

    version_id: int
    kind: str = Field(..., description="'local' or 'actual'")
    published: bool = False


class ArtistSetting(BaseModel):
    model_config = ConfigDict(frozen=True)

    artist_name: str
    notification: NotificationSetting = NotificationSetting.ALL_RELEASES


class ExcludedAlbum(BaseModel):
    model_config = ConfigDict(frozen=True)

    artist: str
    album: str


class NormalizedKey(BaseModel):
    """Case-folded, punctuation-stripped (artist, name) used for matching."""

    model_config = ConfigDict(frozen=True)

    artist: str
    name: str


class MatchedAlbum(BaseModel):
    """One row of the local/actual correspondence table."""

    model_config = ConfigDict(frozen=True)

    local: Optional[LocalAlbum] = None
    actual: Optional[ActualAlbum] = None
