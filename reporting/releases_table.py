"""
Row layout shared by the spreadsheet and CSV release reports.
"""

from typing import List

from api.schemas import MatchedAlbum

RELEASES_HEADER = [
    'Artist', 'Album', 'Local artist', 'Local album', 'Kind', 'Year', 'Link', 'Status'
]

STATUS_IN_COLLECTION = "In collection"
STATUS_NEW = "New"
STATUS_NOT_FOUND = "Not found"


def release_status(matched: MatchedAlbum) -> str:
    if matched.actual is not None and matched.local is not None:
        return STATUS_IN_COLLECTION
    if matched.actual is not None:
        return STATUS_NEW
    return STATUS_NOT_FOUND


def build_release_row(matched: MatchedAlbum) -> List[str]:
    actual = matched.actual
    local = matched.local
    return [
        actual.artist if actual else '',
        actual.name if actual else '',
        local.artist if local else '',
        local.name if local else '',
        actual.kind.value if actual else '',
        str(actual.year) if actual and actual.year else '',
        (actual.url or '') if actual else '',
        release_status(matched),
    ]


def build_release_rows(matched: List[MatchedAlbum]) -> List[List[str]]:
    """Header row followed by one row per matched album, in the given order."""
    return [list(RELEASES_HEADER)] + [build_release_row(m) for m in matched]
