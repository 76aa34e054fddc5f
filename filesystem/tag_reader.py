"""
Artist/album tag extraction with mutagen.
"""

import logging
from pathlib import Path
from typing import Optional

import mutagen

from api.schemas import TagInfo
from utils.exceptions import TagParseError

logger = logging.getLogger(__name__)

# ID3 frame, Vorbis-style key, MP4 atom
TAG_MAPPING = {
    'artist': ['TPE1', 'ARTIST', '\xa9ART'],
    'album': ['TALB', 'ALBUM', '\xa9alb'],
}


def _first_value(audio_file, keys) -> Optional[str]:
    for key in keys:
        try:
            if key not in audio_file:
                continue
            value = audio_file[key]
        except (ValueError, KeyError, TypeError) as e:
            logger.debug(f"Error reading tag {key}: {e}")
            continue
        # ID3 text frames keep every value in .text; str() would join them with NUL
        items = getattr(value, 'text', value)
        if isinstance(items, (list, tuple)):
            return str(items[0]) if items else None
        if items:
            return str(items)
    return None


def read_tags(file_path: Path) -> TagInfo:
    """
    Read artist and album from an audio file.

    Missing tags come back as empty strings; the caller decides what to do
    with incomplete pairs.

    Raises:
        TagParseError: If the file cannot be opened or has no readable tags
    """
    try:
        audio_file = mutagen.File(str(file_path))
    except Exception as e:
        raise TagParseError(str(file_path), str(e))

    if audio_file is None:
        raise TagParseError(str(file_path), "format not recognized")
    if audio_file.tags is None:
        raise TagParseError(str(file_path), "no tags")

    try:
        metadata = {
            standard_key: _first_value(audio_file, keys) or ""
            for standard_key, keys in TAG_MAPPING.items()
        }
    except Exception as e:
        raise TagParseError(str(file_path), f"unreadable tags: {e}")
    return TagInfo(artist=metadata['artist'], album=metadata['album'])
