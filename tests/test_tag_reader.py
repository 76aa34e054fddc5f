"""Tests for tag extraction; mutagen.File is mocked."""

import mutagen
import pytest
from mutagen.id3 import TALB, TPE1

from filesystem.tag_reader import read_tags
from utils.exceptions import TagParseError


class FakeAudio(dict):
    """Minimal stand-in for a mutagen file object."""

    def __init__(self, values, tags=True):
        super().__init__(values)
        self.tags = values if tags else None


@pytest.fixture
def mutagen_file(mocker):
    return mocker.patch("filesystem.tag_reader.mutagen.File")


class TestReadTags:

    def test_id3_frames(self, mutagen_file, tmp_path):
        mutagen_file.return_value = FakeAudio({"TPE1": ["Queen"], "TALB": ["Innuendo"]})

        tags = read_tags(tmp_path / "song.mp3")

        assert tags.artist == "Queen"
        assert tags.album == "Innuendo"

    def test_multi_value_id3_frame_keeps_first_value(self, mutagen_file, tmp_path):
        mutagen_file.return_value = FakeAudio({
            "TPE1": TPE1(encoding=3, text=["Artist A", "Artist B"]),
            "TALB": TALB(encoding=3, text=["Split Single", "Split Single (Reissue)"]),
        })

        tags = read_tags(tmp_path / "split.mp3")

        assert tags.artist == "Artist A"
        assert tags.album == "Split Single"

    def test_mp4_atoms(self, mutagen_file, tmp_path):
        mutagen_file.return_value = FakeAudio({"\xa9ART": ["Björk"], "\xa9alb": ["Homogenic"]})

        tags = read_tags(tmp_path / "song.m4a")

        assert (tags.artist, tags.album) == ("Björk", "Homogenic")

    def test_missing_album_is_empty(self, mutagen_file, tmp_path):
        mutagen_file.return_value = FakeAudio({"TPE1": ["Queen"]})

        tags = read_tags(tmp_path / "song.mp3")

        assert tags.album == ""

    def test_unrecognized_format(self, mutagen_file, tmp_path):
        mutagen_file.return_value = None

        with pytest.raises(TagParseError, match="format not recognized"):
            read_tags(tmp_path / "song.mp3")

    def test_file_without_tags(self, mutagen_file, tmp_path):
        mutagen_file.return_value = FakeAudio({}, tags=False)

        with pytest.raises(TagParseError, match="no tags"):
            read_tags(tmp_path / "song.mp3")

    def test_decode_error(self, mutagen_file, tmp_path):
        mutagen_file.side_effect = mutagen.MutagenError("can't sync to MPEG frame")

        with pytest.raises(TagParseError) as exc_info:
            read_tags(tmp_path / "broken.mp3")

        assert exc_info.value.file_path.endswith("broken.mp3")

    def test_missing_file(self, tmp_path):
        with pytest.raises(TagParseError):
            read_tags(tmp_path / "does-not-exist.mp3")

    def test_unexpected_decoder_error_is_a_parse_error(self, mutagen_file, tmp_path):
        mutagen_file.side_effect = IndexError("corrupt frame")

        with pytest.raises(TagParseError, match="corrupt frame"):
            read_tags(tmp_path / "bad.mp3")

    def test_unreadable_tag_values_are_a_parse_error(self, mutagen_file, tmp_path):
        class BrokenAudio(FakeAudio):
            def __getitem__(self, key):
                raise RuntimeError("bad frame header")

        mutagen_file.return_value = BrokenAudio({"TPE1": ["Queen"]})

        with pytest.raises(TagParseError, match="bad frame header"):
            read_tags(tmp_path / "bad.mp3")
