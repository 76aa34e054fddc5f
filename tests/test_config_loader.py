"""Tests for configuration loading and validation."""

import os

import pytest
import yaml

from utils.config_loader import get_config_template, load_config
from utils.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("RELEASES_WATCHER_"):
            monkeypatch.delenv(key)


class TestLoadConfig:

    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")

        assert config["library"]["read_workers"] == 10
        assert config["catalog"]["provider"] == "musicbrainz"
        assert config["catalog"]["requests_per_minute"] == 50
        assert config["catalog"]["freshness_days"] == {
            "artist_search": 90, "release_groups": 10, "release": 10,
        }
        assert config["diff"]["cutoff_year"] == 2010

    def test_file_values_are_merged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "library": {"root": "/music"},
            "catalog": {"provider": "discogs", "freshness_days": {"release": 30}},
        }))

        config = load_config(path)

        assert config["library"]["root"] == "/music"
        assert config["library"]["read_workers"] == 10
        assert config["catalog"]["provider"] == "discogs"
        assert config["catalog"]["freshness_days"]["release"] == 30
        assert config["catalog"]["freshness_days"]["artist_search"] == 90

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RELEASES_WATCHER_DIFF__CUTOFF_YEAR", "2015")
        monkeypatch.setenv("RELEASES_WATCHER_CATALOG__DISCOGS_TOKEN", "abc-token")

        config = load_config(tmp_path / "missing.yaml")

        assert config["diff"]["cutoff_year"] == 2015
        assert config["catalog"]["discogs_token"] == "abc-token"

    @pytest.mark.parametrize("override", [
        {"library": {"read_workers": 0}},
        {"catalog": {"provider": "spotify"}},
        {"catalog": {"requests_per_minute": -5}},
        {"catalog": {"freshness_days": {"release": -1}}},
        {"storage": {"keep_versions": 0}},
        {"logging": {"level": "LOUD"}},
    ])
    def test_invalid_values(self, tmp_path, override):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(override))

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("library: [unclosed")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_template_is_valid(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(get_config_template())

        config = load_config(path)

        assert config["catalog"]["musicbrainz_contact"] == "you@example.com"
