"""Tests for environment settings."""

from __future__ import annotations

import pytest

from audiofx.config import Settings
from audiofx.errors import InvalidOptionError


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings == Settings(ffmpeg_path="ffmpeg", ffprobe_path="ffprobe", presets_source=None, timeout=None)

    def test_overrides(self):
        settings = Settings.from_env({
            "AUDIOFX_FFMPEG": "/opt/bin/ffmpeg",
            "AUDIOFX_FFPROBE": "/opt/bin/ffprobe",
            "AUDIOFX_PRESETS": "https://example.com/p.json",
            "AUDIOFX_TIMEOUT": "12.5",
        })
        assert settings.ffmpeg_path == "/opt/bin/ffmpeg"
        assert settings.ffprobe_path == "/opt/bin/ffprobe"
        assert settings.presets_source == "https://example.com/p.json"
        assert settings.timeout == 12.5

    @pytest.mark.parametrize("raw", ["0", "-1", "", "  "])
    def test_no_timeout(self, raw):
        assert Settings.from_env({"AUDIOFX_TIMEOUT": raw}).timeout is None

    def test_bad_timeout(self):
        with pytest.raises(InvalidOptionError):
            Settings.from_env({"AUDIOFX_TIMEOUT": "soon"})
