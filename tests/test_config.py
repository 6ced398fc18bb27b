"""Unit tests for keychapter.config."""

from __future__ import annotations

import pytest

from keychapter.config import DEFAULT_CHAPTER_LENGTH, Settings, load_settings
from keychapter.errors import ConfigError


class TestDefaults:
    def test_empty_environment(self) -> None:
        """No variables set → built-in defaults."""
        settings = load_settings({})
        assert settings.min_spacing == DEFAULT_CHAPTER_LENGTH == 180
        assert settings.ffprobe_bin == "ffprobe"
        assert settings.ffmpeg_bin == "ffmpeg"
        assert settings.extensions == frozenset({".mkv", ".mp4"})
        assert settings.process_timeout is None

    def test_reads_os_environ_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHAPTER_LENGTH", "240")
        assert load_settings().min_spacing == 240

    def test_settings_are_frozen(self) -> None:
        settings = Settings()
        with pytest.raises(Exception):
            settings.min_spacing = 10  # type: ignore[misc]


class TestEnvironment:
    def test_all_variables(self) -> None:
        settings = load_settings({
            "CHAPTER_LENGTH": "300",
            "KEYCHAPTER_FFPROBE": "/opt/ffmpeg/bin/ffprobe",
            "KEYCHAPTER_FFMPEG": "/opt/ffmpeg/bin/ffmpeg",
            "KEYCHAPTER_TIMEOUT": "12.5",
        })
        assert settings.min_spacing == 300
        assert settings.ffprobe_bin == "/opt/ffmpeg/bin/ffprobe"
        assert settings.ffmpeg_bin == "/opt/ffmpeg/bin/ffmpeg"
        assert settings.process_timeout == 12.5

    def test_blank_values_ignored(self) -> None:
        """An empty CHAPTER_LENGTH= line in .env falls back to the default."""
        assert load_settings({"CHAPTER_LENGTH": "  "}).min_spacing == 180

    def test_whitespace_stripped(self) -> None:
        assert load_settings({"CHAPTER_LENGTH": " 90\n"}).min_spacing == 90

    def test_zero_spacing_allowed(self) -> None:
        assert load_settings({"CHAPTER_LENGTH": "0"}).min_spacing == 0


class TestOverrides:
    def test_override_wins_over_environment(self) -> None:
        """A --chapter-length option beats CHAPTER_LENGTH."""
        assert load_settings({"CHAPTER_LENGTH": "300"}, min_spacing=60).min_spacing == 60

    def test_none_override_falls_through(self) -> None:
        """An option that was not given does not mask the environment."""
        assert load_settings({"CHAPTER_LENGTH": "300"}, min_spacing=None).min_spacing == 300

    def test_extensions_normalized(self) -> None:
        settings = load_settings({}, extensions={"MKV", ".Mp4", "webm"})
        assert settings.extensions == frozenset({".mkv", ".mp4", ".webm"})


class TestInvalid:
    def test_non_numeric_chapter_length(self) -> None:
        """CHAPTER_LENGTH=abc → ConfigError naming the variable."""
        with pytest.raises(ConfigError) as exc_info:
            load_settings({"CHAPTER_LENGTH": "abc"})
        assert exc_info.value.name == "CHAPTER_LENGTH"
        assert exc_info.value.value == "abc"
        assert "CHAPTER_LENGTH" in str(exc_info.value)

    def test_negative_chapter_length(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_settings({"CHAPTER_LENGTH": "-5"})
        assert exc_info.value.name == "CHAPTER_LENGTH"

    def test_non_positive_timeout(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_settings({"KEYCHAPTER_TIMEOUT": "0"})
        assert exc_info.value.name == "KEYCHAPTER_TIMEOUT"

    def test_negative_override(self) -> None:
        """Overrides are validated the same way as the environment."""
        with pytest.raises(ConfigError):
            load_settings({}, min_spacing=-1)
