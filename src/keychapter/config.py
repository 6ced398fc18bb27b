"""Runtime settings for keychapter.

Values come from the environment (a ``.env`` file is loaded by the CLI
before :func:`load_settings` runs):

    CHAPTER_LENGTH        minimum seconds between chapter starts (default 180)
    KEYCHAPTER_FFPROBE    ffprobe executable (default "ffprobe")
    KEYCHAPTER_FFMPEG     ffmpeg executable (default "ffmpeg")
    KEYCHAPTER_TIMEOUT    seconds to wait for both processes to exit once the
                          chapter document is written (default: wait forever)
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from keychapter.errors import ConfigError

DEFAULT_CHAPTER_LENGTH = 180

# env var name -> Settings field
_ENV_FIELDS: dict[str, str] = {
    "CHAPTER_LENGTH": "min_spacing",
    "KEYCHAPTER_FFPROBE": "ffprobe_bin",
    "KEYCHAPTER_FFMPEG": "ffmpeg_bin",
    "KEYCHAPTER_TIMEOUT": "process_timeout",
}


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_spacing: int = Field(default=DEFAULT_CHAPTER_LENGTH, ge=0)
    ffprobe_bin: str = "ffprobe"
    ffmpeg_bin: str = "ffmpeg"
    extensions: frozenset[str] = frozenset({".mkv", ".mp4"})
    process_timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, v: frozenset[str]) -> frozenset[str]:
        return frozenset(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v
        )


def load_settings(environ: Mapping[str, str] | None = None, **overrides: object) -> Settings:
    """Build :class:`Settings` from *environ* (default ``os.environ``).

    Keyword *overrides* win over the environment; ``None`` overrides are
    ignored so CLI options that were not given fall through.

    Raises
    ------
    ConfigError
        If a value fails validation.
    """
    env = os.environ if environ is None else environ
    values: dict[str, object] = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = env.get(env_name)
        if raw is not None and raw.strip():
            values[field_name] = raw.strip()
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings(**values)
    except ValidationError as e:
        err = e.errors()[0]
        name = str(err["loc"][0]) if err["loc"] else "settings"
        env_name = next((k for k, v in _ENV_FIELDS.items() if v == name), name)
        raise ConfigError(env_name, values.get(name), err["msg"]) from e
