from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from audiofx.errors import InvalidOptionError


@dataclass(frozen=True)
class Settings:
    """Process-wide defaults read from the environment.

    Command-line flags and preset options take precedence over these.
    """

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    presets_source: Optional[str] = None
    timeout: Optional[float] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        timeout_raw = (env.get("AUDIOFX_TIMEOUT") or "").strip()
        timeout: Optional[float] = None
        if timeout_raw:
            try:
                timeout = float(timeout_raw)
            except ValueError:
                raise InvalidOptionError(f"AUDIOFX_TIMEOUT must be a number, got {timeout_raw!r}")
            if timeout <= 0:
                timeout = None
        return cls(
            ffmpeg_path=env.get("AUDIOFX_FFMPEG") or cls.ffmpeg_path,
            ffprobe_path=env.get("AUDIOFX_FFPROBE") or cls.ffprobe_path,
            presets_source=env.get("AUDIOFX_PRESETS") or None,
            timeout=timeout,
        )
