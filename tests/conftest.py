"""Shared fixtures: fake process runners so no real ffmpeg is needed."""

from __future__ import annotations

import json
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from audiofx.errors import ExternalToolError
from audiofx.types import ProcessResult


def probe_json(sample_rate="44100", format_name="mp3") -> bytes:
    return json.dumps({
        "streams": [{"index": 0, "codec_type": "audio", "sample_rate": sample_rate}],
        "format": {"format_name": format_name, "duration": "3.000000"},
    }).encode()


class FakeRunner:
    """Stands in for ProcessRunner; answers per executable name."""

    def __init__(self, responses: Optional[Dict[str, Callable[[List[str], Optional[bytes]], ProcessResult]]] = None):
        self.responses = responses or {}
        self.calls: List[tuple] = []

    def run(self, executable: str, args: Sequence[str], input_bytes: Optional[bytes] = None,
            timeout: Optional[float] = None) -> ProcessResult:
        self.calls.append((executable, list(args), input_bytes))
        handler = self.responses[executable]
        return handler(list(args), input_bytes)


def ok(stdout: bytes = b"", stderr: str = ""):
    def handler(args, input_bytes):
        return ProcessResult(args=tuple(args), exit_code=0, stdout=stdout, stderr=stderr)
    return handler


def fail(code: int = 1, stderr: str = "boom", tool: str = "ffmpeg"):
    def handler(args, input_bytes):
        raise ExternalToolError(tool, code, stderr)
    return handler


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "song.mp3"
    path.write_bytes(b"ID3fake-mp3-data")
    return path


@pytest.fixture
def fake_runner():
    return FakeRunner({
        "ffprobe": ok(probe_json()),
        "ffmpeg": ok(b"ENCODED", "ffmpeg log"),
    })
