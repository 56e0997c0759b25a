from __future__ import annotations

import json
from typing import List, Optional

from audiofx.errors import MalformedProbeOutputError
from audiofx.logging_utils import get_logger
from audiofx.process import ProcessRunner
from audiofx.transcode import STDIO, FlagPair, dedupe_flag_pairs, flatten_pairs
from audiofx.types import MediaInfo

log = get_logger(__name__)


def build_probe_args(input_path: str) -> List[str]:
    pairs: List[FlagPair] = [
        ("-i", input_path),
        ("-print_format", "json"),
        ("-show_format", None),
        ("-show_streams", None),
    ]
    return flatten_pairs(dedupe_flag_pairs(pairs))


def parse_probe_output(stdout: bytes) -> MediaInfo:
    """Parse ffprobe's JSON into MediaInfo.

    Raises MalformedProbeOutputError for anything that is not a JSON object
    with a positive ``streams[0].sample_rate`` and a ``format.format_name``.
    """
    try:
        data = json.loads(stdout)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedProbeOutputError(f"ffprobe output is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedProbeOutputError("ffprobe output is not a JSON object")

    streams = data.get("streams")
    if not isinstance(streams, list) or not streams or not isinstance(streams[0], dict):
        raise MalformedProbeOutputError("ffprobe reported no streams")
    raw_rate = streams[0].get("sample_rate")
    try:
        sample_rate = int(raw_rate)
    except (TypeError, ValueError):
        raise MalformedProbeOutputError(f"Invalid sample rate in first stream: {raw_rate!r}")
    if sample_rate <= 0:
        raise MalformedProbeOutputError(f"Invalid sample rate in first stream: {raw_rate!r}")

    fmt = data.get("format")
    format_name = fmt.get("format_name") if isinstance(fmt, dict) else None
    if not isinstance(format_name, str):
        raise MalformedProbeOutputError("ffprobe reported no format name")
    # ffprobe lists equally valid aliases, e.g. "mov,mp4,m4a,3gp,3g2,mj2"
    formats = tuple(name.strip() for name in format_name.split(",") if name.strip())
    if not formats:
        raise MalformedProbeOutputError("ffprobe reported an empty format name")

    return MediaInfo(sample_rate=sample_rate, formats=formats, raw=data)


class MediaProber:
    """Inspect an input with ffprobe."""

    def __init__(self, ffprobe_path: str = "ffprobe", runner: Optional[ProcessRunner] = None):
        self.ffprobe_path = ffprobe_path
        self.runner = runner or ProcessRunner()

    def probe(self, input_path: str, input_bytes: Optional[bytes] = None) -> MediaInfo:
        source = STDIO if input_bytes is not None else input_path
        args = build_probe_args(source)
        log.debug("probe start", extra={"input": input_path, "probe_args": args})
        result = self.runner.run(self.ffprobe_path, args, input_bytes=input_bytes)
        try:
            info = parse_probe_output(result.stdout)
        except MalformedProbeOutputError as e:
            log.error("probe output malformed", extra={"input": input_path, "error": str(e)})
            raise
        log.info("probe done", extra={
            "input": input_path, "sample_rate": info.sample_rate, "formats": list(info.formats)
        })
        return info

