from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from audiofx.logging_utils import get_logger
from audiofx.process import ProcessRunner
from audiofx.types import FilterChain, TranscodeOutput

log = get_logger(__name__)

STDIO = "-"

FlagPair = Tuple[str, Optional[str]]


def dedupe_flag_pairs(pairs: Iterable[FlagPair]) -> List[FlagPair]:
    """Drop repeated flags, keeping the first occurrence and the original order."""
    seen = set()
    result: List[FlagPair] = []
    for flag, value in pairs:
        if flag in seen:
            log.debug("dropping duplicate flag", extra={"flag": flag, "value": value})
            continue
        seen.add(flag)
        result.append((flag, value))
    return result


def flatten_pairs(pairs: Iterable[FlagPair]) -> List[str]:
    args: List[str] = []
    for flag, value in pairs:
        args.append(flag)
        if value is not None:
            args.append(value)
    return args


def build_transcode_args(input_path: str, chain: FilterChain, output_format: str) -> List[str]:
    """ffmpeg arguments for transcoding ``input_path`` to stdout.

    The format is always given explicitly because the output is a pipe and
    ffmpeg has no filename to infer it from.
    """
    pairs: List[FlagPair] = [("-i", input_path)]
    pairs.extend(chain.pairs())
    pairs.append(("-f", output_format))
    return flatten_pairs(dedupe_flag_pairs(pairs)) + [STDIO]


class MediaTranscoder:
    """Runs ffmpeg with a filter chain and returns the encoded bytes."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", runner: Optional[ProcessRunner] = None):
        self.ffmpeg_path = ffmpeg_path
        self.runner = runner or ProcessRunner()

    def command(self, input_path: str, chain: FilterChain, output_format: str,
                from_stdin: bool = False) -> List[str]:
        source = STDIO if from_stdin else input_path
        return [self.ffmpeg_path, *build_transcode_args(source, chain, output_format)]

    def transcode(
        self,
        input_path: str,
        chain: FilterChain,
        output_format: str,
        input_bytes: Optional[bytes] = None,
    ) -> TranscodeOutput:
        """Transcode ``input_path`` (or ``input_bytes`` via stdin).

        Raises ExternalToolError / ToolNotFoundError from the runner unchanged.
        """
        args = self.command(input_path, chain, output_format, from_stdin=input_bytes is not None)[1:]
        log.info("transcode start", extra={"input": input_path, "format": output_format, "ffmpeg_args": args})
        result = self.runner.run(self.ffmpeg_path, args, input_bytes=input_bytes)
        log.info("transcode done", extra={"input": input_path, "bytes": len(result.stdout)})
        return TranscodeOutput(data=result.stdout, log=result.stderr)
