"""Sequence probe, filter building, transcode and write for one input.

``AudioPipeline`` is a small state machine::

    IDLE -> VALIDATING -> PROBING -> BUILDING_FILTERS -> TRANSCODING -> WRITING -> DONE

Any stage may move to FAILED; the triggering exception is re-raised after
the transition. Nothing is written to disk unless transcoding succeeded, and
the output file only appears once it is complete.
"""

from __future__ import annotations

import os
import sys
import tempfile
from typing import BinaryIO, List, Optional, Tuple

from audiofx.config import Settings
from audiofx.errors import InputNotFoundError, OutputWriteError
from audiofx.filters import build_filter_chain
from audiofx.logging_utils import get_logger
from audiofx.options import EffectiveOptions, OptionValue
from audiofx.probe import MediaProber
from audiofx.process import ProcessRunner
from audiofx.transcode import STDIO, MediaTranscoder
from audiofx.types import MediaInfo, PipelineResult, PipelineState

log = get_logger(__name__)


def is_given(value: Optional[OptionValue]) -> bool:
    """Presence check for path and format options; "0" and "false" are valid names."""
    return value is not None and value is not False and str(value).strip() != ""


def input_extension(input_path: str) -> str:
    if input_path == STDIO:
        return ""
    return os.path.splitext(input_path)[1][1:].lower()


def resolve_output_format(options: EffectiveOptions, input_path: str, media: MediaInfo) -> str:
    """Explicit ``format``, else the input extension if ffprobe lists it, else the first alias."""
    explicit = options.get("format")
    if is_given(explicit):
        return str(explicit).strip()
    ext = input_extension(input_path)
    if ext and ext in media.formats:
        return ext
    return media.formats[0]


def resolve_output_path(options: EffectiveOptions, input_path: str, output_format: str,
                        cwd: Optional[str] = None) -> str:
    """Explicit ``output``, else ``<stem>.<format>`` in the working directory.

    ``-`` means stdout. Input from stdin with no explicit output goes to stdout.
    """
    explicit = options.get("output")
    if is_given(explicit):
        return str(explicit)
    if input_path == STDIO:
        return STDIO
    base = cwd or os.getcwd()
    stem = os.path.splitext(os.path.basename(input_path))[0]
    candidate = os.path.join(base, f"{stem}.{output_format}")
    if os.path.abspath(candidate) == os.path.abspath(input_path):
        candidate = os.path.join(base, f"{stem}_fx.{output_format}")
    return candidate


def write_output(path: str, data: bytes, stdout: Optional[BinaryIO] = None) -> int:
    """Write ``data`` to ``path`` atomically, or to stdout for ``-``."""
    if path == STDIO:
        stream = stdout or sys.stdout.buffer
        try:
            stream.write(data)
            stream.flush()
        except OSError as e:
            raise OutputWriteError(f"Failed to write output to stdout: {e}") from e
        return len(data)

    directory = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "wb", dir=directory, prefix=".audiofx-", suffix=".part", delete=False
        ) as tmp:
            tmp_path = tmp.name
            tmp.write(data)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise OutputWriteError(f"Failed to write output to {path}: {e}") from e
    return len(data)


class AudioPipeline:
    """One isolated run: probe, build filters, transcode, write."""

    def __init__(
        self,
        prober: Optional[MediaProber] = None,
        transcoder: Optional[MediaTranscoder] = None,
        settings: Optional[Settings] = None,
        stdin: Optional[BinaryIO] = None,
        stdout: Optional[BinaryIO] = None,
        cwd: Optional[str] = None,
    ):
        self.settings = settings or Settings()
        self._prober = prober
        self._transcoder = transcoder
        self.stdin = stdin
        self.stdout = stdout
        self.cwd = cwd
        self.state = PipelineState.IDLE
        self.history: List[PipelineState] = [PipelineState.IDLE]
        self.error: Optional[BaseException] = None

    def _transition(self, state: PipelineState) -> None:
        if self.state.terminal:
            raise RuntimeError(f"pipeline already finished ({self.state.value})")
        log.debug("state change", extra={"from": self.state.value, "to": state.value})
        self.state = state
        self.history.append(state)

    def _tool_path(self, options: EffectiveOptions, key: str, default: str) -> str:
        value = options.get(key)
        return str(value) if is_given(value) else default

    def prober_for(self, options: EffectiveOptions) -> MediaProber:
        if self._prober is not None:
            return self._prober
        path = self._tool_path(options, "ffprobe-path", self.settings.ffprobe_path)
        return MediaProber(path, ProcessRunner(timeout=self.settings.timeout))

    def transcoder_for(self, options: EffectiveOptions) -> MediaTranscoder:
        if self._transcoder is not None:
            return self._transcoder
        path = self._tool_path(options, "ffmpeg-path", self.settings.ffmpeg_path)
        return MediaTranscoder(path, ProcessRunner(timeout=self.settings.timeout))

    def _validate(self, options: EffectiveOptions) -> Tuple[str, Optional[bytes]]:
        input_value = options.get("input")
        if not is_given(input_value):
            raise InputNotFoundError("No input file given")
        input_path = str(input_value)
        if input_path == STDIO:
            stream = self.stdin or sys.stdin.buffer
            return input_path, stream.read()
        if not os.path.isfile(input_path) or not os.access(input_path, os.R_OK):
            raise InputNotFoundError(f"Input file '{input_path}' doesn't exist or is not readable")
        return input_path, None

    def run(self, options: EffectiveOptions, dry_run: bool = False) -> PipelineResult:
        """Run the pipeline for ``options``.

        With ``dry_run`` the input is still probed (the filters need its sample
        rate) but ffmpeg is not run and nothing is written.
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError("AudioPipeline instances run once")
        try:
            self._transition(PipelineState.VALIDATING)
            input_path, input_bytes = self._validate(options)

            self._transition(PipelineState.PROBING)
            media = self.prober_for(options).probe(input_path, input_bytes=input_bytes)

            self._transition(PipelineState.BUILDING_FILTERS)
            chain = build_filter_chain(options, media.sample_rate)
            output_format = resolve_output_format(options, input_path, media)
            output_path = resolve_output_path(options, input_path, output_format, cwd=self.cwd)
            transcoder = self.transcoder_for(options)
            command = transcoder.command(input_path, chain, output_format, from_stdin=input_bytes is not None)
            log.info("using ffmpeg args", extra={"ffmpeg_args": command[1:]})

            result = PipelineResult(
                output_path=output_path,
                output_format=output_format,
                chain=chain,
                media=media,
                command=command,
                dry_run=dry_run,
            )
            if dry_run:
                self._transition(PipelineState.DONE)
                return result

            self._transition(PipelineState.TRANSCODING)
            output = transcoder.transcode(input_path, chain, output_format, input_bytes=input_bytes)
            result.log = output.log

            self._transition(PipelineState.WRITING)
            result.bytes_written = write_output(output_path, output.data, stdout=self.stdout)

            self._transition(PipelineState.DONE)
            log.info("finished", extra={"output": output_path, "bytes": result.bytes_written})
            return result
        except Exception as e:
            self.error = e
            failed_in = self.state
            self._transition(PipelineState.FAILED)
            log.error("pipeline failed", extra={"state": failed_in.value, "error": str(e)})
            raise
