from __future__ import annotations

import argparse
import dataclasses
import shlex
import sys
from typing import Dict, Optional, Sequence

from audiofx import __version__
from audiofx.config import Settings
from audiofx.errors import ExternalToolError, OutputWriteError, PipelineError
from audiofx.filters import describe_chain
from audiofx.logging_utils import get_logger, setup_logging
from audiofx.options import KNOWN_KEYS, OptionSet, load_presets, resolve_options
from audiofx.orchestrator import AudioPipeline
from audiofx.types import Preset

log = get_logger(__name__)

# argparse dest -> option key
_DESTS: Dict[str, str] = {key.replace("-", "_"): key for key in KNOWN_KEYS}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser; every transformation maps to one option key."""
    parser = argparse.ArgumentParser(
        prog="audio-fx",
        description="Apply audio effects (nightcore, slowed, pitch, bass boost, ...) to a file with ffmpeg",
    )
    parser.add_argument("-i", "--input", help="Input file ('-' reads stdin)")
    parser.add_argument("-fm", "--ffmpeg", "--ffmpeg-path", dest="ffmpeg_path", help="FFmpeg path")
    parser.add_argument("-fp", "--ffprobe", "--ffprobe-path", dest="ffprobe_path", help="FFprobe path")

    fx = parser.add_argument_group("effects")
    fx.add_argument("-nc", "--nightcore", "--speed", "--spedup", dest="nightcore", action="store_true",
                    default=None, help="Speed up song")
    fx.add_argument("--slowed", action="store_true", default=None, help="Slow down song")
    fx.add_argument("--reverse", action="store_true", default=None, help="Reverse the audio")
    fx.add_argument("--noise-reduction", action="store_true", default=None, help="FFT denoise")
    fx.add_argument("--flanger", action="store_true", default=None, help="Flanger effect")
    fx.add_argument("--phaser", action="store_true", default=None, help="Phaser effect")
    fx.add_argument("--pitch", help="Pitch multiplier (resample, e.g. 1.1)")
    fx.add_argument("--bass", help="Bass boost gain in dB")
    fx.add_argument("--tempo", help="Tempo multiplier, doesn't change pitch")
    fx.add_argument("--pulsate", help="Pulsator frequency in Hz")
    fx.add_argument("--highpass", help="Highpass cutoff frequency in Hz")
    fx.add_argument("--lowpass", help="Lowpass cutoff frequency in Hz")
    fx.add_argument("-v", "-vol", "--volume", dest="volume", help="Volume in percent (100 = unchanged)")
    fx.add_argument("-af", "--raw-audio-filters", dest="raw_audio_filters",
                    help="Extra ffmpeg filter expression, appended last")

    out = parser.add_argument_group("output")
    out.add_argument("-b:a", "--bitrate", dest="bitrate", help="Output bitrate (e.g. 192k)")
    out.add_argument("-c:a", "--codec", dest="codec", help="Output codec")
    out.add_argument("-f", "--format", dest="format", help="Output format")
    out.add_argument("-o", "--output", dest="output", help="Output path ('-' writes stdout)")

    parser.add_argument("--preset", help="Preset id or name")
    parser.add_argument("--presets-file", default=None,
                        help="Preset store (JSON file or http(s) URL); defaults to AUDIOFX_PRESETS or built-ins")
    parser.add_argument("--list-presets", action="store_true", help="List presets and exit")
    parser.add_argument("--timeout", type=float, default=None, help="Deadline in seconds for each ffmpeg/ffprobe run")
    parser.add_argument("--dry-run", action="store_true", help="Probe and print the ffmpeg command without running it")
    parser.add_argument("--log-level", type=str, default=None, help="Log level (e.g., INFO, DEBUG)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def options_from_args(args: argparse.Namespace) -> OptionSet:
    """Collect the option keys argparse filled in; unset flags stay absent."""
    values = {}
    for dest, key in _DESTS.items():
        value = getattr(args, dest, None)
        if value is not None:
            values[key] = value
    return OptionSet(values)


def _print_presets(presets: Sequence[Preset]) -> None:
    for preset in presets:
        opts = ", ".join(k if v is True else f"{k}={v}" for k, v in preset.options.items())
        print(f"{preset.id:<14} {preset.name:<20} {opts}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point.

    Examples:
      audio-fx -i song.mp3 --nightcore
      audio-fx -i song.flac --preset "Slowed + Reverb" -o slowed.flac
      audio-fx -i song.m4a --pitch 1.1 --bass 8 --volume 80 -c:a aac -b:a 192k
      cat song.wav | audio-fx -i - -f mp3 > out.mp3
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, force=True)

    try:
        settings = Settings.from_env()
        if args.timeout is not None:
            settings = dataclasses.replace(settings, timeout=args.timeout if args.timeout > 0 else None)
        presets = load_presets(args.presets_file or settings.presets_source)

        if args.list_presets:
            _print_presets(presets)
            return 0

        explicit = options_from_args(args)
        if "input" not in explicit:
            parser.error("the following arguments are required: -i/--input")

        options = resolve_options(explicit, presets)
        for line in describe_chain(options):
            log.debug("effect", extra={"effect": line})

        pipeline = AudioPipeline(settings=settings)
        result = pipeline.run(options, dry_run=args.dry_run)
    except OutputWriteError as e:
        log.error("write failed, transcoded output not saved", extra={"error": str(e)})
        return 1
    except ExternalToolError as e:
        log.error(
            "external tool failed",
            extra={"tool": e.tool, "exit_code": e.code, "error": e.stderr.strip() or str(e)},
        )
        return 1
    except PipelineError as e:
        log.error("pipeline failed", extra={"error": str(e)})
        return 1

    if args.dry_run:
        print(" ".join(shlex.quote(a) for a in result.command or []))
        return 0
    if result.output_path != "-":
        log.info("finished", extra={"output_path": result.output_path, "bytes_written": result.bytes_written})
    return 0


if __name__ == "__main__":
    sys.exit(main())
