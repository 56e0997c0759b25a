"""Translate effective options into an ffmpeg audio filter chain.

Filters run in sequence inside ffmpeg, so the order they are emitted in
changes the result. ``FILTER_TABLE`` is that order; ``build_filter_chain``
walks it once and never looks at options in any other order.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Callable, List, Tuple

from audiofx.errors import InvalidOptionError
from audiofx.options import EffectiveOptions, OptionValue, is_active
from audiofx.types import FilterChain

# (value, sample_rate) -> filter expression
Template = Callable[[OptionValue, int], str]


def _format_number(value: Decimal) -> str:
    return format(value.normalize(), "f")


def _volume(value: OptionValue, sample_rate: int) -> str:
    try:
        percent = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidOptionError(f"volume must be a number (percent), got {value!r}")
    if not percent.is_finite():
        raise InvalidOptionError(f"volume must be finite, got {value!r}")
    return f"volume={_format_number(percent / 100)}"


FILTER_TABLE: Tuple[Tuple[str, Template], ...] = (
    ("pitch", lambda v, sr: f"asetrate={sr}*{v}"),
    ("volume", _volume),
    ("nightcore", lambda v, sr: f"asetrate={sr}*1.25,aresample={sr}"),
    ("slowed", lambda v, sr: f"asetrate={sr}*0.9"),
    ("bass", lambda v, sr: f"bass=g={v}"),
    ("tempo", lambda v, sr: f"atempo={v}"),
    ("reverse", lambda v, sr: "areverse"),
    ("highpass", lambda v, sr: f"highpass=f={v}"),
    ("lowpass", lambda v, sr: f"lowpass=f={v}"),
    ("pulsate", lambda v, sr: f"apulsator=hz={v}"),
    ("noise-reduction", lambda v, sr: "afftdn"),
    ("flanger", lambda v, sr: "flanger"),
    ("phaser", lambda v, sr: "aphaser"),
    ("raw-audio-filters", lambda v, sr: str(v)),
)

ENCODER_FLAGS: Tuple[Tuple[str, str], ...] = (
    ("bitrate", "-b:a"),
    ("codec", "-c:a"),
)


def build_filter_chain(options: EffectiveOptions, sample_rate: int) -> FilterChain:
    """Build the filter chain and encoder flags for ``options``.

    Pure function: the same options and sample rate always give an equal
    chain. Inactive values (see ``is_active``) contribute nothing.
    """
    if not isinstance(sample_rate, int) or isinstance(sample_rate, bool) or sample_rate <= 0:
        raise ValueError(f"sample_rate must be a positive integer, got {sample_rate!r}")

    filters: List[str] = []
    for key, template in FILTER_TABLE:
        value = options.get(key)
        if not is_active(value):
            continue
        if isinstance(value, str):
            value = value.strip()
        filters.append(template(value, sample_rate))

    flags: List[Tuple[str, str]] = []
    for key, flag in ENCODER_FLAGS:
        value = options.get(key)
        if is_active(value):
            flags.append((flag, str(value).strip()))

    return FilterChain(filters=tuple(filters), flags=tuple(flags))


def describe_chain(options: EffectiveOptions) -> List[str]:
    """Human-readable list of the transformations that will run, in order."""
    lines = []
    for key, _ in FILTER_TABLE:
        value = options.get(key)
        if not is_active(value):
            continue
        source = options.source(key)
        shown = key if value is True else f"{key}={value}"
        lines.append(f"{shown} ({source})")
    return lines
