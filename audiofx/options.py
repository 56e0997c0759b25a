from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import requests

from audiofx.errors import (
    InvalidOptionError,
    PresetNotFoundError,
    PresetStoreError,
    UnknownOptionError,
)
from audiofx.logging_utils import get_logger
from audiofx.types import Preset

log = get_logger(__name__)

OptionValue = Union[bool, str]

BOOLEAN_KEYS = frozenset({
    "nightcore",
    "slowed",
    "reverse",
    "noise-reduction",
    "flanger",
    "phaser",
})

SCALAR_KEYS = frozenset({
    "input",
    "ffmpeg-path",
    "ffprobe-path",
    "pitch",
    "bass",
    "tempo",
    "pulsate",
    "raw-audio-filters",
    "highpass",
    "lowpass",
    "volume",
    "bitrate",
    "preset",
    "codec",
    "format",
    "output",
})

KNOWN_KEYS = BOOLEAN_KEYS | SCALAR_KEYS

ALIASES = {
    "speed": "nightcore",
    "spedup": "nightcore",
}

_FALSE_STRINGS = frozenset({"false"})


def canonical_key(key: str) -> str:
    """Map an option name (or alias, with ``_`` or ``-``) to its canonical key."""
    normalized = key.strip().lower().replace("_", "-")
    normalized = ALIASES.get(normalized, normalized)
    if normalized not in KNOWN_KEYS:
        raise UnknownOptionError(f"Unknown option '{key}'")
    return normalized


def is_active(value: Optional[OptionValue]) -> bool:
    """Whether an option value should contribute anything.

    Absent, False, blank strings, "false" and numeric zero are all inactive.
    """
    if value is None or value is False:
        return False
    if value is True:
        return True
    text = str(value).strip()
    if not text or text.lower() in _FALSE_STRINGS:
        return False
    try:
        return float(text) != 0
    except ValueError:
        return True


class OptionSet(Mapping[str, OptionValue]):
    """Immutable mapping of canonical option keys to ``True`` or a string.

    Absent options are not stored. Boolean keys only ever hold ``True``.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        data: Dict[str, OptionValue] = {}
        merged = dict(values or {})
        merged.update(kwargs)
        for raw_key, raw_value in merged.items():
            key = canonical_key(raw_key)
            value = _coerce(key, raw_value)
            if value is None:
                continue
            # aliases may collide (speed + nightcore); keep the first seen
            data.setdefault(key, value)
        self._data = data

    def __getitem__(self, key: str) -> OptionValue:
        return self._data[canonical_key(key)]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        try:
            return canonical_key(key) in self._data
        except UnknownOptionError:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"OptionSet({self._data!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, OptionSet):
            return self._data == other._data
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._data.items()))


def _coerce(key: str, value: Any) -> Optional[OptionValue]:
    if value is None:
        return None
    if key in BOOLEAN_KEYS:
        if value is True or value is False:
            return True if value else None
        raise InvalidOptionError(f"Option '{key}' is a flag and takes no value, got {value!r}")
    if isinstance(value, bool):
        raise InvalidOptionError(f"Option '{key}' needs a value, got {value!r}")
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    raise InvalidOptionError(f"Option '{key}' must be a string or number, got {type(value).__name__}")


@dataclass(frozen=True)
class EffectiveOptions:
    """Explicit options layered over an optional preset's defaults."""

    explicit: OptionSet
    preset: Optional[Preset] = None

    def get(self, key: str) -> Optional[OptionValue]:
        if key in self.explicit:
            return self.explicit[key]
        if self.preset is not None and key in self.preset.options:
            return self.preset.options[key]
        canonical_key(key)
        return None

    def is_set(self, key: str) -> bool:
        return is_active(self.get(key))

    def source(self, key: str) -> Optional[str]:
        if key in self.explicit:
            return "explicit"
        if self.preset is not None and key in self.preset.options:
            return "preset"
        return None


def find_preset(presets: Sequence[Preset], ref: str) -> Preset:
    """Look up a preset by id, then by display name (case-insensitive)."""
    for preset in presets:
        if preset.id == ref:
            return preset
    folded = ref.strip().casefold()
    for preset in presets:
        if preset.name.casefold() == folded:
            return preset
    raise PresetNotFoundError(ref)


def resolve_options(
    explicit: OptionSet,
    presets: Sequence[Preset] = (),
    preset_ref: Optional[str] = None,
) -> EffectiveOptions:
    """Combine explicit options with the requested preset.

    ``preset_ref`` defaults to the explicit ``preset`` option. Raises
    PresetNotFoundError when a preset was asked for but is not in ``presets``.
    """
    ref = preset_ref if preset_ref is not None else explicit.get("preset")
    if not is_active(ref):
        return EffectiveOptions(explicit=explicit)
    preset = find_preset(presets, str(ref))
    log.info("using preset", extra={"preset_id": preset.id, "preset_name": preset.name})
    return EffectiveOptions(explicit=explicit, preset=preset)


BUILTIN_PRESETS: Tuple[Preset, ...] = (
    Preset("nightcore", "Nightcore", OptionSet({"nightcore": True, "bass": "5"})),
    Preset("slowed", "Slowed + Reverb", OptionSet({"slowed": True, "raw-audio-filters": "aecho=0.8:0.88:60:0.4"})),
    Preset("bassboosted", "Bass Boosted", OptionSet({"bass": "15", "volume": "90"})),
    Preset("vaporwave", "Vaporwave", OptionSet({"pitch": "0.8", "tempo": "0.9", "lowpass": "3000"})),
    Preset("8d", "8D Audio", OptionSet({"pulsate": "0.125"})),
)


def parse_presets(document: Any) -> List[Preset]:
    """Build presets from a decoded JSON array of ``{id, name, options}``."""
    if not isinstance(document, list):
        raise PresetStoreError("Preset store must be a JSON array")
    presets: List[Preset] = []
    for i, entry in enumerate(document):
        if not isinstance(entry, dict) or "id" not in entry:
            raise PresetStoreError(f"Preset #{i} must be an object with an 'id'")
        options = entry.get("options") or {}
        if not isinstance(options, dict):
            raise PresetStoreError(f"Preset '{entry['id']}' options must be an object")
        try:
            option_set = OptionSet(options)
        except (UnknownOptionError, InvalidOptionError) as e:
            raise PresetStoreError(f"Preset '{entry['id']}': {e}") from e
        preset_id = str(entry["id"])
        presets.append(Preset(id=preset_id, name=str(entry.get("name") or preset_id), options=option_set))
    return presets


def _fetch_presets(http: requests.Session, url: str) -> Any:
    try:
        log.debug("fetch preset store", extra={"url": url})
        resp = http.get(url, timeout=10)
        resp.raise_for_status()
    except requests.exceptions.RequestException as e:
        log.error("preset store fetch failed", extra={"url": url, "error": str(e)})
        raise PresetStoreError(f"Failed to fetch presets from {url}: {e}") from e
    # requests' JSONDecodeError is both a RequestException and a ValueError
    try:
        return resp.json()
    except ValueError as e:
        log.error("preset store is not json", extra={"url": url, "error": str(e)})
        raise PresetStoreError(f"Preset store at {url} is not valid JSON: {e}") from e


def load_presets(source: Optional[str] = None, session: Optional[requests.Session] = None) -> List[Preset]:
    """Load the preset store from a JSON file or an http(s) URL.

    With no source the built-in presets are returned.
    """
    if not source:
        return list(BUILTIN_PRESETS)

    if source.startswith(("http://", "https://")):
        if session is not None:
            document = _fetch_presets(session, source)
        else:
            with requests.Session() as http:
                document = _fetch_presets(http, source)
    else:
        if not os.path.isfile(source):
            raise PresetStoreError(f"Preset store not found: {source}")
        try:
            with open(source, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            raise PresetStoreError(f"Failed to read presets from {source}: {e}") from e

    presets = parse_presets(document)
    log.info("presets loaded", extra={"source": source, "count": len(presets)})
    return presets
