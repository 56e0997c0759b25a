from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from audiofx.options import OptionSet


@dataclass(frozen=True)
class Preset:
    id: str
    name: str
    options: "OptionSet"


@dataclass(frozen=True)
class MediaInfo:
    """What ffprobe told us about an input."""

    sample_rate: int
    formats: Tuple[str, ...]
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if not self.formats:
            raise ValueError("formats must not be empty")


@dataclass(frozen=True)
class FilterChain:
    filters: Tuple[str, ...] = ()
    flags: Tuple[Tuple[str, str], ...] = ()

    def pairs(self) -> List[Tuple[str, str]]:
        pairs: List[Tuple[str, str]] = []
        if self.filters:
            pairs.append(("-af", ",".join(self.filters)))
        pairs.extend(self.flags)
        return pairs

    def to_args(self) -> List[str]:
        """Flatten into ffmpeg arguments: ``-af`` first, then encoder flags."""
        return [token for pair in self.pairs() for token in pair]


@dataclass(frozen=True)
class ProcessResult:
    args: Tuple[str, ...]
    exit_code: int
    stdout: bytes
    stderr: str


@dataclass(frozen=True)
class TranscodeOutput:
    data: bytes
    log: str


class PipelineState(enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    PROBING = "probing"
    BUILDING_FILTERS = "building_filters"
    TRANSCODING = "transcoding"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.FAILED)


@dataclass
class PipelineResult:
    output_path: str
    output_format: str
    chain: FilterChain
    media: MediaInfo
    bytes_written: int = 0
    log: str = ""
    dry_run: bool = False
    command: Optional[List[str]] = None
