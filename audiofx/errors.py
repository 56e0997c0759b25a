from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base error for the audio-fx pipeline."""


class InputNotFoundError(PipelineError, FileNotFoundError):
    """Raised when the input media file is missing or unreadable."""


class PresetNotFoundError(PipelineError, LookupError):
    """Raised when a requested preset matches no id or name in the store."""

    def __init__(self, ref: str):
        super().__init__(f"Preset '{ref}' not found")
        self.ref = ref


class PresetStoreError(PipelineError):
    """Raised when the preset store cannot be fetched or parsed."""


class UnknownOptionError(PipelineError, KeyError):
    """Raised for option keys outside the recognized set."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class InvalidOptionError(PipelineError, ValueError):
    """Raised when an option value has the wrong shape for its key."""


class ProcessError(PipelineError):
    """Base error for external process invocation."""


class ToolNotFoundError(ProcessError):
    """Raised when the external executable cannot be spawned."""


class ExternalToolError(ProcessError):
    """Raised when an external tool exits non-zero or times out."""

    def __init__(self, tool: str, code: Optional[int], stderr: str = "", timeout: bool = False):
        if timeout:
            message = f"{tool} timed out"
        else:
            message = f"{tool} exited with code {code}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(message)
        self.tool = tool
        self.code = code
        self.stderr = stderr
        self.timeout = timeout


class ProbeError(PipelineError):
    """Raised when media inspection fails."""


class MalformedProbeOutputError(ProbeError):
    """Raised when ffprobe output is not the JSON document we expect."""


class OutputWriteError(PipelineError, OSError):
    """Raised when the transcoded output cannot be written to disk."""
