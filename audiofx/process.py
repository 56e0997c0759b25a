from __future__ import annotations

import os
import subprocess
from typing import Optional, Sequence

from audiofx.errors import ExternalToolError, ToolNotFoundError
from audiofx.logging_utils import get_logger
from audiofx.types import ProcessResult

log = get_logger(__name__)


class ProcessRunner:
    """Spawn an external tool and collect its output.

    Arguments are always passed as a vector, never through a shell. Stdout and
    stderr are drained together by ``Popen.communicate`` so a child that fills
    one pipe while we wait on the other cannot deadlock.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(
        self,
        executable: str,
        args: Sequence[str],
        input_bytes: Optional[bytes] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        """Run ``executable`` with ``args`` and return its captured output.

        Raises:
            ToolNotFoundError: the executable could not be spawned.
            ExternalToolError: non-zero exit, or the deadline passed.
        """
        cmd = [executable, *args]
        tool = os.path.basename(executable) or executable
        deadline = self.timeout if timeout is None else timeout
        log.debug("spawn", extra={"cmd": cmd, "stdin_bytes": len(input_bytes or b""), "timeout": deadline})

        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE if input_bytes is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            log.error("spawn failed", extra={"executable": executable, "error": str(e)})
            raise ToolNotFoundError(f"Cannot run {executable}: {e}") from e

        with proc:
            try:
                stdout, stderr_bytes = proc.communicate(input=input_bytes, timeout=deadline)
            except subprocess.TimeoutExpired:
                proc.kill()
                _, stderr_bytes = proc.communicate()
                stderr = _decode(stderr_bytes)
                log.error("process timed out", extra={"tool": tool, "timeout": deadline})
                raise ExternalToolError(tool, None, stderr, timeout=True)

        stderr = _decode(stderr_bytes)
        if proc.returncode != 0:
            log.error("process failed", extra={"tool": tool, "code": proc.returncode})
            raise ExternalToolError(tool, proc.returncode, stderr)

        log.debug("process finished", extra={"tool": tool, "stdout_bytes": len(stdout)})
        return ProcessResult(args=tuple(cmd), exit_code=0, stdout=stdout, stderr=stderr)


def _decode(data: Optional[bytes]) -> str:
    return (data or b"").decode("utf-8", errors="replace")
