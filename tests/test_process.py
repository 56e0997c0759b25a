"""Tests for ProcessRunner, using the current interpreter as the child process."""

from __future__ import annotations

import sys

import pytest

from audiofx.errors import ExternalToolError, ProcessError, ToolNotFoundError
from audiofx.process import ProcessRunner


PY = sys.executable


class TestProcessRunner:
    def test_collects_stdout_and_stderr(self):
        code = "import sys; sys.stdout.buffer.write(b'\\x00\\x01out'); sys.stderr.write('log line')"
        result = ProcessRunner().run(PY, ["-c", code])
        assert result.exit_code == 0
        assert result.stdout == b"\x00\x01out"
        assert result.stderr == "log line"
        assert result.args[0] == PY

    def test_feeds_stdin(self):
        code = "import sys; data = sys.stdin.buffer.read(); sys.stdout.buffer.write(data[::-1])"
        result = ProcessRunner().run(PY, ["-c", code], input_bytes=b"abc")
        assert result.stdout == b"cba"

    def test_no_stdin_gets_eof(self):
        code = "import sys; sys.stdout.write(repr(sys.stdin.read()))"
        result = ProcessRunner().run(PY, ["-c", code])
        assert result.stdout == b"''"

    def test_arguments_not_shell_interpreted(self):
        code = "import sys; sys.stdout.write(sys.argv[1])"
        result = ProcessRunner().run(PY, ["-c", code, "$HOME; echo hi | cat"])
        assert result.stdout == b"$HOME; echo hi | cat"

    def test_large_output_on_both_streams(self):
        # more than a pipe buffer on each stream, interleaved
        code = (
            "import sys\n"
            "for _ in range(200):\n"
            "    sys.stdout.buffer.write(b'o' * 4096)\n"
            "    sys.stderr.buffer.write(b'e' * 4096)\n"
        )
        result = ProcessRunner(timeout=30).run(PY, ["-c", code])
        assert len(result.stdout) == 200 * 4096
        assert len(result.stderr) == 200 * 4096

    def test_non_zero_exit(self):
        code = "import sys; sys.stderr.write('bad input'); sys.exit(3)"
        with pytest.raises(ExternalToolError) as exc:
            ProcessRunner().run(PY, ["-c", code])
        assert exc.value.code == 3
        assert exc.value.stderr == "bad input"
        assert not exc.value.timeout
        assert "bad input" in str(exc.value)

    def test_missing_executable(self, tmp_path):
        with pytest.raises(ToolNotFoundError):
            ProcessRunner().run(str(tmp_path / "no-such-ffmpeg"), ["-version"])

    def test_errors_share_base(self):
        assert issubclass(ToolNotFoundError, ProcessError)
        assert issubclass(ExternalToolError, ProcessError)

    def test_timeout(self):
        code = "import time; time.sleep(30)"
        with pytest.raises(ExternalToolError) as exc:
            ProcessRunner().run(PY, ["-c", code], timeout=0.5)
        assert exc.value.timeout
        assert exc.value.code is None

    def test_constructor_timeout(self):
        code = "import time; time.sleep(30)"
        with pytest.raises(ExternalToolError) as exc:
            ProcessRunner(timeout=0.5).run(PY, ["-c", code])
        assert exc.value.timeout

    def test_invalid_utf8_stderr(self):
        code = "import sys; sys.stderr.buffer.write(b'\\xff\\xfe bad')"
        result = ProcessRunner().run(PY, ["-c", code])
        assert result.stderr.endswith(" bad")
