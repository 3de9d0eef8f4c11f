"""
Sandboxed External Commands.

espeak and lame run as child processes. Every command goes through a
CommandRunner so that:
    - a wrapper prefix (e.g. ``firejail --quiet --net=none``) is applied
      uniformly, keeping network access off for untrusted input
    - each call has a hard timeout
    - tests can substitute a fake runner without touching the system

Usage:
    runner = SubprocessRunner(wrapper=["firejail", "--quiet", "--net=none"], timeout_s=30)
    result = runner.run(["lame", "-", "-"], stdin=wav_bytes)
    if result.returncode != 0:
        ...
"""
from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from phonos_ms.core.logging import debug, get_logger, warn

_LOG = get_logger("phonos-ms.sandbox")


@dataclass
class CommandResult:
    """Exit status and captured output of one command."""
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace").strip()


class CommandRunner(ABC):
    """Runs an argv with optional stdin and returns its CommandResult."""

    @abstractmethod
    def run(self, argv: Sequence[str], stdin: Optional[bytes] = None) -> CommandResult:
        ...


class SubprocessRunner(CommandRunner):
    """
    CommandRunner backed by ``subprocess.run``.

    A missing binary or a timeout is reported as a failed CommandResult
    (exit codes 127 and 124, like a shell) so callers handle every
    failure through the same non-zero exit path.
    """

    def __init__(self, wrapper: Optional[Sequence[str]] = None, timeout_s: float = 30.0):
        self.wrapper: List[str] = list(wrapper or [])
        self.timeout_s = timeout_s

    def run(self, argv: Sequence[str], stdin: Optional[bytes] = None) -> CommandResult:
        cmd = [*self.wrapper, *argv]
        debug(_LOG, "exec", cmd=" ".join(cmd), stdin_bytes=len(stdin or b""))

        try:
            proc = subprocess.run(
                cmd,
                input=stdin,
                capture_output=True,
                timeout=self.timeout_s,
            )
        except subprocess.TimeoutExpired:
            warn(_LOG, "command_timeout", cmd=argv[0], timeout_s=self.timeout_s)
            return CommandResult(124, stderr=f"{argv[0]} timed out after {self.timeout_s}s".encode())
        except OSError as e:
            warn(_LOG, "command_failed", cmd=argv[0], error=str(e))
            return CommandResult(127, stderr=f"{cmd[0]}: {e.strerror or e}".encode())

        return CommandResult(proc.returncode, proc.stdout or b"", proc.stderr or b"")
