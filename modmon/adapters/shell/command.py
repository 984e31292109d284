"""
Command runner — execute system commands on behalf of handlers.

Live mode runs each command with ``subprocess.run`` and captures its
output. Dry-run mode records the command as planned and returns a
synthetic success without executing it. Read-only probes used for
detection go through ``probe`` and always execute.

Failures (non-zero exit, missing binary, timeout) come back as a
``CommandResult``; the runner never raises for them.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
PROBE_TIMEOUT = 10


@dataclass
class CommandResult:
    """Outcome of one command."""

    argv: list[str]
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    dry_run: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0

    @property
    def command(self) -> str:
        return shlex.join(self.argv)

    def summary(self) -> str:
        """One line suitable for a handler detail."""
        if self.dry_run:
            return f"[dry-run] {self.command}"
        if self.ok:
            return f"ok: {self.command}"
        reason = self.error or self.stderr or f"exit code {self.returncode}"
        return f"failed: {self.command} ({reason})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "returncode": self.returncode,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_ms": self.duration_ms,
            "dry_run": self.dry_run,
            "error": self.error,
        }


@dataclass
class CommandRunner:
    """Runs (or, in dry-run, plans) commands for one dispatch."""

    dry_run: bool = False
    default_timeout: int = DEFAULT_TIMEOUT
    planned: list[str] = field(default_factory=list)
    history: list[CommandResult] = field(default_factory=list)

    def run(
        self,
        argv: list[str],
        description: str = "",
        timeout: int | None = None,
    ) -> CommandResult:
        """Run a state-changing command, or plan it in dry-run mode."""
        command = shlex.join(argv)
        if self.dry_run:
            self.planned.append(f"{description}: {command}" if description else command)
            logger.info("[dry-run] Would run: %s", command)
            result = CommandResult(argv=list(argv), returncode=0, dry_run=True)
        else:
            logger.info("Running: %s", command)
            result = self._execute(argv, timeout or self.default_timeout)
            if not result.ok:
                logger.warning("Command failed: %s", result.summary())
        self.history.append(result)
        return result

    def probe(self, argv: list[str], timeout: int = PROBE_TIMEOUT) -> CommandResult:
        """Run a read-only command. Executes even in dry-run mode."""
        logger.debug("Probing: %s", shlex.join(argv))
        return self._execute(argv, timeout)

    @staticmethod
    def available(binary: str) -> bool:
        return shutil.which(binary) is not None

    def _execute(self, argv: list[str], timeout: int) -> CommandResult:
        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError:
            return CommandResult(argv=list(argv), error=f"command not found: {argv[0]}")
        except subprocess.TimeoutExpired:
            return CommandResult(
                argv=list(argv),
                error=f"timed out after {timeout}s",
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        except OSError as e:
            return CommandResult(argv=list(argv), error=f"execution error: {e}")

        return CommandResult(
            argv=list(argv),
            returncode=proc.returncode,
            stdout=proc.stdout.strip(),
            stderr=proc.stderr.strip(),
            duration_ms=int((time.monotonic() - start) * 1000),
        )
