"""
Emergency process kill — terminate the top CPU consumer.

Picks the busiest process above ``PROCESS_CPU_THRESHOLD`` percent that
is not critical to the host, sends SIGTERM, waits up to
``KILL_PROCESS_WAIT_TIME`` seconds for it to exit, then sends SIGKILL.
The wait is bounded here; the dispatcher imposes no timeout.

A specific PID may be passed as the first argument; it is still
subject to the critical-process check.
"""

from __future__ import annotations

import logging
import os
import signal
import time
from collections.abc import Callable
from dataclasses import dataclass

from modmon.adapters.base import HandlerContext, HandlerResult, RemediationHandler

logger = logging.getLogger(__name__)

CRITICAL_PROCESSES = frozenset({
    "systemd",
    "init",
    "kthreadd",
    "dbus",
    "dbus-daemon",
    "dbus-broker",
    "NetworkManager",
    "sshd",
})
CRITICAL_PID_CEILING = 100
PS_COMMAND = ["ps", "-eo", "pid=,pcpu=,comm=", "--sort=-pcpu"]
_POLL_INTERVAL = 0.2


@dataclass
class ProcessInfo:
    """One row of ``ps`` output."""

    pid: int
    cpu: float
    command: str

    @property
    def label(self) -> str:
        return f"{self.command} (PID {self.pid}, {self.cpu:.1f}% CPU)"


def parse_ps_output(text: str) -> list[ProcessInfo]:
    """Parse ``pid pcpu comm`` rows; malformed rows are ignored."""
    processes = []
    for line in text.splitlines():
        parts = line.split(None, 2)
        if len(parts) < 3:
            continue
        try:
            processes.append(ProcessInfo(pid=int(parts[0]), cpu=float(parts[1]), command=parts[2].strip()))
        except ValueError:
            continue
    return processes


def is_critical(process: ProcessInfo) -> bool:
    """Kernel threads, core daemons and low PIDs are never killed."""
    if process.pid <= CRITICAL_PID_CEILING:
        return True
    if process.command.startswith("["):
        return True
    return process.command in CRITICAL_PROCESSES


class ProcessKillHandler(RemediationHandler):
    """Terminates a runaway process, escalating to SIGKILL."""

    description = "Terminate the top CPU consumer (SIGTERM, then SIGKILL)"

    def __init__(
        self,
        kill: Callable[[int, int], None] = os.kill,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._kill = kill
        self._sleep = sleep
        self._clock = clock

    @property
    def name(self) -> str:
        return "emergency-process-kill"

    def run(self, ctx: HandlerContext, *args: str) -> HandlerResult:
        if not ctx.config.get_bool("ENABLE_EMERGENCY_KILL", True):
            return HandlerResult.ok("Emergency process kill is switched off (ENABLE_EMERGENCY_KILL), nothing done")

        threshold = ctx.config.get_int("PROCESS_CPU_THRESHOLD", 10)
        wait_seconds = ctx.config.get_int("KILL_PROCESS_WAIT_TIME", 3)

        listing = ctx.runner.probe(PS_COMMAND)
        if not listing.ok:
            return HandlerResult.failed(f"Cannot list processes: {listing.error or listing.stderr}")
        processes = parse_ps_output(listing.stdout)

        if args and args[0].isdigit():
            pid = int(args[0])
            matches = [p for p in processes if p.pid == pid]
            if not matches:
                return HandlerResult.ok(f"PID {pid} is not running, nothing to kill")
            target = matches[0]
            if is_critical(target):
                return HandlerResult.failed(f"Refusing to kill critical process {target.label}")
        else:
            candidates = [p for p in processes if p.cpu >= threshold and not is_critical(p)]
            if not candidates:
                return HandlerResult.ok(f"No non-critical process above {threshold}% CPU, nothing to kill")
            target = candidates[0]

        if ctx.dry_run:
            return HandlerResult.ok(
                f"Would terminate {target.label}: SIGTERM, then SIGKILL after {wait_seconds}s",
                planned=[f"kill -TERM {target.pid}", f"kill -KILL {target.pid}"],
            )

        return self._terminate(target, wait_seconds)

    def _terminate(self, target: ProcessInfo, wait_seconds: int) -> HandlerResult:
        logger.warning("Terminating %s", target.label)
        try:
            self._kill(target.pid, signal.SIGTERM)
        except ProcessLookupError:
            return HandlerResult.ok(f"{target.label} exited before SIGTERM")
        except PermissionError as e:
            return HandlerResult.failed(f"Not permitted to signal {target.label}: {e}")

        deadline = self._clock() + wait_seconds
        while self._clock() < deadline:
            if not self._alive(target.pid):
                return HandlerResult.ok(f"Terminated {target.label} with SIGTERM")
            self._sleep(_POLL_INTERVAL)

        if not self._alive(target.pid):
            return HandlerResult.ok(f"Terminated {target.label} with SIGTERM")

        logger.warning("%s ignored SIGTERM for %ds, sending SIGKILL", target.label, wait_seconds)
        try:
            self._kill(target.pid, signal.SIGKILL)
        except ProcessLookupError:
            return HandlerResult.ok(f"Terminated {target.label} with SIGTERM")
        except PermissionError as e:
            return HandlerResult.failed(f"Not permitted to SIGKILL {target.label}: {e}")
        return HandlerResult.ok(f"Killed {target.label} with SIGKILL after {wait_seconds}s")

    def _alive(self, pid: int) -> bool:
        try:
            self._kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True
