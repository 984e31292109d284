"""
Shared test fixtures and configuration.
"""

import logging
import shlex
import textwrap
from pathlib import Path

import pytest

from modmon.adapters.base import HandlerContext
from modmon.adapters.shell.command import CommandResult, CommandRunner
from modmon.core.config.loader import BUILTIN_DEFAULTS, ENV_OVERRIDE_KEYS
from modmon.core.context import set_monitor_root
from modmon.core.models.config import EffectiveConfig

_ENV_KEYS = (
    set(ENV_OVERRIDE_KEYS)
    | set(BUILTIN_DEFAULTS)
    | {"MODMON_ROOT", "MODMON_LOG_LEVEL", "MODMON_LOG_FILE", "MODMON_LOG_FILE_LEVEL", "SNAPSHOT_DIR"}
)


@pytest.fixture(autouse=True)
def _isolate_process_state(monkeypatch):
    """No host environment overrides leak in; context and logging are restored."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    set_monitor_root(None)
    root.handlers[:] = handlers
    root.setLevel(level)


class FakeClock:
    """Manually advanced clock for grace period arithmetic."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRunner(CommandRunner):
    """CommandRunner that never spawns processes.

    ``responses`` maps a shell-joined command to (returncode, stdout).
    Unknown commands succeed with empty output.
    """

    def __init__(self, responses=None, missing=(), dry_run=False):
        super().__init__(dry_run=dry_run)
        self.responses = dict(responses or {})
        self.missing = set(missing)
        self.executed: list[str] = []

    def available(self, binary: str) -> bool:
        return binary not in self.missing

    def _execute(self, argv, timeout):
        command = shlex.join(argv)
        self.executed.append(command)
        code, out = self.responses.get(command, (0, ""))
        return CommandResult(argv=list(argv), returncode=code, stdout=out)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_runner():
    """Factory for FakeRunner instances."""
    return FakeRunner


@pytest.fixture
def make_ctx():
    """Factory for HandlerContext with an in-memory config."""

    def _make(values=None, runner=None, dry_run=False, action_name="test-action", requested_by="tests"):
        return HandlerContext(
            action_name=action_name,
            requested_by=requested_by,
            cooldown_seconds=60,
            config=EffectiveConfig(values=dict(values or {})),
            runner=runner if runner is not None else FakeRunner(dry_run=dry_run),
            dry_run=dry_run,
        )

    return _make


@pytest.fixture
def write_layer():
    """Write a dedented config layer, creating parent directories."""

    def _write(path: Path, text: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def monitor_root(tmp_path: Path, write_layer) -> Path:
    """A monitor root whose mutable state stays inside tmp_path."""
    root = tmp_path / "monitor"
    (root / "config").mkdir(parents=True)
    (root / "modules").mkdir()
    write_layer(root / "system_default.conf", f"""\
        # System defaults
        AUTOFIX=true
        MONITOR_INTERVAL=120
        GRACE_DIR="{tmp_path / 'grace'}"
        SNAPSHOT_DIR="{tmp_path / 'snapshots'}"
        TEMP_WARNING=85
    """)
    return root
