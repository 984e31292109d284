"""
Variant detectors — read-only probes used when a variant is ``auto``.

Each detector takes the dispatch's ``CommandRunner`` (probes execute
even in dry-run) and returns a variant name, or None when nothing
recognizable is found.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path

from modmon.adapters.shell.command import CommandRunner

logger = logging.getLogger(__name__)

PROC_MODULES = Path("/proc/modules")
OS_RELEASE = Path("/etc/os-release")

# Loaded kernel module → graphics variant, in priority order
_GRAPHICS_MODULES = (
    ("i915", "i915"),
    ("nvidia", "nvidia"),
    ("amdgpu", "amdgpu"),
    ("radeon", "amdgpu"),
)

# Running process → compositor variant
_COMPOSITORS = (
    ("kwin_wayland", "kwin"),
    ("gnome-shell", "gnome"),
    ("sway", "sway"),
)

Detector = Callable[[CommandRunner], str | None]


# ── Graphics ───────────────────────────────────────────────────

def loaded_kernel_modules(path: Path = PROC_MODULES) -> set[str]:
    """Names of loaded kernel modules, from /proc/modules."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return set()
    return {line.split()[0] for line in text.splitlines() if line.strip()}


def _lspci_vendor(runner: CommandRunner) -> str | None:
    result = runner.probe(["lspci"])
    if not result.ok:
        return None
    for line in result.stdout.splitlines():
        if "VGA" not in line and "3D controller" not in line and "Display" not in line:
            continue
        upper = line.upper()
        if "INTEL" in upper:
            return "i915"
        if "NVIDIA" in upper:
            return "nvidia"
        if "AMD" in upper or "ATI" in upper or "RADEON" in upper:
            return "amdgpu"
    return None


def detect_graphics_chipset(runner: CommandRunner, modules_path: Path = PROC_MODULES) -> str | None:
    """Loaded driver first, then the PCI display controller vendor."""
    modules = loaded_kernel_modules(modules_path)
    for module, variant in _GRAPHICS_MODULES:
        if module in modules:
            logger.debug("Graphics chipset from kernel module %s: %s", module, variant)
            return variant
    variant = _lspci_vendor(runner)
    if variant:
        logger.debug("Graphics chipset from lspci: %s", variant)
    return variant


# ── Display ────────────────────────────────────────────────────

def detect_display_server(
    runner: CommandRunner,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """``wayland`` or ``x11``, from the session environment or running servers."""
    env = os.environ if environ is None else environ
    if env.get("WAYLAND_DISPLAY"):
        return "wayland"
    if env.get("DISPLAY"):
        return "x11"
    if runner.probe(["pgrep", "-f", "wayland"]).ok:
        return "wayland"
    if runner.probe(["pgrep", "-x", "Xorg"]).ok:
        return "x11"
    return None


def detect_compositor(runner: CommandRunner) -> str | None:
    for process, variant in _COMPOSITORS:
        if runner.probe(["pgrep", "-x", process]).ok:
            return variant
    return None


# ── Distribution ───────────────────────────────────────────────

def read_os_release_id(path: Path = OS_RELEASE) -> str | None:
    """The ``ID=`` field of os-release, lower-cased."""
    try:
        with open(path, encoding="utf-8") as f:
            for line in f:
                if line.startswith("ID="):
                    return line.split("=", 1)[1].strip().strip('"').lower() or None
    except OSError:
        return None
    return None


def detect_distribution(runner: CommandRunner) -> str | None:
    return read_os_release_id()


DETECTORS: dict[str, Detector] = {
    "graphics": detect_graphics_chipset,
    "display_server": detect_display_server,
    "compositor": detect_compositor,
    "distribution": detect_distribution,
}
