"""
Monitor context — the process-wide monitor root directory.

Set once at startup by the entry point:

    - CLI:    main.py   → context.set_monitor_root(root)
    - Tests:  fixtures  → context.set_monitor_root(tmp_path)

Module-level singleton. ``get_monitor_root()`` returns None when unset;
the resolver then falls back to the current directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


_monitor_root: Optional[Path] = None


def set_monitor_root(root: Optional[Path]) -> None:
    """Register the monitor root for the current process."""
    global _monitor_root
    _monitor_root = root


def get_monitor_root() -> Optional[Path]:
    """Return the current monitor root, or None if not yet set."""
    return _monitor_root
