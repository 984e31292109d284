"""
Identifier grammar for names that become storage keys or registry keys.

Names are rejected, never sanitized: a sanitized name can still collide
with another action's record, or smuggle a path through a lossy mapping.
"""

from __future__ import annotations

import re

from modmon.core.errors import InvalidIdentifier

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def is_valid_identifier(value: object) -> bool:
    """Whether ``value`` is a non-empty string in ``[A-Za-z0-9_-]+``."""
    return isinstance(value, str) and IDENTIFIER_PATTERN.fullmatch(value) is not None


def validate_identifier(value: object, kind: str = "action") -> str:
    """Return ``value`` unchanged, or raise ``InvalidIdentifier``.

    Args:
        value: Candidate name.
        kind: What the name identifies (action, component, variant, family).
            Only used in the error message.
    """
    if not is_valid_identifier(value):
        raise InvalidIdentifier(kind, value)
    return value  # type: ignore[return-value]
