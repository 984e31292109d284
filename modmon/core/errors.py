"""
Autofix error taxonomy.

Every failure the engine can meet has a type here. Only
``InvalidIdentifier`` is allowed to escape a dispatch call; the rest
are caught by the component that raised them and turned into a logged
warning or a typed ``DispatchOutcome``.
"""

from __future__ import annotations

from pathlib import Path


class AutofixError(Exception):
    """Base class for all autofix engine errors."""


class ConfigLayerUnreadable(AutofixError):
    """A configuration layer exists but could not be read."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read config layer {path}: {reason}")


class ConfigMalformed(AutofixError):
    """A configuration layer contains a line that is not an assignment."""

    def __init__(self, path: Path | None, line_number: int, line: str):
        self.path = path
        self.line_number = line_number
        self.line = line
        where = f"{path}:{line_number}" if path else f"line {line_number}"
        super().__init__(f"Malformed config at {where}: {line!r}")


class GraceStoreCorrupt(AutofixError):
    """A grace record could not be decoded."""

    def __init__(self, path: Path | str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt grace record {path}: {reason}")


class InvalidIdentifier(AutofixError):
    """An action, component or variant name failed the identifier grammar."""

    def __init__(self, kind: str, value: object):
        self.kind = kind
        self.value = value
        super().__init__(
            f"Invalid {kind} name {value!r}: "
            "only letters, digits, hyphen and underscore are allowed"
        )


class HandlerFailure(AutofixError):
    """A remediation handler raised or reported failure."""

    def __init__(self, action_name: str, detail: str):
        self.action_name = action_name
        self.detail = detail
        super().__init__(f"Handler for '{action_name}' failed: {detail}")


class NoHandlerAvailable(AutofixError):
    """No registered variant can serve an action family on this host."""

    def __init__(self, family: str, variant: str | None, reason: str = ""):
        self.family = family
        self.variant = variant
        self.reason = reason
        label = variant if variant else "<undetected>"
        msg = f"No {family} handler available for variant '{label}'"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
