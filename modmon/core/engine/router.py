"""
Variant router — picks the concrete handler for an action family.

A family (graphics, display, kernel) has one handler per variant
(chipset, compositor, distribution). The variant comes from
configuration, or from a detector when configured as ``auto``. The
result is looked up in the HandlerRegistry only after it passes the
identifier grammar; nothing is ever resolved from a caller-supplied
path.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from modmon.adapters.registry import Handler, HandlerRegistry
from modmon.core.engine.identifiers import validate_identifier
from modmon.core.errors import NoHandlerAvailable

logger = logging.getLogger(__name__)

AUTO_VARIANT = "auto"


@dataclass(frozen=True)
class HandlerRef:
    """A resolved, registry-backed handler for one family variant."""

    family: str
    variant: str
    handler: Handler
    detected: bool = False

    def __call__(self, *args: Any) -> Any:
        return self.handler(*args)

    @property
    def label(self) -> str:
        return f"{self.family}/{self.variant}"


class VariantRouter:
    """Resolves family variants against a HandlerRegistry."""

    def __init__(self, registry: HandlerRegistry):
        self._registry = registry

    def resolve_handler(
        self,
        action_family: str,
        configured_variant: str | None,
        detector: Callable[[], str | None],
    ) -> HandlerRef:
        """Resolve ``action_family`` to a registered variant handler.

        Args:
            action_family: Family name, e.g. ``graphics``.
            configured_variant: Configured variant; empty or ``auto``
                runs ``detector``.
            detector: Zero-argument probe returning a variant name or None.

        Raises:
            InvalidIdentifier: If the family, configured or detected
                variant name fails the identifier grammar.
            NoHandlerAvailable: If no variant was detected or the variant
                has no registered handler.
        """
        validate_identifier(action_family, "family")

        variant = (configured_variant or "").strip()
        detected = False
        if not variant or variant.lower() == AUTO_VARIANT:
            detected = True
            try:
                variant = detector() or ""
            except Exception as e:
                logger.warning("%s variant detection failed: %s", action_family, e)
                raise NoHandlerAvailable(action_family, None, f"detection failed: {e}") from e
            if not variant:
                raise NoHandlerAvailable(action_family, None, "no supported variant detected")

        validate_identifier(variant, "variant")

        handler = self._registry.get_variant(action_family, variant)
        if handler is None:
            known = ", ".join(self._registry.variants(action_family)) or "none"
            raise NoHandlerAvailable(action_family, variant, f"known variants: {known}")

        logger.debug(
            "Resolved %s handler: %s (%s)",
            action_family, variant, "detected" if detected else "configured",
        )
        return HandlerRef(
            family=action_family, variant=variant, handler=handler, detected=detected,
        )
