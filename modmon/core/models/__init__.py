"""
Domain models — Pydantic types for the autofix engine.

    from modmon.core.models import EffectiveConfig, GraceRecord, DispatchOutcome
"""

from modmon.core.models.catalog import (
    ActionSpec,
    Catalog,
    CommandStep,
    FamilySpec,
    VariantSelector,
    VariantSpec,
)
from modmon.core.models.config import ConfigLayer, EffectiveConfig
from modmon.core.models.grace import Expired, GraceCheck, GraceRecord, InGracePeriod
from modmon.core.models.outcome import DispatchOutcome

__all__ = [
    # catalog.py
    "ActionSpec",
    "Catalog",
    "CommandStep",
    "FamilySpec",
    "VariantSelector",
    "VariantSpec",
    # config.py
    "ConfigLayer",
    "EffectiveConfig",
    # grace.py
    "Expired",
    "GraceCheck",
    "GraceRecord",
    "InGracePeriod",
    # outcome.py
    "DispatchOutcome",
]
