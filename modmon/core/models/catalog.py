"""
Catalog models — remediation actions and variant families described in YAML.

The built-in catalog lives in ``modmon/core/data/actions.yml``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class CommandStep(BaseModel):
    """One command of a remediation plan.

    ``run`` is an argv list; ``{arg0}``, ``{arg1}``... are replaced by the
    dispatch arguments before execution.
    """

    run: list[str]
    description: str = ""
    timeout: int = 120
    fallback: bool = False          # only runs if the previous step failed
    optional: bool = False          # failure does not fail the plan
    requires: str | None = None     # binary that must be on PATH


class ActionSpec(BaseModel):
    """A standalone action with a fixed command plan."""

    name: str
    description: str = ""
    enabled_key: str | None = None  # extra per-action gate, e.g. ENABLE_EMERGENCY_SHUTDOWN
    steps: list[CommandStep] = Field(default_factory=list)


class VariantSpec(BaseModel):
    """A hardware or software specific implementation of a family."""

    name: str
    description: str = ""
    steps: list[CommandStep] = Field(default_factory=list)


class VariantSelector(BaseModel):
    """How a family picks its variant: a config key, with a probe for ``auto``."""

    config_key: str
    detector: str


class FamilySpec(BaseModel):
    """An action family whose concrete handler depends on the host."""

    name: str
    description: str = ""
    selectors: list[VariantSelector] = Field(default_factory=list)
    variants: list[VariantSpec] = Field(default_factory=list)

    def variant_names(self) -> list[str]:
        return [v.name for v in self.variants]


class Catalog(BaseModel):
    """Everything the catalog file declares."""

    actions: list[ActionSpec] = Field(default_factory=list)
    families: list[FamilySpec] = Field(default_factory=list)

    def action(self, name: str) -> ActionSpec | None:
        for spec in self.actions:
            if spec.name == name:
                return spec
        return None

    def family(self, name: str) -> FamilySpec | None:
        for spec in self.families:
            if spec.name == name:
                return spec
        return None
