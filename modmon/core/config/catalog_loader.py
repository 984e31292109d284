"""
Catalog loader — reads remediation actions and families from YAML.

The built-in catalog ships as ``modmon/core/data/actions.yml``. An
operator catalog at ``<root>/config/actions.yml`` is merged on top:
entries with the same name replace the built-in ones.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from modmon.core.engine.identifiers import is_valid_identifier
from modmon.core.models.catalog import Catalog

logger = logging.getLogger(__name__)

BUILTIN_CATALOG = Path(__file__).parent.parent / "data" / "actions.yml"
OPERATOR_CATALOG = Path("config") / "actions.yml"


def load_catalog(path: Path) -> Catalog | None:
    """Load one catalog file.

    Returns:
        Catalog model, or None if the file is missing or invalid.
    """
    if not path.is_file():
        logger.debug("Catalog not found: %s", path)
        return None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to read catalog %s: %s", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Catalog %s is not a mapping, skipping", path)
        return None

    try:
        catalog = Catalog.model_validate(data)
    except ValidationError as e:
        logger.warning("Invalid catalog %s: %s", path, e)
        return None

    return _drop_invalid_names(catalog, path)


def _drop_invalid_names(catalog: Catalog, path: Path) -> Catalog:
    actions = []
    for action in catalog.actions:
        if is_valid_identifier(action.name):
            actions.append(action)
        else:
            logger.warning("Skipping catalog action with invalid name %r in %s", action.name, path)

    families = []
    for family in catalog.families:
        if not is_valid_identifier(family.name):
            logger.warning("Skipping catalog family with invalid name %r in %s", family.name, path)
            continue
        bad = [v.name for v in family.variants if not is_valid_identifier(v.name)]
        if bad:
            logger.warning("Skipping %s variants with invalid names %s in %s", family.name, bad, path)
            family = family.model_copy(
                update={"variants": [v for v in family.variants if v.name not in bad]}
            )
        families.append(family)

    return Catalog(actions=actions, families=families)


def merge_catalogs(base: Catalog, overlay: Catalog) -> Catalog:
    """``overlay`` entries replace same-named ``base`` entries."""
    actions = {a.name: a for a in base.actions}
    actions.update({a.name: a for a in overlay.actions})
    families = {f.name: f for f in base.families}
    families.update({f.name: f for f in overlay.families})
    return Catalog(actions=list(actions.values()), families=list(families.values()))


def discover_catalog(monitor_root: Path | None = None) -> Catalog:
    """Built-in catalog, overlaid by the operator catalog if present."""
    catalog = load_catalog(BUILTIN_CATALOG) or Catalog()
    if monitor_root is not None:
        overlay = load_catalog(monitor_root / OPERATOR_CATALOG)
        if overlay is not None:
            logger.info("Merged operator catalog from %s", monitor_root / OPERATOR_CATALOG)
            catalog = merge_catalogs(catalog, overlay)
    logger.debug(
        "Catalog: %d actions, %d families", len(catalog.actions), len(catalog.families)
    )
    return catalog
