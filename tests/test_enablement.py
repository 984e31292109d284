"""
Tests for the global and selective autofix switches.
"""

import logging

import pytest

from modmon.core.engine.enablement import EnablementPolicy, normalize_action_name
from modmon.core.models.config import EffectiveConfig


def _policy(**values) -> EnablementPolicy:
    return EnablementPolicy(EffectiveConfig(values=values))


class TestGlobalSwitch:
    def test_unset_means_enabled(self):
        assert _policy().is_enabled("disk-cleanup")

    def test_empty_means_enabled(self):
        assert _policy(AUTOFIX="").is_enabled("disk-cleanup")

    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", "on", " true "])
    def test_enabled_values(self, value):
        assert _policy(AUTOFIX=value).is_enabled()

    @pytest.mark.parametrize("value", ["false", "False", "0", "no", "off"])
    def test_disabled_values(self, value):
        decision = _policy(AUTOFIX=value).evaluate("disk-cleanup")
        assert not decision.enabled
        assert decision.scope == "global"
        assert decision.config_key == "AUTOFIX"

    def test_unrecognized_value_disables_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert not _policy(AUTOFIX="maybe").is_enabled()
        assert "Unrecognized AUTOFIX" in caplog.text

    def test_reason_names_key_and_fix(self):
        decision = _policy(AUTOFIX="false").evaluate("disk-cleanup")
        assert "AUTOFIX='false'" in decision.reason
        assert "set AUTOFIX=true in config/SYSTEM.conf" in decision.reason

    def test_global_wins_over_selective(self):
        decision = _policy(AUTOFIX="false", DISABLE_AUTOFIX="disk-cleanup").evaluate("disk-cleanup")
        assert decision.scope == "global"


class TestSelectiveSwitch:
    def test_listed_action_disabled(self):
        decision = _policy(DISABLE_AUTOFIX="disk-cleanup memory-cleanup").evaluate("memory-cleanup")
        assert not decision.enabled
        assert decision.scope == "selective"
        assert decision.config_key == "DISABLE_AUTOFIX"
        assert "remove 'memory-cleanup' from DISABLE_AUTOFIX" in decision.reason

    def test_unlisted_action_enabled(self):
        assert _policy(DISABLE_AUTOFIX="disk-cleanup").is_enabled("graphics")

    def test_handler_extension_in_list(self):
        assert not _policy(DISABLE_AUTOFIX="disk-cleanup.sh").is_enabled("disk-cleanup")

    def test_handler_extension_in_query(self):
        assert not _policy(DISABLE_AUTOFIX="disk-cleanup").is_enabled("disk-cleanup.py")

    def test_matching_is_exact(self):
        policy = _policy(DISABLE_AUTOFIX="disk-cleanup")
        assert policy.is_enabled("Disk-Cleanup")
        assert policy.is_enabled("disk")
        assert policy.is_enabled("disk-cleanup-extra")

    def test_no_action_only_checks_global(self):
        assert _policy(DISABLE_AUTOFIX="disk-cleanup").is_enabled()

    def test_extra_whitespace(self):
        assert not _policy(DISABLE_AUTOFIX="  a \t disk-cleanup  ").is_enabled("disk-cleanup")


class TestState:
    def test_state_snapshot(self):
        state = _policy(AUTOFIX="yes", DISABLE_AUTOFIX="b a.sh").state()
        assert state.global_enabled
        assert state.disabled_actions == frozenset({"a", "b"})
        assert state.to_dict() == {
            "global_enabled": True,
            "global_value": "yes",
            "disabled_actions": ["a", "b"],
        }


class TestComponentSelection:
    def test_all_components_by_default(self):
        assert _policy().is_component_enabled("thermal")

    def test_use_modules_restricts(self):
        policy = _policy(USE_MODULES="thermal disk")
        assert policy.is_component_enabled("disk")
        assert not policy.is_component_enabled("usb")

    def test_use_modules_all_sentinel(self):
        policy = _policy(USE_MODULES="ALL")
        assert policy.is_component_enabled("thermal")
        assert policy.is_component_enabled("usb")

    def test_ignore_modules(self):
        policy = _policy(IGNORE_MODULES="usb")
        assert not policy.is_component_enabled("usb")
        assert policy.is_component_enabled("thermal")


class TestNormalizeActionName:
    @pytest.mark.parametrize("raw,expected", [
        ("disk-cleanup.sh", "disk-cleanup"),
        ("disk-cleanup.py", "disk-cleanup"),
        ("disk-cleanup", "disk-cleanup"),
        (".sh", ".sh"),
        ("a.sh.sh", "a.sh"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_action_name(raw) == expected
