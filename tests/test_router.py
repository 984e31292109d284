"""
Tests for the handler registry and variant routing.
"""

import pytest

from modmon.adapters.mock import MockHandler
from modmon.adapters.registry import HandlerRegistry
from modmon.core.engine.router import VariantRouter
from modmon.core.errors import InvalidIdentifier, NoHandlerAvailable


@pytest.fixture
def registry() -> HandlerRegistry:
    reg = HandlerRegistry()
    reg.register_variant("graphics", "i915", MockHandler("i915"))
    reg.register_variant("graphics", "nvidia", MockHandler("nvidia"))
    return reg


@pytest.fixture
def router(registry) -> VariantRouter:
    return VariantRouter(registry)


def _never():
    raise AssertionError("detector must not run")


class TestResolveHandler:
    def test_configured_variant(self, router, registry):
        ref = router.resolve_handler("graphics", "nvidia", _never)
        assert ref.variant == "nvidia"
        assert ref.handler is registry.get_variant("graphics", "nvidia")
        assert not ref.detected
        assert ref.label == "graphics/nvidia"

    @pytest.mark.parametrize("configured", ["auto", "AUTO", "", None, "  "])
    def test_auto_runs_detector(self, router, configured):
        ref = router.resolve_handler("graphics", configured, lambda: "i915")
        assert ref.variant == "i915"
        assert ref.detected

    def test_nothing_detected(self, router):
        with pytest.raises(NoHandlerAvailable) as exc:
            router.resolve_handler("graphics", "auto", lambda: None)
        assert exc.value.variant is None
        assert "no supported variant detected" in str(exc.value)

    def test_detector_failure(self, router):
        def _boom():
            raise OSError("lspci missing")

        with pytest.raises(NoHandlerAvailable, match="detection failed"):
            router.resolve_handler("graphics", "auto", _boom)

    def test_unregistered_variant_lists_known(self, router):
        with pytest.raises(NoHandlerAvailable) as exc:
            router.resolve_handler("graphics", "amdgpu", _never)
        assert exc.value.variant == "amdgpu"
        assert "known variants: i915, nvidia" in str(exc.value)

    def test_unknown_family(self, router):
        with pytest.raises(NoHandlerAvailable, match="known variants: none"):
            router.resolve_handler("audio", "alsa", _never)

    @pytest.mark.parametrize("variant", ["../i915", "i915/x", "i915;reboot"])
    def test_invalid_configured_variant(self, router, variant):
        with pytest.raises(InvalidIdentifier):
            router.resolve_handler("graphics", variant, _never)

    def test_invalid_detected_variant(self, router):
        with pytest.raises(InvalidIdentifier):
            router.resolve_handler("graphics", "auto", lambda: "../../bin/sh")

    def test_invalid_family(self, router):
        with pytest.raises(InvalidIdentifier):
            router.resolve_handler("../graphics", "i915", _never)

    def test_ref_is_callable(self, router, make_ctx):
        ref = router.resolve_handler("graphics", "i915", _never)
        result = ref(make_ctx(), "arg")
        assert result.success
        assert ref.handler.call_count == 1


class TestHandlerRegistry:
    def test_register_and_get_action(self):
        reg = HandlerRegistry()
        handler = MockHandler("disk-cleanup")
        reg.register_action("disk-cleanup", handler)
        assert reg.get_action("disk-cleanup") is handler
        assert reg.list_actions() == ["disk-cleanup"]

    def test_invalid_name_rejected_on_register(self):
        with pytest.raises(InvalidIdentifier):
            HandlerRegistry().register_action("../disk", MockHandler())

    def test_invalid_name_lookup_returns_none(self):
        assert HandlerRegistry().get_action("../disk") is None

    def test_unregister(self):
        reg = HandlerRegistry()
        reg.register_action("a", MockHandler())
        reg.unregister_action("a")
        reg.unregister_action("a")
        assert reg.get_action("a") is None

    def test_overwrite_warns(self, caplog):
        reg = HandlerRegistry()
        reg.register_action("a", MockHandler())
        reg.register_action("a", MockHandler())
        assert "Overwriting" in caplog.text

    def test_families(self, registry):
        assert registry.has_family("graphics")
        assert not registry.has_family("display")
        assert registry.variants("graphics") == ["i915", "nvidia"]
        assert registry.list_families() == ["graphics"]
        assert len(registry) == 2

    def test_describe(self):
        reg = HandlerRegistry()
        handler = MockHandler("a")
        handler.description = "does a"
        reg.register_action("a", handler)
        reg.register_variant("display", "x11", MockHandler())
        assert reg.describe() == {"actions": {"a": "does a"}, "families": {"display": ["x11"]}}
