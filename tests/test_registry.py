"""Tests for ServiceRegistry and build_registry."""

import pytest

from simple_chat.anthropic_client import AnthropicClient
from simple_chat.config import Config
from simple_chat.errors import ServiceNotInitializedError, UnknownModelError, UnknownServiceError
from simple_chat.mock_client import MockClient
from simple_chat.models import ServiceConfig
from simple_chat.openai_client import OpenAIClient
from simple_chat.registry import ServiceRegistry, build_registry

from conftest import ScriptedAdapter


def make_config(**overrides):
    values = dict(
        openai_api_key="",
        anthropic_api_key="",
        default_service="openai",
        use_mock=False,
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def registry():
    reg = ServiceRegistry()
    reg.register_factory("a", lambda config: ScriptedAdapter())
    reg.register_factory("b", lambda config: ScriptedAdapter())
    return reg


class TestInitialize:
    """Adapter initialization."""

    def test_missing_api_key_skips_silently(self, registry):
        result = registry.initialize("a", ServiceConfig(api_key="", model="m"))

        assert result is None
        assert registry.has("a") is False
        assert registry.list_all() == []

    def test_first_initialized_becomes_active(self, registry):
        first = registry.initialize("a", ServiceConfig(api_key="k", model="m"))
        registry.initialize("b", ServiceConfig(api_key="k", model="m"))

        assert registry.active_id == "a"
        assert registry.get_active() is first
        assert len(registry.list_all()) == 2

    def test_unknown_factory_raises(self, registry):
        with pytest.raises(UnknownServiceError):
            registry.initialize("nope", ServiceConfig(api_key="k", model="m"))

    def test_unknown_factory_raises_without_api_key(self, registry):
        with pytest.raises(UnknownServiceError):
            registry.initialize("nope", ServiceConfig(api_key="", model="m"))

    def test_failing_factory_returns_none(self, registry):
        def broken(config):
            raise RuntimeError("boom")

        registry.register_factory("broken", broken)

        assert registry.initialize("broken", ServiceConfig(api_key="k", model="m")) is None
        assert registry.has("broken") is False


class TestSelection:
    """Active provider and model selection."""

    def test_set_active_unregistered_raises(self, registry):
        registry.initialize("a", ServiceConfig(api_key="k", model="m"))

        with pytest.raises(ServiceNotInitializedError):
            registry.set_active("b")

        assert registry.active_id == "a"

    def test_set_active_switches(self, registry):
        registry.initialize("a", ServiceConfig(api_key="k", model="m"))
        second = registry.initialize("b", ServiceConfig(api_key="k", model="m"))

        registry.set_active("b")

        assert registry.get_active() is second
        assert [p.active for p in registry.describe()] == [False, True]

    def test_get_active_without_services_raises(self, registry):
        with pytest.raises(ServiceNotInitializedError):
            registry.get_active()

    def test_get_unknown_raises(self, registry):
        with pytest.raises(ServiceNotInitializedError):
            registry.get("a")

    def test_model_pass_throughs(self, registry):
        registry.initialize("a", ServiceConfig(api_key="k", model="m"))

        assert [m.id for m in registry.list_models("a")] == ["scripted-1"]
        registry.set_model("a", "other")
        assert registry.get_selected_model("a") == "other"

    def test_set_model_on_missing_provider_raises(self, registry):
        with pytest.raises(ServiceNotInitializedError):
            registry.set_model("b", "gpt-4")

    @pytest.mark.asyncio
    async def test_close_closes_adapters(self, registry):
        adapter = registry.initialize("a", ServiceConfig(api_key="k", model="m"))
        await registry.close()
        assert adapter.closed is True


class TestBuildRegistry:
    """Registry construction from configuration."""

    def test_no_credentials_uses_mock(self):
        registry = build_registry(make_config())

        assert registry.active_id == "mock"
        assert isinstance(registry.get_active(), MockClient)
        assert registry.has("openai") is False

    def test_forced_mock(self):
        registry = build_registry(make_config(openai_api_key="sk", use_mock=True))

        assert [p.id for p in registry.describe()] == ["mock"]

    def test_only_configured_providers_registered(self):
        registry = build_registry(make_config(anthropic_api_key="ak"))

        assert registry.has("anthropic") is True
        assert registry.has("openai") is False
        assert isinstance(registry.get_active(), AnthropicClient)

    def test_preferred_default_wins_when_initialized(self):
        registry = build_registry(
            make_config(openai_api_key="sk", anthropic_api_key="ak", default_service="anthropic")
        )

        assert registry.active_id == "anthropic"
        assert isinstance(registry.get("openai"), OpenAIClient)

    def test_unknown_model_rejected(self):
        registry = build_registry(make_config(openai_api_key="sk"))

        with pytest.raises(UnknownModelError):
            registry.set_model("openai", "claude-3-opus-20240229")
