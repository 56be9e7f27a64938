"""Tests for the engine registry."""

import pytest

from conftest import FakeLLMClient, make_registry
from geo_scope.errors import ProviderError
from geo_scope.llm import ENGINE_CAPABILITIES, DeepSeekClient, Engine, EngineRegistry, parse_engine


class TestEngineRegistry:
    """Tests for EngineRegistry."""

    def test_search_engines_follow_capabilities(self) -> None:
        """Test only search-capable engines are listed, in enum order."""
        registry = make_registry(
            gemini=FakeLLMClient(searchable=True),
            deepseek=FakeLLMClient(),
            gpt=FakeLLMClient(searchable=True),
        )

        assert registry.available() == [Engine.GPT, Engine.GEMINI, Engine.DEEPSEEK]
        assert registry.search_engines() == [Engine.GPT, Engine.GEMINI]

    def test_fallback_prefers_priority(self) -> None:
        """Test the fallback is the highest priority non-search engine."""
        registry = make_registry(gpt=FakeLLMClient(), qwen=FakeLLMClient(), deepseek=FakeLLMClient())

        assert registry.fallback_for(Engine.GPT) == Engine.DEEPSEEK
        assert registry.fallback_for(Engine.DEEPSEEK) == Engine.QWEN
        assert make_registry(gpt=FakeLLMClient()).fallback_for(Engine.GPT) is None

    def test_default_and_search_clients(self) -> None:
        """Test default and search clients are chosen by priority."""
        deepseek = FakeLLMClient()
        gpt = FakeLLMClient(searchable=True)
        claude = FakeLLMClient(searchable=True)
        registry = make_registry(claude=claude, gpt=gpt, deepseek=deepseek)

        assert registry.default_engine() == Engine.DEEPSEEK
        assert registry.default_client() is deepseek
        assert registry.search_client() is gpt

    def test_empty_registry(self) -> None:
        """Test an empty registry has no clients."""
        registry = EngineRegistry()

        assert registry.default_client() is None
        assert registry.search_client() is None
        with pytest.raises(ProviderError):
            registry.get(Engine.GPT)

    def test_from_env(self, monkeypatch) -> None:
        """Test clients are created only for engines with API keys."""
        for capability in ENGINE_CAPABILITIES.values():
            monkeypatch.delenv(capability.api_key_env, raising=False)
        monkeypatch.setenv("DEEPSEEK_API_KEY", "test-key")

        registry = EngineRegistry.from_env()

        assert registry.available() == [Engine.DEEPSEEK]
        assert isinstance(registry.get(Engine.DEEPSEEK), DeepSeekClient)
        assert registry.search_engines() == []

    def test_parse_engine(self) -> None:
        """Test engine names are parsed case-insensitively."""
        assert parse_engine("Claude") == Engine.CLAUDE
        with pytest.raises(ValueError, match="Unknown provider"):
            parse_engine("bard")
