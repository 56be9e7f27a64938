"""
LLM Clients
===========
LLMクライアント（GPT, Claude, Gemini, DeepSeek, Qwen）とエンジンレジストリ

Usage:
    from geo_scope.llm import EngineRegistry, create_llm_client

    registry = EngineRegistry.from_env()
    client = create_llm_client("gemini")
    response = await client.acall_standard("Hello")
"""

from .base import LLMClient
from .claude import ClaudeClient
from .compatible import DeepSeekClient, OpenAICompatibleClient, QwenClient
from .gemini import GeminiClient
from .gpt import GPTClient
from .registry import (
    ENGINE_CAPABILITIES,
    Engine,
    EngineCapability,
    EngineRegistry,
    create_llm_client,
    parse_engine,
)

__all__ = [
    "LLMClient",
    "GPTClient",
    "ClaudeClient",
    "GeminiClient",
    "OpenAICompatibleClient",
    "DeepSeekClient",
    "QwenClient",
    "Engine",
    "EngineCapability",
    "ENGINE_CAPABILITIES",
    "EngineRegistry",
    "create_llm_client",
    "parse_engine",
]
