"""
LLM Provider abstraction layer used for domain name suggestions.
Supports multiple LLM providers (Anthropic, OpenAI) with a unified interface.
"""

from .base import BaseLLMProvider, LLMProviderError
from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "LLMProviderError",
    "AnthropicProvider",
    "OpenAIProvider",
]
