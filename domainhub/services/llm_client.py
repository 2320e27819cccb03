"""
Picks the LLM provider used by the suggestion service.
"""

from typing import Dict, Optional, Type
from .llm_providers.base import BaseLLMProvider
from .llm_providers.anthropic_provider import AnthropicProvider
from .llm_providers.openai_provider import OpenAIProvider

PROVIDERS: Dict[str, Type[BaseLLMProvider]] = {
    AnthropicProvider.name: AnthropicProvider,
    OpenAIProvider.name: OpenAIProvider,
}


class UnsupportedProviderError(Exception):
    """Raised when LLM_PROVIDER names a provider we don't ship"""
    pass


def get_llm_provider(provider_name: Optional[str] = None, model: Optional[str] = None, **kwargs) -> BaseLLMProvider:
    """
    Build the provider named by `provider_name`, or by LLM_PROVIDER when omitted.

    Extra kwargs (api_key, timeout, max_retries) go to the provider constructor.
    Raises ValueError when the provider's API key is missing.
    """
    from ..config import LLM_PROVIDER

    provider = (provider_name or LLM_PROVIDER).lower().strip()
    provider_class = PROVIDERS.get(provider)
    if provider_class is None:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: '{provider}'. "
            f"Supported providers: {', '.join(sorted(PROVIDERS))}"
        )
    return provider_class(model=model, **kwargs)
