"""
Base class for the LLM providers that generate domain name ideas.
"""

from abc import ABC, abstractmethod
from typing import Optional


class LLMProviderError(Exception):
    """Raised when an LLM provider call fails"""
    pass


class BaseLLMProvider(ABC):
    """
    Common setup for SDK-backed providers.

    Subclasses set `name`, `default_model` and `api_key_setting` (the config
    attribute holding their key) and build their SDK client in `_build_client`.
    """

    name = ""
    default_model = ""
    api_key_setting = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: int = 3,
    ):
        from ... import config

        self.api_key = api_key or getattr(config, self.api_key_setting, "")
        self.model = model or self.default_model
        self.timeout = timeout or config.LLM_TIMEOUT
        self.max_retries = max_retries

        if not self.api_key:
            raise ValueError(f"{self.api_key_setting} not set in environment or config")

        self.client = self._build_client()

    @abstractmethod
    def _build_client(self):
        """Return the SDK client used by `generate`."""
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: str,
        max_tokens: Optional[int] = None,
        temperature: float = 0.9,
    ) -> str:
        """
        Generate a completion for a single prompt.

        Args:
            prompt: The user prompt
            system_prompt: System prompt describing the naming task
            max_tokens: Maximum tokens in the response (LLM_MAX_TOKENS if not specified)
            temperature: Sampling temperature; higher gives more varied names

        Raises:
            LLMProviderError: If the API call fails or returns nothing
        """
        pass

    def get_provider_name(self) -> str:
        return self.name

    def get_model_name(self) -> str:
        return self.model
