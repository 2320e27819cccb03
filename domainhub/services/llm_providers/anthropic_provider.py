"""
Claude-backed domain name generation through the Anthropic SDK.
"""

from typing import Optional
from anthropic import AsyncAnthropic, APIError, RateLimitError, APITimeoutError
from .base import BaseLLMProvider, LLMProviderError


class AnthropicProvider(BaseLLMProvider):
    name = "anthropic"
    default_model = "claude-sonnet-4-5"
    api_key_setting = "ANTHROPIC_API_KEY"

    def _build_client(self) -> AsyncAnthropic:
        return AsyncAnthropic(
            api_key=self.api_key,
            timeout=float(self.timeout),
            max_retries=self.max_retries,
        )

    async def generate(
        self,
        prompt: str,
        system_prompt: str,
        max_tokens: Optional[int] = None,
        temperature: float = 0.9,
    ) -> str:
        from ...config import LLM_MAX_TOKENS

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens or LLM_MAX_TOKENS,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
            )
        except RateLimitError as e:
            raise LLMProviderError(f"Anthropic rate limit exceeded: {str(e)}") from e
        except APITimeoutError as e:
            raise LLMProviderError(f"Anthropic API timeout after {self.timeout}s: {str(e)}") from e
        except APIError as e:
            raise LLMProviderError(f"Anthropic API error: {str(e)}") from e

        # Only text blocks carry the name list
        text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        if not text:
            raise LLMProviderError("Empty response from Claude API")
        return text
