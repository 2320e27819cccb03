"""
GPT-backed domain name generation through the OpenAI SDK.
"""

from typing import Optional
from openai import AsyncOpenAI, APIError, RateLimitError, APITimeoutError
from .base import BaseLLMProvider, LLMProviderError


class OpenAIProvider(BaseLLMProvider):
    name = "openai"
    default_model = "gpt-4o"
    api_key_setting = "OPENAI_API_KEY"

    def _build_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
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
            # Suggestions are always a {"domains": [...]} object
            response = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens or LLM_MAX_TOKENS,
                temperature=temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
            )
        except RateLimitError as e:
            raise LLMProviderError(f"OpenAI rate limit exceeded: {str(e)}") from e
        except APITimeoutError as e:
            raise LLMProviderError(f"OpenAI API timeout after {self.timeout}s: {str(e)}") from e
        except APIError as e:
            raise LLMProviderError(f"OpenAI API error: {str(e)}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMProviderError("Empty response from OpenAI API")
        return content
