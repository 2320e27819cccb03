"""
Tests for LLM domain suggestions.
"""

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domainhub.services.llm_client import get_llm_provider, UnsupportedProviderError
from domainhub.services.llm_providers import AnthropicProvider, OpenAIProvider
from domainhub.services.llm_providers.base import BaseLLMProvider, LLMProviderError
from domainhub.services.suggestions import DomainSuggestionService, build_prompt, parse_suggestions
from fakes import FakeChecker


class ScriptedProvider(BaseLLMProvider):
    """Returns canned answers in order; an Exception instance is raised instead."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.prompts = []

    def _build_client(self):
        return None

    async def generate(self, prompt, system_prompt, max_tokens=None, temperature=0.9):
        self.prompts.append(prompt)
        answer = self.answers.pop(0) if self.answers else '{"domains": []}'
        if isinstance(answer, Exception):
            raise answer
        return answer

    def get_provider_name(self) -> str:
        return "scripted"

    def get_model_name(self) -> str:
        return "scripted-1"


class TestParseSuggestions:

    def test_plain_json(self) -> None:
        assert parse_suggestions('{"domains": ["PetLove.online", "petcare.online"]}') == [
            "petlove.online", "petcare.online",
        ]

    def test_fenced_json(self) -> None:
        text = '```json\n{"domains": ["a1.online", "a1.online", "b2.online"]}\n```'
        assert parse_suggestions(text) == ["a1.online", "b2.online"]

    def test_line_fallback(self) -> None:
        text = "Here you go:\n1. petlove.online\n2. pet-care.com\n3. petshop.online"
        assert parse_suggestions(text) == ["petlove.online", "petshop.online"]

    def test_non_online_and_hyphenated_names_are_dropped(self) -> None:
        assert parse_suggestions('{"domains": ["pet-love.online", "pets.com", "ok.online"]}') == ["ok.online"]

    @given(names=st.lists(st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=1, max_size=15), max_size=12))
    @settings(max_examples=50)
    def test_output_is_unique_online_domains(self, names) -> None:
        text = '{"domains": [' + ", ".join(f'"{n}.online"' for n in names) + "]}"
        result = parse_suggestions(text)
        assert len(result) == len(set(result))
        assert all(d.endswith(".online") for d in result)
        assert set(result) == {f"{n}.online" for n in names}


def test_prompt_mentions_language_and_tld() -> None:
    prompt = build_prompt("fitness", "spanish")
    assert "fitness" in prompt
    assert "Spanish" in prompt
    assert ".online" in prompt


class TestFindAvailable:

    def test_stops_once_quantity_is_reached(self) -> None:
        provider = ScriptedProvider([
            '{"domains": ["a.online", "b.online"]}',
            '{"domains": ["c.online", "d.online"]}',
        ])
        checker = FakeChecker(available=["b.online", "c.online", "d.online"])
        service = DomainSuggestionService(provider=provider, checker=checker)

        result = asyncio.run(service.find_available("pets", 2, "english"))

        assert result == {
            "domains": ["b.online", "c.online"],
            "attempts": 2,
            "total_generated": 4,
            "total_checked": 4,
        }

    def test_failed_attempts_are_skipped(self) -> None:
        provider = ScriptedProvider([
            LLMProviderError("rate limited"),
            "no domains here",
            '{"domains": ["ok.online"]}',
        ])
        service = DomainSuggestionService(provider=provider, checker=FakeChecker(), max_attempts=5)

        result = asyncio.run(service.find_available("pets", 1))

        assert result["domains"] == ["ok.online"]
        assert result["attempts"] == 3

    def test_gives_up_after_max_attempts(self) -> None:
        provider = ScriptedProvider([])
        service = DomainSuggestionService(provider=provider, checker=FakeChecker(), max_attempts=4)

        result = asyncio.run(service.find_available("pets", 3))

        assert result["domains"] == []
        assert result["attempts"] == 4
        assert len(provider.prompts) == 4

    def test_webhook_errors_do_not_abort(self) -> None:
        provider = ScriptedProvider(['{"domains": ["a.online"]}'] * 3)
        service = DomainSuggestionService(
            provider=provider, checker=FakeChecker(error="HTTP 502"), max_attempts=3,
        )

        result = asyncio.run(service.find_available("pets", 1))
        assert result["domains"] == []
        assert result["total_generated"] == 3
        assert result["total_checked"] == 0


class TestProviderFactory:

    def test_anthropic(self) -> None:
        provider = get_llm_provider("anthropic", api_key="sk-ant-test")
        assert isinstance(provider, AnthropicProvider)
        assert provider.get_provider_name() == "anthropic"

    def test_openai_with_model(self) -> None:
        provider = get_llm_provider("OpenAI", model="gpt-4o-mini", api_key="sk-test")
        assert isinstance(provider, OpenAIProvider)
        assert provider.get_model_name() == "gpt-4o-mini"

    def test_unknown_provider(self) -> None:
        with pytest.raises(UnsupportedProviderError):
            get_llm_provider("mistral")

    def test_provider_without_client_builder_cannot_be_created(self) -> None:
        class HalfProvider(BaseLLMProvider):
            name = "half"
            api_key_setting = "ANTHROPIC_API_KEY"

            async def generate(self, prompt, system_prompt, max_tokens=None, temperature=0.9):
                return ""

        with pytest.raises(TypeError):
            HalfProvider(api_key="sk-test")
