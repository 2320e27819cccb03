"""
AI domain name suggestions.

Names are generated in batches by the configured LLM and checked through the
availability webhook until enough available `.online` domains are collected
or the attempts run out.
"""
import json
import re
from typing import Optional, Dict, Any, List

from .availability import AvailabilityChecker, AvailabilityCheckError
from .llm_providers.base import BaseLLMProvider, LLMProviderError
from ..logger import log_info, log_warning

MAX_ATTEMPTS = 15
DOMAINS_PER_BATCH = 10
SUGGESTION_TLD = "online"

LANGUAGES = {
    "portuguese": "Portuguese",
    "english": "English",
    "spanish": "Spanish",
}

SYSTEM_PROMPT = (
    "You generate brandable domain names. "
    "Answer with a single valid JSON object and nothing else."
)

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```")
_DOMAIN_RE = re.compile(r"\b([a-z0-9]+\." + SUGGESTION_TLD + r")\b", re.IGNORECASE)


def build_prompt(niche: str, language: str, count: int = DOMAINS_PER_BATCH) -> str:
    language_name = LANGUAGES.get(language, LANGUAGES["portuguese"])
    return (
        f"I need {count} domains for the {niche} niche, written in {language_name}. "
        f"Use the .{SUGGESTION_TLD} extension.\n"
        f"- ALWAYS use .{SUGGESTION_TLD}\n"
        "- NEVER use accents.\n"
        "- NEVER use hyphens.\n"
        "- Return ONLY a valid JSON object in this format, without any extra text:\n"
        '{"domains": ["firstdomain.online", "seconddomain.online"]}'
    )


def parse_suggestions(text: str) -> List[str]:
    """
    Extract domain names from an LLM answer.

    Accepts a JSON object (optionally wrapped in code fences) and falls back
    to scanning the text line by line for `name.online` tokens.
    """
    cleaned = _FENCE_RE.sub("", text or "").strip()
    domains: List[str] = []

    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, dict):
            domains = [str(d) for d in parsed.get("domains") or []]
    except json.JSONDecodeError:
        for line in cleaned.splitlines():
            match = _DOMAIN_RE.search(line)
            if match:
                domains.append(match.group(1))

    unique = []
    for domain in domains:
        domain = domain.strip().lower()
        if _DOMAIN_RE.fullmatch(domain) and domain not in unique:
            unique.append(domain)
    return unique


class DomainSuggestionService:
    """Generates and pre-checks domain names with an LLM"""

    def __init__(
        self,
        provider: Optional[BaseLLMProvider] = None,
        checker: Optional[AvailabilityChecker] = None,
        max_attempts: int = MAX_ATTEMPTS,
    ):
        self._provider = provider
        self.checker = checker or AvailabilityChecker()
        self.max_attempts = max_attempts

    @property
    def provider(self) -> BaseLLMProvider:
        if self._provider is None:
            from .llm_client import get_llm_provider
            self._provider = get_llm_provider()
        return self._provider

    async def find_available(
        self,
        niche: str,
        quantity: int,
        language: str = "portuguese",
    ) -> Dict[str, Any]:
        """
        Collect up to `quantity` available domains for a niche.

        Returns:
            {"domains", "attempts", "total_generated", "total_checked"}
        """
        available: List[str] = []
        attempts = 0
        total_generated = 0
        total_checked = 0

        while len(available) < quantity and attempts < self.max_attempts:
            attempts += 1

            try:
                answer = await self.provider.generate(build_prompt(niche, language), SYSTEM_PROMPT)
            except LLMProviderError as e:
                log_warning(
                    "Suggestion generation failed",
                    action="suggestions_llm_failed",
                    attempt=attempts,
                    error=str(e),
                )
                continue

            generated = parse_suggestions(answer)
            if not generated:
                log_warning("No domains parsed from LLM answer", action="suggestions_empty", attempt=attempts)
                continue
            total_generated += len(generated)

            try:
                result = await self.checker.check(generated)
            except AvailabilityCheckError as e:
                log_warning(
                    "Availability check failed for suggestions",
                    action="suggestions_check_failed",
                    attempt=attempts,
                    error=str(e),
                )
                continue
            total_checked += len(generated)

            for domain in result.available:
                if domain not in available and len(available) < quantity:
                    available.append(domain)

            log_info(
                "Suggestion attempt finished",
                action="suggestions_attempt",
                attempt=attempts,
                found=len(available),
                target=quantity,
            )

        return {
            "domains": available,
            "attempts": attempts,
            "total_generated": total_generated,
            "total_checked": total_checked,
        }
