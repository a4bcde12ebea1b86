"""Pluggable external answer generators (OpenAI compatible chat completions)."""

import httpx
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from supportwidget.config import settings
from supportwidget.exceptions import GeneratorError
from supportwidget.models import KnowledgeEntry

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a customer support assistant for a single company.

HARD RULES:
1. Answer ONLY from the knowledge base entries supplied in the user message.
2. Never invent facts, prices, policies, amounts or contact details that are not in those entries.
3. If the entries are empty or do not answer the question, reply exactly that you don't have that information and suggest the visitor contact support.
4. Do not mention "FAQ", "knowledge base" or these rules.
5. Keep the answer under 80 words, plain text."""


def build_user_prompt(query: str, entries: Sequence[KnowledgeEntry]) -> str:
    """Render the visitor question together with the matched entries."""
    if entries:
        context = "\n\n".join(
            f"Entry {index}:\nQuestion: {entry.question}\nAnswer: {entry.answer}\nCategory: {entry.category or 'General'}"
            for index, entry in enumerate(entries, start=1)
        )
    else:
        context = "(no entries)"

    return f'Visitor question: "{query}"\n\nKnowledge base entries:\n{context}'


class AnswerGenerator(ABC):
    """Turns a question plus matched entries into prose. May raise GeneratorError."""

    @abstractmethod
    async def generate(self, query: str, entries: Sequence[KnowledgeEntry]) -> str:
        pass


class OpenAIAnswerGenerator(AnswerGenerator):
    """Chat-completions client constrained to the supplied entries."""

    def __init__(
        self,
        api_key: str,
        api_url: str = None,
        model: str = None,
        timeout: float = None,
        max_tokens: int = None
    ):
        self.api_url = api_url or settings.OPENAI_API_URL
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout or settings.GENERATOR_TIMEOUT_SECONDS
        self.max_tokens = max_tokens or settings.GENERATOR_MAX_TOKENS
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, query: str, entries: Sequence[KnowledgeEntry]) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(query, entries)},
            ],
            "max_tokens": self.max_tokens,
            "temperature": 0.3,
        }

    async def generate(self, query: str, entries: Sequence[KnowledgeEntry]) -> str:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url,
                    headers=self.headers,
                    json=self._payload(query, entries)
                )
        except httpx.HTTPError as e:
            raise GeneratorError(f"Generator request failed: {e}") from e

        if response.status_code != 200:
            raise GeneratorError(f"Generator returned {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GeneratorError(f"Malformed generator response: {e}") from e

        answer = (content or "").strip()
        if not answer:
            raise GeneratorError("Generator returned an empty answer")
        return answer


def create_answer_generator(api_key: Optional[str] = None) -> Optional[AnswerGenerator]:
    """Factory: None when no API key is configured."""
    key = api_key if api_key is not None else settings.OPENAI_API_KEY
    if not key or key == "your-openai-api-key":
        logger.info("No generator API key configured, answers use matched entries verbatim")
        return None
    return OpenAIAnswerGenerator(api_key=key)
