"""Answer synthesis: matched entries -> answer text, confidence and source label."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from supportwidget.models import KnowledgeEntry
from supportwidget.services.generator import AnswerGenerator
from supportwidget.services.keywords import tokenize

logger = logging.getLogger(__name__)

SOURCE_FAQ = "faq"
SOURCE_AI = "ai"
SOURCE_FALLBACK = "fallback"

MATCHED_CONFIDENCE = 0.8
INTENT_CONFIDENCE = 0.7
GENERIC_CONFIDENCE = 0.3

GENERIC_FALLBACK_ANSWER = (
    "I don't have specific information about that yet. "
    "Please contact our support team and they will be happy to help."
)

# Worst case text when storage is down; never leave the answer empty
DEGRADED_ANSWER = (
    "I'm having trouble looking that up right now. "
    "Please contact our support team or try again in a moment."
)

# (intent, trigger words, response). Checked in order, first hit wins.
INTENT_TEMPLATES: List[Tuple[str, Tuple[str, ...], str]] = [
    (
        "greeting",
        ("hello", "hi", "hey"),
        "Hello! Welcome. I'm here to help with any questions about our services. What would you like to know?",
    ),
    (
        "pricing",
        ("price", "pricing", "cost", "quote"),
        "Pricing depends on your specific needs. Would you like me to connect you with our sales team for a personalized quote?",
    ),
    (
        "contact",
        ("contact", "phone", "email", "call"),
        "You can reach our team directly and we'll be happy to assist you further. Leave your details and we'll get back to you.",
    ),
    (
        "support",
        ("help", "support", "assist"),
        "I'm here to help! You can ask me about our services, pricing, contact information or anything else you'd like to know.",
    ),
]


@dataclass
class SynthesizedAnswer:
    answer: str
    confidence: float
    source: str
    source_entry_id: Optional[int] = None
    intent: Optional[str] = None


def _trigger_hits(query_lower: str, words: frozenset, trigger: str) -> bool:
    # Two-letter triggers ("hi") would hit inside other words, so they must be whole tokens
    if len(trigger) < 3:
        return trigger in words
    return trigger in query_lower


def match_intent(raw_query: str) -> Optional[Tuple[str, str]]:
    """Return (intent, response) for the first template whose trigger appears in the query."""
    query_lower = (raw_query or "").lower()
    words = tokenize(query_lower, min_length=1)
    for intent, triggers, response in INTENT_TEMPLATES:
        if any(_trigger_hits(query_lower, words, trigger) for trigger in triggers):
            return intent, response
    return None


class AnswerSynthesizer:
    """
    Produces the visitor-facing answer.

    With matches the top entry answers verbatim, or through the generator when
    one is configured. Without matches an intent template or the generic
    "contact support" text is returned. Generator failures fall back silently.
    """

    def __init__(self, generator: Optional[AnswerGenerator] = None):
        self.generator = generator

    async def synthesize(self, raw_query: str, entries: Sequence[KnowledgeEntry]) -> SynthesizedAnswer:
        if entries:
            return await self._from_entries(raw_query, entries)
        return self.fallback(raw_query)

    async def _from_entries(self, raw_query: str, entries: Sequence[KnowledgeEntry]) -> SynthesizedAnswer:
        top = entries[0]

        if self.generator is not None:
            try:
                text = await self.generator.generate(raw_query, entries)
                return SynthesizedAnswer(
                    answer=text,
                    confidence=MATCHED_CONFIDENCE,
                    source=SOURCE_AI,
                    source_entry_id=top.id,
                )
            except Exception as e:
                logger.warning(f"Answer generator failed, using entry {top.id} verbatim: {e}")

        return SynthesizedAnswer(
            answer=top.answer,
            confidence=MATCHED_CONFIDENCE,
            source=SOURCE_FAQ,
            source_entry_id=top.id,
        )

    def fallback(self, raw_query: str) -> SynthesizedAnswer:
        """Template answer used when nothing in the knowledge base matched."""
        intent = match_intent(raw_query)
        if intent:
            name, response = intent
            return SynthesizedAnswer(
                answer=response,
                confidence=INTENT_CONFIDENCE,
                source=SOURCE_FALLBACK,
                intent=name,
            )

        return SynthesizedAnswer(
            answer=GENERIC_FALLBACK_ANSWER,
            confidence=GENERIC_CONFIDENCE,
            source=SOURCE_FALLBACK,
        )


def degraded_answer() -> SynthesizedAnswer:
    return SynthesizedAnswer(answer=DEGRADED_ANSWER, confidence=0.0, source=SOURCE_FALLBACK)
