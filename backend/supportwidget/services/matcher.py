"""
Knowledge matching.

TieredKnowledgeMatcher widens the search in three passes, each tried only
when the previous one found nothing:

1. exact   - extracted keywords, every keyword must match (AND)
2. broad   - every raw word of 2+ chars incl. stop-words must match (AND)
3. partial - any raw word of 3+ chars may match (OR)

Per keyword the fields question/answer/category are OR-ed. Tenant scoping is
mandatory: a missing tenant id returns an empty result without touching storage.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from supportwidget.models import KnowledgeEntry
from supportwidget.repositories.base import KnowledgeRepository
from supportwidget.services.keywords import extract_keywords, tokenize

logger = logging.getLogger(__name__)

TIER_EXACT = "exact"
TIER_BROAD = "broad"
TIER_PARTIAL = "partial"


@dataclass
class MatchResult:
    """Ranked entries plus which tier produced them (None when nothing matched)."""
    entries: List[KnowledgeEntry] = field(default_factory=list)
    tier: Optional[str] = None
    terms: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.entries)


class KnowledgeMatcher(ABC):
    """Strategy seam: swap in full-text or trigram search without touching callers."""

    @abstractmethod
    async def match(self, tenant_id: Optional[int], raw_query: str, limit: int) -> MatchResult:
        pass


class TieredKnowledgeMatcher(KnowledgeMatcher):
    """Three widening substring passes over a tenant's active entries."""

    def __init__(self, repository: KnowledgeRepository):
        self.repository = repository

    def _passes(self, raw_query: str):
        yield TIER_EXACT, extract_keywords(raw_query), True
        yield TIER_BROAD, tokenize(raw_query, min_length=2), True
        yield TIER_PARTIAL, tokenize(raw_query, min_length=3), False

    async def match(self, tenant_id: Optional[int], raw_query: str, limit: int) -> MatchResult:
        if tenant_id is None or not raw_query or limit <= 0:
            return MatchResult()

        for tier, terms, match_all in self._passes(raw_query):
            if not terms:
                logger.debug(f"Tier '{tier}' skipped for tenant {tenant_id}: no terms")
                continue

            ordered_terms: Sequence[str] = sorted(terms)
            entries = await self.repository.search_active(
                tenant_id, ordered_terms, match_all=match_all, limit=limit
            )
            # Rows owned by another tenant never leave the matcher
            entries = [entry for entry in entries if entry.tenant_id == tenant_id]

            logger.info(
                f"Tier '{tier}' for tenant {tenant_id} with terms {list(ordered_terms)}: "
                f"{len(entries)} match(es)"
            )
            if entries:
                return MatchResult(entries=entries, tier=tier, terms=list(ordered_terms))

        return MatchResult()
