"""
Unanswered query tracking.

Low-quality answers are folded into per-tenant pending records. A new query is
treated as a repeat of a pending record when both have the same words, when
the shorter one (two words or more) appears as a whole-word phrase inside the
other, or when their keyword sets overlap by at least the similarity threshold
(Jaccard). The most recently asked pending records inside the dedup window are
compared, newest first. Frequency drives priority: 10+ high, 5+ medium, else low.
"""

import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from supportwidget.config import settings
from supportwidget.exceptions import (
    InvalidRequestError,
    KnowledgeEntryNotFoundError,
    UnansweredQueryNotFoundError,
)
from supportwidget.models import UNANSWERED_STATUSES, KnowledgeEntry, UnansweredQuery, utcnow
from supportwidget.repositories.base import KnowledgeRepository, UnansweredQueryRepository
from supportwidget.services.keywords import extract_keywords, words
from supportwidget.services.quality import is_low_quality

logger = logging.getLogger(__name__)

SORT_FIELDS = ("frequency", "lastAsked", "createdAt", "priority")

# Single-word queries only merge on an exact match
MIN_CONTAINED_WORDS = 2


def normalize_query(text: str) -> str:
    """Trim, collapse whitespace and lowercase."""
    return " ".join((text or "").split()).lower()


def priority_for_frequency(frequency: int) -> str:
    if frequency >= 10:
        return "high"
    if frequency >= 5:
        return "medium"
    return "low"


def keyword_similarity(first: str, second: str) -> float:
    """Jaccard overlap of the two keyword sets (0.0 when either is empty)."""
    a, b = extract_keywords(first), extract_keywords(second)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def _contains_phrase(longer: List[str], shorter: List[str]) -> bool:
    if len(shorter) < MIN_CONTAINED_WORDS:
        return False
    return f" {' '.join(shorter)} " in f" {' '.join(longer)} "


def is_same_question(existing: str, candidate: str, threshold: float) -> bool:
    existing_words, candidate_words = words(existing), words(candidate)
    if not existing_words or not candidate_words:
        return False
    if existing_words == candidate_words:
        return True
    if len(existing_words) > len(candidate_words):
        longer, shorter = existing_words, candidate_words
    else:
        longer, shorter = candidate_words, existing_words
    if _contains_phrase(longer, shorter):
        return True
    return keyword_similarity(existing, candidate) >= threshold


class UnansweredQueryService:
    """Records, deduplicates and administers unanswered visitor questions."""

    def __init__(
        self,
        repository: UnansweredQueryRepository,
        knowledge_repository: Optional[KnowledgeRepository] = None,
        dedup_window: int = None,
        similarity_threshold: float = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.repository = repository
        self.knowledge_repository = knowledge_repository
        self.dedup_window = dedup_window or settings.UNANSWERED_DEDUP_WINDOW
        self.similarity_threshold = (
            similarity_threshold if similarity_threshold is not None
            else settings.UNANSWERED_SIMILARITY_THRESHOLD
        )
        self.clock = clock

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    async def record_if_low_quality(
        self,
        tenant_id: int,
        raw_query: str,
        answer_text: str,
        matched_entries: Sequence[KnowledgeEntry],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> Optional[UnansweredQuery]:
        if not is_low_quality(answer_text, matched_entries):
            return None
        return await self.record(tenant_id, raw_query, ip_address, user_agent, session_id)

    async def record(
        self,
        tenant_id: int,
        raw_query: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> Optional[UnansweredQuery]:
        """Create a pending record or bump the frequency of a matching one."""
        query_text = " ".join((raw_query or "").split())
        if tenant_id is None or not query_text:
            return None

        now = self.clock()
        candidates = await self.repository.recent_pending(tenant_id, self.dedup_window)
        existing = next(
            (
                record for record in candidates
                if is_same_question(record.query, query_text, self.similarity_threshold)
            ),
            None
        )

        if existing is not None:
            existing.frequency = (existing.frequency or 0) + 1
            existing.priority = priority_for_frequency(existing.frequency)
            existing.last_asked = now
            existing.ip_address = ip_address
            existing.user_agent = user_agent
            existing.session_id = session_id
            saved = await self.repository.save(existing)
            logger.info(
                f"Unanswered query {saved.id} for tenant {tenant_id} repeated "
                f"(frequency={saved.frequency}, priority={saved.priority})"
            )
            return saved

        created = await self.repository.create(
            tenant_id=tenant_id,
            query=query_text,
            ip_address=ip_address,
            user_agent=user_agent,
            session_id=session_id,
            frequency=1,
            status="pending",
            priority=priority_for_frequency(1),
            last_asked=now,
            created_at=now,
            updated_at=now,
        )
        logger.info(f"New unanswered query {created.id} for tenant {tenant_id}: '{query_text}'")
        return created

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def _get_owned(self, tenant_id: int, record_id: int) -> UnansweredQuery:
        record = await self.repository.get(record_id)
        if record is None or record.tenant_id != tenant_id:
            raise UnansweredQueryNotFoundError()
        return record

    async def list_queries(
        self,
        tenant_id: int,
        status: str = "pending",
        page: int = 1,
        limit: int = 20,
        sort_by: str = "frequency",
        sort_order: str = "DESC"
    ) -> Dict[str, Any]:
        status = (status or "pending").lower()
        if status != "all" and status not in UNANSWERED_STATUSES:
            raise InvalidRequestError("Invalid status. Must be pending, answered, ignored or all")

        sort_by = sort_by if sort_by in SORT_FIELDS else "frequency"
        descending = (sort_order or "DESC").upper() != "ASC"
        page, limit = max(page, 1), max(limit, 1)

        rows, total = await self.repository.list(
            tenant_id,
            None if status == "all" else status,
            sort_by,
            descending,
            (page - 1) * limit,
            limit
        )
        return {
            "queries": rows,
            "stats": await self.stats(tenant_id),
            "pagination": paginate(page, limit, total),
        }

    async def stats(self, tenant_id: int) -> Dict[str, int]:
        grouped = await self.repository.status_stats(tenant_id)
        summary = {status: 0 for status in UNANSWERED_STATUSES}
        total_frequency = 0
        for status, (count, frequency) in grouped.items():
            summary[status] = count
            total_frequency += frequency
        summary["totalQuestions"] = sum(summary[status] for status in UNANSWERED_STATUSES)
        summary["totalFrequency"] = total_frequency
        return summary

    async def update_status(
        self,
        tenant_id: int,
        record_id: int,
        status: Optional[str] = None,
        related_entry_id: Optional[int] = None,
        notes: Optional[str] = None,
        auto_create_entry: bool = False,
        answer: Optional[str] = None,
        category: str = "General"
    ) -> Tuple[UnansweredQuery, Optional[KnowledgeEntry]]:
        """
        Admin mutation. Marking a record answered with auto_create_entry turns
        the query plus the supplied answer into a new knowledge entry and links it.
        """
        if status is not None and status not in UNANSWERED_STATUSES:
            raise InvalidRequestError("Invalid status. Must be pending, answered, or ignored")

        record = await self._get_owned(tenant_id, record_id)
        target_status = status or record.status

        created_entry = None
        if auto_create_entry and target_status == "answered":
            if not answer or not answer.strip():
                raise InvalidRequestError("An answer is required to create a knowledge entry")
            created_entry = await self._knowledge().create(
                tenant_id=tenant_id,
                question=record.query,
                answer=answer.strip(),
                category=category or "General",
                tags=[]
            )
            logger.info(f"Created knowledge entry {created_entry.id} from unanswered query {record.id}")
            related_entry_id = created_entry.id
        elif related_entry_id is not None:
            entry = await self._knowledge().get_active(tenant_id, related_entry_id)
            if entry is None:
                raise KnowledgeEntryNotFoundError()

        if status is not None:
            record.status = status
        if related_entry_id is not None:
            record.related_entry_id = related_entry_id
        if notes is not None:
            record.notes = notes
        record.updated_at = self.clock()

        saved = await self.repository.save(record)
        return saved, created_entry

    def _knowledge(self) -> KnowledgeRepository:
        if self.knowledge_repository is None:
            raise RuntimeError("UnansweredQueryService needs a knowledge repository for this operation")
        return self.knowledge_repository

    async def delete(self, tenant_id: int, record_id: int) -> None:
        record = await self._get_owned(tenant_id, record_id)
        await self.repository.delete(record)
        logger.info(f"Deleted unanswered query {record_id} for tenant {tenant_id}")

    async def top(self, tenant_id: int, limit: int = 10) -> List[UnansweredQuery]:
        return await self.repository.top_pending(tenant_id, max(limit, 1))

    async def search(self, tenant_id: int, term: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        term = (term or "").strip()
        if not term:
            raise InvalidRequestError("Search term is required")

        page, limit = max(page, 1), max(limit, 1)
        rows, total = await self.repository.search(tenant_id, term, (page - 1) * limit, limit)
        return {"queries": rows, "pagination": paginate(page, limit, total)}


def paginate(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "totalItems": total,
        "itemsPerPage": limit,
    }
