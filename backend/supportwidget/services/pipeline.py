"""
Visitor question pipeline.

extract -> match -> synthesize -> classify -> maybe record unanswered

Only the knowledge match is essential; chat logging, unanswered recording and
session activity are best-effort and never fail the answer.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from supportwidget.config import settings
from supportwidget.exceptions import InvalidRequestError, KnowledgeEntryNotFoundError
from supportwidget.models import KnowledgeEntry, VisitorSession, utcnow
from supportwidget.repositories.base import KnowledgeRepository
from supportwidget.services.best_effort import run_best_effort
from supportwidget.services.chat_log import ChatLog
from supportwidget.services.matcher import KnowledgeMatcher, MatchResult
from supportwidget.services.quality import is_low_quality
from supportwidget.services.sessions import VisitorSessionManager
from supportwidget.services.synthesizer import AnswerSynthesizer, SynthesizedAnswer
from supportwidget.services.unanswered import UnansweredQueryService

logger = logging.getLogger(__name__)


@dataclass
class SearchOutcome:
    answer: SynthesizedAnswer
    entries: List[KnowledgeEntry] = field(default_factory=list)
    tier: Optional[str] = None
    low_quality: bool = False
    session_id: Optional[str] = None


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return settings.SEARCH_DEFAULT_LIMIT
    return max(1, min(limit, settings.SEARCH_MAX_LIMIT))


class SearchPipeline:
    """Answers visitor questions against one tenant's knowledge base."""

    def __init__(
        self,
        matcher: KnowledgeMatcher,
        synthesizer: AnswerSynthesizer,
        knowledge_repository: KnowledgeRepository,
        unanswered: Optional[UnansweredQueryService] = None,
        chat_log: Optional[ChatLog] = None,
        sessions: Optional[VisitorSessionManager] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.matcher = matcher
        self.synthesizer = synthesizer
        self.knowledge_repository = knowledge_repository
        self.unanswered = unanswered
        self.chat_log = chat_log
        self.sessions = sessions
        self.clock = clock

    @staticmethod
    def _validate(tenant_id: Optional[int], raw_query: Optional[str]) -> str:
        if tenant_id is None:
            raise InvalidRequestError("Tenant ID is required")
        query = (raw_query or "").strip()
        if not query:
            raise InvalidRequestError("Search query is required")
        return query

    async def _resolve_session(self, tenant_id: int, session_token: Optional[str]) -> Optional[VisitorSession]:
        if not session_token or self.sessions is None:
            return None
        return await run_best_effort(
            self.sessions.find_by_token(session_token, tenant_id),
            "resolve visitor session"
        )

    def _chat_session_id(self, tenant_id: int, ip_address: str, session: Optional[VisitorSession]) -> str:
        # Only a live session of the same tenant may name the conversation
        if session is not None:
            return session.session_token
        return f"{ip_address}_{tenant_id}_{int(self.clock().timestamp() * 1000)}"

    async def answer_question(
        self,
        tenant_id: Optional[int],
        raw_query: Optional[str],
        ip_address: str,
        user_agent: Optional[str] = None,
        limit: Optional[int] = None,
        session_token: Optional[str] = None
    ) -> SearchOutcome:
        query = self._validate(tenant_id, raw_query)
        session = await self._resolve_session(tenant_id, session_token)
        session_id = self._chat_session_id(tenant_id, ip_address, session)

        if self.chat_log is not None:
            await run_best_effort(
                self.chat_log.record_user_message(tenant_id, session_id, ip_address, query),
                "store user chat message"
            )

        # Essential: StorageUnavailableError propagates to the 503 handler
        match: MatchResult = await self.matcher.match(tenant_id, query, clamp_limit(limit))
        answer = await self.synthesizer.synthesize(query, match.entries)

        low_quality = False
        try:
            low_quality = is_low_quality(answer.answer, match.entries)
        except Exception as e:
            logger.error(f"Answer quality classification failed for tenant {tenant_id}: {e}", exc_info=True)

        if low_quality and self.unanswered is not None:
            await run_best_effort(
                self.unanswered.record(tenant_id, query, ip_address, user_agent, session_id),
                "record unanswered query"
            )

        if self.chat_log is not None:
            await run_best_effort(
                self.chat_log.record_bot_message(
                    tenant_id,
                    session_id,
                    ip_address,
                    answer.answer,
                    {
                        "source": answer.source,
                        "confidence": answer.confidence,
                        "relatedEntries": [entry.id for entry in match.entries],
                        "sourceEntryId": answer.source_entry_id,
                    }
                ),
                "store bot chat message"
            )

        if session is not None:
            await run_best_effort(
                self.sessions.record_message(session.session_token, tenant_id),
                "touch session activity"
            )

        logger.info(
            f"Answered query for tenant {tenant_id} via {answer.source} "
            f"(tier={match.tier}, matches={len(match.entries)}, low_quality={low_quality})"
        )
        return SearchOutcome(
            answer=answer,
            entries=match.entries,
            tier=match.tier,
            low_quality=low_quality,
            session_id=session_id,
        )

    async def suggestions(self, tenant_id: Optional[int], raw_query: Optional[str], limit: Optional[int] = None) -> List[KnowledgeEntry]:
        """Matching entries for type-ahead; the tenant's popular entries when nothing matches."""
        if tenant_id is None:
            raise InvalidRequestError("Tenant ID is required")
        limit = clamp_limit(limit)

        query = (raw_query or "").strip()
        if query:
            match = await self.matcher.match(tenant_id, query, limit)
            if match.entries:
                return match.entries
        return await self.knowledge_repository.popular(tenant_id, limit)

    async def get_entry(self, tenant_id: Optional[int], entry_id: int) -> KnowledgeEntry:
        """Public read of one active entry; counts a view."""
        if tenant_id is None:
            raise InvalidRequestError("Tenant ID is required")

        entry = await self.knowledge_repository.get_active(tenant_id, entry_id)
        if entry is None:
            raise KnowledgeEntryNotFoundError()

        updated = await run_best_effort(self.knowledge_repository.increment_views(entry), "count FAQ view")
        return updated or entry

    async def feedback(self, tenant_id: Optional[int], entry_id: int, helpful: bool) -> KnowledgeEntry:
        if tenant_id is None:
            raise InvalidRequestError("Tenant ID is required")

        entry = await self.knowledge_repository.get_active(tenant_id, entry_id)
        if entry is None:
            raise KnowledgeEntryNotFoundError()
        return await self.knowledge_repository.record_feedback(entry, helpful)
