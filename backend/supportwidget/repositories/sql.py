"""SQLAlchemy (async) implementations of the repository interfaces."""

import asyncio
import functools
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from supportwidget.exceptions import DuplicateLeadError, StorageUnavailableError
from supportwidget.models import ChatMessage, KnowledgeEntry, Lead, UnansweredQuery, VisitorSession
from supportwidget.repositories.base import (
    ChatMessageRepository,
    KnowledgeRepository,
    LeadRepository,
    UnansweredQueryRepository,
    VisitorSessionRepository,
)

logger = logging.getLogger(__name__)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(column, term: str):
    return column.ilike(f"%{_escape_like(term)}%", escape="\\")


def storage_call(func_):
    """Translate driver/ORM failures into StorageUnavailableError after a rollback."""

    @functools.wraps(func_)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func_(self, *args, **kwargs)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            await self._rollback_quietly()
            logger.warning(f"Storage call {type(self).__name__}.{func_.__name__} failed: {e}")
            raise StorageUnavailableError() from e

    return wrapper


class SqlRepository:
    """Shared plumbing: one AsyncSession per request."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _rollback_quietly(self):
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"Rollback failed: {e}")

    async def _persist(self, instance):
        self.db.add(instance)
        await self.db.commit()
        await self.db.refresh(instance)
        return instance


# ============================================================================
# KNOWLEDGE ENTRIES
# ============================================================================

class SqlKnowledgeRepository(SqlRepository, KnowledgeRepository):

    _ranking = (
        KnowledgeEntry.views.desc(),
        KnowledgeEntry.helpful_count.desc(),
        KnowledgeEntry.created_at.desc(),
        KnowledgeEntry.id.desc(),
    )

    def _scoped(self, tenant_id: int):
        return select(KnowledgeEntry).where(
            KnowledgeEntry.tenant_id == tenant_id,
            KnowledgeEntry.is_active.is_(True)
        )

    @storage_call
    async def search_active(
        self,
        tenant_id: int,
        terms: Sequence[str],
        match_all: bool,
        limit: int
    ) -> List[KnowledgeEntry]:
        if tenant_id is None or not terms:
            return []

        conditions = [
            or_(
                _contains(KnowledgeEntry.question, term),
                _contains(KnowledgeEntry.answer, term),
                _contains(KnowledgeEntry.category, term),
            )
            for term in terms
        ]
        combined = and_(*conditions) if match_all else or_(*conditions)

        result = await self.db.execute(
            self._scoped(tenant_id).where(combined).order_by(*self._ranking).limit(limit)
        )
        return list(result.scalars().all())

    @storage_call
    async def popular(self, tenant_id: int, limit: int) -> List[KnowledgeEntry]:
        if tenant_id is None:
            return []
        result = await self.db.execute(
            self._scoped(tenant_id).order_by(*self._ranking).limit(limit)
        )
        return list(result.scalars().all())

    @storage_call
    async def get_active(self, tenant_id: int, entry_id: int) -> Optional[KnowledgeEntry]:
        result = await self.db.execute(
            self._scoped(tenant_id).where(KnowledgeEntry.id == entry_id)
        )
        return result.scalar_one_or_none()

    @storage_call
    async def create(
        self,
        tenant_id: int,
        question: str,
        answer: str,
        category: str,
        tags: Optional[List[str]] = None
    ) -> KnowledgeEntry:
        entry = KnowledgeEntry(
            tenant_id=tenant_id,
            question=question,
            answer=answer,
            category=category,
            tags=tags or [],
            is_active=True,
            views=0,
            helpful_count=0,
            not_helpful_count=0,
            order=0,
        )
        return await self._persist(entry)

    @storage_call
    async def increment_views(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        await self.db.execute(
            update(KnowledgeEntry)
            .where(KnowledgeEntry.id == entry.id)
            .values(views=KnowledgeEntry.views + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(entry)
        return entry

    @storage_call
    async def record_feedback(self, entry: KnowledgeEntry, helpful: bool) -> KnowledgeEntry:
        column = KnowledgeEntry.helpful_count if helpful else KnowledgeEntry.not_helpful_count
        await self.db.execute(
            update(KnowledgeEntry)
            .where(KnowledgeEntry.id == entry.id)
            .values({column: column + 1})
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        await self.db.refresh(entry)
        return entry


# ============================================================================
# UNANSWERED QUERIES
# ============================================================================

class SqlUnansweredQueryRepository(SqlRepository, UnansweredQueryRepository):

    _priority_rank = case(
        (UnansweredQuery.priority == "high", 3),
        (UnansweredQuery.priority == "medium", 2),
        else_=1
    )

    def _sort_column(self, sort_by: str):
        return {
            "frequency": UnansweredQuery.frequency,
            "lastAsked": UnansweredQuery.last_asked,
            "createdAt": UnansweredQuery.created_at,
            "priority": self._priority_rank,
        }.get(sort_by, UnansweredQuery.frequency)

    @storage_call
    async def recent_pending(self, tenant_id: int, limit: int) -> List[UnansweredQuery]:
        result = await self.db.execute(
            select(UnansweredQuery)
            .where(UnansweredQuery.tenant_id == tenant_id, UnansweredQuery.status == "pending")
            .order_by(UnansweredQuery.last_asked.desc(), UnansweredQuery.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @storage_call
    async def create(self, **fields) -> UnansweredQuery:
        return await self._persist(UnansweredQuery(**fields))

    @storage_call
    async def save(self, record: UnansweredQuery) -> UnansweredQuery:
        return await self._persist(record)

    @storage_call
    async def get(self, record_id: int) -> Optional[UnansweredQuery]:
        return await self.db.get(UnansweredQuery, record_id)

    @storage_call
    async def delete(self, record: UnansweredQuery) -> None:
        await self.db.delete(record)
        await self.db.commit()

    @storage_call
    async def list(
        self,
        tenant_id: int,
        status: Optional[str],
        sort_by: str,
        descending: bool,
        offset: int,
        limit: int
    ) -> Tuple[List[UnansweredQuery], int]:
        filters = [UnansweredQuery.tenant_id == tenant_id]
        if status:
            filters.append(UnansweredQuery.status == status)

        total = await self.db.scalar(select(func.count(UnansweredQuery.id)).where(*filters))

        column = self._sort_column(sort_by)
        order = column.desc() if descending else column.asc()
        result = await self.db.execute(
            select(UnansweredQuery)
            .where(*filters)
            .order_by(order, UnansweredQuery.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    @storage_call
    async def status_stats(self, tenant_id: int) -> Dict[str, Tuple[int, int]]:
        result = await self.db.execute(
            select(
                UnansweredQuery.status,
                func.count(UnansweredQuery.id),
                func.coalesce(func.sum(UnansweredQuery.frequency), 0)
            )
            .where(UnansweredQuery.tenant_id == tenant_id)
            .group_by(UnansweredQuery.status)
        )
        return {row[0]: (int(row[1]), int(row[2])) for row in result.all()}

    @storage_call
    async def top_pending(self, tenant_id: int, limit: int) -> List[UnansweredQuery]:
        result = await self.db.execute(
            select(UnansweredQuery)
            .where(UnansweredQuery.tenant_id == tenant_id, UnansweredQuery.status == "pending")
            .order_by(UnansweredQuery.frequency.desc(), UnansweredQuery.last_asked.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @storage_call
    async def search(
        self,
        tenant_id: int,
        term: str,
        offset: int,
        limit: int
    ) -> Tuple[List[UnansweredQuery], int]:
        filters = [
            UnansweredQuery.tenant_id == tenant_id,
            or_(_contains(UnansweredQuery.query, term), _contains(UnansweredQuery.notes, term)),
        ]
        total = await self.db.scalar(select(func.count(UnansweredQuery.id)).where(*filters))
        result = await self.db.execute(
            select(UnansweredQuery)
            .where(*filters)
            .order_by(UnansweredQuery.frequency.desc(), UnansweredQuery.last_asked.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0


# ============================================================================
# VISITOR SESSIONS
# ============================================================================

class SqlVisitorSessionRepository(SqlRepository, VisitorSessionRepository):

    @storage_call
    async def find_active(self, ip_address: str, tenant_id: int, now: datetime) -> Optional[VisitorSession]:
        result = await self.db.execute(
            select(VisitorSession)
            .where(
                VisitorSession.ip_address == ip_address,
                VisitorSession.tenant_id == tenant_id,
                VisitorSession.is_active.is_(True),
                VisitorSession.expires_at > now
            )
            .order_by(VisitorSession.last_activity.desc(), VisitorSession.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    @storage_call
    async def get_active_by_token(self, session_token: str, now: datetime) -> Optional[VisitorSession]:
        result = await self.db.execute(
            select(VisitorSession).where(
                VisitorSession.session_token == session_token,
                VisitorSession.is_active.is_(True),
                VisitorSession.expires_at > now
            )
        )
        return result.scalar_one_or_none()

    @storage_call
    async def create(self, **fields) -> VisitorSession:
        return await self._persist(VisitorSession(**fields))

    @storage_call
    async def save(self, session: VisitorSession) -> VisitorSession:
        return await self._persist(session)

    @storage_call
    async def deactivate_expired(
        self,
        now: datetime,
        ip_address: Optional[str] = None,
        tenant_id: Optional[int] = None
    ) -> int:
        filters = [VisitorSession.is_active.is_(True), VisitorSession.expires_at <= now]
        if ip_address is not None:
            filters.append(VisitorSession.ip_address == ip_address)
        if tenant_id is not None:
            filters.append(VisitorSession.tenant_id == tenant_id)

        result = await self.db.execute(
            update(VisitorSession)
            .where(*filters)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0


# ============================================================================
# LEADS
# ============================================================================

class SqlLeadRepository(SqlRepository, LeadRepository):

    @storage_call
    async def find_by_email(self, tenant_id: int, email: str) -> Optional[Lead]:
        result = await self.db.execute(
            select(Lead).where(Lead.tenant_id == tenant_id, Lead.email == email)
        )
        return result.scalars().first()

    @storage_call
    async def create(self, **fields) -> Lead:
        lead = Lead(**fields)
        try:
            return await self._persist(lead)
        except IntegrityError as e:
            await self._rollback_quietly()
            raise DuplicateLeadError(f"Lead already exists for {fields.get('email')}") from e

    @storage_call
    async def save(self, lead: Lead) -> Lead:
        return await self._persist(lead)


# ============================================================================
# CHAT MESSAGES
# ============================================================================

class SqlChatMessageRepository(SqlRepository, ChatMessageRepository):

    def _visitor_filter(self, tenant_id: int, ip_address: str):
        return and_(ChatMessage.tenant_id == tenant_id, ChatMessage.ip_address == ip_address)

    @storage_call
    async def add(self, **fields) -> ChatMessage:
        return await self._persist(ChatMessage(**fields))

    @storage_call
    async def history(
        self,
        tenant_id: int,
        ip_address: str,
        offset: int,
        limit: int
    ) -> Tuple[List[ChatMessage], int]:
        condition = self._visitor_filter(tenant_id, ip_address)
        total = await self.db.scalar(select(func.count(ChatMessage.id)).where(condition))
        result = await self.db.execute(
            select(ChatMessage)
            .where(condition)
            .order_by(ChatMessage.timestamp.desc(), ChatMessage.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    @storage_call
    async def latest_session_id(self, tenant_id: int, ip_address: str) -> Optional[str]:
        return await self.db.scalar(
            select(ChatMessage.session_id)
            .where(self._visitor_filter(tenant_id, ip_address))
            .order_by(ChatMessage.timestamp.desc(), ChatMessage.id.desc())
            .limit(1)
        )

    @storage_call
    async def get(self, tenant_id: int, message_id: int) -> Optional[ChatMessage]:
        result = await self.db.execute(
            select(ChatMessage).where(ChatMessage.id == message_id, ChatMessage.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    @storage_call
    async def save(self, message: ChatMessage) -> ChatMessage:
        return await self._persist(message)
