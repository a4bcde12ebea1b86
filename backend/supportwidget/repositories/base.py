"""
Repository interfaces.

Services depend only on these contracts so matching, session and lead logic
stay storage-agnostic. Implementations must scope every read by tenant_id and
raise StorageUnavailableError when storage cannot serve a call.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from supportwidget.models import ChatMessage, KnowledgeEntry, Lead, UnansweredQuery, VisitorSession


class KnowledgeRepository(ABC):
    """Read/write access to a tenant's knowledge entries."""

    @abstractmethod
    async def search_active(
        self,
        tenant_id: int,
        terms: Sequence[str],
        match_all: bool,
        limit: int
    ) -> List[KnowledgeEntry]:
        """
        Active entries of tenant_id where each term (case-insensitive substring)
        appears in question, answer or category.

        match_all=True combines terms with AND, otherwise OR. Results are ordered
        by views DESC, helpful_count DESC, created_at DESC.
        """

    @abstractmethod
    async def popular(self, tenant_id: int, limit: int) -> List[KnowledgeEntry]:
        """Active entries in the same ranking order, without any term filter."""

    @abstractmethod
    async def get_active(self, tenant_id: int, entry_id: int) -> Optional[KnowledgeEntry]:
        pass

    @abstractmethod
    async def create(
        self,
        tenant_id: int,
        question: str,
        answer: str,
        category: str,
        tags: Optional[List[str]] = None
    ) -> KnowledgeEntry:
        pass

    @abstractmethod
    async def increment_views(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        pass

    @abstractmethod
    async def record_feedback(self, entry: KnowledgeEntry, helpful: bool) -> KnowledgeEntry:
        pass


class UnansweredQueryRepository(ABC):

    @abstractmethod
    async def recent_pending(self, tenant_id: int, limit: int) -> List[UnansweredQuery]:
        """Pending records of tenant_id, most recently asked first."""

    @abstractmethod
    async def create(self, **fields) -> UnansweredQuery:
        pass

    @abstractmethod
    async def save(self, record: UnansweredQuery) -> UnansweredQuery:
        pass

    @abstractmethod
    async def get(self, record_id: int) -> Optional[UnansweredQuery]:
        pass

    @abstractmethod
    async def delete(self, record: UnansweredQuery) -> None:
        pass

    @abstractmethod
    async def list(
        self,
        tenant_id: int,
        status: Optional[str],
        sort_by: str,
        descending: bool,
        offset: int,
        limit: int
    ) -> Tuple[List[UnansweredQuery], int]:
        """One page of records plus the total matching count. status=None means all."""

    @abstractmethod
    async def status_stats(self, tenant_id: int) -> Dict[str, Tuple[int, int]]:
        """Map of status -> (record count, summed frequency)."""

    @abstractmethod
    async def top_pending(self, tenant_id: int, limit: int) -> List[UnansweredQuery]:
        """Pending records by frequency DESC, last_asked DESC."""

    @abstractmethod
    async def search(
        self,
        tenant_id: int,
        term: str,
        offset: int,
        limit: int
    ) -> Tuple[List[UnansweredQuery], int]:
        """Records whose query text or notes contain term."""


class VisitorSessionRepository(ABC):

    @abstractmethod
    async def find_active(self, ip_address: str, tenant_id: int, now: datetime) -> Optional[VisitorSession]:
        """
        The session for (ip_address, tenant_id) with is_active AND expires_at > now.
        When several rows qualify the most recently active one wins.
        """

    @abstractmethod
    async def get_active_by_token(self, session_token: str, now: datetime) -> Optional[VisitorSession]:
        pass

    @abstractmethod
    async def create(self, **fields) -> VisitorSession:
        pass

    @abstractmethod
    async def save(self, session: VisitorSession) -> VisitorSession:
        pass

    @abstractmethod
    async def deactivate_expired(
        self,
        now: datetime,
        ip_address: Optional[str] = None,
        tenant_id: Optional[int] = None
    ) -> int:
        """Flip is_active off for active sessions with expires_at <= now. Returns the count."""


class LeadRepository(ABC):

    @abstractmethod
    async def find_by_email(self, tenant_id: int, email: str) -> Optional[Lead]:
        pass

    @abstractmethod
    async def create(self, **fields) -> Lead:
        """Insert a lead. Raises DuplicateLeadError on a (tenant_id, email) conflict."""

    @abstractmethod
    async def save(self, lead: Lead) -> Lead:
        pass


class ChatMessageRepository(ABC):

    @abstractmethod
    async def add(self, **fields) -> ChatMessage:
        pass

    @abstractmethod
    async def history(
        self,
        tenant_id: int,
        ip_address: str,
        offset: int,
        limit: int
    ) -> Tuple[List[ChatMessage], int]:
        """A page of messages newest first, plus the total count."""

    @abstractmethod
    async def latest_session_id(self, tenant_id: int, ip_address: str) -> Optional[str]:
        pass

    @abstractmethod
    async def get(self, tenant_id: int, message_id: int) -> Optional[ChatMessage]:
        pass

    @abstractmethod
    async def save(self, message: ChatMessage) -> ChatMessage:
        pass
