# tests/fakes.py
"""
In-memory repository fakes for service-layer tests.

They hold real (transient) ORM instances, mimic the SQL implementations'
filtering and ordering, and can be told to fail specific calls with
StorageUnavailableError via fail_on.
"""

from datetime import datetime, timedelta
from itertools import count
from typing import Dict, List, Optional, Sequence, Tuple

from supportwidget.exceptions import DuplicateLeadError, StorageUnavailableError
from supportwidget.models import ChatMessage, KnowledgeEntry, Lead, UnansweredQuery, VisitorSession
from supportwidget.repositories.base import (
    ChatMessageRepository,
    KnowledgeRepository,
    LeadRepository,
    UnansweredQueryRepository,
    VisitorSessionRepository,
)


def make_entry(tenant_id, question, answer, category="General", **kwargs) -> KnowledgeEntry:
    """Transient KnowledgeEntry with sane defaults."""
    return KnowledgeEntry(
        tenant_id=tenant_id,
        question=question,
        answer=answer,
        category=category,
        tags=kwargs.pop("tags", []),
        is_active=kwargs.pop("is_active", True),
        views=kwargs.pop("views", 0),
        helpful_count=kwargs.pop("helpful_count", 0),
        not_helpful_count=kwargs.pop("not_helpful_count", 0),
        **kwargs
    )


class FakeClock:
    """Deterministic clock; advance() moves time forward."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 1, 15, 10, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeRepository:

    def __init__(self):
        self.fail_on = set()
        self._ids = count(1)

    def _check(self, operation: str):
        if operation in self.fail_on:
            raise StorageUnavailableError()

    def _next_id(self) -> int:
        return next(self._ids)


# ============================================================================
# KNOWLEDGE ENTRIES
# ============================================================================

class FakeKnowledgeRepository(FakeRepository, KnowledgeRepository):

    def __init__(self, entries: Sequence[KnowledgeEntry] = ()):
        super().__init__()
        self.entries: List[KnowledgeEntry] = []
        self.search_calls: List[Tuple[Tuple[str, ...], bool]] = []
        for entry in entries:
            self.add_entry(entry)

    def add_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        entry.id = entry.id or self._next_id()
        entry.is_active = True if entry.is_active is None else entry.is_active
        entry.category = entry.category or "General"
        entry.views = entry.views or 0
        entry.helpful_count = entry.helpful_count or 0
        entry.not_helpful_count = entry.not_helpful_count or 0
        entry.created_at = entry.created_at or datetime(2024, 1, 1)
        self.entries.append(entry)
        return entry

    @staticmethod
    def _rank(entries: List[KnowledgeEntry]) -> List[KnowledgeEntry]:
        return sorted(
            entries,
            key=lambda e: (e.views, e.helpful_count, e.created_at, e.id),
            reverse=True
        )

    def _active(self, tenant_id: int) -> List[KnowledgeEntry]:
        return [e for e in self.entries if e.tenant_id == tenant_id and e.is_active]

    @staticmethod
    def _hits(entry: KnowledgeEntry, term: str) -> bool:
        term = term.lower()
        return any(term in (value or "").lower() for value in (entry.question, entry.answer, entry.category))

    async def search_active(self, tenant_id, terms, match_all, limit):
        self._check("search_active")
        self.search_calls.append((tuple(terms), match_all))
        combine = all if match_all else any
        found = [e for e in self._active(tenant_id) if combine(self._hits(e, t) for t in terms)]
        return self._rank(found)[:limit]

    async def popular(self, tenant_id, limit):
        self._check("popular")
        return self._rank(self._active(tenant_id))[:limit]

    async def get_active(self, tenant_id, entry_id):
        self._check("get_active")
        return next((e for e in self._active(tenant_id) if e.id == entry_id), None)

    async def create(self, tenant_id, question, answer, category, tags=None):
        self._check("create")
        return self.add_entry(KnowledgeEntry(
            tenant_id=tenant_id, question=question, answer=answer,
            category=category, tags=tags or [], is_active=True
        ))

    async def increment_views(self, entry):
        self._check("increment_views")
        entry.views += 1
        return entry

    async def record_feedback(self, entry, helpful):
        self._check("record_feedback")
        if helpful:
            entry.helpful_count += 1
        else:
            entry.not_helpful_count += 1
        return entry


# ============================================================================
# UNANSWERED QUERIES
# ============================================================================

class FakeUnansweredQueryRepository(FakeRepository, UnansweredQueryRepository):

    _priority_rank = {"high": 3, "medium": 2, "low": 1}

    def __init__(self):
        super().__init__()
        self.records: Dict[int, UnansweredQuery] = {}

    def _tenant(self, tenant_id: int) -> List[UnansweredQuery]:
        return [r for r in self.records.values() if r.tenant_id == tenant_id]

    async def recent_pending(self, tenant_id, limit):
        self._check("recent_pending")
        pending = [r for r in self._tenant(tenant_id) if r.status == "pending"]
        return sorted(pending, key=lambda r: (r.last_asked, r.id), reverse=True)[:limit]

    async def create(self, **fields):
        self._check("create")
        record = UnansweredQuery(**fields)
        record.id = self._next_id()
        self.records[record.id] = record
        return record

    async def save(self, record):
        self._check("save")
        self.records[record.id] = record
        return record

    async def get(self, record_id):
        self._check("get")
        return self.records.get(record_id)

    async def delete(self, record):
        self._check("delete")
        self.records.pop(record.id, None)

    def _sort_key(self, sort_by: str):
        return {
            "frequency": lambda r: r.frequency,
            "lastAsked": lambda r: r.last_asked,
            "createdAt": lambda r: r.created_at,
            "priority": lambda r: self._priority_rank[r.priority],
        }.get(sort_by, lambda r: r.frequency)

    async def list(self, tenant_id, status, sort_by, descending, offset, limit):
        self._check("list")
        rows = [r for r in self._tenant(tenant_id) if status is None or r.status == status]
        rows = sorted(rows, key=self._sort_key(sort_by), reverse=descending)
        return rows[offset:offset + limit], len(rows)

    async def status_stats(self, tenant_id):
        self._check("status_stats")
        stats: Dict[str, Tuple[int, int]] = {}
        for record in self._tenant(tenant_id):
            count_, frequency = stats.get(record.status, (0, 0))
            stats[record.status] = (count_ + 1, frequency + record.frequency)
        return stats

    async def top_pending(self, tenant_id, limit):
        self._check("top_pending")
        pending = [r for r in self._tenant(tenant_id) if r.status == "pending"]
        return sorted(pending, key=lambda r: (r.frequency, r.last_asked), reverse=True)[:limit]

    async def search(self, tenant_id, term, offset, limit):
        self._check("search")
        term = term.lower()
        rows = [
            r for r in self._tenant(tenant_id)
            if term in r.query.lower() or term in (r.notes or "").lower()
        ]
        rows = sorted(rows, key=lambda r: (r.frequency, r.last_asked), reverse=True)
        return rows[offset:offset + limit], len(rows)


# ============================================================================
# VISITOR SESSIONS
# ============================================================================

class FakeVisitorSessionRepository(FakeRepository, VisitorSessionRepository):

    def __init__(self):
        super().__init__()
        self.sessions: Dict[int, VisitorSession] = {}

    def _live(self, now: datetime) -> List[VisitorSession]:
        return [s for s in self.sessions.values() if s.is_active and s.expires_at > now]

    async def find_active(self, ip_address, tenant_id, now):
        self._check("find_active")
        matches = [s for s in self._live(now) if s.ip_address == ip_address and s.tenant_id == tenant_id]
        matches.sort(key=lambda s: (s.last_activity, s.id), reverse=True)
        return matches[0] if matches else None

    async def get_active_by_token(self, session_token, now):
        self._check("get_active_by_token")
        return next((s for s in self._live(now) if s.session_token == session_token), None)

    async def create(self, **fields):
        self._check("create")
        session = VisitorSession(**fields)
        session.id = self._next_id()
        self.sessions[session.id] = session
        return session

    async def save(self, session):
        self._check("save")
        self.sessions[session.id] = session
        return session

    async def deactivate_expired(self, now, ip_address=None, tenant_id=None):
        self._check("deactivate_expired")
        deactivated = 0
        for session in self.sessions.values():
            if not session.is_active or session.expires_at > now:
                continue
            if ip_address is not None and session.ip_address != ip_address:
                continue
            if tenant_id is not None and session.tenant_id != tenant_id:
                continue
            session.is_active = False
            deactivated += 1
        return deactivated


# ============================================================================
# LEADS
# ============================================================================

class FakeLeadRepository(FakeRepository, LeadRepository):

    def __init__(self):
        super().__init__()
        self.leads: Dict[int, Lead] = {}
        self.create_calls = 0

    async def find_by_email(self, tenant_id, email):
        self._check("find_by_email")
        return next(
            (lead for lead in self.leads.values() if lead.tenant_id == tenant_id and lead.email == email),
            None
        )

    async def create(self, **fields):
        self._check("create")
        self.create_calls += 1
        email = fields.get("email")
        if email and any(
            lead.tenant_id == fields["tenant_id"] and lead.email == email for lead in self.leads.values()
        ):
            raise DuplicateLeadError(f"Lead already exists for {email}")
        lead = Lead(**fields)
        lead.id = self._next_id()
        self.leads[lead.id] = lead
        return lead

    async def save(self, lead):
        self._check("save")
        self.leads[lead.id] = lead
        return lead


# ============================================================================
# CHAT MESSAGES
# ============================================================================

class FakeChatMessageRepository(FakeRepository, ChatMessageRepository):

    def __init__(self):
        super().__init__()
        self.messages: List[ChatMessage] = []

    def _visitor(self, tenant_id, ip_address) -> List[ChatMessage]:
        rows = [m for m in self.messages if m.tenant_id == tenant_id and m.ip_address == ip_address]
        return sorted(rows, key=lambda m: (m.timestamp, m.id), reverse=True)

    async def add(self, **fields):
        self._check("add")
        message = ChatMessage(**fields)
        message.id = self._next_id()
        self.messages.append(message)
        return message

    async def history(self, tenant_id, ip_address, offset, limit):
        self._check("history")
        rows = self._visitor(tenant_id, ip_address)
        return rows[offset:offset + limit], len(rows)

    async def latest_session_id(self, tenant_id, ip_address) -> Optional[str]:
        self._check("latest_session_id")
        rows = self._visitor(tenant_id, ip_address)
        return rows[0].session_id if rows else None

    async def get(self, tenant_id, message_id):
        self._check("get")
        return next((m for m in self.messages if m.id == message_id and m.tenant_id == tenant_id), None)

    async def save(self, message):
        self._check("save")
        return message
