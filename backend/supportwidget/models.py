"""
SQLAlchemy ORM models.

Every table carries a tenant_id column; all hot lookups are indexed on
(tenant_id, status/active). Timestamps are naive UTC (see utcnow()).
"""

from sqlalchemy import (
    Column, String, Boolean, Integer, Text, DateTime, JSON, Index,
    ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime, timezone

from supportwidget.database import Base


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


UNANSWERED_STATUSES = ("pending", "answered", "ignored")
UNANSWERED_PRIORITIES = ("low", "medium", "high")
LEAD_STATUSES = ("new", "contacted", "qualified", "converted", "lost")
MESSAGE_DIRECTIONS = ("user", "bot")
MESSAGE_REACTIONS = ("helpful", "not_helpful")


# ============================================================================
# KNOWLEDGE BASE
# ============================================================================

class KnowledgeEntry(Base):
    """Tenant-authored FAQ entry used to answer visitor questions."""
    __tablename__ = "knowledge_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    category = Column(String(255), nullable=False, default="General")
    tags = Column(JSONType, default=list)
    is_active = Column(Boolean, nullable=False, default=True)

    views = Column(Integer, nullable=False, default=0)
    helpful_count = Column(Integer, nullable=False, default=0)
    not_helpful_count = Column(Integer, nullable=False, default=0)
    order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_knowledge_tenant_active", "tenant_id", "is_active"),
        Index("ix_knowledge_tenant_category", "tenant_id", "category"),
    )

    def __repr__(self):
        return f"<KnowledgeEntry(id={self.id}, tenant_id={self.tenant_id}, question='{self.question[:40]}')>"


class UnansweredQuery(Base):
    """A visitor question the pipeline could not answer, frequency tracked."""
    __tablename__ = "unanswered_queries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    query = Column(Text, nullable=False)
    ip_address = Column(String(45))
    user_agent = Column(Text)
    session_id = Column(String(255))

    frequency = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="pending")
    priority = Column(String(20), nullable=False, default="low")
    last_asked = Column(DateTime, nullable=False, default=utcnow)
    related_entry_id = Column(Integer, ForeignKey("knowledge_entries.id", ondelete="SET NULL"))
    notes = Column(Text)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_unanswered_tenant_status", "tenant_id", "status"),
        Index("ix_unanswered_last_asked", "last_asked"),
        CheckConstraint("status IN ('pending', 'answered', 'ignored')", name="chk_unanswered_status"),
        CheckConstraint("priority IN ('low', 'medium', 'high')", name="chk_unanswered_priority"),
    )


# ============================================================================
# VISITORS
# ============================================================================

class VisitorSession(Base):
    """Time-boxed identity bound to an (ip_address, tenant_id) pair."""
    __tablename__ = "visitor_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False)
    ip_address = Column(String(45), nullable=False)
    session_token = Column(String(255), nullable=False, unique=True)

    visitor_name = Column(String(100))
    visitor_email = Column(String(255))
    visitor_phone = Column(String(30))
    topic = Column(String(255))
    user_agent = Column(Text)

    first_visit = Column(DateTime, nullable=False, default=utcnow)
    last_activity = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    message_count = Column(Integer, nullable=False, default=0)
    lead_created = Column(Boolean, nullable=False, default=False)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="SET NULL"))
    session_metadata = Column("metadata", JSONType, default=dict)

    __table_args__ = (
        Index("ix_visitor_session_lookup", "ip_address", "tenant_id", "expires_at"),
        Index("ix_visitor_session_tenant_active", "tenant_id", "is_active"),
    )

    @property
    def visitor_info(self) -> dict:
        return {
            "name": self.visitor_name,
            "email": self.visitor_email,
            "phone": self.visitor_phone,
            "topic": self.topic,
        }


class Lead(Base):
    """Prospective customer derived from chat or form engagement."""
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False)
    visitor_id = Column(String(255), nullable=False)
    name = Column(String(255))
    email = Column(String(255))
    phone = Column(String(50))

    status = Column(String(20), nullable=False, default="new")
    priority = Column(String(20), nullable=False, default="medium")
    source = Column(String(100))

    ip_address = Column(String(45))
    user_agent = Column(Text)
    referrer = Column(Text)

    first_visit = Column(DateTime, default=utcnow)
    last_visit = Column(DateTime, default=utcnow)
    last_activity = Column(DateTime, default=utcnow)
    visit_count = Column(Integer, nullable=False, default=1)
    forms_submitted = Column(Integer, nullable=False, default=0)
    has_chatted = Column(Boolean, nullable=False, default=False)
    chat_count = Column(Integer, nullable=False, default=0)
    last_chat_at = Column(DateTime)

    notes = Column(Text)
    custom_fields = Column(JSONType, default=dict)
    lead_metadata = Column("metadata", JSONType, default=dict)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_lead_tenant_email"),
        Index("ix_lead_tenant_status", "tenant_id", "status"),
        CheckConstraint(
            "status IN ('new', 'contacted', 'qualified', 'converted', 'lost')",
            name="chk_lead_status"
        ),
    )

    def __repr__(self):
        return f"<Lead(id={self.id}, tenant_id={self.tenant_id}, email='{self.email}')>"


class ChatMessage(Base):
    """Append-only chat log entry. Only the reaction may change after insert."""
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False)
    session_id = Column(String(255), nullable=False, index=True)
    ip_address = Column(String(45), nullable=False)
    direction = Column(String(10), nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    message_metadata = Column("metadata", JSONType, default=dict)
    reaction = Column(String(20))
    reacted_at = Column(DateTime)

    __table_args__ = (
        Index("ix_chat_message_ip_tenant", "ip_address", "tenant_id"),
        Index("ix_chat_message_timestamp", "timestamp"),
        CheckConstraint("direction IN ('user', 'bot')", name="chk_chat_message_direction"),
    )
