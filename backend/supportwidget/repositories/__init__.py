"""Repository interfaces and their SQLAlchemy implementations."""

from supportwidget.repositories.base import (
    ChatMessageRepository,
    KnowledgeRepository,
    LeadRepository,
    UnansweredQueryRepository,
    VisitorSessionRepository,
)
from supportwidget.repositories.sql import (
    SqlChatMessageRepository,
    SqlKnowledgeRepository,
    SqlLeadRepository,
    SqlUnansweredQueryRepository,
    SqlVisitorSessionRepository,
)

__all__ = [
    "ChatMessageRepository",
    "KnowledgeRepository",
    "LeadRepository",
    "UnansweredQueryRepository",
    "VisitorSessionRepository",
    "SqlChatMessageRepository",
    "SqlKnowledgeRepository",
    "SqlLeadRepository",
    "SqlUnansweredQueryRepository",
    "SqlVisitorSessionRepository",
]
