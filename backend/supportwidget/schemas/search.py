"""Schemas for the public search, FAQ and chat-history endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field

from supportwidget.schemas import CamelModel, tenant_field


class RelatedEntry(CamelModel):
    id: int
    question: str
    category: Optional[str] = None


class SearchResponse(CamelModel):
    """Answer to a visitor question. answer is never empty."""
    success: bool = True
    query: str
    answer: str
    source: str
    confidence: float
    source_entry_id: Optional[int] = None
    related_entries: List[RelatedEntry] = []


class SuggestionItem(CamelModel):
    id: int
    question: str
    category: Optional[str] = None
    views: int = 0
    helpful_count: int = 0


class ChatMessageOut(CamelModel):
    id: int
    session_id: str
    direction: str
    content: str
    timestamp: datetime
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("message_metadata", "metadata"),
    )
    reaction: Optional[str] = None


class HistoryPagination(CamelModel):
    current_page: int
    total_pages: int
    total_messages: int
    has_more: bool


class HistoryResponse(CamelModel):
    success: bool = True
    messages: List[ChatMessageOut]
    pagination: HistoryPagination
    current_session_id: Optional[str] = None


class ReactionRequest(CamelModel):
    tenant_id: Optional[int] = tenant_field(default=None)
    reaction: str


class ReactionResponse(CamelModel):
    success: bool = True
    message_id: int
    reaction: str
    reacted_at: Optional[datetime] = None


class FaqEntryOut(CamelModel):
    id: int
    question: str
    answer: str
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    views: int = 0
    helpful_count: int = 0
    not_helpful_count: int = 0


class FaqResponse(CamelModel):
    success: bool = True
    faq: FaqEntryOut


class FaqFeedbackRequest(CamelModel):
    tenant_id: Optional[int] = tenant_field(default=None)
    helpful: bool


class FaqFeedbackResponse(CamelModel):
    success: bool = True
    helpful_count: int
    not_helpful_count: int
