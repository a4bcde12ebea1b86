"""Schemas for unanswered-query administration."""

from datetime import datetime
from typing import List, Optional

from supportwidget.schemas import CamelModel
from supportwidget.schemas.search import FaqEntryOut


class UnansweredQueryOut(CamelModel):
    id: int
    tenant_id: int
    query: str
    frequency: int
    status: str
    priority: str
    last_asked: datetime
    related_entry_id: Optional[int] = None
    notes: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UnansweredStats(CamelModel):
    pending: int = 0
    answered: int = 0
    ignored: int = 0
    total_questions: int = 0
    total_frequency: int = 0


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class UnansweredListResponse(CamelModel):
    success: bool = True
    queries: List[UnansweredQueryOut]
    stats: UnansweredStats
    pagination: Pagination


class UnansweredSearchResponse(CamelModel):
    success: bool = True
    queries: List[UnansweredQueryOut]
    pagination: Pagination


class UnansweredTopResponse(CamelModel):
    success: bool = True
    queries: List[UnansweredQueryOut]


class UnansweredUpdateRequest(CamelModel):
    status: Optional[str] = None
    related_entry_id: Optional[int] = None
    notes: Optional[str] = None
    auto_create_entry: bool = False
    answer: Optional[str] = None
    category: str = "General"


class UnansweredUpdateResponse(CamelModel):
    success: bool = True
    message: str = "Unanswered query updated"
    query: UnansweredQueryOut
    created_entry: Optional[FaqEntryOut] = None
