"""Schemas for form tracking and manual lead capture."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import EmailStr, Field

from supportwidget.schemas import CamelModel, tenant_field


class FormTrackRequest(CamelModel):
    tenant_id: Optional[int] = tenant_field(default=None)
    form_data: Dict[str, Any] = Field(default_factory=dict)
    form_type: Optional[str] = None
    source: Optional[str] = None
    session_id: Optional[str] = None
    page_url: Optional[str] = None


class LeadCreateRequest(CamelModel):
    tenant_id: Optional[int] = tenant_field(default=None)
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    topic: Optional[str] = None
    source: Optional[str] = None


class LeadOut(CamelModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str
    source: Optional[str] = None
    visit_count: int = 1
    chat_count: int = 0
    forms_submitted: int = 0
    created_at: Optional[datetime] = None


class LeadUpsertResponse(CamelModel):
    success: bool = True
    message: str
    created: bool
    lead: LeadOut
