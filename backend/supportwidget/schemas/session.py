"""Schemas for visitor session endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, field_validator

from supportwidget.schemas import CamelModel, tenant_field


class SessionCheckRequest(CamelModel):
    tenant_id: Optional[int] = tenant_field(default=None)
    session_duration_minutes: Optional[int] = None


class VisitorInfo(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    topic: Optional[str] = None


class SessionCheckResponse(CamelModel):
    success: bool = True
    has_active_session: bool
    is_new_visitor: bool
    session_token: str
    visitor_info: Optional[VisitorInfo] = None
    expires_at: datetime


class SessionRegisterRequest(CamelModel):
    session_token: Optional[str] = None
    tenant_id: Optional[int] = tenant_field(default=None)
    visitor_name: Optional[str] = None
    visitor_email: Optional[EmailStr] = None
    visitor_phone: Optional[str] = None
    topic: Optional[str] = None

    @field_validator("visitor_email", mode="before")
    @classmethod
    def blank_email_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class SessionRegisterResponse(CamelModel):
    success: bool = True
    session_token: str
    expires_at: datetime
    visitor_info: VisitorInfo
    lead_created: bool = False


class SessionActivityRequest(CamelModel):
    session_token: Optional[str] = None
    tenant_id: Optional[int] = tenant_field(default=None)


class SessionActivityResponse(CamelModel):
    success: bool = True
    last_activity: datetime
    expires_at: datetime


class SessionCleanupResponse(CamelModel):
    success: bool = True
    cleaned_count: int
