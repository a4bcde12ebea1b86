"""
Visitor Session API Router
Anonymous session check, registration, activity touch and admin cleanup
"""

from fastapi import APIRouter, Depends, Request
import logging

from supportwidget.auth import AdminPrincipal, require_admin
from supportwidget.deps import get_client_ip, get_session_manager
from supportwidget.schemas.session import (
    SessionActivityRequest, SessionActivityResponse, SessionCheckRequest,
    SessionCheckResponse, SessionCleanupResponse, SessionRegisterRequest,
    SessionRegisterResponse, VisitorInfo
)
from supportwidget.services.sessions import VisitorSessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])


@router.post("/check", response_model=SessionCheckResponse)
async def check_session(
    body: SessionCheckRequest,
    request: Request,
    manager: VisitorSessionManager = Depends(get_session_manager)
):
    """
    Find the visitor's active session for this tenant or mint a new one.
    hasActiveSession=false means a fresh anonymous session was just created.
    """
    result = await manager.check_session(
        ip_address=get_client_ip(request),
        tenant_id=body.tenant_id,
        duration_minutes=body.session_duration_minutes
    )
    session = result.session

    visitor_info = None
    if result.has_active_session and any(session.visitor_info.values()):
        visitor_info = VisitorInfo(**session.visitor_info)

    return SessionCheckResponse(
        has_active_session=result.has_active_session,
        is_new_visitor=result.is_new_visitor,
        session_token=session.session_token,
        visitor_info=visitor_info,
        expires_at=session.expires_at,
    )


@router.post("/register", response_model=SessionRegisterResponse)
async def register_visitor(
    body: SessionRegisterRequest,
    request: Request,
    manager: VisitorSessionManager = Depends(get_session_manager)
):
    """Attach visitor details to the session; first email creates the lead."""
    session = await manager.register(
        session_token=body.session_token,
        tenant_id=body.tenant_id,
        visitor_name=body.visitor_name,
        visitor_email=body.visitor_email,
        visitor_phone=body.visitor_phone,
        topic=body.topic,
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
        accept_language=request.headers.get("accept-language")
    )
    return SessionRegisterResponse(
        session_token=session.session_token,
        expires_at=session.expires_at,
        visitor_info=VisitorInfo(**session.visitor_info),
        lead_created=bool(session.lead_created),
    )


@router.post("/activity", response_model=SessionActivityResponse)
async def update_activity(
    body: SessionActivityRequest,
    manager: VisitorSessionManager = Depends(get_session_manager)
):
    session = await manager.touch_activity(body.session_token, body.tenant_id)
    return SessionActivityResponse(last_activity=session.last_activity, expires_at=session.expires_at)


@router.post("/cleanup", response_model=SessionCleanupResponse)
async def cleanup_sessions(
    manager: VisitorSessionManager = Depends(get_session_manager),
    principal: AdminPrincipal = Depends(require_admin)
):
    """Deactivate every expired session (admin only)."""
    count = await manager.sweep_expired()
    logger.info(f"Session cleanup by {principal.subject}: {count} deactivated")
    return SessionCleanupResponse(cleaned_count=count)
