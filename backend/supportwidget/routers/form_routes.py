"""
Form Tracking API Router
Website form submissions and explicit contact capture, both upserted as leads
"""

from fastapi import APIRouter, Depends, Request
import logging

from supportwidget.deps import get_client_ip, get_lead_engine
from supportwidget.exceptions import InvalidRequestError
from supportwidget.schemas.lead import FormTrackRequest, LeadCreateRequest, LeadUpsertResponse
from supportwidget.services.leads import (
    CHANNEL_FORM, SOURCE_CHAT_WIDGET, LeadContext, LeadUpsertEngine
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["forms"])


def _message(created: bool) -> str:
    return "Lead created" if created else "Existing lead updated"


@router.post("/forms/track", response_model=LeadUpsertResponse)
async def track_form_submission(
    body: FormTrackRequest,
    request: Request,
    engine: LeadUpsertEngine = Depends(get_lead_engine)
):
    """Extract name/email/phone/topic from any form payload and upsert the lead."""
    result = await engine.capture_form_submission(
        tenant_id=body.tenant_id,
        form_data=body.form_data,
        form_type=body.form_type,
        source=body.source,
        session_id=body.session_id,
        page_url=body.page_url,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer")
    )
    return LeadUpsertResponse(message=_message(result.created), created=result.created, lead=result.lead)


@router.post("/leads", response_model=LeadUpsertResponse)
async def create_lead(
    body: LeadCreateRequest,
    request: Request,
    engine: LeadUpsertEngine = Depends(get_lead_engine)
):
    """Explicit contact capture from the widget."""
    if body.tenant_id is None:
        raise InvalidRequestError("Tenant ID is required")

    result = await engine.upsert_lead(
        tenant_id=body.tenant_id,
        email=body.email,
        name=body.name,
        phone=body.phone,
        source=body.source or SOURCE_CHAT_WIDGET,
        context=LeadContext(
            channel=CHANNEL_FORM,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
            referrer=request.headers.get("referer"),
            topic=body.topic,
            form_type="manual",
        )
    )
    return LeadUpsertResponse(message=_message(result.created), created=result.created, lead=result.lead)
