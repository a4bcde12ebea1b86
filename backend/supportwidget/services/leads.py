"""Lead upsert engine: one lead per (tenant, email), enriched on every re-contact."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from supportwidget.exceptions import DuplicateLeadError, InvalidRequestError
from supportwidget.models import Lead, utcnow
from supportwidget.repositories.base import LeadRepository

logger = logging.getLogger(__name__)

CHANNEL_CHAT = "chat"
CHANNEL_FORM = "form"

SOURCE_CHAT_WIDGET = "Chat Widget"
SOURCE_WEBSITE_FORM = "Website Form"


@dataclass
class LeadContext:
    """Where a lead came from. channel decides which engagement counters move."""
    channel: str = CHANNEL_CHAT
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    session_token: Optional[str] = None
    topic: Optional[str] = None
    form_type: Optional[str] = None
    form_data: Dict[str, Any] = field(default_factory=dict)
    page_url: Optional[str] = None


@dataclass
class LeadUpsertResult:
    lead: Lead
    created: bool


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lowercase and strip; blank becomes None."""
    if not email:
        return None
    email = email.strip().lower()
    return email or None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class LeadUpsertEngine:
    """
    Idempotent by email per tenant.

    Re-contact updates visit counters, fills name/phone only when missing and
    appends a timestamped note. A concurrent insert that loses the unique
    (tenant_id, email) race is replayed as an update.
    """

    def __init__(self, repository: LeadRepository, clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.clock = clock

    async def upsert_lead(
        self,
        tenant_id: int,
        email: Optional[str],
        name: Optional[str] = None,
        phone: Optional[str] = None,
        source: str = SOURCE_CHAT_WIDGET,
        context: Optional[LeadContext] = None
    ) -> LeadUpsertResult:
        if tenant_id is None:
            raise InvalidRequestError("Tenant ID is required")

        context = context or LeadContext()
        email = normalize_email(email)
        name, phone = _clean(name), _clean(phone)

        if email:
            existing = await self.repository.find_by_email(tenant_id, email)
            if existing is not None:
                return LeadUpsertResult(await self._update(existing, name, phone, source, context), False)

        try:
            lead = await self.repository.create(**self._new_lead_fields(tenant_id, email, name, phone, source, context))
        except DuplicateLeadError:
            existing = await self.repository.find_by_email(tenant_id, email)
            if existing is None:
                raise
            logger.info(f"Lead insert for {email} lost a race, updating lead {existing.id} instead")
            return LeadUpsertResult(await self._update(existing, name, phone, source, context), False)

        logger.info(f"Created lead {lead.id} for tenant {tenant_id} via {source}")
        return LeadUpsertResult(lead, True)

    async def capture_form_submission(
        self,
        tenant_id: int,
        form_data: Dict[str, Any],
        form_type: Optional[str] = None,
        source: Optional[str] = None,
        session_id: Optional[str] = None,
        page_url: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None
    ) -> LeadUpsertResult:
        """Pull contact details out of an arbitrary form payload and upsert the lead."""
        if tenant_id is None:
            raise InvalidRequestError("Tenant ID is required")

        fields = extract_key_fields(form_data)
        if not fields["name"] and not fields["email"]:
            raise InvalidRequestError("Form must include a name or email")

        return await self.upsert_lead(
            tenant_id=tenant_id,
            email=fields["email"],
            name=fields["name"],
            phone=fields["phone"],
            source=source or SOURCE_WEBSITE_FORM,
            context=LeadContext(
                channel=CHANNEL_FORM,
                ip_address=ip_address,
                user_agent=user_agent,
                referrer=referrer,
                session_token=session_id,
                topic=fields["topic"],
                form_type=form_type or "contact",
                form_data=form_data,
                page_url=page_url,
            )
        )

    async def _update(
        self,
        lead: Lead,
        name: Optional[str],
        phone: Optional[str],
        source: str,
        context: LeadContext
    ) -> Lead:
        now = self.clock()

        lead.last_visit = now
        lead.last_activity = now
        lead.visit_count = (lead.visit_count or 0) + 1
        if context.channel == CHANNEL_FORM:
            lead.forms_submitted = (lead.forms_submitted or 0) + 1
        else:
            lead.has_chatted = True
            lead.chat_count = (lead.chat_count or 0) + 1
            lead.last_chat_at = now

        if not lead.name and name:
            lead.name = name
        if not lead.phone and phone:
            lead.phone = phone

        note = f"[{now.strftime('%Y-%m-%d %H:%M')}] {source}: {self._describe(context, source)}"
        lead.notes = f"{lead.notes}\n{note}" if lead.notes else note
        lead.updated_at = now

        saved = await self.repository.save(lead)
        logger.info(f"Updated lead {saved.id} (visit_count={saved.visit_count})")
        return saved

    @staticmethod
    def _describe(context: LeadContext, source: str) -> str:
        if context.topic:
            return f"Interested in: {context.topic}"
        return f"Contact via {source}"

    def _new_lead_fields(
        self,
        tenant_id: int,
        email: Optional[str],
        name: Optional[str],
        phone: Optional[str],
        source: str,
        context: LeadContext
    ) -> Dict[str, Any]:
        now = self.clock()
        is_chat = context.channel != CHANNEL_FORM

        return {
            "tenant_id": tenant_id,
            "visitor_id": f"{context.ip_address or 'unknown'}_{int(now.timestamp() * 1000)}",
            "name": name,
            "email": email,
            "phone": phone,
            "status": "new",
            "priority": "medium",
            "source": source,
            "ip_address": context.ip_address,
            "user_agent": context.user_agent,
            "referrer": context.referrer,
            "first_visit": now,
            "last_visit": now,
            "last_activity": now,
            "visit_count": 1,
            "forms_submitted": 0 if is_chat else 1,
            "has_chatted": is_chat,
            "chat_count": 1 if is_chat else 0,
            "last_chat_at": now if is_chat else None,
            "notes": self._describe(context, source),
            "custom_fields": {
                "topic": context.topic or "",
                "formType": context.form_type,
                "formData": context.form_data or {},
                "sessionToken": context.session_token,
                "pageUrl": context.page_url,
            },
            "lead_metadata": {
                "source": source.lower().replace(" ", "_"),
                "channel": context.channel,
                "topic": context.topic,
                "userAgent": context.user_agent,
                "referrer": context.referrer,
            },
            "created_at": now,
            "updated_at": now,
        }


# Field-name patterns used to pull contact details out of arbitrary form payloads
_FIELD_PATTERNS = {
    "name": ("name", "fullname", "full_name", "firstname", "first_name", "lastname", "last_name"),
    "email": ("email", "e-mail", "mail"),
    "phone": ("phone", "telephone", "mobile", "cell", "contact"),
    "topic": ("topic", "subject", "interest", "message", "description", "comment"),
}


def extract_key_fields(form_data: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """First form value whose key contains a known pattern, per contact field."""
    extracted: Dict[str, Optional[str]] = {key: None for key in _FIELD_PATTERNS}

    for key, value in (form_data or {}).items():
        if value is None or isinstance(value, (dict, list)):
            continue
        lower_key = str(key).lower()
        for field_name in _FIELD_PATTERNS:
            if extracted[field_name] is None and any(p in lower_key for p in _FIELD_PATTERNS[field_name]):
                extracted[field_name] = _clean(value)
    return extracted
