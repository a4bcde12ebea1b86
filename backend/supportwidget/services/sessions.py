"""
Visitor session lifecycle per (ip_address, tenant_id).

none -> anonymous-active -> registered-active -> expired

Expiry is an absolute window from creation; activity refreshes last_activity
but never moves expires_at. Expired rows are deactivated lazily on the next
check for the same visitor and by the periodic sweep.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from supportwidget.config import settings
from supportwidget.exceptions import InvalidRequestError, SessionNotFoundError
from supportwidget.models import VisitorSession, utcnow
from supportwidget.repositories.base import VisitorSessionRepository
from supportwidget.services.best_effort import run_best_effort
from supportwidget.services.leads import CHANNEL_CHAT, SOURCE_CHAT_WIDGET, LeadContext, LeadUpsertEngine

logger = logging.getLogger(__name__)


@dataclass
class SessionCheck:
    has_active_session: bool
    session: VisitorSession

    @property
    def is_new_visitor(self) -> bool:
        return not self.has_active_session


def generate_session_token() -> str:
    """Cryptographically random opaque token (64 hex chars)."""
    return secrets.token_hex(32)


class VisitorSessionManager:

    def __init__(
        self,
        repository: VisitorSessionRepository,
        lead_engine: Optional[LeadUpsertEngine] = None,
        default_duration_minutes: int = None,
        max_duration_minutes: int = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.repository = repository
        self.lead_engine = lead_engine
        self.default_duration_minutes = default_duration_minutes or settings.SESSION_DURATION_MINUTES
        self.max_duration_minutes = max_duration_minutes or settings.SESSION_MAX_DURATION_MINUTES
        self.clock = clock

    def _duration(self, duration_minutes: Optional[int]) -> int:
        if duration_minutes is None:
            return self.default_duration_minutes
        if duration_minutes < 1 or duration_minutes > self.max_duration_minutes:
            raise InvalidRequestError(
                f"sessionDurationMinutes must be between 1 and {self.max_duration_minutes}"
            )
        return duration_minutes

    async def find_active(self, ip_address: str, tenant_id: int) -> Optional[VisitorSession]:
        now = self.clock()
        session = await self.repository.find_active(ip_address, tenant_id, now)
        if session is not None and session.expires_at <= now:
            return None
        return session

    async def check_session(
        self,
        ip_address: str,
        tenant_id: int,
        duration_minutes: Optional[int] = None
    ) -> SessionCheck:
        """Return the visitor's live session, or mint a new anonymous one."""
        if tenant_id is None:
            raise InvalidRequestError("Tenant ID is required")
        if not ip_address:
            raise InvalidRequestError("Visitor IP address could not be determined")
        duration = self._duration(duration_minutes)

        now = self.clock()
        await run_best_effort(
            self.repository.deactivate_expired(now, ip_address=ip_address, tenant_id=tenant_id),
            "sweep expired visitor sessions"
        )

        session = await self.find_active(ip_address, tenant_id)
        if session is not None:
            session.last_activity = self.clock()
            await run_best_effort(self.repository.save(session), "refresh session activity")
            logger.info(f"Active session {session.id} found for {ip_address} / tenant {tenant_id}")
            return SessionCheck(has_active_session=True, session=session)

        session = await self.repository.create(
            tenant_id=tenant_id,
            ip_address=ip_address,
            session_token=generate_session_token(),
            first_visit=now,
            last_activity=now,
            expires_at=now + timedelta(minutes=duration),
            is_active=True,
            message_count=0,
            lead_created=False,
            session_metadata={},
        )
        logger.info(f"Created session {session.id} for {ip_address} / tenant {tenant_id} ({duration} min)")
        return SessionCheck(has_active_session=False, session=session)

    async def find_by_token(self, session_token: Optional[str], tenant_id: Optional[int]) -> Optional[VisitorSession]:
        """Live session for the token, restricted to the tenant when one is given."""
        if not session_token:
            return None

        now = self.clock()
        session = await self.repository.get_active_by_token(session_token, now)
        if session is None or session.expires_at <= now:
            return None
        if tenant_id is not None and session.tenant_id != tenant_id:
            return None
        return session

    async def get_active_by_token(self, session_token: str, tenant_id: Optional[int] = None) -> VisitorSession:
        if not session_token:
            raise InvalidRequestError("Session token is required")

        session = await self.find_by_token(session_token, tenant_id)
        if session is None:
            raise SessionNotFoundError()
        return session

    async def register(
        self,
        session_token: str,
        tenant_id: int,
        visitor_name: Optional[str] = None,
        visitor_email: Optional[str] = None,
        visitor_phone: Optional[str] = None,
        topic: Optional[str] = None,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
        accept_language: Optional[str] = None
    ) -> VisitorSession:
        """
        Attach visitor details to the existing session; no new token is issued.

        The first registration carrying an email upserts a lead exactly once per
        session (guarded by lead_created).
        """
        if tenant_id is None:
            raise InvalidRequestError("Tenant ID is required")
        session = await self.get_active_by_token(session_token, tenant_id)
        now = self.clock()

        if visitor_name is not None:
            session.visitor_name = visitor_name.strip() or None
        if visitor_email is not None:
            session.visitor_email = visitor_email.strip() or None
        if visitor_phone is not None:
            session.visitor_phone = visitor_phone.strip() or None
        if topic is not None:
            session.topic = topic.strip() or None
        if user_agent:
            session.user_agent = user_agent
        session.last_activity = now
        session.session_metadata = {
            **(session.session_metadata or {}),
            "registeredAt": now.isoformat(),
            "referer": referer or "",
            "acceptLanguage": accept_language or "",
        }
        session = await self.repository.save(session)

        if session.visitor_email and not session.lead_created and self.lead_engine is not None:
            await self._create_lead(session, referer)

        return session

    async def _create_lead(self, session: VisitorSession, referer: Optional[str]) -> None:
        result = await run_best_effort(
            self.lead_engine.upsert_lead(
                tenant_id=session.tenant_id,
                email=session.visitor_email,
                name=session.visitor_name or "Anonymous Visitor",
                phone=session.visitor_phone,
                source=SOURCE_CHAT_WIDGET,
                context=LeadContext(
                    channel=CHANNEL_CHAT,
                    ip_address=session.ip_address,
                    user_agent=session.user_agent,
                    referrer=referer,
                    session_token=session.session_token,
                    topic=session.topic,
                    form_type="chat_widget_registration",
                ),
            ),
            "lead upsert from session registration"
        )
        if result is None:
            return

        session.lead_created = True
        session.lead_id = result.lead.id
        await run_best_effort(self.repository.save(session), "flag session lead_created")
        logger.info(
            f"Session {session.id} linked to lead {result.lead.id} "
            f"({'created' if result.created else 'updated'})"
        )

    async def touch_activity(self, session_token: str, tenant_id: Optional[int] = None) -> VisitorSession:
        session = await self.get_active_by_token(session_token, tenant_id)
        session.last_activity = self.clock()
        return await self.repository.save(session)

    async def record_message(self, session_token: str, tenant_id: int) -> VisitorSession:
        """Count one chat exchange against the tenant's session."""
        session = await self.get_active_by_token(session_token, tenant_id)
        session.message_count = (session.message_count or 0) + 1
        session.last_activity = self.clock()
        return await self.repository.save(session)

    async def sweep_expired(self) -> int:
        count = await self.repository.deactivate_expired(self.clock())
        if count:
            logger.info(f"Deactivated {count} expired visitor session(s)")
        return count
