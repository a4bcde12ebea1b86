"""FastAPI dependency wiring: one repository set per request-scoped AsyncSession."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from supportwidget.database import get_db
from supportwidget.repositories.sql import (
    SqlChatMessageRepository,
    SqlKnowledgeRepository,
    SqlLeadRepository,
    SqlUnansweredQueryRepository,
    SqlVisitorSessionRepository,
)
from supportwidget.services.chat_log import ChatLog
from supportwidget.services.generator import AnswerGenerator, create_answer_generator
from supportwidget.services.leads import LeadUpsertEngine
from supportwidget.services.matcher import TieredKnowledgeMatcher
from supportwidget.services.pipeline import SearchPipeline
from supportwidget.services.sessions import VisitorSessionManager
from supportwidget.services.synthesizer import AnswerSynthesizer
from supportwidget.services.unanswered import UnansweredQueryService


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def get_tenant_id(
    tenant_id: Optional[int] = Query(None, alias="tenantId"),
    company_id: Optional[int] = Query(None, alias="companyId")
) -> Optional[int]:
    """Tenant from the query string; services reject a missing one with 400."""
    return tenant_id if tenant_id is not None else company_id


@lru_cache()
def get_answer_generator() -> Optional[AnswerGenerator]:
    return create_answer_generator()


def get_lead_engine(db: AsyncSession = Depends(get_db)) -> LeadUpsertEngine:
    return LeadUpsertEngine(SqlLeadRepository(db))


def get_session_manager(
    db: AsyncSession = Depends(get_db),
    lead_engine: LeadUpsertEngine = Depends(get_lead_engine)
) -> VisitorSessionManager:
    return VisitorSessionManager(SqlVisitorSessionRepository(db), lead_engine=lead_engine)


def get_chat_log(db: AsyncSession = Depends(get_db)) -> ChatLog:
    return ChatLog(SqlChatMessageRepository(db))


def get_unanswered_service(db: AsyncSession = Depends(get_db)) -> UnansweredQueryService:
    return UnansweredQueryService(
        SqlUnansweredQueryRepository(db),
        knowledge_repository=SqlKnowledgeRepository(db)
    )


def get_search_pipeline(
    db: AsyncSession = Depends(get_db),
    generator: Optional[AnswerGenerator] = Depends(get_answer_generator),
    unanswered: UnansweredQueryService = Depends(get_unanswered_service),
    chat_log: ChatLog = Depends(get_chat_log),
    sessions: VisitorSessionManager = Depends(get_session_manager)
) -> SearchPipeline:
    knowledge = SqlKnowledgeRepository(db)
    return SearchPipeline(
        matcher=TieredKnowledgeMatcher(knowledge),
        synthesizer=AnswerSynthesizer(generator),
        knowledge_repository=knowledge,
        unanswered=unanswered,
        chat_log=chat_log,
        sessions=sessions,
    )
