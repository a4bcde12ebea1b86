# tests/conftest.py
"""Shared fixtures: in-memory repositories, a fixed clock and wired services."""

import os

# Point the engine at SQLite before supportwidget.database is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("SESSION_SWEEP_INTERVAL_MINUTES", "0")
os.environ.pop("OPENAI_API_KEY", None)

import pytest

from supportwidget.services.chat_log import ChatLog
from supportwidget.services.leads import LeadUpsertEngine
from supportwidget.services.matcher import TieredKnowledgeMatcher
from supportwidget.services.pipeline import SearchPipeline
from supportwidget.services.sessions import VisitorSessionManager
from supportwidget.services.synthesizer import AnswerSynthesizer
from supportwidget.services.unanswered import UnansweredQueryService

from tests.fakes import (
    FakeChatMessageRepository,
    FakeClock,
    FakeKnowledgeRepository,
    FakeLeadRepository,
    FakeUnansweredQueryRepository,
    FakeVisitorSessionRepository,
    make_entry,
)


# ============================================================================
# REPOSITORIES
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def knowledge_repo():
    """Two tenants with deliberately overlapping vocabulary"""
    return FakeKnowledgeRepository([
        make_entry(7, "What are your business hours?", "9-6 Mon-Fri", "Hours", views=10),
        make_entry(7, "How much does shipping cost?", "Shipping is free over $50", "Shipping", views=4),
        make_entry(7, "Do you offer refunds?", "Refunds within 30 days of purchase", "Billing", views=2),
        make_entry(7, "Old refund policy", "Refunds within 14 days", "Billing", is_active=False, views=99),
        make_entry(8, "What are your business hours?", "Open 24/7", "Hours", views=50),
        make_entry(8, "Shipping cost to Canada", "Flat $15 to Canada", "Shipping", views=20),
    ])


@pytest.fixture
def unanswered_repo():
    return FakeUnansweredQueryRepository()


@pytest.fixture
def session_repo():
    return FakeVisitorSessionRepository()


@pytest.fixture
def lead_repo():
    return FakeLeadRepository()


@pytest.fixture
def message_repo():
    return FakeChatMessageRepository()


# ============================================================================
# SERVICES
# ============================================================================

@pytest.fixture
def matcher(knowledge_repo):
    return TieredKnowledgeMatcher(knowledge_repo)


@pytest.fixture
def unanswered_service(unanswered_repo, knowledge_repo, clock):
    return UnansweredQueryService(
        unanswered_repo,
        knowledge_repository=knowledge_repo,
        dedup_window=50,
        similarity_threshold=0.8,
        clock=clock
    )


@pytest.fixture
def lead_engine(lead_repo, clock):
    return LeadUpsertEngine(lead_repo, clock=clock)


@pytest.fixture
def session_manager(session_repo, lead_engine, clock):
    return VisitorSessionManager(
        session_repo,
        lead_engine=lead_engine,
        default_duration_minutes=120,
        max_duration_minutes=1440,
        clock=clock
    )


@pytest.fixture
def chat_log(message_repo, clock):
    return ChatLog(message_repo, clock=clock)


@pytest.fixture
def pipeline(matcher, knowledge_repo, unanswered_service, chat_log, session_manager, clock):
    return SearchPipeline(
        matcher=matcher,
        synthesizer=AnswerSynthesizer(),
        knowledge_repository=knowledge_repo,
        unanswered=unanswered_service,
        chat_log=chat_log,
        sessions=session_manager,
        clock=clock
    )
