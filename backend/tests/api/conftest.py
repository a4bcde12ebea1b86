# tests/api/conftest.py
"""API fixtures - the FastAPI app with services wired to the in-memory fakes"""

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from supportwidget.config import settings
from supportwidget.deps import (
    get_chat_log,
    get_lead_engine,
    get_search_pipeline,
    get_session_manager,
    get_unanswered_service,
)
from supportwidget.main import app


@pytest.fixture
def client(pipeline, session_manager, chat_log, unanswered_service, lead_engine):
    """TestClient without the lifespan: no table creation, no scheduler."""
    app.dependency_overrides[get_search_pipeline] = lambda: pipeline
    app.dependency_overrides[get_session_manager] = lambda: session_manager
    app.dependency_overrides[get_chat_log] = lambda: chat_log
    app.dependency_overrides[get_unanswered_service] = lambda: unanswered_service
    app.dependency_overrides[get_lead_engine] = lambda: lead_engine

    yield TestClient(app)

    app.dependency_overrides.clear()


def make_token(role="admin", tenant_id=7, sub="admin@example.com"):
    claims = {"sub": sub, "role": role}
    if tenant_id is not None:
        claims["tenant_id"] = tenant_id
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def super_admin_headers():
    return {"Authorization": f"Bearer {make_token(role='super_admin', tenant_id=None)}"}
