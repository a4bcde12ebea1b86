# tests/services/test_sessions.py
"""
Tests for VisitorSessionManager

Coverage:
- none -> anonymous-active (token, absolute expiry window)
- Lookup returns the same session within the window, refreshing activity only
- Expiry: lazy sweep, new token after expiry
- Registration in place, tenant mismatch, lead created exactly once
- Token lookups scoped to the tenant (activity, message count)
- Best-effort behaviour when the lead engine or activity touch fails
- Periodic sweep

Run with: pytest backend/tests/services/test_sessions.py -v
"""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock

from supportwidget.exceptions import InvalidRequestError, SessionNotFoundError, StorageUnavailableError
from supportwidget.services.sessions import VisitorSessionManager, generate_session_token


# ============================================================================
# TEST: Session Check
# ============================================================================

class TestCheckSession:

    @pytest.mark.asyncio
    async def test_first_contact_mints_anonymous_session(self, session_manager, clock):
        result = await session_manager.check_session("10.0.0.1", 7)
        session = result.session

        assert result.has_active_session is False
        assert result.is_new_visitor is True
        assert len(session.session_token) == 64
        assert session.is_active is True
        assert session.first_visit == clock.now
        assert session.last_activity == clock.now
        assert session.expires_at == clock.now + timedelta(minutes=120)
        assert session.visitor_email is None

    @pytest.mark.asyncio
    async def test_second_contact_returns_same_session(self, session_manager, clock):
        first = await session_manager.check_session("10.0.0.1", 7)
        clock.advance(minutes=30)

        second = await session_manager.check_session("10.0.0.1", 7)

        assert second.has_active_session is True
        assert second.session.session_token == first.session.session_token
        assert second.session.last_activity == clock.now
        # absolute window: activity does not extend expiry
        assert second.session.expires_at == first.session.first_visit + timedelta(minutes=120)

    @pytest.mark.asyncio
    async def test_sessions_are_per_ip_and_tenant(self, session_manager):
        a = await session_manager.check_session("10.0.0.1", 7)
        b = await session_manager.check_session("10.0.0.2", 7)
        c = await session_manager.check_session("10.0.0.1", 8)

        tokens = {a.session.session_token, b.session.session_token, c.session.session_token}
        assert len(tokens) == 3

    @pytest.mark.asyncio
    async def test_expired_session_is_replaced(self, session_manager, session_repo, clock):
        first = await session_manager.check_session("10.0.0.1", 7, duration_minutes=30)
        clock.advance(minutes=31)

        second = await session_manager.check_session("10.0.0.1", 7)

        assert second.has_active_session is False
        assert second.session.session_token != first.session.session_token
        # lazy sweep flipped the old row
        assert session_repo.sessions[first.session.id].is_active is False

    @pytest.mark.asyncio
    async def test_expiry_boundary_is_exclusive(self, session_manager, clock):
        first = await session_manager.check_session("10.0.0.1", 7, duration_minutes=10)
        clock.advance(minutes=10)

        second = await session_manager.check_session("10.0.0.1", 7)

        assert second.session.session_token != first.session.session_token

    @pytest.mark.asyncio
    async def test_most_recently_active_wins_after_a_race(self, session_manager, session_repo, clock):
        older = await session_repo.create(
            tenant_id=7, ip_address="10.0.0.1", session_token="older",
            first_visit=clock.now, last_activity=clock.now - timedelta(minutes=5),
            expires_at=clock.now + timedelta(hours=1), is_active=True,
            message_count=0, lead_created=False,
        )
        newer = await session_repo.create(
            tenant_id=7, ip_address="10.0.0.1", session_token="newer",
            first_visit=clock.now, last_activity=clock.now,
            expires_at=clock.now + timedelta(hours=1), is_active=True,
            message_count=0, lead_created=False,
        )

        result = await session_manager.check_session("10.0.0.1", 7)

        assert result.session.id == newer.id != older.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [0, -5, 1441])
    async def test_duration_bounds(self, session_manager, session_repo, duration):
        with pytest.raises(InvalidRequestError):
            await session_manager.check_session("10.0.0.1", 7, duration_minutes=duration)
        assert session_repo.sessions == {}

    @pytest.mark.asyncio
    async def test_missing_tenant_rejected(self, session_manager):
        with pytest.raises(InvalidRequestError):
            await session_manager.check_session("10.0.0.1", None)

    @pytest.mark.asyncio
    async def test_activity_touch_failure_does_not_fail_check(self, session_manager, session_repo):
        first = await session_manager.check_session("10.0.0.1", 7)
        session_repo.fail_on.update({"save", "deactivate_expired"})

        second = await session_manager.check_session("10.0.0.1", 7)

        assert second.has_active_session is True
        assert second.session.id == first.session.id

    @pytest.mark.asyncio
    async def test_lookup_failure_propagates(self, session_manager, session_repo):
        session_repo.fail_on.add("find_active")
        with pytest.raises(StorageUnavailableError):
            await session_manager.check_session("10.0.0.1", 7)

    def test_tokens_are_random(self):
        assert len({generate_session_token() for _ in range(50)}) == 50


# ============================================================================
# TEST: Registration
# ============================================================================

class TestRegistration:

    @pytest.mark.asyncio
    async def test_register_updates_session_in_place(self, session_manager, session_repo):
        check = await session_manager.check_session("10.0.0.1", 7)
        token = check.session.session_token

        session = await session_manager.register(
            token, 7,
            visitor_name=" Ada ",
            visitor_phone="555-0100",
            topic="Pricing",
            user_agent="Mozilla/5.0"
        )

        assert session.session_token == token
        assert len(session_repo.sessions) == 1
        assert session.visitor_info == {"name": "Ada", "email": None, "phone": "555-0100", "topic": "Pricing"}
        assert session.lead_created is False

    @pytest.mark.asyncio
    async def test_registration_with_email_creates_lead_once(self, session_manager, lead_repo):
        token = (await session_manager.check_session("10.0.0.1", 7)).session.session_token

        first = await session_manager.register(token, 7, visitor_name="Ada", visitor_email="Ada@Example.com")
        second = await session_manager.register(token, 7, visitor_name="Ada L.", visitor_email="ada@example.com")

        assert first.lead_created is True
        assert second.lead_id == first.lead_id
        assert lead_repo.create_calls == 1
        assert len(lead_repo.leads) == 1
        lead = next(iter(lead_repo.leads.values()))
        assert lead.email == "ada@example.com"
        assert lead.source == "Chat Widget"
        # lead_created guards the second call: no re-contact update either
        assert lead.visit_count == 1

    @pytest.mark.asyncio
    async def test_two_sessions_same_email_share_one_lead(self, session_manager, lead_repo):
        t1 = (await session_manager.check_session("10.0.0.1", 7)).session.session_token
        t2 = (await session_manager.check_session("10.0.0.2", 7)).session.session_token

        await session_manager.register(t1, 7, visitor_name="Ada", visitor_email="ada@example.com")
        await session_manager.register(t2, 7, visitor_name="Someone Else", visitor_email="ada@example.com")

        assert len(lead_repo.leads) == 1
        lead = next(iter(lead_repo.leads.values()))
        assert lead.visit_count == 2
        assert lead.name == "Ada"

    @pytest.mark.asyncio
    async def test_unknown_or_expired_token(self, session_manager, clock):
        with pytest.raises(SessionNotFoundError):
            await session_manager.register("nope", 7, visitor_name="Ada")

        token = (await session_manager.check_session("10.0.0.1", 7, duration_minutes=5)).session.session_token
        clock.advance(minutes=6)
        with pytest.raises(SessionNotFoundError):
            await session_manager.register(token, 7, visitor_name="Ada")

    @pytest.mark.asyncio
    async def test_token_of_other_tenant_is_not_found(self, session_manager):
        token = (await session_manager.check_session("10.0.0.1", 7)).session.session_token
        with pytest.raises(SessionNotFoundError):
            await session_manager.register(token, 8, visitor_name="Ada")

    @pytest.mark.asyncio
    async def test_missing_token_is_validation_error(self, session_manager):
        with pytest.raises(InvalidRequestError):
            await session_manager.register("", 7)

    @pytest.mark.asyncio
    async def test_lead_failure_does_not_fail_registration(self, session_repo, clock):
        engine = AsyncMock()
        engine.upsert_lead = AsyncMock(side_effect=StorageUnavailableError())
        manager = VisitorSessionManager(session_repo, lead_engine=engine, clock=clock)
        token = (await manager.check_session("10.0.0.1", 7)).session.session_token

        session = await manager.register(token, 7, visitor_email="ada@example.com")

        assert session.visitor_email == "ada@example.com"
        assert session.lead_created is False
        engine.upsert_lead.assert_awaited_once()


# ============================================================================
# TEST: Activity & Sweep
# ============================================================================

class TestActivityAndSweep:

    @pytest.mark.asyncio
    async def test_touch_and_record_message(self, session_manager, clock):
        check = await session_manager.check_session("10.0.0.1", 7)
        expires_at = check.session.expires_at
        clock.advance(minutes=15)

        touched = await session_manager.touch_activity(check.session.session_token)
        counted = await session_manager.record_message(check.session.session_token, 7)

        assert touched.last_activity == clock.now
        assert touched.expires_at == expires_at
        assert counted.message_count == 1

    @pytest.mark.asyncio
    async def test_token_of_another_tenant_is_not_found(self, session_manager):
        check = await session_manager.check_session("10.0.0.1", 8)
        token = check.session.session_token

        assert await session_manager.find_by_token(token, 7) is None
        assert (await session_manager.find_by_token(token, 8)).id == check.session.id
        with pytest.raises(SessionNotFoundError):
            await session_manager.record_message(token, 7)
        with pytest.raises(SessionNotFoundError):
            await session_manager.touch_activity(token, 7)
        assert check.session.message_count == 0

    @pytest.mark.asyncio
    async def test_touch_expired_session(self, session_manager, clock):
        check = await session_manager.check_session("10.0.0.1", 7, duration_minutes=1)
        clock.advance(minutes=2)
        with pytest.raises(SessionNotFoundError):
            await session_manager.touch_activity(check.session.session_token)

    @pytest.mark.asyncio
    async def test_sweep_deactivates_only_expired(self, session_manager, session_repo, clock):
        short = await session_manager.check_session("10.0.0.1", 7, duration_minutes=5)
        long = await session_manager.check_session("10.0.0.2", 8, duration_minutes=60)
        clock.advance(minutes=10)

        assert await session_manager.sweep_expired() == 1
        assert session_repo.sessions[short.session.id].is_active is False
        assert session_repo.sessions[long.session.id].is_active is True
        assert await session_manager.sweep_expired() == 0
