"""Tests for the hybrid authentication gate state machine."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from jose import JWTError

from app.core.security import create_access_token
from app.models.user import User
from app.services.auth_gate import GateFailure, authenticate, is_likely_external
from app.services.clerk_events import handle_event


def _local_token(user: User) -> str:
    return create_access_token(user.id, user.email)


def test_length_heuristic():
    assert is_likely_external("x" * 100)
    assert not is_likely_external("x" * 99)


@pytest.mark.asyncio
class TestAuthenticate:
    async def test_missing_token(self, db_session, fake_clerk):
        outcome = await authenticate(None, db_session, fake_clerk)

        assert outcome.failure == GateFailure.MISSING_CREDENTIAL
        fake_clerk.verify_session_token.assert_not_called()

    async def test_short_token_never_reaches_clerk(self, db_session, fake_clerk):
        outcome = await authenticate("short.local.token", db_session, fake_clerk)

        assert outcome.failure == GateFailure.INVALID_CREDENTIAL
        fake_clerk.verify_session_token.assert_not_called()

    async def test_external_token_provisions_user(self, db_session, fake_clerk, clerk_profile, external_token):
        outcome = await authenticate(external_token, db_session, fake_clerk)

        assert outcome.authenticated
        assert outcome.user.external_id == "user_ext_1"
        assert outcome.external_profile == clerk_profile
        assert db_session.query(User).count() == 1

    async def test_external_token_links_local_account(self, db_session, fake_clerk, make_user, external_token):
        local = make_user(email="ana@cafe.com")

        outcome = await authenticate(external_token, db_session, fake_clerk)

        assert outcome.user.id == local.id
        assert outcome.user.external_id == "user_ext_1"
        assert db_session.query(User).count() == 1

    async def test_local_token_falls_back_after_clerk_rejects(self, db_session, fake_clerk, make_user):
        user = make_user()
        fake_clerk.verify_session_token.side_effect = JWTError("not a Clerk token")
        token = _local_token(user)
        assert is_likely_external(token)

        outcome = await authenticate(token, db_session, fake_clerk)

        assert outcome.authenticated
        assert outcome.user.id == user.id
        assert outcome.external_profile is None
        fake_clerk.verify_session_token.assert_awaited_once()

    async def test_clerk_timeout_falls_back_to_local(self, db_session, fake_clerk, make_user, monkeypatch):
        from app.core.config import settings

        async def hang(token):
            await asyncio.sleep(1)

        monkeypatch.setattr(settings, "CLERK_TIMEOUT_SECONDS", 0.01)
        fake_clerk.verify_session_token = AsyncMock(side_effect=hang)
        user = make_user()

        outcome = await authenticate(_local_token(user), db_session, fake_clerk)

        assert outcome.user.id == user.id

    async def test_without_clerk_goes_straight_to_local(self, db_session, make_user):
        user = make_user()

        outcome = await authenticate(_local_token(user), db_session, None)

        assert outcome.user.id == user.id

    async def test_rejected_everywhere_is_invalid_external_credential(self, db_session, fake_clerk, external_token):
        fake_clerk.verify_session_token.side_effect = JWTError("bad")

        outcome = await authenticate(external_token, db_session, fake_clerk)

        assert outcome.failure == GateFailure.INVALID_EXTERNAL_CREDENTIAL

    async def test_long_token_without_clerk_is_invalid_credential(self, db_session, external_token):
        outcome = await authenticate(external_token, db_session, None)

        assert outcome.failure == GateFailure.INVALID_CREDENTIAL

    async def test_inactive_user_rejected_on_local_path(self, db_session, make_user):
        user = make_user(is_active=False)

        outcome = await authenticate(_local_token(user), db_session, None)

        assert outcome.failure == GateFailure.INVALID_USER

    async def test_inactive_user_rejected_on_external_path(self, db_session, fake_clerk, make_user, external_token):
        make_user(email="ana@cafe.com", external_id="user_ext_1", is_active=False)

        outcome = await authenticate(external_token, db_session, fake_clerk)

        assert outcome.failure == GateFailure.INVALID_USER

    async def test_unknown_local_user_is_invalid_user(self, db_session):
        token = create_access_token("no-such-user", "ghost@cafe.com")

        outcome = await authenticate(token, db_session, None)

        assert outcome.failure == GateFailure.INVALID_USER

    async def test_reconciliation_failure_is_terminal(self, db_session, fake_clerk, monkeypatch, external_token):
        from app.core.errors import ReconciliationFailed
        from app.services import auth_gate

        def fail(*args, **kwargs):
            raise ReconciliationFailed()

        monkeypatch.setattr(auth_gate, "reconcile", fail)

        outcome = await authenticate(external_token, db_session, fake_clerk)

        assert outcome.failure == GateFailure.RECONCILIATION_FAILED

    async def test_repeated_first_sight_and_webhook_converge_on_one_row(self, db_session, fake_clerk, clerk_profile, external_token):
        results = await asyncio.gather(
            authenticate(external_token, db_session, fake_clerk),
            authenticate(external_token, db_session, fake_clerk),
        )
        handle_event(db_session, {"type": "user.created", "data": clerk_profile})

        assert results[0].user.id == results[1].user.id
        assert db_session.query(User).filter(User.external_id == "user_ext_1").count() == 1
        assert db_session.query(User).count() == 1
