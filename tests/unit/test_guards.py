"""
Unit tests for the guard chain.

Tests cover:
- Auth guard: missing, expired and refused tokens; live check caching
- KYC guard: cache freshness, exemptions, deny message, fail-open
- Admin guard
- Chain order and deny side effects
"""

from datetime import timedelta

import pytest

from app.models.api import KycStatus
from app.models.flow import DepositFlow
from app.models.session import KycCache
from app.services.guards import AdminGuard, AuthGuard, GuardChain, KycGuard, Route
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import UpstreamUnavailable


SEND_ROUTE = Route("send")
BALANCE_ROUTE = Route("balance")


class TestAuthGuard:
    """Test authentication guard."""

    @pytest.mark.asyncio
    async def test_public_route_allowed(self, auth_api, settings, session_factory):
        guard = AuthGuard(auth_api, settings)
        session = session_factory(logged_in=False)
        assert (await guard.evaluate(session, Route("help", requires_auth=False))).allowed

    @pytest.mark.asyncio
    async def test_not_authenticated(self, auth_api, settings, session_factory):
        guard = AuthGuard(auth_api, settings)
        decision = await guard.evaluate(session_factory(logged_in=False), SEND_ROUTE)

        assert not decision.allowed
        assert decision.reason == "not_authenticated"
        assert decision.remedy == "login"
        assert "login" in decision.reply.callback_data()

    @pytest.mark.asyncio
    async def test_expired_token_clears_auth(self, auth_api, settings, session_factory):
        guard = AuthGuard(auth_api, settings)
        session = session_factory()
        session.auth.expires_at = utc_now() - timedelta(seconds=1)

        decision = await guard.evaluate(session, SEND_ROUTE)

        assert decision.reason == "token_expired"
        assert session.auth is None
        assert session.kyc is None
        auth_api.check_token_valid.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recent_check_is_reused(self, auth_api, settings, session_factory):
        guard = AuthGuard(auth_api, settings)
        decision = await guard.evaluate(session_factory(), SEND_ROUTE)

        assert decision.allowed
        auth_api.check_token_valid.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_check_is_repeated(self, auth_api, settings, session_factory):
        guard = AuthGuard(auth_api, settings)
        session = session_factory()
        session.auth.validated_at = utc_now() - timedelta(seconds=settings.auth_check_ttl_seconds + 1)

        decision = await guard.evaluate(session, SEND_ROUTE)

        assert decision.allowed
        auth_api.check_token_valid.assert_awaited_once_with("token-1")
        assert utc_now() - session.auth.validated_at < timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_refused_token(self, auth_api, settings, session_factory):
        auth_api.check_token_valid.return_value = False
        guard = AuthGuard(auth_api, settings)
        session = session_factory()
        session.auth.validated_at = None

        decision = await guard.evaluate(session, SEND_ROUTE)

        assert decision.reason == "token_invalid"
        assert session.auth is None

    @pytest.mark.asyncio
    async def test_check_failure_allows(self, auth_api, settings, session_factory):
        auth_api.check_token_valid.side_effect = UpstreamUnavailable("down")
        guard = AuthGuard(auth_api, settings)
        session = session_factory()
        session.auth.validated_at = None

        assert (await guard.evaluate(session, SEND_ROUTE)).allowed
        assert session.auth is not None


class TestKycGuard:
    """Test KYC guard."""

    @pytest.mark.asyncio
    async def test_fresh_cache_avoids_lookup(self, kyc_api, settings, session_factory):
        guard = KycGuard(kyc_api, settings)
        session = session_factory(kyc_status="verified")

        assert (await guard.evaluate(session, SEND_ROUTE)).allowed
        kyc_api.get_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_cache_is_refreshed(self, kyc_api, settings, session_factory):
        guard = KycGuard(kyc_api, settings)
        session = session_factory(kyc_status="pending")
        session.kyc.fetched_at = utc_now() - timedelta(seconds=settings.kyc_cache_ttl_seconds + 1)

        decision = await guard.evaluate(session, SEND_ROUTE)

        assert decision.allowed
        kyc_api.get_status.assert_awaited_once_with("token-1", "alice@example.com")
        assert session.kyc.status.is_verified

    @pytest.mark.asyncio
    async def test_missing_cache_is_fetched(self, kyc_api, settings, session_factory):
        guard = KycGuard(kyc_api, settings)
        session = session_factory(kyc_status=None)

        assert (await guard.evaluate(session, SEND_ROUTE)).allowed
        assert session.kyc is not None

    @pytest.mark.asyncio
    async def test_unverified_denied(self, kyc_api, settings, session_factory):
        kyc_api.get_status.return_value = KycStatus(
            status="rejected", next_steps=["Upload a clearer ID photo"]
        )
        guard = KycGuard(kyc_api, settings)
        session = session_factory(kyc_status=None)

        decision = await guard.evaluate(session, SEND_ROUTE)

        assert not decision.allowed
        assert decision.reason == "kyc_rejected"
        assert decision.remedy == "kyc"
        assert "rejected" in decision.reply.text
        assert "Upload a clearer ID photo" in decision.reply.text
        # Denial keeps the cached status
        assert session.kyc.status.status == "rejected"

    @pytest.mark.asyncio
    async def test_exempt_feature_allowed(self, kyc_api, settings, session_factory):
        guard = KycGuard(kyc_api, settings)
        session = session_factory(kyc_status="pending")

        assert (await guard.evaluate(session, BALANCE_ROUTE)).allowed
        kyc_api.get_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_failure_allows(self, kyc_api, settings, session_factory):
        kyc_api.get_status.side_effect = UpstreamUnavailable("down")
        guard = KycGuard(kyc_api, settings)

        assert (await guard.evaluate(session_factory(kyc_status=None), SEND_ROUTE)).allowed


class TestAdminGuard:
    """Test admin guard."""

    @pytest.mark.asyncio
    async def test_admin_allowed(self, settings, session_factory):
        guard = AdminGuard(settings)
        assert (await guard.evaluate(session_factory("999"), Route("admin", admin_only=True))).allowed

    @pytest.mark.asyncio
    async def test_non_admin_denied(self, settings, session_factory):
        guard = AdminGuard(settings)
        decision = await guard.evaluate(session_factory("100"), Route("admin", admin_only=True))
        assert decision.reason == "not_admin"


class TestGuardChain:
    """Test guard ordering and deny side effects."""

    @pytest.mark.asyncio
    async def test_auth_runs_before_kyc(self, auth_api, kyc_api, settings, session_factory):
        chain = GuardChain.default(auth_api, kyc_api, settings)
        session = session_factory(logged_in=False, kyc_status="pending")

        decision = await chain.evaluate(session, SEND_ROUTE)

        assert decision.reason == "not_authenticated"
        kyc_api.get_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deny_keeps_active_flow(self, auth_api, kyc_api, settings, session_factory):
        chain = GuardChain.default(auth_api, kyc_api, settings)
        session = session_factory(kyc_status="pending")
        session.flow = DepositFlow()

        decision = await chain.evaluate(session, SEND_ROUTE)

        assert decision.reason == "kyc_pending"
        assert isinstance(session.flow, DepositFlow)

    @pytest.mark.asyncio
    async def test_all_allow(self, auth_api, kyc_api, settings, session_factory):
        chain = GuardChain.default(auth_api, kyc_api, settings)
        assert (await chain.evaluate(session_factory(), SEND_ROUTE)).allowed

    @pytest.mark.asyncio
    async def test_kyc_cache_expiry_scenario(self, auth_api, kyc_api, settings, session_factory):
        """Pending status is cached; after expiry a verified status lets the user through."""
        kyc_api.get_status.return_value = KycStatus(status="pending")
        chain = GuardChain.default(auth_api, kyc_api, settings)
        session = session_factory(kyc_status=None)

        assert not (await chain.evaluate(session, SEND_ROUTE)).allowed
        assert not (await chain.evaluate(session, SEND_ROUTE)).allowed
        assert kyc_api.get_status.await_count == 1

        session.kyc = KycCache(
            status=session.kyc.status,
            fetched_at=utc_now() - timedelta(seconds=settings.kyc_cache_ttl_seconds),
        )
        kyc_api.get_status.return_value = KycStatus(status="verified")

        assert (await chain.evaluate(session, SEND_ROUTE)).allowed
        assert kyc_api.get_status.await_count == 2
