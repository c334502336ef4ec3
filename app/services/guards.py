"""
Guard chain.

Guards run in a fixed order before any flow step or command handler. Each
returns Allow or Deny; the first Deny stops the chain. A Deny may only
touch cached credentials (auth block, KYC cache), never the active flow.

Order:
1. AuthGuard - token present, not expired and accepted by the API
2. KycGuard - verified KYC for non-exempt features
3. AdminGuard - admin-only routes
"""

from dataclasses import dataclass

from loguru import logger

from app.config.settings import Settings
from app.messages import (
    ADMIN_ONLY,
    LOGIN_REQUIRED,
    SESSION_EXPIRED,
    kyc_buttons,
    kyc_denied_text,
    login_buttons,
)
from app.models.reply import Reply
from app.models.session import KycCache, Session
from app.services.flows.base import call_upstream
from app.services.payments_api import AuthAPI, KycAPI
from app.utils.datetime_utils import is_older_than, utc_now
from app.utils.exceptions import UpstreamError
from app.utils.formatters import format_kyc_status


@dataclass(frozen=True)
class Route:
    """What an inbound event is about to reach."""

    feature: str
    requires_auth: bool = True
    admin_only: bool = False


@dataclass
class GuardDecision:
    """Allow, or Deny with a reason, remedial action and reply."""

    allowed: bool
    reason: str | None = None
    remedy: str | None = None
    reply: Reply | None = None

    @classmethod
    def allow(cls) -> "GuardDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str, remedy: str | None, reply: Reply) -> "GuardDecision":
        return cls(allowed=False, reason=reason, remedy=remedy, reply=reply)


class Guard:
    """Base guard."""

    name = "guard"

    async def evaluate(self, session: Session, route: Route) -> GuardDecision:
        raise NotImplementedError


class AuthGuard(Guard):
    """
    Authentication check.

    The live token check is repeated at most every auth_check_ttl_seconds.
    If the API cannot be reached the unexpired token is trusted.
    """

    name = "auth"

    def __init__(self, auth_api: AuthAPI, settings: Settings) -> None:
        self.auth_api = auth_api
        self.settings = settings

    def _deny(self, session: Session, reason: str, text: str) -> GuardDecision:
        session.clear_auth()
        return GuardDecision.deny(reason, "login", Reply(text=text, buttons=login_buttons()))

    async def evaluate(self, session: Session, route: Route) -> GuardDecision:
        if not route.requires_auth:
            return GuardDecision.allow()

        auth = session.auth
        if auth is None:
            return self._deny(session, "not_authenticated", LOGIN_REQUIRED)

        now = utc_now()
        if auth.is_expired(now):
            logger.info(f"Token of user {session.user_id} expired, forcing logout")
            return self._deny(session, "token_expired", SESSION_EXPIRED)

        if is_older_than(auth.validated_at, self.settings.auth_check_ttl_seconds, now):
            try:
                valid = await call_upstream(
                    self.auth_api.check_token_valid(auth.access_token),
                    self.settings.api_timeout_seconds,
                )
            except UpstreamError as e:
                logger.warning(
                    f"Token check for user {session.user_id} failed, allowing: {e}"
                )
                return GuardDecision.allow()
            if not valid:
                logger.info(f"Token of user {session.user_id} refused by API")
                return self._deny(session, "token_invalid", SESSION_EXPIRED)
            auth.validated_at = now

        return GuardDecision.allow()


class KycGuard(Guard):
    """
    KYC gate for money-moving features.

    Status is cached on the session for kyc_cache_ttl_seconds. Lookup
    failures allow the request.
    """

    name = "kyc"

    def __init__(self, kyc_api: KycAPI, settings: Settings) -> None:
        self.kyc_api = kyc_api
        self.settings = settings

    def is_exempt(self, feature: str) -> bool:
        return feature.lower() in {f.lower() for f in self.settings.kyc_exempt_features}

    async def evaluate(self, session: Session, route: Route) -> GuardDecision:
        if not route.requires_auth or self.is_exempt(route.feature):
            return GuardDecision.allow()

        auth = session.active_auth()
        if auth is None:
            return GuardDecision.allow()

        cache = session.kyc
        if cache is None or is_older_than(cache.fetched_at, self.settings.kyc_cache_ttl_seconds):
            if not auth.email:
                logger.warning(f"No email for user {session.user_id}, skipping KYC check")
                return GuardDecision.allow()
            try:
                status = await call_upstream(
                    self.kyc_api.get_status(auth.access_token, auth.email),
                    self.settings.api_timeout_seconds,
                )
            except UpstreamError as e:
                logger.warning(f"KYC lookup for user {session.user_id} failed, allowing: {e}")
                return GuardDecision.allow()
            cache = session.kyc = KycCache(status=status, fetched_at=utc_now())

        if cache.status.is_verified:
            return GuardDecision.allow()

        status = cache.status.status
        logger.info(f"KYC gate denied {route.feature} for user {session.user_id} ({status})")
        return GuardDecision.deny(
            f"kyc_{status}",
            "kyc",
            Reply(
                text=kyc_denied_text(
                    str(status), cache.status.next_steps, format_kyc_status(status)
                ),
                buttons=kyc_buttons(),
            ),
        )


class AdminGuard(Guard):
    """Admin-only routes."""

    name = "admin"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def evaluate(self, session: Session, route: Route) -> GuardDecision:
        if not route.admin_only or self.settings.is_admin(session.user_id):
            return GuardDecision.allow()
        logger.warning(f"Non-admin user {session.user_id} tried {route.feature}")
        return GuardDecision.deny("not_admin", None, Reply(text=ADMIN_ONLY))


class GuardChain:
    """Ordered guard list; first Deny wins."""

    def __init__(self, guards: list[Guard]) -> None:
        self.guards = guards

    @classmethod
    def default(cls, auth_api: AuthAPI, kyc_api: KycAPI, settings: Settings) -> "GuardChain":
        return cls(
            [
                AuthGuard(auth_api, settings),
                KycGuard(kyc_api, settings),
                AdminGuard(settings),
            ]
        )

    async def evaluate(self, session: Session, route: Route) -> GuardDecision:
        for guard in self.guards:
            decision = await guard.evaluate(session, route)
            if not decision.allowed:
                return decision
        return GuardDecision.allow()

