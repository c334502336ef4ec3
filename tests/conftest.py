"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for importing settings
# Telegram token in the real format so validation passes
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456789:ABCdefGHIjklMNOpqrsTUVwxyz123456789")
os.environ.setdefault("SESSION_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ADMIN_TELEGRAM_IDS", "999")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from datetime import timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from app.config.settings import Settings  # noqa: E402
from app.models.api import (  # noqa: E402
    DepositAddress,
    KycStatus,
    OtpRequest,
    OtpVerification,
    Organization,
    PointsBreakdown,
    PointsTotal,
    ReferralResult,
    TransferPage,
    TransferQuote,
    TransferResult,
    UserProfile,
    WalletBalance,
)
from app.models.session import AuthBlock, KycCache, Session  # noqa: E402
from app.repositories.session_repository import InMemorySessionStore  # noqa: E402
from app.services.conversation_service import ConversationService  # noqa: E402
from app.services.flow_engine import FlowEngine  # noqa: E402
from app.services.flows import FlowContext  # noqa: E402
from app.services.session_service import SessionService  # noqa: E402
from app.utils.datetime_utils import utc_now  # noqa: E402
from app.utils.locks import KeyedLock  # noqa: E402


USER_ID = "100"
ADMIN_ID = "999"
WALLET_ADDRESS = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"


def make_profile(email: str = "alice@example.com") -> UserProfile:
    return UserProfile(id="user-1", first_name="Alice", email=email, organization_id="org-1")


def make_auth(email: str = "alice@example.com", expires_in: timedelta = timedelta(days=1)) -> AuthBlock:
    """Auth block of a logged-in user, validated just now."""
    now = utc_now()
    return AuthBlock(
        access_token="token-1",
        expires_at=now + expires_in,
        organization_id="org-1",
        profile=make_profile(email),
        validated_at=now,
    )


def make_session(
    user_id: str = USER_ID, logged_in: bool = True, kyc_status: str | None = "verified"
) -> Session:
    """Session with optional auth and cached KYC status."""
    session = Session(user_id=user_id)
    if logged_in:
        session.auth = make_auth()
    if kyc_status is not None:
        session.kyc = KycCache(status=KycStatus(status=kyc_status), fetched_at=utc_now())
    return session


@pytest.fixture
def settings():
    """Test settings: in-memory backend, no broadcast pause."""
    return Settings(
        _env_file=None,
        telegram_bot_token="123456789:ABCdefGHIjklMNOpqrsTUVwxyz123456789",
        admin_telegram_ids=ADMIN_ID,
        session_backend="memory",
        environment="test",
        api_timeout_seconds=5.0,
        broadcast_batch_delay_seconds=0,
        wallet_address_strict=False,
    )


@pytest.fixture
def auth_api():
    """Mock AuthAPI: every OTP request and verification succeeds."""
    api = AsyncMock()
    api.request_otp = AsyncMock(return_value=OtpRequest(sid="sid-1", email="alice@example.com"))
    api.verify_otp = AsyncMock(
        return_value=OtpVerification(
            access_token="token-1",
            expires_at=utc_now() + timedelta(days=1),
            user=make_profile(),
        )
    )
    api.check_token_valid = AsyncMock(return_value=True)
    api.logout = AsyncMock(return_value=None)
    return api


@pytest.fixture
def kyc_api():
    """Mock KycAPI returning a verified status."""
    api = AsyncMock()
    api.get_status = AsyncMock(return_value=KycStatus(status="verified"))
    return api


@pytest.fixture
def wallet_api():
    """Mock WalletAPI with one Polygon wallet holding 100 USDC."""
    api = AsyncMock()
    api.list_balances = AsyncMock(
        return_value=[
            WalletBalance(
                network="polygon",
                balance=Decimal("100"),
                is_default=True,
                address=WALLET_ADDRESS,
            )
        ]
    )
    api.deposit_address = AsyncMock(
        return_value=DepositAddress(address=WALLET_ADDRESS, network="polygon")
    )
    api.set_default = AsyncMock(return_value=None)
    return api


@pytest.fixture
def transfer_api():
    """Mock TransferAPI: fee 1 USDC, submission accepted."""
    api = AsyncMock()
    api.quote = AsyncMock(return_value=TransferQuote(fee=Decimal("1")))
    api.submit = AsyncMock(return_value=TransferResult(transfer_id="tr-1", status="pending"))
    api.history = AsyncMock(return_value=TransferPage(items=[], total=0))
    return api


@pytest.fixture
def points_api():
    """Mock PointsAPI: 120 points, referral code ALICE42, codes accepted."""
    api = AsyncMock()
    api.total_points = AsyncMock(return_value=PointsTotal(total=120))
    api.points_breakdown = AsyncMock(return_value=PointsBreakdown())
    api.organization = AsyncMock(return_value=Organization(id="org-1", referral_code="ALICE42"))
    api.apply_referral_code = AsyncMock(
        return_value=ReferralResult(message="Referral code applied")
    )
    return api


@pytest.fixture
def notifier():
    """Mock notifier that always delivers."""
    mock = AsyncMock()
    mock.notify = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def session_service(store):
    return SessionService(store, KeyedLock(timeout=1.0), conflict_retries=3)


@pytest.fixture
def ctx(
    auth_api, kyc_api, transfer_api, wallet_api, points_api, session_service, notifier, settings
):
    """Flow context wired to the mocks."""
    return FlowContext(
        auth_api=auth_api,
        kyc_api=kyc_api,
        transfer_api=transfer_api,
        wallet_api=wallet_api,
        points_api=points_api,
        session_service=session_service,
        notifier=notifier,
        settings=settings,
    )


@pytest.fixture
def engine(ctx):
    return FlowEngine(ctx)


@pytest.fixture
def conversation(
    auth_api, kyc_api, transfer_api, wallet_api, points_api, session_service, notifier, settings
):
    """Conversation service wired to the mocks."""
    return ConversationService.build(
        settings=settings,
        session_service=session_service,
        auth_api=auth_api,
        kyc_api=kyc_api,
        transfer_api=transfer_api,
        wallet_api=wallet_api,
        points_api=points_api,
        notifier=notifier,
    )


@pytest_asyncio.fixture
async def stored_session(session_service):
    """Logged-in, KYC-verified session saved in the store."""
    session = make_session()
    await session_service.commit(session)
    return session


@pytest.fixture
def session_factory():
    """Factory of in-memory sessions: session_factory(user_id, logged_in, kyc_status)."""
    return make_session
