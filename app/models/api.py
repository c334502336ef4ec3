"""
Payments API payload models.

Pydantic models for the collaborator contracts. The API speaks camelCase;
models accept both camelCase and snake_case and dump snake_case for storage.
"""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for API payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class UserProfile(ApiModel):
    """User profile returned on login."""

    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    organization_id: str | None = None
    role: str | None = None
    status: str | None = None
    type: str | None = None
    wallet_address: str | None = None


class OtpRequest(ApiModel):
    """Email OTP request response."""

    email: str | None = None
    sid: str


class OtpVerification(ApiModel):
    """Email OTP verification response."""

    access_token: str
    expires_at: datetime = Field(alias="expireAt")
    user: UserProfile


class KycStatusType(StrEnum):
    """Possible verification statuses."""

    NOT_STARTED = "not_started"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"


class KycLimits(ApiModel):
    """Transaction limits based on KYC level."""

    daily: Decimal | None = None
    monthly: Decimal | None = None
    per_transaction: Decimal | None = None


class KycStatus(ApiModel):
    """KYC status of a user."""

    status: KycStatusType = KycStatusType.NOT_STARTED
    level: str | int | None = None
    rejection_reason: str | None = None
    next_steps: list[str] = Field(default_factory=list)
    limits: KycLimits | None = None

    @property
    def is_verified(self) -> bool:
        return self.status == KycStatusType.VERIFIED


class WalletBalance(ApiModel):
    """Balance of one wallet on one network."""

    wallet_id: str | None = None
    network: str
    balance: Decimal = Decimal("0")
    is_default: bool = False
    address: str | None = None


class DepositAddress(ApiModel):
    """Deposit address for a network."""

    address: str
    network: str | None = None
    min_amount: Decimal | None = None


class TransferQuote(ApiModel):
    """Fee quote for a transfer."""

    fee: Decimal = Decimal("0")
    total: Decimal | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None


class TransferStatus(StrEnum):
    """Possible states of a transfer."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TransferResult(ApiModel):
    """Response after initiating a transfer."""

    transfer_id: str
    status: str = TransferStatus.PENDING
    created_at: datetime | None = None


class Transfer(ApiModel):
    """Transfer history item."""

    id: str
    type: str
    amount: Decimal
    currency: str = "USDC"
    status: str
    network: str | None = None
    recipient: str | None = None
    fee: Decimal | None = None
    created_at: datetime | None = None


class TransferPage(ApiModel):
    """Paginated transfer history."""

    items: list[Transfer] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10


class BankDetails(ApiModel):
    """Bank account details for off-ramp withdrawals."""

    raw: str = ""
    bank_name: str | None = None
    account_name: str | None = None
    account_number: str | None = None
    routing_number: str | None = None
    country: str | None = None


class TransferRequest(ApiModel):
    """Parameters of a quote or submission."""

    amount: Decimal
    network: str
    email: str | None = None
    address: str | None = None
    bank_details: BankDetails | None = None
    idempotency_key: str | None = None


class PointsTotal(ApiModel):
    """Total loyalty points of a user."""

    total: int = 0


class TransactionPoints(ApiModel):
    """Points earned from off-ramp transfers in one volume band."""

    amount_usd: Decimal = Field(default=Decimal("0"), alias="amountUSD")
    no_of_transactions: int = 0
    multiplier: Decimal = Decimal("1")
    points: int = 0


class ReferralPoints(ApiModel):
    """Points earned through one referred organisation."""

    reference: str
    total_points: int = 0
    transaction_points: int = 0
    referral_points: int = 0
    total_transactions: int = 0


class PointsBreakdown(ApiModel):
    """Points per source."""

    offramp_transfer_points: list[TransactionPoints] = Field(default_factory=list)
    payout_referral_points: list[ReferralPoints] = Field(default_factory=list)

    @field_validator("offramp_transfer_points", "payout_referral_points", mode="before")
    @classmethod
    def unwrap_data(cls, v: object) -> object:
        """The API wraps each list as {"data": [...]}."""
        if isinstance(v, dict):
            return v.get("data") or []
        return v


class Organization(ApiModel):
    """Organisation of the logged-in user."""

    id: str | None = None
    referral_code: str | None = None
    support_email: str | None = None


class ReferralResult(ApiModel):
    """Response to applying a referral code."""

    message: str | None = None
