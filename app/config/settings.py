"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal
from typing import Annotated

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from app.config.business_constants import (
    DEFAULT_KYC_EXEMPT_FEATURES,
    DEFAULT_SUPPORTED_NETWORKS,
    LOCK_HOLD_API_CALLS,
    LOCK_MARGIN_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Telegram Bot
    telegram_bot_token: str
    telegram_bot_username: str | None = None

    # Admin
    admin_telegram_ids: str = ""  # Comma-separated list

    # Payments API
    api_base_url: str = "https://api.copperx.io"
    api_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Timeout for every payments API call"
    )

    # Session storage
    session_backend: str = Field(
        default="redis",
        description="Session store backend: memory, redis or database",
    )
    session_ttl_seconds: int = Field(
        default=86400 * 30, gt=0, description="Idle lifetime of a stored session"
    )
    session_lock_ttl_ms: int | None = Field(
        default=None, gt=0, description="Distributed per-user lock expiry (default: worst-case hold)"
    )
    session_lock_wait_seconds: float | None = Field(
        default=None, gt=0, description="How long an event waits for the per-user lock"
    )
    session_conflict_retries: int = Field(
        default=3, ge=1, description="Re-dispatch attempts after a stale session write"
    )

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Database (session_backend=database)
    database_url: str = "postgresql+asyncpg://localhost/payout_bot"
    database_echo: bool = False

    # Guards
    kyc_cache_ttl_seconds: int = Field(
        default=300, gt=0, description="KYC status cache lifetime (5 minutes)"
    )
    auth_check_ttl_seconds: int = Field(
        default=60, ge=0, description="Interval between live token validity checks"
    )
    kyc_exempt_features: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_KYC_EXEMPT_FEATURES),
        description="Features reachable without verified KYC",
    )

    # Flows
    otp_max_attempts: int = Field(
        default=3, ge=1, description="Failed OTP verifications before login restarts"
    )
    min_send_amount: Decimal = Field(default=Decimal("1"), gt=0)
    max_send_amount: Decimal = Field(default=Decimal("100000"), gt=0)
    min_withdraw_wallet_amount: Decimal = Field(default=Decimal("10"), gt=0)
    min_withdraw_bank_amount: Decimal = Field(default=Decimal("100"), gt=0)
    max_withdraw_amount: Decimal = Field(default=Decimal("50000"), gt=0)
    supported_networks: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_SUPPORTED_NETWORKS)
    )
    wallet_address_strict: bool = Field(
        default=False,
        description="Require a recognised network address format",
    )
    history_page_size: int = Field(default=5, ge=1, le=50)
    referral_signup_url: str = Field(
        default="https://app.copperx.io/signup",
        description="Sign-up page that accepts a referral query parameter",
    )

    # Broadcast
    broadcast_batch_size: int = Field(default=20, ge=1, description="Messages sent concurrently")
    broadcast_batch_delay_seconds: float = Field(
        default=1.0, ge=0, description="Pause between broadcast batches"
    )

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("session_backend")
    @classmethod
    def validate_session_backend(cls, v: str) -> str:
        """Validate session backend name."""
        backend = v.strip().lower()
        if backend not in ("memory", "redis", "database"):
            raise ValueError(
                f"session_backend must be memory, redis or database, got {v!r}"
            )
        return backend

    @field_validator("kyc_exempt_features", "supported_networks", mode="before")
    @classmethod
    def split_comma_separated(cls, v: object) -> object:
        """Accept comma-separated strings from the environment."""
        if isinstance(v, str):
            return [item.strip().lower() for item in v.split(",") if item.strip()]
        return v

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Check that configured amount limits are consistent."""
        if self.min_send_amount > self.max_send_amount:
            raise ValueError("min_send_amount must not exceed max_send_amount")
        for name in ("min_withdraw_wallet_amount", "min_withdraw_bank_amount"):
            if getattr(self, name) > self.max_withdraw_amount:
                raise ValueError(f"{name} must not exceed max_withdraw_amount")
        if self.environment == "production" and self.session_backend == "memory":
            logger.warning(
                "Memory session backend in production: sessions are lost on restart "
                "and locking is single-process only"
            )
        if (
            self.session_lock_wait_seconds is not None
            and self.session_lock_wait_seconds < self.lock_hold_seconds()
        ):
            logger.warning(
                f"session_lock_wait_seconds={self.session_lock_wait_seconds} is shorter than "
                f"the worst-case lock hold of {self.lock_hold_seconds()}s: "
                "concurrent events may be answered as busy"
            )
        return self

    def get_admin_ids(self) -> list[int]:
        """
        Get list of admin Telegram IDs.

        Returns:
            List of admin IDs parsed from the comma-separated setting
        """
        if not self.admin_telegram_ids:
            return []
        ids = []
        for raw in self.admin_telegram_ids.split(","):
            raw = raw.strip()
            if not raw:
                continue
            try:
                ids.append(int(raw))
            except ValueError:
                logger.warning(f"Ignoring invalid admin id: {raw!r}")
        return ids

    def lock_hold_seconds(self) -> float:
        """Longest time one event may hold the per-user session lock."""
        return LOCK_HOLD_API_CALLS * self.api_timeout_seconds + LOCK_MARGIN_SECONDS

    def get_lock_wait_seconds(self) -> float:
        """
        Get how long an event waits for the per-user lock.

        Defaults to the worst-case hold, so a second event queues behind a
        running confirmation instead of being answered as busy.
        """
        if self.session_lock_wait_seconds is not None:
            return self.session_lock_wait_seconds
        return self.lock_hold_seconds()

    def get_lock_ttl_ms(self) -> int:
        """Get the distributed lock expiry; must outlive the worst-case hold."""
        if self.session_lock_ttl_ms is not None:
            return self.session_lock_ttl_ms
        return int((self.lock_hold_seconds() + LOCK_MARGIN_SECONDS) * 1000)

    def is_admin(self, user_id: str | int) -> bool:
        """Check whether a chat user id belongs to an admin."""
        try:
            return int(user_id) in self.get_admin_ids()
        except (TypeError, ValueError):
            return False


settings = Settings()
