"""
Conversation session model.

One session per chat user identity: authentication block, KYC cache and at
most one active flow. Serialised as a JSON blob by the session stores.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from app.models.api import KycStatus, UserProfile
from app.models.flow import Flow, FlowKind, NoFlow
from app.utils.datetime_utils import ensure_aware, utc_now


class AuthBlock(BaseModel):
    """Access token and profile of a logged-in user."""

    access_token: str
    expires_at: datetime
    organization_id: str | None = None
    profile: UserProfile | None = None
    # last successful live validity check
    validated_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return now >= ensure_aware(self.expires_at)

    @property
    def email(self) -> str | None:
        return self.profile.email if self.profile else None


class KycCache(BaseModel):
    """Last fetched KYC status."""

    status: KycStatus
    fetched_at: datetime = Field(default_factory=utc_now)


class Session(BaseModel):
    """Per-user conversation state."""

    user_id: str
    auth: AuthBlock | None = None
    kyc: KycCache | None = None
    flow: Flow = Field(default_factory=NoFlow)
    history_filter: str | None = None
    version: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def has_flow(self) -> bool:
        return self.flow.kind != FlowKind.NONE

    def active_auth(self, now: datetime | None = None) -> AuthBlock | None:
        """
        Auth block usable for a privileged call.

        An expired block counts as absent.
        """
        if self.auth is None or self.auth.is_expired(now):
            return None
        return self.auth

    def refresh_from(self, other: "Session") -> None:
        """Take over every field of a freshly loaded copy."""
        for name in type(self).model_fields:
            setattr(self, name, getattr(other, name))

    def reset_flow(self) -> None:
        self.flow = NoFlow()

    def clear_auth(self) -> None:
        """Forget credentials and everything cached with them."""
        self.auth = None
        self.kyc = None

    def logout(self) -> None:
        self.clear_auth()
        self.reset_flow()
        self.history_filter = None
