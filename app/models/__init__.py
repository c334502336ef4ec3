"""
Models.

Conversation session, flow variants, API payloads and database rows.
"""

from app.models.api import (
    BankDetails,
    DepositAddress,
    KycStatus,
    KycStatusType,
    OtpRequest,
    OtpVerification,
    Organization,
    PointsBreakdown,
    PointsTotal,
    ReferralResult,
    Transfer,
    TransferPage,
    TransferQuote,
    TransferRequest,
    TransferResult,
    UserProfile,
    WalletBalance,
)
from app.models.base import Base
from app.models.bot_session import BotSession
from app.models.flow import (
    BroadcastFlow,
    DepositFlow,
    FlowKind,
    LoginFlow,
    NoFlow,
    ReferralFlow,
    SendFlow,
    WithdrawFlow,
)
from app.models.reply import Button, Reply
from app.models.session import AuthBlock, KycCache, Session


__all__ = [
    "AuthBlock",
    "BankDetails",
    "Base",
    "BotSession",
    "BroadcastFlow",
    "Button",
    "DepositAddress",
    "DepositFlow",
    "FlowKind",
    "KycCache",
    "KycStatus",
    "KycStatusType",
    "LoginFlow",
    "NoFlow",
    "OtpRequest",
    "OtpVerification",
    "Organization",
    "PointsBreakdown",
    "PointsTotal",
    "ReferralFlow",
    "ReferralResult",
    "Reply",
    "SendFlow",
    "Session",
    "Transfer",
    "TransferPage",
    "TransferQuote",
    "TransferRequest",
    "TransferResult",
    "UserProfile",
    "WalletBalance",
    "WithdrawFlow",
]
