"""
Flow handlers, one per flow kind.
"""

from app.services.flows.base import (
    FlowContext,
    FlowHandler,
    Notifier,
    StepOutcome,
    StepResult,
    TerminalFlowFailure,
)
from app.services.flows.broadcast import BroadcastFlowHandler
from app.services.flows.deposit import DepositFlowHandler
from app.services.flows.login import LoginFlowHandler
from app.services.flows.referral import ReferralFlowHandler
from app.services.flows.send import SendFlowHandler
from app.services.flows.withdraw import WithdrawFlowHandler


__all__ = [
    "BroadcastFlowHandler",
    "DepositFlowHandler",
    "FlowContext",
    "FlowHandler",
    "LoginFlowHandler",
    "Notifier",
    "ReferralFlowHandler",
    "SendFlowHandler",
    "StepOutcome",
    "StepResult",
    "TerminalFlowFailure",
    "WithdrawFlowHandler",
]
