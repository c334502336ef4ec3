"""
Flow models.

A flow is one in-progress multi-step operation. Each kind is its own model
carrying only its own fields; the union is discriminated on `kind` so a
stored session always deserialises to the right variant.
"""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, ClassVar, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

from app.models.api import BankDetails, WalletBalance
from app.utils.datetime_utils import utc_now


class FlowKind(StrEnum):
    """Kinds of flows."""

    NONE = "none"
    LOGIN = "login"
    SEND = "send"
    WITHDRAW = "withdraw"
    DEPOSIT = "deposit"
    BROADCAST = "broadcast"
    REFERRAL = "referral"


class InvalidTransition(RuntimeError):
    """Step change not present in the flow's transition table."""


class NoFlow(BaseModel):
    """No operation in progress."""

    kind: Literal[FlowKind.NONE] = FlowKind.NONE

    TEXT_STEPS: ClassVar[frozenset] = frozenset()


class BaseFlow(BaseModel):
    """Common fields of active flows."""

    flow_id: str = Field(default_factory=lambda: uuid4().hex)
    started_at: datetime = Field(default_factory=utc_now)

    # step -> steps reachable from it
    TRANSITIONS: ClassVar[dict] = {}
    # steps that accept free-text input
    TEXT_STEPS: ClassVar[frozenset] = frozenset()

    def transition(self, step: StrEnum) -> None:
        """
        Move to another step.

        Raises:
            InvalidTransition: If the step table does not allow the move
        """
        current = getattr(self, "step")
        if step not in self.TRANSITIONS.get(current, ()):
            raise InvalidTransition(
                f"{type(self).__name__}: {current} -> {step} is not allowed"
            )
        if step == getattr(type(self), "CONFIRM_STEP", None):
            missing = self.missing_fields()
            if missing:
                raise InvalidTransition(
                    f"{type(self).__name__}: cannot confirm, missing {', '.join(missing)}"
                )
        self.step = step

    def missing_fields(self) -> list[str]:
        """Fields still required before the flow may be confirmed."""
        return []


# Login


class LoginStep(StrEnum):
    ENTER_EMAIL = "enter_email"
    ENTER_OTP = "enter_otp"


class LoginFlow(BaseFlow):
    """Email + OTP authentication."""

    kind: Literal[FlowKind.LOGIN] = FlowKind.LOGIN
    step: LoginStep = LoginStep.ENTER_EMAIL
    email: str | None = None
    sid: str | None = None
    attempts: int = 0

    TRANSITIONS: ClassVar[dict] = {
        LoginStep.ENTER_EMAIL: {LoginStep.ENTER_OTP},
        LoginStep.ENTER_OTP: set(),
    }
    TEXT_STEPS: ClassVar[frozenset] = frozenset({LoginStep.ENTER_EMAIL, LoginStep.ENTER_OTP})


# Send


class SendMethod(StrEnum):
    EMAIL = "email"
    WALLET = "wallet"


class SendStep(StrEnum):
    SELECT_METHOD = "select_method"
    ENTER_RECIPIENT = "enter_recipient"
    ENTER_AMOUNT = "enter_amount"
    SELECT_NETWORK = "select_network"
    CONFIRM = "confirm"
    SUBMITTING = "submitting"


class SendFlow(BaseFlow):
    """Send funds to an email or wallet."""

    kind: Literal[FlowKind.SEND] = FlowKind.SEND
    step: SendStep = SendStep.SELECT_METHOD
    method: SendMethod | None = None
    recipient: str | None = None
    amount: Decimal | None = None
    wallets: list[WalletBalance] = Field(default_factory=list)
    network: str | None = None
    fee: Decimal | None = None
    total: Decimal | None = None

    CONFIRM_STEP: ClassVar[SendStep] = SendStep.CONFIRM
    TRANSITIONS: ClassVar[dict] = {
        SendStep.SELECT_METHOD: {SendStep.ENTER_RECIPIENT},
        SendStep.ENTER_RECIPIENT: {SendStep.ENTER_AMOUNT},
        SendStep.ENTER_AMOUNT: {SendStep.SELECT_NETWORK},
        # quote refused the amount: ask again
        SendStep.SELECT_NETWORK: {SendStep.CONFIRM, SendStep.ENTER_AMOUNT},
        # back: re-select network
        SendStep.CONFIRM: {SendStep.SUBMITTING, SendStep.SELECT_NETWORK},
        # back: submission failed upstream
        SendStep.SUBMITTING: {SendStep.CONFIRM},
    }
    TEXT_STEPS: ClassVar[frozenset] = frozenset(
        {SendStep.ENTER_RECIPIENT, SendStep.ENTER_AMOUNT}
    )

    def missing_fields(self) -> list[str]:
        required = ("method", "recipient", "amount", "network", "fee")
        return [name for name in required if getattr(self, name) is None]


# Withdraw


class WithdrawMethod(StrEnum):
    WALLET = "wallet"
    BANK = "bank"


class WithdrawStep(StrEnum):
    SELECT_METHOD = "select_method"
    ENTER_RECIPIENT = "enter_recipient"
    ENTER_AMOUNT = "enter_amount"
    ENTER_BANK_DETAILS = "enter_bank_details"
    SELECT_NETWORK = "select_network"
    CONFIRM = "confirm"
    SUBMITTING = "submitting"


class WithdrawFlow(BaseFlow):
    """Withdraw to an external wallet or a bank account."""

    kind: Literal[FlowKind.WITHDRAW] = FlowKind.WITHDRAW
    step: WithdrawStep = WithdrawStep.SELECT_METHOD
    method: WithdrawMethod | None = None
    recipient: str | None = None
    amount: Decimal | None = None
    bank_details: BankDetails | None = None
    wallets: list[WalletBalance] = Field(default_factory=list)
    network: str | None = None
    fee: Decimal | None = None
    total: Decimal | None = None

    CONFIRM_STEP: ClassVar[WithdrawStep] = WithdrawStep.CONFIRM
    TRANSITIONS: ClassVar[dict] = {
        WithdrawStep.SELECT_METHOD: {WithdrawStep.ENTER_RECIPIENT, WithdrawStep.ENTER_AMOUNT},
        WithdrawStep.ENTER_RECIPIENT: {WithdrawStep.ENTER_AMOUNT},
        WithdrawStep.ENTER_AMOUNT: {WithdrawStep.ENTER_BANK_DETAILS, WithdrawStep.SELECT_NETWORK},
        WithdrawStep.ENTER_BANK_DETAILS: {WithdrawStep.SELECT_NETWORK},
        WithdrawStep.SELECT_NETWORK: {WithdrawStep.CONFIRM, WithdrawStep.ENTER_AMOUNT},
        WithdrawStep.CONFIRM: {WithdrawStep.SUBMITTING, WithdrawStep.SELECT_NETWORK},
        WithdrawStep.SUBMITTING: {WithdrawStep.CONFIRM},
    }
    TEXT_STEPS: ClassVar[frozenset] = frozenset(
        {
            WithdrawStep.ENTER_RECIPIENT,
            WithdrawStep.ENTER_AMOUNT,
            WithdrawStep.ENTER_BANK_DETAILS,
        }
    )

    def missing_fields(self) -> list[str]:
        required = ["method", "amount", "network", "fee"]
        if self.method == WithdrawMethod.BANK:
            required.append("bank_details")
        else:
            required.append("recipient")
        return [name for name in required if getattr(self, name) is None]


# Deposit


class DepositStep(StrEnum):
    SELECT_NETWORK = "select_network"


class DepositFlow(BaseFlow):
    """Pick a network and receive its deposit address."""

    kind: Literal[FlowKind.DEPOSIT] = FlowKind.DEPOSIT
    step: DepositStep = DepositStep.SELECT_NETWORK

    TRANSITIONS: ClassVar[dict] = {DepositStep.SELECT_NETWORK: set()}


# Broadcast (admin)


class BroadcastStep(StrEnum):
    ENTER_MESSAGE = "enter_message"
    CONFIRM = "confirm"


class BroadcastFlow(BaseFlow):
    """Admin message to every known user."""

    kind: Literal[FlowKind.BROADCAST] = FlowKind.BROADCAST
    step: BroadcastStep = BroadcastStep.ENTER_MESSAGE
    message: str | None = None
    broadcast_id: str | None = None

    CONFIRM_STEP: ClassVar[BroadcastStep] = BroadcastStep.CONFIRM
    TRANSITIONS: ClassVar[dict] = {
        BroadcastStep.ENTER_MESSAGE: {BroadcastStep.CONFIRM},
        BroadcastStep.CONFIRM: {BroadcastStep.ENTER_MESSAGE},
    }
    TEXT_STEPS: ClassVar[frozenset] = frozenset({BroadcastStep.ENTER_MESSAGE})

    def missing_fields(self) -> list[str]:
        return [name for name in ("message", "broadcast_id") if getattr(self, name) is None]


# Referral code


class ReferralStep(StrEnum):
    ENTER_CODE = "enter_code"


class ReferralFlow(BaseFlow):
    """Apply someone else's referral code to the account."""

    kind: Literal[FlowKind.REFERRAL] = FlowKind.REFERRAL
    step: ReferralStep = ReferralStep.ENTER_CODE
    code: str | None = None

    TRANSITIONS: ClassVar[dict] = {ReferralStep.ENTER_CODE: set()}
    TEXT_STEPS: ClassVar[frozenset] = frozenset({ReferralStep.ENTER_CODE})


ActiveFlow = (
    LoginFlow | SendFlow | WithdrawFlow | DepositFlow | BroadcastFlow | ReferralFlow
)

Flow = Annotated[
    NoFlow
    | LoginFlow
    | SendFlow
    | WithdrawFlow
    | DepositFlow
    | BroadcastFlow
    | ReferralFlow,
    Field(discriminator="kind"),
]
