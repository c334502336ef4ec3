"""
Send flow.

SELECT_METHOD -> ENTER_RECIPIENT -> ENTER_AMOUNT -> SELECT_NETWORK -> CONFIRM
-> SUBMITTING. Wallet balances are fetched once the amount is known.
"""

from decimal import Decimal

from app.config.business_constants import TRANSFER_KIND_SEND
from app.messages import (
    ENTER_RECIPIENT_EMAIL,
    ENTER_RECIPIENT_WALLET,
    INVALID_WALLET,
    LOGIN_INVALID_EMAIL,
    SELECT_SEND_METHOD,
    button,
)
from app.models.api import TransferRequest
from app.models.flow import FlowKind, SendFlow, SendMethod, SendStep
from app.models.reply import Reply
from app.models.session import Session
from app.services.actions import ActionKind
from app.services.flows.base import StepResult
from app.services.flows.transfer import TransferFlowHandler
from app.utils.formatters import truncate_with_ellipsis
from app.validators import is_valid_email, is_valid_wallet_address


class SendFlowHandler(TransferFlowHandler):
    """Send funds to an email or a wallet address."""

    kind = FlowKind.SEND
    flow_model = SendFlow
    Step = SendStep
    Method = SendMethod
    confirm_action = ActionKind.CONFIRM_SEND

    def title(self) -> str:
        return "Transaction"

    def min_amount(self, flow: SendFlow) -> Decimal:
        return self.settings.min_send_amount

    def max_amount(self, flow: SendFlow) -> Decimal:
        return self.settings.max_send_amount

    def transfer_kind(self, flow: SendFlow) -> str:
        return TRANSFER_KIND_SEND

    def build_request(self, flow: SendFlow) -> TransferRequest:
        is_email = flow.method == SendMethod.EMAIL
        return TransferRequest(
            amount=flow.amount,
            network=flow.network or "",
            email=flow.recipient if is_email else None,
            address=None if is_email else flow.recipient,
            idempotency_key=flow.flow_id,
        )

    def recipient_label(self, flow: SendFlow) -> str:
        if flow.method == SendMethod.EMAIL:
            return flow.recipient or ""
        return truncate_with_ellipsis(flow.recipient, 12, 12)

    def select_method(self, flow: SendFlow, method: SendMethod) -> None:
        flow.method = method
        flow.transition(SendStep.ENTER_RECIPIENT)

    async def after_amount(self, session: Session) -> StepResult:
        return await self.fetch_wallets(session)

    def prompt(self, session: Session) -> Reply:
        flow = session.flow
        if flow.step == SendStep.SELECT_METHOD:
            return Reply(
                text=SELECT_SEND_METHOD,
                buttons=self.with_cancel(
                    [
                        [
                            button("📧 Email", ActionKind.METHOD, SendMethod.EMAIL),
                            button("👛 Wallet", ActionKind.METHOD, SendMethod.WALLET),
                        ]
                    ]
                ),
            )
        if flow.step == SendStep.ENTER_RECIPIENT:
            text = (
                ENTER_RECIPIENT_EMAIL
                if flow.method == SendMethod.EMAIL
                else ENTER_RECIPIENT_WALLET
            )
            return Reply(text=text, buttons=self.with_cancel())
        if flow.step == SendStep.ENTER_AMOUNT:
            return self.amount_prompt(flow)
        if flow.step == SendStep.SELECT_NETWORK:
            return self.network_prompt(flow)
        if flow.step == SendStep.CONFIRM:
            return self.summary(flow)
        return Reply(text="⏳ Processing your transaction...")

    async def on_text(self, session: Session, text: str) -> StepResult:
        flow = session.flow
        value = text.strip()
        if flow.step == SendStep.ENTER_RECIPIENT:
            if flow.method == SendMethod.EMAIL:
                if not is_valid_email(value):
                    return self.reject(session, LOGIN_INVALID_EMAIL)
            elif not is_valid_wallet_address(value, strict=self.settings.wallet_address_strict):
                return self.reject(session, INVALID_WALLET)
            flow.recipient = value
            flow.transition(SendStep.ENTER_AMOUNT)
            return StepResult.next_prompt(self.prompt(session))
        if flow.step == SendStep.ENTER_AMOUNT:
            return await self.enter_amount(session, value)
        return self.no_such_step(session)

    async def retry(self, session: Session) -> StepResult:
        flow = session.flow
        if flow.step == SendStep.ENTER_AMOUNT and flow.amount is not None:
            return await self.fetch_wallets(session)
        return await super().retry(session)
