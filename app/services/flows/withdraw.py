"""
Withdraw flow.

Wallet: SELECT_METHOD -> ENTER_RECIPIENT -> ENTER_AMOUNT -> SELECT_NETWORK
-> CONFIRM -> SUBMITTING.
Bank: SELECT_METHOD -> ENTER_AMOUNT -> ENTER_BANK_DETAILS -> SELECT_NETWORK
-> CONFIRM -> SUBMITTING.

Minimum amounts differ per method.
"""

from decimal import Decimal

from app.config.business_constants import (
    TRANSFER_KIND_BANK_WITHDRAW,
    TRANSFER_KIND_WALLET_WITHDRAW,
)
from app.messages import (
    ENTER_BANK_DETAILS,
    ENTER_WITHDRAW_WALLET,
    INVALID_BANK_DETAILS,
    INVALID_WALLET,
    SELECT_WITHDRAW_METHOD,
    button,
)
from app.models.api import TransferRequest
from app.models.flow import FlowKind, WithdrawFlow, WithdrawMethod, WithdrawStep
from app.models.reply import Reply
from app.models.session import Session
from app.services.actions import ActionKind
from app.services.flows.base import StepResult
from app.services.flows.transfer import TransferFlowHandler
from app.utils.formatters import truncate_with_ellipsis
from app.validators import (
    is_valid_bank_details,
    is_valid_wallet_address,
    parse_bank_details,
)


class WithdrawFlowHandler(TransferFlowHandler):
    """Withdraw to an external wallet or a bank account."""

    kind = FlowKind.WITHDRAW
    flow_model = WithdrawFlow
    Step = WithdrawStep
    Method = WithdrawMethod
    confirm_action = ActionKind.CONFIRM_WITHDRAW

    def title(self) -> str:
        return "Withdrawal"

    def min_amount(self, flow: WithdrawFlow) -> Decimal:
        if flow.method == WithdrawMethod.BANK:
            return self.settings.min_withdraw_bank_amount
        return self.settings.min_withdraw_wallet_amount

    def max_amount(self, flow: WithdrawFlow) -> Decimal:
        return self.settings.max_withdraw_amount

    def transfer_kind(self, flow: WithdrawFlow) -> str:
        if flow.method == WithdrawMethod.BANK:
            return TRANSFER_KIND_BANK_WITHDRAW
        return TRANSFER_KIND_WALLET_WITHDRAW

    def build_request(self, flow: WithdrawFlow) -> TransferRequest:
        is_bank = flow.method == WithdrawMethod.BANK
        return TransferRequest(
            amount=flow.amount,
            network=flow.network or "",
            address=None if is_bank else flow.recipient,
            bank_details=flow.bank_details if is_bank else None,
            idempotency_key=flow.flow_id,
        )

    def recipient_label(self, flow: WithdrawFlow) -> str:
        if flow.method == WithdrawMethod.BANK and flow.bank_details:
            details = flow.bank_details
            parts = [details.bank_name, details.account_name, details.account_number]
            label = " / ".join(part for part in parts if part)
            return label or truncate_with_ellipsis(details.raw, 20, 10)
        return truncate_with_ellipsis(flow.recipient, 12, 12)

    def select_method(self, flow: WithdrawFlow, method: WithdrawMethod) -> None:
        flow.method = method
        if method == WithdrawMethod.BANK:
            flow.transition(WithdrawStep.ENTER_AMOUNT)
        else:
            flow.transition(WithdrawStep.ENTER_RECIPIENT)

    async def after_amount(self, session: Session) -> StepResult:
        flow = session.flow
        if flow.method == WithdrawMethod.BANK and flow.bank_details is None:
            flow.transition(WithdrawStep.ENTER_BANK_DETAILS)
            return StepResult.next_prompt(self.prompt(session))
        return await self.fetch_wallets(session)

    def prompt(self, session: Session) -> Reply:
        flow = session.flow
        if flow.step == WithdrawStep.SELECT_METHOD:
            return Reply(
                text=SELECT_WITHDRAW_METHOD,
                buttons=self.with_cancel(
                    [
                        [
                            button("👛 External Wallet", ActionKind.METHOD, WithdrawMethod.WALLET),
                            button("🏦 Bank Account", ActionKind.METHOD, WithdrawMethod.BANK),
                        ]
                    ]
                ),
            )
        if flow.step == WithdrawStep.ENTER_RECIPIENT:
            return Reply(text=ENTER_WITHDRAW_WALLET, buttons=self.with_cancel())
        if flow.step == WithdrawStep.ENTER_AMOUNT:
            return self.amount_prompt(flow)
        if flow.step == WithdrawStep.ENTER_BANK_DETAILS:
            return Reply(text=ENTER_BANK_DETAILS, buttons=self.with_cancel(), parse_mode=None)
        if flow.step == WithdrawStep.SELECT_NETWORK:
            return self.network_prompt(flow)
        if flow.step == WithdrawStep.CONFIRM:
            return self.summary(flow)
        return Reply(text="⏳ Processing your withdrawal...")

    async def on_text(self, session: Session, text: str) -> StepResult:
        flow = session.flow
        value = text.strip()
        if flow.step == WithdrawStep.ENTER_RECIPIENT:
            if not is_valid_wallet_address(value, strict=self.settings.wallet_address_strict):
                return self.reject(session, INVALID_WALLET)
            flow.recipient = value
            flow.transition(WithdrawStep.ENTER_AMOUNT)
            return StepResult.next_prompt(self.prompt(session))
        if flow.step == WithdrawStep.ENTER_AMOUNT:
            return await self.enter_amount(session, value)
        if flow.step == WithdrawStep.ENTER_BANK_DETAILS:
            if not is_valid_bank_details(value):
                return self.reject(session, INVALID_BANK_DETAILS)
            flow.bank_details = parse_bank_details(value)
            return await self.fetch_wallets(session)
        return self.no_such_step(session)

    async def retry(self, session: Session) -> StepResult:
        flow = session.flow
        if flow.step == WithdrawStep.ENTER_AMOUNT and flow.amount is not None:
            if flow.method != WithdrawMethod.BANK or flow.bank_details is not None:
                return await self.fetch_wallets(session)
        if flow.step == WithdrawStep.ENTER_BANK_DETAILS and flow.bank_details is not None:
            return await self.fetch_wallets(session)
        return await super().retry(session)
