"""
Shared logic of money-moving flows (send, withdraw).

Covers the common tail of both step tables: wallet fetch, network
selection with balance check, fee quote, confirmation and submission.
"""

from decimal import Decimal
from typing import Any

from app.messages import (
    AMOUNT_TOO_HIGH,
    AMOUNT_TOO_LOW,
    ENTER_AMOUNT,
    INSUFFICIENT_BALANCE,
    INVALID_AMOUNT,
    NO_WALLETS,
    SELECT_NETWORK,
    SUBMITTED,
    SUBMITTED_AFTER_CANCEL,
    UNSUPPORTED_NETWORK,
    confirm_buttons,
    main_menu_row,
    network_buttons,
    wallet_network_buttons,
)
from app.models.api import TransferRequest, TransferResult, WalletBalance
from app.models.flow import FlowKind, SendFlow, WithdrawFlow
from app.models.reply import Reply
from app.models.session import Session
from app.services.actions import Action, ActionKind
from app.services.flows.base import FlowHandler, StepResult
from app.utils.exceptions import SessionConflictError, UpstreamError
from app.utils.formatters import (
    escape_md,
    format_amount,
    format_currency,
    format_network_name,
    format_transaction_status,
)
from app.validators import is_valid_network, parse_amount


TransferFlow = SendFlow | WithdrawFlow


class TransferFlowHandler(FlowHandler):
    """Base of send and withdraw handlers."""

    kind: FlowKind
    flow_model: type[SendFlow] | type[WithdrawFlow]
    Step: Any
    Method: Any
    confirm_action: ActionKind

    # Hooks

    def min_amount(self, flow: TransferFlow) -> Decimal:
        raise NotImplementedError

    def max_amount(self, flow: TransferFlow) -> Decimal:
        raise NotImplementedError

    def transfer_kind(self, flow: TransferFlow) -> str:
        raise NotImplementedError

    def build_request(self, flow: TransferFlow) -> TransferRequest:
        raise NotImplementedError

    def recipient_label(self, flow: TransferFlow) -> str:
        raise NotImplementedError

    def title(self) -> str:
        raise NotImplementedError

    async def after_amount(self, session: Session) -> StepResult:
        """Continue once a valid amount is stored."""
        raise NotImplementedError

    def select_method(self, flow: TransferFlow, method: Any) -> None:
        raise NotImplementedError

    # Start

    def start(self, session: Session, context: dict[str, Any] | None = None) -> StepResult:
        flow = self.flow_model()
        session.flow = flow
        method = (context or {}).get("method")
        if method:
            try:
                self.select_method(flow, self.Method(method))
            except ValueError:
                self.logger.warning(f"Ignoring unknown {self.kind} method {method!r}")
        return StepResult.next_prompt(self.prompt(session))

    # Amount

    def amount_prompt(self, flow: TransferFlow) -> Reply:
        return Reply(
            text=ENTER_AMOUNT.format(
                min=format_currency(self.min_amount(flow)),
                max=format_currency(self.max_amount(flow)),
            ),
            buttons=self.with_cancel(),
        )

    async def enter_amount(self, session: Session, text: str) -> StepResult:
        flow = session.flow
        amount = parse_amount(text)
        if amount is None:
            return self.reject(session, INVALID_AMOUNT)
        if amount < self.min_amount(flow):
            return self.reject(
                session,
                AMOUNT_TOO_LOW.format(min=format_currency(self.min_amount(flow))),
                reason="amount_too_low",
            )
        if amount > self.max_amount(flow):
            return self.reject(
                session,
                AMOUNT_TOO_HIGH.format(max=format_currency(self.max_amount(flow))),
                reason="amount_too_high",
            )
        flow.amount = amount
        return await self.after_amount(session)

    # Wallets and network

    async def fetch_wallets(self, session: Session) -> StepResult:
        """Load balances, then ask for the network."""
        flow = session.flow
        wallets = await self.call(self.ctx.wallet_api.list_balances(self.token(session)))
        flow.wallets = wallets
        flow.transition(self.Step.SELECT_NETWORK)
        return StepResult.next_prompt(self.prompt(session))

    def supported_wallets(self, flow: TransferFlow) -> list[WalletBalance]:
        networks = self.settings.supported_networks
        return [w for w in flow.wallets if is_valid_network(w.network, networks)]

    def network_prompt(self, flow: TransferFlow) -> Reply:
        wallets = self.supported_wallets(flow)
        if wallets:
            return Reply(text=SELECT_NETWORK, buttons=wallet_network_buttons(wallets))
        return Reply(
            text=f"{NO_WALLETS}\n\n{SELECT_NETWORK}",
            buttons=network_buttons(list(self.settings.supported_networks)),
        )

    async def select_network(self, session: Session, network: str | None) -> StepResult:
        flow = session.flow
        flow.network = None
        if not is_valid_network(network, self.settings.supported_networks):
            return self.reject(session, UNSUPPORTED_NETWORK, reason="unsupported_network")
        network = network.lower()
        wallet = next((w for w in flow.wallets if w.network.lower() == network), None)
        balance = wallet.balance if wallet else Decimal("0")
        if balance < flow.amount:
            return self.reject(
                session,
                INSUFFICIENT_BALANCE.format(
                    network=format_network_name(network),
                    balance=format_currency(balance),
                    amount=format_currency(flow.amount),
                ),
                reason="insufficient_balance",
            )
        flow.network = network
        return await self.fetch_quote(session)

    async def fetch_quote(self, session: Session) -> StepResult:
        """Quote fee and total, then show the confirmation."""
        flow = session.flow
        quote = await self.call(
            self.ctx.transfer_api.quote(
                self.token(session), self.transfer_kind(flow), self.build_request(flow)
            )
        )
        if quote.min_amount is not None and flow.amount < quote.min_amount:
            return self.reenter_amount(
                session,
                AMOUNT_TOO_LOW.format(min=format_currency(quote.min_amount)),
                reason="amount_too_low",
            )
        if quote.max_amount is not None and flow.amount > quote.max_amount:
            return self.reenter_amount(
                session,
                AMOUNT_TOO_HIGH.format(max=format_currency(quote.max_amount)),
                reason="amount_too_high",
            )
        flow.fee = quote.fee
        flow.total = quote.total if quote.total is not None else flow.amount + quote.fee
        flow.transition(self.Step.CONFIRM)
        return StepResult.next_prompt(self.prompt(session))

    def reenter_amount(self, session: Session, message: str, reason: str) -> StepResult:
        """
        SELECT_NETWORK -> ENTER_AMOUNT after the quote refused the amount.

        Recipient and bank details are kept; only the amount is asked again.
        """
        flow = session.flow
        self.logger.info(
            f"Quote refused amount {flow.amount} of user {session.user_id}: {reason}"
        )
        flow.amount = None
        flow.network = None
        flow.transition(self.Step.ENTER_AMOUNT)
        prompt = self.prompt(session)
        return StepResult.rejected(
            reason, Reply(text=f"{message}\n\n{prompt.text}", buttons=prompt.buttons)
        )

    def back(self, session: Session) -> StepResult:
        """CONFIRM -> SELECT_NETWORK, dropping the quote."""
        flow = session.flow
        if flow.step != self.Step.CONFIRM:
            return self.no_such_step(session)
        flow.network = None
        flow.fee = None
        flow.total = None
        flow.transition(self.Step.SELECT_NETWORK)
        return StepResult.next_prompt(self.prompt(session))

    # Confirmation

    def summary(self, flow: TransferFlow) -> Reply:
        method = str(flow.method).capitalize() if flow.method else "N/A"
        text = (
            f"📝 *Confirm {self.title()}*\n\n"
            f"Method: {method}\n"
            f"Recipient: {escape_md(self.recipient_label(flow))}\n"
            f"Amount: {format_amount(flow.amount)}\n"
            f"Network: {format_network_name(flow.network)}\n"
            f"Fee: {format_amount(flow.fee)}\n"
            f"Total: {format_amount(flow.total)}\n\n"
            "Please confirm this transaction:"
        )
        return Reply(text=text, buttons=confirm_buttons(self.confirm_action))

    async def confirm(self, session: Session) -> StepResult:
        """
        Submit the confirmed transfer exactly once.

        The flow leaves CONFIRM and is committed before the submission
        starts, so a repeated confirm finds no CONFIRM step. The flow id is
        sent as idempotency key.
        """
        flow = session.flow
        if flow.step != self.Step.CONFIRM:
            return self.no_such_step(session)
        token = self.token(session)
        request = self.build_request(flow)
        kind = self.transfer_kind(flow)

        flow.transition(self.Step.SUBMITTING)
        await self.ctx.session_service.commit(session)
        self.logger.info(
            f"Submitting {kind} {request.amount} on {request.network} "
            f"for user {session.user_id} (flow {flow.flow_id})"
        )
        try:
            result = await self.call(self.ctx.transfer_api.submit(kind, token, request))
        except UpstreamError as e:
            self.logger.warning(f"Submission of flow {flow.flow_id} failed: {e}")
            flow.transition(self.Step.CONFIRM)
            raise
        return await self.finish(session, flow.flow_id, result)

    async def finish(self, session: Session, flow_id: str, result: TransferResult) -> StepResult:
        """
        Close the flow after a successful submission.

        If the stored flow was cancelled or replaced meanwhile, the result is
        delivered through the notifier instead.
        """
        self.logger.info(f"Transfer {result.transfer_id} submitted for flow {flow_id}")
        fields = {
            "transfer_id": escape_md(result.transfer_id),
            "status": format_transaction_status(result.status),
        }
        session.reset_flow()
        try:
            await self.ctx.session_service.commit(session)
        except SessionConflictError:
            fresh = await self.ctx.session_service.load(session.user_id)
            still_ours = getattr(fresh.flow, "flow_id", None) == flow_id
            session.refresh_from(fresh)
            if not still_ours:
                self.logger.warning(
                    f"Flow {flow_id} of user {session.user_id} was replaced during submission"
                )
                await self.ctx.notifier.notify(
                    session.user_id,
                    Reply(text=SUBMITTED_AFTER_CANCEL.format(**fields), buttons=[main_menu_row()]),
                )
                return StepResult.completed()
            session.reset_flow()
            await self.ctx.session_service.commit(session)
        return StepResult.completed(
            Reply(text=SUBMITTED.format(**fields), buttons=[main_menu_row()])
        )

    # Dispatch

    async def on_action(self, session: Session, action: Action) -> StepResult:
        flow = session.flow
        step = flow.step
        if action.kind == ActionKind.METHOD and step == self.Step.SELECT_METHOD:
            try:
                method = self.Method(action.arg)
            except ValueError:
                return self.reject(session, "Please choose one of the options.")
            self.select_method(flow, method)
            return StepResult.next_prompt(self.prompt(session))
        if action.kind == ActionKind.NETWORK and step == self.Step.SELECT_NETWORK:
            return await self.select_network(session, action.arg)
        if action.kind == self.confirm_action and step == self.Step.CONFIRM:
            return await self.confirm(session)
        if action.kind == ActionKind.BACK and step == self.Step.CONFIRM:
            return self.back(session)
        return self.no_such_step(session)

    async def retry(self, session: Session) -> StepResult:
        flow = session.flow
        if flow.step == self.Step.SELECT_NETWORK and flow.network:
            return await self.fetch_quote(session)
        return await super().retry(session)
