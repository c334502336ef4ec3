"""
Deposit flow.

SELECT_NETWORK -> terminal. Picking a network fetches its deposit address.
"""

from app.messages import (
    DEPOSIT_ADDRESS,
    SELECT_DEPOSIT_NETWORK,
    UNSUPPORTED_NETWORK,
    main_menu_row,
    network_buttons,
)
from app.models.flow import DepositFlow, DepositStep, FlowKind
from app.models.reply import Reply
from app.models.session import Session
from app.services.actions import Action, ActionKind
from app.services.flows.base import FlowHandler, StepResult
from app.utils.formatters import format_amount, format_network_name
from app.validators import is_valid_network


class DepositFlowHandler(FlowHandler):
    """Show the deposit address of a chosen network."""

    kind = FlowKind.DEPOSIT

    def start(self, session: Session, context: dict | None = None) -> StepResult:
        session.flow = DepositFlow()
        return StepResult.next_prompt(self.prompt(session))

    def prompt(self, session: Session) -> Reply:
        return Reply(
            text=SELECT_DEPOSIT_NETWORK,
            buttons=network_buttons(list(self.settings.supported_networks)),
        )

    async def on_action(self, session: Session, action: Action) -> StepResult:
        if action.kind != ActionKind.NETWORK or session.flow.step != DepositStep.SELECT_NETWORK:
            return self.no_such_step(session)
        if not is_valid_network(action.arg, self.settings.supported_networks):
            return self.reject(session, UNSUPPORTED_NETWORK, reason="unsupported_network")

        network = action.arg.lower()
        deposit = await self.call(
            self.ctx.wallet_api.deposit_address(self.token(session), network)
        )
        session.reset_flow()
        minimum = ""
        if deposit.min_amount is not None:
            minimum = f"Minimum deposit: {format_amount(deposit.min_amount)}\n\n"
        name = format_network_name(network)
        return StepResult.completed(
            Reply(
                text=DEPOSIT_ADDRESS.format(
                    network=name, address=deposit.address, minimum=minimum
                ),
                buttons=[main_menu_row()],
            )
        )
