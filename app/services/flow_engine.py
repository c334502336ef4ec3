"""
Flow engine.

Starts, advances and cancels the single active flow of a session. This is
the step boundary: payments API failures are caught here and turned into
FAILED results, so they never reach the dispatcher.
"""

from typing import Any

from loguru import logger

from app.messages import (
    CANCELLED,
    NOTHING_TO_CANCEL,
    RESTART_FLOW,
    SESSION_EXPIRED,
    error_reply,
    login_buttons,
)
from app.models.flow import FlowKind, InvalidTransition
from app.models.reply import Reply
from app.models.session import Session
from app.services.actions import Action, ActionKind
from app.services.flows import (
    BroadcastFlowHandler,
    DepositFlowHandler,
    FlowContext,
    FlowHandler,
    LoginFlowHandler,
    ReferralFlowHandler,
    SendFlowHandler,
    StepResult,
    TerminalFlowFailure,
    WithdrawFlowHandler,
)
from app.services.flows.base import NO_ACTIVE_FLOW, NO_SUCH_STEP, UNAUTHORIZED, UPSTREAM_ERROR
from app.utils.exceptions import UpstreamError, UpstreamRejected


class FlowEngine:
    """Generic driver of per-kind flow handlers."""

    def __init__(self, ctx: FlowContext) -> None:
        """
        Initialize flow engine.

        Args:
            ctx: Collaborators shared by all handlers
        """
        self.ctx = ctx
        self.handlers: dict[FlowKind, FlowHandler] = {
            FlowKind.LOGIN: LoginFlowHandler(ctx),
            FlowKind.SEND: SendFlowHandler(ctx),
            FlowKind.WITHDRAW: WithdrawFlowHandler(ctx),
            FlowKind.DEPOSIT: DepositFlowHandler(ctx),
            FlowKind.BROADCAST: BroadcastFlowHandler(ctx),
            FlowKind.REFERRAL: ReferralFlowHandler(ctx),
        }

    def start_flow(
        self, session: Session, kind: FlowKind | str, context: dict[str, Any] | None = None
    ) -> StepResult:
        """
        Replace any current flow with a new one at its first step.

        Makes no API call. An unknown kind leaves the session untouched.
        """
        try:
            handler = self.handlers.get(FlowKind(kind))
        except ValueError:
            handler = None
        if handler is None:
            logger.warning(f"Unknown flow kind {kind!r} for user {session.user_id}")
            return StepResult.unknown_flow()
        if session.has_flow:
            logger.debug(
                f"Discarding {session.flow.kind} flow of user {session.user_id}"
            )
        session.reset_flow()
        result = handler.start(session, context)
        logger.info(f"Started {handler.kind} flow for user {session.user_id}")
        return result

    def is_awaiting_input(self, session: Session) -> bool:
        """True if the current step accepts free text."""
        flow = session.flow
        return session.has_flow and getattr(flow, "step", None) in flow.TEXT_STEPS

    def cancel(self, session: Session) -> StepResult:
        """Drop the current flow. Safe on any state, repeatable."""
        if not session.has_flow:
            return StepResult.completed(Reply(text=NOTHING_TO_CANCEL))
        logger.info(f"Cancelled {session.flow.kind} flow of user {session.user_id}")
        session.reset_flow()
        return StepResult.completed(Reply(text=CANCELLED))

    def prompt(self, session: Session) -> Reply | None:
        """Prompt of the current step, if a flow is active."""
        if not session.has_flow:
            return None
        return self.handlers[session.flow.kind].prompt(session)

    async def advance(self, session: Session, value: str | Action) -> StepResult:
        """
        Feed one input (free text or button action) to the active flow.

        Returns:
            NEXT_PROMPT, COMPLETED, FAILED or REJECTED result
        """
        if not session.has_flow:
            return StepResult.rejected(NO_ACTIVE_FLOW, Reply(text=RESTART_FLOW))
        flow = session.flow
        handler = self.handlers[flow.kind]

        if isinstance(value, Action):
            if value.kind == ActionKind.CANCEL:
                return self.cancel(session)
            if value.kind == ActionKind.RETRY:
                step_call = handler.retry(session)
            else:
                step_call = handler.on_action(session, value)
        else:
            if flow.step not in flow.TEXT_STEPS:
                return StepResult.rejected(NO_SUCH_STEP)
            step_call = handler.on_text(session, value)

        step = flow.step
        try:
            result = await step_call
        except TerminalFlowFailure as e:
            logger.info(f"{flow.kind} flow of user {session.user_id} failed: {e.reason}")
            session.reset_flow()
            return StepResult.failed(e.reason, e.reply, terminal=True)
        except UpstreamRejected as e:
            if e.is_unauthorized:
                logger.info(f"Token of user {session.user_id} refused during {flow.kind}")
                session.clear_auth()
                return StepResult.failed(
                    UNAUTHORIZED, Reply(text=SESSION_EXPIRED, buttons=login_buttons())
                )
            logger.warning(f"{flow.kind} step {step} rejected upstream: {e}")
            return StepResult.failed(UPSTREAM_ERROR, error_reply(e.user_message))
        except UpstreamError as e:
            logger.warning(f"{flow.kind} step {step} failed upstream: {e}")
            return StepResult.failed(UPSTREAM_ERROR, error_reply(e.user_message))
        except InvalidTransition as e:
            logger.error(f"Invalid transition for user {session.user_id}: {e}")
            return StepResult.rejected(NO_SUCH_STEP)

        if session.has_flow and session.flow is flow and flow.step != step:
            logger.debug(f"{flow.kind} flow of user {session.user_id}: {step} -> {flow.step}")
        return result
