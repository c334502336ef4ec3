"""
Flow handler base.

A handler owns the step table logic of one flow kind. Handlers validate
input, call the payments API and move the flow between steps; they return
a StepResult and never let user input errors escape as exceptions.

Handlers must only change `step` after the external call of that step
succeeded, so an UpstreamError leaves the flow where it was.
"""

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol, TypeVar

from loguru import logger

from app.config.settings import Settings
from app.messages import STALE_BUTTON, cancel_row
from app.models.reply import Button, Reply
from app.models.session import Session
from app.services.actions import Action
from app.services.payments_api import AuthAPI, KycAPI, PointsAPI, TransferAPI, WalletAPI
from app.services.session_service import SessionService
from app.utils.exceptions import UpstreamRejected, UpstreamTimeout


T = TypeVar("T")


class StepOutcome(StrEnum):
    NEXT_PROMPT = "next_prompt"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"
    UNKNOWN_FLOW = "unknown_flow"


# Rejection reasons shared across flows
NO_ACTIVE_FLOW = "no_active_flow"
NO_SUCH_STEP = "no_such_step"
INVALID_INPUT = "invalid_input"
UPSTREAM_ERROR = "upstream_error"
UNAUTHORIZED = "unauthorized"


@dataclass
class StepResult:
    """Outcome of start_flow/advance plus the reply to show."""

    outcome: StepOutcome
    reply: Reply | None = None
    reason: str | None = None
    terminal: bool = False

    @classmethod
    def next_prompt(cls, reply: Reply) -> "StepResult":
        return cls(StepOutcome.NEXT_PROMPT, reply)

    @classmethod
    def completed(cls, reply: Reply | None = None) -> "StepResult":
        return cls(StepOutcome.COMPLETED, reply, terminal=True)

    @classmethod
    def rejected(cls, reason: str, reply: Reply | None = None) -> "StepResult":
        return cls(StepOutcome.REJECTED, reply, reason)

    @classmethod
    def failed(
        cls, reason: str, reply: Reply | None = None, terminal: bool = False
    ) -> "StepResult":
        return cls(StepOutcome.FAILED, reply, reason, terminal)

    @classmethod
    def unknown_flow(cls) -> "StepResult":
        return cls(StepOutcome.UNKNOWN_FLOW, reason="unknown_flow")

    @property
    def replies(self) -> list[Reply]:
        return [self.reply] if self.reply else []


class TerminalFlowFailure(Exception):
    """The flow cannot continue; its accumulated state is discarded."""

    def __init__(self, reason: str, reply: Reply) -> None:
        super().__init__(reason)
        self.reason = reason
        self.reply = reply


class Notifier(Protocol):
    """Out-of-band delivery to a chat user."""

    async def notify(self, user_id: str, reply: Reply) -> bool:
        ...


@dataclass
class FlowContext:
    """Collaborators shared by flow handlers."""

    auth_api: AuthAPI
    kyc_api: KycAPI
    transfer_api: TransferAPI
    wallet_api: WalletAPI
    points_api: PointsAPI
    session_service: SessionService
    notifier: Notifier
    settings: Settings

    @property
    def timeout(self) -> float:
        return self.settings.api_timeout_seconds


async def call_upstream(awaitable: Awaitable[T], timeout: float) -> T:
    """
    Await one payments API call with a hard timeout.

    Raises:
        UpstreamTimeout: If the call did not finish in time
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except TimeoutError as e:
        raise UpstreamTimeout(f"Payments API call exceeded {timeout}s") from e


class FlowHandler:
    """Base class of per-kind flow handlers."""

    def __init__(self, ctx: FlowContext) -> None:
        self.ctx = ctx
        self.settings = ctx.settings
        self.logger = logger.bind(service=self.__class__.__name__)

    async def call(self, awaitable: Awaitable[T]) -> T:
        return await call_upstream(awaitable, self.ctx.timeout)

    @staticmethod
    def token(session: Session) -> str:
        """
        Access token for an API call.

        Raises:
            UpstreamRejected: If the session is not (or no longer) authenticated
        """
        auth = session.active_auth()
        if auth is None:
            raise UpstreamRejected("No valid access token", status=401)
        return auth.access_token

    def start(self, session: Session, context: dict[str, Any] | None = None) -> StepResult:
        raise NotImplementedError

    def prompt(self, session: Session) -> Reply:
        """Prompt of the current step."""
        raise NotImplementedError

    async def on_text(self, session: Session, text: str) -> StepResult:
        return self.no_such_step(session)

    async def on_action(self, session: Session, action: Action) -> StepResult:
        return self.no_such_step(session)

    async def retry(self, session: Session) -> StepResult:
        """Re-run the pending call of the current step; re-prompt if none."""
        return StepResult.next_prompt(self.prompt(session))

    def reject(self, session: Session, message: str, reason: str = INVALID_INPUT) -> StepResult:
        """Stay on the current step, showing the error with the step's buttons."""
        current = self.prompt(session)
        return StepResult.rejected(reason, Reply(text=message, buttons=current.buttons))

    def no_such_step(self, session: Session) -> StepResult:
        return StepResult.rejected(NO_SUCH_STEP, Reply(text=STALE_BUTTON))

    @staticmethod
    def with_cancel(rows: list[list[Button]] | None = None) -> list[list[Button]]:
        return [*(rows or []), cancel_row()]
