"""
Broadcast flow (admin).

ENTER_MESSAGE -> CONFIRM -> terminal. The preview carries a stable
confirm_broadcast action bound to the pending broadcast id stored in the
flow, so an outdated preview cannot send a newer message.
"""

import asyncio
from uuid import uuid4

from app.messages import (
    BROADCAST_DONE,
    BROADCAST_EMPTY,
    BROADCAST_ENTER_MESSAGE,
    BROADCAST_PREVIEW,
    button,
    main_menu_row,
)
from app.models.flow import BroadcastFlow, BroadcastStep, FlowKind
from app.models.reply import Reply
from app.models.session import Session
from app.services.actions import Action, ActionKind
from app.services.flows.base import FlowHandler, StepResult


# Telegram message length limit
MAX_BROADCAST_LENGTH = 4000


class BroadcastFlowHandler(FlowHandler):
    """Compose and deliver a message to every known user."""

    kind = FlowKind.BROADCAST

    def start(self, session: Session, context: dict | None = None) -> StepResult:
        session.flow = BroadcastFlow()
        return StepResult.next_prompt(self.prompt(session))

    def prompt(self, session: Session) -> Reply:
        flow = session.flow
        if flow.step == BroadcastStep.CONFIRM:
            return Reply(
                text=BROADCAST_PREVIEW.format(message=flow.message),
                buttons=[
                    [
                        button("✅ Send", ActionKind.CONFIRM_BROADCAST, flow.broadcast_id),
                        button("❌ Cancel", ActionKind.CANCEL),
                    ],
                    [button("✏️ Edit", ActionKind.BACK)],
                ],
            )
        return Reply(text=BROADCAST_ENTER_MESSAGE, buttons=self.with_cancel())

    async def on_text(self, session: Session, text: str) -> StepResult:
        flow = session.flow
        message = text.strip()
        if not message:
            return self.reject(session, BROADCAST_EMPTY)
        if len(message) > MAX_BROADCAST_LENGTH:
            return self.reject(
                session, f"The message must be at most {MAX_BROADCAST_LENGTH} characters."
            )
        flow.message = message
        flow.broadcast_id = uuid4().hex[:12]
        flow.transition(BroadcastStep.CONFIRM)
        return StepResult.next_prompt(self.prompt(session))

    async def on_action(self, session: Session, action: Action) -> StepResult:
        flow = session.flow
        if flow.step != BroadcastStep.CONFIRM:
            return self.no_such_step(session)
        if action.kind == ActionKind.BACK:
            flow.message = None
            flow.broadcast_id = None
            flow.transition(BroadcastStep.ENTER_MESSAGE)
            return StepResult.next_prompt(self.prompt(session))
        if action.kind != ActionKind.CONFIRM_BROADCAST:
            return self.no_such_step(session)
        if action.arg and action.arg != flow.broadcast_id:
            return self.no_such_step(session)
        return await self.deliver(session)

    async def deliver(self, session: Session) -> StepResult:
        """
        Send the pending broadcast.

        The flow is closed and committed first so a second tap on the
        preview finds nothing to confirm.
        """
        flow = session.flow
        broadcast_id = flow.broadcast_id
        reply = Reply(text=flow.message or "")
        session.reset_flow()
        await self.ctx.session_service.commit(session)

        user_ids = await self.ctx.session_service.list_user_ids()
        self.logger.info(
            f"Broadcast {broadcast_id} by {session.user_id} to {len(user_ids)} users"
        )
        batch_size = self.settings.broadcast_batch_size
        sent = failed = 0
        for index in range(0, len(user_ids), batch_size):
            batch = user_ids[index:index + batch_size]
            results = await asyncio.gather(
                *(self.ctx.notifier.notify(user_id, reply) for user_id in batch),
                return_exceptions=True,
            )
            for result in results:
                if result is True:
                    sent += 1
                else:
                    failed += 1
                    if isinstance(result, Exception):
                        self.logger.debug(f"Broadcast {broadcast_id} delivery failed: {result}")
            if index + batch_size < len(user_ids):
                await asyncio.sleep(self.settings.broadcast_batch_delay_seconds)

        self.logger.info(f"Broadcast {broadcast_id} finished: {sent} sent, {failed} failed")
        return StepResult.completed(
            Reply(text=BROADCAST_DONE.format(sent=sent, failed=failed), buttons=[main_menu_row()])
        )
