"""
Referral code flow.

ENTER_CODE -> terminal. The code is applied to the user's organisation.
"""

from app.messages import (
    REFERRAL_APPLIED,
    REFERRAL_ENTER_CODE,
    REFERRAL_INVALID_CODE,
    REFERRAL_REFUSED,
    points_buttons,
)
from app.models.flow import FlowKind, ReferralFlow
from app.models.reply import Reply
from app.models.session import Session
from app.services.flows.base import FlowHandler, StepResult
from app.utils.exceptions import UpstreamRejected
from app.utils.formatters import escape_md
from app.validators import is_valid_referral_code


class ReferralFlowHandler(FlowHandler):
    """Apply a referral code."""

    kind = FlowKind.REFERRAL

    def start(self, session: Session, context: dict | None = None) -> StepResult:
        session.flow = ReferralFlow()
        return StepResult.next_prompt(self.prompt(session))

    def prompt(self, session: Session) -> Reply:
        return Reply(text=REFERRAL_ENTER_CODE, buttons=self.with_cancel())

    async def apply_code(self, session: Session) -> StepResult:
        """
        Send the stored code to the API.

        A refused code keeps the step so another code can be typed; a
        refused token is left to the engine.
        """
        flow = session.flow
        try:
            result = await self.call(
                self.ctx.points_api.apply_referral_code(self.token(session), flow.code)
            )
        except UpstreamRejected as e:
            if e.is_unauthorized:
                raise
            self.logger.info(f"Referral code of user {session.user_id} refused: {e.detail}")
            return self.reject(
                session,
                REFERRAL_REFUSED.format(reason=escape_md(e.user_message)),
                reason="referral_refused",
            )
        session.reset_flow()
        self.logger.info(f"User {session.user_id} applied referral code {flow.code}")
        return StepResult.completed(
            Reply(
                text=REFERRAL_APPLIED.format(message=escape_md(result.message or "")).rstrip(),
                buttons=points_buttons(),
            )
        )

    async def on_text(self, session: Session, text: str) -> StepResult:
        value = text.strip()
        if not is_valid_referral_code(value):
            return self.reject(session, REFERRAL_INVALID_CODE)
        session.flow.code = value
        return await self.apply_code(session)

    async def retry(self, session: Session) -> StepResult:
        if session.flow.code:
            return await self.apply_code(session)
        return await super().retry(session)
