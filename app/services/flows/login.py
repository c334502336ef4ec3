"""
Login flow.

ENTER_EMAIL (request OTP) -> ENTER_OTP (verify). Wrong codes count against
otp_max_attempts; reaching the limit discards the flow.
"""

from app.messages import (
    LOGIN_ENTER_EMAIL,
    LOGIN_INVALID_EMAIL,
    LOGIN_INVALID_OTP,
    LOGIN_OTP_SENT,
    LOGIN_SUCCESS,
    LOGIN_TOO_MANY_ATTEMPTS,
    LOGIN_WRONG_OTP,
    button,
    login_buttons,
    main_menu_buttons,
)
from app.models.flow import FlowKind, LoginFlow, LoginStep
from app.models.reply import Reply
from app.models.session import AuthBlock, Session
from app.services.actions import Action, ActionKind
from app.services.flows.base import FlowHandler, StepResult, TerminalFlowFailure
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import UpstreamRejected
from app.utils.formatters import escape_md
from app.validators import is_valid_email, is_valid_otp


class LoginFlowHandler(FlowHandler):
    """Email + OTP authentication."""

    kind = FlowKind.LOGIN

    def start(self, session: Session, context: dict | None = None) -> StepResult:
        session.flow = LoginFlow()
        return StepResult.next_prompt(self.prompt(session))

    def prompt(self, session: Session) -> Reply:
        flow = session.flow
        if flow.step == LoginStep.ENTER_OTP:
            return Reply(
                text=LOGIN_OTP_SENT.format(email=escape_md(flow.email)),
                buttons=self.with_cancel([[button("🔄 Resend code", ActionKind.RESEND_OTP)]]),
            )
        return Reply(text=LOGIN_ENTER_EMAIL, buttons=self.with_cancel())

    async def request_otp(self, session: Session) -> StepResult:
        """Ask the API to e-mail a code to the stored address."""
        flow = session.flow
        otp = await self.call(self.ctx.auth_api.request_otp(flow.email))
        flow.sid = otp.sid
        if flow.step == LoginStep.ENTER_EMAIL:
            flow.transition(LoginStep.ENTER_OTP)
        self.logger.info(f"OTP requested for user {session.user_id}")
        return StepResult.next_prompt(self.prompt(session))

    async def verify_otp(self, session: Session, code: str) -> StepResult:
        flow = session.flow
        try:
            verification = await self.call(
                self.ctx.auth_api.verify_otp(flow.email, code, flow.sid or "")
            )
        except UpstreamRejected as e:
            flow.attempts += 1
            self.logger.info(
                f"Wrong OTP for user {session.user_id} "
                f"({flow.attempts}/{self.settings.otp_max_attempts}): {e.detail}"
            )
            if flow.attempts >= self.settings.otp_max_attempts:
                raise TerminalFlowFailure(
                    "otp_attempts_exhausted",
                    Reply(text=LOGIN_TOO_MANY_ATTEMPTS, buttons=login_buttons()),
                ) from e
            left = self.settings.otp_max_attempts - flow.attempts
            return self.reject(session, LOGIN_WRONG_OTP.format(left=left), reason="wrong_otp")

        user = verification.user
        session.auth = AuthBlock(
            access_token=verification.access_token,
            expires_at=verification.expires_at,
            organization_id=user.organization_id,
            profile=user,
            validated_at=utc_now(),
        )
        session.kyc = None
        session.reset_flow()
        self.logger.info(f"User {session.user_id} logged in as {user.id}")
        name = user.first_name or user.email or "there"
        return StepResult.completed(
            Reply(
                text=LOGIN_SUCCESS.format(name=escape_md(name)),
                buttons=main_menu_buttons(
                    logged_in=True, is_admin=self.settings.is_admin(session.user_id)
                ),
            )
        )

    async def on_text(self, session: Session, text: str) -> StepResult:
        flow = session.flow
        value = text.strip()
        if flow.step == LoginStep.ENTER_EMAIL:
            if not is_valid_email(value):
                return self.reject(session, LOGIN_INVALID_EMAIL)
            flow.email = value.lower()
            return await self.request_otp(session)
        if not is_valid_otp(value):
            return self.reject(session, LOGIN_INVALID_OTP)
        return await self.verify_otp(session, value)

    async def on_action(self, session: Session, action: Action) -> StepResult:
        if action.kind == ActionKind.RESEND_OTP and session.flow.step == LoginStep.ENTER_OTP:
            return await self.request_otp(session)
        return self.no_such_step(session)

    async def retry(self, session: Session) -> StepResult:
        flow = session.flow
        if flow.step == LoginStep.ENTER_EMAIL and flow.email:
            return await self.request_otp(session)
        return await super().retry(session)
