"""
Conversation service.

Entry point of the core: one inbound event in, replies out. Each event is
handled under the user's session lock; a stale write re-reads the session
and dispatches the event again.
"""

from loguru import logger

from app.config.settings import Settings
from app.messages import BUSY, GENERAL_ERROR
from app.models.reply import Reply
from app.services.commands import CommandHandlers
from app.services.dispatcher import ActionDispatcher, InboundEvent
from app.services.flow_engine import FlowEngine
from app.services.flows.base import FlowContext, Notifier
from app.services.guards import GuardChain
from app.services.payments_api import AuthAPI, KycAPI, PointsAPI, TransferAPI, WalletAPI
from app.services.session_service import SessionService
from app.utils.exceptions import LockTimeoutError, SessionConflictError


class ConversationService:
    """Handles inbound chat events end to end."""

    def __init__(self, session_service: SessionService, dispatcher: ActionDispatcher) -> None:
        self.session_service = session_service
        self.dispatcher = dispatcher

    @classmethod
    def build(
        cls,
        *,
        settings: Settings,
        session_service: SessionService,
        auth_api: AuthAPI,
        kyc_api: KycAPI,
        transfer_api: TransferAPI,
        wallet_api: WalletAPI,
        points_api: PointsAPI,
        notifier: Notifier,
    ) -> "ConversationService":
        """Wire the engine, guards and command handlers around the collaborators."""
        ctx = FlowContext(
            auth_api=auth_api,
            kyc_api=kyc_api,
            transfer_api=transfer_api,
            wallet_api=wallet_api,
            points_api=points_api,
            session_service=session_service,
            notifier=notifier,
            settings=settings,
        )
        engine = FlowEngine(ctx)
        dispatcher = ActionDispatcher(
            engine=engine,
            guards=GuardChain.default(auth_api, kyc_api, settings),
            commands=CommandHandlers(engine),
        )
        return cls(session_service, dispatcher)

    async def handle(self, event: InboundEvent) -> list[Reply]:
        """
        Handle one event.

        Args:
            event: Command, text or callback event

        Returns:
            Replies to deliver, in order
        """
        try:
            return await self.session_service.mutate(
                event.user_id, lambda session: self.dispatcher.dispatch(session, event)
            )
        except LockTimeoutError:
            logger.warning(f"User {event.user_id} is busy, dropping {type(event).__name__}")
            return [Reply(text=BUSY)]
        except SessionConflictError as e:
            logger.error(f"Giving up on {type(event).__name__} of user {event.user_id}: {e}")
            return [Reply(text=GENERAL_ERROR)]
