"""
Action dispatcher.

Turns one inbound event into a route, runs the guard chain and hands the
event to the flow engine or a command handler.

Routing priority:
1. Button callback: parsed into a typed Action
2. Free text while the active flow awaits input
3. /command or reply-keyboard menu keyword
4. Anything else is ignored
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from app.messages import MENU_KEYWORDS
from app.models.flow import FlowKind
from app.models.reply import Reply
from app.models.session import Session
from app.services.actions import Action, ActionKind, parse_action
from app.services.commands import CommandHandlers
from app.services.flow_engine import FlowEngine
from app.services.guards import GuardChain, Route


@dataclass(frozen=True)
class CommandEvent:
    """Slash command sent by the user (without the leading slash)."""

    user_id: str
    command: str


@dataclass(frozen=True)
class TextEvent:
    """Free text message."""

    user_id: str
    text: str


@dataclass(frozen=True)
class CallbackEvent:
    """Inline button press."""

    user_id: str
    data: str


InboundEvent = CommandEvent | TextEvent | CallbackEvent


# Command name -> guarded route
COMMAND_ROUTES: dict[str, Route] = {
    "start": Route("start", requires_auth=False),
    "help": Route("help", requires_auth=False),
    "menu": Route("menu", requires_auth=False),
    "main_menu": Route("menu", requires_auth=False),
    "login": Route("login", requires_auth=False),
    "logout": Route("logout", requires_auth=False),
    "balance": Route("balance"),
    "wallets": Route("wallets"),
    "profile": Route("profile"),
    "kyc": Route("kyc"),
    "deposit": Route("deposit"),
    "send": Route("send"),
    "withdraw": Route("withdraw"),
    "history": Route("history"),
    "history_page": Route("history"),
    "filter_history": Route("history"),
    "transaction_details": Route("history"),
    "admin": Route("admin", requires_auth=False, admin_only=True),
    "admin_broadcast": Route("admin_broadcast", requires_auth=False, admin_only=True),
    "set_default_wallet": Route("wallets"),
    "points": Route("points"),
    "show_points_breakdown": Route("points"),
    "show_referral_code": Route("points"),
    "apply_referral_code": Route("points"),
}

# Active flow kind -> route guarding its steps
FLOW_ROUTES: dict[FlowKind, Route] = {
    FlowKind.LOGIN: Route("login", requires_auth=False),
    FlowKind.SEND: Route("send"),
    FlowKind.WITHDRAW: Route("withdraw"),
    FlowKind.DEPOSIT: Route("deposit"),
    FlowKind.BROADCAST: Route("admin_broadcast", requires_auth=False, admin_only=True),
    FlowKind.REFERRAL: Route("points"),
}

CANCEL_ROUTE = Route("cancel", requires_auth=False)

# Slash command aliases
COMMAND_ALIASES = {
    "broadcast": "admin_broadcast",
    "wallet": "wallets",
}


@dataclass
class Target:
    """Resolved destination of an event."""

    route: Route
    run: Callable[[], Awaitable[list[Reply]]]
    name: str


class ActionDispatcher:
    """Routes inbound events to flow steps and command handlers."""

    def __init__(self, engine: FlowEngine, guards: GuardChain, commands: CommandHandlers) -> None:
        self.engine = engine
        self.guards = guards
        self.commands = commands

    @staticmethod
    def normalize_command(command: str) -> str:
        """'/Send@my_bot args' -> 'send'."""
        name = command.strip().split(maxsplit=1)[0] if command.strip() else ""
        name = name.lstrip("/").split("@", 1)[0].lower()
        return COMMAND_ALIASES.get(name, name)

    def resolve(self, session: Session, event: InboundEvent) -> Target | None:
        """Pick the route and handler for an event, or None to ignore it."""
        if isinstance(event, CallbackEvent):
            action = parse_action(event.data)
            if action is None:
                logger.debug(f"Ignoring unknown callback {event.data!r} from {event.user_id}")
                return None
            return self._resolve_action(session, action)

        if isinstance(event, TextEvent):
            if self.engine.is_awaiting_input(session):
                return self._flow_target(session, event.text, "text")
            name = MENU_KEYWORDS.get(event.text.strip())
            if name is None:
                return None
            return self._command_target(session, name, None)

        name = self.normalize_command(event.command)
        if name == "cancel":
            return self._cancel_target(session)
        if name not in self.commands:
            logger.debug(f"Ignoring unknown command /{name} from {event.user_id}")
            return None
        return self._command_target(session, name, None)

    def _resolve_action(self, session: Session, action: Action) -> Target | None:
        if action.kind == ActionKind.NOOP:
            return None
        if action.kind == ActionKind.CANCEL:
            return self._cancel_target(session)
        if action.is_flow_action:
            return self._flow_target(session, action, action.kind.value)
        if action.kind.value in self.commands:
            return self._command_target(session, action.kind.value, action.arg)
        return None

    def _flow_target(self, session: Session, value: str | Action, name: str) -> Target:
        route = FLOW_ROUTES.get(session.flow.kind, CANCEL_ROUTE)

        async def run() -> list[Reply]:
            result = await self.engine.advance(session, value)
            if result.reason:
                logger.debug(
                    f"Step {name} of user {session.user_id}: {result.outcome} ({result.reason})"
                )
            return result.replies

        return Target(route=route, run=run, name=name)

    def _cancel_target(self, session: Session) -> Target:
        async def run() -> list[Reply]:
            return self.engine.cancel(session).replies

        return Target(route=CANCEL_ROUTE, run=run, name="cancel")

    def _command_target(self, session: Session, name: str, arg: str | None) -> Target:
        async def run() -> list[Reply]:
            return await self.commands.run(name, session, arg)

        return Target(route=COMMAND_ROUTES[name], run=run, name=name)

    async def dispatch(self, session: Session, event: InboundEvent) -> list[Reply]:
        """
        Handle one event against a locked session.

        Returns:
            Replies to send, possibly empty
        """
        target = self.resolve(session, event)
        if target is None:
            return []

        decision = await self.guards.evaluate(session, target.route)
        if not decision.allowed:
            logger.info(
                f"{target.name} denied for user {session.user_id}: {decision.reason}"
            )
            return [decision.reply] if decision.reply else []

        return await target.run()
