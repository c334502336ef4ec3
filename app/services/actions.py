"""
Button actions.

Typed representation of callback payloads. Payloads are either a bare
action id ("confirm_send") or an id with one parameter ("network:polygon",
"history_page:2"). Anything else parses to None and is ignored.
"""

import re
from dataclasses import dataclass
from enum import StrEnum


# Telegram limits callback data to 64 bytes
MAX_PAYLOAD_LENGTH = 64

_ARG_RE = re.compile(r"[A-Za-z0-9_\-]{1,48}")


class ActionKind(StrEnum):
    """Known button actions."""

    # Flow actions
    METHOD = "method"
    NETWORK = "network"
    CONFIRM_SEND = "confirm_send"
    CONFIRM_WITHDRAW = "confirm_withdraw"
    CONFIRM_BROADCAST = "confirm_broadcast"
    BACK = "back"
    RETRY = "retry"
    RESEND_OTP = "resend_otp"
    CANCEL = "cancel"

    # Command-like actions
    LOGIN = "login"
    LOGOUT = "logout"
    BALANCE = "balance"
    WALLETS = "wallets"
    SEND = "send"
    WITHDRAW = "withdraw"
    DEPOSIT = "deposit"
    HISTORY = "history"
    HISTORY_PAGE = "history_page"
    FILTER_HISTORY = "filter_history"
    TRANSACTION_DETAILS = "transaction_details"
    KYC = "kyc"
    PROFILE = "profile"
    HELP = "help"
    MAIN_MENU = "main_menu"
    ADMIN = "admin"
    ADMIN_BROADCAST = "admin_broadcast"
    SET_DEFAULT_WALLET = "set_default_wallet"
    POINTS = "points"
    SHOW_POINTS_BREAKDOWN = "show_points_breakdown"
    SHOW_REFERRAL_CODE = "show_referral_code"
    APPLY_REFERRAL_CODE = "apply_referral_code"
    NOOP = "noop"


# Actions that need a parameter
PARAMETRIZED = frozenset(
    {
        ActionKind.METHOD,
        ActionKind.NETWORK,
        ActionKind.HISTORY_PAGE,
        ActionKind.FILTER_HISTORY,
        ActionKind.TRANSACTION_DETAILS,
        ActionKind.SET_DEFAULT_WALLET,
    }
)

# Actions that may carry a parameter
OPTIONAL_ARG = frozenset({ActionKind.CONFIRM_BROADCAST})

# Actions handled by the flow engine
FLOW_ACTIONS = frozenset(
    {
        ActionKind.METHOD,
        ActionKind.NETWORK,
        ActionKind.CONFIRM_SEND,
        ActionKind.CONFIRM_WITHDRAW,
        ActionKind.CONFIRM_BROADCAST,
        ActionKind.BACK,
        ActionKind.RETRY,
        ActionKind.RESEND_OTP,
    }
)

HISTORY_FILTERS = ("all", "deposit", "send", "withdraw")


@dataclass(frozen=True)
class Action:
    """Parsed button action."""

    kind: ActionKind
    arg: str | None = None

    @property
    def is_flow_action(self) -> bool:
        return self.kind in FLOW_ACTIONS

    @property
    def page(self) -> int | None:
        if self.kind == ActionKind.HISTORY_PAGE and self.arg is not None:
            return int(self.arg)
        return None

    def payload(self) -> str:
        """Callback data for a button carrying this action."""
        if self.arg is None:
            return self.kind.value
        return f"{self.kind.value}:{self.arg}"


def parse_action(data: str | None) -> Action | None:
    """
    Parse raw callback data into an Action.

    Args:
        data: Callback payload from the transport

    Returns:
        Action, or None for unknown or malformed payloads

    Examples:
        >>> parse_action("network:polygon")
        Action(kind=<ActionKind.NETWORK: 'network'>, arg='polygon')
        >>> parse_action("history_page:0") is None
        True
    """
    if not data or not isinstance(data, str) or len(data) > MAX_PAYLOAD_LENGTH:
        return None

    name, sep, arg = data.partition(":")
    try:
        kind = ActionKind(name)
    except ValueError:
        return None

    if kind not in PARAMETRIZED:
        if not sep:
            return Action(kind)
        if kind in OPTIONAL_ARG and _ARG_RE.fullmatch(arg):
            return Action(kind, arg)
        return None

    if not _ARG_RE.fullmatch(arg):
        return None

    if kind == ActionKind.HISTORY_PAGE:
        if not arg.isdigit() or int(arg) < 1:
            return None
        return Action(kind, str(int(arg)))
    if kind == ActionKind.FILTER_HISTORY:
        arg = arg.lower()
        if arg not in HISTORY_FILTERS:
            return None
    if kind in (ActionKind.METHOD, ActionKind.NETWORK):
        arg = arg.lower()
    return Action(kind, arg)
