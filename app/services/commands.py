"""
Command handlers.

Menu-level operations that are not steps of a flow: account views,
history browsing and the entry points that start flows. Each handler
receives the locked session and returns the replies to send.
"""

from collections.abc import Awaitable, Callable
from decimal import Decimal
from math import ceil

from loguru import logger

from app.messages import (
    ALREADY_LOGGED_IN,
    DEFAULT_WALLET_SET,
    HELP,
    LOGGED_OUT,
    NO_REFERRAL_CODE,
    POINTS_SUMMARY,
    REFERRAL_CODE,
    SESSION_EXPIRED,
    WELCOME,
    button,
    login_buttons,
    main_menu_buttons,
    main_menu_row,
    points_buttons,
)
from app.models.api import Transfer
from app.models.flow import FlowKind
from app.models.reply import Button, Reply
from app.models.session import KycCache, Session
from app.services.actions import HISTORY_FILTERS, ActionKind
from app.services.flow_engine import FlowEngine
from app.services.flows.base import FlowHandler, call_upstream
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import UpstreamError, UpstreamRejected
from app.utils.formatters import (
    escape_md,
    format_amount,
    format_currency,
    format_datetime,
    format_kyc_status,
    format_network_name,
    format_transaction_status,
    format_wallet_address,
)


CommandHandler = Callable[[Session, str | None], Awaitable[list[Reply]]]

HISTORY_FILTER_LABELS = {
    "all": "All",
    "deposit": "Deposits",
    "send": "Sends",
    "withdraw": "Withdrawals",
}


class CommandHandlers:
    """Handlers for commands, menu keywords and command-like buttons."""

    def __init__(self, engine: FlowEngine) -> None:
        self.engine = engine
        self.ctx = engine.ctx
        self.settings = engine.ctx.settings
        self.handlers: dict[str, CommandHandler] = {
            "start": self.start,
            "help": self.help,
            "menu": self.menu,
            "main_menu": self.menu,
            "login": self.login,
            "logout": self.logout,
            "balance": self.balance,
            "wallets": self.wallets,
            "send": self.send,
            "withdraw": self.withdraw,
            "deposit": self.deposit,
            "history": self.history,
            "history_page": self.history,
            "filter_history": self.filter_history,
            "transaction_details": self.transaction_details,
            "kyc": self.kyc,
            "profile": self.profile,
            "admin": self.admin,
            "admin_broadcast": self.admin_broadcast,
            "set_default_wallet": self.set_default_wallet,
            "points": self.points,
            "show_points_breakdown": self.points_breakdown,
            "show_referral_code": self.referral_code,
            "apply_referral_code": self.apply_referral_code,
        }

    def __contains__(self, name: str) -> bool:
        return name in self.handlers

    async def run(self, name: str, session: Session, arg: str | None = None) -> list[Reply]:
        """
        Run one command.

        Payments API failures are turned into an error reply offering the
        same command again.
        """
        handler = self.handlers[name]
        try:
            return await handler(session, arg)
        except UpstreamRejected as e:
            if e.is_unauthorized:
                logger.info(f"Token of user {session.user_id} refused during /{name}")
                session.clear_auth()
                return [Reply(text=SESSION_EXPIRED, buttons=login_buttons())]
            logger.warning(f"/{name} for user {session.user_id} rejected upstream: {e}")
            return [self._error_reply(name, arg, e.user_message)]
        except UpstreamError as e:
            logger.warning(f"/{name} for user {session.user_id} failed upstream: {e}")
            return [self._error_reply(name, arg, e.user_message)]

    def _error_reply(self, name: str, arg: str | None, message: str) -> Reply:
        rows: list[list[Button]] = []
        try:
            rows.append([button("🔄 Try Again", ActionKind(name), arg)])
        except ValueError:
            pass
        rows.append(main_menu_row())
        return Reply(text=f"⚠️ {escape_md(message)}", buttons=rows)

    async def call(self, awaitable: Awaitable):
        return await call_upstream(awaitable, self.settings.api_timeout_seconds)

    def _menu(self, session: Session) -> list[list[Button]]:
        return main_menu_buttons(
            logged_in=session.active_auth() is not None,
            is_admin=self.settings.is_admin(session.user_id),
        )

    # General

    async def start(self, session: Session, arg: str | None = None) -> list[Reply]:
        auth = session.active_auth()
        if auth is None:
            return [Reply(text=WELCOME, buttons=login_buttons())]
        name = (auth.profile.first_name if auth.profile else None) or auth.email or "there"
        return [
            Reply(
                text=f"👋 *Welcome back, {escape_md(name)}!*\n\nWhat would you like to do?",
                buttons=self._menu(session),
            )
        ]

    async def help(self, session: Session, arg: str | None = None) -> list[Reply]:
        return [Reply(text=HELP, buttons=[main_menu_row()])]

    async def menu(self, session: Session, arg: str | None = None) -> list[Reply]:
        return [Reply(text="🏠 *Main Menu*", buttons=self._menu(session))]

    # Authentication

    async def login(self, session: Session, arg: str | None = None) -> list[Reply]:
        auth = session.active_auth()
        if auth is not None:
            return [
                Reply(
                    text=ALREADY_LOGGED_IN.format(email=escape_md(auth.email or "")),
                    buttons=[[button("🚪 Logout", ActionKind.LOGOUT)], main_menu_row()],
                )
            ]
        return self.engine.start_flow(session, FlowKind.LOGIN).replies

    async def logout(self, session: Session, arg: str | None = None) -> list[Reply]:
        """Best-effort API logout, then forget everything local."""
        auth = session.auth
        if auth is not None and not auth.is_expired():
            try:
                await self.call(self.ctx.auth_api.logout(auth.access_token))
            except UpstreamError as e:
                logger.warning(f"API logout for user {session.user_id} failed: {e}")
        session.logout()
        logger.info(f"User {session.user_id} logged out")
        return [Reply(text=LOGGED_OUT, buttons=login_buttons())]

    # Account views

    async def balance(self, session: Session, arg: str | None = None) -> list[Reply]:
        wallets = await self.call(self.ctx.wallet_api.list_balances(FlowHandler.token(session)))
        if not wallets:
            return [
                Reply(
                    text="💰 *Your Balance*\n\nYou don't have any wallets yet.",
                    buttons=[[button("📥 Deposit", ActionKind.DEPOSIT)], main_menu_row()],
                )
            ]

        total = sum((wallet.balance for wallet in wallets), Decimal("0"))
        lines = ["💰 *Your Balance*", ""]
        for wallet in wallets:
            marker = " ⭐" if wallet.is_default else ""
            lines.append(
                f"• {format_network_name(wallet.network)}: {format_amount(wallet.balance)}{marker}"
            )
        lines += ["", f"*Total:* {format_amount(total)}"]
        return [
            Reply(
                text="\n".join(lines),
                buttons=[
                    [
                        button("📥 Deposit", ActionKind.DEPOSIT),
                        button("📤 Send", ActionKind.SEND),
                    ],
                    main_menu_row(),
                ],
            )
        ]

    async def wallets(self, session: Session, arg: str | None = None) -> list[Reply]:
        wallets = await self.call(self.ctx.wallet_api.list_balances(FlowHandler.token(session)))
        if not wallets:
            return [
                Reply(
                    text="👛 *Your Wallets*\n\nYou don't have any wallets yet.",
                    buttons=[main_menu_row()],
                )
            ]

        lines = ["👛 *Your Wallets*"]
        rows: list[list[Button]] = []
        for wallet in wallets:
            title = format_network_name(wallet.network)
            if wallet.is_default:
                title += " (default)"
            elif wallet.wallet_id:
                rows.append(
                    [
                        button(
                            f"✅ Set {format_network_name(wallet.network)} as default",
                            ActionKind.SET_DEFAULT_WALLET,
                            wallet.wallet_id,
                        )
                    ]
                )
            lines += [
                "",
                f"*{title}*",
                f"Address: `{format_wallet_address(wallet.address)}`",
                f"Balance: {format_amount(wallet.balance)}",
            ]
        rows.append(main_menu_row())
        return [Reply(text="\n".join(lines), buttons=rows)]

    async def set_default_wallet(self, session: Session, arg: str | None = None) -> list[Reply]:
        await self.call(self.ctx.wallet_api.set_default(FlowHandler.token(session), arg or ""))
        logger.info(f"User {session.user_id} set default wallet {arg}")
        return [Reply(text=DEFAULT_WALLET_SET), *await self.wallets(session)]

    async def profile(self, session: Session, arg: str | None = None) -> list[Reply]:
        auth = session.active_auth()
        profile = auth.profile if auth else None
        if profile is None:
            return [Reply(text="👤 No profile information available.", buttons=[main_menu_row()])]

        name = " ".join(part for part in (profile.first_name, profile.last_name) if part)
        kyc = format_kyc_status(session.kyc.status.status) if session.kyc else "❓ Not checked"
        text = (
            "👤 *Your Profile*\n\n"
            f"*Name:* {escape_md(name or 'N/A')}\n"
            f"*Email:* {escape_md(profile.email or 'N/A')}\n"
            f"*Account Type:* {escape_md(profile.type or 'N/A')}\n"
            f"*KYC:* {kyc}\n"
            f"*Wallet Address:* `{format_wallet_address(profile.wallet_address)}`"
        )
        return [Reply(text=text, buttons=[[button("🆔 KYC", ActionKind.KYC)], main_menu_row()])]

    async def kyc(self, session: Session, arg: str | None = None) -> list[Reply]:
        """Fetch a fresh KYC status and refresh the guard cache with it."""
        auth = session.active_auth()
        if auth is None or not auth.email:
            return [Reply(text="❓ KYC status is not available for this account.")]

        status = await self.call(self.ctx.kyc_api.get_status(auth.access_token, auth.email))
        session.kyc = KycCache(status=status, fetched_at=utc_now())

        lines = ["💼 *KYC Verification Status*", "", f"*Status:* {format_kyc_status(status.status)}"]
        if status.level is not None:
            lines.append(f"*Verification Level:* {escape_md(str(status.level))}")
        if status.limits is not None:
            limits = status.limits
            lines += ["", "*Transaction Limits:*"]
            if limits.daily is not None:
                lines.append(f"• Daily: ${format_currency(limits.daily)}")
            if limits.monthly is not None:
                lines.append(f"• Monthly: ${format_currency(limits.monthly)}")
            if limits.per_transaction is not None:
                lines.append(f"• Per transaction: ${format_currency(limits.per_transaction)}")
        if status.rejection_reason:
            lines += ["", f"*Reason:* {escape_md(status.rejection_reason)}"]
        if status.next_steps:
            lines += ["", "*Next Steps:*"]
            lines += [f"• {escape_md(step)}" for step in status.next_steps]
        if not status.is_verified:
            lines += [
                "",
                "⚠️ *Action Required*",
                "Please visit the web portal to complete your verification.",
            ]
        return [Reply(text="\n".join(lines), buttons=[main_menu_row()])]

    # History

    async def history(self, session: Session, arg: str | None = None) -> list[Reply]:
        page = int(arg) if arg else 1
        limit = self.settings.history_page_size
        result = await self.call(
            self.ctx.transfer_api.history(
                FlowHandler.token(session), page=page, limit=limit, type=session.history_filter
            )
        )
        flt = session.history_filter

        if not result.items:
            text = "🔍 *No Transactions Found*\n\n"
            text += f"No {flt} transactions found." if flt else "You don't have any transactions yet."
            rows: list[list[Button]] = []
            if flt:
                rows.append([button("Show All Transactions", ActionKind.FILTER_HISTORY, "all")])
            rows.append(main_menu_row())
            return [Reply(text=text, buttons=rows)]

        total_pages = max(1, ceil(result.total / limit))
        lines = [f"📋 *Transaction History*{f' ({flt})' if flt else ''}", f"Page {page} of {total_pages}"]
        for transfer in result.items:
            lines += ["", *self._transfer_lines(transfer)]

        pagination: list[Button] = []
        if page > 1:
            pagination.append(button("◀️ Previous", ActionKind.HISTORY_PAGE, str(page - 1)))
        if page < total_pages:
            pagination.append(button("Next ▶️", ActionKind.HISTORY_PAGE, str(page + 1)))

        rows = [pagination] if pagination else []
        rows.append(
            [button(f"🔎 {index}", ActionKind.TRANSACTION_DETAILS, transfer.id)
             for index, transfer in enumerate(result.items, start=1)]
        )
        rows.append(
            [button(HISTORY_FILTER_LABELS[name], ActionKind.FILTER_HISTORY, name)
             for name in HISTORY_FILTERS]
        )
        rows.append(main_menu_row())
        return [Reply(text="\n".join(lines), buttons=rows)]

    @staticmethod
    def _transfer_lines(transfer: Transfer) -> list[str]:
        incoming = transfer.type == "deposit"
        sign, marker = ("+", "🟢") if incoming else ("-", "🔴")
        lines = [
            f"{marker} {sign}{format_amount(transfer.amount)} - {escape_md(transfer.type.upper())}",
            f"└ {format_datetime(transfer.created_at)} • {format_network_name(transfer.network)}",
        ]
        if transfer.recipient:
            lines.append(f"└ {escape_md(transfer.recipient)}")
        lines.append(f"└ {format_transaction_status(transfer.status)}")
        return lines

    async def filter_history(self, session: Session, arg: str | None = None) -> list[Reply]:
        session.history_filter = None if arg in (None, "all") else arg
        return await self.history(session, None)

    async def transaction_details(self, session: Session, arg: str | None = None) -> list[Reply]:
        transfer = await self.call(
            self.ctx.transfer_api.details(FlowHandler.token(session), arg or "")
        )
        lines = [
            "🧾 *Transaction Details*",
            "",
            f"*ID:* `{transfer.id}`",
            f"*Type:* {escape_md(transfer.type.capitalize())}",
            f"*Status:* {format_transaction_status(transfer.status)}",
            f"*Amount:* {format_currency(transfer.amount)} {escape_md(transfer.currency)}",
        ]
        if transfer.fee is not None:
            lines.append(f"*Fee:* {format_currency(transfer.fee)} {escape_md(transfer.currency)}")
        lines.append(f"*Network:* {format_network_name(transfer.network)}")
        if transfer.recipient:
            lines.append(f"*Recipient:* {escape_md(transfer.recipient)}")
        lines.append(f"*Date:* {format_datetime(transfer.created_at)}")
        return [
            Reply(
                text="\n".join(lines),
                buttons=[[button("🔙 Back to History", ActionKind.HISTORY)], main_menu_row()],
            )
        ]

    # Points and referral

    async def points(self, session: Session, arg: str | None = None) -> list[Reply]:
        token = FlowHandler.token(session)
        auth = session.active_auth()
        total = await self.call(self.ctx.points_api.total_points(token, auth.email or ""))
        return [
            Reply(
                text=f"{POINTS_SUMMARY.format(total=total.total)}\n\nWhat would you like to do?",
                buttons=points_buttons(),
            )
        ]

    async def points_breakdown(self, session: Session, arg: str | None = None) -> list[Reply]:
        breakdown = await self.call(
            self.ctx.points_api.points_breakdown(FlowHandler.token(session))
        )
        lines = ["📊 *Points Breakdown*", "", "*Transaction Points:*"]
        if breakdown.offramp_transfer_points:
            for index, item in enumerate(breakdown.offramp_transfer_points, start=1):
                lines += [
                    f"{index}. Amount: ${format_currency(item.amount_usd)}",
                    f"   Transactions: {item.no_of_transactions}",
                    f"   Multiplier: {item.multiplier}x",
                    f"   Points: {item.points}",
                ]
        else:
            lines.append("No transaction points yet.")
        lines += ["", "*Referral Points:*"]
        if breakdown.payout_referral_points:
            for index, item in enumerate(breakdown.payout_referral_points, start=1):
                lines += [
                    f"{index}. Reference: {escape_md(item.reference)}",
                    f"   Total Transactions: {item.total_transactions}",
                    f"   Transaction Points: {item.transaction_points}",
                    f"   Referral Points: {item.referral_points}",
                    f"   Total Points: {item.total_points}",
                ]
        else:
            lines.append("No referral points yet. Share your referral code to earn points!")
        return [
            Reply(
                text="\n".join(lines),
                buttons=[
                    [button("🔗 My Referral Code", ActionKind.SHOW_REFERRAL_CODE)],
                    [button("⬅️ Back to Points", ActionKind.POINTS)],
                ],
            )
        ]

    async def referral_code(self, session: Session, arg: str | None = None) -> list[Reply]:
        organization = await self.call(
            self.ctx.points_api.organization(FlowHandler.token(session))
        )
        back = [[button("⬅️ Back to Points", ActionKind.POINTS)]]
        if not organization.referral_code:
            return [Reply(text=NO_REFERRAL_CODE, buttons=back)]
        code = organization.referral_code
        link = f"{self.settings.referral_signup_url}?referral={code}"
        return [
            Reply(
                text=REFERRAL_CODE.format(code=code, link=escape_md(link)),
                buttons=back,
            )
        ]

    # Flow entry points

    async def send(self, session: Session, arg: str | None = None) -> list[Reply]:
        return self.engine.start_flow(session, FlowKind.SEND).replies

    async def withdraw(self, session: Session, arg: str | None = None) -> list[Reply]:
        return self.engine.start_flow(session, FlowKind.WITHDRAW).replies

    async def deposit(self, session: Session, arg: str | None = None) -> list[Reply]:
        return self.engine.start_flow(session, FlowKind.DEPOSIT).replies

    async def apply_referral_code(self, session: Session, arg: str | None = None) -> list[Reply]:
        return self.engine.start_flow(session, FlowKind.REFERRAL).replies

    # Admin

    async def admin(self, session: Session, arg: str | None = None) -> list[Reply]:
        user_ids = await self.ctx.session_service.list_user_ids()
        text = (
            "🛠 *Admin Panel*\n\n"
            f"Known users: {len(user_ids)}\n"
            f"Session backend: {escape_md(self.settings.session_backend)}"
        )
        return [
            Reply(
                text=text,
                buttons=[[button("📢 Broadcast", ActionKind.ADMIN_BROADCAST)], main_menu_row()],
            )
        ]

    async def admin_broadcast(self, session: Session, arg: str | None = None) -> list[Reply]:
        return self.engine.start_flow(session, FlowKind.BROADCAST).replies
