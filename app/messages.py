"""
User-facing texts and button layouts.

Texts use Markdown V1. Dynamic values must go through escape_md before
being interpolated.
"""

from app.models.api import WalletBalance
from app.models.reply import Button, Reply
from app.services.actions import Action, ActionKind
from app.utils.formatters import escape_md, format_currency, format_network_name


# Reply keyboard keywords -> command name
MENU_KEYWORDS = {
    "💰 Balance": "balance",
    "👛 Wallets": "wallets",
    "📤 Send": "send",
    "📥 Deposit": "deposit",
    "⬇️ Withdraw": "withdraw",
    "📋 History": "history",
    "👤 Profile": "profile",
    "💼 KYC Status": "kyc",
    "🏆 Points": "points",
    "❓ Help": "help",
}

MENU_KEYBOARD = [
    ["💰 Balance", "👛 Wallets"],
    ["📤 Send", "📥 Deposit"],
    ["⬇️ Withdraw", "📋 History"],
    ["👤 Profile", "💼 KYC Status"],
    ["🏆 Points", "❓ Help"],
]


WELCOME = (
    "👋 *Welcome to Copperx Payout*\n\n"
    "Manage your stablecoin finances right from Telegram!\n\n"
    "You can:\n"
    "• Check your balance\n"
    "• Send & receive funds\n"
    "• Deposit & withdraw\n"
    "• Manage your wallets\n"
    "• View transaction history\n\n"
    "To get started, please login."
)

HELP = (
    "📚 *Help Center*\n\n"
    "/start - Start the bot\n"
    "/login - Login to your account\n"
    "/balance - Check your balance\n"
    "/send - Send funds\n"
    "/withdraw - Withdraw funds\n"
    "/deposit - Get deposit address\n"
    "/history - View transaction history\n"
    "/wallets - View your wallets\n"
    "/kyc - Verify your identity\n"
    "/profile - Your account details\n"
    "/points - Points and referral code\n"
    "/cancel - Cancel the current operation\n"
    "/logout - Logout\n"
    "/help - Show this help message"
)

LOGIN_REQUIRED = "🔒 *Authentication Required*\n\nYou need to login first to use this feature."
SESSION_EXPIRED = "⌛ *Session Expired*\n\nYour session has expired. Please login again."
ALREADY_LOGGED_IN = "✅ You are already logged in as *{email}*."
LOGGED_OUT = "👋 You have been logged out."
ADMIN_ONLY = "⛔ This feature is available to administrators only."
CANCELLED = "❌ Operation cancelled."
NOTHING_TO_CANCEL = "There is no operation in progress."
GENERAL_ERROR = "Sorry, something went wrong. Please try again later."
BUSY = "⏳ Your previous request is still being processed. Please try again in a moment."
STALE_BUTTON = "This button is no longer active."
RESTART_FLOW = "Please start the operation again."

# Login
LOGIN_ENTER_EMAIL = "🔑 *Login to Copperx*\n\nPlease enter your email address:"
LOGIN_INVALID_EMAIL = "Please enter a valid email address."
LOGIN_OTP_SENT = (
    "📧 A one-time code was sent to *{email}*.\n\nPlease enter the code:"
)
LOGIN_INVALID_OTP = "The code must be 4 to 8 digits. Please check and try again."
LOGIN_WRONG_OTP = "❌ The code is invalid. {left} attempt(s) left."
LOGIN_TOO_MANY_ATTEMPTS = (
    "❌ Too many failed attempts. Please start the login again with /login."
)
LOGIN_SUCCESS = "✅ *Login successful!*\n\nWelcome, *{name}*."

# Transfers
SELECT_SEND_METHOD = "💸 *Send Funds*\n\nHow would you like to send?"
SELECT_WITHDRAW_METHOD = "⬇️ *Withdraw Funds*\n\nWhere would you like to withdraw to?"
ENTER_RECIPIENT_EMAIL = "Please enter the recipient's email address:"
ENTER_RECIPIENT_WALLET = "Please enter the recipient's wallet address:"
ENTER_WITHDRAW_WALLET = "Please enter the destination wallet address:"
INVALID_WALLET = "Please enter a valid wallet address."
ENTER_AMOUNT = "Please enter the amount in USDC (min {min}, max {max}):"
INVALID_AMOUNT = "Please enter a valid amount (up to 8 decimal places)."
AMOUNT_TOO_LOW = "The minimum amount is {min} USDC."
AMOUNT_TOO_HIGH = "The maximum amount is {max} USDC."
ENTER_BANK_DETAILS = (
    "🏦 Please enter your bank details in this format:\n\n"
    "Bank Name: ...\n"
    "Account Holder: ...\n"
    "Account Number: ...\n"
    "Routing/SWIFT: ...\n"
    "Country: ..."
)
INVALID_BANK_DETAILS = (
    "The bank details look incomplete. Please include at least the bank name, "
    "account holder name and account number."
)
SELECT_NETWORK = "🌐 Select the network to use:"
NO_WALLETS = "You have no wallets with a balance yet. Use /deposit to fund one."
UNSUPPORTED_NETWORK = "This network is currently unavailable."
INSUFFICIENT_BALANCE = (
    "You don't have enough funds on {network}: balance {balance} USDC, needed {amount} USDC."
)
SUBMITTED = (
    "✅ *Transfer submitted*\n\n"
    "Transfer ID: `{transfer_id}`\n"
    "Status: {status}"
)
SUBMITTED_AFTER_CANCEL = (
    "ℹ️ A transfer you confirmed earlier was still processed.\n\n"
    "Transfer ID: `{transfer_id}`\n"
    "Status: {status}"
)

# Deposit
SELECT_DEPOSIT_NETWORK = "📥 *Deposit*\n\nSelect the network you want to deposit on:"
DEPOSIT_ADDRESS = (
    "📥 *Deposit on {network}*\n\n"
    "Send USDC to this address:\n`{address}`\n\n"
    "{minimum}"
    "Only send funds on the {network} network."
)

# Broadcast
BROADCAST_ENTER_MESSAGE = "📢 *Broadcast*\n\nSend the message to deliver to all users:"
BROADCAST_EMPTY = "The message must not be empty."
BROADCAST_PREVIEW = "📢 *Broadcast preview*\n\n{message}\n\nSend to all users?"
BROADCAST_DONE = "✅ Broadcast sent to {sent} user(s), {failed} failed."

# Points and referral
POINTS_SUMMARY = (
    "🏆 *Your Points*\n\n"
    "Total Points: *{total}*\n\n"
    "Points can be earned by:\n"
    "• Making transactions on the platform\n"
    "• Referring new users with your referral code\n"
    "• Completing special promotions"
)
REFERRAL_CODE = (
    "🔗 *Your Referral Code*\n\n"
    "`{code}`\n\n"
    "Share this code with friends to earn bonus points: when someone signs up "
    "with your code, you both earn points.\n\n"
    "*Referral Link:*\n{link}"
)
NO_REFERRAL_CODE = "❌ You don't have a referral code yet. Please contact support."
REFERRAL_ENTER_CODE = "🎟 Please enter the referral code you want to apply:"
REFERRAL_INVALID_CODE = "A referral code is 3 to 32 letters, digits, dashes or underscores."
REFERRAL_REFUSED = "❌ The referral code could not be applied: {reason}"
REFERRAL_APPLIED = "✅ Referral code applied successfully! {message}"
DEFAULT_WALLET_SET = "✅ Default wallet updated."

# KYC
KYC_REQUIRED_TITLE = "⚠️ *KYC Verification Required*\n\n"
KYC_STATUS_MESSAGES = {
    "not_started": (
        "You need to complete KYC verification to access this feature. "
        "Please complete the verification process to unlock all features."
    ),
    "pending": (
        "Your KYC verification is pending. This feature will be unlocked once "
        "your verification is approved."
    ),
    "rejected": (
        "Your KYC verification was rejected. Please resubmit your verification details."
    ),
    "expired": (
        "Your KYC verification has expired. Please complete the verification process again."
    ),
}
KYC_HINT = "Use /kyc to start the verification process or check your status."


def button(text: str, kind: ActionKind, arg: str | None = None) -> Button:
    return Button(text=text, callback_data=Action(kind, arg).payload())


def cancel_row() -> list[Button]:
    return [button("❌ Cancel", ActionKind.CANCEL)]


def main_menu_row() -> list[Button]:
    return [button("🏠 Main Menu", ActionKind.MAIN_MENU)]


def retry_buttons() -> list[list[Button]]:
    return [[button("🔄 Retry", ActionKind.RETRY)], cancel_row()]


def login_buttons() -> list[list[Button]]:
    return [
        [button("🔑 Login to Copperx", ActionKind.LOGIN)],
        [button("❓ Help", ActionKind.HELP)],
    ]


def points_buttons() -> list[list[Button]]:
    return [
        [button("📊 View Points Breakdown", ActionKind.SHOW_POINTS_BREAKDOWN)],
        [button("🔗 My Referral Code", ActionKind.SHOW_REFERRAL_CODE)],
        [button("🎟 Apply Referral Code", ActionKind.APPLY_REFERRAL_CODE)],
        main_menu_row(),
    ]


def kyc_buttons() -> list[list[Button]]:
    return [[button("🆔 KYC Status", ActionKind.KYC)], main_menu_row()]


def main_menu_buttons(logged_in: bool, is_admin: bool = False) -> list[list[Button]]:
    """Inline main menu; login or logout row depending on auth state."""
    rows = [
        [button("💰 Balance", ActionKind.BALANCE), button("⬆️ Deposit", ActionKind.DEPOSIT)],
        [button("⬇️ Withdraw", ActionKind.WITHDRAW), button("💸 Send", ActionKind.SEND)],
        [button("📊 History", ActionKind.HISTORY), button("💼 Wallets", ActionKind.WALLETS)],
        [button("👤 Profile", ActionKind.PROFILE), button("🆔 KYC", ActionKind.KYC)],
        [button("🏆 Points", ActionKind.POINTS), button("ℹ️ Help", ActionKind.HELP)],
    ]
    if is_admin:
        rows.append([button("🛠 Admin", ActionKind.ADMIN)])
    if logged_in:
        rows.append([button("🚪 Logout", ActionKind.LOGOUT)])
    else:
        rows.insert(0, [button("🔑 Login", ActionKind.LOGIN)])
    return rows


def confirm_buttons(confirm: ActionKind, with_back: bool = True) -> list[list[Button]]:
    rows = [[button("✅ Confirm", confirm), button("❌ Cancel", ActionKind.CANCEL)]]
    if with_back:
        rows.append([button("🔙 Back", ActionKind.BACK)])
    return rows


def network_buttons(networks: list[str]) -> list[list[Button]]:
    """Network choice, two per row."""
    rows: list[list[Button]] = []
    for index in range(0, len(networks), 2):
        rows.append(
            [
                button(format_network_name(network), ActionKind.NETWORK, network)
                for network in networks[index:index + 2]
            ]
        )
    rows.append(cancel_row())
    return rows


def wallet_network_buttons(wallets: list[WalletBalance]) -> list[list[Button]]:
    """Network choice labelled with each wallet's balance."""
    rows: list[list[Button]] = []
    for index in range(0, len(wallets), 2):
        rows.append(
            [
                button(
                    f"{format_network_name(wallet.network)} ({format_currency(wallet.balance)})",
                    ActionKind.NETWORK,
                    wallet.network.lower(),
                )
                for wallet in wallets[index:index + 2]
            ]
        )
    rows.append(cancel_row())
    return rows


def kyc_denied_text(status: str, next_steps: list[str], status_label: str) -> str:
    """Deny message of the KYC guard for a non-verified status."""
    text = KYC_REQUIRED_TITLE + KYC_STATUS_MESSAGES.get(
        status, KYC_STATUS_MESSAGES["not_started"]
    )
    text += f"\n\nCurrent Status: {status_label}"
    if next_steps:
        text += "\n\nNext Steps:"
        for step in next_steps:
            text += f"\n• {escape_md(step)}"
    text += f"\n\n{KYC_HINT}"
    return text


def error_reply(reason: str) -> Reply:
    """Upstream failure with a retry affordance."""
    return Reply(text=f"⚠️ {escape_md(reason)}", buttons=retry_buttons())
