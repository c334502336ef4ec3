"""
Formatters utility.

Display strings for amounts, addresses, networks and statuses.
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.config.business_constants import CURRENCY, NETWORK_NAMES
from app.utils.datetime_utils import ensure_aware


TRANSACTION_STATUS_LABELS = {
    "pending": "⏳ Pending",
    "processing": "🔄 Processing",
    "completed": "✅ Completed",
    "success": "✅ Completed",
    "failed": "❌ Failed",
    "cancelled": "🚫 Cancelled",
}

KYC_STATUS_LABELS = {
    "not_started": "🆕 Not Started",
    "notstarted": "🆕 Not Started",
    "pending": "⏳ Pending",
    "verified": "✅ Verified",
    "rejected": "❌ Rejected",
    "expired": "⚠️ Expired",
}


def escape_md(text: str | None) -> str:
    """
    Escape special characters for Markdown V1.

    Escapes: _ * ` [

    Args:
        text: Input text

    Returns:
        Escaped text safe for Markdown
    """
    if not text:
        return ""
    return str(text).replace("_", "\\_").replace("*", "\\*").replace("`", "\\`").replace("[", "\\[")


def format_currency(value: Decimal | str | int | None, decimals: int = 2) -> str:
    """
    Format amount with fixed decimals.

    Args:
        value: Amount (Decimal, numeric string or int)
        decimals: Decimal places to show

    Returns:
        Formatted string like "12.50"; "0.00" for unparsable input
    """
    try:
        amount = Decimal(str(value)) if value is not None else Decimal("0")
    except InvalidOperation:
        amount = Decimal("0")
    if not amount.is_finite():
        amount = Decimal("0")
    quantum = Decimal(1).scaleb(-decimals)
    return f"{amount.quantize(quantum, rounding=ROUND_HALF_UP):,.{decimals}f}"


def format_amount(value: Decimal | str | int | None) -> str:
    """Amount with currency label, e.g. "50.00 USDC"."""
    return f"{format_currency(value)} {CURRENCY}"


def truncate_with_ellipsis(value: str | None, start_chars: int = 6, end_chars: int = 4) -> str:
    """Keep the head and tail of a long string."""
    if not value:
        return ""
    if len(value) <= start_chars + end_chars:
        return value
    return f"{value[:start_chars]}...{value[-end_chars:]}"


def format_wallet_address(address: str | None) -> str:
    if not address:
        return "N/A"
    return truncate_with_ellipsis(address, 8, 6)


def format_network_name(network: str | None) -> str:
    """
    Display name of a network.

    Known networks use their proper name, others are capitalised.
    """
    if not network:
        return "N/A"
    known = NETWORK_NAMES.get(network.lower())
    if known:
        return known[0]
    return network[:1].upper() + network[1:].lower()


def format_transaction_status(status: str | None) -> str:
    if not status:
        return "❓ Unknown"
    label = TRANSACTION_STATUS_LABELS.get(str(status).lower())
    if label:
        return label
    return f"❓ {str(status).capitalize()}"


def format_kyc_status(status: str | None) -> str:
    if not status:
        return "❓ Unknown"
    label = KYC_STATUS_LABELS.get(str(status).lower())
    if label:
        return label
    return f"❓ {str(status).capitalize()}"


def format_datetime(value: datetime | None) -> str:
    """Format timestamp as "2024-01-31 12:00 UTC"."""
    if value is None:
        return "N/A"
    return ensure_aware(value).astimezone(UTC).strftime("%Y-%m-%d %H:%M UTC")
