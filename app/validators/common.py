"""
Common validators for user input.

All functions are pure and total: they never raise, whatever the input.
Predicates return bool; parsers return the parsed value or None.
"""

import re
from decimal import Decimal, InvalidOperation

from app.config.business_constants import AMOUNT_MAX_DECIMALS
from app.models.api import BankDetails


# Lengths accepted by the permissive wallet check
WALLET_MIN_LENGTH = 26
WALLET_MAX_LENGTH = 64

_ALNUM_RE = re.compile(r"[A-Za-z0-9]+")
_EVM_RE = re.compile(r"0x[a-fA-F0-9]{40}")
_SOLANA_RE = re.compile(r"[1-9A-HJ-NP-Za-km-z]{32,44}")
_TRON_RE = re.compile(r"T[A-Za-z1-9]{33}")
_AMOUNT_RE = re.compile(r"(0|[1-9][0-9]*)(\.[0-9]+)?")
_OTP_RE = re.compile(r"[0-9]{4,8}")
_REFERRAL_CODE_RE = re.compile(r"[A-Za-z0-9_\-]{3,32}")

# Keywords of the bank details heuristic; at least two must be present
BANK_DETAIL_KEYWORDS = ("account", "bank", "name")

_BANK_FIELD_PATTERNS = {
    "bank_name": re.compile(r"Bank Name:\s*([^\n]+)", re.IGNORECASE),
    "account_name": re.compile(r"Account (?:Holder|Name):\s*([^\n]+)", re.IGNORECASE),
    "account_number": re.compile(r"Account Number:\s*([^\n]+)", re.IGNORECASE),
    "routing_number": re.compile(r"(?:Routing/SWIFT|Routing|SWIFT):\s*([^\n]+)", re.IGNORECASE),
    "country": re.compile(r"Country:\s*([^\n]+)", re.IGNORECASE),
}


def is_valid_email(value: str | None) -> bool:
    """
    Validate email address (RFC-lite).

    Exactly one '@', non-empty local and domain parts, no whitespace.

    Examples:
        >>> is_valid_email("a@b.com")
        True
        >>> is_valid_email("a@@b.com")
        False
    """
    if not value or not isinstance(value, str):
        return False
    if any(ch.isspace() for ch in value):
        return False
    if value.count("@") != 1:
        return False
    local, domain = value.split("@")
    return bool(local) and bool(domain)


def is_valid_wallet_address(value: str | None, strict: bool = False) -> bool:
    """
    Validate wallet address.

    The permissive check only looks at length and alphabet; no
    network-specific checksum is verified. With strict=True the address must
    also match a known EVM, Solana or Tron format.

    Args:
        value: Address to check
        strict: Require a recognised network format

    Returns:
        True if the address is acceptable
    """
    if not value or not isinstance(value, str):
        return False
    if not WALLET_MIN_LENGTH <= len(value) <= WALLET_MAX_LENGTH:
        return False
    if not _ALNUM_RE.fullmatch(value):
        return False
    if strict:
        return bool(
            _EVM_RE.fullmatch(value) or _SOLANA_RE.fullmatch(value) or _TRON_RE.fullmatch(value)
        )
    return True


def parse_amount(value: str | None) -> Decimal | None:
    """
    Parse a user-entered amount.

    Accepts a positive decimal with at most AMOUNT_MAX_DECIMALS fractional
    digits and no leading zeros (except "0.x").

    Examples:
        >>> parse_amount("50")
        Decimal('50')
        >>> parse_amount("007") is None
        True
    """
    if not value or not isinstance(value, str):
        return None
    value = value.strip()
    if not _AMOUNT_RE.fullmatch(value):
        return None
    _, _, fraction = value.partition(".")
    if len(fraction) > AMOUNT_MAX_DECIMALS:
        return None
    try:
        amount = Decimal(value)
    except InvalidOperation:
        return None
    if amount <= 0:
        return None
    return amount


def is_valid_amount(value: str | None) -> bool:
    """Check that a string is a valid positive amount."""
    return parse_amount(value) is not None


def is_valid_bank_details(value: str | None) -> bool:
    """
    Heuristic bank details check.

    Requires at least two of "account", "bank", "name" (case-insensitive).
    """
    if not value or not isinstance(value, str):
        return False
    lowered = value.lower()
    hits = sum(1 for keyword in BANK_DETAIL_KEYWORDS if keyword in lowered)
    return hits >= 2


def parse_bank_details(value: str) -> BankDetails:
    """
    Extract labelled bank fields from free text.

    Unlabelled text is kept whole in `raw` so nothing the user typed is lost.
    """
    fields: dict[str, str] = {}
    for name, pattern in _BANK_FIELD_PATTERNS.items():
        match = pattern.search(value or "")
        if match:
            fields[name] = match.group(1).strip()
    return BankDetails(raw=(value or "").strip(), **fields)


def is_valid_otp(value: str | None) -> bool:
    """OTP codes are 4-8 digits."""
    if not value or not isinstance(value, str):
        return False
    return bool(_OTP_RE.fullmatch(value.strip()))


def is_valid_network(value: str | None, networks: list[str] | tuple[str, ...]) -> bool:
    """Check network id against the configured list (case-insensitive)."""
    if not value or not isinstance(value, str):
        return False
    return value.lower() in {n.lower() for n in networks}


def is_valid_referral_code(value: str | None) -> bool:
    """Referral codes are 3-32 letters, digits, '-' or '_'."""
    if not value or not isinstance(value, str):
        return False
    return bool(_REFERRAL_CODE_RE.fullmatch(value.strip()))
