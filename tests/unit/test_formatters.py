"""
Unit tests for presentation formatters.
"""

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

from app.utils.formatters import (
    escape_md,
    format_amount,
    format_currency,
    format_datetime,
    format_kyc_status,
    format_network_name,
    format_transaction_status,
    format_wallet_address,
    truncate_with_ellipsis,
)


class TestCurrency:
    """Test amount formatting."""

    def test_two_decimals(self):
        assert format_currency(Decimal("50")) == "50.00"
        assert format_currency("12.345") == "12.35"

    def test_thousands_separator(self):
        assert format_currency(Decimal("1234567.8")) == "1,234,567.80"

    def test_bad_input(self):
        assert format_currency("abc") == "0.00"
        assert format_currency(None) == "0.00"
        assert format_currency("NaN") == "0.00"

    def test_amount_has_currency(self):
        assert format_amount(Decimal("5")) == "5.00 USDC"


class TestText:
    """Test text helpers."""

    def test_escape_md(self):
        assert escape_md("a_b*c`d[e") == "a\\_b\\*c\\`d\\[e"
        assert escape_md(None) == ""

    def test_truncate(self):
        assert truncate_with_ellipsis("0123456789abcdef") == "012345...cdef"
        assert truncate_with_ellipsis("short") == "short"

    def test_wallet_address(self):
        address = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
        assert format_wallet_address(address) == "0x742d35...f0bEb0"
        assert format_wallet_address(None) == "N/A"


class TestLabels:
    """Test network and status labels."""

    def test_known_network(self):
        assert format_network_name("BSC") == "BNB Chain"

    def test_unknown_network(self):
        assert format_network_name("sepolia") == "Sepolia"
        assert format_network_name("") == "N/A"

    def test_transaction_status(self):
        assert format_transaction_status("completed") == "✅ Completed"
        assert format_transaction_status("on_hold") == "❓ On_hold"
        assert format_transaction_status(None) == "❓ Unknown"

    def test_kyc_status(self):
        assert format_kyc_status("verified") == "✅ Verified"
        assert format_kyc_status("rejected") == "❌ Rejected"


class TestDatetime:
    """Test timestamp formatting."""

    def test_converted_to_utc(self):
        value = datetime(2024, 1, 31, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_datetime(value) == "2024-01-31 12:00 UTC"

    def test_naive_is_utc(self):
        assert format_datetime(datetime(2024, 1, 31, 12, 5)) == "2024-01-31 12:05 UTC"

    def test_none(self):
        assert format_datetime(None) == "N/A"
        assert format_datetime(datetime(2024, 1, 1, tzinfo=UTC)) == "2024-01-01 00:00 UTC"
