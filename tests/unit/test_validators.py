"""
Unit tests for input validators.

Tests cover:
- Email, OTP and wallet address predicates
- Amount parsing (precision, leading zeros, non-positive values)
- Bank details heuristic and field extraction
- Referral code format
- Trailing newlines never slip past an anchored pattern
- Totality: no validator raises on odd input
"""

from decimal import Decimal

import pytest

from app.validators import (
    is_valid_amount,
    is_valid_bank_details,
    is_valid_email,
    is_valid_network,
    is_valid_otp,
    is_valid_referral_code,
    is_valid_wallet_address,
    parse_amount,
    parse_bank_details,
)


class TestEmail:
    """Test email validation."""

    @pytest.mark.parametrize("value", ["a@b.com", "alice.smith@example.co.uk", "x@y"])
    def test_valid(self, value):
        assert is_valid_email(value) is True

    @pytest.mark.parametrize("value", ["", "plain", "a@@b.com", "@b.com", "a@", "a b@c.com", None])
    def test_invalid(self, value):
        assert is_valid_email(value) is False


class TestWalletAddress:
    """Test wallet address validation."""

    def test_evm_address_accepted(self):
        assert is_valid_wallet_address("0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0") is True

    def test_too_short_rejected(self):
        assert is_valid_wallet_address("0x1234") is False

    def test_too_long_rejected(self):
        assert is_valid_wallet_address("a" * 65) is False

    def test_non_alphanumeric_rejected(self):
        assert is_valid_wallet_address("0x742d35Cc6634C0532925a3b8-4Bc9e7595f0bEb0") is False

    def test_permissive_accepts_unknown_format(self):
        """Length and alphabet are enough without strict mode."""
        address = "Z" * 30
        assert is_valid_wallet_address(address) is True
        assert is_valid_wallet_address(address, strict=True) is False

    def test_strict_accepts_solana(self):
        assert is_valid_wallet_address("4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T", strict=True)

    @pytest.mark.parametrize("strict", [False, True])
    def test_trailing_newline_rejected(self, strict):
        address = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0\n"
        assert is_valid_wallet_address(address, strict=strict) is False
        assert is_valid_wallet_address("Z" * 30 + "\n") is False


class TestAmount:
    """Test amount parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("50", Decimal("50")),
            ("0.5", Decimal("0.5")),
            ("1.12345678", Decimal("1.12345678")),
            (" 10 ", Decimal("10")),
            ("50\n", Decimal("50")),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_amount(value) == expected
        assert is_valid_amount(value) is True

    @pytest.mark.parametrize(
        "value",
        ["0", "0.0", "-5", "007", "1.123456789", "1e3", "abc", "", "1,000", "1.", "5\n0", None],
    )
    def test_invalid(self, value):
        assert parse_amount(value) is None
        assert is_valid_amount(value) is False


class TestOtp:
    """Test OTP format validation."""

    @pytest.mark.parametrize("value", ["1234", "123456", "12345678"])
    def test_valid(self, value):
        assert is_valid_otp(value) is True

    @pytest.mark.parametrize("value", ["123", "123456789", "12a456", "", "12\n3456", None])
    def test_invalid(self, value):
        assert is_valid_otp(value) is False


class TestBankDetails:
    """Test bank details heuristic and parsing."""

    def test_two_keywords_are_enough(self):
        assert is_valid_bank_details("Bank: ACME, account 123") is True

    def test_one_keyword_is_not(self):
        assert is_valid_bank_details("my account 123") is False

    def test_parse_labelled_fields(self):
        text = (
            "Bank Name: ACME Bank\n"
            "Account Holder: Alice Smith\n"
            "Account Number: 12345678\n"
            "Routing/SWIFT: ACMEUS33\n"
            "Country: US"
        )
        details = parse_bank_details(text)
        assert details.bank_name == "ACME Bank"
        assert details.account_name == "Alice Smith"
        assert details.account_number == "12345678"
        assert details.routing_number == "ACMEUS33"
        assert details.country == "US"
        assert details.raw == text

    def test_parse_keeps_unlabelled_text(self):
        details = parse_bank_details("bank account of name Alice")
        assert details.bank_name is None
        assert details.raw == "bank account of name Alice"


class TestNetwork:
    """Test network id validation."""

    def test_case_insensitive(self):
        assert is_valid_network("Polygon", ["polygon", "base"]) is True

    def test_unknown(self):
        assert is_valid_network("dogechain", ["polygon", "base"]) is False
        assert is_valid_network(None, ["polygon"]) is False


class TestReferralCode:
    """Test referral code format."""

    @pytest.mark.parametrize("value", ["ABC", "alice_42", "FRIEND-7", " padded1 ", "x" * 32])
    def test_valid(self, value):
        assert is_valid_referral_code(value) is True

    @pytest.mark.parametrize("value", ["ab", "x" * 33, "two words", "code!", "", None])
    def test_invalid(self, value):
        assert is_valid_referral_code(value) is False


class TestTotality:
    """Validators never raise, whatever they are given."""

    @pytest.mark.parametrize(
        "value", [None, "", 42, 3.5, ["a"], "\x00", "\n", "0x1\n", "💸" * 100]
    )
    def test_no_exceptions(self, value):
        is_valid_email(value)
        is_valid_wallet_address(value)
        is_valid_wallet_address(value, strict=True)
        parse_amount(value)
        is_valid_otp(value)
        is_valid_bank_details(value)
        is_valid_network(value, ["polygon"])
        is_valid_referral_code(value)
