"""
Validators package.

Provides common validation functions for user input.
"""

from app.validators.common import (
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


__all__ = [
    "is_valid_amount",
    "is_valid_bank_details",
    "is_valid_email",
    "is_valid_network",
    "is_valid_otp",
    "is_valid_referral_code",
    "is_valid_wallet_address",
    "parse_amount",
    "parse_bank_details",
]
