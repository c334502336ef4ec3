"""
Business logic constants.

Defaults for settings and fixed identifiers shared by app.services and
bot handlers without circular dependencies.
"""

# Features reachable without verified KYC.
DEFAULT_KYC_EXEMPT_FEATURES = (
    "start",
    "help",
    "login",
    "logout",
    "profile",
    "balance",
    "wallets",
    "deposit",
    "kyc",
    "menu",
    "cancel",
)

DEFAULT_SUPPORTED_NETWORKS = (
    "ethereum",
    "solana",
    "polygon",
    "arbitrum",
    "base",
    "bsc",
    "avalanche",
)

# Network display names (id -> (name, symbol))
NETWORK_NAMES = {
    "ethereum": ("Ethereum", "ETH"),
    "solana": ("Solana", "SOL"),
    "polygon": ("Polygon", "MATIC"),
    "arbitrum": ("Arbitrum", "ARB"),
    "optimism": ("Optimism", "OP"),
    "base": ("Base", "ETH"),
    "bsc": ("BNB Chain", "BNB"),
    "avalanche": ("Avalanche", "AVAX"),
}

# Transfer kinds understood by the payments API
TRANSFER_KIND_SEND = "send"
TRANSFER_KIND_WALLET_WITHDRAW = "wallet_withdraw"
TRANSFER_KIND_BANK_WITHDRAW = "bank_withdraw"

# Currency label used in prompts
CURRENCY = "USDC"

# Amount precision accepted from users
AMOUNT_MAX_DECIMALS = 8

# Payments API calls one event may make while holding the session lock
# (token check, KYC lookup, submission)
LOCK_HOLD_API_CALLS = 3
LOCK_MARGIN_SECONDS = 5.0
