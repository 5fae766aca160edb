"""Wallet address validation."""
import re
from cashback.utils.errors import WalletValidationError

# EVM hex address or base58 Solana public key
WALLET_ADDRESS_PATTERN = re.compile(r"^(0x[a-fA-F0-9]{40}|[1-9A-HJ-NP-Za-km-z]{32,44})$")


def is_valid_wallet_address(address: str) -> bool:
    return bool(address) and WALLET_ADDRESS_PATTERN.match(address) is not None


def validate_wallet_address(address: str) -> str:
    """
    Return the trimmed address.

    Raises:
        WalletValidationError: If the address is missing or malformed
    """
    address = (address or "").strip()
    if not address:
        raise WalletValidationError("Wallet address is required")
    if not is_valid_wallet_address(address):
        raise WalletValidationError("Invalid wallet address format")
    return address
