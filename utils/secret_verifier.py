# utils/secret_verifier.py
import logging

from eth_account import Account

logger = logging.getLogger(__name__)


def address_from_secret(secret: str) -> str:
    """Derive the account address controlled by a hex private key."""
    key = secret if secret.lower().startswith('0x') else f"0x{secret}"
    return Account.from_key(key).address


def verify_secret_matches_address(secret: str, address: str) -> bool:
    try:
        derived = address_from_secret(secret)
    except (ValueError, TypeError) as e:
        logger.info(f"[secret_verifier] secret is not a valid private key: {e}")
        return False

    expected = address.lower()
    if not expected.startswith('0x'):
        expected = f"0x{expected}"
    return derived.lower() == expected
