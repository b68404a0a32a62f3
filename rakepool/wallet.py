"""
rakepool/wallet.py - Wallet identities and signed authentication messages.

Callers prove who they are by signing a short personal message (EIP-191)
that names their wallet and a millisecond timestamp:

    Sign this message to authenticate with rakepool

    Wallet: 0xAbC...
    Timestamp: 1707000000000

The cashier recovers the signer with eth-account and hands the checksummed
address to the escrow core as the caller identity.

Install: pip install rakepool (eth-account is a core dependency)
"""

import logging
import re
import time

logger = logging.getLogger(__name__)

AUTH_MESSAGE_PREFIX = "Sign this message to authenticate with rakepool"
DEFAULT_AUTH_MAX_AGE_SECONDS = 300

_TIMESTAMP_RE = re.compile(r"Timestamp: (\d+)")
_WALLET_RE = re.compile(r"Wallet: (0x[0-9a-fA-F]{40})")


class WalletAuthError(ValueError):
    """Raised when an auth message or signature does not check out."""


def _require_eth_account():
    """Import and return eth_account, raising a clear error if not installed."""
    try:
        import eth_account
        return eth_account
    except ImportError:
        raise ImportError(
            "eth-account is required for wallet operations. "
            "Install it with: pip install eth-account"
        )


def normalize_address(address: str) -> str:
    """Checksum an 0x address. Raises WalletAuthError on malformed input."""
    from eth_utils import is_address, to_checksum_address

    if not isinstance(address, str) or not is_address(address):
        raise WalletAuthError(f"Not a wallet address: {address!r}")
    return to_checksum_address(address)


def generate_wallet() -> tuple[str, str]:
    """Generate a new wallet.

    Returns:
        (address, private_key_hex) with the private key 0x-prefixed.
    """
    eth_account = _require_eth_account()
    account = eth_account.Account.create()
    key_hex = account.key.hex()
    if not key_hex.startswith("0x"):
        key_hex = "0x" + key_hex
    return (account.address, key_hex)


def load_wallet(config):
    """Load a LocalAccount from a RakepoolConfig's wallet section.

    Returns None if no private key is configured.
    """
    eth_account = _require_eth_account()

    if config.wallet is None or config.wallet.private_key is None:
        return None

    key = config.wallet.private_key
    if not key.startswith("0x"):
        key = "0x" + key

    return eth_account.Account.from_key(key)


# ============================================================================
# Auth messages
# ============================================================================


def build_auth_message(address: str, timestamp_ms: int | None = None) -> str:
    """The exact text a wallet signs to authenticate."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{AUTH_MESSAGE_PREFIX}\n\nWallet: {address}\nTimestamp: {timestamp_ms}"


def sign_auth_message(account, message: str) -> str:
    """Sign an auth message. Returns the 65-byte signature as 0x hex."""
    from eth_account.messages import encode_defunct

    signed = account.sign_message(encode_defunct(text=message))
    sig_hex = signed.signature.hex()
    if not sig_hex.startswith("0x"):
        sig_hex = "0x" + sig_hex
    return sig_hex


def encode_header_message(message: str) -> str:
    """HTTP headers cannot carry newlines; send them as a literal backslash-n."""
    return message.replace("\n", "\\n")


def decode_header_message(value: str) -> str:
    return value.replace("\\n", "\n")


def auth_headers(account, timestamp_ms: int | None = None) -> dict[str, str]:
    """Headers the cashier expects on every signed request."""
    message = build_auth_message(account.address, timestamp_ms)
    return {
        "X-Wallet-Address": account.address,
        "X-Wallet-Message": encode_header_message(message),
        "X-Wallet-Signature": sign_auth_message(account, message),
    }


def recover_signer(message: str, signature: str) -> str:
    """Recover the checksummed signer address of a personal-sign message."""
    eth_account = _require_eth_account()
    from eth_account.messages import encode_defunct

    try:
        return eth_account.Account.recover_message(
            encode_defunct(text=message), signature=signature
        )
    except Exception as e:
        raise WalletAuthError(f"Bad signature: {e}") from e


def verify_auth(
    address: str,
    message: str,
    signature: str,
    max_age_seconds: int = DEFAULT_AUTH_MAX_AGE_SECONDS,
    now_ms: int | None = None,
) -> str:
    """Check a signed auth message and return the authenticated address.

    The message must start with the rakepool prefix, name the same wallet,
    carry a timestamp no older than max_age_seconds (and not from the
    future beyond the same window), and be signed by that wallet.
    """
    claimed = normalize_address(address)

    if not message.startswith(AUTH_MESSAGE_PREFIX):
        raise WalletAuthError("Not a rakepool auth message")

    wallet_match = _WALLET_RE.search(message)
    if wallet_match is None or normalize_address(wallet_match.group(1)) != claimed:
        raise WalletAuthError("Message wallet does not match claimed address")

    ts_match = _TIMESTAMP_RE.search(message)
    if ts_match is None:
        raise WalletAuthError("Message has no timestamp")
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    age_ms = now_ms - int(ts_match.group(1))
    if abs(age_ms) > max_age_seconds * 1000:
        raise WalletAuthError(f"Auth message expired ({age_ms // 1000}s old)")

    signer = recover_signer(message, signature)
    if signer != claimed:
        logger.debug(f"Signature recovered {signer}, expected {claimed}")
        raise WalletAuthError("Signature does not match claimed address")

    return claimed
