"""
rakepool/config.py - Local configuration management

Reads user config from a platform-appropriate config directory:
  - macOS/Linux: ~/.rakepool/config.toml
  - Windows: %APPDATA%\\rakepool\\config.toml

Example:
    [admin]
    default_rake_bps = 500
    creator_share_pct = 70
    admin_share_pct = 30

    [cashier]
    host = "127.0.0.1"
    port = 8000
    allow_faucet = false
    auth_max_age_seconds = 300

    [wallet]
    address = "0x..."
    private_key = "0x..."
"""

import logging
import os
import sys
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path

logger = logging.getLogger(__name__)

# ============================================================================
# Constants
# ============================================================================


def _get_config_dir() -> Path:
    """Get platform-appropriate config directory."""
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "rakepool"
    return Path.home() / ".rakepool"


CONFIG_DIR = _get_config_dir()
CONFIG_PATH = CONFIG_DIR / "config.toml"


# ============================================================================
# Data Types
# ============================================================================


@dataclass
class AdminDefaults:
    """Rake policy /admin/initialize falls back to for fields the request omits."""

    default_rake_bps: int = 500
    creator_share_pct: int = 70
    admin_share_pct: int = 30


@dataclass
class CashierConfig:
    """HTTP cashier settings."""

    host: str = "127.0.0.1"
    port: int = 8000
    allow_faucet: bool = False  # dev-only endpoint that mints test funds
    auth_max_age_seconds: int = 300


@dataclass
class WalletConfig:
    """Local wallet used to sign auth headers."""

    address: str | None = None
    private_key: str | None = None


@dataclass
class RakepoolConfig:
    """Top-level configuration."""

    admin: AdminDefaults
    cashier: CashierConfig
    wallet: WalletConfig | None = None

    def __init__(
        self,
        admin: AdminDefaults | None = None,
        cashier: CashierConfig | None = None,
        wallet: WalletConfig | None = None,
    ):
        self.admin = admin or AdminDefaults()
        self.cashier = cashier or CashierConfig()
        self.wallet = wallet


# ============================================================================
# Parsing
# ============================================================================


def _parse_admin(data: dict) -> AdminDefaults:
    _defaults = AdminDefaults()
    return AdminDefaults(
        default_rake_bps=data.get("default_rake_bps", _defaults.default_rake_bps),
        creator_share_pct=data.get("creator_share_pct", _defaults.creator_share_pct),
        admin_share_pct=data.get("admin_share_pct", _defaults.admin_share_pct),
    )


def _parse_cashier(data: dict) -> CashierConfig:
    _defaults = CashierConfig()
    return CashierConfig(
        host=data.get("host", _defaults.host),
        port=data.get("port", _defaults.port),
        allow_faucet=bool(data.get("allow_faucet", _defaults.allow_faucet)),
        auth_max_age_seconds=data.get("auth_max_age_seconds", _defaults.auth_max_age_seconds),
    )


def load_config(path: Path | None = None) -> RakepoolConfig:
    """
    Read config from TOML file.

    Args:
        path: Override config file path (default: ~/.rakepool/config.toml)

    Returns:
        RakepoolConfig. Missing file or bad TOML returns defaults.
    """
    config_path = path or CONFIG_PATH

    if not config_path.exists():
        return RakepoolConfig()

    try:
        with open(config_path, "rb") as f:
            raw = tomllib.load(f)
    except Exception as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return RakepoolConfig()

    admin = None
    if isinstance(raw.get("admin"), dict):
        admin = _parse_admin(raw["admin"])

    cashier = None
    if isinstance(raw.get("cashier"), dict):
        cashier = _parse_cashier(raw["cashier"])

    wallet = None
    if "wallet" in raw and isinstance(raw["wallet"], dict):
        wallet_data = raw["wallet"]
        wallet = WalletConfig(
            address=wallet_data.get("address"),
            private_key=wallet_data.get("private_key"),
        )

    return RakepoolConfig(admin=admin, cashier=cashier, wallet=wallet)


def apply_env_overrides(cashier: CashierConfig) -> CashierConfig:
    """Environment wins over config.toml for the cashier's runtime switches.

    Returns a copy; the config passed in is left untouched.
    """
    cashier = replace(cashier)
    faucet = os.environ.get("RAKEPOOL_ALLOW_FAUCET")
    if faucet is not None:
        cashier.allow_faucet = faucet.strip().lower() in ("1", "true", "yes")

    max_age = os.environ.get("RAKEPOOL_AUTH_MAX_AGE")
    if max_age:
        try:
            cashier.auth_max_age_seconds = int(max_age)
        except ValueError:
            logger.warning(f"Ignoring non-integer RAKEPOOL_AUTH_MAX_AGE={max_age!r}")

    return cashier
