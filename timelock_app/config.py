"""
Configuration module for the TimeLock HTTP service.

Centralizes all configuration with environment variable support
and validation.
"""

import os
from pathlib import Path
from typing import Dict

from timelock.service import (
    CHAIN_ID,
    DEFAULT_LOCK_PERIOD,
    DOMAIN_NAME,
    DOMAIN_VERSION,
    EARLY_LOCK_PERIOD,
)

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("TIMELOCK_ENV", "dev")  # dev|stage|prod

# Signing domain
DOMAIN_NAME = os.getenv("TIMELOCK_DOMAIN_NAME", DOMAIN_NAME)
DOMAIN_VERSION = os.getenv("TIMELOCK_DOMAIN_VERSION", DOMAIN_VERSION)
CHAIN_ID = int(os.getenv("TIMELOCK_CHAIN_ID", str(CHAIN_ID)))

# Identities
SERVICE_ADDRESS = os.getenv("TIMELOCK_SERVICE_ADDRESS", "0x5FbDB2315678afecb367f032d93F642f64180aa3")
ADMIN_ADDRESS = os.getenv("TIMELOCK_ADMIN_ADDRESS", "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266")

# Lock periods (seconds)
DEFAULT_LOCK_PERIOD = int(os.getenv("DEFAULT_LOCK_PERIOD", str(DEFAULT_LOCK_PERIOD)))
EARLY_LOCK_PERIOD = int(os.getenv("EARLY_LOCK_PERIOD", str(EARLY_LOCK_PERIOD)))

RELEASE_MODE = os.getenv("TIMELOCK_RELEASE_MODE", "elapsed")  # elapsed|signed

# Paths
TOKEN_STORE_PATH = os.getenv("TOKEN_STORE_PATH", "data/timelock_tokens.db")
EVENT_SIGNING_KEY_PATH = os.getenv("EVENT_SIGNING_KEY_PATH", "")

# Rate limits (requests per minute)
LOCK_RPM = int(os.getenv("LOCK_RPM", "120"))
UNLOCK_RPM = int(os.getenv("UNLOCK_RPM", "120"))

LOG_LEVEL = os.getenv("TIMELOCK_LOG_LEVEL", "INFO")

# Dev only: "<address>:<amount>,..." funded on the in-memory token and
# pre-approved for the service. Ignored in prod.
DEV_BALANCES = os.getenv("TIMELOCK_DEV_BALANCES", "")


def parse_balances(spec: str) -> Dict[str, int]:
    """Parse "<address>:<amount>,..." into an address -> amount dict."""
    balances: Dict[str, int] = {}
    for item in spec.split(","):
        item = item.strip()
        if not item:
            continue
        address, sep, amount = item.partition(":")
        if not sep:
            raise ValueError(f"Expected <address>:<amount>, got {item!r}")
        balances[address.strip()] = int(amount)
    return balances


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Validate the configuration.
    Returns dict of check name -> passed.
    """
    from timelock.util import normalize_address

    def _is_address(value: str) -> bool:
        try:
            normalize_address(value)
            return True
        except ValueError:
            return False

    checks = {
        "service_address": _is_address(SERVICE_ADDRESS),
        "admin_address": _is_address(ADMIN_ADDRESS),
        "lock_periods": 0 <= EARLY_LOCK_PERIOD <= DEFAULT_LOCK_PERIOD,
        "release_mode": RELEASE_MODE in ("elapsed", "signed"),
    }

    if DEV_BALANCES:
        try:
            checks["dev_balances"] = all(_is_address(a) for a in parse_balances(DEV_BALANCES))
        except ValueError:
            checks["dev_balances"] = False

    if EVENT_SIGNING_KEY_PATH:
        checks["event_signing_key"] = Path(EVENT_SIGNING_KEY_PATH).exists()

    return checks


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("TIMELOCK_DEBUG", "").lower() in ("1", "true", "yes")
