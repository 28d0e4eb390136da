"""
Input validation for the TimeLock HTTP service.

Turns untrusted request fields into core types, raising ValidationError
with the offending field name.
"""

import re
from typing import Any, Dict, Optional

from timelock.access import Role
from timelock.messages import DepositAuthorization, ReleaseAuthorization
from timelock.util import normalize_address


# ============================================================
# Input Validation
# ============================================================

SIGNATURE_PATTERN = re.compile(r'^(0x)?[a-fA-F0-9]{130}$')


class ValidationError(Exception):
    """Raised when input validation fails."""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def validate_address(value: Any, field_name: str) -> str:
    """
    Validate an account address.

    Returns:
        The EIP-55 checksum address

    Raises:
        ValidationError: If the value is not an address
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field_name, "must be a non-empty string")
    try:
        return normalize_address(value.strip())
    except ValueError:
        raise ValidationError(field_name, "must be a 20-byte hex address")


def validate_signature(value: Any, field_name: str = "signature") -> str:
    """Validate a 65-byte hex signature."""
    if not isinstance(value, str) or not SIGNATURE_PATTERN.match(value.strip()):
        raise ValidationError(field_name, "must be 65 bytes of hex")
    return value.strip()


def validate_role(value: Any) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationError("role", f"must be one of {[r.value for r in Role]}")


def caller_from_header(value: Optional[str]) -> str:
    """Calling identity from the X-Account header."""
    if value is None:
        raise ValidationError("X-Account", "header is required")
    return validate_address(value, "X-Account")


def parse_deposit_authorization(data: Dict[str, Any]) -> DepositAuthorization:
    try:
        return DepositAuthorization.from_dict(data)
    except (ValueError, TypeError) as e:
        raise ValidationError("authorization", str(e))


def parse_release_authorization(data: Dict[str, Any]) -> ReleaseAuthorization:
    try:
        return ReleaseAuthorization.from_dict(data)
    except (ValueError, TypeError) as e:
        raise ValidationError("authorization", str(e))
