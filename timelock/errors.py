"""
TimeLock Error Taxonomy

Every rejection raised by the escrow core is a TimeLockError carrying a
stable error code. Callers (the HTTP layer, the CLI, integrators) branch on
the code rather than on message text.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable rejection codes."""
    INVALID_SIGNATURE = "InvalidSignature"
    INVALID_SIGNER = "InvalidSigner"
    DEADLINE_EXPIRED = "DeadlineExpired"
    AUTHORIZATION_REUSED = "AuthorizationReused"
    LOCK_NOT_FOUND = "LockNotFound"
    NO_LOCKS_FOUND = "NoLocksFound"
    IN_LOCK_PERIOD = "InLockPeriod"
    ALREADY_RELEASED = "AlreadyReleased"
    UNAUTHORIZED = "Unauthorized"
    CONTRACT_PAUSED = "ContractPaused"
    TRANSFER_FAILED = "TransferFailed"
    RELEASE_MODE_MISMATCH = "ReleaseModeMismatch"


class TimeLockError(Exception):
    """Base class for all escrow rejections."""

    code: ErrorCode = None

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        self.message = message or self.code.value
        self.details = details or {}
        super().__init__(f"{self.code.value}: {self.message}")

    def to_dict(self) -> Dict[str, Any]:
        d = {"error": self.code.value, "detail": self.message}
        if self.details:
            d["details"] = self.details
        return d


class InvalidSignature(TimeLockError):
    code = ErrorCode.INVALID_SIGNATURE


class InvalidSigner(TimeLockError):
    """Recovered signer does not hold the role required for the action."""
    code = ErrorCode.INVALID_SIGNER


class DeadlineExpired(TimeLockError):
    code = ErrorCode.DEADLINE_EXPIRED


class AuthorizationReused(TimeLockError):
    """Authorization token was already consumed by an earlier call."""
    code = ErrorCode.AUTHORIZATION_REUSED


class LockNotFound(TimeLockError):
    code = ErrorCode.LOCK_NOT_FOUND


class NoLocksFound(TimeLockError):
    code = ErrorCode.NO_LOCKS_FOUND


class InLockPeriod(TimeLockError):
    code = ErrorCode.IN_LOCK_PERIOD


class AlreadyReleased(TimeLockError):
    code = ErrorCode.ALREADY_RELEASED


class Unauthorized(TimeLockError):
    code = ErrorCode.UNAUTHORIZED


class ContractPaused(TimeLockError):
    code = ErrorCode.CONTRACT_PAUSED


class TransferFailed(TimeLockError):
    code = ErrorCode.TRANSFER_FAILED


class ReleaseModeMismatch(TimeLockError):
    """Release sign-off supplied (or missing) against the deployment's release mode."""
    code = ErrorCode.RELEASE_MODE_MISMATCH
