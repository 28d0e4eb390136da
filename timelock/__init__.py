"""
TimeLock Escrow Reference Implementation

Version: 1.0.0

Custodial time-lock escrow for a fungible balance. A holder locks part of
their balance under a certificate signed off-ledger by an authorized
certifier; the lock can be released back to the holder once its lock
period has elapsed (or the shorter early-withdrawal period, when an
operator allowed it).

Every authorization is an EIP-712 style typed message bound to one
deployment's signing domain and carries a single-use token, so a
signature is accepted at most once.

Usage:
    from timelock import (
        AuthorizationSigner,
        InMemoryToken,
        TimeLock,
        TimeLockSettings,
    )

    settings = TimeLockSettings(service_address=escrow, admin=admin)
    service = TimeLock(settings, token.client(escrow))

    # Certifier issues a deposit authorization
    signer = AuthorizationSigner(certifier_key, settings.domain())
    auth, sig = signer.deposit_authorization(
        "Acme Inc.", tons=3, base_year=2024, base_month=1, timespan=12,
        deadline=now + 86400
    )

    # Holder approves the escrow on the token, then locks
    index = service.lock(holder, 100, auth, sig)

    # ... after the lock period
    service.unlock(holder, index)
"""

__version__ = "1.0.0"

from .access import AccessGuard, Role
from .collaborators import (
    BalanceHolder,
    CertificateStatus,
    CredentialRegistry,
    InMemoryCredentialRegistry,
    InMemoryToken,
)
from .errors import (
    AlreadyReleased,
    AuthorizationReused,
    ContractPaused,
    DeadlineExpired,
    ErrorCode,
    InLockPeriod,
    InvalidSignature,
    InvalidSigner,
    LockNotFound,
    NoLocksFound,
    ReleaseModeMismatch,
    TimeLockError,
    TransferFailed,
    Unauthorized,
)
from .events import EventName, InMemoryEventLog, LockEvent, verify_event_chain
from .keys import EventSigner
from .ledger import LockLedger, LockRecord
from .messages import DepositAuthorization, ReleaseAuthorization
from .policy import ReleasePolicy, can_release
from .replay import ConsumedTokenStore, InMemoryConsumedTokenStore, SqliteConsumedTokenStore
from .service import EscrowService, ReleaseMode, TimeLock, TimeLockSettings
from .signing import AuthorizationSigner, sign_typed_message
from .typed_data import TypedDataDomain, TypedSchema
from .verifier import AuthorizationVerifier

__all__ = [
    # Service
    "TimeLock",
    "EscrowService",
    "TimeLockSettings",
    "ReleaseMode",

    # Components
    "AccessGuard",
    "Role",
    "LockLedger",
    "LockRecord",
    "ReleasePolicy",
    "can_release",
    "AuthorizationVerifier",
    "ConsumedTokenStore",
    "InMemoryConsumedTokenStore",
    "SqliteConsumedTokenStore",

    # Typed messages
    "TypedDataDomain",
    "TypedSchema",
    "DepositAuthorization",
    "ReleaseAuthorization",
    "AuthorizationSigner",
    "sign_typed_message",

    # Collaborators
    "BalanceHolder",
    "CredentialRegistry",
    "CertificateStatus",
    "InMemoryToken",
    "InMemoryCredentialRegistry",

    # Events
    "EventName",
    "LockEvent",
    "InMemoryEventLog",
    "EventSigner",
    "verify_event_chain",

    # Errors
    "ErrorCode",
    "TimeLockError",
    "InvalidSignature",
    "InvalidSigner",
    "DeadlineExpired",
    "AuthorizationReused",
    "LockNotFound",
    "NoLocksFound",
    "InLockPeriod",
    "AlreadyReleased",
    "Unauthorized",
    "ContractPaused",
    "TransferFailed",
    "ReleaseModeMismatch",
]
