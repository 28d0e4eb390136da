"""
TimeLock Escrow Service

Orchestrates the escrow entry points:

    lock(caller, amount, authorization, signature)
    unlock(caller, index[, authorization, signature])
    set_early_withdrawal(caller, account, index, allowed)
    pause(caller) / unpause(caller)
    grant_role(caller, role, account) / revoke_role(caller, role, account)

Every entry point is all-or-nothing. Effects on external collaborators
are journaled with a compensating action and undone if a later step
fails. The authorization token is claimed first, before any collaborator
is touched, and the claim is withdrawn on rollback, so a rejected call
never burns a token.

Lock state machine:
    CREATED -> RELEASED (terminal)
"""

import dataclasses
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from .access import AccessGuard, Role
from .collaborators import STATUS_ATTRIBUTE, BalanceHolder, CertificateStatus, CredentialRegistry
from .errors import (
    AlreadyReleased,
    ErrorCode,
    ReleaseModeMismatch,
    TimeLockError,
    TransferFailed,
    Unauthorized,
)
from .events import EventName, InMemoryEventLog, LockEvent
from .ledger import LockLedger, LockRecord
from .logging_config import audit_log
from .messages import DepositAuthorization, ReleaseAuthorization
from .policy import ReleasePolicy, validate_periods
from .replay import ConsumedTokenStore
from .typed_data import TypedDataDomain
from .util import normalize_address, now_epoch
from .verifier import AuthorizationVerifier, SignatureLike

logger = logging.getLogger(__name__)

DEFAULT_LOCK_PERIOD = 365 * 24 * 60 * 60
EARLY_LOCK_PERIOD = 30 * 24 * 60 * 60
DOMAIN_NAME = "GenericTypedMessage"
DOMAIN_VERSION = "1"
CHAIN_ID = 31337

SECURITY_CODES = {
    ErrorCode.INVALID_SIGNATURE,
    ErrorCode.INVALID_SIGNER,
    ErrorCode.AUTHORIZATION_REUSED,
    ErrorCode.UNAUTHORIZED,
}


class ReleaseMode(str, Enum):
    """How a deployment releases locks; fixed per deployment."""
    ELAPSED = "elapsed"     # caller unlocks once the release policy allows it
    SIGNED = "signed"       # additionally requires a signed release sign-off


@dataclass
class TimeLockSettings:
    """Construction-time configuration of one escrow deployment."""
    service_address: str
    admin: str
    default_lock_period: int = DEFAULT_LOCK_PERIOD
    early_lock_period: int = EARLY_LOCK_PERIOD
    domain_name: str = DOMAIN_NAME
    domain_version: str = DOMAIN_VERSION
    chain_id: int = CHAIN_ID
    release_mode: ReleaseMode = ReleaseMode.ELAPSED
    certifier_role: Role = Role.OPERATOR
    release_authorizer_role: Role = Role.OPERATOR

    def __post_init__(self):
        self.service_address = normalize_address(self.service_address)
        self.admin = normalize_address(self.admin)
        self.release_mode = ReleaseMode(self.release_mode)
        self.certifier_role = Role(self.certifier_role)
        self.release_authorizer_role = Role(self.release_authorizer_role)
        validate_periods(self.default_lock_period, self.early_lock_period)

    def domain(self) -> TypedDataDomain:
        return TypedDataDomain(
            name=self.domain_name,
            version=self.domain_version,
            chain_id=self.chain_id,
            verifying_contract=self.service_address,
        )


class _UndoJournal:
    """Compensating actions for effects applied so far, undone in reverse."""

    def __init__(self) -> None:
        self._actions: List[Tuple[Callable[..., Any], tuple]] = []

    def on_rollback(self, action: Callable[..., Any], *args: Any) -> None:
        self._actions.append((action, args))

    def rollback(self) -> None:
        while self._actions:
            action, args = self._actions.pop()
            try:
                action(*args)
            except Exception:
                logger.exception("compensating action %s failed", getattr(action, "__name__", action))


class TimeLock:
    """
    Custodial time-lock escrow.

    Usage:
        service = TimeLock(settings, token.client(settings.service_address))
        index = service.lock(account, 100, authorization, signature)
        ...
        service.unlock(account, index)
    """

    def __init__(
        self,
        settings: TimeLockSettings,
        balance_holder: BalanceHolder,
        credential_registry: Optional[CredentialRegistry] = None,
        token_store: Optional[ConsumedTokenStore] = None,
        event_log: Optional[InMemoryEventLog] = None,
        clock: Callable[[], int] = now_epoch,
        access: Optional[AccessGuard] = None,
    ):
        self.settings = settings
        self.address = settings.service_address
        self.balance_holder = balance_holder
        self.credential_registry = credential_registry
        self.access = access if access is not None else AccessGuard(settings.admin)
        self.ledger = LockLedger()
        self.policy = ReleasePolicy(self.ledger, settings.default_lock_period, settings.early_lock_period)
        self.verifier = AuthorizationVerifier(settings.domain(), token_store)
        self.events = event_log if event_log is not None else InMemoryEventLog()
        self._clock = clock
        self._mutex = threading.RLock()

    # ============================================================
    # Operation plumbing
    # ============================================================

    @contextmanager
    def _operation(self, name: str, caller: Optional[str]):
        """Serialize the operation and audit any rejection."""
        with self._mutex:
            try:
                yield
            except TimeLockError as e:
                audit_log.operation_rejected(name, caller, e.code.value, e.message)
                if e.code in SECURITY_CODES:
                    audit_log.security_event(e.code.value, severity="medium", operation=name, account=caller)
                raise

    @contextmanager
    def _atomic(self):
        journal = _UndoJournal()
        try:
            yield journal
        except Exception:
            journal.rollback()
            raise

    def _signer_with(self, role: Role) -> Callable[[str], bool]:
        return lambda account: self.access.has_role(role, account)

    def _pull(self, account: str, amount: int) -> None:
        try:
            ok = self.balance_holder.transfer_from(account, self.address, amount)
        except Exception as e:
            raise TransferFailed(f"transfer_from raised: {e}", {"account": account, "amount": amount}) from e
        if not ok:
            raise TransferFailed(
                f"Could not move {amount} from {account} into custody",
                {"account": account, "amount": amount}
            )

    def _push(self, account: str, amount: int) -> None:
        try:
            ok = self.balance_holder.transfer(account, amount)
        except Exception as e:
            raise TransferFailed(f"transfer raised: {e}", {"account": account, "amount": amount}) from e
        if not ok:
            raise TransferFailed(
                f"Could not return {amount} from custody to {account}",
                {"account": account, "amount": amount}
            )

    # ============================================================
    # Entry points
    # ============================================================

    def lock(
        self,
        caller: str,
        amount: int,
        authorization: DepositAuthorization,
        signature: SignatureLike
    ) -> int:
        """
        Lock amount of the caller's balance under a signed certificate.

        Args:
            caller: Account whose balance is locked (it must have approved
                the service on the balance holder)
            amount: Positive quantity to lock
            authorization: Deposit authorization signed by a certifier
            signature: Signature over the authorization's typed digest

        Returns:
            Index of the new lock record for caller

        Raises:
            ContractPaused, DeadlineExpired, InvalidSignature, InvalidSigner,
            AuthorizationReused, TransferFailed, ValueError
        """
        with self._operation("lock", caller):
            self.access.require_not_paused()
            caller = normalize_address(caller)
            if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
                raise ValueError("amount must be a positive integer")

            now = self._clock()
            self.verifier.check(authorization, signature, now, self._signer_with(self.settings.certifier_role))

            with self._atomic() as journal:
                self.verifier.consume(authorization, now)
                journal.on_rollback(self.verifier.release, authorization)

                self._pull(caller, amount)
                journal.on_rollback(self._push, caller, amount)

                index = self.ledger.create_lock(caller, amount, now)
                journal.on_rollback(self.ledger._discard_last, caller, index)
                record = self.ledger.get_lock(caller, index)

                if self.credential_registry is not None:
                    attributes = authorization.certificate_attributes()
                    attributes.update({
                        "amount": amount,
                        "lockIndex": index,
                        STATUS_ATTRIBUTE: CertificateStatus.ACTIVE.value,
                    })
                    record.certificate_id = self.credential_registry.mint(caller, attributes)

            self.events.append(LockEvent(EventName.LOCKED, caller, index, amount, now))
            audit_log.lock_created(caller, index, amount, record.certificate_id)
            return index

    def unlock(
        self,
        caller: str,
        index: int,
        authorization: Optional[ReleaseAuthorization] = None,
        signature: Optional[SignatureLike] = None
    ) -> LockRecord:
        """
        Release one of the caller's locks back to the caller.

        In SIGNED release mode a release sign-off for exactly this
        (account, index) is required; in ELAPSED mode none may be given.

        Returns:
            A snapshot of the released record

        Raises:
            ContractPaused, LockNotFound, AlreadyReleased, ReleaseModeMismatch,
            DeadlineExpired, InvalidSignature, InvalidSigner, AuthorizationReused,
            Unauthorized, InLockPeriod, TransferFailed
        """
        with self._operation("unlock", caller):
            self.access.require_not_paused()
            caller = normalize_address(caller)
            record = self.ledger.get_lock(caller, index)
            if record.released:
                raise AlreadyReleased(f"Lock {index} already released", {"account": caller, "index": index})

            now = self._clock()
            self._check_release_authorization(caller, index, authorization, signature, now)
            self.policy.require_releasable(record, now)

            with self._atomic() as journal:
                if authorization is not None:
                    self.verifier.consume(authorization, now)
                    journal.on_rollback(self.verifier.release, authorization)

                registry = self.credential_registry
                if registry is not None and record.certificate_id is not None:
                    registry.set_attribute(record.certificate_id, STATUS_ATTRIBUTE, CertificateStatus.COMPLETE.value)
                    journal.on_rollback(
                        registry.set_attribute, record.certificate_id, STATUS_ATTRIBUTE, CertificateStatus.ACTIVE.value
                    )

                self._push(caller, record.amount)

                record.released = True
                record.released_at = now

            self.events.append(LockEvent(EventName.UNLOCKED, caller, index, record.amount, now))
            audit_log.lock_released(caller, index, record.amount)
            return dataclasses.replace(record)

    def _check_release_authorization(
        self,
        caller: str,
        index: int,
        authorization: Optional[ReleaseAuthorization],
        signature: Optional[SignatureLike],
        now: int
    ) -> None:
        if self.settings.release_mode == ReleaseMode.ELAPSED:
            if authorization is not None or signature is not None:
                raise ReleaseModeMismatch("This deployment does not accept release sign-offs")
            return

        if authorization is None or signature is None:
            raise ReleaseModeMismatch("This deployment requires a signed release sign-off")

        self.verifier.check(authorization, signature, now, self._signer_with(self.settings.release_authorizer_role))

        if authorization.account != caller or authorization.lock_index != index:
            raise Unauthorized(
                "Release sign-off targets a different lock",
                {"account": authorization.account, "index": authorization.lock_index}
            )

    def set_early_withdrawal(self, caller: str, account: str, index: int, allowed: bool) -> LockRecord:
        """
        OPERATOR-only: allow (or revoke) early withdrawal of one lock.

        Raises:
            Unauthorized, LockNotFound, AlreadyReleased
        """
        with self._operation("set_early_withdrawal", caller):
            self.access.require_role(caller, Role.OPERATOR)
            record = self.policy.set_early_withdrawal(account, index, allowed)
            audit_log.early_withdrawal_changed(caller, record.account, index, bool(allowed))
            return dataclasses.replace(record)

    def pause(self, caller: str) -> bool:
        with self._operation("pause", caller):
            changed = self.access.pause(caller)
            if changed:
                audit_log.pause_changed(caller, True)
            return changed

    def unpause(self, caller: str) -> bool:
        with self._operation("unpause", caller):
            changed = self.access.unpause(caller)
            if changed:
                audit_log.pause_changed(caller, False)
            return changed

    def grant_role(self, caller: str, role: Role, account: str) -> bool:
        with self._operation("grant_role", caller):
            changed = self.access.grant_role(caller, role, account)
            if changed:
                audit_log.role_changed(caller, Role(role).value, account, True)
            return changed

    def revoke_role(self, caller: str, role: Role, account: str) -> bool:
        with self._operation("revoke_role", caller):
            changed = self.access.revoke_role(caller, role, account)
            if changed:
                audit_log.role_changed(caller, Role(role).value, account, False)
            return changed

    def set_credential_registry(self, caller: str, registry: CredentialRegistry) -> None:
        """
        DEFAULT_ADMIN-only: introduce the credential registry.

        A registry can be set once. Certificate ids on existing records only
        resolve in the registry that minted them, so it cannot be replaced
        or removed afterwards.

        Raises:
            Unauthorized, ValueError
        """
        with self._operation("set_credential_registry", caller):
            self.access.require_role(caller, Role.DEFAULT_ADMIN)
            if registry is None:
                raise ValueError("registry is required")
            if self.credential_registry is not None:
                raise ValueError("A credential registry is already set")
            self.credential_registry = registry

    def set_lock_periods(self, caller: str, default_period: int, early_period: int) -> None:
        """DEFAULT_ADMIN-only: reconfigure lock periods for every record."""
        with self._operation("set_lock_periods", caller):
            self.access.require_role(caller, Role.DEFAULT_ADMIN)
            self.policy.set_periods(default_period, early_period)

    # ============================================================
    # Read queries
    # ============================================================

    def get_user_last_lock(self, account: str) -> LockRecord:
        return dataclasses.replace(self.ledger.get_last_lock(account))

    def get_lock(self, account: str, index: int) -> LockRecord:
        return dataclasses.replace(self.ledger.get_lock(account, index))

    def certificate_status(self, account: str, index: int) -> Optional[CertificateStatus]:
        record = self.ledger.get_lock(account, index)
        if self.credential_registry is None or record.certificate_id is None:
            return None
        return CertificateStatus(self.credential_registry.get_attribute(record.certificate_id, STATUS_ATTRIBUTE))

    @property
    def default_lock_period(self) -> int:
        return self.policy.default_period

    @property
    def early_lock_period(self) -> int:
        return self.policy.early_period

    @property
    def domain_separator(self) -> bytes:
        return self.verifier.domain_separator

    @property
    def paused(self) -> bool:
        return self.access.paused

    def has_role(self, role: Role, account: str) -> bool:
        return self.access.has_role(role, account)


EscrowService = TimeLock
