"""
TimeLock Release Policy

Decides when a lock record may be released:

    released after  locked_at + default_period
    or, when an operator flagged the record for early withdrawal,
    released after  locked_at + early_period

early_period must not exceed default_period, otherwise the early
withdrawal flag could only delay a release.
"""

from .errors import AlreadyReleased, InLockPeriod
from .ledger import LockLedger, LockRecord


def can_release(record: LockRecord, now: int, default_period: int, early_period: int) -> bool:
    """Pure release predicate; ignores the released flag."""
    if now >= record.locked_at + default_period:
        return True
    return record.early_withdrawal_allowed and now >= record.locked_at + early_period


def validate_periods(default_period: int, early_period: int) -> None:
    if default_period < 0 or early_period < 0:
        raise ValueError("Lock periods must be non-negative")
    if early_period > default_period:
        raise ValueError("early_period must not exceed default_period")


class ReleasePolicy:
    """Release eligibility plus administration of the early-withdrawal flag."""

    def __init__(self, ledger: LockLedger, default_period: int, early_period: int):
        validate_periods(default_period, early_period)
        self.ledger = ledger
        self.default_period = default_period
        self.early_period = early_period

    def set_periods(self, default_period: int, early_period: int) -> None:
        validate_periods(default_period, early_period)
        self.default_period = default_period
        self.early_period = early_period

    def can_release(self, record: LockRecord, now: int) -> bool:
        if record.released:
            return False
        return can_release(record, now, self.default_period, self.early_period)

    def releasable_at(self, record: LockRecord) -> int:
        """Earliest time the record becomes releasable under the current flags."""
        if record.early_withdrawal_allowed:
            return record.locked_at + self.early_period
        return record.locked_at + self.default_period

    def require_releasable(self, record: LockRecord, now: int) -> None:
        """
        Raises:
            AlreadyReleased: If the record was released before
            InLockPeriod: If no release condition holds yet
        """
        if record.released:
            raise AlreadyReleased(
                f"Lock {record.index} already released",
                {"account": record.account, "index": record.index}
            )
        if not can_release(record, now, self.default_period, self.early_period):
            raise InLockPeriod(
                f"Lock {record.index} is still in its lock period",
                {"index": record.index, "releasable_at": self.releasable_at(record), "now": now}
            )

    def set_early_withdrawal(self, account: str, index: int, allowed: bool) -> LockRecord:
        """
        Set the early-withdrawal flag of exactly one record.

        Raises:
            LockNotFound: If the index is out of range
            AlreadyReleased: If the record was already released
        """
        record = self.ledger.get_lock(account, index)
        if record.released:
            raise AlreadyReleased(
                f"Lock {index} already released",
                {"account": record.account, "index": index}
            )
        record.early_withdrawal_allowed = bool(allowed)
        return record
