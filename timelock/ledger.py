"""
TimeLock Lock Ledger

Append-only, per-account ordered store of lock records. Indices are
0-based per account, stable, and never reused. Records are kept after
release for audit.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .errors import LockNotFound, NoLocksFound
from .util import normalize_address


@dataclass
class LockRecord:
    """One deposit event."""
    account: str
    index: int
    amount: int
    locked_at: int
    early_withdrawal_allowed: bool = False
    released: bool = False
    certificate_id: Optional[int] = None
    released_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class LockLedger:
    """
    Per-account lock records.

    Usage:
        ledger = LockLedger()
        index = ledger.create_lock(account, 100, locked_at=now)
        record = ledger.get_lock(account, index)
    """

    def __init__(self) -> None:
        self._locks: Dict[str, List[LockRecord]] = {}

    def create_lock(self, account: str, amount: int, locked_at: int) -> int:
        """
        Append a new unreleased record.

        Returns:
            The record's index for this account

        Raises:
            ValueError: If amount is not positive
        """
        if amount <= 0:
            raise ValueError("Lock amount must be positive")

        account = normalize_address(account)
        records = self._locks.setdefault(account, [])
        index = len(records)
        records.append(LockRecord(account=account, index=index, amount=amount, locked_at=locked_at))
        return index

    def get_lock(self, account: str, index: int) -> LockRecord:
        records = self._locks.get(normalize_address(account), [])
        if isinstance(index, bool) or not isinstance(index, int) or index < 0 or index >= len(records):
            raise LockNotFound(
                f"No lock {index} for {account}",
                {"account": account, "index": index}
            )
        return records[index]

    def get_last_lock(self, account: str) -> LockRecord:
        records = self._locks.get(normalize_address(account))
        if not records:
            raise NoLocksFound(f"No locks for {account}", {"account": account})
        return records[-1]

    def lock_count(self, account: str) -> int:
        return len(self._locks.get(normalize_address(account), []))

    def locks_of(self, account: str) -> List[LockRecord]:
        return list(self._locks.get(normalize_address(account), []))

    def accounts(self) -> List[str]:
        return list(self._locks)

    def _discard_last(self, account: str, index: int) -> None:
        """Roll back an uncommitted create_lock. Only the newest record can be discarded."""
        account = normalize_address(account)
        records = self._locks.get(account, [])
        if not records or records[-1].index != index or records[-1].released:
            raise RuntimeError("Can only discard the newest uncommitted lock")
        records.pop()
        if not records:
            del self._locks[account]
