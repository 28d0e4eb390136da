"""
TimeLock Events

Observable events for external indexers:

    Locked(account, lock_index, amount)
    Unlocked(account, lock_index, amount)

Events are appended to a hash-chained log. Each entry links to its
predecessor (entry_hash = sha256(prev_entry_hash || payload_hash)) and may
be signed with the service's Ed25519 event key, so a consumer holding the
exported entries can detect reordering, deletion or tampering.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .keys import EventSigner, verify_ed25519
from .util import canonicalize, sha256_hex

logger = logging.getLogger(__name__)


class EventName(str, Enum):
    LOCKED = "Locked"
    UNLOCKED = "Unlocked"


@dataclass(frozen=True)
class LockEvent:
    name: EventName
    account: str
    lock_index: int
    amount: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name.value,
            "account": self.account,
            "lock_index": self.lock_index,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


@dataclass
class EventEntry:
    """One hash-chained log entry."""
    seq: int
    event: LockEvent
    payload_hash: str
    prev_entry_hash: Optional[str]
    entry_hash: str
    signatures: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "event": self.event.to_dict(),
            "payload_hash": self.payload_hash,
            "prev_entry_hash": self.prev_entry_hash,
            "entry_hash": self.entry_hash,
            "signatures": [dict(s) for s in self.signatures],
        }


def chain_entry_hash(prev_entry_hash: Optional[str], payload_hash: str) -> str:
    """
    Compute the hash chain entry hash.

    Args:
        prev_entry_hash: Hash of the previous entry (or None for first)
        payload_hash: Hash of the current payload

    Returns:
        SHA-256 hash of the concatenated hashes
    """
    data = (prev_entry_hash or "").encode("utf-8") + payload_hash.encode("utf-8")
    return sha256_hex(data)


class InMemoryEventLog:
    """
    Append-only event log with subscribers.

    Subscribers are called synchronously after the entry is appended; a
    failing subscriber is logged and does not affect the log or the other
    subscribers.
    """

    def __init__(self, signer: Optional[EventSigner] = None):
        self.signer = signer
        self._entries: List[EventEntry] = []
        self._subscribers: List[Callable[[LockEvent], None]] = []
        self._lock = threading.RLock()

    @property
    def public_key_b64(self) -> Optional[str]:
        return self.signer.public_key_b64 if self.signer else None

    def append(self, event: LockEvent) -> EventEntry:
        with self._lock:
            prev = self._entries[-1].entry_hash if self._entries else None
            payload_hash = sha256_hex(canonicalize(event.to_dict()))
            entry_hash = chain_entry_hash(prev, payload_hash)
            signatures = []
            if self.signer is not None:
                kid, sig_b64 = self.signer.sign(entry_hash.encode("utf-8"))
                signatures.append({"kid": kid, "alg": "ed25519", "sig_b64": sig_b64})
            entry = EventEntry(
                seq=len(self._entries),
                event=event,
                payload_hash=payload_hash,
                prev_entry_hash=prev,
                entry_hash=entry_hash,
                signatures=signatures,
            )
            self._entries.append(entry)
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("event subscriber failed for %s", event.name.value)

        return entry

    def subscribe(self, callback: Callable[[LockEvent], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def entries(self) -> List[EventEntry]:
        with self._lock:
            return list(self._entries)

    def query(
        self,
        name: Optional[EventName] = None,
        account: Optional[str] = None
    ) -> List[LockEvent]:
        """Events filtered by name and/or account, in emission order."""
        events = [e.event for e in self.entries()]
        if name is not None:
            events = [e for e in events if e.name == EventName(name)]
        if account is not None:
            events = [e for e in events if e.account == account]
        return events

    def latest_entry_hash(self) -> Optional[str]:
        with self._lock:
            return self._entries[-1].entry_hash if self._entries else None

    def export(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self.entries()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def verify_event_chain(
    entries: List[Dict[str, Any]],
    public_key_b64: Optional[str] = None
) -> Tuple[bool, str]:
    """
    Verify an exported event log.

    Args:
        entries: Output of InMemoryEventLog.export()
        public_key_b64: If given, every entry must carry a valid signature
            from this key

    Returns:
        (valid, reason)
    """
    prev = None
    for position, entry in enumerate(entries):
        if entry.get("seq") != position:
            return False, f"Entry {position}: sequence gap"
        if entry.get("prev_entry_hash") != prev:
            return False, f"Entry {position}: broken link to previous entry"

        payload_hash = sha256_hex(canonicalize(entry.get("event", {})))
        if payload_hash != entry.get("payload_hash"):
            return False, f"Entry {position}: payload hash mismatch"

        entry_hash = chain_entry_hash(prev, payload_hash)
        if entry_hash != entry.get("entry_hash"):
            return False, f"Entry {position}: entry hash mismatch"

        if public_key_b64 is not None:
            sigs = entry.get("signatures") or []
            if not sigs:
                return False, f"Entry {position}: missing signature"
            if not verify_ed25519(sigs[0].get("sig_b64", ""), entry_hash.encode("utf-8"), public_key_b64):
                return False, f"Entry {position}: invalid signature"

        prev = entry_hash

    return True, "VALID"
