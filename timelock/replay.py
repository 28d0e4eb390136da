"""
TimeLock Consumed Authorization Tokens

Tracks every authorization token consumed by a successful call so that a
signed message can never be replayed.

Retention is unbounded: tokens are never pruned. A message's deadline only
bounds how long an unconsumed token remains usable; once consumed it stays
in the store for the lifetime of the deployment.

The service claims a token before touching any collaborator, so a token
that another instance sharing the store consumed first is rejected before
any effect. If a later step of that call fails, the claim is withdrawn
with discard(); that is the only removal path.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional, Union

from .util import now_epoch


class ConsumedTokenStore(ABC):
    """
    Abstract interface for the consumed-token set.

    Implementations must be:
    - Append-only once committed (discard() only withdraws the claim of a
      call that is rolling back)
    - Consistent (a token is consumed at most once)
    """

    @abstractmethod
    def consume(self, token: bytes, consumed_at: Optional[int] = None) -> bool:
        """
        Record a token as consumed.

        Returns:
            True if the token was recorded (first use)
            False if the token was already consumed
        """
        pass

    @abstractmethod
    def is_consumed(self, token: bytes) -> bool:
        """Check if a token has been consumed."""
        pass

    @abstractmethod
    def discard(self, token: bytes) -> None:
        """Withdraw the claim on a token whose call did not commit."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class InMemoryConsumedTokenStore(ConsumedTokenStore):
    """
    In-memory token store for development/testing.

    Not persistent across restarts; use SqliteConsumedTokenStore where the
    service must survive a restart without reopening replay windows.
    """

    def __init__(self):
        self._consumed: Dict[bytes, int] = {}
        self._lock = threading.Lock()

    def consume(self, token: bytes, consumed_at: Optional[int] = None) -> bool:
        with self._lock:
            if token in self._consumed:
                return False
            self._consumed[token] = consumed_at if consumed_at is not None else now_epoch()
            return True

    def is_consumed(self, token: bytes) -> bool:
        with self._lock:
            return token in self._consumed

    def discard(self, token: bytes) -> None:
        with self._lock:
            self._consumed.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._consumed)


class SqliteConsumedTokenStore(ConsumedTokenStore):
    """
    SQLite-backed token store.

    Uses INSERT OR IGNORE on a primary key so check-and-insert is atomic.
    """

    def __init__(self, path: Union[str, Path] = "data/timelock_tokens.db"):
        self._path = str(path)
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._lock = threading.RLock()
        self._init_schema()

    @contextmanager
    def _transaction(self):
        """Commit on success, roll back on failure."""
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _init_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS consumed_tokens (
                token TEXT PRIMARY KEY,
                consumed_at INTEGER NOT NULL
            );""")

    def consume(self, token: bytes, consumed_at: Optional[int] = None) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO consumed_tokens(token, consumed_at) VALUES(?,?)",
                (token.hex(), consumed_at if consumed_at is not None else now_epoch())
            )
            return cur.rowcount == 1

    def is_consumed(self, token: bytes) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "SELECT 1 FROM consumed_tokens WHERE token=?", (token.hex(),)
            )
            return cur.fetchone() is not None

    def discard(self, token: bytes) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM consumed_tokens WHERE token=?", (token.hex(),))

    def __len__(self) -> int:
        with self._lock:
            cur = self._conn.execute("SELECT COUNT(*) FROM consumed_tokens")
            return cur.fetchone()[0]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
