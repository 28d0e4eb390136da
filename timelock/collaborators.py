"""
TimeLock External Collaborators

The escrow reaches the balance holder and the credential registry only
through the narrow interfaces below. In-memory reference implementations
are provided for tests, the CLI and the demo HTTP service; production
deployments plug in clients for the real systems.

The in-memory token mirrors an ERC-20: calls are made *by* someone, so the
escrow talks to it through a TokenClient bound to the escrow's own address.
The same holds for the credential registry and its RegistryClient.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

from .access import AccessGuard, Role
from .errors import Unauthorized
from .util import normalize_address


class CertificateStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETE = "COMPLETE"


STATUS_ATTRIBUTE = "status"


class BalanceHolder(ABC):
    """Fungible balance holder as seen by the escrow."""

    @abstractmethod
    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        """Move amount from sender (who approved the escrow) to recipient."""
        pass

    @abstractmethod
    def transfer(self, recipient: str, amount: int) -> bool:
        """Move amount from the escrow's own custody to recipient."""
        pass

    @abstractmethod
    def balance_of(self, account: str) -> int:
        pass


class CredentialRegistry(ABC):
    """Certificate registry as seen by the escrow."""

    @abstractmethod
    def mint(self, owner: str, attributes: Dict[str, Any]) -> int:
        """Create a certificate and return its identifier."""
        pass

    @abstractmethod
    def set_attribute(self, certificate_id: int, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def get_attribute(self, certificate_id: int, key: str) -> Any:
        pass


# ============================================================
# In-memory balance holder
# ============================================================

class InMemoryToken:
    """
    Minimal ERC-20 style ledger.

    Transfers return False (rather than raising) on insufficient balance or
    allowance, which is what the escrow's transfer interface expects.
    """

    def __init__(self, symbol: str = "cRECY", balances: Optional[Dict[str, int]] = None):
        self.symbol = symbol
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[tuple, int] = {}
        self._lock = threading.RLock()
        for account, amount in (balances or {}).items():
            self.mint(account, amount)

    def mint(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        account = normalize_address(account)
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self._balances.get(normalize_address(account), 0)

    def total_supply(self) -> int:
        with self._lock:
            return sum(self._balances.values())

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        with self._lock:
            self._allowances[(normalize_address(owner), normalize_address(spender))] = amount
        return True

    def allowance(self, owner: str, spender: str) -> int:
        with self._lock:
            return self._allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    def transfer(self, caller: str, recipient: str, amount: int) -> bool:
        with self._lock:
            return self._move(normalize_address(caller), normalize_address(recipient), amount)

    def transfer_from(self, caller: str, sender: str, recipient: str, amount: int) -> bool:
        caller = normalize_address(caller)
        sender = normalize_address(sender)
        with self._lock:
            allowed = self._allowances.get((sender, caller), 0)
            if amount > allowed:
                return False
            if not self._move(sender, normalize_address(recipient), amount):
                return False
            self._allowances[(sender, caller)] = allowed - amount
            return True

    def _move(self, sender: str, recipient: str, amount: int) -> bool:
        if amount < 0 or self._balances.get(sender, 0) < amount:
            return False
        self._balances[sender] = self._balances.get(sender, 0) - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        return True

    def client(self, caller: str) -> 'TokenClient':
        return TokenClient(self, caller)


class TokenClient(BalanceHolder):
    """BalanceHolder view of an InMemoryToken for one calling identity."""

    def __init__(self, token: InMemoryToken, caller: str):
        self.token = token
        self.caller = normalize_address(caller)

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        return self.token.transfer_from(self.caller, sender, recipient, amount)

    def transfer(self, recipient: str, amount: int) -> bool:
        return self.token.transfer(self.caller, recipient, amount)

    def balance_of(self, account: str) -> int:
        return self.token.balance_of(account)


# ============================================================
# In-memory credential registry
# ============================================================

class InMemoryCredentialRegistry:
    """
    Certificate store with per-certificate attribute mappings.

    Minting and attribute updates require MINTER or OPERATOR on the
    registry's own access table.
    """

    def __init__(self, admin: str):
        self.access = AccessGuard(admin, initial_roles=(Role.DEFAULT_ADMIN, Role.MINTER))
        self._owners: Dict[int, str] = {}
        self._attributes: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def _require_writer(self, caller: str) -> None:
        if not (self.access.has_role(Role.MINTER, caller) or self.access.has_role(Role.OPERATOR, caller)):
            raise Unauthorized(f"{caller} may not write certificates", {"account": caller})

    def mint(self, caller: str, owner: str, attributes: Dict[str, Any]) -> int:
        self._require_writer(caller)
        owner = normalize_address(owner)
        with self._lock:
            certificate_id = next(self._ids)
            self._owners[certificate_id] = owner
            self._attributes[certificate_id] = dict(attributes)
            return certificate_id

    def set_attribute(self, caller: str, certificate_id: int, key: str, value: Any) -> None:
        self._require_writer(caller)
        with self._lock:
            if certificate_id not in self._attributes:
                raise KeyError(f"Unknown certificate {certificate_id}")
            self._attributes[certificate_id][key] = value

    def get_attribute(self, certificate_id: int, key: str) -> Any:
        with self._lock:
            if certificate_id not in self._attributes:
                raise KeyError(f"Unknown certificate {certificate_id}")
            return self._attributes[certificate_id].get(key)

    def attributes(self, certificate_id: int) -> Dict[str, Any]:
        with self._lock:
            return dict(self._attributes[certificate_id])

    def owner_of(self, certificate_id: int) -> str:
        with self._lock:
            return self._owners[certificate_id]

    def count(self) -> int:
        """Number of certificates minted so far."""
        with self._lock:
            return len(self._owners)

    def client(self, caller: str) -> 'RegistryClient':
        return RegistryClient(self, caller)


class RegistryClient(CredentialRegistry):
    """CredentialRegistry view of an InMemoryCredentialRegistry for one calling identity."""

    def __init__(self, registry: InMemoryCredentialRegistry, caller: str):
        self.registry = registry
        self.caller = normalize_address(caller)

    def mint(self, owner: str, attributes: Dict[str, Any]) -> int:
        return self.registry.mint(self.caller, owner, attributes)

    def set_attribute(self, certificate_id: int, key: str, value: Any) -> None:
        self.registry.set_attribute(self.caller, certificate_id, key, value)

    def get_attribute(self, certificate_id: int, key: str) -> Any:
        return self.registry.get_attribute(certificate_id, key)
