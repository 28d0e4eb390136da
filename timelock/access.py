"""
TimeLock Access Guard

Explicit role-membership table and pause flag consulted by every
state-mutating entry point.

Roles:
    DEFAULT_ADMIN  grants and revokes every role
    OPERATOR       signs certificates and release sign-offs, administers
                   early-withdrawal flags
    PAUSER         toggles the pause flag
    MINTER         may mint and update certificates on a credential registry
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Optional, Set

from .errors import ContractPaused, Unauthorized
from .util import normalize_address

logger = logging.getLogger(__name__)


class Role(str, Enum):
    DEFAULT_ADMIN = "DEFAULT_ADMIN"
    OPERATOR = "OPERATOR"
    PAUSER = "PAUSER"
    MINTER = "MINTER"


class AccessGuard:
    """
    Role membership plus pause flag.

    pause()/unpause() are idempotent: pausing an already paused guard (or
    unpausing a running one) is a no-op rather than an error.
    """

    def __init__(self, admin: Optional[str] = None, initial_roles: Iterable[Role] = tuple(Role)):
        self._members: Dict[Role, Set[str]] = {role: set() for role in Role}
        self._paused = False
        if admin is not None:
            admin = normalize_address(admin)
            for role in initial_roles:
                self._members[Role(role)].add(admin)

    @property
    def paused(self) -> bool:
        return self._paused

    def has_role(self, role: Role, account: str) -> bool:
        try:
            account = normalize_address(account)
        except ValueError:
            return False
        return account in self._members[Role(role)]

    def members(self, role: Role) -> Set[str]:
        return set(self._members[Role(role)])

    def require_role(self, account: str, role: Role) -> None:
        if not self.has_role(role, account):
            raise Unauthorized(
                f"{account} lacks role {Role(role).value}",
                {"account": account, "role": Role(role).value}
            )

    def require_not_paused(self) -> None:
        if self._paused:
            raise ContractPaused("Service is paused")

    def grant_role(self, caller: str, role: Role, account: str) -> bool:
        """Grant a role. Returns True if membership changed."""
        self.require_role(caller, Role.DEFAULT_ADMIN)
        account = normalize_address(account)
        members = self._members[Role(role)]
        if account in members:
            return False
        members.add(account)
        logger.debug("granted %s to %s", Role(role).value, account)
        return True

    def revoke_role(self, caller: str, role: Role, account: str) -> bool:
        """Revoke a role. Returns True if membership changed."""
        self.require_role(caller, Role.DEFAULT_ADMIN)
        account = normalize_address(account)
        members = self._members[Role(role)]
        if account not in members:
            return False
        members.discard(account)
        logger.debug("revoked %s from %s", Role(role).value, account)
        return True

    def pause(self, caller: str) -> bool:
        """Set the pause flag. Returns True if the flag changed."""
        self.require_role(caller, Role.PAUSER)
        changed = not self._paused
        self._paused = True
        return changed

    def unpause(self, caller: str) -> bool:
        """Clear the pause flag. Returns True if the flag changed."""
        self.require_role(caller, Role.PAUSER)
        changed = self._paused
        self._paused = False
        return changed
