"""
Shared test helpers: deterministic accounts, a controllable clock and a
fully wired deployment with in-memory collaborators.
"""

from typing import Optional

from eth_account import Account

from timelock.collaborators import InMemoryCredentialRegistry, InMemoryToken
from timelock.events import InMemoryEventLog
from timelock.replay import ConsumedTokenStore
from timelock.service import ReleaseMode, TimeLock, TimeLockSettings
from timelock.signing import AuthorizationSigner

# Well-known development keys; never hold value with these.
ADMIN_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OPERATOR_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
HOLDER_KEY = "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a"
STRANGER_KEY = "0x7c852118294e51e653712a81e05800f419141751be58f605c371e15141b007a6"

ADMIN = Account.from_key(ADMIN_KEY).address
OPERATOR = Account.from_key(OPERATOR_KEY).address
HOLDER = Account.from_key(HOLDER_KEY).address
STRANGER = Account.from_key(STRANGER_KEY).address

SERVICE_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"

START_TIME = 1_700_000_000
DAY = 24 * 60 * 60


class FakeClock:
    """Injectable clock returning a settable epoch time."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


class Deployment:
    """
    One escrow deployment wired with in-memory collaborators.

    ADMIN holds every role on the service; HOLDER starts with 1000 units.
    """

    def __init__(
        self,
        release_mode: ReleaseMode = ReleaseMode.ELAPSED,
        with_registry: bool = True,
        token_store: Optional[ConsumedTokenStore] = None,
        event_log: Optional[InMemoryEventLog] = None,
        holder_balance: int = 1000,
    ):
        self.clock = FakeClock()
        self.settings = TimeLockSettings(
            service_address=SERVICE_ADDRESS,
            admin=ADMIN,
            release_mode=release_mode,
        )
        self.token = InMemoryToken(balances={HOLDER: holder_balance})
        self.registry = InMemoryCredentialRegistry(admin=SERVICE_ADDRESS) if with_registry else None
        self.service = TimeLock(
            self.settings,
            self.token.client(SERVICE_ADDRESS),
            credential_registry=self.registry.client(SERVICE_ADDRESS) if self.registry is not None else None,
            token_store=token_store,
            event_log=event_log,
            clock=self.clock,
        )
        self.certifier = AuthorizationSigner(ADMIN_KEY, self.settings.domain())
        self.stranger = AuthorizationSigner(STRANGER_KEY, self.settings.domain())

    def deposit_authorization(self, signer: Optional[AuthorizationSigner] = None, ttl: int = DAY, **overrides):
        fields = dict(institution="Acme Inc.", tons=3, base_year=2024, base_month=1, timespan=12)
        fields.update(overrides)
        signer = signer or self.certifier
        return signer.deposit_authorization(deadline=self.clock.now + ttl, **fields)

    def release_authorization(self, index: int, account: str = HOLDER,
                              signer: Optional[AuthorizationSigner] = None, ttl: int = DAY):
        signer = signer or self.certifier
        return signer.release_authorization(account, index, deadline=self.clock.now + ttl)

    def lock(self, amount: int = 100, account: str = HOLDER) -> int:
        """Approve and lock amount for account with a fresh authorization."""
        auth, sig = self.deposit_authorization()
        self.token.approve(account, SERVICE_ADDRESS, amount)
        return self.service.lock(account, amount, auth, sig)
