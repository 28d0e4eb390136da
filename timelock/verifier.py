"""
TimeLock Authorization Verifier

Recovers the signer of a typed authorization message and decides whether
the message authorizes the requested action.

Verification steps:
1. Enforce the deadline against the supplied time
2. Hash the message per its schema (struct hash)
3. Combine with the domain separator into the final digest
4. Recover the signing account; it must be the message's declared signer
5. The signer must hold the role required for the action
6. The authorization token must not have been consumed

Consumption is a separate step so callers can claim the token inside
their own atomic section and withdraw the claim with release() if a later
step fails.
"""

import logging
from typing import Any, Callable, Dict, Optional, Union

from eth_account import Account

from .errors import AuthorizationReused, DeadlineExpired, InvalidSignature, InvalidSigner
from .messages import AuthorizationMessage
from .replay import ConsumedTokenStore, InMemoryConsumedTokenStore
from .typed_data import TypedDataDomain, signable_message, typed_digest
from .util import ZERO_ADDRESS

logger = logging.getLogger(__name__)

# secp256k1 group order; signatures with s above half of it are malleable twins
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

SignatureLike = Union[bytes, str, Dict[str, Any]]


def signature_bytes(signature: SignatureLike) -> bytes:
    """
    Normalize a signature to its 65-byte r || s || v form.

    Accepts raw bytes, 0x-prefixed hex, or a {"v", "r", "s"} mapping.

    Raises:
        InvalidSignature: If the value is not a well-formed signature
    """
    try:
        if isinstance(signature, dict):
            r = _int_component(signature["r"])
            s = _int_component(signature["s"])
            v = _int_component(signature["v"])
            raw = r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([v])
        elif isinstance(signature, str):
            text = signature[2:] if signature.startswith(("0x", "0X")) else signature
            raw = bytes.fromhex(text)
        else:
            raw = bytes(signature)
    except (KeyError, ValueError, TypeError, OverflowError) as e:
        raise InvalidSignature(f"Malformed signature: {e}")

    if len(raw) != 65:
        raise InvalidSignature(f"Signature must be 65 bytes, got {len(raw)}")

    s = int.from_bytes(raw[32:64], "big")
    if s == 0 or s > SECP256K1_N // 2:
        raise InvalidSignature("Signature s value out of range")
    if raw[64] not in (0, 1, 27, 28):
        raise InvalidSignature("Signature v value out of range")

    return raw


def _int_component(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    return int(str(value), 16) if str(value).startswith(("0x", "0X")) else int(value)


class AuthorizationVerifier:
    """
    Typed-message verifier bound to one signing domain.

    The domain separator is computed once at construction and used for
    every verification, so a signature made for another deployment,
    another chain or another protocol version never verifies here.
    """

    def __init__(
        self,
        domain: TypedDataDomain,
        token_store: Optional[ConsumedTokenStore] = None
    ):
        self.domain = domain
        self.token_store = token_store if token_store is not None else InMemoryConsumedTokenStore()
        self._domain_separator = domain.separator()

    @property
    def domain_separator(self) -> bytes:
        return self._domain_separator

    def digest(self, message: AuthorizationMessage) -> bytes:
        """Final digest a signer must sign for this message."""
        return typed_digest(self._domain_separator, message.struct_hash())

    def recover(self, message: AuthorizationMessage, signature: SignatureLike) -> str:
        """
        Recover the signing account.

        Raises:
            InvalidSignature: If the signature is malformed, recovery fails,
                or the recovered account is not the message's declared signer
        """
        raw = signature_bytes(signature)

        try:
            struct_hash = message.struct_hash()
        except (KeyError, ValueError) as e:
            raise InvalidSignature(f"Message does not match its schema: {e}")

        try:
            recovered = Account.recover_message(
                signable_message(self._domain_separator, struct_hash),
                signature=raw
            )
        except Exception as e:
            raise InvalidSignature(f"Signer recovery failed: {e}")

        if not recovered or recovered == ZERO_ADDRESS:
            raise InvalidSignature("Recovered the zero address")

        if recovered != message.signer:
            raise InvalidSignature(
                "Recovered signer does not match declared signer",
                {"declared": message.signer, "recovered": recovered}
            )

        return recovered

    def check(
        self,
        message: AuthorizationMessage,
        signature: SignatureLike,
        now: int,
        signer_allowed: Callable[[str], bool]
    ) -> str:
        """
        Validate a message without consuming its token.

        Args:
            message: The typed authorization document
            signature: Signature over the message's typed digest
            now: Current time (epoch seconds)
            signer_allowed: Predicate telling whether an account holds the
                role this action requires

        Returns:
            The recovered signer

        Raises:
            DeadlineExpired, InvalidSignature, InvalidSigner, AuthorizationReused
        """
        if now > message.deadline:
            raise DeadlineExpired(
                "Authorization deadline has passed",
                {"deadline": message.deadline, "now": now}
            )

        signer = self.recover(message, signature)

        if not signer_allowed(signer):
            raise InvalidSigner(
                f"{signer} is not allowed to authorize {message.schema.primary_type}",
                {"signer": signer}
            )

        if self.token_store.is_consumed(message.authorization):
            raise AuthorizationReused(
                "Authorization token already used",
                {"authorization": message.token_hex}
            )

        return signer

    def consume(self, message: AuthorizationMessage, now: Optional[int] = None) -> None:
        """
        Mark the message's token as consumed.

        Raises:
            AuthorizationReused: If the token was consumed already
        """
        if not self.token_store.consume(message.authorization, now):
            raise AuthorizationReused(
                "Authorization token already used",
                {"authorization": message.token_hex}
            )
        logger.debug("consumed authorization %s", message.token_hex)

    def release(self, message: AuthorizationMessage) -> None:
        """Withdraw a consume() made by a call that is rolling back."""
        self.token_store.discard(message.authorization)
        logger.debug("released authorization %s", message.token_hex)

    def require_authorized(
        self,
        message: AuthorizationMessage,
        signature: SignatureLike,
        now: int,
        signer_allowed: Callable[[str], bool]
    ) -> str:
        """check() followed by consume(); returns the recovered signer."""
        signer = self.check(message, signature, now, signer_allowed)
        self.consume(message, now)
        return signer

    def is_consumed(self, token: bytes) -> bool:
        return self.token_store.is_consumed(token)
