"""
Key management for TimeLock event attestation.

Event log entries can be signed with an Ed25519 key so that indexers and
auditors can check that a Locked/Unlocked entry was published by this
service. Keys are stored as JSON files holding the base64 private key.
"""

import json
import os
from typing import Tuple

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from .util import b64d, b64e


class EventSigner:
    """Ed25519 signer for event log entries."""

    def __init__(self, signing_key: SigningKey, kid: str = "timelock-events-01"):
        self._sk = signing_key
        self.kid = kid

    @classmethod
    def generate(cls, kid: str = "timelock-events-01") -> 'EventSigner':
        return cls(SigningKey.generate(), kid)

    @classmethod
    def from_file(cls, path: str) -> 'EventSigner':
        """Load a key written by save()."""
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return cls(SigningKey(b64d(raw["private_key_b64"])), raw["kid"])

    def save(self, path: str) -> None:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump({
                "kid": self.kid,
                "private_key_b64": b64e(bytes(self._sk)),
                "public_key_b64": self.public_key_b64,
            }, f, indent=2)

    @property
    def public_key_b64(self) -> str:
        return b64e(bytes(self._sk.verify_key))

    def sign(self, payload: bytes) -> Tuple[str, str]:
        """Sign payload and return (kid, signature_b64)."""
        sig = self._sk.sign(payload).signature
        return self.kid, b64e(sig)


def verify_ed25519(signature_b64: str, payload: bytes, public_key_b64: str) -> bool:
    """
    Verify an Ed25519 signature.

    Args:
        signature_b64: Base64-encoded signature
        payload: The signed data
        public_key_b64: Base64-encoded public key

    Returns:
        True if signature is valid, False otherwise
    """
    try:
        vk = VerifyKey(b64d(public_key_b64))
        vk.verify(payload, b64d(signature_b64))
        return True
    except (BadSignatureError, Exception):
        return False
