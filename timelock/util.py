"""
Utility functions for TimeLock.

Provides canonical JSON serialization, hashing, encoding, address
normalization and time utilities.
"""

import base64
import hashlib
import json
import secrets
import time
from typing import Any, Union

from eth_utils import is_address, to_checksum_address


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def canonicalize(obj: Any) -> bytes:
    """
    Convert object to canonical JSON bytes.

    Canonical JSON:
    - Lexicographically sorted keys
    - No whitespace
    - UTF-8 encoded
    """
    s = json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return s.encode('utf-8')


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as hex string."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes."""
    return base64.b64decode(s.encode('ascii'))


def normalize_address(value: str) -> str:
    """
    Return the EIP-55 checksum form of an account address.

    Raises:
        ValueError: If value is not a 20-byte hex address
    """
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


def to_bytes32(value: Union[bytes, str]) -> bytes:
    """
    Coerce a 32-byte value given as bytes or 0x-prefixed hex.

    Raises:
        ValueError: If the value is not exactly 32 bytes
    """
    if isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        try:
            value = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"Invalid hex value: {value!r}")
    if not isinstance(value, (bytes, bytearray)) or len(value) != 32:
        raise ValueError("Expected exactly 32 bytes")
    return bytes(value)


def encode_bytes32_string(text: str) -> bytes:
    """Right-pad a short UTF-8 string into a bytes32 value (ethers encodeBytes32String)."""
    raw = text.encode('utf-8')
    if len(raw) > 31:
        raise ValueError("bytes32 string must be at most 31 bytes")
    return raw.ljust(32, b'\x00')


def decode_bytes32_string(value: bytes) -> str:
    """Inverse of encode_bytes32_string."""
    return bytes(value).rstrip(b'\x00').decode('utf-8')


def to_hex(b: bytes) -> str:
    """0x-prefixed lowercase hex."""
    return "0x" + bytes(b).hex()


def generate_authorization_token() -> bytes:
    """Generate a fresh single-use 32-byte authorization token."""
    return secrets.token_bytes(32)

