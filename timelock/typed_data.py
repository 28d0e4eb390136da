"""
TimeLock Typed Structured Data Hashing

Implements the two-stage typed hash used to authorize escrow actions:

    structHash      = keccak256(typeHash || encodeData(message))
    domainSeparator = hashStruct(EIP712Domain{name, version, chainId, verifyingContract})
    digest          = keccak256(0x19 0x01 || domainSeparator || structHash)

The domain separator binds a signature to one deployed service instance and
execution context; the struct hash binds it to every field of the message.
Only flat structs of atomic types (uintN, address, bool, bytesN) and the
dynamic types string/bytes are supported, which covers every authorization
message the service accepts.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

from eth_abi import encode as abi_encode
from eth_account.messages import SignableMessage
from eth_utils import keccak

from .util import normalize_address


@dataclass(frozen=True)
class TypedSchema:
    """
    Declared type schema of a typed message.

    Fields are (name, type) pairs in declaration order; order is part of
    the type hash, so two schemas with the same fields in a different order
    produce different digests.
    """
    primary_type: str
    fields: Tuple[Tuple[str, str], ...]

    def encode_type(self) -> str:
        """Return the canonical type string, e.g. ``Release(address account,...)``."""
        members = ",".join(f"{typ} {name}" for name, typ in self.fields)
        return f"{self.primary_type}({members})"

    def type_hash(self) -> bytes:
        return keccak(text=self.encode_type())

    def field_names(self) -> List[str]:
        return [name for name, _ in self.fields]

    def hash_struct(self, message: Mapping[str, Any]) -> bytes:
        """
        Hash a message according to this schema.

        Raises:
            KeyError: If the message lacks a declared field
            ValueError: If a value cannot be encoded as its declared type
        """
        abi_types = ["bytes32"]
        values: List[Any] = [self.type_hash()]

        for name, typ in self.fields:
            value = message[name]
            if typ == "string":
                abi_types.append("bytes32")
                values.append(keccak(text=value))
            elif typ == "bytes":
                abi_types.append("bytes32")
                values.append(keccak(bytes(value)))
            else:
                abi_types.append(typ)
                values.append(value)

        try:
            encoded = abi_encode(abi_types, values)
        except Exception as e:
            raise ValueError(f"Cannot encode {self.primary_type}: {e}") from e

        return keccak(encoded)

    def to_eip712_types(self) -> Dict[str, List[Dict[str, str]]]:
        """Schema in the JSON shape wallets and eth_account expect."""
        return {
            self.primary_type: [{"name": name, "type": typ} for name, typ in self.fields]
        }


DOMAIN_SCHEMA = TypedSchema(
    primary_type="EIP712Domain",
    fields=(
        ("name", "string"),
        ("version", "string"),
        ("chainId", "uint256"),
        ("verifyingContract", "address"),
    ),
)


@dataclass(frozen=True)
class TypedDataDomain:
    """Signing domain: protocol name/version, execution context, service address."""
    name: str
    version: str
    chain_id: int
    verifying_contract: str

    def __post_init__(self):
        object.__setattr__(self, "verifying_contract", normalize_address(self.verifying_contract))
        if self.chain_id < 0:
            raise ValueError("chain_id must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": self.verifying_contract,
        }

    def separator(self) -> bytes:
        return DOMAIN_SCHEMA.hash_struct(self.to_dict())


def signable_message(domain_separator: bytes, struct_hash: bytes) -> SignableMessage:
    """Wrap the two hashes as an EIP-191 version 0x01 signable message."""
    return SignableMessage(version=b"\x01", header=domain_separator, body=struct_hash)


def typed_digest(domain_separator: bytes, struct_hash: bytes) -> bytes:
    """Final digest actually signed: keccak256(0x1901 || separator || structHash)."""
    return keccak(b"\x19\x01" + domain_separator + struct_hash)
