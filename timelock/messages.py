"""
TimeLock Authorization Messages

The two typed documents a signer can issue:

- DepositAuthorization (primary type ``Certificate``): certifies the
  offset a deposit stands for and authorizes exactly one ``lock``.
- ReleaseAuthorization (primary type ``Release``): an off-ledger sign-off
  authorizing the release of one lock record, used by deployments whose
  release mode is SIGNED.

Both carry a designated signer, a single-use 32-byte authorization token
and an absolute deadline (epoch seconds).
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Dict

from .typed_data import TypedSchema
from .util import decode_bytes32_string, normalize_address, to_bytes32, to_hex


CERTIFICATE_SCHEMA = TypedSchema(
    primary_type="Certificate",
    fields=(
        ("institution", "bytes32"),
        ("tons", "uint8"),
        ("baseYear", "uint16"),
        ("baseMonth", "uint8"),
        ("timespan", "uint8"),
        ("signer", "address"),
        ("authorization", "bytes32"),
        ("deadline", "uint32"),
    ),
)

RELEASE_SCHEMA = TypedSchema(
    primary_type="Release",
    fields=(
        ("account", "address"),
        ("lockIndex", "uint256"),
        ("signer", "address"),
        ("authorization", "bytes32"),
        ("deadline", "uint32"),
    ),
)


def _check_uint(name: str, value: Any, bits: int) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer")
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer")
    if value < 0 or value >= 2 ** bits:
        raise ValueError(f"{name} out of range for uint{bits}")
    return value


class AuthorizationMessage:
    """Behaviour shared by every signed authorization document."""

    schema: ClassVar[TypedSchema]

    signer: str
    authorization: bytes
    deadline: int

    def to_message(self) -> Dict[str, Any]:
        """Message dict keyed by schema field names, values ready for encoding."""
        raise NotImplementedError

    def struct_hash(self) -> bytes:
        return self.schema.hash_struct(self.to_message())

    def to_json_dict(self) -> Dict[str, Any]:
        """JSON-safe form (bytes as 0x hex) suitable for transport."""
        out = {}
        for key, value in self.to_message().items():
            out[key] = to_hex(value) if isinstance(value, bytes) else value
        return out

    @property
    def token_hex(self) -> str:
        return to_hex(self.authorization)


@dataclass(frozen=True)
class DepositAuthorization(AuthorizationMessage):
    """Signed certificate authorizing a single deposit lock."""

    schema: ClassVar[TypedSchema] = CERTIFICATE_SCHEMA

    institution: bytes
    tons: int
    base_year: int
    base_month: int
    timespan: int
    signer: str
    authorization: bytes
    deadline: int

    def __post_init__(self):
        object.__setattr__(self, "institution", to_bytes32(self.institution))
        object.__setattr__(self, "tons", _check_uint("tons", self.tons, 8))
        object.__setattr__(self, "base_year", _check_uint("baseYear", self.base_year, 16))
        object.__setattr__(self, "base_month", _check_uint("baseMonth", self.base_month, 8))
        object.__setattr__(self, "timespan", _check_uint("timespan", self.timespan, 8))
        object.__setattr__(self, "signer", normalize_address(self.signer))
        object.__setattr__(self, "authorization", to_bytes32(self.authorization))
        object.__setattr__(self, "deadline", _check_uint("deadline", self.deadline, 32))

    def to_message(self) -> Dict[str, Any]:
        return {
            "institution": self.institution,
            "tons": self.tons,
            "baseYear": self.base_year,
            "baseMonth": self.base_month,
            "timespan": self.timespan,
            "signer": self.signer,
            "authorization": self.authorization,
            "deadline": self.deadline,
        }

    def certificate_attributes(self) -> Dict[str, Any]:
        """Attributes copied onto the minted certificate."""
        try:
            institution = decode_bytes32_string(self.institution)
        except UnicodeDecodeError:
            institution = to_hex(self.institution)
        return {
            "institution": institution,
            "tons": self.tons,
            "baseYear": self.base_year,
            "baseMonth": self.base_month,
            "timespan": self.timespan,
            "signer": self.signer,
            "authorization": self.token_hex,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DepositAuthorization':
        """Create from a message dict (schema field names, hex-encoded bytes)."""
        missing = [f for f in CERTIFICATE_SCHEMA.field_names() if f not in data]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")

        return cls(
            institution=data["institution"],
            tons=data["tons"],
            base_year=data["baseYear"],
            base_month=data["baseMonth"],
            timespan=data["timespan"],
            signer=data["signer"],
            authorization=data["authorization"],
            deadline=data["deadline"],
        )


@dataclass(frozen=True)
class ReleaseAuthorization(AuthorizationMessage):
    """Signed sign-off releasing one lock record of one account."""

    schema: ClassVar[TypedSchema] = RELEASE_SCHEMA

    account: str
    lock_index: int
    signer: str
    authorization: bytes
    deadline: int

    def __post_init__(self):
        object.__setattr__(self, "account", normalize_address(self.account))
        object.__setattr__(self, "lock_index", _check_uint("lockIndex", self.lock_index, 256))
        object.__setattr__(self, "signer", normalize_address(self.signer))
        object.__setattr__(self, "authorization", to_bytes32(self.authorization))
        object.__setattr__(self, "deadline", _check_uint("deadline", self.deadline, 32))

    def to_message(self) -> Dict[str, Any]:
        return {
            "account": self.account,
            "lockIndex": self.lock_index,
            "signer": self.signer,
            "authorization": self.authorization,
            "deadline": self.deadline,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReleaseAuthorization':
        missing = [f for f in RELEASE_SCHEMA.field_names() if f not in data]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")

        return cls(
            account=data["account"],
            lock_index=data["lockIndex"],
            signer=data["signer"],
            authorization=data["authorization"],
            deadline=data["deadline"],
        )
