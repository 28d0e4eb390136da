"""
TimeLock Authorization Signing

Client-side counterpart of the verifier: certifiers and release
authorizers use it to issue signed authorizations. Keys are secp256k1
accounts managed with eth_account.
"""

from typing import Any, Dict, Optional, Tuple, Union

from eth_account import Account

from .messages import AuthorizationMessage, DepositAuthorization, ReleaseAuthorization
from .typed_data import DOMAIN_SCHEMA, TypedDataDomain, signable_message
from .util import encode_bytes32_string, generate_authorization_token, to_hex


def sign_typed_message(
    private_key: Union[str, bytes],
    message: AuthorizationMessage,
    domain: TypedDataDomain
) -> bytes:
    """Sign a message's typed digest; returns the 65-byte r || s || v signature."""
    signable = signable_message(domain.separator(), message.struct_hash())
    return bytes(Account.sign_message(signable, private_key=private_key).signature)


def to_typed_data(message: AuthorizationMessage, domain: TypedDataDomain) -> Dict[str, Any]:
    """Full typed-data document (types, primaryType, domain, message) for wallets."""
    types = {DOMAIN_SCHEMA.primary_type: DOMAIN_SCHEMA.to_eip712_types()[DOMAIN_SCHEMA.primary_type]}
    types.update(message.schema.to_eip712_types())
    return {
        "types": types,
        "primaryType": message.schema.primary_type,
        "domain": domain.to_dict(),
        "message": message.to_message(),
    }


class AuthorizationSigner:
    """
    Issues signed authorizations for one signing account and domain.

    Usage:
        signer = AuthorizationSigner(private_key, domain)
        auth, sig = signer.deposit_authorization("Acme Inc.", tons=3, ..., deadline=now + 86400)
        service.lock(account, 100, auth, sig)
    """

    def __init__(self, private_key: Union[str, bytes], domain: TypedDataDomain):
        self._account = Account.from_key(private_key)
        self.domain = domain

    @classmethod
    def generate(cls, domain: TypedDataDomain) -> 'AuthorizationSigner':
        return cls(Account.create().key, domain)

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def private_key_hex(self) -> str:
        return to_hex(self._account.key)

    def sign(self, message: AuthorizationMessage) -> bytes:
        signable = signable_message(self.domain.separator(), message.struct_hash())
        return bytes(self._account.sign_message(signable).signature)

    def deposit_authorization(
        self,
        institution: Union[str, bytes],
        tons: int,
        base_year: int,
        base_month: int,
        timespan: int,
        deadline: int,
        authorization: Optional[bytes] = None
    ) -> Tuple[DepositAuthorization, bytes]:
        """Build and sign a deposit authorization; a fresh token is drawn if none given."""
        if isinstance(institution, str) and not institution.startswith("0x"):
            institution = encode_bytes32_string(institution)
        message = DepositAuthorization(
            institution=institution,
            tons=tons,
            base_year=base_year,
            base_month=base_month,
            timespan=timespan,
            signer=self.address,
            authorization=authorization or generate_authorization_token(),
            deadline=deadline,
        )
        return message, self.sign(message)

    def release_authorization(
        self,
        account: str,
        lock_index: int,
        deadline: int,
        authorization: Optional[bytes] = None
    ) -> Tuple[ReleaseAuthorization, bytes]:
        """Build and sign a release sign-off for one lock."""
        message = ReleaseAuthorization(
            account=account,
            lock_index=lock_index,
            signer=self.address,
            authorization=authorization or generate_authorization_token(),
            deadline=deadline,
        )
        return message, self.sign(message)
