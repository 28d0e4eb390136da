"""
Typed Structured Data Tests

Checks the hand-built type hashes and digests against eth_account's
reference typed-data encoder and the published EIP-712 example values.
"""

import unittest

from eth_account import Account
from eth_account.messages import encode_typed_data

from timelock.messages import CERTIFICATE_SCHEMA, RELEASE_SCHEMA
from timelock.signing import sign_typed_message, to_typed_data
from timelock.typed_data import DOMAIN_SCHEMA, TypedDataDomain, TypedSchema, typed_digest

from support import ADMIN_KEY, SERVICE_ADDRESS, Deployment


class TestTypeEncoding(unittest.TestCase):
    """Canonical type strings and type hashes."""

    def test_certificate_type_string(self):
        self.assertEqual(
            CERTIFICATE_SCHEMA.encode_type(),
            "Certificate(bytes32 institution,uint8 tons,uint16 baseYear,uint8 baseMonth,"
            "uint8 timespan,address signer,bytes32 authorization,uint32 deadline)"
        )

    def test_release_type_string(self):
        self.assertEqual(
            RELEASE_SCHEMA.encode_type(),
            "Release(address account,uint256 lockIndex,address signer,bytes32 authorization,uint32 deadline)"
        )

    def test_field_order_changes_type_hash(self):
        a = TypedSchema("T", (("x", "uint8"), ("y", "uint8")))
        b = TypedSchema("T", (("y", "uint8"), ("x", "uint8")))
        self.assertNotEqual(a.type_hash(), b.type_hash())
        self.assertNotEqual(a.hash_struct({"x": 1, "y": 2}), b.hash_struct({"x": 1, "y": 2}))

    def test_missing_field_raises(self):
        with self.assertRaises(KeyError):
            RELEASE_SCHEMA.hash_struct({"account": SERVICE_ADDRESS})

    def test_unencodable_value_raises(self):
        schema = TypedSchema("T", (("x", "uint8"),))
        with self.assertRaises(ValueError):
            schema.hash_struct({"x": 256})


class TestDomainSeparator(unittest.TestCase):

    def test_published_example_domain(self):
        """Domain separator of the EIP-712 'Ether Mail' example."""
        domain = TypedDataDomain(
            name="Ether Mail",
            version="1",
            chain_id=1,
            verifying_contract="0xCcCCccccCCCCcCCCCCCcCcCccCcCCCcCcccccccC",
        )
        self.assertEqual(
            domain.separator().hex(),
            "f2cee375fa42b42143804025fc449deafd50cc031ca257e0b194a650a912090f"
        )

    def test_separator_binds_every_domain_field(self):
        base = TypedDataDomain("GenericTypedMessage", "1", 31337, SERVICE_ADDRESS)
        variants = [
            TypedDataDomain("Other", "1", 31337, SERVICE_ADDRESS),
            TypedDataDomain("GenericTypedMessage", "2", 31337, SERVICE_ADDRESS),
            TypedDataDomain("GenericTypedMessage", "1", 1, SERVICE_ADDRESS),
            TypedDataDomain("GenericTypedMessage", "1", 31337, "0xCcCCccccCCCCcCCCCCCcCcCccCcCCCcCcccccccC"),
        ]
        for variant in variants:
            self.assertNotEqual(base.separator(), variant.separator())

    def test_domain_schema_type_string(self):
        self.assertEqual(
            DOMAIN_SCHEMA.encode_type(),
            "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
        )


class TestAgainstReferenceEncoder(unittest.TestCase):
    """Our hashes must match eth_account's encode_typed_data exactly."""

    def setUp(self):
        self.deployment = Deployment()
        self.domain = self.deployment.settings.domain()

    def _assert_matches(self, message):
        signable = encode_typed_data(full_message=to_typed_data(message, self.domain))
        self.assertEqual(bytes(signable.header), self.domain.separator())
        self.assertEqual(bytes(signable.body), message.struct_hash())

        ours = sign_typed_message(ADMIN_KEY, message, self.domain)
        reference = Account.sign_message(signable, private_key=ADMIN_KEY).signature
        self.assertEqual(ours, bytes(reference))

    def test_certificate_matches(self):
        message, _ = self.deployment.deposit_authorization()
        self._assert_matches(message)

    def test_release_matches(self):
        message, _ = self.deployment.release_authorization(0)
        self._assert_matches(message)

    def test_digest_prefix(self):
        message, _ = self.deployment.deposit_authorization()
        digest = typed_digest(self.domain.separator(), message.struct_hash())
        self.assertEqual(len(digest), 32)
        self.assertNotEqual(digest, typed_digest(self.domain.separator(), b"\x00" * 32))


if __name__ == "__main__":
    unittest.main()
