"""
Authorization Verifier Tests

Signature recovery, malleability rejection, deadline enforcement,
role checks and single-use token consumption.
"""

import dataclasses
import unittest

from timelock.errors import AuthorizationReused, DeadlineExpired, InvalidSignature, InvalidSigner
from timelock.messages import DepositAuthorization, ReleaseAuthorization
from timelock.signing import sign_typed_message
from timelock.typed_data import TypedDataDomain
from timelock.util import generate_authorization_token, to_hex
from timelock.verifier import SECP256K1_N, AuthorizationVerifier, signature_bytes

from support import ADMIN, SERVICE_ADDRESS, STRANGER_KEY, Deployment


def allow_all(account):
    return True


class TestSignatureFormats(unittest.TestCase):

    def setUp(self):
        self.deployment = Deployment()
        self.verifier = AuthorizationVerifier(self.deployment.settings.domain())
        self.message, self.signature = self.deployment.deposit_authorization()

    def test_recovers_declared_signer(self):
        self.assertEqual(self.verifier.recover(self.message, self.signature), ADMIN)

    def test_accepts_hex_signature(self):
        self.assertEqual(self.verifier.recover(self.message, to_hex(self.signature)), ADMIN)

    def test_accepts_vrs_mapping(self):
        sig = {
            "r": to_hex(self.signature[:32]),
            "s": to_hex(self.signature[32:64]),
            "v": self.signature[64],
        }
        self.assertEqual(self.verifier.recover(self.message, sig), ADMIN)

    def test_wrong_length_rejected(self):
        with self.assertRaises(InvalidSignature):
            signature_bytes(self.signature[:64])

    def test_garbage_hex_rejected(self):
        with self.assertRaises(InvalidSignature):
            signature_bytes("0xnothex")

    def test_high_s_twin_rejected(self):
        """The malleable (r, N - s) twin of a valid signature must not verify."""
        s = int.from_bytes(self.signature[32:64], "big")
        v = self.signature[64]
        twin = self.signature[:32] + (SECP256K1_N - s).to_bytes(32, "big") + bytes([55 - v])
        with self.assertRaises(InvalidSignature):
            self.verifier.recover(self.message, twin)

    def test_bad_v_rejected(self):
        with self.assertRaises(InvalidSignature):
            signature_bytes(self.signature[:64] + bytes([29]))


class TestRecovery(unittest.TestCase):

    def setUp(self):
        self.deployment = Deployment()
        self.domain = self.deployment.settings.domain()
        self.verifier = AuthorizationVerifier(self.domain)
        self.message, self.signature = self.deployment.deposit_authorization()

    def test_tampered_field_rejected(self):
        tampered = dataclasses.replace(self.message, tons=self.message.tons + 1)
        with self.assertRaises(InvalidSignature):
            self.verifier.recover(tampered, self.signature)

    def test_declared_signer_mismatch_rejected(self):
        """A stranger cannot sign a message that names the admin as signer."""
        forged = dataclasses.replace(self.message, authorization=generate_authorization_token())
        sig = sign_typed_message(STRANGER_KEY, forged, self.domain)
        with self.assertRaises(InvalidSignature):
            self.verifier.recover(forged, sig)

    def test_other_domain_rejected(self):
        other = AuthorizationVerifier(TypedDataDomain(
            self.domain.name, self.domain.version, self.domain.chain_id + 1, SERVICE_ADDRESS
        ))
        with self.assertRaises(InvalidSignature):
            other.recover(self.message, self.signature)


class TestCheckAndConsume(unittest.TestCase):

    def setUp(self):
        self.deployment = Deployment()
        self.verifier = AuthorizationVerifier(self.deployment.settings.domain())
        self.message, self.signature = self.deployment.deposit_authorization()
        self.now = self.deployment.clock.now

    def test_check_returns_signer(self):
        self.assertEqual(self.verifier.check(self.message, self.signature, self.now, allow_all), ADMIN)
        self.assertFalse(self.verifier.is_consumed(self.message.authorization))

    def test_deadline_is_inclusive(self):
        self.verifier.check(self.message, self.signature, self.message.deadline, allow_all)
        with self.assertRaises(DeadlineExpired):
            self.verifier.check(self.message, self.signature, self.message.deadline + 1, allow_all)

    def test_signer_without_role(self):
        with self.assertRaises(InvalidSigner):
            self.verifier.check(self.message, self.signature, self.now, lambda account: False)

    def test_consumed_token_rejected(self):
        signer = self.verifier.require_authorized(self.message, self.signature, self.now, allow_all)
        self.assertEqual(signer, ADMIN)
        self.assertTrue(self.verifier.is_consumed(self.message.authorization))
        with self.assertRaises(AuthorizationReused):
            self.verifier.check(self.message, self.signature, self.now, allow_all)
        with self.assertRaises(AuthorizationReused):
            self.verifier.require_authorized(self.message, self.signature, self.now, allow_all)

    def test_require_authorized_consumes_nothing_on_rejection(self):
        with self.assertRaises(InvalidSigner):
            self.verifier.require_authorized(self.message, self.signature, self.now, lambda account: False)
        self.assertFalse(self.verifier.is_consumed(self.message.authorization))

    def test_release_withdraws_claim(self):
        self.verifier.consume(self.message, self.now)
        self.verifier.release(self.message)
        self.assertFalse(self.verifier.is_consumed(self.message.authorization))
        self.verifier.require_authorized(self.message, self.signature, self.now, allow_all)

    def test_double_consume_rejected(self):
        self.verifier.consume(self.message, self.now)
        with self.assertRaises(AuthorizationReused):
            self.verifier.consume(self.message, self.now)


class TestMessageValidation(unittest.TestCase):

    def test_out_of_range_field(self):
        with self.assertRaises(ValueError):
            DepositAuthorization(
                institution=b"\x00" * 32, tons=256, base_year=2024, base_month=1, timespan=12,
                signer=ADMIN, authorization=b"\x01" * 32, deadline=1
            )

    def test_bool_rejected_for_uint_fields(self):
        with self.assertRaises(ValueError):
            DepositAuthorization(
                institution=b"\x00" * 32, tons=True, base_year=2024, base_month=1, timespan=12,
                signer=ADMIN, authorization=b"\x01" * 32, deadline=1
            )
        with self.assertRaises(ValueError):
            ReleaseAuthorization(
                account=ADMIN, lock_index=False, signer=ADMIN, authorization=b"\x01" * 32, deadline=1
            )

    def test_from_dict_missing_field(self):
        with self.assertRaises(ValueError):
            DepositAuthorization.from_dict({"tons": 1})

    def test_json_round_trip(self):
        message, _ = Deployment().deposit_authorization()
        self.assertEqual(DepositAuthorization.from_dict(message.to_json_dict()), message)


if __name__ == "__main__":
    unittest.main()
