"""Access guard tests: role membership and the pause flag."""

import unittest

from timelock.access import AccessGuard, Role
from timelock.errors import ContractPaused, Unauthorized

from support import ADMIN, OPERATOR, STRANGER


class TestAccessGuard(unittest.TestCase):

    def setUp(self):
        self.guard = AccessGuard(ADMIN)

    def test_deployer_holds_every_role(self):
        for role in Role:
            self.assertTrue(self.guard.has_role(role, ADMIN))

    def test_grant_and_revoke(self):
        self.assertTrue(self.guard.grant_role(ADMIN, Role.OPERATOR, OPERATOR))
        self.assertFalse(self.guard.grant_role(ADMIN, Role.OPERATOR, OPERATOR))
        self.assertTrue(self.guard.has_role(Role.OPERATOR, OPERATOR.lower()))
        self.assertTrue(self.guard.revoke_role(ADMIN, Role.OPERATOR, OPERATOR))
        self.assertFalse(self.guard.revoke_role(ADMIN, Role.OPERATOR, OPERATOR))
        self.assertFalse(self.guard.has_role(Role.OPERATOR, OPERATOR))

    def test_only_admin_manages_roles(self):
        self.guard.grant_role(ADMIN, Role.OPERATOR, OPERATOR)
        with self.assertRaises(Unauthorized):
            self.guard.grant_role(OPERATOR, Role.OPERATOR, STRANGER)
        with self.assertRaises(Unauthorized):
            self.guard.revoke_role(STRANGER, Role.OPERATOR, OPERATOR)

    def test_invalid_address_has_no_role(self):
        self.assertFalse(self.guard.has_role(Role.DEFAULT_ADMIN, "not-an-address"))

    def test_pause_is_idempotent(self):
        self.assertTrue(self.guard.pause(ADMIN))
        self.assertFalse(self.guard.pause(ADMIN))
        with self.assertRaises(ContractPaused):
            self.guard.require_not_paused()
        self.assertTrue(self.guard.unpause(ADMIN))
        self.assertFalse(self.guard.unpause(ADMIN))
        self.guard.require_not_paused()

    def test_pause_requires_pauser(self):
        with self.assertRaises(Unauthorized):
            self.guard.pause(STRANGER)
        self.guard.revoke_role(ADMIN, Role.PAUSER, ADMIN)
        with self.assertRaises(Unauthorized):
            self.guard.pause(ADMIN)

    def test_restricted_initial_roles(self):
        guard = AccessGuard(ADMIN, initial_roles=(Role.DEFAULT_ADMIN,))
        self.assertFalse(guard.has_role(Role.OPERATOR, ADMIN))
        self.assertEqual(guard.members(Role.DEFAULT_ADMIN), {ADMIN})


if __name__ == "__main__":
    unittest.main()
