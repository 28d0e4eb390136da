"""
Event Log Tests

Hash chaining, Ed25519 attestation, tamper detection and subscriptions.
"""

import copy
import unittest

from timelock.events import EventName, InMemoryEventLog, LockEvent, verify_event_chain
from timelock.keys import EventSigner

from support import HOLDER, START_TIME, STRANGER, Deployment


def locked(account=HOLDER, index=0, amount=100):
    return LockEvent(EventName.LOCKED, account, index, amount, START_TIME)


class TestEventChain(unittest.TestCase):

    def setUp(self):
        self.signer = EventSigner.generate()
        self.log = InMemoryEventLog(self.signer)
        self.log.append(locked())
        self.log.append(locked(index=1, amount=50))
        self.log.append(LockEvent(EventName.UNLOCKED, HOLDER, 0, 100, START_TIME + 10))

    def test_chain_links(self):
        entries = self.log.entries()
        self.assertIsNone(entries[0].prev_entry_hash)
        for prev, entry in zip(entries, entries[1:]):
            self.assertEqual(entry.prev_entry_hash, prev.entry_hash)
        self.assertEqual(self.log.latest_entry_hash(), entries[-1].entry_hash)

    def test_export_verifies(self):
        valid, reason = verify_event_chain(self.log.export(), self.signer.public_key_b64)
        self.assertTrue(valid, reason)
        self.assertEqual(reason, "VALID")

    def test_tampered_amount_detected(self):
        exported = self.log.export()
        exported[1]["event"]["amount"] = 5000
        valid, reason = verify_event_chain(exported)
        self.assertFalse(valid)
        self.assertIn("payload hash", reason)

    def test_deleted_entry_detected(self):
        exported = self.log.export()
        del exported[1]
        valid, _ = verify_event_chain(exported)
        self.assertFalse(valid)

    def test_wrong_key_detected(self):
        other = EventSigner.generate()
        valid, reason = verify_event_chain(self.log.export(), other.public_key_b64)
        self.assertFalse(valid)
        self.assertIn("invalid signature", reason)

    def test_unsigned_log_fails_signature_check(self):
        log = InMemoryEventLog()
        log.append(locked())
        self.assertTrue(verify_event_chain(log.export())[0])
        self.assertFalse(verify_event_chain(log.export(), self.signer.public_key_b64)[0])

    def test_export_is_a_copy(self):
        exported = self.log.export()
        snapshot = copy.deepcopy(exported)
        exported[0]["signatures"].clear()
        self.assertEqual(self.log.export(), snapshot)


class TestQueriesAndSubscribers(unittest.TestCase):

    def test_query_filters(self):
        log = InMemoryEventLog()
        log.append(locked())
        log.append(locked(account=STRANGER))
        log.append(LockEvent(EventName.UNLOCKED, HOLDER, 0, 100, START_TIME))
        self.assertEqual(len(log.query()), 3)
        self.assertEqual(len(log.query(name=EventName.LOCKED)), 2)
        self.assertEqual(len(log.query(name="Unlocked")), 1)
        self.assertEqual(len(log.query(account=HOLDER)), 2)

    def test_subscriber_receives_and_unsubscribes(self):
        log = InMemoryEventLog()
        seen = []
        unsubscribe = log.subscribe(seen.append)
        log.append(locked())
        unsubscribe()
        log.append(locked(index=1))
        self.assertEqual([e.lock_index for e in seen], [0])

    def test_failing_subscriber_is_isolated(self):
        log = InMemoryEventLog()
        seen = []

        def broken(event):
            raise RuntimeError("indexer down")

        log.subscribe(broken)
        log.subscribe(seen.append)
        with self.assertLogs("timelock.events", level="ERROR"):
            log.append(locked())
        self.assertEqual(len(log), 1)
        self.assertEqual(len(seen), 1)

    def test_service_emits_into_injected_log(self):
        signer = EventSigner.generate()
        d = Deployment(event_log=InMemoryEventLog(signer))
        d.lock(100)
        d.clock.advance(d.service.default_lock_period)
        d.service.unlock(HOLDER, 0)
        names = [e.name for e in d.service.events.query()]
        self.assertEqual(names, [EventName.LOCKED, EventName.UNLOCKED])
        self.assertTrue(verify_event_chain(d.service.events.export(), signer.public_key_b64)[0])


class TestEventSigner(unittest.TestCase):

    def test_save_and_load(self):
        import os
        import tempfile

        signer = EventSigner.generate("events-test")
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "keys", "events.json")
            signer.save(path)
            loaded = EventSigner.from_file(path)
        self.assertEqual(loaded.kid, "events-test")
        self.assertEqual(loaded.public_key_b64, signer.public_key_b64)


if __name__ == "__main__":
    unittest.main()
