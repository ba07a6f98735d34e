import threading
from unittest import TestCase
from unittest.mock import MagicMock, patch

from csfle.codec import TITLE_DECRYPTION_FAILED, TITLE_KEY_MISMATCH, NoteCodec
from csfle.config import CSFLEConfig, ON_FAILURE_DEGRADE
from csfle.errors import EncryptionDegradedError, KeyConsistencyError, PendingOperationError
from csfle.keys import SOURCE_STABLE, EncryptionSession
from csfle.notes import PlainNote
from csfle.sync import SyncClient

SECRET = "9" * 64
SALT = "5a" * 32


def _session(secret=SECRET, salt=SALT, enabled=True):
    return EncryptionSession(
        account_id="1", salt=salt, secret=secret, source=SOURCE_STABLE, enabled=enabled
    )


def _sync(transport, session=None, config=None):
    return SyncClient(transport, session or _session(), config=config)


def _echo(payload, *args):
    data = dict(payload)
    data.setdefault("id", "n1")
    return data


class SyncClientEncryptTests(TestCase):

    def setUp(self):
        self.transport = MagicMock()
        self.client = _sync(self.transport)

    def test_create_sends_ciphertext_and_returns_plaintext(self):
        self.transport.create_note.side_effect = _echo

        note = self.client.create_note(PlainNote(title="Plan", content="Ship it", tags=["work"]))

        sent = self.transport.create_note.call_args[0][0]
        self.assertTrue(sent["_encrypted"])
        self.assertIn("ciphertext", sent["title"])
        self.assertNotIn("Ship it", str(sent))

        self.assertEqual(note.title, "Plan")
        self.assertEqual(note.content, "Ship it")
        self.assertEqual(note.tags, ["work"])

    def test_inactive_session_sends_plaintext(self):
        client = _sync(self.transport, session=_session(salt=""))
        wire = client.encrypt_note(PlainNote(title="a", content="b"))
        self.assertFalse(wire.encrypted_marker)
        self.assertEqual(wire.to_json()["title"], "a")

    def test_verification_mismatch_aborts_write(self):
        real_decrypt = NoteCodec.decrypt_note

        def tampered(wire, secret):
            return real_decrypt(wire, secret).copy(content="something else")

        with patch("csfle.sync.NoteCodec.decrypt_note", side_effect=tampered):
            with self.assertRaises(KeyConsistencyError):
                self.client.update_note("n1", PlainNote(title="a", content="b"))

        self.transport.update_note.assert_not_called()

    def test_encrypt_failure_policy(self):
        with self.assertRaises(EncryptionDegradedError):
            self.client.create_note(PlainNote(title=None, content="b"))
        self.transport.create_note.assert_not_called()

        degrade = _sync(self.transport, config=CSFLEConfig(on_encrypt_failure=ON_FAILURE_DEGRADE))
        wire = degrade.encrypt_note(PlainNote(title=None, content="b"))
        self.assertFalse(wire.encrypted_marker)

    def test_verify_encryption_key(self):
        self.assertTrue(self.client.verify_encryption_key())

        with patch("csfle.sync.NoteCodec.decrypt_note", side_effect=lambda w, s: PlainNote()):
            self.assertFalse(self.client.verify_encryption_key())


class PendingOperationTests(TestCase):

    def test_second_write_for_same_note_is_rejected(self):
        transport = MagicMock()
        client = _sync(transport)
        entered = threading.Event()
        release = threading.Event()

        def slow_update(note_id, payload):
            entered.set()
            release.wait(5)
            return _echo(payload)

        transport.update_note.side_effect = slow_update
        worker = threading.Thread(
            target=client.update_note, args=("n1", PlainNote(title="a", content="b"))
        )
        worker.start()
        try:
            self.assertTrue(entered.wait(5))
            self.assertTrue(client.is_pending("n1"))
            with self.assertRaises(PendingOperationError):
                client.update_note("n1", PlainNote(title="a", content="c"))
            with self.assertRaises(PendingOperationError):
                client.delete_note("n1")
        finally:
            release.set()
            worker.join(5)

        self.assertFalse(client.is_pending("n1"))
        self.assertEqual(transport.update_note.call_count, 1)

    def test_marker_cleared_after_failure(self):
        transport = MagicMock()
        transport.update_note.side_effect = RuntimeError("network")
        client = _sync(transport)

        with self.assertRaises(RuntimeError):
            client.update_note("n1", PlainNote(title="a", content="b"))
        self.assertFalse(client.is_pending("n1"))


class BatchDecryptTests(TestCase):

    def setUp(self):
        self.transport = MagicMock()
        self.client = _sync(self.transport)

    def _encrypted(self, title, secret=SECRET, **extra):
        data = NoteCodec.encrypt_note(PlainNote(title=title, content=title), secret, SALT).to_json()
        data.update(extra)
        return data

    def test_failures_are_isolated_and_order_kept(self):
        raw = [
            self._encrypted("first", id="1"),
            self._encrypted("foreign", secret="1" * 64, id="2"),
            {"id": "3", "title": "legacy", "content": "plain", "_encrypted": False},
            {"id": "4", "title": 12, "content": None},
        ]

        notes = self.client.decrypt_many(raw)

        self.assertEqual([n.id for n in notes], ["1", "2", "3", "4"])
        self.assertEqual(notes[0].title, "first")
        self.assertEqual(notes[1].title, TITLE_KEY_MISMATCH)
        self.assertTrue(notes[1].key_mismatch)
        self.assertEqual(notes[2].title, "legacy")
        self.assertEqual(notes[3].title, "Untitled Note")

    def test_fetch_notes_builds_page(self):
        broken = self._encrypted("x", id="2")
        broken["content"]["version"] = "0.1"
        self.transport.list_notes.return_value = {
            "notes": [self._encrypted("ok", id="1"), broken],
            "total": 2,
            "totalPages": 1,
            "currentPage": 1,
        }

        with self.assertLogs("csfle.sync", level="WARNING"):
            page = self.client.fetch_notes(search="ok")

        params = self.transport.list_notes.call_args[0][0]
        self.assertEqual(params["search"], "ok")
        self.assertEqual(page.total, 2)
        self.assertEqual(page.failed, 1)
        self.assertEqual(page.key_mismatches, 0)
        self.assertEqual(page.notes[1].title, "x")

    def test_unreadable_note_becomes_sentinel(self):
        notes = self.client.decrypt_many(["not a note"])
        self.assertEqual(notes[0].title, TITLE_DECRYPTION_FAILED)
        self.assertTrue(notes[0].decryption_failed)

    def test_history_is_decrypted(self):
        content = NoteCodec.encrypt_note(PlainNote(title="t", content="v1"), SECRET, SALT).to_json()["content"]
        self.transport.get_history.return_value = [
            {"version": 1, "content": content, "timestamp": "2024-01-01T00:00:00Z"},
            {"version": 2, "content": "plain v2", "timestamp": "2024-01-02T00:00:00Z"},
        ]

        history = self.client.fetch_history("n1")

        self.assertEqual([h["content"] for h in history], ["v1", "plain v2"])
        self.assertFalse(any(h["decryptionFailed"] for h in history))


