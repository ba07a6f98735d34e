from unittest import TestCase

from csfle.codec import TITLE_DECRYPTION_FAILED, TITLE_KEY_MISMATCH, NoteCodec
from csfle.config import ON_FAILURE_DEGRADE
from csfle.errors import EncryptionDegradedError, MissingKeyError
from csfle.fields import Encrypted, Plain
from csfle.notes import PlainNote, WireNote

SECRET = "f" * 64
SALT = "0123456789abcdef" * 4


class NoteCodecTests(TestCase):

    def test_encrypt_then_decrypt_restores_note(self):
        note = PlainNote(
            title="Meeting Notes",
            content="Discuss Q3 roadmap",
            tags=["work", "q3"],
            id="n1",
            metadata={"fontSize": 14},
        )

        wire = NoteCodec.encrypt_note(note, SECRET, SALT)
        self.assertTrue(wire.encrypted_marker)
        self.assertIsInstance(wire.title, Encrypted)
        self.assertIsInstance(wire.content, Encrypted)
        self.assertTrue(all(isinstance(t, Encrypted) for t in wire.tags))

        # survives the trip through JSON
        back = NoteCodec.decrypt_note(WireNote.from_json(wire.to_json()), SECRET)

        self.assertEqual(back.title, "Meeting Notes")
        self.assertEqual(back.content, "Discuss Q3 roadmap")
        self.assertEqual(back.tags, ["work", "q3"])
        self.assertEqual(back.metadata, {"fontSize": 14})
        self.assertFalse(back.decryption_failed)

    def test_encrypt_does_not_mutate_input(self):
        note = PlainNote(title="t", content="c", tags=["x"])
        NoteCodec.encrypt_note(note, SECRET, SALT)
        self.assertEqual(note.title, "t")
        self.assertEqual(note.tags, ["x"])

    def test_blank_tags_stay_plain(self):
        note = PlainNote(title="t", content="c", tags=["x", "  "])
        wire = NoteCodec.encrypt_note(note, SECRET, SALT)
        self.assertIsInstance(wire.tags[0], Encrypted)
        self.assertEqual(wire.tags[1], Plain("  "))

        back = NoteCodec.decrypt_note(wire, SECRET)
        self.assertEqual(back.tags, ["x"])

    def test_legacy_plain_note_passes_through(self):
        raw = {
            "id": "legacy",
            "title": "Old note",
            "content": "written before encryption",
            "tags": ["misc"],
            "_encrypted": False,
            "isFavorite": True,
        }
        back = NoteCodec.decrypt_note(WireNote.from_json(raw), SECRET)

        self.assertEqual(back.title, "Old note")
        self.assertEqual(back.content, "written before encryption")
        self.assertEqual(back.tags, ["misc"])
        self.assertTrue(back.is_favorite)
        self.assertFalse(back.decryption_failed)

    def test_plain_note_needs_no_secret(self):
        wire = WireNote.from_json({"title": "a", "content": "b"})
        self.assertEqual(NoteCodec.decrypt_note(wire, "").title, "a")

    def test_marker_false_but_encrypted_shape_is_decrypted(self):
        note = PlainNote(title="hidden", content="body")
        data = NoteCodec.encrypt_note(note, SECRET, SALT).to_json()
        data["_encrypted"] = False

        back = NoteCodec.decrypt_note(WireNote.from_json(data), SECRET)
        self.assertEqual(back.title, "hidden")
        self.assertEqual(back.content, "body")

    def test_corrupted_title_hmac_yields_sentinel(self):
        note = PlainNote(title="Meeting Notes", content="Discuss Q3 roadmap")
        data = NoteCodec.encrypt_note(note, SECRET, SALT).to_json()
        data["title"]["hmac"] = "00" * 32

        back = NoteCodec.decrypt_note(WireNote.from_json(data), SECRET)

        self.assertEqual(back.title, TITLE_KEY_MISMATCH)
        self.assertEqual(back.content, "Discuss Q3 roadmap")
        self.assertTrue(back.decryption_failed)
        self.assertTrue(back.key_mismatch)

    def test_unsupported_title_version_yields_failed_sentinel(self):
        note = PlainNote(title="a", content="b")
        wire = NoteCodec.encrypt_note(note, SECRET, SALT)
        data = wire.to_json()
        data["title"]["version"] = "9.9"

        back = NoteCodec.decrypt_note(WireNote.from_json(data), SECRET)
        self.assertEqual(back.title, TITLE_DECRYPTION_FAILED)
        self.assertTrue(back.decryption_failed)
        self.assertFalse(back.key_mismatch)

    def test_wrong_key_marks_mismatch(self):
        wire = NoteCodec.encrypt_note(PlainNote(title="a", content="b", tags=["t"]), SECRET, SALT)
        back = NoteCodec.decrypt_note(wire, "e" * 64)

        self.assertEqual(back.title, TITLE_KEY_MISMATCH)
        self.assertEqual(back.content, "")
        self.assertEqual(back.tags, [])
        self.assertTrue(back.key_mismatch)

    def test_encrypted_note_without_secret_raises(self):
        wire = NoteCodec.encrypt_note(PlainNote(title="a", content="b"), SECRET, SALT)
        with self.assertRaises(MissingKeyError):
            NoteCodec.decrypt_note(wire, "")

    def test_encrypt_requires_salt(self):
        with self.assertRaises(MissingKeyError):
            NoteCodec.encrypt_note(PlainNote(), SECRET, "")

    def test_failure_policy_fail(self):
        note = PlainNote(title=None, content="c")
        with self.assertRaises(EncryptionDegradedError):
            NoteCodec.encrypt_note(note, SECRET, SALT)

    def test_failure_policy_degrade(self):
        note = PlainNote(title=None, content="c")
        with self.assertLogs("csfle.codec", level="WARNING"):
            wire = NoteCodec.encrypt_note(note, SECRET, SALT, on_failure=ON_FAILURE_DEGRADE)

        self.assertFalse(wire.encrypted_marker)
        self.assertEqual(wire.content, Plain("c"))
