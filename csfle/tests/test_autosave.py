import threading
from unittest import TestCase
from unittest.mock import MagicMock

from csfle.autosave import AutoSaver
from csfle.config import CSFLEConfig
from csfle.errors import KeyConsistencyError, PendingOperationError
from csfle.notes import PlainNote


def _sync_client():
    sync = MagicMock()
    sync.config = CSFLEConfig(autosave_delay=0.05)
    return sync


class AutoSaverTests(TestCase):

    def test_debounce_writes_latest_draft_once(self):
        sync = _sync_client()
        done = threading.Event()
        sync.update_note.side_effect = lambda note_id, note: done.set()

        saver = AutoSaver(sync)
        saver.schedule("n1", PlainNote(content="a"))
        saver.schedule("n1", PlainNote(content="ab"))
        saver.schedule("n1", PlainNote(content="abc"))

        self.assertTrue(done.wait(2))
        saver.close()

        sync.update_note.assert_called_once()
        self.assertEqual(sync.update_note.call_args[0][1].content, "abc")

    def test_flush_writes_immediately(self):
        sync = _sync_client()
        saver = AutoSaver(sync, delay=60)

        saver.schedule("n1", PlainNote(content="one"))
        saver.schedule("n2", PlainNote(content="two"))
        results = saver.flush()

        self.assertEqual(set(results), {"n1", "n2"})
        self.assertEqual(sync.update_note.call_count, 2)
        self.assertFalse(saver.has_pending("n1"))
        saver.close()

    def test_cancel_drops_draft(self):
        sync = _sync_client()
        saver = AutoSaver(sync, delay=60)

        saver.schedule("n1", PlainNote(content="draft"))
        saver.cancel("n1")

        self.assertFalse(saver.has_pending("n1"))
        self.assertEqual(saver.flush(), {})
        sync.update_note.assert_not_called()

    def test_close_never_writes_partial_drafts(self):
        sync = _sync_client()
        saver = AutoSaver(sync, delay=60)

        saver.schedule("n1", PlainNote(content="draft"))
        with self.assertLogs("csfle.autosave", level="WARNING") as logs:
            saver.close()
        self.assertIn("1 unsaved drafts", logs.output[0])

        saver.schedule("n1", PlainNote(content="after close"))

        self.assertEqual(saver.flush(), {})
        sync.update_note.assert_not_called()

    def test_draft_kept_when_write_in_flight(self):
        sync = _sync_client()
        sync.update_note.side_effect = PendingOperationError("n1")
        saver = AutoSaver(sync, delay=60)

        saver.schedule("n1", PlainNote(content="draft"))
        saver.flush("n1")

        self.assertTrue(saver.has_pending("n1"))
        self.assertIn("n1", saver._timers)
        with self.assertLogs("csfle.autosave", level="WARNING"):
            saver.close()

    def test_retries_after_write_in_flight(self):
        sync = _sync_client()
        done = threading.Event()
        calls = []

        def update(note_id, note):
            calls.append(note.content)
            if len(calls) == 1:
                raise PendingOperationError(note_id)
            done.set()

        sync.update_note.side_effect = update
        saver = AutoSaver(sync)

        saver.schedule("n1", PlainNote(content="draft"))

        self.assertTrue(done.wait(2))
        self.assertEqual(calls, ["draft", "draft"])
        self.assertFalse(saver.has_pending("n1"))
        saver.close()

    def test_permanent_failure_is_not_retried(self):
        sync = _sync_client()
        sync.update_note.side_effect = KeyConsistencyError("mismatch")
        saver = AutoSaver(sync, delay=60)

        saver.schedule("n1", PlainNote(content="draft"))
        with self.assertLogs("csfle.autosave", level="ERROR"):
            saver.flush("n1")

        self.assertTrue(saver.has_pending("n1"))
        self.assertNotIn("n1", saver._timers)
        with self.assertLogs("csfle.autosave", level="WARNING"):
            saver.close()
