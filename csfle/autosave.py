# csfle/autosave.py
import logging
import threading

from .errors import CSFLEError, PendingOperationError, TransportError

logger = logging.getLogger(__name__)


class AutoSaver:
    """
    Debounced auto-save on top of SyncClient.update_note.

    Each edit restarts the note's timer; only the latest draft is written.
    Drafts whose save hit a write in flight or a server outage are retried
    after another delay. cancel()/close() drop pending drafts without
    writing anything; close() logs how many were dropped.
    """

    def __init__(self, sync_client, delay=None):
        self.sync = sync_client
        self.delay = sync_client.config.autosave_delay if delay is None else delay

        self._lock = threading.Lock()
        self._timers = {}
        self._drafts = {}
        self._closed = False

    def schedule(self, note_id, note):
        with self._lock:
            if self._closed:
                logger.info("Auto-save closed, ignoring edit", extra={"note_id": note_id})
                return
            self._drafts[note_id] = note
            self._restart_timer(note_id)

    def _restart_timer(self, note_id):
        timer = self._timers.pop(note_id, None)
        if timer is not None:
            timer.cancel()

        timer = threading.Timer(self.delay, self._fire, args=(note_id,))
        timer.daemon = True
        self._timers[note_id] = timer
        timer.start()

    def has_pending(self, note_id) -> bool:
        with self._lock:
            return note_id in self._drafts

    def _take(self, note_id):
        with self._lock:
            timer = self._timers.pop(note_id, None)
            if timer is not None:
                timer.cancel()
            if self._closed:
                return None
            return self._drafts.pop(note_id, None)

    def _requeue(self, note_id, note, retry):
        """Put a failed draft back; a newer edit for the note wins."""
        with self._lock:
            if self._closed:
                return
            self._drafts.setdefault(note_id, note)
            if retry and note_id not in self._timers:
                self._restart_timer(note_id)

    def _save(self, note_id, note):
        try:
            return self.sync.update_note(note_id, note)
        except PendingOperationError:
            # A save for this note is still running; try again after the delay.
            self._requeue(note_id, note, retry=True)
            logger.info("Auto-save skipped, write in flight", extra={"note_id": note_id})
        except CSFLEError as exc:
            transient = isinstance(exc, TransportError) and (
                exc.status_code is None or exc.status_code >= 500
            )
            self._requeue(note_id, note, retry=transient)
            logger.error(
                "Auto-save failed: %s",
                exc,
                extra={"event": "autosave_failed", "note_id": note_id},
            )
        return None

    def _fire(self, note_id):
        note = self._take(note_id)
        if note is not None:
            self._save(note_id, note)

    def flush(self, note_id=None):
        """Write pending drafts now instead of waiting for the timers."""
        with self._lock:
            ids = [note_id] if note_id is not None else list(self._drafts)

        results = {}
        for nid in ids:
            note = self._take(nid)
            if note is not None:
                results[nid] = self._save(nid, note)
        return results

    def cancel(self, note_id):
        with self._lock:
            timer = self._timers.pop(note_id, None)
            if timer is not None:
                timer.cancel()
            self._drafts.pop(note_id, None)

    def close(self):
        with self._lock:
            self._closed = True
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            dropped = list(self._drafts)
            self._drafts.clear()

        if dropped:
            logger.warning(
                "Auto-save closed with %d unsaved drafts",
                len(dropped),
                extra={"event": "autosave_dropped", "count": len(dropped)},
            )
