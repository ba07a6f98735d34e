# csfle/sync.py

"""
Encrypt-before-write / decrypt-after-read around the notes API.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Optional

from .codec import TITLE_DECRYPTION_FAILED, NoteCodec
from .config import CSFLEConfig
from .errors import (
    CSFLEError,
    DecryptionError,
    KeyConsistencyError,
    PendingOperationError,
)
from .keys import EncryptionSession
from .notes import PlainNote, WireNote

logger = logging.getLogger(__name__)

VERIFICATION_SAMPLE = PlainNote(title="Test Title", content="Test Content", tags=["test"])


@dataclass
class NotePage:
    notes: List[PlainNote] = field(default_factory=list)
    total: int = 0
    total_pages: int = 1
    current_page: int = 1

    @property
    def failed(self) -> int:
        return sum(1 for n in self.notes if n.decryption_failed)

    @property
    def key_mismatches(self) -> int:
        return sum(1 for n in self.notes if n.key_mismatch)


class SyncClient:

    def __init__(self, transport, session: EncryptionSession, config: Optional[CSFLEConfig] = None):
        self.transport = transport
        self.session = session
        self.config = config or CSFLEConfig()

        self._pending = set()
        self._pending_lock = threading.Lock()

    # ---------------------------------------------------------
    # Pending-operation marker
    # ---------------------------------------------------------

    @contextmanager
    def _pending_write(self, key):
        with self._pending_lock:
            if key in self._pending:
                raise PendingOperationError(key)
            self._pending.add(key)
        try:
            yield
        finally:
            with self._pending_lock:
                self._pending.discard(key)

    def is_pending(self, note_id) -> bool:
        with self._pending_lock:
            return note_id in self._pending

    # ---------------------------------------------------------
    # Encrypt / decrypt
    # ---------------------------------------------------------

    @staticmethod
    def _same_content(original: PlainNote, decrypted: PlainNote) -> bool:
        expected_tags = [t for t in original.tags if isinstance(t, str) and t.strip()]
        return (
            not decrypted.decryption_failed
            and decrypted.title == original.title
            and decrypted.content == original.content
            and decrypted.tags == expected_tags
        )

    def encrypt_note(self, note: PlainNote) -> WireNote:
        if not self.session.active:
            logger.info(
                "Encryption disabled or no salt, sending plaintext",
                extra={"event": "encrypt_skipped", "note_id": note.id},
            )
            return WireNote.from_plain(note)

        wire = NoteCodec.encrypt_note(
            note,
            self.session.secret,
            self.session.salt,
            on_failure=self.config.on_encrypt_failure,
        )

        if not wire.encrypted_marker:
            # degraded to plaintext by policy
            return wire

        try:
            check = NoteCodec.decrypt_note(wire, self.session.secret)
        except CSFLEError as exc:
            raise KeyConsistencyError(f"Encryption verification failed: {exc}") from exc

        if not self._same_content(note, check):
            logger.error(
                "Encryption verification failed - key mismatch",
                extra={"event": "encrypt_verify_failed", "note_id": note.id},
            )
            raise KeyConsistencyError("Encryption verification failed - key mismatch")

        return wire

    def decrypt_note(self, data) -> PlainNote:
        wire = data if isinstance(data, WireNote) else WireNote.from_json(data or {})
        return NoteCodec.decrypt_note(wire, self.session.secret)

    def _decrypt_isolated(self, raw: dict) -> PlainNote:
        try:
            return self.decrypt_note(raw)
        except (CSFLEError, TypeError, ValueError, AttributeError) as exc:
            logger.error(
                "Failed to decrypt note: %s",
                type(exc).__name__,
                extra={"event": "decrypt_note_failed", "note_id": raw.get("id") if isinstance(raw, dict) else None},
            )
            meta = PlainNote.from_json(raw if isinstance(raw, dict) else {})
            return meta.copy(
                title=TITLE_DECRYPTION_FAILED,
                content="",
                tags=[],
                decryption_failed=True,
                key_mismatch=isinstance(exc, DecryptionError) and exc.key_mismatch,
            )

    def decrypt_many(self, raw_notes) -> List[PlainNote]:
        """
        Decrypt a batch of notes concurrently. Each note is an independent
        task; results keep the input order.
        """
        raw_notes = list(raw_notes)
        if not raw_notes:
            return []

        workers = min(self.config.max_workers, len(raw_notes))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="csfle-decrypt") as pool:
            return list(pool.map(self._decrypt_isolated, raw_notes))

    def verify_encryption_key(self) -> bool:
        """Round-trip a sample note through the current session key."""
        if not self.session.active:
            return True
        try:
            self.encrypt_note(VERIFICATION_SAMPLE)
        except CSFLEError as exc:
            logger.error(
                "Encryption key verification failed: %s",
                exc,
                extra={"event": "key_verify_failed"},
            )
            return False
        return True

    # ---------------------------------------------------------
    # Notes API
    # ---------------------------------------------------------

    def create_note(self, note: PlainNote, client_ref=None) -> PlainNote:
        """
        ``client_ref`` identifies an unsaved draft so two saves of the same
        draft cannot both create a note.
        """
        key = note.id or client_ref
        if key is None:
            return self._create(note)
        with self._pending_write(key):
            return self._create(note)

    def _create(self, note: PlainNote) -> PlainNote:
        wire = self.encrypt_note(note)
        data = self.transport.create_note(wire.to_json())
        return self.decrypt_note(data)

    def update_note(self, note_id, note: PlainNote) -> PlainNote:
        with self._pending_write(note_id):
            wire = self.encrypt_note(note)
            data = self.transport.update_note(note_id, wire.to_json())
            return self.decrypt_note(data)

    def fetch_note(self, note_id) -> PlainNote:
        return self.decrypt_note(self.transport.get_note(note_id))

    def fetch_notes(
        self,
        page=1,
        limit=20,
        search=None,
        sort_by="lastModified",
        sort_order="desc",
        filter="all",
    ) -> NotePage:
        params = {
            "page": page,
            "limit": limit,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "filter": filter,
        }
        if search:
            params["search"] = search

        data = self.transport.list_notes(params)
        notes = self.decrypt_many(data.get("notes") or [])

        result = NotePage(
            notes=notes,
            total=data.get("total", len(notes)),
            total_pages=data.get("totalPages", 1),
            current_page=data.get("currentPage", page),
        )

        if result.key_mismatches:
            logger.warning(
                "%s note(s) encrypted with a different key",
                result.key_mismatches,
                extra={"event": "key_mismatch_batch"},
            )
        elif result.failed:
            logger.warning(
                "%s note(s) failed to decrypt",
                result.failed,
                extra={"event": "decrypt_failed_batch"},
            )
        return result

    def delete_note(self, note_id):
        with self._pending_write(note_id):
            return self.transport.delete_note(note_id)

    def toggle_favorite(self, note_id) -> PlainNote:
        return self.decrypt_note(self.transport.toggle_favorite(note_id))

    def toggle_archive(self, note_id) -> PlainNote:
        return self.decrypt_note(self.transport.toggle_archive(note_id))

    def fetch_history(self, note_id) -> List[dict]:
        """
        Previous versions of a note's content, decrypted. Entries that fail
        to decrypt carry an empty content and ``decryptionFailed``.
        """
        entries = []
        for entry in self.transport.get_history(note_id):
            plain = self.decrypt_note({"content": entry.get("content"), "title": ""})
            entries.append({
                "version": entry.get("version"),
                "timestamp": entry.get("timestamp"),
                "content": plain.content,
                "decryptionFailed": plain.decryption_failed,
            })
        return entries

    def restore_version(self, note_id, version) -> PlainNote:
        with self._pending_write(note_id):
            return self.decrypt_note(self.transport.restore_version(note_id, version))

    def bulk(self, action, note_ids):
        return self.transport.bulk(action, note_ids)

    def stats(self):
        return self.transport.stats()
