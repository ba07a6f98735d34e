# csfle/codec.py

"""
Whole-note encryption.

NoteCodec walks the sensitive fields of a note (title, content, tags) and
runs each through FieldCipher. Encryption is all-or-nothing per note;
decryption is per field and never raises for a single bad field.
"""

import logging
from typing import Optional, Tuple

from .cipher import FieldCipher
from .config import ON_FAILURE_DEGRADE, ON_FAILURE_FAIL
from .errors import (
    CSFLEError,
    DecryptionError,
    EncryptionDegradedError,
    MissingKeyError,
)
from .fields import Encrypted, Field, Plain, has_any_encrypted_field
from .notes import DEFAULT_TITLE, PlainNote, WireNote

logger = logging.getLogger(__name__)

TITLE_KEY_MISMATCH = "Encrypted Note (Key Mismatch)"
TITLE_DECRYPTION_FAILED = "Encrypted Note (Decryption Failed)"


class NoteCodec:

    @staticmethod
    def _encrypt_value(value, secret: str, salt: str) -> Encrypted:
        encrypted = FieldCipher.encrypt(value, secret, salt)
        if encrypted is None:
            raise EncryptionDegradedError(
                f"Cannot encrypt value of type {type(value).__name__}"
            )
        return Encrypted(encrypted)

    @staticmethod
    def encrypt_note(
        note: PlainNote,
        secret: str,
        salt: str,
        on_failure: str = ON_FAILURE_FAIL,
    ) -> WireNote:
        """
        Return a new wire note with title, content and non-blank tags
        encrypted and the marker set. ``note`` is left untouched.

        If any field fails, ``on_failure`` decides: "fail" raises
        EncryptionDegradedError, "degrade" returns the plaintext note
        unmarked.
        """
        if not secret or not salt:
            raise MissingKeyError("Secret and salt are required to encrypt a note")

        try:
            title = NoteCodec._encrypt_value(note.title, secret, salt)
            content = NoteCodec._encrypt_value(note.content, secret, salt)
            tags = [
                NoteCodec._encrypt_value(tag, secret, salt)
                if isinstance(tag, str) and tag.strip()
                else Plain(tag)
                for tag in note.tags
            ]
        except (CSFLEError, TypeError, ValueError) as exc:
            if on_failure != ON_FAILURE_DEGRADE:
                if isinstance(exc, EncryptionDegradedError):
                    raise
                raise EncryptionDegradedError(str(exc)) from exc

            logger.warning(
                "Note encryption failed, sending plaintext",
                extra={"event": "encrypt_degraded", "note_id": note.id},
            )
            return WireNote.from_plain(note)

        wire = WireNote.from_plain(note)
        wire.title = title
        wire.content = content
        wire.tags = tags
        wire.encrypted_marker = True
        return wire

    @staticmethod
    def _decrypt_field(field: Optional[Field], secret: str, default: str) -> str:
        if field is None:
            return default
        if isinstance(field, Plain):
            return field.text
        if isinstance(field, Encrypted):
            return FieldCipher.decrypt(field.field, secret)
        raise TypeError(f"Unknown field variant: {type(field).__name__}")

    @staticmethod
    def _safe_decrypt(
        wire: WireNote, name: str, field: Optional[Field], secret: str, default: str
    ) -> Tuple[Optional[str], Optional[DecryptionError]]:
        try:
            return NoteCodec._decrypt_field(field, secret, default), None
        except DecryptionError as exc:
            logger.warning(
                "Failed to decrypt %s: %s",
                name,
                type(exc).__name__,
                extra={"event": "decrypt_field_failed", "note_id": wire.id},
            )
            return None, exc

    @staticmethod
    def decrypt_note(wire: WireNote, secret: str) -> PlainNote:
        """
        Decrypt every encrypted field of ``wire`` by looking at its shape,
        not at the ``_encrypted`` marker.

        A field that fails is replaced by a sentinel and flagged on the
        returned note (``decryption_failed``, plus ``key_mismatch`` for
        authentication failures).
        """
        if not secret and has_any_encrypted_field(wire.title, wire.content, wire.tags):
            raise MissingKeyError("User secret required for decryption")

        errors = []

        title, err = NoteCodec._safe_decrypt(wire, "title", wire.title, secret, DEFAULT_TITLE)
        if err is not None:
            errors.append(err)
            title = TITLE_KEY_MISMATCH if err.key_mismatch else TITLE_DECRYPTION_FAILED

        content, err = NoteCodec._safe_decrypt(wire, "content", wire.content, secret, "")
        if err is not None:
            errors.append(err)
            content = ""

        tags = []
        for tag in wire.tags:
            value, err = NoteCodec._safe_decrypt(wire, "tag", tag, secret, "")
            if err is not None:
                errors.append(err)
                continue
            if value.strip():
                tags.append(value)

        return PlainNote(
            title=title,
            content=content,
            tags=tags,
            id=wire.id,
            version=wire.version,
            last_modified=wire.last_modified,
            metadata=dict(wire.metadata),
            is_favorite=wire.is_favorite,
            is_archived=wire.is_archived,
            decryption_failed=bool(errors),
            key_mismatch=any(e.key_mismatch for e in errors),
            extra=dict(wire.extra),
        )
