# csfle/errors.py


class CSFLEError(Exception):
    """Base class for every client-side encryption failure."""


class MissingKeyError(CSFLEError):
    """No secret can be derived (unauthenticated or incomplete profile)."""


class DecryptionError(CSFLEError):
    """A single encrypted field could not be turned back into plaintext."""

    key_mismatch = False


class HmacVerificationError(DecryptionError):
    """Authentication tag mismatch: wrong key or tampered field."""

    key_mismatch = True


class UnsupportedAlgorithmOrVersionError(DecryptionError):
    pass


class CorruptedCiphertextError(DecryptionError):
    """Hex, padding or text encoding is invalid."""


class EncryptionDegradedError(CSFLEError):
    """Encrypting a note failed and the policy forbids plaintext fallback."""


class KeyConsistencyError(CSFLEError):
    """
    The self-verification round trip did not reproduce the original note.
    Raised before anything is sent, the write must be aborted.
    """


class PendingOperationError(CSFLEError):
    def __init__(self, note_id):
        super().__init__(f"A write for note {note_id} is already in flight")
        self.note_id = note_id


class TransportError(CSFLEError):
    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}
