"""
Client-side field-level encryption for NoteVault notes.
"""

from .autosave import AutoSaver
from .cipher import FieldCipher, generate_user_salt
from .codec import NoteCodec
from .config import CSFLEConfig
from .errors import (
    CorruptedCiphertextError,
    CSFLEError,
    DecryptionError,
    EncryptionDegradedError,
    HmacVerificationError,
    KeyConsistencyError,
    MissingKeyError,
    PendingOperationError,
    TransportError,
    UnsupportedAlgorithmOrVersionError,
)
from .fields import Encrypted, EncryptedField, Plain
from .keys import EncryptionProfile, EncryptionSession, KeyDerivationService
from .notes import PlainNote, WireNote
from .sync import NotePage, SyncClient
from .transport import HttpTransport
