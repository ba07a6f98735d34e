# csfle/cipher.py

"""
Field-level authenticated encryption.

Every value is encrypted on its own:
  - key   = PBKDF2-HMAC-SHA256(secret, salt, 100k iterations), 32 bytes
  - iv    = 16 fresh random bytes per call
  - data  = AES-256-CBC(key, iv, PKCS7(utf-8 plaintext))
  - hmac  = HMAC-SHA256(key, ciphertext_hex || iv_hex)

The HMAC is always checked before the block cipher is touched.
"""

import hashlib
import os
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import (
    CorruptedCiphertextError,
    HmacVerificationError,
    MissingKeyError,
    UnsupportedAlgorithmOrVersionError,
)
from .fields import ALGORITHM, SUPPORTED_VERSIONS, VERSION, EncryptedField


KDF_ITERATIONS = 100_000
KEY_BYTES = 32
IV_BYTES = 16


def generate_user_salt(account_id) -> str:
    """Random per-account salt, hex encoded."""
    base = os.urandom(16).hex()
    return hashlib.sha256(f"{base}{account_id}".encode("utf-8")).hexdigest()


class FieldCipher:

    @staticmethod
    def derive_key(secret: str, salt: str, iterations: int = KDF_ITERATIONS) -> bytes:
        if not secret or not salt:
            raise MissingKeyError("Secret and salt are required to derive a key")

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_BYTES,
            salt=salt.encode("utf-8"),
            iterations=iterations,
        )
        return kdf.derive(secret.encode("utf-8"))

    @staticmethod
    def _mac(key: bytes, ciphertext_hex: str, iv_hex: str) -> hmac.HMAC:
        h = hmac.HMAC(key, hashes.SHA256())
        h.update((ciphertext_hex + iv_hex).encode("utf-8"))
        return h

    @staticmethod
    def encrypt(plaintext, secret: str, salt: str) -> Optional[EncryptedField]:
        """
        Encrypt one text value.

        Returns None when ``plaintext`` is not a string so callers can leave
        the value untouched.
        """
        if not isinstance(plaintext, str):
            return None

        key = FieldCipher.derive_key(secret, salt)
        iv = os.urandom(IV_BYTES)

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        ciphertext_hex = ciphertext.hex()
        iv_hex = iv.hex()
        tag = FieldCipher._mac(key, ciphertext_hex, iv_hex).finalize()

        return EncryptedField(
            ciphertext=ciphertext_hex,
            iv=iv_hex,
            hmac=tag.hex(),
            salt=salt,
            algorithm=ALGORITHM,
            version=VERSION,
        )

    @staticmethod
    def decrypt(field: Union[EncryptedField, dict], secret: str) -> str:
        if isinstance(field, dict):
            field = EncryptedField.from_json(field)

        if not secret:
            raise MissingKeyError("User secret required for decryption")

        if not field.ciphertext or not field.iv or not field.salt:
            raise CorruptedCiphertextError(
                "Invalid encrypted data format - missing required fields"
            )

        supported = SUPPORTED_VERSIONS.get(field.algorithm)
        if supported is None:
            raise UnsupportedAlgorithmOrVersionError(
                f"Unsupported encryption algorithm: {field.algorithm!r}"
            )
        if field.version not in supported:
            raise UnsupportedAlgorithmOrVersionError(
                f"Unsupported encryption version {field.version!r} "
                f"for {field.algorithm}"
            )

        key = FieldCipher.derive_key(secret, field.salt)

        try:
            expected = bytes.fromhex(field.hmac)
        except ValueError:
            raise HmacVerificationError("HMAC is not valid hex")
        if not expected:
            raise HmacVerificationError("HMAC missing")

        try:
            FieldCipher._mac(key, field.ciphertext, field.iv).verify(expected)
        except InvalidSignature:
            raise HmacVerificationError(
                "HMAC verification failed - wrong key or tampered data"
            )

        try:
            ciphertext = bytes.fromhex(field.ciphertext)
            iv = bytes.fromhex(field.iv)

            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()

            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            raw = unpadder.update(padded) + unpadder.finalize()

            return raw.decode("utf-8")
        except ValueError as exc:
            # bad hex, wrong iv size, partial block, bad padding, bad utf-8
            raise CorruptedCiphertextError(str(exc)) from exc
