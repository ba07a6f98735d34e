# csfle/fields.py

"""
Wire shapes for encrypted note fields.

A stored title/content/tag is either a plain string or an encrypted field
object. On the wire both look like JSON; in memory they are the tagged
variant ``Plain | Encrypted`` so every boundary handles both cases
explicitly instead of poking at dict keys.
"""

from dataclasses import dataclass
from typing import Optional, Union

ALGORITHM = "AES-256-CBC"
VERSION = "1.0"

SUPPORTED_VERSIONS = {
    ALGORITHM: {VERSION},
}


@dataclass(frozen=True)
class EncryptedField:
    ciphertext: str
    iv: str
    hmac: str
    salt: str
    algorithm: str = ALGORITHM
    version: str = VERSION

    @classmethod
    def from_json(cls, data: dict) -> "EncryptedField":
        return cls(
            ciphertext=str(data.get("ciphertext") or ""),
            iv=str(data.get("iv") or ""),
            hmac=str(data.get("hmac") or ""),
            salt=str(data.get("salt") or ""),
            algorithm=str(data.get("algorithm") or ""),
            version=str(data.get("version") or ""),
        )

    def to_json(self) -> dict:
        return {
            "ciphertext": self.ciphertext,
            "iv": self.iv,
            "hmac": self.hmac,
            "salt": self.salt,
            "algorithm": self.algorithm,
            "version": self.version,
        }


@dataclass(frozen=True)
class Plain:
    text: str


@dataclass(frozen=True)
class Encrypted:
    field: EncryptedField


Field = Union[Plain, Encrypted]


def is_encrypted_shape(value) -> bool:
    """True when a raw JSON value looks like an encrypted field object."""
    return isinstance(value, dict) and bool(value.get("ciphertext"))


def parse_field(value) -> Optional[Field]:
    """
    Classify a raw wire value by its shape.

    Returns None for values that are neither a string nor an encrypted
    object (null, numbers, half-written dicts); callers substitute a
    default.
    """
    if isinstance(value, str):
        return Plain(value)
    if is_encrypted_shape(value):
        return Encrypted(EncryptedField.from_json(value))
    return None


def dump_field(field: Field):
    if isinstance(field, Plain):
        return field.text
    if isinstance(field, Encrypted):
        return field.field.to_json()
    raise TypeError(f"Unknown field variant: {type(field).__name__}")


def note_marker_from_shape(title, content) -> bool:
    """
    The ``_encrypted`` marker a note should carry: both title and content
    are encrypted objects. Accepts raw wire values or parsed fields.
    """
    def _encrypted(value):
        if isinstance(value, Encrypted):
            return True
        if isinstance(value, Plain):
            return False
        return is_encrypted_shape(value)

    return _encrypted(title) and _encrypted(content)


def has_any_encrypted_field(title, content, tags) -> bool:
    values = [title, content] + list(tags or [])
    return any(
        isinstance(v, Encrypted) or is_encrypted_shape(v)
        for v in values
    )
