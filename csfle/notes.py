# csfle/notes.py

"""
In-memory note documents.

PlainNote is what the editor works with. WireNote is what travels to and
from the server: same metadata, but title/content/tags are Field variants
and the document carries the ``_encrypted`` marker.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional

from .fields import Field, Plain, dump_field, parse_field

DEFAULT_TITLE = "Untitled Note"

# Keys mapped onto dataclass attributes; everything else rides in ``extra``.
_META_KEYS = {
    "id": "id",
    "version": "version",
    "lastModified": "last_modified",
    "metadata": "metadata",
    "isFavorite": "is_favorite",
    "isArchived": "is_archived",
}
_FIELD_KEYS = {"title", "content", "tags", "_encrypted"}
_FLAG_KEYS = {"_decryptionFailed", "_keyMismatch"}


def _split_meta(data: dict):
    meta = {}
    extra = {}
    for key, value in data.items():
        if key in _META_KEYS:
            meta[_META_KEYS[key]] = value
        elif key not in _FIELD_KEYS and key not in _FLAG_KEYS:
            extra[key] = value
    meta.setdefault("metadata", {})
    if meta["metadata"] is None:
        meta["metadata"] = {}
    return meta, extra


def _meta_to_json(note) -> dict:
    data = dict(note.extra)
    if note.id is not None:
        data["id"] = note.id
    if note.version is not None:
        data["version"] = note.version
    if note.last_modified is not None:
        data["lastModified"] = note.last_modified
    data["metadata"] = dict(note.metadata)
    data["isFavorite"] = note.is_favorite
    data["isArchived"] = note.is_archived
    return data


@dataclass
class PlainNote:
    title: str = DEFAULT_TITLE
    content: str = ""
    tags: List[str] = field(default_factory=list)
    id: Optional[str] = None
    version: Optional[int] = None
    last_modified: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    is_favorite: bool = False
    is_archived: bool = False
    decryption_failed: bool = False
    key_mismatch: bool = False
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict) -> "PlainNote":
        meta, extra = _split_meta(data)
        title = data.get("title")
        content = data.get("content")
        return cls(
            title=title if isinstance(title, str) else DEFAULT_TITLE,
            content=content if isinstance(content, str) else "",
            tags=[t for t in (data.get("tags") or []) if isinstance(t, str)],
            extra=extra,
            **meta,
        )

    def to_json(self) -> dict:
        data = _meta_to_json(self)
        data.update({
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
        })
        if self.decryption_failed:
            data["_decryptionFailed"] = True
        if self.key_mismatch:
            data["_keyMismatch"] = True
        return data

    def copy(self, **changes) -> "PlainNote":
        return replace(
            self,
            tags=list(changes.pop("tags", self.tags)),
            metadata=dict(changes.pop("metadata", self.metadata)),
            extra=dict(changes.pop("extra", self.extra)),
            **changes,
        )


@dataclass
class WireNote:
    title: Optional[Field] = None
    content: Optional[Field] = None
    tags: List[Optional[Field]] = field(default_factory=list)
    encrypted_marker: bool = False
    id: Optional[str] = None
    version: Optional[int] = None
    last_modified: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    is_favorite: bool = False
    is_archived: bool = False
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict) -> "WireNote":
        meta, extra = _split_meta(data)
        return cls(
            title=parse_field(data.get("title")),
            content=parse_field(data.get("content")),
            tags=[parse_field(t) for t in (data.get("tags") or [])],
            encrypted_marker=bool(data.get("_encrypted")),
            extra=extra,
            **meta,
        )

    @classmethod
    def from_plain(cls, note: PlainNote) -> "WireNote":
        """Unencrypted wire form of a note; the marker stays False."""
        return cls(
            title=Plain(note.title),
            content=Plain(note.content),
            tags=[Plain(t) for t in note.tags],
            encrypted_marker=False,
            id=note.id,
            version=note.version,
            last_modified=note.last_modified,
            metadata=dict(note.metadata),
            is_favorite=note.is_favorite,
            is_archived=note.is_archived,
            extra=dict(note.extra),
        )

    def to_json(self) -> dict:
        data = _meta_to_json(self)
        if self.title is not None:
            data["title"] = dump_field(self.title)
        if self.content is not None:
            data["content"] = dump_field(self.content)
        data["tags"] = [dump_field(t) for t in self.tags if t is not None]
        data["_encrypted"] = self.encrypted_marker
        return data
