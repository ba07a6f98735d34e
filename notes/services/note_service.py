# notes/services/note_service.py

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from csfle.fields import is_encrypted_shape, note_marker_from_shape
from csfle.notes import DEFAULT_TITLE

from ..models import Note, NoteRevision

logger = logging.getLogger(__name__)

TEXT_ALIGN_CHOICES = ("left", "center", "right", "justify")

BULK_ACTIONS = {
    "favorite": {"is_favorite": True},
    "unfavorite": {"is_favorite": False},
    "archive": {"is_archived": True},
    "unarchive": {"is_archived": False},
}


class NoteValidationError(ValueError):
    pass


def history_limit() -> int:
    return getattr(settings, "NOTEVAULT_HISTORY_LIMIT", 10)


def _check_field(name, value):
    if isinstance(value, str) or is_encrypted_shape(value):
        return value
    raise NoteValidationError(f"{name} must be a string or an encrypted field")


def _check_tags(value):
    if not isinstance(value, list):
        raise NoteValidationError("tags must be a list")
    return [_check_field("tag", t) for t in value]


def _check_metadata(value):
    if not isinstance(value, dict):
        raise NoteValidationError("metadata must be an object")
    align = value.get("textAlign")
    if align is not None and align not in TEXT_ALIGN_CHOICES:
        raise NoteValidationError(f"Invalid textAlign: {align}")
    return value


def content_counts(content):
    """(word_count, character_count); both 0 for encrypted content."""
    if not isinstance(content, str):
        return 0, 0
    text = content.strip()
    return (len(text.split()) if text else 0), len(content)


def build_search_text(title, content, tags) -> str:
    parts = [v for v in [title, content] + list(tags or []) if isinstance(v, str)]
    return "\n".join(parts).lower()


class NoteService:
    """
    Server-side note store.

    The ``_encrypted`` marker sent by clients is advisory: the stored
    value is always recomputed from the field shapes.
    """

    # ==================================================
    # MARKER
    # ==================================================

    @staticmethod
    def _apply_marker(note, claimed=None):
        marker = note_marker_from_shape(note.title, note.content)
        if claimed is not None and bool(claimed) != marker:
            logger.warning(
                "Client encryption marker disagrees with field shape",
                extra={
                    "event": "marker_mismatch",
                    "note_id": str(note.id),
                    "user_id": note.owner_id,
                },
            )
        note.is_encrypted = marker

    @staticmethod
    def _refresh_derived(note):
        note.word_count, note.character_count = content_counts(note.content)
        note.search_text = build_search_text(note.title, note.content, note.tags)

    @staticmethod
    def _push_revision(note):
        NoteRevision.objects.create(
            note=note,
            version=note.version,
            content=note.content,
            timestamp=note.last_modified,
        )

        keep = history_limit()
        stale = list(
            note.revisions.order_by("-version").values_list("pk", flat=True)[keep:]
        )
        if stale:
            NoteRevision.objects.filter(pk__in=stale).delete()

    # ==================================================
    # CREATE / UPDATE
    # ==================================================

    @staticmethod
    def _clean(data, partial):
        cleaned = {}

        if "title" in data:
            title = data.get("title")
            cleaned["title"] = DEFAULT_TITLE if title in (None, "") else _check_field("title", title)
        elif not partial:
            cleaned["title"] = DEFAULT_TITLE

        if "content" in data:
            content = data.get("content")
            cleaned["content"] = "" if content is None else _check_field("content", content)
        elif not partial:
            cleaned["content"] = ""

        if "tags" in data:
            cleaned["tags"] = _check_tags(data.get("tags") or [])

        if data.get("metadata") is not None:
            cleaned["metadata"] = _check_metadata(data["metadata"])

        for key, attr in (("isFavorite", "is_favorite"), ("isArchived", "is_archived")):
            if data.get(key) is not None:
                cleaned[attr] = bool(data[key])

        return cleaned

    @staticmethod
    def create(owner, data) -> Note:
        cleaned = NoteService._clean(data, partial=False)
        metadata = cleaned.pop("metadata", None)

        note = Note(owner=owner, **cleaned)
        if metadata:
            note.metadata = {**note.metadata, **metadata}

        NoteService._apply_marker(note, data.get("_encrypted"))
        NoteService._refresh_derived(note)

        with transaction.atomic():
            note.save()
            NoteService._push_revision(note)

        logger.info(
            "Note created",
            extra={"event": "note_created", "note_id": str(note.id), "user_id": owner.pk},
        )
        return note

    @staticmethod
    def update(note, data) -> Note:
        cleaned = NoteService._clean(data, partial=True)
        content_changed = "content" in cleaned and cleaned["content"] != note.content

        metadata = cleaned.pop("metadata", None)
        for attr, value in cleaned.items():
            setattr(note, attr, value)
        if metadata:
            note.metadata = {**(note.metadata or {}), **metadata}

        NoteService._apply_marker(note, data.get("_encrypted"))
        NoteService._refresh_derived(note)
        note.last_modified = timezone.now()

        with transaction.atomic():
            if content_changed:
                note.version += 1
            note.save()
            if content_changed:
                NoteService._push_revision(note)

        return note

    @staticmethod
    def restore(note, version) -> Note:
        """Raises NoteRevision.DoesNotExist for unknown versions."""
        revision = note.revisions.get(version=version)
        return NoteService.update(note, {"content": revision.content})

    # ==================================================
    # FLAGS
    # ==================================================

    @staticmethod
    def toggle(note, attr) -> Note:
        setattr(note, attr, not getattr(note, attr))
        note.save(update_fields=[attr, "updated_at"])
        return note

    @staticmethod
    def bulk(owner, action, note_ids):
        """Returns the number of notes affected. Raises NoteValidationError."""
        qs = Note.objects.filter(owner=owner, id__in=note_ids)

        if action == "delete":
            count = qs.count()
            qs.delete()
        elif action in BULK_ACTIONS:
            count = qs.update(updated_at=timezone.now(), **BULK_ACTIONS[action])
        else:
            raise NoteValidationError("Invalid action")

        logger.info(
            "Bulk note operation",
            extra={"event": f"bulk_{action}", "user_id": owner.pk, "count": count},
        )
        return count

    # ==================================================
    # STATS
    # ==================================================

    @staticmethod
    def stats(owner) -> dict:
        agg = Note.objects.filter(owner=owner).aggregate(
            totalNotes=Count("id"),
            totalWords=Sum("word_count"),
            totalCharacters=Sum("character_count"),
            favoriteNotes=Count("id", filter=Q(is_favorite=True)),
            archivedNotes=Count("id", filter=Q(is_archived=True)),
            encryptedNotes=Count("id", filter=Q(is_encrypted=True)),
        )
        return {key: value or 0 for key, value in agg.items()}
