# notes/models.py

import uuid
from django.conf import settings
from django.db import models
from django.utils import timezone


def default_metadata():
    return {
        "fontSize": 16,
        "fontFamily": "Arial, sans-serif",
        "lineHeight": 1.5,
        "textAlign": "left",
    }


class Note(models.Model):
    """
    A note as stored by the server.

    title, content and each tag are either a plain string or an encrypted
    field object. The server never decrypts; it only looks at the shape.
    """

    # -------------------------
    # Identity
    # -------------------------
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notes",
    )

    # -------------------------
    # Fields (plain or encrypted)
    # -------------------------
    title = models.JSONField(default="Untitled Note")
    content = models.JSONField(default="", blank=True)
    tags = models.JSONField(default=list, blank=True)

    # Cache of "title and content are both encrypted" (wire `_encrypted`)
    is_encrypted = models.BooleanField(default=False)

    # Plaintext fields only, lowercased; empty for encrypted notes
    search_text = models.TextField(blank=True, default="")

    # -------------------------
    # Flags / stats
    # -------------------------
    is_favorite = models.BooleanField(default=False)
    is_archived = models.BooleanField(default=False)

    word_count = models.PositiveIntegerField(default=0)
    character_count = models.PositiveIntegerField(default=0)

    version = models.PositiveIntegerField(default=1)
    last_modified = models.DateTimeField(default=timezone.now)

    metadata = models.JSONField(default=default_metadata, blank=True)

    # -------------------------
    # Lifecycle
    # -------------------------
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["owner", "-created_at"], name="notes_note_owner_created_idx"),
            models.Index(fields=["owner", "is_favorite"], name="notes_note_owner_fav_idx"),
            models.Index(fields=["owner", "is_archived"], name="notes_note_owner_arch_idx"),
        ]

    def __str__(self):
        return f"Note({self.id}, owner={self.owner_id}, v={self.version})"


class NoteRevision(models.Model):
    """Previous content of a note, stored as-is (plain or encrypted)."""

    note = models.ForeignKey(
        Note,
        on_delete=models.CASCADE,
        related_name="revisions",
    )
    version = models.PositiveIntegerField()
    content = models.JSONField(default="", blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["version"]
        unique_together = ("note", "version")

    def __str__(self):
        return f"NoteRevision(note={self.note_id}, v={self.version})"
