# notes/services/marker_service.py

import logging

from csfle.fields import note_marker_from_shape

from ..models import Note

logger = logging.getLogger(__name__)


def find_marker_mismatches(queryset=None):
    """Notes whose stored ``is_encrypted`` disagrees with their field shapes."""
    queryset = Note.objects.all() if queryset is None else queryset

    for note in queryset.only("id", "title", "content", "is_encrypted").iterator():
        expected = note_marker_from_shape(note.title, note.content)
        if note.is_encrypted != expected:
            yield note, expected


def recompute_encrypted_markers(dry_run=False):
    """
    Repair the cached marker on every note. Returns (scanned, fixed).
    Idempotent: a second run fixes nothing.
    """
    scanned = Note.objects.count()
    mismatches = list(find_marker_mismatches())

    if dry_run:
        return scanned, len(mismatches)

    to_true = [note.pk for note, expected in mismatches if expected]
    to_false = [note.pk for note, expected in mismatches if not expected]

    Note.objects.filter(pk__in=to_true).update(is_encrypted=True)
    Note.objects.filter(pk__in=to_false).update(is_encrypted=False)

    logger.info(
        "Encrypted markers recomputed",
        extra={"event": "recompute_markers", "count": len(mismatches)},
    )
    return scanned, len(mismatches)
