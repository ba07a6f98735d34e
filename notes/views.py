import math
import uuid

from django.conf import settings
from django.http import JsonResponse
from django.shortcuts import get_object_or_404

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .models import Note, NoteRevision
from .serializers import NoteRevisionSerializer, NoteSerializer
from .services.note_service import NoteService, NoteValidationError

SORT_FIELDS = {
    "lastModified": "last_modified",
    "createdAt": "created_at",
    "title": "title",
}

PAGE_SIZE = getattr(settings, "NOTEVAULT_PAGE_SIZE", 20)
MAX_PAGE_SIZE = getattr(settings, "NOTEVAULT_MAX_PAGE_SIZE", 100)


def _int_param(value, default, minimum=1, maximum=None):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def _owned_note(request, note_id):
    return get_object_or_404(Note, id=note_id, owner=request.user)


# ============================================================
# LIST / CREATE
# ============================================================

@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def notes_collection(request):
    if request.method == "POST":
        try:
            note = NoteService.create(request.user, request.data or {})
        except NoteValidationError as e:
            return JsonResponse({"error": str(e)}, status=400)
        return JsonResponse(NoteSerializer(note).data, status=201)

    params = request.query_params
    page = _int_param(params.get("page"), 1)
    limit = _int_param(params.get("limit"), PAGE_SIZE, maximum=MAX_PAGE_SIZE)

    qs = Note.objects.filter(owner=request.user)

    note_filter = params.get("filter", "all")
    if note_filter == "favorite":
        qs = qs.filter(is_favorite=True)
    elif note_filter == "archived":
        qs = qs.filter(is_archived=True)

    # Only plaintext fields are indexed into search_text
    search = (params.get("search") or "").strip()
    if search:
        qs = qs.filter(search_text__contains=search.lower())

    sort_field = SORT_FIELDS.get(params.get("sortBy"), "last_modified")
    if params.get("sortOrder", "desc") == "desc":
        sort_field = f"-{sort_field}"
    qs = qs.order_by(sort_field, "-created_at")

    total = qs.count()
    offset = (page - 1) * limit
    notes = qs[offset:offset + limit]

    return JsonResponse({
        "notes": NoteSerializer(notes, many=True).data,
        "total": total,
        "totalPages": math.ceil(total / limit),
        "currentPage": page,
    })


# ============================================================
# DETAIL
# ============================================================

@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def note_detail(request, note_id):
    note = _owned_note(request, note_id)

    if request.method == "GET":
        return JsonResponse(NoteSerializer(note).data)

    if request.method == "DELETE":
        note.delete()
        return JsonResponse({"message": "Note deleted successfully"})

    try:
        note = NoteService.update(note, request.data or {})
    except NoteValidationError as e:
        return JsonResponse({"error": str(e)}, status=400)

    return JsonResponse(NoteSerializer(note).data)


@api_view(["PATCH"])
@permission_classes([IsAuthenticated])
def toggle_favorite(request, note_id):
    note = NoteService.toggle(_owned_note(request, note_id), "is_favorite")
    return JsonResponse(NoteSerializer(note).data)


@api_view(["PATCH"])
@permission_classes([IsAuthenticated])
def toggle_archive(request, note_id):
    note = NoteService.toggle(_owned_note(request, note_id), "is_archived")
    return JsonResponse(NoteSerializer(note).data)


# ============================================================
# HISTORY
# ============================================================

@api_view(["GET"])
@permission_classes([IsAuthenticated])
def note_history(request, note_id):
    note = _owned_note(request, note_id)
    data = NoteRevisionSerializer(note.revisions.all(), many=True).data
    return JsonResponse(data, safe=False)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def restore_version(request, note_id, version):
    note = _owned_note(request, note_id)

    try:
        note = NoteService.restore(note, version)
    except NoteRevision.DoesNotExist:
        return JsonResponse({"error": "Version not found"}, status=404)

    return JsonResponse(NoteSerializer(note).data)


# ============================================================
# BULK / STATS
# ============================================================

@api_view(["POST"])
@permission_classes([IsAuthenticated])
def bulk_notes(request):
    body = request.data or {}
    action = body.get("action")
    note_ids = body.get("noteIds")

    if not isinstance(note_ids, list) or not note_ids:
        return JsonResponse({"error": "Invalid note IDs"}, status=400)

    try:
        note_ids = [uuid.UUID(str(i)) for i in note_ids]
    except ValueError:
        return JsonResponse({"error": "Invalid note IDs"}, status=400)

    try:
        count = NoteService.bulk(request.user, action, note_ids)
    except NoteValidationError as e:
        return JsonResponse({"error": str(e)}, status=400)

    return JsonResponse({
        "message": f"Notes {action} successfully",
        "modifiedCount": count,
    })


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def notes_stats(request):
    return JsonResponse(NoteService.stats(request.user))
