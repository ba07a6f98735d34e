from django.urls import path

from . import views

urlpatterns = [
    path("", views.notes_collection, name="notes"),
    path("bulk/", views.bulk_notes, name="notes-bulk"),
    path("stats/summary/", views.notes_stats, name="notes-stats"),

    path("<uuid:note_id>/", views.note_detail, name="note-detail"),
    path("<uuid:note_id>/favorite/", views.toggle_favorite, name="note-favorite"),
    path("<uuid:note_id>/archive/", views.toggle_archive, name="note-archive"),
    path("<uuid:note_id>/history/", views.note_history, name="note-history"),
    path("<uuid:note_id>/restore/<int:version>/", views.restore_version, name="note-restore"),
]
