from django.contrib import admin
from .models import Note, NoteRevision


@admin.register(Note)
class NoteAdmin(admin.ModelAdmin):
    list_display = ("id", "owner", "is_encrypted", "version", "last_modified")
    list_filter = ("is_encrypted", "is_favorite", "is_archived")
    search_fields = ("owner__username",)
    readonly_fields = ("title", "content", "tags", "search_text")


@admin.register(NoteRevision)
class NoteRevisionAdmin(admin.ModelAdmin):
    list_display = ("note", "version", "timestamp")
