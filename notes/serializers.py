from rest_framework import serializers

from .models import Note, NoteRevision


class NoteSerializer(serializers.ModelSerializer):
    """Wire form of a note (camelCase, ``_encrypted`` marker)."""

    isFavorite = serializers.BooleanField(source="is_favorite")
    isArchived = serializers.BooleanField(source="is_archived")
    wordCount = serializers.IntegerField(source="word_count")
    characterCount = serializers.IntegerField(source="character_count")
    lastModified = serializers.DateTimeField(source="last_modified")
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    class Meta:
        model = Note
        fields = (
            "id",
            "title",
            "content",
            "tags",
            "isFavorite",
            "isArchived",
            "wordCount",
            "characterCount",
            "version",
            "lastModified",
            "metadata",
            "createdAt",
            "updatedAt",
        )
        read_only_fields = fields

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data["id"] = str(instance.id)
        data["_encrypted"] = instance.is_encrypted
        return data


class NoteRevisionSerializer(serializers.ModelSerializer):

    class Meta:
        model = NoteRevision
        fields = ("version", "content", "timestamp")
