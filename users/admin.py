# users/admin.py
from django.contrib import admin
from .models import UserEncryptionProfile


@admin.register(UserEncryptionProfile)
class UserEncryptionProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "version", "algorithm", "enabled", "created", "updated_at")
    search_fields = ("user__username", "user__email")
    # key material is never shown in the admin
    exclude = ("stable_key",)
    readonly_fields = ("salt",)
