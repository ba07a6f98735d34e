# users/models.py
from django.conf import settings
from django.db import models

from csfle.fields import ALGORITHM, VERSION


class UserEncryptionProfile(models.Model):
    """
    Per-user encryption record.

    salt and stable_key are write-once: once non-empty they are never
    replaced, only cleared by the administrative reset. Changing either
    makes every previously encrypted note unreadable.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="encryption_profile",
    )

    # Hex salt mixed into the client-side PBKDF2
    salt = models.CharField(max_length=128, blank=True, default="")

    # Hex key material custodied for the client (stable across logins)
    stable_key = models.CharField(max_length=128, blank=True, default="")

    # Cipher suite metadata (for future migration)
    algorithm = models.CharField(max_length=32, default=ALGORITHM)
    version = models.CharField(max_length=16, default=VERSION)

    enabled = models.BooleanField(default=True)

    created = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"UserEncryptionProfile(user={self.user_id}, version={self.version})"

    @property
    def is_initialized(self) -> bool:
        return bool(self.salt)

    @property
    def has_stable_key(self) -> bool:
        return bool(self.stable_key)
