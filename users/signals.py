# users/signals.py
from django.contrib.auth import get_user_model
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import UserEncryptionProfile

User = get_user_model()


@receiver(post_save, sender=User)
def create_encryption_profile(sender, instance, created, raw=False, **kwargs):
    """
    Every account gets an empty encryption profile. Salt and stable key
    are filled in later through the profile endpoints.
    """
    if created and not raw:
        UserEncryptionProfile.objects.get_or_create(user=instance)
