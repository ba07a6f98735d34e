# users/services/profile_service.py

import logging
import secrets

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from csfle.fields import ALGORITHM, VERSION
from csfle.keys import derive_user_secret

from ..models import UserEncryptionProfile

logger = logging.getLogger(__name__)

User = get_user_model()


def generate_stable_key() -> str:
    return secrets.token_hex(32)


def derived_stable_key(user):
    """The secret a client falls back to for this user, or None without an email."""
    if not user.email:
        return None
    return derive_user_secret(str(user.pk), user.email)


def generate_server_salt() -> str:
    return secrets.token_hex(16)


class EncryptionProfileService:
    """
    Write paths for UserEncryptionProfile.

    Every write that must happen at most once is a conditional UPDATE
    (``WHERE salt = ''`` / ``WHERE stable_key = ''``). The database decides
    the winner; losers re-read and get the winner's values.
    """

    @staticmethod
    def get_or_create(user):
        profile, _ = UserEncryptionProfile.objects.get_or_create(user=user)
        return profile

    # ==================================================
    # INITIALIZE (create-once)
    # ==================================================

    @staticmethod
    def initialize(user, salt, algorithm=None, version=None, enabled=True, created=None):
        """
        Returns (profile, initialized). ``initialized`` is False when the
        profile already had a salt; nothing is changed in that case.
        """
        EncryptionProfileService.get_or_create(user)
        now = timezone.now()

        with transaction.atomic():
            updated = UserEncryptionProfile.objects.filter(user=user, salt="").update(
                salt=salt,
                algorithm=algorithm or ALGORITHM,
                version=version or VERSION,
                enabled=enabled,
                created=created or now,
                updated_at=now,
            )

            if updated:
                UserEncryptionProfile.objects.filter(user=user, stable_key="").update(
                    stable_key=generate_stable_key(),
                    updated_at=now,
                )

        profile = UserEncryptionProfile.objects.get(user=user)

        if updated:
            logger.info(
                "Encryption initialized",
                extra={"event": "profile_initialized", "user_id": user.pk},
            )
        return profile, bool(updated)

    # ==================================================
    # STABLE KEY (compare-and-set)
    # ==================================================

    @staticmethod
    def provision_stable_key(user, proposed_key=None):
        """
        Returns (profile, created). If a stable key already exists it is
        returned unchanged and ``proposed_key`` is ignored.
        """
        EncryptionProfileService.get_or_create(user)
        now = timezone.now()

        with transaction.atomic():
            # No encryption setup at all: initialize with a server salt.
            UserEncryptionProfile.objects.filter(user=user, salt="").update(
                salt=generate_server_salt(),
                algorithm=ALGORITHM,
                version=VERSION,
                enabled=True,
                created=now,
                updated_at=now,
            )

            won = UserEncryptionProfile.objects.filter(user=user, stable_key="").update(
                stable_key=proposed_key or generate_stable_key(),
                updated_at=now,
            )

        profile = UserEncryptionProfile.objects.get(user=user)

        if won:
            logger.info(
                "Added stable encryption key",
                extra={"event": "stable_key_provisioned", "user_id": user.pk},
            )
        return profile, bool(won)

    # ==================================================
    # RESET (destructive)
    # ==================================================

    @staticmethod
    def reset(user):
        """
        Drop salt and stable key. Notes encrypted under the old key can no
        longer be decrypted by any client.
        """
        EncryptionProfileService.get_or_create(user)
        UserEncryptionProfile.objects.filter(user=user).update(
            salt="",
            stable_key="",
            enabled=False,
            created=None,
            updated_at=timezone.now(),
        )
        logger.warning(
            "Encryption profile reset",
            extra={"event": "profile_reset", "user_id": user.pk},
        )
        return UserEncryptionProfile.objects.get(user=user)

    # ==================================================
    # BATCH JOBS
    # ==================================================

    @staticmethod
    def profiles_missing_stable_key():
        return (
            UserEncryptionProfile.objects
            .exclude(salt="")
            .filter(stable_key="")
            .select_related("user")
        )

    @staticmethod
    def backfill_stable_keys(dry_run=False):
        """
        Give every profile that has a salt but no stable key the derived
        secret its client has been encrypting with, or a fresh key when the
        account has no email.
        Returns (candidates, provisioned).
        """
        candidates = list(EncryptionProfileService.profiles_missing_stable_key())
        if dry_run:
            return len(candidates), 0

        provisioned = 0
        for profile in candidates:
            _, created = EncryptionProfileService.provision_stable_key(
                profile.user, derived_stable_key(profile.user)
            )
            if created:
                provisioned += 1

        logger.info(
            "Stable key backfill finished",
            extra={"event": "backfill_stable_keys", "count": provisioned},
        )
        return len(candidates), provisioned

    @staticmethod
    def migrate_legacy_accounts(dry_run=False):
        """
        Accounts created before encryption existed: give them an empty
        profile and fill blank suite metadata. Returns (created, updated).
        """
        missing = User.objects.filter(encryption_profile__isnull=True)
        blank_meta = UserEncryptionProfile.objects.filter(algorithm="") | UserEncryptionProfile.objects.filter(version="")

        if dry_run:
            return missing.count(), blank_meta.count()

        created = 0
        for user in missing:
            _, was_created = UserEncryptionProfile.objects.get_or_create(user=user)
            if was_created:
                created += 1

        updated = 0
        for profile in blank_meta:
            profile.algorithm = profile.algorithm or ALGORITHM
            profile.version = profile.version or VERSION
            profile.save(update_fields=["algorithm", "version", "updated_at"])
            updated += 1

        return created, updated
