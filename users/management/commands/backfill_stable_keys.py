from django.core.management.base import BaseCommand

from users.services.profile_service import EncryptionProfileService


class Command(BaseCommand):
    help = "Provision a stable encryption key for profiles that have a salt but no key"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report how many profiles would be updated",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]

        candidates, provisioned = EncryptionProfileService.backfill_stable_keys(
            dry_run=dry_run,
        )

        if dry_run:
            self.stdout.write(f"{candidates} profiles missing a stable key")
            return

        self.stdout.write(
            self.style.SUCCESS(
                f"Provisioned {provisioned} stable keys ({candidates} candidates)"
            )
        )
