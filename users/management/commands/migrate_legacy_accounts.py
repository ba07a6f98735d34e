from django.core.management.base import BaseCommand

from users.services.profile_service import EncryptionProfileService


class Command(BaseCommand):
    help = "Create encryption profiles for accounts that predate encryption"

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true")

    def handle(self, *args, **options):
        created, updated = EncryptionProfileService.migrate_legacy_accounts(
            dry_run=options["dry_run"],
        )

        if options["dry_run"]:
            self.stdout.write(
                f"{created} accounts without a profile, {updated} profiles with blank metadata"
            )
            return

        self.stdout.write(
            self.style.SUCCESS(f"Created {created} profiles, repaired {updated}")
        )
