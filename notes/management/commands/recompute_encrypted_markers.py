from django.core.management.base import BaseCommand

from notes.services.marker_service import recompute_encrypted_markers


class Command(BaseCommand):
    help = "Recompute the _encrypted marker of every note from its field shapes"

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true")

    def handle(self, *args, **options):
        scanned, mismatched = recompute_encrypted_markers(dry_run=options["dry_run"])

        if options["dry_run"]:
            self.stdout.write(f"Scanned {scanned} notes, {mismatched} markers wrong")
            return

        self.stdout.write(
            self.style.SUCCESS(f"Scanned {scanned} notes, fixed {mismatched} markers")
        )
