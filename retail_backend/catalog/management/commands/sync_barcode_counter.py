# catalog/management/commands/sync_barcode_counter.py

"""
SYNC BARCODE COUNTER (MAINTENANCE)

Purpose:
- After importing products that already carry internal ("21"-prefixed)
  EAN-13 barcodes, move the counter to the highest sequence in use so the
  next issued barcode does not collide.

Rules:
- Fresh databases do NOT need this (the counter self-creates at 0).
- Pause barcode-issuing traffic while it runs (read-then-write).
- --dry-run reports the computed maximum without committing it.
"""

from __future__ import annotations

from django.core.management.base import BaseCommand

from catalog.models import Product
from catalog.models.barcode_counter import MAX_SEQUENCE
from catalog.services.ean13 import build_ean13
from catalog.services.sequence import current_sequence, max_existing_sequence, resync_sequence
from inventory.conf import inventory_setting


class Command(BaseCommand):
    help = "Sync the barcode counter with the highest internal barcode sequence in use."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without saving.",
        )

    def handle(self, *args, **options):
        dry_run = bool(options.get("dry_run"))
        prefix = inventory_setting("BARCODE_PREFIX")

        self.stdout.write(f"Scanning product barcodes with prefix {prefix}...")
        if dry_run:
            self.stdout.write("DRY RUN: no database changes will be saved.\n")

        total_prefixed = Product.objects.filter(barcode__startswith=prefix).count()
        current = current_sequence()
        highest = max_existing_sequence()

        self.stdout.write(f"Products with prefix {prefix}: {total_prefixed}")
        self.stdout.write(f"Current counter value:     {current}")
        self.stdout.write(f"Highest sequence in use:   {highest}")

        if highest < MAX_SEQUENCE:
            self.stdout.write(
                f"Next barcode will be:      {build_ean13(highest + 1, prefix=prefix)}"
            )
        else:
            self.stderr.write(self.style.WARNING("Sequence space exhausted."))

        if dry_run:
            self.stdout.write("\nDRY RUN complete (no changes saved).")
            return

        if highest == current:
            self.stdout.write(self.style.SUCCESS("Counter already in sync."))
            return

        resync_sequence()
        self.stdout.write(self.style.SUCCESS(f"Counter set to {highest}."))
