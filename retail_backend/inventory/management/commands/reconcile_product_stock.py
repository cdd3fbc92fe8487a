# inventory/management/commands/reconcile_product_stock.py

"""
RECONCILE PRODUCT STOCK (REPAIR PASS)

Purpose:
- Rebuild Product.current_stock from the batch store (sum of ACTIVE
  batches' current_quantity), which is the source of truth.
- Needed only after a partially applied write or a manual DB edit.

Rules:
- --dry-run reports drift without saving.
- --product limits the pass to one product (UUID, barcode or SKU).
"""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from inventory.services.batch_queries import resolve_product
from inventory.services.batch_service import reconcile_product_stock
from inventory.services.exceptions import NotFoundError


class Command(BaseCommand):
    help = "Recompute Product.current_stock from active batch quantities."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would change without saving.",
        )
        parser.add_argument(
            "--product",
            type=str,
            default="",
            help="Only reconcile this product (UUID, barcode or SKU).",
        )

    def handle(self, *args, **options):
        dry_run = bool(options.get("dry_run"))
        identifier = (options.get("product") or "").strip()

        product = None
        if identifier:
            try:
                product = resolve_product(identifier)
            except NotFoundError as exc:
                raise CommandError(str(exc)) from exc

        self.stdout.write("Reconciling product stock against batch quantities...")
        if dry_run:
            self.stdout.write("DRY RUN: no database changes will be saved.\n")

        repairs = reconcile_product_stock(product=product, dry_run=dry_run)

        for repair in repairs:
            self.stdout.write(
                f"{'DRIFT' if dry_run else 'FIXED'} sku={repair.sku} "
                f"recorded={repair.recorded_stock} batches={repair.batch_stock} "
                f"drift={repair.drift:+d}"
            )

        self.stdout.write("\n--- Summary ---")
        self.stdout.write(f"Products with drift: {len(repairs)}")

        if dry_run:
            self.stdout.write("\nDRY RUN complete (no changes saved).")
        elif not repairs:
            self.stdout.write(self.style.SUCCESS("All product stock in sync."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Repaired {sum(r.applied for r in repairs)} product(s)."))
