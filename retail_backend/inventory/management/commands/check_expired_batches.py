# inventory/management/commands/check_expired_batches.py

"""
CHECK EXPIRED BATCHES (SWEEP)

Purpose:
- Retire ACTIVE batches whose expiry_date has passed (status=expired,
  quantity zeroed, product stock reduced, EXPIRED movement written).
- Print the sweep result followed by expiry statistics.

Rules:
- Continue-on-error: a failing batch is reported, the rest still run.
- Idempotent: a second run in a row updates nothing.
- Exit code is non-zero when any batch failed (cron alerting).
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from inventory.services.batch_queries import resolve_window_days
from inventory.services.expiry import check_and_update_expired_batches, get_expiry_statistics


class Command(BaseCommand):
    help = "Expire ACTIVE batches past their expiry date and print expiry statistics."

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Look-ahead window for the 'expiring soon' statistics (default: EXPIRY_WARNING_DAYS).",
        )

    def handle(self, *args, **options):
        days = options.get("days")
        if days is not None:
            try:
                days = resolve_window_days(days)
            except ValidationError as exc:
                raise CommandError(f"--days: {'; '.join(exc.messages)}") from exc

        self.stdout.write("Checking for expired batches...")
        result = check_and_update_expired_batches()

        self.stdout.write(f"Checked at:        {result.timestamp:%Y-%m-%d %H:%M:%S %Z}")
        self.stdout.write(f"Batches checked:   {result.total_checked}")
        self.stdout.write(f"Batches expired:   {len(result.batches_updated)}")

        for row in result.batches_updated:
            self.stdout.write(
                f"- {row['batch_number']} ({row['product_name']}) "
                f"expired {row['expiry_date']}: removed {row['quantity_removed']} unit(s)"
            )

        for err in result.errors:
            self.stderr.write(
                self.style.ERROR(f"! {err['batch_number']} ({err['batch_id']}): {err['error']}")
            )

        stats = get_expiry_statistics(days)
        self.stdout.write("\n--- Expiry statistics ---")
        for label, key in (
            ("Expired (unswept)", "expired"),
            (f"Expiring in {stats['window_days']}d", "expiring_soon"),
            ("Total active", "total_active"),
        ):
            bucket = stats[key]
            self.stdout.write(
                f"{label:<20} batches={bucket['total_batches']} "
                f"qty={bucket['total_quantity']} value={bucket['total_value']}"
            )

        if not result.success:
            raise CommandError(f"{len(result.errors)} batch(es) failed to expire")

        self.stdout.write(self.style.SUCCESS("\nExpiry sweep complete."))
