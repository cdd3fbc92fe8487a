# inventory/tests/test_batch_service.py

from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone

from catalog.models import Product
from inventory.models import InventoryBatch, StockMovement
from inventory.services import (
    adjust_batch_quantity,
    check_and_update_expired_batches,
    create_batch,
    process_sale_fifo,
    reconcile_product_stock,
    refresh_catalog_price_snapshot,
    update_batch_status,
)
from inventory.services.exceptions import InventoryServiceError, NotFoundError
from inventory.tests.helpers import days_from_today, make_product, make_user, receive


class CreateBatchTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product(mrp=Decimal("30.00"))

    def test_creates_active_batch_with_full_quantity(self):
        batch = receive(self.product, self.user, 100, "20.00", "25.00")

        self.assertEqual(batch.initial_quantity, 100)
        self.assertEqual(batch.current_quantity, 100)
        self.assertEqual(batch.status, InventoryBatch.Status.ACTIVE)
        self.assertEqual(batch.created_by, self.user)

    def test_batch_number_is_date_stamped_and_counts_up_per_day(self):
        first = receive(self.product, self.user, 1, "1.00", "2.00")
        second = receive(self.product, self.user, 1, "1.00", "2.00")

        stem = f"BATCH{timezone.localdate():%y%m%d}"
        self.assertEqual(first.batch_number, f"{stem}001")
        self.assertEqual(second.batch_number, f"{stem}002")

    def test_purchase_movement_snapshots_product_stock(self):
        receive(self.product, self.user, 40, "2.00", "3.00")
        batch = receive(self.product, self.user, 60, "2.00", "3.00", purchase_order_ref="PO-77")

        movement = StockMovement.objects.get(batch=batch)
        self.assertEqual(movement.movement_type, StockMovement.MovementType.PURCHASE)
        self.assertEqual(movement.quantity, 60)
        self.assertEqual((movement.previous_stock, movement.new_stock), (40, 100))
        self.assertEqual(movement.reference, "PO-77")
        self.assertEqual(movement.total_cost, Decimal("120.00"))

    def test_product_stock_and_prices_follow_latest_batch(self):
        receive(self.product, self.user, 10, "20.00", "25.00", days_ago=3)
        receive(self.product, self.user, 5, "22.00", "28.00")

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 15)
        self.assertEqual(self.product.cost_price, Decimal("22.00"))
        self.assertEqual(self.product.selling_price, Decimal("28.00"))

    def test_mrp_defaults_to_product_mrp(self):
        batch = receive(self.product, self.user, 1, "1.00", "2.00")
        self.assertEqual(batch.mrp, Decimal("30.00"))

        explicit = receive(self.product, self.user, 1, "1.00", "2.00", mrp=Decimal("35.00"))
        self.assertEqual(explicit.mrp, Decimal("35.00"))

    def test_accepts_product_id(self):
        batch = create_batch(
            product=str(self.product.pk),
            quantity=3,
            cost_price="1.50",
            selling_price="2.00",
            created_by=self.user,
        )
        self.assertEqual(batch.product_id, self.product.pk)
        self.assertEqual(batch.cost_price, Decimal("1.50"))

    def test_whole_decimal_quantity_is_accepted(self):
        batch = receive(self.product, self.user, Decimal("3"), "1.00", "2.00")
        self.assertEqual(batch.initial_quantity, 3)

    def test_rejects_invalid_input(self):
        cases = [
            {"quantity": 0},
            {"quantity": -1},
            {"quantity": Decimal("2.7")},
            {"quantity": Decimal("NaN")},
            {"cost_price": "-0.01"},
            {"selling_price": "not-money"},
            {"created_by": None},
            {
                "manufacture_date": days_from_today(10),
                "expiry_date": days_from_today(5),
            },
        ]
        for override in cases:
            kwargs = {
                "product": self.product,
                "quantity": 5,
                "cost_price": "1.00",
                "selling_price": "2.00",
                "created_by": self.user,
                **override,
            }
            with self.subTest(override=override):
                with self.assertRaises(ValidationError):
                    create_batch(**kwargs)

        self.assertFalse(InventoryBatch.objects.exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 0)

    def test_unknown_product_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            create_batch(
                product="00000000-0000-0000-0000-000000000000",
                quantity=1,
                cost_price="1.00",
                selling_price="1.00",
                created_by=self.user,
            )


class PriceSnapshotTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product()
        self.old = receive(self.product, self.user, 10, "20.00", "25.00", days_ago=5)
        self.new = receive(self.product, self.user, 10, "22.00", "28.00")

    def test_explicit_batch_wins(self):
        refresh_catalog_price_snapshot(product=self.product, batch=self.old)
        self.product.refresh_from_db()
        self.assertEqual(self.product.selling_price, Decimal("25.00"))

    def test_default_is_most_recent_batch(self):
        refresh_catalog_price_snapshot(product=self.product, batch=self.old)
        refresh_catalog_price_snapshot(product=self.product)

        self.product.refresh_from_db()
        self.assertEqual(self.product.cost_price, Decimal("22.00"))
        self.assertEqual(self.product.selling_price, Decimal("28.00"))

    def test_batch_of_another_product_is_rejected(self):
        other = make_product(name="Flour 2kg", sku="FLOUR-2KG")
        with self.assertRaises(ValidationError):
            refresh_catalog_price_snapshot(product=other, batch=self.old)


class BatchStatusTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product()
        self.batch = receive(self.product, self.user, 30, "4.00", "6.00")

    def test_damaged_zeroes_batch_and_records_removed_quantity(self):
        batch = update_batch_status(
            batch=self.batch,
            new_status=InventoryBatch.Status.DAMAGED,
            user=self.user,
            reason="Water damage",
        )

        self.assertEqual(batch.status, InventoryBatch.Status.DAMAGED)
        self.assertEqual(batch.current_quantity, 0)

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 0)

        movement = StockMovement.objects.get(movement_type=StockMovement.MovementType.DAMAGE)
        self.assertEqual(movement.quantity, -30)
        self.assertEqual(movement.reason, "Water damage")

    def test_returned_records_return_movement(self):
        update_batch_status(batch=self.batch, new_status="returned", user=self.user)
        self.assertTrue(
            StockMovement.objects.filter(
                movement_type=StockMovement.MovementType.RETURN, quantity=-30
            ).exists()
        )

    def test_terminal_status_cannot_change(self):
        update_batch_status(batch=self.batch, new_status="expired", user=self.user)

        with self.assertRaises(ValidationError):
            update_batch_status(batch=self.batch, new_status="damaged", user=self.user)

    def test_only_retirement_statuses_are_accepted(self):
        for bad in ("depleted", "active", "lost"):
            with self.subTest(status=bad):
                with self.assertRaises(ValidationError):
                    update_batch_status(batch=self.batch, new_status=bad, user=self.user)


class AdjustBatchTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product()
        self.batch = receive(self.product, self.user, 50, "4.00", "6.00")
        process_sale_fifo(product=self.product, quantity=20, user=self.user)

    def test_positive_and_negative_corrections(self):
        result = adjust_batch_quantity(batch=self.batch, delta=5, user=self.user)
        self.assertEqual(result.batch.current_quantity, 35)
        self.assertEqual(result.movement.quantity, 5)
        self.assertEqual(result.movement.movement_type, StockMovement.MovementType.ADJUSTMENT)

        result = adjust_batch_quantity(batch=self.batch, delta=-10, user=self.user, reason="Count")
        self.assertEqual(result.batch.current_quantity, 25)
        self.assertEqual(result.movement.reason, "Count")

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 25)

    def test_cannot_exceed_initial_quantity(self):
        with self.assertRaises(ValidationError):
            adjust_batch_quantity(batch=self.batch, delta=21, user=self.user)

    def test_cannot_drop_below_reserved(self):
        InventoryBatch.objects.filter(pk=self.batch.pk).update(reserved_quantity=10)
        with self.assertRaises(ValidationError):
            adjust_batch_quantity(batch=self.batch, delta=-21, user=self.user)

    def test_reaching_zero_depletes_and_depleted_is_terminal(self):
        result = adjust_batch_quantity(batch=self.batch, delta=-30, user=self.user)
        self.assertEqual(result.batch.status, InventoryBatch.Status.DEPLETED)

        with self.assertRaises(ValidationError):
            adjust_batch_quantity(batch=self.batch, delta=1, user=self.user)

    def test_zero_delta_is_rejected(self):
        with self.assertRaises(ValidationError):
            adjust_batch_quantity(batch=self.batch, delta=0, user=self.user)

    def test_fractional_delta_is_rejected_not_truncated(self):
        with self.assertRaises(ValidationError):
            adjust_batch_quantity(batch=self.batch, delta=Decimal("-2.7"), user=self.user)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_quantity, 30)


class ReconcileTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product()
        receive(self.product, self.user, 40, "1.00", "2.00")

    def test_in_sync_reports_nothing(self):
        self.assertEqual(reconcile_product_stock(), [])

    def test_dry_run_reports_without_writing(self):
        Product.objects.filter(pk=self.product.pk).update(current_stock=7)

        repairs = reconcile_product_stock(dry_run=True)

        self.assertEqual(len(repairs), 1)
        self.assertEqual(repairs[0].drift, 33)
        self.assertFalse(repairs[0].applied)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 7)

    def test_repair_rebuilds_from_active_batches(self):
        Product.objects.filter(pk=self.product.pk).update(current_stock=99)

        repairs = reconcile_product_stock(product=self.product)

        self.assertTrue(repairs[0].applied)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 40)

    def test_drifted_aggregate_blocks_sale_until_repaired(self):
        Product.objects.filter(pk=self.product.pk).update(current_stock=5)

        with self.assertRaises(InventoryServiceError):
            process_sale_fifo(product=self.product, quantity=10, user=self.user)

        reconcile_product_stock()
        process_sale_fifo(product=self.product, quantity=10, user=self.user)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 30)


class ConservationTests(TestCase):
    """
    Product.current_stock == sum(current_quantity) over ACTIVE batches
    after any interleaving of create / sell / adjust / retire / sweep.
    """

    def test_interleaved_operations_keep_aggregate_consistent(self):
        user = make_user()
        product = make_product()

        def assert_consistent():
            product.refresh_from_db()
            self.assertEqual(product.current_stock, product.batch_stock_db)
            for batch in InventoryBatch.objects.filter(product=product):
                self.assertTrue(0 <= batch.current_quantity <= batch.initial_quantity)
                if batch.current_quantity > 0:
                    self.assertEqual(batch.status, InventoryBatch.Status.ACTIVE)

        a = receive(product, user, 100, "20.00", "25.00", days_ago=20)
        receive(product, user, 60, "21.00", "26.00", days_ago=10, expiry_date=days_from_today(-1))
        c = receive(product, user, 80, "22.00", "27.00", days_ago=2)
        assert_consistent()

        process_sale_fifo(product=product, quantity=130, user=user)
        assert_consistent()

        adjust_batch_quantity(batch=c, delta=-5, user=user)
        assert_consistent()

        check_and_update_expired_batches()
        assert_consistent()

        update_batch_status(batch=c, new_status="damaged", user=user)
        assert_consistent()

        a.refresh_from_db()
        self.assertEqual(a.status, InventoryBatch.Status.DEPLETED)
        product.refresh_from_db()
        self.assertEqual(product.current_stock, 0)

    def test_purchase_date_in_the_past_is_kept(self):
        user = make_user()
        product = make_product()
        when = timezone.now() - timedelta(days=45)

        batch = create_batch(
            product=product,
            quantity=1,
            cost_price="1.00",
            selling_price="1.00",
            created_by=user,
            purchase_date=when,
        )
        self.assertEqual(batch.purchase_date, when)


class ReconcileCommandTests(TestCase):
    def setUp(self):
        user = make_user()
        self.product = make_product()
        receive(self.product, user, 12, "1.00", "2.00")
        Product.objects.filter(pk=self.product.pk).update(current_stock=20)

    def test_dry_run_then_repair(self):
        out = StringIO()
        call_command("reconcile_product_stock", "--dry-run", stdout=out)
        self.assertIn("DRIFT sku=RICE-5KG recorded=20 batches=12 drift=-8", out.getvalue())
        self.assertIn("DRY RUN complete", out.getvalue())

        out = StringIO()
        call_command("reconcile_product_stock", "--product", "RICE-5KG", stdout=out)
        self.assertIn("Repaired 1 product(s).", out.getvalue())
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 12)

        out = StringIO()
        call_command("reconcile_product_stock", stdout=out)
        self.assertIn("All product stock in sync.", out.getvalue())

    def test_unknown_product(self):
        with self.assertRaises(CommandError):
            call_command("reconcile_product_stock", "--product", "GHOST", stdout=StringIO())
