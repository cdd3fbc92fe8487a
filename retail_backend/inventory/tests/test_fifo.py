# inventory/tests/test_fifo.py

from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.test import TestCase

from inventory.models import InventoryBatch, StockMovement
from inventory.services import process_sale_fifo, process_sale_from_batch
from inventory.services.batch_queries import sellable_batches
from inventory.services.exceptions import ExpiredBatchViolation, InsufficientStockError
from inventory.tests.helpers import days_from_today, make_product, make_user, receive


class FifoSaleTests(TestCase):
    """
    FIFO consumption.

    GUARANTEES:
    - Oldest purchase_date is consumed first
    - Every unit is costed at its own batch
    - A failed sale leaves no trace
    """

    def setUp(self):
        self.user = make_user()
        self.product = make_product()
        # A purchased first, B second
        self.batch_a = receive(self.product, self.user, 100, "20.00", "25.00", days_ago=10)
        self.batch_b = receive(self.product, self.user, 150, "22.00", "28.00", days_ago=5)

    def _reload(self):
        self.batch_a.refresh_from_db()
        self.batch_b.refresh_from_db()
        self.product.refresh_from_db()

    def test_sale_spanning_two_batches(self):
        result = process_sale_fifo(product=self.product, quantity=120, user=self.user)
        self._reload()

        self.assertEqual(self.batch_a.current_quantity, 0)
        self.assertEqual(self.batch_a.status, InventoryBatch.Status.DEPLETED)
        self.assertEqual(self.batch_b.current_quantity, 130)
        self.assertEqual(self.batch_b.status, InventoryBatch.Status.ACTIVE)
        self.assertEqual(self.product.current_stock, 130)

        self.assertEqual(result.quantity_sold, 120)
        self.assertEqual([u.quantity for u in result.batches_used], [100, 20])
        self.assertEqual(result.total_cost, Decimal("2440.00"))
        self.assertEqual(result.total_revenue, Decimal("3060.00"))
        self.assertEqual(result.profit, Decimal("620.00"))
        self.assertEqual(result.profit_margin, Decimal("20.26"))
        self.assertEqual(result.average_cost_price, Decimal("20.33"))
        self.assertEqual(result.average_selling_price, Decimal("25.50"))

    def test_sale_writes_one_movement_per_batch_with_chained_snapshots(self):
        process_sale_fifo(product=self.product, quantity=120, user=self.user, reference="INV-1")

        sales = list(
            StockMovement.objects.filter(movement_type=StockMovement.MovementType.SALE)
            .order_by("-previous_stock")
        )
        self.assertEqual(len(sales), 2)

        first, second = sales
        self.assertEqual((first.batch_id, first.quantity), (self.batch_a.pk, -100))
        self.assertEqual((first.previous_stock, first.new_stock), (250, 150))
        self.assertEqual((second.batch_id, second.quantity), (self.batch_b.pk, -20))
        self.assertEqual((second.previous_stock, second.new_stock), (150, 130))
        self.assertEqual(first.unit_cost, Decimal("20.00"))
        self.assertEqual(second.total_cost, Decimal("440.00"))
        self.assertEqual(first.reference, "INV-1")

    def test_fifo_follows_purchase_date_not_insertion_order(self):
        older = receive(self.product, self.user, 10, "18.00", "24.00", days_ago=30)

        result = process_sale_fifo(product=self.product, quantity=15, user=self.user)

        self.assertEqual(
            [u.batch_number for u in result.batches_used],
            [older.batch_number, self.batch_a.batch_number],
        )
        older.refresh_from_db()
        self.assertEqual(older.status, InventoryBatch.Status.DEPLETED)

    def test_exact_drain_of_last_batch_depletes_it(self):
        process_sale_fifo(product=self.product, quantity=250, user=self.user)
        self._reload()

        self.assertEqual(self.batch_a.status, InventoryBatch.Status.DEPLETED)
        self.assertEqual(self.batch_b.status, InventoryBatch.Status.DEPLETED)
        self.assertEqual(self.product.current_stock, 0)

    def test_insufficient_stock_changes_nothing(self):
        with self.assertRaises(InsufficientStockError) as ctx:
            process_sale_fifo(product=self.product, quantity=251, user=self.user)

        self.assertEqual(ctx.exception.requested, 251)
        self.assertEqual(ctx.exception.available, 250)

        self._reload()
        self.assertEqual(self.batch_a.current_quantity, 100)
        self.assertEqual(self.batch_b.current_quantity, 150)
        self.assertEqual(self.product.current_stock, 250)
        self.assertFalse(
            StockMovement.objects.filter(movement_type=StockMovement.MovementType.SALE).exists()
        )

    def test_no_batches_is_the_same_error_as_shortfall(self):
        empty = make_product(name="Olive Oil 1L", sku="OIL-1L")
        with self.assertRaises(InsufficientStockError):
            process_sale_fifo(product=empty, quantity=1, user=self.user)

    def test_expired_batch_is_never_selected(self):
        stale = receive(
            self.product,
            self.user,
            40,
            "15.00",
            "20.00",
            days_ago=60,
            expiry_date=days_from_today(-1),
        )

        result = process_sale_fifo(product=self.product, quantity=10, user=self.user)

        self.assertEqual(result.batches_used[0].batch_number, self.batch_a.batch_number)
        stale.refresh_from_db()
        self.assertEqual(stale.current_quantity, 40)

    def test_all_expired_stock_is_insufficient(self):
        other = make_product(name="Yoghurt 500g", sku="YOG-500")
        receive(other, self.user, 20, "1.00", "1.50", expiry_date=days_from_today(-2))

        with self.assertRaises(InsufficientStockError):
            process_sale_fifo(product=other, quantity=1, user=self.user)

    def test_batch_expiring_today_is_still_sellable(self):
        other = make_product(name="Bread", sku="BREAD")
        receive(other, self.user, 5, "1.00", "2.00", expiry_date=days_from_today(0))

        result = process_sale_fifo(product=other, quantity=5, user=self.user)
        self.assertEqual(result.quantity_sold, 5)

    def test_reserved_units_are_not_sold(self):
        InventoryBatch.objects.filter(pk=self.batch_a.pk).update(reserved_quantity=10)

        result = process_sale_fifo(product=self.product, quantity=95, user=self.user)
        self._reload()

        self.assertEqual([u.quantity for u in result.batches_used], [90, 5])
        self.assertEqual(self.batch_a.current_quantity, 10)
        self.assertEqual(self.batch_a.status, InventoryBatch.Status.ACTIVE)

    def test_lost_race_rereads_batch_and_moves_on(self):
        stale = list(sellable_batches(self.product))
        # a concurrent sale took 70 units from A after our read
        InventoryBatch.objects.filter(pk=self.batch_a.pk).update(current_quantity=30)

        with mock.patch("inventory.services.stock_fifo._eligible_batches", return_value=stale):
            result = process_sale_fifo(product=self.product, quantity=50, user=self.user)

        self._reload()
        self.assertEqual([u.quantity for u in result.batches_used], [30, 20])
        self.assertEqual(self.batch_a.current_quantity, 0)
        self.assertEqual(self.batch_a.status, InventoryBatch.Status.DEPLETED)
        self.assertEqual(self.batch_b.current_quantity, 130)

    def test_walk_ending_short_rolls_back_earlier_decrements(self):
        stale = list(sellable_batches(self.product))
        InventoryBatch.objects.filter(pk=self.batch_a.pk).update(current_quantity=10)
        InventoryBatch.objects.filter(pk=self.batch_b.pk).update(current_quantity=10)

        with mock.patch("inventory.services.stock_fifo._eligible_batches", return_value=stale):
            with self.assertRaises(InsufficientStockError):
                process_sale_fifo(product=self.product, quantity=120, user=self.user)

        self._reload()
        self.assertEqual(self.batch_a.current_quantity, 10)
        self.assertEqual(self.batch_b.current_quantity, 10)
        self.assertEqual(self.product.current_stock, 250)
        self.assertFalse(
            StockMovement.objects.filter(movement_type=StockMovement.MovementType.SALE).exists()
        )

    def test_invalid_quantities_are_rejected(self):
        for bad in (0, -5, "abc", None, True, 2.5, Decimal("2.7")):
            with self.assertRaises(ValidationError):
                process_sale_fifo(product=self.product, quantity=bad, user=self.user)

    def test_user_is_required(self):
        with self.assertRaises(ValidationError):
            process_sale_fifo(product=self.product, quantity=1, user=None)

    def test_sale_by_barcode_or_sku(self):
        self.product.barcode = "2100000000012"
        self.product.save(update_fields=["barcode"])

        process_sale_fifo(product="2100000000012", quantity=1, user=self.user)
        process_sale_fifo(product="RICE-5KG", quantity=1, user=self.user)

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, 248)

    def test_result_as_dict(self):
        data = process_sale_fifo(product=self.product, quantity=120, user=self.user).as_dict()

        self.assertEqual(data["quantity_sold"], 120)
        self.assertEqual(len(data["batches_used"]), 2)
        self.assertEqual(data["batches_used"][1]["total_revenue"], Decimal("560.00"))
        self.assertEqual(data["profit_margin"], Decimal("20.26"))


class BatchLabelSaleTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product()
        self.batch_a = receive(self.product, self.user, 100, "20.00", "25.00", days_ago=10)
        self.batch_b = receive(self.product, self.user, 150, "22.00", "28.00", days_ago=5)

    def test_sells_from_the_chosen_batch_only(self):
        result = process_sale_from_batch(batch=self.batch_b, quantity=30, user=self.user)

        self.batch_a.refresh_from_db()
        self.batch_b.refresh_from_db()
        self.assertEqual(self.batch_a.current_quantity, 100)
        self.assertEqual(self.batch_b.current_quantity, 120)
        self.assertEqual(result.total_cost, Decimal("660.00"))

    def test_accepts_batch_number(self):
        process_sale_from_batch(batch=self.batch_a.batch_number, quantity=100, user=self.user)
        self.batch_a.refresh_from_db()
        self.assertEqual(self.batch_a.status, InventoryBatch.Status.DEPLETED)

    def test_expired_batch_raises_violation(self):
        expired = receive(
            self.product, self.user, 10, "5.00", "6.00", expiry_date=days_from_today(-1)
        )
        with self.assertRaises(ExpiredBatchViolation):
            process_sale_from_batch(batch=expired, quantity=1, user=self.user)

    def test_more_than_batch_holds_is_insufficient(self):
        with self.assertRaises(InsufficientStockError):
            process_sale_from_batch(batch=self.batch_a, quantity=101, user=self.user)

        self.batch_a.refresh_from_db()
        self.assertEqual(self.batch_a.current_quantity, 100)
