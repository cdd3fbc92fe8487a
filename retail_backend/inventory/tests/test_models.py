# inventory/tests/test_models.py

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from inventory.models import InventoryBatch, StockMovement
from inventory.services import process_sale_fifo
from inventory.services.ledger import movements_for_product, record_movement
from inventory.tests.helpers import days_from_today, make_product, make_user, receive


class InventoryBatchModelTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product()
        self.batch = receive(self.product, self.user, 20, "8.00", "10.00")

    def test_pricing_and_quantity_fields_are_immutable(self):
        for field, value in (
            ("initial_quantity", 25),
            ("cost_price", Decimal("9.00")),
            ("selling_price", Decimal("11.00")),
        ):
            batch = InventoryBatch.objects.get(pk=self.batch.pk)
            setattr(batch, field, value)
            with self.subTest(field=field):
                with self.assertRaises(ValidationError):
                    batch.save()

    def test_free_text_fields_can_be_edited(self):
        self.batch.location = "Aisle 4"
        self.batch.save()
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.location, "Aisle 4")

    def test_terminal_status_cannot_be_reopened(self):
        process_sale_fifo(product=self.product, quantity=20, user=self.user)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, InventoryBatch.Status.DEPLETED)

        self.batch.status = InventoryBatch.Status.ACTIVE
        with self.assertRaises(ValidationError):
            self.batch.save()

    def test_clean_rejects_inconsistent_rows(self):
        bad = InventoryBatch(
            product=self.product,
            batch_number="BATCH-X",
            cost_price=Decimal("1.00"),
            selling_price=Decimal("2.00"),
            initial_quantity=5,
            current_quantity=6,
        )
        with self.assertRaises(ValidationError):
            bad.full_clean()

        bad.current_quantity = 5
        bad.status = InventoryBatch.Status.EXPIRED
        with self.assertRaises(ValidationError):
            bad.full_clean()

    def test_derived_values(self):
        self.assertEqual(self.batch.profit_margin, Decimal("20.00"))
        self.assertEqual(self.batch.batch_value, Decimal("160.00"))
        self.assertEqual(self.batch.potential_revenue, Decimal("200.00"))
        self.assertIsNone(self.batch.days_until_expiry)
        self.assertFalse(self.batch.is_expired)

        free = receive(self.product, self.user, 1, "0.00", "0.00")
        self.assertEqual(free.profit_margin, Decimal("0.00"))

        stale = receive(self.product, self.user, 1, "1.00", "2.00", expiry_date=days_from_today(-1))
        self.assertTrue(stale.is_expired)
        self.assertEqual(stale.days_until_expiry, -1)

    def test_available_quantity_excludes_reserved(self):
        InventoryBatch.objects.filter(pk=self.batch.pk).update(reserved_quantity=6)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.available_quantity, 14)


class StockMovementLedgerTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product()
        self.batch = receive(self.product, self.user, 10, "3.00", "4.00")

    def test_movements_cannot_be_edited_or_deleted(self):
        movement = StockMovement.objects.get(batch=self.batch)

        movement.reason = "rewritten"
        with self.assertRaises(ValidationError):
            movement.save()

        with self.assertRaises(ValidationError):
            movement.delete()

        self.assertEqual(StockMovement.objects.count(), 1)

    def test_snapshot_arithmetic_is_enforced(self):
        with self.assertRaises(ValidationError):
            record_movement(
                product=self.product,
                movement_type=StockMovement.MovementType.ADJUSTMENT,
                quantity=3,
                previous_stock=10,
                new_stock=12,
                user=self.user,
            )

    def test_sign_must_match_movement_type(self):
        for movement_type, qty in (
            (StockMovement.MovementType.SALE, 2),
            (StockMovement.MovementType.PURCHASE, -2),
            (StockMovement.MovementType.EXPIRED, 2),
        ):
            with self.subTest(movement_type=movement_type):
                with self.assertRaises(ValidationError):
                    record_movement(
                        product=self.product,
                        movement_type=movement_type,
                        quantity=qty,
                        previous_stock=10,
                        new_stock=10 + qty,
                    )

    def test_zero_quantity_is_rejected(self):
        with self.assertRaises(ValidationError):
            record_movement(
                product=self.product,
                movement_type=StockMovement.MovementType.ADJUSTMENT,
                quantity=0,
                previous_stock=10,
                new_stock=10,
            )

    def test_batch_must_belong_to_product(self):
        other = make_product(name="Sugar 1kg", sku="SUGAR-1KG")
        with self.assertRaises(ValidationError):
            record_movement(
                product=other,
                batch=self.batch,
                movement_type=StockMovement.MovementType.ADJUSTMENT,
                quantity=1,
                previous_stock=0,
                new_stock=1,
            )

    def test_cost_snapshot_defaults_to_batch_cost(self):
        movement = record_movement(
            product=self.product,
            batch=self.batch,
            movement_type=StockMovement.MovementType.TRANSFER,
            quantity=-4,
            previous_stock=10,
            new_stock=6,
            reference="TR-9",
        )
        self.assertEqual(movement.unit_cost, Decimal("3.00"))
        self.assertEqual(movement.total_cost, Decimal("12.00"))
        self.assertEqual(movement.batch_number, self.batch.batch_number)
        self.assertEqual(movement.direction, "out")
        self.assertEqual(movement.absolute_quantity, 4)

    def test_movements_for_product_newest_first(self):
        process_sale_fifo(product=self.product, quantity=2, user=self.user)
        rows = movements_for_product(self.product)
        self.assertEqual(len(rows), 2)
        self.assertEqual(
            {m.movement_type for m in rows},
            {StockMovement.MovementType.PURCHASE, StockMovement.MovementType.SALE},
        )
        self.assertEqual(len(movements_for_product(self.product, limit=1)), 1)
