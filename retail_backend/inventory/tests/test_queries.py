# inventory/tests/test_queries.py

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from inventory.services import (
    get_batch_details,
    get_batches_by_product,
    get_expiring_batches,
    get_inventory_valuation,
    process_sale_fifo,
)
from inventory.services.exceptions import NotFoundError
from inventory.tests.helpers import days_from_today, make_product, make_user, receive


class BatchesByProductTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product(barcode="2100000000012")
        self.a = receive(self.product, self.user, 100, "20.00", "25.00", days_ago=10)
        self.b = receive(self.product, self.user, 150, "22.00", "28.00", days_ago=5)
        # expired and unswept: not listed
        receive(self.product, self.user, 9, "1.00", "1.00", days_ago=40, expiry_date=days_from_today(-1))

    def test_summary_by_barcode(self):
        summary = get_batches_by_product("2100000000012")

        self.assertEqual(summary["product_name"], self.product.name)
        self.assertEqual(summary["total_batches"], 2)
        self.assertEqual(summary["total_quantity"], 250)
        self.assertEqual(
            summary["price_range"],
            {
                "min_cost_price": Decimal("20.00"),
                "max_cost_price": Decimal("22.00"),
                "min_selling_price": Decimal("25.00"),
                "max_selling_price": Decimal("28.00"),
            },
        )
        self.assertEqual(
            [row["batch_number"] for row in summary["batches"]],
            [self.a.batch_number, self.b.batch_number],
        )

        first = summary["batches"][0]
        self.assertEqual(first["batch_value"], Decimal("2000.00"))
        self.assertEqual(first["profit_margin"], Decimal("20.00"))
        self.assertFalse(first["is_expired"])

    def test_lookup_by_id_and_sku(self):
        by_id = get_batches_by_product(str(self.product.pk))
        by_sku = get_batches_by_product(self.product.sku)
        self.assertEqual(by_id["product_id"], by_sku["product_id"])

    def test_depleted_batches_drop_out(self):
        process_sale_fifo(product=self.product, quantity=100, user=self.user)
        summary = get_batches_by_product(self.product)
        self.assertEqual(summary["total_batches"], 1)
        self.assertEqual(summary["total_quantity"], 150)

    def test_empty_product_has_no_price_range(self):
        empty = make_product(name="Salt", sku="SALT")
        summary = get_batches_by_product(empty)
        self.assertIsNone(summary["price_range"])
        self.assertEqual(summary["batches"], [])

    def test_unknown_identifier(self):
        with self.assertRaises(NotFoundError):
            get_batches_by_product("does-not-exist")


class ValuationTests(TestCase):
    def test_valuation_over_active_batches(self):
        user = make_user()
        rice = make_product()
        salt = make_product(name="Salt", sku="SALT")
        receive(rice, user, 100, "20.00", "25.00", days_ago=10)
        receive(rice, user, 150, "22.00", "28.00", days_ago=5)
        receive(salt, user, 10, "1.00", "1.50")

        report = get_inventory_valuation()
        summary = report["summary"]

        self.assertEqual(summary["total_products"], 2)
        self.assertEqual(summary["total_batches"], 3)
        self.assertEqual(summary["total_quantity"], 260)
        self.assertEqual(summary["total_cost_value"], Decimal("5310.00"))
        self.assertEqual(summary["total_selling_value"], Decimal("6715.00"))
        self.assertEqual(summary["total_potential_profit"], Decimal("1405.00"))

        top = report["products"][0]
        self.assertEqual(top["sku"], "RICE-5KG")
        self.assertEqual(top["average_cost_price"], Decimal("21.20"))
        self.assertEqual(top["profit_margin"], Decimal("20.90"))

    def test_empty_inventory(self):
        report = get_inventory_valuation()
        self.assertEqual(report["summary"]["total_products"], 0)
        self.assertEqual(report["summary"]["total_cost_value"], Decimal("0.00"))


class ExpiringBatchesTests(TestCase):
    def setUp(self):
        user = make_user()
        product = make_product()
        self.soon = receive(product, user, 4, "10.00", "12.00", expiry_date=days_from_today(3))
        self.later = receive(product, user, 6, "10.00", "12.00", expiry_date=days_from_today(20))
        receive(product, user, 8, "10.00", "12.00", expiry_date=days_from_today(60))
        receive(product, user, 2, "10.00", "12.00", expiry_date=days_from_today(-1))

    def test_window_and_flags(self):
        report = get_expiring_batches(30)

        self.assertEqual(report["total_batches"], 2)
        rows = report["batches"]
        self.assertEqual([r["batch_number"] for r in rows], [self.soon.batch_number, self.later.batch_number])
        self.assertTrue(rows[0]["is_expiring_soon"])
        self.assertFalse(rows[1]["is_expiring_soon"])
        self.assertEqual(rows[0]["value_at_risk"], Decimal("40.00"))
        self.assertEqual(report["total_value_at_risk"], Decimal("100.00"))

    def test_default_window(self):
        self.assertEqual(get_expiring_batches()["window_days"], 30)

    def test_out_of_range_window_rejected(self):
        for bad in (-1, 99_999_999, "abc", 2.5, True):
            with self.subTest(window=bad):
                with self.assertRaises(ValidationError):
                    get_expiring_batches(bad)

    def test_window_upper_bound_is_inclusive(self):
        self.assertEqual(get_expiring_batches(3650)["window_days"], 3650)


class BatchDetailsTests(TestCase):
    def test_details_by_batch_number(self):
        user = make_user()
        product = make_product()
        batch = receive(product, user, 10, "1.00", "2.00")
        process_sale_fifo(product=product, quantity=3, user=user)

        details = get_batch_details(batch.batch_number)

        self.assertEqual(details["batch"]["id"], str(batch.pk))
        self.assertEqual(details["batch"]["current_quantity"], 7)
        self.assertEqual(
            sorted(m["movement_type"] for m in details["movements"]),
            ["purchase", "sale"],
        )

    def test_unknown_batch(self):
        with self.assertRaises(NotFoundError):
            get_batch_details("BATCH000000999")
