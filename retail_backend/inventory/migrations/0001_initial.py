import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="InventoryBatch",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "batch_number",
                    models.CharField(
                        help_text="BATCH<yymmdd><nnn>, generated at creation",
                        max_length=32,
                        unique=True,
                    ),
                ),
                ("supplier_ref", models.CharField(blank=True, default="", max_length=64)),
                ("purchase_order_ref", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("cost_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("selling_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("mrp", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("initial_quantity", models.PositiveIntegerField(help_text="Quantity received (immutable)")),
                ("current_quantity", models.PositiveIntegerField(help_text="On hand (service-managed only)")),
                ("reserved_quantity", models.PositiveIntegerField(default=0)),
                ("purchase_date", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("manufacture_date", models.DateField(blank=True, null=True)),
                ("expiry_date", models.DateField(blank=True, db_index=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("depleted", "Depleted"),
                            ("expired", "Expired"),
                            ("damaged", "Damaged"),
                            ("returned", "Returned"),
                        ],
                        db_index=True,
                        default="active",
                        max_length=16,
                    ),
                ),
                ("location", models.CharField(blank=True, default="", max_length=100)),
                ("notes", models.TextField(blank=True, default="", max_length=500)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="inventory_batches",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="inventory_batches",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "ordering": ["purchase_date", "created_at"],
                "indexes": [
                    models.Index(fields=["product", "status", "purchase_date"], name="inventory_i_product_2f6a1c_idx"),
                    models.Index(fields=["status", "expiry_date"], name="inventory_i_status_8d41e0_idx"),
                    models.Index(fields=["created_at"], name="inventory_i_created_5b7d93_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("initial_quantity__gt", 0)),
                        name="chk_batch_initial_qty_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("current_quantity__lte", models.F("initial_quantity"))),
                        name="chk_batch_current_lte_initial",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("reserved_quantity__lte", models.F("current_quantity"))),
                        name="chk_batch_reserved_lte_current",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("cost_price__gte", 0), ("selling_price__gte", 0)),
                        name="chk_batch_prices_gte_zero",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "movement_type",
                    models.CharField(
                        choices=[
                            ("purchase", "Purchase"),
                            ("sale", "Sale"),
                            ("adjustment", "Adjustment"),
                            ("return", "Return"),
                            ("damage", "Damage"),
                            ("transfer", "Transfer"),
                            ("expired", "Expired"),
                        ],
                        max_length=16,
                    ),
                ),
                ("quantity", models.IntegerField()),
                ("previous_stock", models.IntegerField()),
                ("new_stock", models.IntegerField()),
                ("reference", models.CharField(blank=True, db_index=True, default="", max_length=128)),
                ("reason", models.CharField(blank=True, default="", max_length=200)),
                ("notes", models.TextField(blank=True, default="", max_length=500)),
                ("unit_cost", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("total_cost", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("batch_number", models.CharField(blank=True, default="", max_length=32)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "batch",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_movements",
                        to="inventory.inventorybatch",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="stock_movements",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_movements",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["product", "created_at"], name="inventory_s_product_4c2e8b_idx"),
                    models.Index(fields=["batch", "created_at"], name="inventory_s_batch_i_9a3f17_idx"),
                    models.Index(fields=["movement_type"], name="inventory_s_movemen_e61b04_idx"),
                ],
            },
        ),
    ]
