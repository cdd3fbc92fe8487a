import uuid
from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="BarcodeCounter",
            fields=[
                ("key", models.CharField(max_length=64, primary_key=True, serialize=False)),
                ("sequence", models.BigIntegerField(default=0)),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("sequence__gte", 0), ("sequence__lte", 9999999999)),
                        name="chk_barcode_counter_sequence_range",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("sku", models.CharField(max_length=128, unique=True)),
                ("barcode", models.CharField(blank=True, max_length=13, null=True, unique=True)),
                ("cost_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("selling_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                (
                    "mrp",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Maximum retail price; default for new batches.",
                        max_digits=12,
                        null=True,
                    ),
                ),
                ("current_stock", models.IntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("current_stock__gte", 0)),
                        name="chk_product_current_stock_gte_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("cost_price__gte", 0), ("selling_price__gte", 0)),
                        name="chk_product_prices_gte_zero",
                    ),
                ],
            },
        ),
    ]
