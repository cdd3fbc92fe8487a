# inventory/tests/helpers.py

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from catalog.models import Product
from inventory.services import create_batch

User = get_user_model()


def make_user(username="stock_admin", *, superuser=False):
    if superuser:
        return User.objects.create_superuser(
            username=username, email=f"{username}@example.com", password="password123"
        )
    return User.objects.create_user(
        username=username, email=f"{username}@example.com", password="password123"
    )


def make_product(name="Basmati Rice 5kg", sku="RICE-5KG", **extra):
    return Product.objects.create(name=name, sku=sku, **extra)


def days_from_today(days):
    return timezone.localdate() + timedelta(days=days)


def receive(product, user, quantity, cost, selling, *, days_ago=0, **extra):
    """Create a batch purchased `days_ago` days in the past."""
    return create_batch(
        product=product,
        quantity=quantity,
        cost_price=Decimal(str(cost)),
        selling_price=Decimal(str(selling)),
        created_by=user,
        purchase_date=timezone.now() - timedelta(days=days_ago),
        **extra,
    )
