# inventory/conf.py

"""
Engine settings accessor.

All knobs live in settings.INVENTORY (see backend/settings/base.py).
Missing keys fall back to DEFAULTS so tests can override a single value
with override_settings(INVENTORY={...}).
"""

from __future__ import annotations

from django.conf import settings

DEFAULTS = {
    "BARCODE_PREFIX": "21",
    "BARCODE_SEQUENCE_KEY": "barcode_sequence",
    "BARCODE_MAX_RETRIES": 5,
    "SALE_DECREMENT_RETRIES": 3,
    "EXPIRY_WARNING_DAYS": 30,
    "EXPIRING_SOON_DAYS": 7,
}

# Upper bound (days) for expiry look-ahead windows
MAX_WINDOW_DAYS = 3650


def inventory_setting(name: str):
    if name not in DEFAULTS:
        raise KeyError(f"Unknown inventory setting: {name}")

    configured = getattr(settings, "INVENTORY", None) or {}
    value = configured.get(name)
    if value is None or value == "":
        return DEFAULTS[name]
    return value
