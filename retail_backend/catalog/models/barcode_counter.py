# catalog/models/barcode_counter.py

"""
BARCODE COUNTER (ATOMIC SEQUENCE)

One row per named sequence. The product barcode sequence lives under
key="barcode_sequence"; there is exactly one such row per deployment.

Rules:
- sequence is mutated ONLY through catalog.services.sequence
  (UPDATE ... SET sequence = sequence + 1), never read-modify-write.
- The row is created lazily (sequence=0) on first use.
- resync is the single exception: a maintenance write after bulk imports.
"""

from django.db import models
from django.db.models import Q

# EAN-13 leaves 10 digits for the sequence after a 2-digit prefix
MAX_SEQUENCE = 9_999_999_999


class BarcodeCounter(models.Model):
    key = models.CharField(max_length=64, primary_key=True)
    sequence = models.BigIntegerField(default=0)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(sequence__gte=0) & Q(sequence__lte=MAX_SEQUENCE),
                name="chk_barcode_counter_sequence_range",
            ),
        ]

    def __str__(self):
        return f"{self.key}={self.sequence}"
