# catalog/admin.py

from django.contrib import admin

from catalog.models import BarcodeCounter, Product
from catalog.services import assign_barcode


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "barcode", "current_stock", "selling_price", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "sku", "barcode")
    # engine-managed fields
    readonly_fields = ("current_stock", "cost_price", "selling_price", "created_at", "updated_at")
    actions = ("issue_barcodes",)

    @admin.action(description="Issue internal barcodes to products without one")
    def issue_barcodes(self, request, queryset):
        issued = 0
        for product in queryset.filter(barcode__isnull=True):
            assign_barcode(product)
            issued += 1
        self.message_user(request, f"{issued} barcode(s) issued.")


@admin.register(BarcodeCounter)
class BarcodeCounterAdmin(admin.ModelAdmin):
    list_display = ("key", "sequence")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
