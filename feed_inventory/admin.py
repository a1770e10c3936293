from django.contrib import admin

from .models import FeedInventoryTransaction, FeedPurchase, FeedSupplier, FeedType


@admin.register(FeedSupplier)
class FeedSupplierAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "contact_person", "phone", "is_active")
    list_filter = ("company", "is_active")
    search_fields = ("name",)


@admin.register(FeedType)
class FeedTypeAdmin(admin.ModelAdmin):
    list_display = ("name", "company", "supplier", "price_per_kg", "current_stock", "minimum_stock", "is_active")
    list_filter = ("company", "is_active")
    search_fields = ("name",)
    readonly_fields = ("current_stock",)


@admin.register(FeedPurchase)
class FeedPurchaseAdmin(admin.ModelAdmin):
    list_display = ("purchase_date", "feed_type", "supplier", "quantity", "unit_price", "total_cost")
    list_filter = ("company", "feed_type")
    date_hierarchy = "purchase_date"


@admin.register(FeedInventoryTransaction)
class FeedInventoryTransactionAdmin(admin.ModelAdmin):
    list_display = ("date", "feed_type", "transaction_type", "quantity", "balance_after", "cage")
    list_filter = ("transaction_type", "feed_type")
