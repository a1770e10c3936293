from __future__ import annotations

from decimal import Decimal

from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone


class FeedSupplier(models.Model):
    company = models.ForeignKey("aquaculture.Company", on_delete=models.CASCADE, related_name="feed_suppliers")
    name = models.CharField(max_length=255)
    contact_person = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "feed_suppliers"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["company", "name"], name="uniq_supplier_per_company"),
        ]

    def __str__(self) -> str:
        return self.name


class FeedType(models.Model):
    company = models.ForeignKey("aquaculture.Company", on_delete=models.CASCADE, related_name="feed_types")
    name = models.CharField(max_length=255)
    supplier = models.ForeignKey(
        FeedSupplier, on_delete=models.SET_NULL, null=True, blank=True, related_name="feed_types"
    )
    protein_content = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    pellet_size = models.CharField(max_length=30, blank=True)
    price_per_kg = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    current_stock = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    minimum_stock = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "feed_types"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(fields=["company", "name"], name="uniq_feed_type_per_company"),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def is_low_stock(self) -> bool:
        from django.conf import settings

        return self.current_stock <= self.minimum_stock * Decimal(str(settings.LOW_STOCK_FACTOR))


class FeedPurchase(models.Model):
    company = models.ForeignKey("aquaculture.Company", on_delete=models.CASCADE, related_name="feed_purchases")
    feed_type = models.ForeignKey(FeedType, on_delete=models.PROTECT, related_name="purchases")
    supplier = models.ForeignKey(
        FeedSupplier, on_delete=models.SET_NULL, null=True, blank=True, related_name="purchases"
    )
    purchase_date = models.DateField(default=timezone.localdate)
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, editable=False)
    invoice_number = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "feed_purchases"
        ordering = ["-purchase_date", "-id"]

    def __str__(self) -> str:
        return f"{self.purchase_date} {self.feed_type} {self.quantity}kg"

    def save(self, *args, **kwargs):
        self.total_cost = (Decimal(self.quantity) * Decimal(self.unit_price)).quantize(Decimal("0.01"))
        super().save(*args, **kwargs)


class FeedInventoryTransaction(models.Model):
    """Stock ledger: every change to FeedType.current_stock leaves a row here."""
    PURCHASE = "purchase"
    USAGE = "usage"
    ADJUSTMENT = "adjustment"
    TYPE_CHOICES = [
        (PURCHASE, "Purchase"),
        (USAGE, "Usage"),
        (ADJUSTMENT, "Adjustment"),
    ]

    company = models.ForeignKey("aquaculture.Company", on_delete=models.CASCADE, related_name="feed_transactions")
    feed_type = models.ForeignKey(FeedType, on_delete=models.CASCADE, related_name="transactions")
    transaction_type = models.CharField(max_length=12, choices=TYPE_CHOICES)
    # Signed: purchases positive, usage negative
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    balance_after = models.DecimalField(max_digits=12, decimal_places=2)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    date = models.DateField(default=timezone.localdate)
    cage = models.ForeignKey(
        "aquaculture.Cage", on_delete=models.SET_NULL, null=True, blank=True, related_name="feed_transactions"
    )
    purchase = models.ForeignKey(
        FeedPurchase, on_delete=models.SET_NULL, null=True, blank=True, related_name="transactions"
    )
    daily_record = models.ForeignKey(
        "aquaculture.DailyRecord", on_delete=models.SET_NULL, null=True, blank=True, related_name="feed_transactions"
    )
    notes = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "feed_inventory_transactions"
        ordering = ["-date", "-id"]

    def __str__(self) -> str:
        return f"{self.date} {self.transaction_type} {self.feed_type} {self.quantity}"
