from rest_framework import serializers

from aquaculture.serializers import CompanyScopedPK

from . import stock
from .models import FeedInventoryTransaction, FeedPurchase, FeedSupplier, FeedType


class FeedSupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = FeedSupplier
        fields = ["id", "name", "contact_person", "phone", "email", "address", "is_active", "created_at"]
        read_only_fields = ["created_at"]


class FeedTypeSerializer(serializers.ModelSerializer):
    supplier = CompanyScopedPK(queryset=FeedSupplier.objects.all(), required=False, allow_null=True)
    supplier_name = serializers.CharField(source="supplier.name", read_only=True, default=None)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = FeedType
        fields = [
            "id", "name", "supplier", "supplier_name", "protein_content", "pellet_size", "price_per_kg",
            "current_stock", "minimum_stock", "is_low_stock", "is_active", "created_at", "updated_at",
        ]
        # Stock only moves through purchases, usage and adjustments
        read_only_fields = ["current_stock", "created_at", "updated_at"]


class FeedPurchaseSerializer(serializers.ModelSerializer):
    feed_type = CompanyScopedPK(queryset=FeedType.objects.all())
    feed_type_name = serializers.CharField(source="feed_type.name", read_only=True)
    supplier = CompanyScopedPK(queryset=FeedSupplier.objects.all(), required=False, allow_null=True)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)

    class Meta:
        model = FeedPurchase
        fields = [
            "id", "feed_type", "feed_type_name", "supplier", "purchase_date", "quantity", "unit_price",
            "total_cost", "invoice_number", "notes", "created_by", "created_at",
        ]
        read_only_fields = ["total_cost", "created_by", "created_at"]

    def create(self, validated_data):
        feed_type = validated_data.pop("feed_type")
        return stock.record_purchase(feed_type, user=self.context["request"].user, **validated_data)


class FeedTransactionSerializer(serializers.ModelSerializer):
    feed_type_name = serializers.CharField(source="feed_type.name", read_only=True)
    cage_name = serializers.CharField(source="cage.name", read_only=True, default=None)

    class Meta:
        model = FeedInventoryTransaction
        fields = [
            "id", "feed_type", "feed_type_name", "transaction_type", "quantity", "balance_after",
            "unit_price", "date", "cage", "cage_name", "purchase", "daily_record", "notes", "created_at",
        ]


class StockAdjustmentSerializer(serializers.Serializer):
    new_stock = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
