"""Feed stock ledger: purchases in, usage out, alerts and usage reports."""
from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone

from aquaculture.exceptions import InsufficientStock

from .models import FeedInventoryTransaction, FeedPurchase, FeedType

logger = logging.getLogger(__name__)

RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_RANGE = "30d"


def _dec(value) -> Decimal:
    return Decimal(str(value or 0))


def _post(feed_type: FeedType, kind: str, quantity: Decimal, *, user=None, **extra) -> FeedInventoryTransaction:
    return FeedInventoryTransaction.objects.create(
        company=feed_type.company,
        feed_type=feed_type,
        transaction_type=kind,
        quantity=quantity,
        balance_after=feed_type.current_stock,
        created_by=user,
        **extra,
    )


@transaction.atomic
def record_purchase(feed_type: FeedType, *, quantity, unit_price=None, supplier=None,
                    purchase_date=None, invoice_number="", notes="", user=None) -> FeedPurchase:
    quantity = _dec(quantity)
    if quantity <= 0:
        raise ValidationError({"quantity": "Quantity must be greater than zero."})
    unit_price = feed_type.price_per_kg if unit_price in (None, "") else _dec(unit_price)
    if unit_price < 0:
        raise ValidationError({"unit_price": "Unit price cannot be negative."})

    ft = FeedType.objects.select_for_update().get(pk=feed_type.pk)
    purchase = FeedPurchase.objects.create(
        company=ft.company,
        feed_type=ft,
        supplier=supplier or ft.supplier,
        purchase_date=purchase_date or timezone.localdate(),
        quantity=quantity,
        unit_price=unit_price,
        invoice_number=invoice_number,
        notes=notes,
        created_by=user,
    )
    ft.current_stock = ft.current_stock + quantity
    ft.save(update_fields=["current_stock", "updated_at"])
    _post(ft, FeedInventoryTransaction.PURCHASE, quantity, user=user, unit_price=unit_price,
          date=purchase.purchase_date, purchase=purchase)
    logger.info("Feed purchase: %s kg of %s (stock now %s)", quantity, ft.name, ft.current_stock)
    return purchase


@transaction.atomic
def delete_purchase(purchase: FeedPurchase, user=None):
    """Remove a purchase and take its quantity back out of stock (floored at zero)."""
    ft = FeedType.objects.select_for_update().get(pk=purchase.feed_type_id)
    removed = min(purchase.quantity, ft.current_stock)
    ft.current_stock = ft.current_stock - removed
    ft.save(update_fields=["current_stock", "updated_at"])
    _post(ft, FeedInventoryTransaction.ADJUSTMENT, -removed, user=user,
          notes=f"Purchase #{purchase.pk} deleted")
    purchase.delete()
    return ft


@transaction.atomic
def record_usage(feed_type: FeedType, *, quantity, cage=None, date=None, daily_record=None,
                 user=None, notes="") -> FeedInventoryTransaction:
    quantity = _dec(quantity)
    if quantity <= 0:
        raise ValidationError({"quantity": "Quantity must be greater than zero."})
    ft = FeedType.objects.select_for_update().get(pk=feed_type.pk)
    if ft.current_stock < quantity:
        raise InsufficientStock(
            f"Insufficient stock for {ft.name}: {ft.current_stock} kg available, {quantity} kg requested."
        )
    ft.current_stock = ft.current_stock - quantity
    ft.save(update_fields=["current_stock", "updated_at"])
    return _post(ft, FeedInventoryTransaction.USAGE, -quantity, user=user, unit_price=ft.price_per_kg,
                 date=date or timezone.localdate(), cage=cage, daily_record=daily_record, notes=notes)


@transaction.atomic
def adjust_stock(feed_type: FeedType, *, new_stock, user=None, notes="") -> FeedInventoryTransaction:
    """Set stock to a counted value, recording the difference."""
    new_stock = _dec(new_stock)
    if new_stock < 0:
        raise ValidationError({"new_stock": "Stock cannot be negative."})
    ft = FeedType.objects.select_for_update().get(pk=feed_type.pk)
    delta = new_stock - ft.current_stock
    ft.current_stock = new_stock
    ft.save(update_fields=["current_stock", "updated_at"])
    return _post(ft, FeedInventoryTransaction.ADJUSTMENT, delta, user=user, notes=notes)


def low_stock_alerts(company):
    """Active feed types at or under minimum stock times LOW_STOCK_FACTOR."""
    factor = _dec(settings.LOW_STOCK_FACTOR)
    return list(
        FeedType.objects.filter(company=company, is_active=True, current_stock__lte=F("minimum_stock") * factor)
        .order_by("current_stock", "name")
    )


def _since(range_key):
    days = RANGE_DAYS.get(range_key or DEFAULT_RANGE)
    if days is None:
        raise ValidationError({"range": f"Unknown range '{range_key}'. Use one of {', '.join(RANGE_DAYS)}."})
    return timezone.localdate() - timedelta(days=days)


def usage_stats(company, range_key=DEFAULT_RANGE):
    """Usage totals by feed type, by cage and by day for the chosen window."""
    since = _since(range_key)
    usage = FeedInventoryTransaction.objects.filter(
        company=company, transaction_type=FeedInventoryTransaction.USAGE, date__gte=since
    )
    by_type = (
        usage.values("feed_type_id", "feed_type__name")
        .annotate(quantity=Sum("quantity"))
        .order_by("feed_type__name")
    )
    by_cage = (
        usage.exclude(cage__isnull=True)
        .values("cage_id", "cage__name")
        .annotate(quantity=Sum("quantity"))
        .order_by("cage__name")
    )
    daily = usage.values("date").annotate(quantity=Sum("quantity")).order_by("date")
    total = usage.aggregate(q=Sum("quantity"))["q"] or Decimal("0")
    return {
        "range": range_key or DEFAULT_RANGE,
        "since": since.isoformat(),
        "total": float(-total),
        "by_feed_type": [
            {"feed_type_id": r["feed_type_id"], "name": r["feed_type__name"], "quantity": float(-r["quantity"])}
            for r in by_type
        ],
        "by_cage": [
            {"cage_id": r["cage_id"], "name": r["cage__name"], "quantity": float(-r["quantity"])}
            for r in by_cage
        ],
        "daily": [{"date": r["date"].isoformat(), "quantity": float(-r["quantity"])} for r in daily],
    }


def purchases_in_range(company, start=None, end=None):
    qs = FeedPurchase.objects.filter(company=company).select_related("feed_type", "supplier")
    if start:
        qs = qs.filter(purchase_date__gte=start)
    if end:
        qs = qs.filter(purchase_date__lte=end)
    return qs


def cost_analysis(company, range_key=DEFAULT_RANGE):
    """Spend on purchases against the value of feed used, per feed type."""
    since = _since(range_key)
    spend = {
        r["feed_type_id"]: r["total"]
        for r in purchases_in_range(company, start=since).values("feed_type_id").annotate(total=Sum("total_cost"))
    }
    rows = []
    for ft in FeedType.objects.filter(company=company).order_by("name"):
        used_qs = ft.transactions.filter(transaction_type=FeedInventoryTransaction.USAGE, date__gte=since)
        used_kg = -(used_qs.aggregate(q=Sum("quantity"))["q"] or Decimal("0"))
        used_value = sum((-t.quantity * (t.unit_price or ft.price_per_kg) for t in used_qs), Decimal("0"))
        rows.append({
            "feed_type_id": ft.pk,
            "name": ft.name,
            "purchased_cost": float(spend.get(ft.pk) or 0),
            "used_kg": float(used_kg),
            "used_value": float(used_value.quantize(Decimal("0.01"))),
            "stock_value": float((ft.current_stock * ft.price_per_kg).quantize(Decimal("0.01"))),
        })
    return {
        "range": range_key or DEFAULT_RANGE,
        "feed_types": rows,
        "total_purchased": round(sum(r["purchased_cost"] for r in rows), 2),
        "total_used_value": round(sum(r["used_value"] for r in rows), 2),
    }


def last_used_feed_type(cage):
    last = (
        FeedInventoryTransaction.objects.filter(cage=cage, transaction_type=FeedInventoryTransaction.USAGE)
        .select_related("feed_type")
        .order_by("-date", "-id")
        .first()
    )
    if last is not None:
        return last.feed_type
    record = cage.daily_records.exclude(feed_type__isnull=True).order_by("-date").first()
    return record.feed_type if record else None
