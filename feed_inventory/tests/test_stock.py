from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.urls import reverse
from django.utils import timezone

from aquaculture.exceptions import InsufficientStock
from aquaculture.models import DailyRecord
from feed_inventory import stock
from feed_inventory.models import FeedInventoryTransaction, FeedPurchase, FeedSupplier, FeedType

from conftest import make_cage

pytestmark = pytest.mark.django_db


# ----- ledger -----
def test_purchase_adds_stock_and_ledger_row(feed_type, admin):
    purchase = stock.record_purchase(feed_type, quantity="200", invoice_number="INV-1", user=admin)

    assert purchase.unit_price == Decimal("12.50")
    assert purchase.total_cost == Decimal("2500.00")
    feed_type.refresh_from_db()
    assert feed_type.current_stock == Decimal("700")
    txn = FeedInventoryTransaction.objects.get(purchase=purchase)
    assert txn.transaction_type == FeedInventoryTransaction.PURCHASE
    assert txn.quantity == Decimal("200")
    assert txn.balance_after == Decimal("700")


def test_purchase_rejects_bad_quantities(feed_type):
    with pytest.raises(ValidationError) as exc:
        stock.record_purchase(feed_type, quantity=0)
    assert "quantity" in exc.value.message_dict
    with pytest.raises(ValidationError):
        stock.record_purchase(feed_type, quantity=10, unit_price="-1")
    assert not FeedPurchase.objects.exists()


def test_deleting_purchase_never_drives_stock_negative(feed_type, admin):
    purchase = stock.record_purchase(feed_type, quantity=200, unit_price="10", user=admin)
    stock.adjust_stock(feed_type, new_stock=50, user=admin)

    stock.delete_purchase(purchase, user=admin)

    feed_type.refresh_from_db()
    assert feed_type.current_stock == Decimal("0")
    assert not FeedPurchase.objects.exists()
    last = FeedInventoryTransaction.objects.filter(feed_type=feed_type).order_by("-id").first()
    assert last.transaction_type == FeedInventoryTransaction.ADJUSTMENT
    assert last.quantity == Decimal("-50")


def test_usage_takes_stock_out(feed_type, stocked_cage, staff):
    txn = stock.record_usage(feed_type, quantity="20", cage=stocked_cage, user=staff)
    assert txn.quantity == Decimal("-20")
    assert txn.unit_price == Decimal("12.50")
    assert txn.balance_after == Decimal("480")
    feed_type.refresh_from_db()
    assert feed_type.current_stock == Decimal("480")


def test_usage_beyond_stock_is_refused(feed_type):
    with pytest.raises(InsufficientStock):
        stock.record_usage(feed_type, quantity="500.01")
    feed_type.refresh_from_db()
    assert feed_type.current_stock == Decimal("500")
    assert not FeedInventoryTransaction.objects.exists()


def test_adjust_stock_records_the_difference(feed_type, admin):
    txn = stock.adjust_stock(feed_type, new_stock="450", user=admin, notes="Monthly count")
    assert txn.quantity == Decimal("-50")
    assert txn.notes == "Monthly count"
    with pytest.raises(ValidationError):
        stock.adjust_stock(feed_type, new_stock="-1")


def test_low_stock_alerts(company, feed_type, settings):
    settings.LOW_STOCK_FACTOR = 1.2
    FeedType.objects.create(company=company, name="Starter 2mm", current_stock=Decimal("110"),
                            minimum_stock=Decimal("100"))
    FeedType.objects.create(company=company, name="Finisher", current_stock=Decimal("5"),
                            minimum_stock=Decimal("100"), is_active=False)
    FeedType.objects.create(company=company, name="Pre-starter", current_stock=Decimal("20"),
                            minimum_stock=Decimal("50"))

    assert [ft.name for ft in stock.low_stock_alerts(company)] == ["Pre-starter", "Starter 2mm"]


# ----- reports -----
def test_usage_stats_windows(company, feed_type, stocked_cage):
    today = timezone.localdate()
    stock.record_usage(feed_type, quantity=10, cage=stocked_cage, date=today)
    stock.record_usage(feed_type, quantity=5, cage=stocked_cage, date=today - timedelta(days=2))
    stock.record_usage(feed_type, quantity=30, date=today - timedelta(days=40))

    week = stock.usage_stats(company, "7d")
    assert week["total"] == 15.0
    assert week["by_feed_type"] == [{"feed_type_id": feed_type.pk, "name": "Grower 4mm", "quantity": 15.0}]
    assert week["by_cage"] == [{"cage_id": stocked_cage.pk, "name": "C1", "quantity": 15.0}]
    assert [d["quantity"] for d in week["daily"]] == [5.0, 10.0]

    assert stock.usage_stats(company, "90d")["total"] == 45.0
    with pytest.raises(ValidationError):
        stock.usage_stats(company, "2w")


def test_cost_analysis(company, feed_type):
    stock.record_purchase(feed_type, quantity=100, unit_price="10")
    stock.record_usage(feed_type, quantity=20)

    report = stock.cost_analysis(company, "30d")
    row = report["feed_types"][0]
    assert row["purchased_cost"] == 1000.0
    assert row["used_kg"] == 20.0
    assert row["used_value"] == 250.0
    assert row["stock_value"] == 7250.0
    assert report["total_purchased"] == 1000.0


def test_last_used_feed_type(company, feed_type, stocked_cage):
    assert stock.last_used_feed_type(stocked_cage) is None

    starter = FeedType.objects.create(company=company, name="Starter 2mm", current_stock=Decimal("50"))
    DailyRecord.objects.create(cage=stocked_cage, date=timezone.localdate(), feed_amount=Decimal("2"),
                               feed_type=starter)
    assert stock.last_used_feed_type(stocked_cage) == starter

    stock.record_usage(feed_type, quantity=3, cage=stocked_cage)
    assert stock.last_used_feed_type(stocked_cage) == feed_type


# ----- API -----
def test_supplier_api(api_admin, api_staff, company):
    payload = {"name": "Raanan Feeds", "phone": "0302", "email": "sales@raanan.test"}
    assert api_staff.post("/api/feed/suppliers/", payload, format="json").status_code == 403

    response = api_admin.post("/api/feed/suppliers/", payload, format="json")
    assert response.status_code == 201
    supplier_id = response.json()["id"]

    response = api_admin.post("/api/feed/suppliers/", payload, format="json")
    assert response.status_code == 400
    assert "name" in response.json()

    assert [s["name"] for s in api_staff.get("/api/feed/suppliers/").json()] == ["Raanan Feeds"]
    assert api_admin.delete(f"/api/feed/suppliers/{supplier_id}/").status_code == 204
    assert FeedSupplier.objects.get(pk=supplier_id).is_active is False


def test_feed_type_api_keeps_stock_read_only(api_admin, company, other_company):
    foreign = FeedSupplier.objects.create(company=other_company, name="Elsewhere")
    response = api_admin.post("/api/feed/types/", {
        "name": "Grower 6mm", "price_per_kg": "11.00", "minimum_stock": "50", "current_stock": "999",
    }, format="json")
    assert response.status_code == 201
    assert response.json()["current_stock"] == "0.00"
    assert response.json()["is_low_stock"] is True

    response = api_admin.post("/api/feed/types/", {"name": "Other", "supplier": foreign.pk}, format="json")
    assert response.status_code == 400
    assert "supplier" in response.json()


def test_feed_type_delete_deactivates(api_admin, feed_type):
    assert api_admin.delete(f"/api/feed/types/{feed_type.pk}/").status_code == 204
    feed_type.refresh_from_db()
    assert feed_type.is_active is False


def test_low_stock_and_adjust_endpoints(api_admin, api_staff, feed_type):
    assert api_staff.get("/api/feed/types/low-stock/").json() == []

    url = f"/api/feed/types/{feed_type.pk}/adjust/"
    assert api_staff.post(url, {"new_stock": "80"}, format="json").status_code == 403
    response = api_admin.post(url, {"new_stock": "80", "notes": "Spillage"}, format="json")
    assert response.status_code == 200
    assert response.json()["quantity"] == "-420.00"
    assert response.json()["balance_after"] == "80.00"

    assert [ft["name"] for ft in api_staff.get("/api/feed/types/low-stock/").json()] == ["Grower 4mm"]
    assert api_admin.post(url, {"new_stock": "-5"}, format="json").status_code == 400


def test_purchase_api(api_admin, api_staff, feed_type):
    response = api_admin.post("/api/feed/purchases/", {"feed_type": feed_type.pk, "quantity": "50"}, format="json")
    assert response.status_code == 201
    body = response.json()
    assert body["total_cost"] == "625.00"
    assert body["feed_type_name"] == "Grower 4mm"
    feed_type.refresh_from_db()
    assert feed_type.current_stock == Decimal("550")

    assert len(api_staff.get("/api/feed/purchases/").json()) == 1
    txns = api_staff.get("/api/feed/transactions/?type=purchase").json()
    assert [t["quantity"] for t in txns] == ["50.00"]

    assert api_admin.delete(f"/api/feed/purchases/{body['id']}/").status_code == 204
    feed_type.refresh_from_db()
    assert feed_type.current_stock == Decimal("500")


def test_usage_and_cost_endpoints(api_admin, api_staff, feed_type, stocked_cage):
    stock.record_usage(feed_type, quantity=12, cage=stocked_cage)
    body = api_staff.get("/api/feed/usage-stats/?range=7d").json()
    assert body["total"] == 12.0
    assert api_staff.get("/api/feed/usage-stats/?range=forever").status_code == 400

    assert api_staff.get("/api/feed/cost-analysis/").status_code == 403
    assert api_admin.get("/api/feed/cost-analysis/").json()["total_used_value"] == 150.0


def test_last_used_endpoint(api_staff, feed_type, stocked_cage, other_company):
    url = f"/api/feed/last-used/{stocked_cage.pk}/"
    assert api_staff.get(url).json() == {"feed_type": None}
    stock.record_usage(feed_type, quantity=1, cage=stocked_cage)
    assert api_staff.get(url).json()["feed_type"]["id"] == feed_type.pk

    foreign = make_cage(other_company, "X1")
    assert api_staff.get(f"/api/feed/last-used/{foreign.pk}/").status_code == 404


# ----- pages -----
def test_stock_levels_page(client, staff, feed_type, settings):
    settings.LOW_STOCK_FACTOR = 6
    client.force_login(staff)
    response = client.get(reverse("feed_inventory:stock_levels"), {"range": "bogus"})
    assert response.status_code == 200
    assert response.context["range_key"] == stock.DEFAULT_RANGE
    assert list(response.context["low_stock"]) == [feed_type]


def test_supplier_and_feed_type_pages(client, admin, company):
    client.force_login(admin)
    response = client.post(reverse("feed_inventory:supplier_create"), {"name": "Coppens", "is_active": "on"})
    assert response.status_code == 302
    supplier = FeedSupplier.objects.get(company=company, name="Coppens")

    data = {"name": "Grower 4mm", "supplier": supplier.pk, "price_per_kg": "12.00", "minimum_stock": "100",
            "is_active": "on"}
    assert client.post(reverse("feed_inventory:feed_type_create"), data).status_code == 302
    response = client.post(reverse("feed_inventory:feed_type_create"), data)
    assert response.status_code == 200
    assert "name" in response.context["form"].errors


def test_staff_cannot_record_purchases_from_page(client, staff, feed_type):
    client.force_login(staff)
    response = client.post(reverse("feed_inventory:purchase_list"), {"feed_type": feed_type.pk, "quantity": "5"})
    assert response.status_code == 302
    assert not FeedPurchase.objects.exists()


def test_admin_purchase_and_delete_pages(client, admin, feed_type):
    client.force_login(admin)
    response = client.post(reverse("feed_inventory:purchase_list"), {
        "feed_type": feed_type.pk, "quantity": "40", "unit_price": "11",
    })
    assert response.status_code == 302
    purchase = FeedPurchase.objects.get()
    assert purchase.total_cost == Decimal("440.00")

    response = client.post(reverse("feed_inventory:purchase_delete", args=[purchase.pk]))
    assert response.status_code == 302
    feed_type.refresh_from_db()
    assert feed_type.current_stock == Decimal("500")


def test_adjust_stock_page(client, admin, feed_type):
    client.force_login(admin)
    response = client.post(reverse("feed_inventory:adjust_stock", args=[feed_type.pk]), {"new_stock": "300"})
    assert response.status_code == 302
    feed_type.refresh_from_db()
    assert feed_type.current_stock == Decimal("300")
