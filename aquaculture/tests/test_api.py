from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone
from rest_framework.test import APIClient

from aquaculture.models import Cage, DailyRecord, HarvestRecord, Stocking

from conftest import make_cage, make_user

pytestmark = pytest.mark.django_db


# ----- cages -----
def test_cage_list_is_paginated_and_company_scoped(api_staff, company, other_company):
    for name in ("C2", "C1", "C3"):
        make_cage(company, name)
    make_cage(other_company, "C1")

    response = api_staff.get("/api/cages/")
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 3
    assert body["total_pages"] == 1
    assert [c["name"] for c in body["results"]] == ["C1", "C2", "C3"]


def test_cage_list_filters(api_staff, company):
    make_cage(company, "North 1", status=Cage.ACTIVE)
    make_cage(company, "South 1")
    assert [c["name"] for c in api_staff.get("/api/cages/?status=active").json()["results"]] == ["North 1"]
    assert [c["name"] for c in api_staff.get("/api/cages/?search=south").json()["results"]] == ["South 1"]


def test_only_admins_create_cages(api_admin, api_staff):
    payload = {"name": "C7", "capacity": 4000, "location": "Bay 2"}
    assert api_staff.post("/api/cages/", payload, format="json").status_code == 403

    response = api_admin.post("/api/cages/", payload, format="json")
    assert response.status_code == 201
    assert response.json()["status"] == Cage.EMPTY

    response = api_admin.post("/api/cages/", {"name": "c7"}, format="json")
    assert response.status_code == 400
    assert "name" in response.json()


def test_cage_by_name_and_status(api_admin, cage):
    assert api_admin.get("/api/cages/by-name/?name=c1").json()["id"] == cage.pk
    assert api_admin.get("/api/cages/by-name/?name=nope").status_code == 404

    response = api_admin.post(f"/api/cages/{cage.pk}/status/", {"status": "maintenance"}, format="json")
    assert response.status_code == 200
    assert response.json()["status"] == "maintenance"
    assert api_admin.post(f"/api/cages/{cage.pk}/status/", {"status": "sunk"}, format="json").status_code == 400


def test_cage_delete_blocked_by_records(api_admin, stocked_cage, cage):
    DailyRecord.objects.create(cage=stocked_cage, date=timezone.localdate(), feed_amount=Decimal("4"))
    response = api_admin.delete(f"/api/cages/{stocked_cage.pk}/")
    assert response.status_code == 400
    assert Cage.objects.filter(pk=stocked_cage.pk).exists()


def test_cage_metrics_endpoint(api_staff, stocked_cage):
    body = api_staff.get(f"/api/cages/{stocked_cage.pk}/metrics/").json()
    assert body["metrics"]["stocked_count"] == 1000
    assert body["growth"]["mortality_rate"] == 0.0
    assert body["weekly_feed"] == []


def test_cage_metrics_patch_is_admin_only(api_admin, api_staff, cage):
    url = f"/api/cages/{cage.pk}/cage-metrics/"
    assert api_staff.patch(url, {"current_count": 10}, format="json").status_code == 403
    response = api_admin.patch(url, {"current_count": 900, "name": "ignored"}, format="json")
    assert response.status_code == 200
    cage.refresh_from_db()
    assert cage.current_count == 900
    assert cage.name == "C1"


def test_other_company_cage_is_not_found(api_admin, other_company):
    foreign = make_cage(other_company, "X1")
    assert api_admin.get(f"/api/cages/{foreign.pk}/").status_code == 404


def test_user_without_company_is_refused(db):
    lonely = make_user(None)
    client = APIClient()
    client.force_authenticate(lonely)
    assert client.get("/api/cages/").status_code == 403


# ----- stocking -----
def _stocking_payload(cage):
    return {
        "cage": cage.pk,
        "stocking_date": (timezone.localdate() - timedelta(days=3)).isoformat(),
        "fish_count": 1500,
        "initial_abw": "20.00",
    }


def test_stocking_flow_over_api(api_admin, api_staff, cage):
    response = api_staff.post("/api/stockings/", _stocking_payload(cage), format="json")
    assert response.status_code == 201
    stocking_id = response.json()["id"]
    assert response.json()["status"] == Stocking.STATUS_PENDING
    assert response.json()["initial_biomass"] == "30.000"

    assert api_staff.post(f"/api/stockings/{stocking_id}/approve/").status_code == 403
    pending = api_admin.get("/api/approvals/pending/").json()
    assert [row["id"] for row in pending["stockings"]] == [stocking_id]

    assert api_admin.post(f"/api/stockings/{stocking_id}/approve/").status_code == 200
    assert api_admin.post(f"/api/stockings/{stocking_id}/approve/").status_code == 409
    cage.refresh_from_db()
    assert cage.current_count == 1500


def test_stocking_reject_requires_reason(api_admin, cage):
    stocking_id = api_admin.post("/api/stockings/", _stocking_payload(cage), format="json").json()["id"]
    assert api_admin.post(f"/api/stockings/{stocking_id}/reject/", {}, format="json").status_code == 400
    response = api_admin.post(f"/api/stockings/{stocking_id}/reject/", {"reason": "Dead on arrival"}, format="json")
    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "Dead on arrival"


def test_stocking_for_foreign_cage_is_rejected(api_admin, other_company):
    foreign = make_cage(other_company, "X1")
    response = api_admin.post("/api/stockings/", _stocking_payload(foreign), format="json")
    assert response.status_code == 400
    assert "cage" in response.json()


def test_topups_over_api(api_admin, stocked_cage):
    stocking = stocked_cage.current_stocking()
    url = f"/api/stockings/{stocking.pk}/topups/"
    response = api_admin.post(url, {
        "topup_date": timezone.localdate().isoformat(), "fish_count": 100, "abw": "60",
    }, format="json")
    assert response.status_code == 201
    topup_id = response.json()["id"]
    assert [t["id"] for t in api_admin.get(url).json()] == [topup_id]

    assert api_admin.post(f"/api/topups/{topup_id}/approve/").status_code == 200
    stocked_cage.refresh_from_db()
    assert stocked_cage.current_count == 1100


def test_stocking_delete_is_soft(api_admin, stocked_cage):
    stocking = stocked_cage.current_stocking()
    assert api_admin.delete(f"/api/stockings/{stocking.pk}/").status_code == 204
    stocking.refresh_from_db()
    assert stocking.deleted_at is not None
    assert api_admin.get(f"/api/stockings/{stocking.pk}/").status_code == 404


# ----- records -----
def test_daily_records_list_requires_cage(api_staff, stocked_cage):
    assert api_staff.get("/api/daily-records/").status_code == 400
    response = api_staff.get(f"/api/daily-records/?cage_id={stocked_cage.pk}")
    assert response.status_code == 200
    assert response.json() == []


def test_daily_record_create_over_api(api_staff, stocked_cage, feed_type):
    payload = {
        "cage": stocked_cage.pk,
        "date": timezone.localdate().isoformat(),
        "feed_amount": "15.00",
        "feed_type": feed_type.pk,
        "mortality": 4,
    }
    response = api_staff.post("/api/daily-records/", payload, format="json")
    assert response.status_code == 201
    assert response.json()["feed_type_name"] == "Grower 4mm"
    assert response.json()["feed_cost"] == "187.50"

    response = api_staff.post("/api/daily-records/", payload, format="json")
    assert response.status_code == 400
    assert "date" in response.json()


def test_daily_import_endpoint(api_admin, api_staff, stocked_cage):
    day = (timezone.localdate() - timedelta(days=1)).isoformat()
    content = f"cage,date,feed_amount,mortality\nC1,{day},9,0\nC9,{day},9,0\n".encode()

    upload = SimpleUploadedFile("daily.csv", content, content_type="text/csv")
    assert api_staff.post("/api/daily-records/import/", {"file": upload}, format="multipart").status_code == 403

    upload = SimpleUploadedFile("daily.csv", content, content_type="text/csv")
    response = api_admin.post("/api/daily-records/import/", {"file": upload}, format="multipart")
    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 1
    assert body["errors"][0]["row"] == 3
    assert api_admin.post("/api/daily-records/import/", {}, format="multipart").status_code == 400


def test_biweekly_record_over_api(api_staff, stocked_cage):
    response = api_staff.post("/api/biweekly-records/", {
        "cage": stocked_cage.pk,
        "date": timezone.localdate().isoformat(),
        "samplings": [{"fish_count": 10, "total_weight": "750"}, {"fish_count": 10, "total_weight": "850"}],
    }, format="json")
    assert response.status_code == 201
    body = response.json()
    assert body["average_body_weight"] == "80.00"
    assert [s["sampling_number"] for s in body["samplings"]] == [1, 2]
    assert len(api_staff.get(f"/api/biweekly-records/?cage_id={stocked_cage.pk}").json()) == 1


def test_harvest_over_api(api_admin, api_staff, stocked_cage):
    payload = {
        "cage": stocked_cage.pk,
        "harvest_date": timezone.localdate().isoformat(),
        "total_weight": "420",
        "average_body_weight": "450",
        "estimated_count": 930,
        "fcr": "1.4",
        "size_breakdown": [{"range": "400g-500g", "percentage": "100"}],
    }
    assert api_staff.post("/api/harvests/", payload, format="json").status_code == 403
    response = api_admin.post("/api/harvests/", payload, format="json")
    assert response.status_code == 201
    harvest_id = response.json()["id"]

    response = api_admin.post(f"/api/harvests/{harvest_id}/sampling/", {
        "crate_size": 50,
        "samples": [{"size": "Eco", "quantity": 12, "abw": "455"}],
    }, format="json")
    assert response.status_code == 201
    assert response.json()[0]["size_range"] == "400g-500g"
    assert HarvestRecord.objects.get(pk=harvest_id).crate_size == 50
    stocked_cage.refresh_from_db()
    assert stocked_cage.status == Cage.HARVESTED


# ----- company -----
def test_company_detail(api_admin, api_staff):
    assert api_staff.get("/api/company/").json()["name"] == "Lakeside Fish Ltd"
    assert api_staff.patch("/api/company/", {"address": "x"}, format="json").status_code == 403
    response = api_admin.patch("/api/company/", {"address": "Kpong"}, format="json")
    assert response.status_code == 200
    assert response.json()["address"] == "Kpong"


def test_company_logo_rejects_wrong_type(api_admin):
    upload = SimpleUploadedFile("logo.txt", b"not an image", content_type="text/plain")
    response = api_admin.post("/api/company/logo/", {"logo": upload}, format="multipart")
    assert response.status_code == 400
    assert "logo" in response.json()


# ----- dashboard -----
def test_kpis_endpoint(client, staff, stocked_cage):
    client.force_login(staff)
    response = client.get("/api/dashboard/kpis/")
    assert response.status_code == 200
    cards = {c["key"]: c["value"] for c in response.json()["cards"]}
    assert cards["active_cages"] == 1


def test_kpis_forbidden_without_company(client, db):
    client.force_login(make_user(None))
    assert client.get("/api/dashboard/kpis/").status_code == 403


def test_analytics_endpoint(client, staff, stocked_cage):
    client.force_login(staff)
    body = client.get("/api/analytics/?type=summary").json()
    assert body["type"] == "summary"
    assert body["data"]["active_cages"] == 1
    assert client.get("/api/analytics/?type=biomass").json()["data"][0]["cage_name"] == "C1"
    assert client.get("/api/analytics/?type=feed&period=monthly").json()["data"] == []
    assert client.get("/api/analytics/?type=feed&period=hourly").status_code == 400
    assert client.get("/api/analytics/?type=weather").status_code == 400


def test_farm_activity_is_admin_only(client, admin, staff, stocked_cage):
    client.force_login(staff)
    assert client.get("/dashboard/activity/").status_code == 403
    client.force_login(admin)
    body = client.get("/dashboard/activity/").json()
    assert {"action_types", "timeline", "users", "recent"} <= set(body)
    assert len(body["timeline"]) == 14
