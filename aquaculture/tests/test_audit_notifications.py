from datetime import timedelta
from decimal import Decimal

import pytest
from django.core import mail
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from aquaculture.models import AuditLog, Notification
from aquaculture.services import audit, notifications
from aquaculture.utils.jsonsafe import json_safe, snapshot

from conftest import make_user

pytestmark = pytest.mark.django_db


def test_json_safe_converts_nested_values(cage):
    data = json_safe({
        "amount": Decimal("1.50"),
        "when": timezone.localdate(),
        "cage": cage,
        "items": (1, "a"),
    })
    assert data == {"amount": 1.5, "when": timezone.localdate().isoformat(), "cage": cage.pk, "items": [1, "a"]}


def test_snapshot_is_json_ready(cage):
    snap = snapshot(cage)
    assert snap["name"] == "C1"
    assert snap["company"] == cage.company_id
    assert snapshot(None) is None


def test_log_action_fills_username_and_company(admin, company):
    row = audit.log_action(AuditLog.UPDATE, "cages", 5, user=admin, previous={"a": 1}, new={"a": 2})
    assert row.username == "admin@lakeside.test"
    assert row.company == company
    assert row.record_id == "5"
    assert row.previous_values == {"a": 1}


def test_log_action_never_raises(admin, monkeypatch):
    def boom(**kwargs):
        raise RuntimeError("database is gone")

    monkeypatch.setattr(AuditLog.objects, "create", boom)
    assert audit.log_action(AuditLog.CREATE, "cages", 1, user=admin) is None


def test_audit_logs_filters(admin, staff, company, other_company):
    audit.log_action(AuditLog.CREATE, "cages", 1, user=admin)
    audit.log_action(AuditLog.UPDATE, "cages", 1, user=staff)
    audit.log_action(AuditLog.CREATE, "daily_records", 9, user=staff)
    audit.log_action(AuditLog.CREATE, "cages", 2, user=make_user(other_company))

    rows, total = audit.audit_logs(company=company)
    assert total == 3
    rows, total = audit.audit_logs(company=company, table_name="cages", action_type=AuditLog.UPDATE)
    assert [r.user for r in rows] == [staff]
    assert len(audit.record_history("cages", 1, company=company)) == 2
    assert audit.audit_logs(company=company, limit=1)[0][0].table_name == "daily_records"


def test_audit_stats(admin, staff, company):
    audit.log_action(AuditLog.CREATE, "cages", 1, user=admin)
    audit.log_action(AuditLog.CREATE, "cages", 2, user=admin)
    audit.log_action(AuditLog.DELETE, "cages", 2, user=staff)
    old = audit.log_action(AuditLog.DELETE, "cages", 3, user=staff)
    AuditLog.objects.filter(pk=old.pk).update(timestamp=timezone.now() - timedelta(days=60))

    assert audit.action_type_stats(company) == [
        {"action_type": "create", "count": 2},
        {"action_type": "delete", "count": 1},
    ]
    assert audit.user_activity(company)[0] == {"user_id": admin.pk, "username": admin.username, "count": 2}
    timeline = audit.activity_timeline(company, days=7)
    assert len(timeline) == 7
    assert timeline[-1] == {"date": timezone.localdate().isoformat(), "count": 3}


def test_audit_api_is_admin_only(api_admin, api_staff, admin):
    audit.log_action(AuditLog.CREATE, "cages", 1, user=admin)
    assert api_staff.get("/api/audit-logs/").status_code == 403
    body = api_admin.get("/api/audit-logs/?table_name=cages").json()
    assert body["count"] == 1
    assert body["results"][0]["action_type"] == "create"
    assert len(api_admin.get("/api/audit-logs/cages/1/").json()) == 1
    assert "timeline" in api_admin.get("/api/audit-logs/stats/").json()


def test_audit_api_lists_all_companies_for_super_admin(super_admin, admin, other_company):
    audit.log_action(AuditLog.CREATE, "cages", 1, user=admin)
    audit.log_action(AuditLog.CREATE, "cages", 2, company=other_company)
    client = APIClient()
    client.force_authenticate(super_admin)
    response = client.get("/api/audit-logs/?all=1&table_name=cages")
    assert response.status_code == 200
    assert response.json()["count"] == 2


def test_audit_log_page(client, admin):
    audit.log_action(AuditLog.CREATE, "cages", 1, user=admin)
    client.force_login(admin)
    response = client.get(reverse("audit_logs"))
    assert response.status_code == 200
    assert len(response.context["logs"]) >= 1


# ----- notifications -----
def test_notify_company_admins_skips_excluded_and_emails(company, admin, staff):
    second = make_user(company, role="admin", email="second@lakeside.test")
    created = notifications.notify_company_admins(
        company, "Low stock", "Grower 4mm: 20 kg", exclude=second, email=True
    )
    assert [n.user for n in created] == [admin]
    assert not Notification.objects.filter(user=staff).exists()
    assert len(mail.outbox) == 1
    assert mail.outbox[0].to == ["admin@lakeside.test"]
    assert mail.outbox[0].alternatives


def test_notify_ignores_missing_user():
    assert notifications.notify(None, "hello") is None


def test_read_and_clear(staff, admin):
    a = notifications.notify(staff, "one")
    notifications.notify(staff, "two")
    notifications.notify(admin, "other")
    assert notifications.unread_count(staff) == 2
    notifications.mark_read(staff, a.pk)
    assert notifications.unread_count(staff) == 1
    # another user's notification is untouched
    assert notifications.mark_read(admin, a.pk) == 0
    notifications.mark_all_read(staff)
    assert notifications.unread_count(staff) == 0
    assert notifications.delete_all(staff) == 2
    assert Notification.objects.filter(user=admin).count() == 1


def test_notifications_api(api_staff, staff):
    n = notifications.notify(staff, "Stocking approved", type=Notification.SUCCESS)
    notifications.notify(staff, "Second")
    assert api_staff.get("/api/notifications/unread-count/").json() == {"unread": 2}
    assert len(api_staff.get("/api/notifications/?limit=1").json()) == 1
    assert len(api_staff.get("/api/notifications/?limit=abc").json()) == 2
    assert api_staff.post(f"/api/notifications/{n.pk}/read/").json() == {"unread": 1}
    assert api_staff.post("/api/notifications/read-all/").json()["unread"] == 0
    assert api_staff.delete(f"/api/notifications/{n.pk}/").status_code == 204
    assert api_staff.post("/api/notifications/clear/").json() == {"deleted": 1}


def test_notifications_page(client, staff):
    notifications.notify(staff, "Hello there")
    client.force_login(staff)
    response = client.get(reverse("notifications"))
    assert b"Hello there" in response.content
    client.post(reverse("notifications"))
    assert notifications.unread_count(staff) == 0
    client.post(reverse("notifications"), {"action": "clear"})
    assert not Notification.objects.filter(user=staff).exists()
