from __future__ import annotations

import logging
from datetime import timedelta

from django.db.models import Count
from django.db.models.functions import TruncDate
from django.utils import timezone

from aquaculture.models import AuditLog
from aquaculture.utils.jsonsafe import json_safe

logger = logging.getLogger(__name__)


def _company_of(user):
    profile = getattr(user, "profile", None) if user is not None else None
    return getattr(profile, "company", None)


def log_action(
    action_type: str,
    table_name: str = "",
    record_id=None,
    *,
    user=None,
    company=None,
    previous=None,
    new=None,
) -> AuditLog | None:
    """Write one audit row. Failures are logged and never reach the caller."""
    try:
        if user is not None and not getattr(user, "is_authenticated", False):
            user = None
        return AuditLog.objects.create(
            action_type=action_type,
            table_name=table_name,
            record_id="" if record_id is None else str(record_id),
            user=user,
            username=getattr(user, "username", "") or "",
            company=company if company is not None else _company_of(user),
            previous_values=json_safe(previous),
            new_values=json_safe(new),
        )
    except Exception:
        logger.exception("Could not write audit log for %s %s#%s", action_type, table_name, record_id)
        return None


def audit_logs(
    *,
    company=None,
    user=None,
    action_type=None,
    table_name=None,
    record_id=None,
    start=None,
    end=None,
    limit: int = 50,
    offset: int = 0,
):
    """Filtered audit entries, newest first. Returns (rows, total)."""
    qs = AuditLog.objects.select_related("user", "company")
    if company is not None:
        qs = qs.filter(company=company)
    if user is not None:
        qs = qs.filter(user=user)
    if action_type:
        qs = qs.filter(action_type=action_type)
    if table_name:
        qs = qs.filter(table_name=table_name)
    if record_id:
        qs = qs.filter(record_id=str(record_id))
    if start:
        qs = qs.filter(timestamp__date__gte=start)
    if end:
        qs = qs.filter(timestamp__date__lte=end)
    total = qs.count()
    return list(qs.order_by("-timestamp")[offset:offset + limit]), total


def record_history(table_name: str, record_id, company=None):
    qs = AuditLog.objects.filter(table_name=table_name, record_id=str(record_id))
    if company is not None:
        qs = qs.filter(company=company)
    return list(qs.select_related("user").order_by("-timestamp"))


def action_type_stats(company=None, days: int = 30):
    """[{"action_type": ..., "count": n}] over the last ``days`` days."""
    since = timezone.now() - timedelta(days=days)
    qs = AuditLog.objects.filter(timestamp__gte=since)
    if company is not None:
        qs = qs.filter(company=company)
    rows = qs.values("action_type").annotate(count=Count("id")).order_by("-count", "action_type")
    return [{"action_type": r["action_type"], "count": r["count"]} for r in rows]


def recent_activity(company=None, limit: int = 5):
    qs = AuditLog.objects.select_related("user")
    if company is not None:
        qs = qs.filter(company=company)
    return list(qs.order_by("-timestamp")[:limit])


def activity_timeline(company=None, days: int = 14):
    """Daily entry counts for the last ``days`` days, oldest first, zero-filled."""
    today = timezone.localdate()
    first = today - timedelta(days=days - 1)
    qs = AuditLog.objects.filter(timestamp__date__gte=first)
    if company is not None:
        qs = qs.filter(company=company)
    counts = {
        r["day"]: r["count"]
        for r in qs.annotate(day=TruncDate("timestamp")).values("day").annotate(count=Count("id"))
    }
    return [
        {"date": (first + timedelta(days=i)).isoformat(), "count": counts.get(first + timedelta(days=i), 0)}
        for i in range(days)
    ]


def user_activity(company=None, limit: int = 5):
    """Most active users by number of audit entries."""
    qs = AuditLog.objects.exclude(user__isnull=True)
    if company is not None:
        qs = qs.filter(company=company)
    rows = (
        qs.values("user_id", "username")
        .annotate(count=Count("id"))
        .order_by("-count", "username")[:limit]
    )
    return [{"user_id": r["user_id"], "username": r["username"], "count": r["count"]} for r in rows]
