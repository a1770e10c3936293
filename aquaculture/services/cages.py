from __future__ import annotations

import logging
import math

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from aquaculture.models import AuditLog, Cage
from aquaculture.services import audit
from aquaculture.services.metrics import calculate_growth_metrics
from aquaculture.utils.jsonsafe import snapshot

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = [
    "name",
    "location",
    "size",
    "capacity",
    "dimensions",
    "material",
    "installation_date",
    "status",
    "notes",
    "last_maintenance_date",
    "next_maintenance_date",
]
METRIC_FIELDS = [
    "stocking_date",
    "initial_count",
    "current_count",
    "initial_weight",
    "current_weight",
    "initial_abw",
    "growth_rate",
    "mortality_rate",
]


def list_cages(company, status=None, search=None, page=1, page_size=None):
    """One page of cages ordered by name plus pagination totals."""
    page_size = page_size or settings.CAGE_PAGE_SIZE
    qs = Cage.objects.filter(company=company)
    if status and status != "all":
        qs = qs.filter(status=status)
    if search:
        qs = qs.filter(name__icontains=search.strip())
    qs = qs.order_by("name")
    total = qs.count()
    page = max(int(page or 1), 1)
    start = (page - 1) * page_size
    return {
        "results": list(qs[start:start + page_size]),
        "count": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) if total else 0,
    }


def get_cage_by_name(company, name):
    if not name:
        return None
    return Cage.objects.filter(company=company, name__iexact=name.strip()).first()


def active_cages(company):
    return Cage.objects.filter(company=company, status=Cage.ACTIVE).order_by("name")


def available_for_stocking(company):
    return Cage.objects.filter(company=company, status__in=Cage.STOCKABLE_STATUSES).order_by("name")


def _assign(cage, data, fields):
    for field in fields:
        if field in data:
            setattr(cage, field, data[field])


def create_cage(company, data, user) -> Cage:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError({"name": "Cage name is required."})
    if get_cage_by_name(company, name):
        raise ValidationError({"name": f"A cage named {name} already exists."})
    cage = Cage(company=company, created_by=user)
    _assign(cage, {**data, "name": name}, EDITABLE_FIELDS)
    cage.full_clean()
    try:
        cage.save()
    except IntegrityError:
        raise ValidationError({"name": f"A cage named {name} already exists."})
    audit.log_action(AuditLog.CREATE, "cages", cage.pk, user=user, company=company, new=snapshot(cage))
    return cage


def update_cage(cage: Cage, data, user) -> Cage:
    before = snapshot(cage)
    if "name" in data:
        other = get_cage_by_name(cage.company, data["name"])
        if other and other.pk != cage.pk:
            raise ValidationError({"name": f"A cage named {data['name']} already exists."})
    _assign(cage, data, EDITABLE_FIELDS)
    cage.full_clean()
    cage.save()
    audit.log_action(AuditLog.UPDATE, "cages", cage.pk, user=user, company=cage.company,
                     previous=before, new=snapshot(cage))
    return cage


def update_status(cage: Cage, status, user) -> Cage:
    if status not in dict(Cage.STATUS_CHOICES):
        raise ValidationError({"status": f"Unknown cage status '{status}'."})
    return update_cage(cage, {"status": status}, user)


def update_metrics(cage: Cage, data, user=None) -> Cage:
    before = snapshot(cage, fields=METRIC_FIELDS)
    _assign(cage, data, METRIC_FIELDS)
    cage.save()
    audit.log_action(AuditLog.UPDATE, "cages", cage.pk, user=user, company=cage.company,
                     previous=before, new=snapshot(cage, fields=METRIC_FIELDS))
    return cage


def refresh_growth_metrics(cage: Cage) -> Cage:
    """Recompute stored growth/mortality percentages from the cage counters."""
    metrics = calculate_growth_metrics(cage)
    cage.growth_rate = metrics["growth_rate"]
    cage.mortality_rate = metrics["mortality_rate"]
    cage.save(update_fields=["growth_rate", "mortality_rate", "updated_at"])
    return cage


@transaction.atomic
def delete_cage(cage: Cage, user):
    if cage.daily_records.exists():
        raise ValidationError("Cannot delete cage with existing records. Update status instead.")
    before = snapshot(cage)
    pk, company = cage.pk, cage.company
    cage.delete()
    audit.log_action(AuditLog.DELETE, "cages", pk, user=user, company=company, previous=before)
    logger.info("Cage %s deleted by %s", before.get("name"), user)
