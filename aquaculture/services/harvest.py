from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum

from aquaculture.models import AuditLog, Cage, DailyRecord, HarvestRecord, HarvestSampling
from aquaculture.services import audit
from aquaculture.services.metrics import fcr as compute_fcr, stocked_totals
from aquaculture.services.records import coerce_date
from aquaculture.utils.jsonsafe import snapshot

logger = logging.getLogger(__name__)

SIZE_RANGES = dict(HarvestSampling.SIZE_CATEGORIES)
CRATE_SIZES = [c for c, _ in HarvestSampling.CRATE_CHOICES]


def _positive(value, field_name, cast=Decimal):
    try:
        number = cast(str(value)) if value not in (None, "") else None
    except (InvalidOperation, ValueError):
        number = None
    if number is None or number <= 0:
        raise ValidationError({field_name: "Must be greater than zero."})
    return number


def _clean_breakdown(size_breakdown):
    rows = []
    for item in size_breakdown or []:
        size_range = str(item.get("range") or "").strip()
        pct = item.get("percentage")
        if not size_range and pct in (None, ""):
            continue
        try:
            pct = float(pct)
        except (TypeError, ValueError):
            raise ValidationError({"size_breakdown": f"Invalid percentage for '{size_range}'."})
        if not size_range or pct < 0 or pct > 100:
            raise ValidationError({"size_breakdown": "Each size needs a range and a percentage between 0 and 100."})
        rows.append({"range": size_range, "percentage": pct})
    if sum(r["percentage"] for r in rows) > 100.0001:
        raise ValidationError({"size_breakdown": "Size percentages add up to more than 100%."})
    return rows


def harvest_fcr(cage: Cage, total_weight_kg) -> float | None:
    """Cycle FCR at harvest: feed since stocking over harvested minus stocked biomass."""
    qs = DailyRecord.objects.filter(cage=cage)
    if cage.stocking_date:
        qs = qs.filter(date__gte=cage.stocking_date)
    feed = qs.aggregate(total=Sum("feed_amount"))["total"]
    _, stocked_weight = stocked_totals(cage)
    return compute_fcr(feed, float(total_weight_kg) - stocked_weight)


@transaction.atomic
def record_harvest(
    cage: Cage,
    *,
    harvest_date,
    total_weight,
    average_body_weight,
    estimated_count,
    user,
    fcr=None,
    size_breakdown=None,
    notes="",
) -> HarvestRecord:
    """Close a stocking cycle with its harvest and mark the cage harvested."""
    cage = Cage.objects.select_for_update().get(pk=cage.pk)
    if not harvest_date:
        raise ValidationError({"harvest_date": "Harvest date is required."})
    harvest_date = coerce_date(harvest_date, "harvest_date")
    total_weight = _positive(total_weight, "total_weight")
    average_body_weight = _positive(average_body_weight, "average_body_weight")
    estimated_count = _positive(estimated_count, "estimated_count", cast=int)
    if cage.status not in (Cage.ACTIVE, Cage.HARVESTING):
        raise ValidationError(f"Cage {cage.name} has no fish to harvest.")
    if cage.stocking_date and harvest_date < cage.stocking_date:
        raise ValidationError({"harvest_date": "Harvest date cannot be before the stocking date."})

    stocking = cage.current_stocking()
    existing = HarvestRecord.objects.filter(cage=cage)
    existing = existing.filter(stocking=stocking) if stocking else existing.filter(stocking__isnull=True)
    if existing.exists():
        raise ValidationError("Cage already has a harvest record.")

    if fcr in (None, ""):
        fcr = harvest_fcr(cage, total_weight)
        if fcr is None:
            raise ValidationError({"fcr": "FCR could not be derived from feed records; enter it manually."})
    fcr = _positive(fcr, "fcr")

    harvest = HarvestRecord.objects.create(
        cage=cage,
        stocking=stocking,
        harvest_date=harvest_date,
        total_weight=total_weight,
        average_body_weight=average_body_weight,
        estimated_count=estimated_count,
        fcr=Decimal(str(fcr)).quantize(Decimal("0.01")),
        size_breakdown=_clean_breakdown(size_breakdown),
        notes=notes or "",
        created_by=user,
    )
    cage.status = Cage.HARVESTED
    cage.current_count = 0
    cage.current_weight = Decimal("0")
    cage.save(update_fields=["status", "current_count", "current_weight", "updated_at"])

    audit.log_action(AuditLog.CREATE, "harvest_records", harvest.pk, user=user, company=cage.company,
                     new=snapshot(harvest))
    logger.info("Harvest recorded for %s: %s kg, FCR %s", cage.name, total_weight, harvest.fcr)
    return harvest


@transaction.atomic
def add_sampling_data(harvest: HarvestRecord, *, crate_size, samples, user=None):
    """Attach per-size crate samples; rows without quantity and ABW are skipped."""
    try:
        crate_size = int(crate_size)
    except (TypeError, ValueError):
        crate_size = None
    if crate_size not in CRATE_SIZES:
        raise ValidationError({"crate_size": "Crate size must be 50 or 25 kg."})

    rows = []
    for sample in samples or []:
        quantity, avg = sample.get("quantity"), sample.get("abw")
        if not quantity or not avg:
            continue
        size = sample.get("size") or sample.get("category")
        if size not in SIZE_RANGES:
            raise ValidationError({"samples": f"Unknown size category '{size}'."})
        rows.append(HarvestSampling(
            harvest=harvest,
            crate_size=crate_size,
            size=size,
            size_range=SIZE_RANGES[size],
            quantity=_positive(quantity, "quantity", cast=int),
            abw=_positive(avg, "abw"),
        ))
    if not rows:
        raise ValidationError("Please enter at least one sampling data point.")

    harvest.samplings.all().delete()
    HarvestSampling.objects.bulk_create(rows)
    harvest.crate_size = crate_size
    harvest.save(update_fields=["crate_size"])
    audit.log_action(AuditLog.UPDATE, "harvest_records", harvest.pk, user=user, company=harvest.cage.company,
                     new={"crate_size": crate_size, "samples": [(r.size, r.quantity, r.abw) for r in rows]})
    return list(harvest.samplings.all())


def harvest_for_cage(cage: Cage):
    return HarvestRecord.objects.filter(cage=cage).prefetch_related("samplings").order_by("-harvest_date").first()
