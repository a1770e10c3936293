from __future__ import annotations

import csv
import io
import logging
import random
from dataclasses import dataclass, field
from datetime import date as date_cls, datetime
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from django.utils.dateparse import parse_date
from openpyxl import load_workbook

from aquaculture.models import AuditLog, BiweeklyRecord, BiweeklySampling, Cage, DailyRecord, HarvestRecord
from aquaculture.services import audit
from aquaculture.services.cages import get_cage_by_name
from aquaculture.services.metrics import abw as compute_abw, biomass_kg
from aquaculture.utils.jsonsafe import snapshot
from feed_inventory.models import FeedType
from feed_inventory.stock import record_usage

logger = logging.getLogger(__name__)

DAILY_COLUMNS = ["cage", "date", "feed_amount", "feed_type", "feed_price", "mortality", "notes"]


def _decimal(value, field_name, required=False):
    if value in (None, ""):
        if required:
            raise ValidationError({field_name: "This field is required."})
        return None
    try:
        return Decimal(str(value).strip().replace(",", ""))
    except (InvalidOperation, ValueError):
        raise ValidationError({field_name: f"'{value}' is not a number."})


def coerce_date(value, field_name="date"):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date_cls):
        return value
    parsed = parse_date(str(value).strip()) if value else None
    if parsed is None:
        raise ValidationError({field_name: f"'{value}' is not a valid date (YYYY-MM-DD)."})
    return parsed


# ----- daily feeding -----
@transaction.atomic
def create_daily_record(
    cage: Cage,
    *,
    date,
    feed_amount,
    user,
    feed_type=None,
    feed_price=None,
    feed_cost=None,
    mortality=0,
    notes="",
) -> DailyRecord:
    """Log one day of feeding and mortality for a cage.

    Posts feed usage to the stock ledger when a feed type is given and
    takes mortality off the cage's current count.
    """
    if cage is None:
        raise ValidationError({"cage": "Cage is required."})
    date = coerce_date(date)
    feed_amount = _decimal(feed_amount, "feed_amount", required=True)
    if feed_amount <= 0:
        raise ValidationError({"feed_amount": "Feed amount must be greater than zero."})
    mortality = int(mortality or 0)
    if mortality < 0:
        raise ValidationError({"mortality": "Mortality cannot be negative."})

    cage = Cage.objects.select_for_update().get(pk=cage.pk)
    if cage.status not in Cage.RECORDABLE_STATUSES:
        raise ValidationError(f"Cage {cage.name} is {cage.get_status_display().lower()}; daily records need an active cage.")
    if cage.stocking_date and date < cage.stocking_date:
        raise ValidationError(
            {"date": f"Cannot enter data before stocking date ({cage.stocking_date:%Y-%m-%d})."}
        )
    if date > timezone.localdate():
        raise ValidationError({"date": "Cannot enter data for a future date."})
    if DailyRecord.objects.filter(cage=cage, date=date).exists():
        raise ValidationError(
            {"date": "A record already exists for this date. Please edit the existing record instead."}
        )
    if feed_type is not None and feed_type.company_id != cage.company_id:
        raise ValidationError({"feed_type": "Unknown feed type."})

    feed_price = _decimal(feed_price, "feed_price")
    if feed_price is None and feed_type is not None:
        feed_price = feed_type.price_per_kg

    record = DailyRecord(
        cage=cage,
        date=date,
        feed_amount=feed_amount,
        feed_type=feed_type,
        feed_price=feed_price,
        feed_cost=_decimal(feed_cost, "feed_cost"),
        mortality=mortality,
        notes=notes or "",
        created_by=user,
    )
    record.full_clean(exclude=["feed_type"])
    record.save()

    if feed_type is not None:
        record_usage(feed_type, quantity=feed_amount, cage=cage, date=date, daily_record=record, user=user)

    if mortality and cage.current_count is not None:
        cage.current_count = max(cage.current_count - mortality, 0)
        cage.save(update_fields=["current_count", "updated_at"])

    audit.log_action(AuditLog.CREATE, "daily_records", record.pk, user=user, company=cage.company,
                     new=snapshot(record))
    return record


def daily_records_for_cage(cage, limit=100):
    return list(DailyRecord.objects.filter(cage=cage).select_related("feed_type").order_by("-date")[:limit])


# ----- biweekly sampling -----
def generate_batch_code(on=None) -> str:
    on = on or timezone.localdate()
    return f"BW{on:%y%m%d}{random.randint(0, 999):03d}"


@transaction.atomic
def create_biweekly_record(cage: Cage, *, date, samplings, user, batch_code=None, notes="") -> BiweeklyRecord:
    """Store a growth sampling; ABW is total sampled weight over total sampled fish.

    ``samplings`` is an iterable of ``{"fish_count": n, "total_weight": g}``.
    """
    if cage is None:
        raise ValidationError({"cage": "Cage is required."})
    date = coerce_date(date)
    rows = []
    for raw in samplings or []:
        count = int(raw.get("fish_count") or 0)
        weight = _decimal(raw.get("total_weight"), "total_weight") or Decimal("0")
        if count > 0 and weight > 0:
            rows.append((count, weight))
    total_count = sum(c for c, _ in rows)
    total_weight = sum((w for _, w in rows), Decimal("0"))
    if total_count == 0 or total_weight == 0:
        raise ValidationError("Please enter valid fish count and weight data.")

    cage = Cage.objects.select_for_update().get(pk=cage.pk)
    if cage.stocking_date and date < cage.stocking_date:
        raise ValidationError(
            {"date": f"Cannot enter data before stocking date ({cage.stocking_date:%Y-%m-%d})."}
        )
    stocking = cage.current_stocking()
    avg = Decimal(str(compute_abw(total_weight, total_count)))

    live = cage.current_count
    if live is None and cage.initial_count is not None:
        dead = DailyRecord.objects.filter(cage=cage).aggregate(m=Sum("mortality"))["m"] or 0
        live = max(cage.initial_count - dead, 0)
    estimated = biomass_kg(avg, live)

    record = BiweeklyRecord.objects.create(
        cage=cage,
        stocking=stocking,
        date=date,
        batch_code=batch_code or generate_batch_code(date),
        average_body_weight=avg,
        total_fish_count=total_count,
        total_weight=total_weight,
        estimated_biomass=None if estimated is None else Decimal(str(round(estimated, 3))),
        notes=notes or "",
        created_by=user,
    )
    BiweeklySampling.objects.bulk_create([
        BiweeklySampling(
            record=record,
            sampling_number=i,
            fish_count=count,
            total_weight=weight,
            average_body_weight=Decimal(str(compute_abw(weight, count))),
        )
        for i, (count, weight) in enumerate(rows, start=1)
    ])

    if record.estimated_biomass is not None:
        cage.current_weight = record.estimated_biomass
        cage.save(update_fields=["current_weight", "updated_at"])

    audit.log_action(AuditLog.CREATE, "biweekly_records", record.pk, user=user, company=cage.company,
                     new=snapshot(record))
    return record


def biweekly_records_for_cage(cage, limit=100):
    return list(
        BiweeklyRecord.objects.filter(cage=cage).prefetch_related("samplings").order_by("-date", "-id")[:limit]
    )


# ----- bulk daily upload -----
@dataclass
class ImportResult:
    created: int = 0
    errors: list = field(default_factory=list)


def _normalise_header(value):
    return str(value or "").strip().lower().replace(" ", "_")


def parse_daily_rows(fileobj, filename=""):
    """Read daily rows from a CSV or XLSX upload into dicts keyed by DAILY_COLUMNS."""
    name = (filename or getattr(fileobj, "name", "") or "").lower()
    if name.endswith((".xlsx", ".xlsm")):
        wb = load_workbook(fileobj, read_only=True, data_only=True)
        ws = wb.active
        it = ws.iter_rows(values_only=True)
        headers = [_normalise_header(h) for h in next(it, [])]
        rows = [dict(zip(headers, values)) for values in it if any(v not in (None, "") for v in values)]
        wb.close()
    else:
        raw = fileobj.read()
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8-sig")
        reader = csv.DictReader(io.StringIO(raw))
        reader.fieldnames = [_normalise_header(h) for h in reader.fieldnames or []]
        rows = [r for r in reader if any((v or "").strip() for v in r.values() if isinstance(v, str))]
    missing = {"cage", "date", "feed_amount"} - set(rows[0].keys() if rows else DAILY_COLUMNS)
    if missing:
        raise ValidationError(f"Missing required column(s): {', '.join(sorted(missing))}.")
    return [{col: row.get(col) for col in DAILY_COLUMNS} for row in rows]


def import_daily_rows(rows, company, user, dry_run=False) -> ImportResult:
    """Create daily records row by row; bad rows are reported, good rows kept."""
    result = ImportResult()
    for line, row in enumerate(rows, start=2):
        cage = get_cage_by_name(company, str(row.get("cage") or ""))
        if cage is None:
            result.errors.append({"row": line, "error": f"Unknown cage '{row.get('cage')}'."})
            continue
        feed_type = None
        if row.get("feed_type"):
            feed_type = FeedType.objects.filter(company=company, name__iexact=str(row["feed_type"]).strip()).first()
            if feed_type is None:
                result.errors.append({"row": line, "error": f"Unknown feed type '{row['feed_type']}'."})
                continue
        try:
            with transaction.atomic():
                create_daily_record(
                    cage,
                    date=row.get("date"),
                    feed_amount=row.get("feed_amount"),
                    feed_type=feed_type,
                    feed_price=row.get("feed_price"),
                    mortality=row.get("mortality") or 0,
                    notes=row.get("notes") or "",
                    user=user,
                )
                if dry_run:
                    transaction.set_rollback(True)
            result.created += 1
        except ValidationError as exc:
            result.errors.append({"row": line, "error": "; ".join(exc.messages)})
    logger.info("Daily import for %s: %s created, %s errors", company, result.created, len(result.errors))
    return result


# ----- exports -----
EXPORT_COLUMNS = {
    "daily": ["cage", "date", "feed_amount", "feed_type", "feed_price", "feed_cost", "mortality", "notes"],
    "biweekly": ["cage", "date", "batch_code", "average_body_weight", "total_fish_count", "total_weight",
                 "estimated_biomass"],
    "harvest": ["cage", "harvest_date", "total_weight", "average_body_weight", "estimated_count", "fcr",
                "notes"],
}


def export_rows(kind, company, cage=None, start=None, end=None):
    if kind == "daily":
        qs, date_field = DailyRecord.objects.select_related("cage", "feed_type"), "date"
    elif kind == "biweekly":
        qs, date_field = BiweeklyRecord.objects.select_related("cage"), "date"
    elif kind == "harvest":
        qs, date_field = HarvestRecord.objects.select_related("cage"), "harvest_date"
    else:
        raise ValidationError(f"Unknown export '{kind}'.")
    qs = qs.filter(cage__company=company)
    if cage is not None:
        qs = qs.filter(cage=cage)
    if start:
        qs = qs.filter(**{f"{date_field}__gte": start})
    if end:
        qs = qs.filter(**{f"{date_field}__lte": end})
    for obj in qs.order_by("cage__name", date_field):
        yield [_export_value(obj, col) for col in EXPORT_COLUMNS[kind]]


def _export_value(obj, col):
    value = getattr(obj, col)
    if col in ("cage", "feed_type"):
        return "" if value is None else value.name
    if value is None:
        return ""
    return value.isoformat() if hasattr(value, "isoformat") else value
