from __future__ import annotations

import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.urls import reverse
from django.utils import timezone

from aquaculture.exceptions import AlreadyProcessed
from aquaculture.models import AuditLog, BiweeklyRecord, Cage, Notification, Stocking, TopUp
from aquaculture.services import audit, notifications
from aquaculture.utils.jsonsafe import snapshot

logger = logging.getLogger(__name__)

STOCKING = "stocking"
TOPUP = "topup"
RECORD_MODELS = {STOCKING: Stocking, TOPUP: TopUp}


def initial_biomass(fish_count, abw_g) -> Decimal:
    """kg = count * ABW(g) / 1000."""
    return (Decimal(str(abw_g)) * Decimal(fish_count) / Decimal(1000)).quantize(Decimal("0.001"))


def next_batch_number(cage: Cage, stocking_date) -> str:
    """``<cage>/<n><yy>`` where n counts this cage's stockings in that year."""
    n = Stocking.objects.filter(cage=cage, stocking_date__year=stocking_date.year).count() + 1
    return f"{cage.name}/{n}{stocking_date:%y}"


def _require_positive(**values):
    errors = {}
    for field, value in values.items():
        if value is None or Decimal(str(value)) <= 0:
            errors[field] = "Must be greater than zero."
    if errors:
        raise ValidationError(errors)


@transaction.atomic
def create_stocking(
    cage: Cage,
    *,
    stocking_date,
    fish_count: int,
    initial_abw,
    user,
    batch_number: str | None = None,
    source_location: str = "",
    source_cage: str = "",
    transfer_supervisor: str = "",
    sampling_supervisor: str = "",
    notes: str = "",
) -> Stocking:
    """Record a pending stocking and mark the cage active."""
    cage = Cage.objects.select_for_update().get(pk=cage.pk)
    if not cage.is_available_for_stocking:
        raise ValidationError(
            {"cage": f"Cage {cage.name} is {cage.get_status_display().lower()} and cannot be stocked."}
        )
    _require_positive(fish_count=fish_count, initial_abw=initial_abw)

    stocking = Stocking.objects.create(
        company=cage.company,
        cage=cage,
        batch_number=batch_number or next_batch_number(cage, stocking_date),
        stocking_date=stocking_date,
        fish_count=fish_count,
        initial_abw=Decimal(str(initial_abw)),
        initial_biomass=initial_biomass(fish_count, initial_abw),
        source_location=source_location,
        source_cage=source_cage,
        transfer_supervisor=transfer_supervisor,
        sampling_supervisor=sampling_supervisor,
        notes=notes,
        created_by=user,
    )
    cage.status = Cage.ACTIVE
    cage.save(update_fields=["status", "updated_at"])

    audit.log_action(AuditLog.CREATE, "stocking_history", stocking.pk, user=user,
                     company=cage.company, new=snapshot(stocking))
    notifications.notify_company_admins(
        cage.company,
        "Stocking awaiting approval",
        f"{stocking.batch_number}: {fish_count} fish into {cage.name}.",
        link=reverse("approvals"),
        exclude=user,
    )
    logger.info("Stocking %s created for cage %s by %s", stocking.batch_number, cage.name, user)
    return stocking


@transaction.atomic
def create_topup(
    stocking: Stocking,
    *,
    topup_date,
    fish_count: int,
    abw,
    user,
    source_location: str = "",
    transfer_supervisor: str = "",
    notes: str = "",
) -> TopUp:
    if stocking is None or stocking.deleted_at is not None:
        raise ValidationError("Stocking record not found.")
    if stocking.status != Stocking.STATUS_APPROVED:
        raise ValidationError("Only approved stockings can be topped up.")
    if stocking.cage.status != Cage.ACTIVE:
        raise ValidationError("Cannot top up a cage that is not active.")
    _require_positive(fish_count=fish_count, abw=abw)

    topup = TopUp.objects.create(
        company=stocking.company,
        stocking=stocking,
        topup_date=topup_date,
        fish_count=fish_count,
        abw=Decimal(str(abw)),
        biomass=initial_biomass(fish_count, abw),
        source_location=source_location,
        transfer_supervisor=transfer_supervisor,
        notes=notes,
        created_by=user,
    )
    audit.log_action(AuditLog.CREATE, "topup_history", topup.pk, user=user,
                     company=stocking.company, new=snapshot(topup))
    notifications.notify_company_admins(
        stocking.company,
        "Top-up awaiting approval",
        f"{fish_count} fish for {stocking.batch_number} ({stocking.cage.name}).",
        link=reverse("approvals"),
        exclude=user,
    )
    return topup


def _get_for_update(kind: str, record_id, company=None):
    model = RECORD_MODELS.get(kind)
    if model is None:
        raise ValidationError(f"Unknown record type '{kind}'.")
    qs = model.objects.select_for_update()
    if company is not None:
        qs = qs.filter(company=company)
    try:
        return qs.get(pk=record_id)
    except model.DoesNotExist:
        raise ValidationError(f"{model._meta.verbose_name.capitalize()} not found.")


def _apply_stocking(stocking: Stocking):
    cage = Cage.objects.select_for_update().get(pk=stocking.cage_id)
    cage.stocking_date = stocking.stocking_date
    cage.initial_count = stocking.fish_count
    cage.current_count = stocking.fish_count
    cage.initial_abw = stocking.initial_abw
    cage.initial_weight = stocking.initial_biomass
    cage.current_weight = stocking.initial_biomass
    cage.growth_rate = None
    cage.mortality_rate = None
    cage.status = Cage.ACTIVE
    cage.save()


def _apply_topup(topup: TopUp):
    cage = Cage.objects.select_for_update().get(pk=topup.stocking.cage_id)
    cage.current_count = (cage.current_count or 0) + topup.fish_count
    cage.current_weight = (cage.current_weight or Decimal("0")) + topup.biomass
    cage.save(update_fields=["current_count", "current_weight", "updated_at"])

    latest = (
        BiweeklyRecord.objects.select_for_update()
        .filter(stocking=topup.stocking)
        .order_by("-date", "-id")
        .first()
    )
    if latest is not None:
        latest.estimated_biomass = (latest.estimated_biomass or Decimal("0")) + topup.biomass
        latest.save(update_fields=["estimated_biomass"])


@transaction.atomic
def approve_record(kind: str, record_id, actor, company=None):
    """Approve a pending stocking or top-up.

    - Raises AlreadyProcessed unless the record is pending
    - Stocking: seeds the cage's cycle fields from the batch
    - Top-up: adds fish to the cage and biomass to the latest sampling
    """
    record = _get_for_update(kind, record_id, company)
    if not record.is_pending:
        raise AlreadyProcessed(f"This {kind} was already {record.get_status_display().lower()}.")

    before = snapshot(record)
    record.status = record.STATUS_APPROVED
    record.approved_by = actor
    record.approved_at = timezone.now()
    record.save(update_fields=["status", "approved_by", "approved_at"])

    if kind == STOCKING:
        _apply_stocking(record)
    else:
        _apply_topup(record)

    table = record._meta.db_table
    audit.log_action(AuditLog.APPROVE, table, record.pk, user=actor, company=record.company,
                     previous=before, new=snapshot(record))
    notifications.notify(
        record.created_by,
        f"{kind.capitalize()} approved",
        f"Your {kind} record #{record.pk} was approved.",
        type=Notification.SUCCESS,
    )
    logger.info("%s #%s approved by %s", kind, record.pk, actor)
    return record


@transaction.atomic
def reject_record(kind: str, record_id, actor, reason: str, company=None):
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError({"reason": "A reason is required to reject."})
    record = _get_for_update(kind, record_id, company)
    if not record.is_pending:
        raise AlreadyProcessed(f"This {kind} was already {record.get_status_display().lower()}.")

    before = snapshot(record)
    record.status = record.STATUS_REJECTED
    record.approved_by = actor
    record.approved_at = timezone.now()
    record.rejection_reason = reason
    record.save(update_fields=["status", "approved_by", "approved_at", "rejection_reason"])

    if kind == STOCKING:
        cage = Cage.objects.select_for_update().get(pk=record.cage_id)
        cage.status = Cage.EMPTY
        cage.save(update_fields=["status", "updated_at"])

    audit.log_action(AuditLog.REJECT, record._meta.db_table, record.pk, user=actor,
                     company=record.company, previous=before, new=snapshot(record))
    notifications.notify(
        record.created_by,
        f"{kind.capitalize()} rejected",
        f"Your {kind} record #{record.pk} was rejected: {reason}",
        type=Notification.ERROR,
    )
    logger.info("%s #%s rejected by %s", kind, record.pk, actor)
    return record


def _row(kind, record, cage, batch_number, date, abw, biomass):
    return {
        "type": kind,
        "id": record.pk,
        "date": date,
        "batch_number": batch_number,
        "cage_id": cage.pk,
        "cage_name": cage.name,
        "fish_count": record.fish_count,
        "abw": abw,
        "biomass": biomass,
        "created_at": record.created_at,
        "created_by": getattr(record.created_by, "username", None),
        "notes": record.notes,
    }


def pending_approvals(company):
    """Pending stockings and top-ups as uniform rows, newest first."""
    stockings = [
        _row(STOCKING, s, s.cage, s.batch_number, s.stocking_date, s.initial_abw, s.initial_biomass)
        for s in Stocking.objects.filter(company=company, status=Stocking.STATUS_PENDING, deleted_at__isnull=True)
        .select_related("cage", "created_by")
    ]
    topups = [
        _row(TOPUP, t, t.stocking.cage, t.stocking.batch_number, t.topup_date, t.abw, t.biomass)
        for t in TopUp.objects.filter(company=company, status=TopUp.STATUS_PENDING)
        .select_related("stocking__cage", "created_by")
    ]
    combined = sorted(stockings + topups, key=lambda r: r["created_at"], reverse=True)
    return {"stockings": stockings, "topups": topups, "all": combined}


def get_all_stockings(company, include_deleted=False):
    qs = Stocking.objects.filter(company=company).select_related("cage")
    if not include_deleted:
        qs = qs.filter(deleted_at__isnull=True)
    return qs.order_by("-stocking_date", "-created_at")


def get_active_stockings(company):
    return get_all_stockings(company).filter(status=Stocking.STATUS_APPROVED)


def get_stocking(company, stocking_id):
    return (
        Stocking.objects.select_related("cage")
        .prefetch_related("topups")
        .get(company=company, pk=stocking_id, deleted_at__isnull=True)
    )


@transaction.atomic
def soft_delete_stocking(stocking: Stocking, actor):
    if stocking.deleted_at is not None:
        raise AlreadyProcessed("Stocking was already deleted.")
    cage = Cage.objects.select_for_update().get(pk=stocking.cage_id)
    releases_cage = stocking.is_pending or cage.current_stocking() == stocking
    stocking.deleted_at = timezone.now()
    stocking.save(update_fields=["deleted_at"])

    # deleting the live or pending batch frees the cage
    if releases_cage and cage.status == Cage.ACTIVE:
        cage.status = Cage.EMPTY
        cage.save(update_fields=["status", "updated_at"])
    audit.log_action(AuditLog.DELETE, "stocking_history", stocking.pk, user=actor, company=stocking.company)
    return stocking
