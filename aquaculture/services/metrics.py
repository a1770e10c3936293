"""Growth, feed and survival arithmetic for cages and dashboards.

Units: ABW in grams, biomass and feed in kg, rates in percent.
"""
from __future__ import annotations

import math
from collections import OrderedDict
from datetime import date
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, Sum
from django.utils import timezone

from aquaculture.models import BiweeklyRecord, Cage, DailyRecord, TopUp


def _f(value) -> float | None:
    if value is None:
        return None
    return float(value)


def _round(value, places):
    return None if value is None else round(value, places)


# ----- pure helpers -----
def abw(total_weight_g, total_count):
    """Average body weight (g) of a sample."""
    if not total_count or total_count <= 0 or total_weight_g is None:
        return None
    return round(float(total_weight_g) / float(total_count), 2)


def biomass_kg(abw_g, count):
    if abw_g is None or count is None:
        return None
    return float(abw_g) * float(count) / 1000.0


def fcr(total_feed_kg, biomass_gain_kg):
    """Feed consumed per kg of biomass gained; None when nothing was gained."""
    if total_feed_kg is None or biomass_gain_kg is None or biomass_gain_kg <= 0:
        return None
    return round(float(total_feed_kg) / float(biomass_gain_kg), 2)


def survival_rate(initial_count, mortality):
    if not initial_count:
        return None
    return round((initial_count - (mortality or 0)) / initial_count * 100, 1)


def mortality_rate(initial_count, mortality, places=1):
    if not initial_count:
        return 0
    return round((mortality or 0) / initial_count * 100, places)


def growth_rate(initial, current):
    if not initial or current is None:
        return None
    return round((float(current) - float(initial)) / float(initial) * 100, 2)


def days_of_culture(stocking_date: date | None, on: date | None = None):
    if not stocking_date:
        return None
    on = on or timezone.localdate()
    return max((on - stocking_date).days, 0)


def avg_daily_growth(first_abw, last_abw, days):
    if first_abw is None or last_abw is None or not days or days <= 0:
        return None
    return (float(last_abw) - float(first_abw)) / days


def days_to_harvest(current_abw, daily_growth, target=None):
    target = settings.TARGET_HARVEST_ABW_G if target is None else target
    if current_abw is None:
        return None
    if float(current_abw) >= target:
        return 0
    if not daily_growth or daily_growth <= 0:
        return None
    return math.ceil((target - float(current_abw)) / daily_growth)


def feed_cost_per_kg(total_cost, total_feed):
    if not total_feed:
        return None
    return round(float(total_cost or 0) / float(total_feed), 2)


# ----- cage level -----
def _cycle_records(cage):
    qs = DailyRecord.objects.filter(cage=cage)
    if cage.stocking_date:
        qs = qs.filter(date__gte=cage.stocking_date)
    return qs


def _cycle_samplings(cage):
    qs = BiweeklyRecord.objects.filter(cage=cage)
    if cage.stocking_date:
        qs = qs.filter(date__gte=cage.stocking_date)
    return qs


def stocked_totals(cage):
    """Fish and biomass put into the cage this cycle (stocking plus approved top-ups)."""
    count = cage.initial_count or 0
    weight = _f(cage.initial_weight) or 0.0
    stocking = cage.current_stocking()
    if stocking is not None:
        agg = TopUp.objects.filter(stocking=stocking, status=TopUp.STATUS_APPROVED).aggregate(
            n=Sum("fish_count"), kg=Sum("biomass")
        )
        count += agg["n"] or 0
        weight += _f(agg["kg"]) or 0.0
    return count, weight


def cage_metrics(cage: Cage, on: date | None = None):
    agg = _cycle_records(cage).aggregate(
        feed=Sum("feed_amount"), cost=Sum("feed_cost"), mortality=Sum("mortality")
    )
    total_feed = _f(agg["feed"]) or 0.0
    total_cost = _f(agg["cost"]) or 0.0
    total_mortality = agg["mortality"] or 0

    stocked_count, stocked_weight = stocked_totals(cage)
    live_count = max(stocked_count - total_mortality, 0)

    samplings = list(_cycle_samplings(cage).order_by("date").values_list("date", "average_body_weight"))
    latest_abw = _f(samplings[-1][1]) if samplings else _f(cage.initial_abw)
    current_biomass = biomass_kg(latest_abw, live_count)

    gain = None
    if current_biomass is not None and stocked_weight:
        gain = current_biomass - stocked_weight

    daily_growth = None
    if samplings and cage.stocking_date and cage.initial_abw is not None:
        days = (samplings[-1][0] - cage.stocking_date).days
        daily_growth = avg_daily_growth(cage.initial_abw, samplings[-1][1], days)

    return {
        "cage_id": cage.pk,
        "cage_name": cage.name,
        "total_feed": round(total_feed, 1),
        "total_cost": round(total_cost, 2),
        "total_mortality": total_mortality,
        "stocked_count": stocked_count,
        "live_count": live_count,
        "latest_abw": latest_abw,
        "current_biomass": _round(current_biomass, 2),
        "fcr": fcr(total_feed, gain),
        "survival_rate": survival_rate(stocked_count, total_mortality),
        "mortality_rate": mortality_rate(stocked_count, total_mortality, places=2),
        "growth_rate": growth_rate(cage.initial_abw, latest_abw),
        "avg_daily_growth": _round(daily_growth, 2),
        "days_to_harvest": days_to_harvest(latest_abw, daily_growth),
        "doc": days_of_culture(cage.stocking_date, on),
        "feed_cost_per_kg": feed_cost_per_kg(total_cost, total_feed),
    }


def weekly_feed(cage: Cage):
    """Feed, cost and mortality grouped as "Week n" counted from stocking."""
    records = list(_cycle_records(cage).order_by("date"))
    if not records:
        return []
    start = cage.stocking_date or records[0].date
    weeks = OrderedDict()
    for r in records:
        n = (r.date - start).days // 7 + 1
        row = weeks.setdefault(n, {"week": f"Week {n}", "feed": 0.0, "cost": 0.0, "mortality": 0})
        row["feed"] += _f(r.feed_amount) or 0.0
        row["cost"] += _f(r.feed_cost) or 0.0
        row["mortality"] += r.mortality or 0
    for row in weeks.values():
        row["feed"] = round(row["feed"], 2)
        row["cost"] = round(row["cost"], 2)
    return list(weeks.values())


def calculate_growth_metrics(cage: Cage):
    """Growth % by weight and mortality % by count since stocking, top-ups included."""
    stocked_count, stocked_weight = stocked_totals(cage)
    mort = None
    if stocked_count and cage.current_count is not None:
        mort = round((stocked_count - cage.current_count) / stocked_count * 100, 2)
    return {
        "growth_rate": growth_rate(stocked_weight or cage.initial_weight, cage.current_weight),
        "mortality_rate": mort,
    }


# ----- company analytics -----
def summary(company):
    cages = Cage.objects.filter(company=company)
    counts = dict(cages.order_by().values_list("status").annotate(n=Count("id")))
    records = DailyRecord.objects.filter(cage__company=company)
    agg = records.aggregate(feed=Sum("feed_amount"), cost=Sum("feed_cost"), mortality=Sum("mortality"))
    total_initial = sum(stocked_totals(cage)[0] for cage in cages)
    total_mortality = agg["mortality"] or 0
    return {
        "total_cages": cages.count(),
        "status_counts": {status: counts.get(status, 0) for status, _ in Cage.STATUS_CHOICES},
        "active_cages": counts.get(Cage.ACTIVE, 0),
        "harvested_cages": counts.get(Cage.HARVESTED, 0),
        "maintenance_cages": counts.get(Cage.MAINTENANCE, 0),
        "fallow_cages": counts.get(Cage.FALLOW, 0),
        "total_feed": round(_f(agg["feed"]) or 0.0, 1),
        "total_feed_cost": round(_f(agg["cost"]) or 0.0, 2),
        "total_mortality": total_mortality,
        "mortality_rate": mortality_rate(total_initial, total_mortality),
    }


def growth_series(company, cage_id=None):
    qs = BiweeklyRecord.objects.filter(cage__company=company).select_related("cage").order_by("date", "id")
    if cage_id:
        qs = qs.filter(cage_id=cage_id)
    return [
        {
            "id": r.pk,
            "date": r.date.isoformat(),
            "abw": _f(r.average_body_weight),
            "cage_id": r.cage_id,
            "cage_name": r.cage.name,
        }
        for r in qs
    ]


FEED_PERIODS = ("daily", "weekly", "monthly")


def _period_key(d: date, period: str) -> str:
    if period == "daily":
        return d.isoformat()
    if period == "monthly":
        return f"{d.year}-{d.month:02d}"
    iso_year, iso_week, _ = d.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def feed_series(company, period="weekly", cage_id=None):
    if period not in FEED_PERIODS:
        raise ValueError(f"Unknown period '{period}'")
    qs = DailyRecord.objects.filter(cage__company=company).select_related("cage").order_by("date")
    if cage_id:
        qs = qs.filter(cage_id=cage_id)
    grouped = OrderedDict()
    for r in qs:
        key = _period_key(r.date, period)
        row = grouped.setdefault(key, {"period": key, "total_feed": 0.0, "total_cost": 0.0, "cages": {}})
        feed = _f(r.feed_amount) or 0.0
        cost = _f(r.feed_cost) or 0.0
        row["total_feed"] += feed
        row["total_cost"] += cost
        per_cage = row["cages"].setdefault(r.cage.name, {"feed": 0.0, "cost": 0.0})
        per_cage["feed"] += feed
        per_cage["cost"] += cost
    for row in grouped.values():
        row["total_feed"] = round(row["total_feed"], 2)
        row["total_cost"] = round(row["total_cost"], 2)
    return sorted(grouped.values(), key=lambda row: row["period"])


def biomass_series(company):
    rows = []
    for cage in Cage.objects.filter(company=company, status=Cage.ACTIVE).order_by("name"):
        mortality = _cycle_records(cage).aggregate(m=Sum("mortality"))["m"] or 0
        latest = _cycle_samplings(cage).order_by("-date", "-id").first()
        current_abw = _f(latest.average_body_weight) if latest else _f(cage.initial_abw)
        initial, _ = stocked_totals(cage)
        current_count = max(initial - mortality, 0)
        rows.append({
            "cage_id": cage.pk,
            "cage_name": cage.name,
            "initial_count": initial,
            "current_count": current_count,
            "abw": current_abw,
            "biomass": _round(biomass_kg(current_abw, current_count), 2),
            "survival_rate": survival_rate(initial, mortality),
        })
    return rows


def dashboard_kpis(company):
    """KPI cards for the farm dashboard."""
    active = list(Cage.objects.filter(company=company, status=Cage.ACTIVE))
    per_cage = [cage_metrics(c) for c in active]

    total_biomass = sum(m["current_biomass"] or 0 for m in per_cage)
    fcrs = [m["fcr"] for m in per_cage if m["fcr"] is not None]
    growths = [m["avg_daily_growth"] for m in per_cage if m["avg_daily_growth"] is not None]
    harvest_days = [m["days_to_harvest"] for m in per_cage if m["days_to_harvest"] is not None]
    stocked = sum(m["stocked_count"] for m in per_cage)
    dead = sum(m["total_mortality"] for m in per_cage)
    feed = sum(m["total_feed"] for m in per_cage)
    cost = sum(m["total_cost"] for m in per_cage)

    cards = [
        {"key": "active_cages", "label": "Active Cages", "value": len(active), "unit": "cages"},
        {"key": "total_biomass", "label": "Total Biomass", "value": round(total_biomass, 1), "unit": "kg"},
        {
            "key": "average_fcr",
            "label": "Average FCR",
            "value": round(sum(fcrs) / len(fcrs), 2) if fcrs else None,
            "unit": "",
        },
        {"key": "mortality_rate", "label": "Mortality Rate", "value": mortality_rate(stocked, dead), "unit": "%"},
        {"key": "survival_rate", "label": "Survival Rate", "value": survival_rate(stocked, dead), "unit": "%"},
        {
            "key": "avg_daily_growth",
            "label": "Avg Daily Growth",
            "value": round(sum(growths) / len(growths), 1) if growths else None,
            "unit": "g/day",
        },
        {
            "key": "days_to_harvest",
            "label": "Days to Harvest",
            "value": min(harvest_days) if harvest_days else None,
            "unit": "days",
            "note": f"Target {settings.TARGET_HARVEST_ABW_G:g} g",
        },
        {
            "key": "feed_cost_per_kg",
            "label": "Feed Cost / kg",
            "value": feed_cost_per_kg(cost, feed),
            "unit": settings.CURRENCY_CODE,
        },
    ]
    return {"cards": cards, "cages": per_cage}


