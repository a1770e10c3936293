import io
from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone
from openpyxl import Workbook

from aquaculture.exceptions import InsufficientStock
from aquaculture.models import BiweeklySampling, Cage, DailyRecord
from aquaculture.services import records as record_service
from feed_inventory.models import FeedInventoryTransaction, FeedType

pytestmark = pytest.mark.django_db


def _daily(cage, user, **kwargs):
    params = {"date": timezone.localdate() - timedelta(days=1), "feed_amount": Decimal("12.5")}
    params.update(kwargs)
    return record_service.create_daily_record(cage, user=user, **params)


# ----- daily records -----
def test_daily_record_posts_feed_usage_and_mortality(stocked_cage, staff, feed_type):
    record = _daily(stocked_cage, staff, feed_type=feed_type, mortality=7)

    assert record.feed_price == Decimal("12.50")
    assert record.feed_cost == Decimal("156.25")
    feed_type.refresh_from_db()
    assert feed_type.current_stock == Decimal("487.50")
    txn = FeedInventoryTransaction.objects.get(daily_record=record)
    assert txn.transaction_type == FeedInventoryTransaction.USAGE
    assert txn.quantity == Decimal("-12.50")
    assert txn.cage == stocked_cage
    stocked_cage.refresh_from_db()
    assert stocked_cage.current_count == 993


def test_explicit_price_wins_over_feed_type_price(stocked_cage, staff, feed_type):
    record = _daily(stocked_cage, staff, feed_type=feed_type, feed_price="10")
    assert record.feed_cost == Decimal("125.00")


def test_daily_record_accepts_iso_string_dates(stocked_cage, staff):
    day = timezone.localdate() - timedelta(days=3)
    record = _daily(stocked_cage, staff, date=day.isoformat())
    assert record.date == day


def test_one_daily_record_per_cage_per_day(stocked_cage, staff):
    _daily(stocked_cage, staff)
    with pytest.raises(ValidationError) as exc:
        _daily(stocked_cage, staff)
    assert "date" in exc.value.message_dict
    assert DailyRecord.objects.count() == 1


@pytest.mark.parametrize("kwargs, field", [
    ({"feed_amount": Decimal("0")}, "feed_amount"),
    ({"feed_amount": "abc"}, "feed_amount"),
    ({"mortality": -1}, "mortality"),
    ({"date": "31/12/2024"}, "date"),
])
def test_daily_record_field_validation(stocked_cage, staff, kwargs, field):
    with pytest.raises(ValidationError) as exc:
        _daily(stocked_cage, staff, **kwargs)
    assert field in exc.value.message_dict


def test_no_future_or_pre_stocking_records(stocked_cage, staff):
    with pytest.raises(ValidationError):
        _daily(stocked_cage, staff, date=timezone.localdate() + timedelta(days=1))
    with pytest.raises(ValidationError):
        _daily(stocked_cage, staff, date=stocked_cage.stocking_date - timedelta(days=1))


def test_daily_record_needs_active_cage(cage, staff):
    with pytest.raises(ValidationError):
        _daily(cage, staff)


def test_insufficient_feed_stock_rolls_back(stocked_cage, staff, feed_type):
    with pytest.raises(InsufficientStock):
        _daily(stocked_cage, staff, feed_type=feed_type, feed_amount=Decimal("900"), mortality=5)
    assert not DailyRecord.objects.exists()
    stocked_cage.refresh_from_db()
    assert stocked_cage.current_count == 1000


def test_feed_type_from_another_company_is_rejected(stocked_cage, staff, other_company):
    foreign = FeedType.objects.create(company=other_company, name="Starter", current_stock=Decimal("50"))
    with pytest.raises(ValidationError) as exc:
        _daily(stocked_cage, staff, feed_type=foreign)
    assert "feed_type" in exc.value.message_dict


# ----- biweekly sampling -----
def test_biweekly_record_averages_samples(stocked_cage, staff):
    record = record_service.create_biweekly_record(
        stocked_cage,
        date=timezone.localdate(),
        samplings=[
            {"fish_count": 20, "total_weight": Decimal("1600")},
            {"fish_count": 30, "total_weight": Decimal("2400")},
            {"fish_count": None, "total_weight": None},
        ],
        user=staff,
    )
    assert record.average_body_weight == Decimal("80.00")
    assert record.total_fish_count == 50
    assert record.estimated_biomass == Decimal("80.000")
    assert record.batch_code.startswith("BW")
    assert record.stocking == stocked_cage.current_stocking()
    assert BiweeklySampling.objects.filter(record=record).count() == 2
    stocked_cage.refresh_from_db()
    assert stocked_cage.current_weight == Decimal("80.000")


def test_biweekly_record_needs_sample_data(stocked_cage, staff):
    with pytest.raises(ValidationError):
        record_service.create_biweekly_record(
            stocked_cage, date=timezone.localdate(), samplings=[{"fish_count": 0, "total_weight": 0}], user=staff
        )


def test_biweekly_batch_code_can_be_given(stocked_cage, staff):
    record = record_service.create_biweekly_record(
        stocked_cage, date=timezone.localdate(), samplings=[{"fish_count": 10, "total_weight": 500}],
        user=staff, batch_code="BW-MANUAL",
    )
    assert record.batch_code == "BW-MANUAL"


# ----- bulk upload -----
def _csv(text):
    return io.BytesIO(text.encode("utf-8"))


def test_parse_daily_rows_from_csv():
    rows = record_service.parse_daily_rows(
        _csv("Cage,Date,Feed Amount,Mortality\nC1,2024-05-01,10,2\n,,,\n"), "daily.csv"
    )
    assert rows == [{
        "cage": "C1", "date": "2024-05-01", "feed_amount": "10", "feed_type": None,
        "feed_price": None, "mortality": "2", "notes": None,
    }]


def test_parse_daily_rows_from_xlsx():
    wb = Workbook()
    ws = wb.active
    ws.append(["cage", "date", "feed_amount"])
    ws.append(["C1", "2024-05-01", 10])
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    rows = record_service.parse_daily_rows(buf, "daily.xlsx")
    assert rows[0]["cage"] == "C1"
    assert rows[0]["feed_amount"] == 10


def test_parse_daily_rows_requires_columns():
    with pytest.raises(ValidationError):
        record_service.parse_daily_rows(_csv("cage,date\nC1,2024-05-01\n"), "daily.csv")


def test_import_keeps_good_rows_and_reports_bad_ones(stocked_cage, company, staff, feed_type):
    day = (timezone.localdate() - timedelta(days=2)).isoformat()
    rows = [
        {"cage": "c1", "date": day, "feed_amount": "8", "feed_type": "grower 4mm", "mortality": "1"},
        {"cage": "C9", "date": day, "feed_amount": "8"},
        {"cage": "C1", "date": day, "feed_amount": "8"},
        {"cage": "C1", "date": day, "feed_amount": "8", "feed_type": "Unknown"},
    ]
    result = record_service.import_daily_rows(rows, company, staff)

    assert result.created == 1
    assert [e["row"] for e in result.errors] == [3, 4, 5]
    assert "Unknown cage" in result.errors[0]["error"]
    feed_type.refresh_from_db()
    assert feed_type.current_stock == Decimal("492.00")


def test_import_dry_run_saves_nothing(stocked_cage, company, staff):
    day = (timezone.localdate() - timedelta(days=2)).isoformat()
    result = record_service.import_daily_rows(
        [{"cage": "C1", "date": day, "feed_amount": "8"}], company, staff, dry_run=True
    )
    assert result.created == 1
    assert result.errors == []
    assert not DailyRecord.objects.exists()


# ----- export -----
def test_export_rows_filters_by_company_and_dates(stocked_cage, company, other_company, staff):
    day = timezone.localdate() - timedelta(days=2)
    _daily(stocked_cage, staff, date=day, notes="ok")
    _daily(stocked_cage, staff, date=day - timedelta(days=5))
    foreign = Cage.objects.create(company=other_company, name="X1", status=Cage.ACTIVE)
    DailyRecord.objects.create(cage=foreign, date=day, feed_amount=Decimal("3"))

    rows = list(record_service.export_rows("daily", company, start=day))
    assert rows == [["C1", day.isoformat(), Decimal("12.50"), "", "", "", 0, "ok"]]

    with pytest.raises(ValidationError):
        list(record_service.export_rows("weekly", company))
