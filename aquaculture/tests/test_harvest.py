from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from aquaculture.models import Cage, DailyRecord, HarvestRecord, HarvestSampling
from aquaculture.services import harvest as harvest_service

pytestmark = pytest.mark.django_db


def _feed(cage, kg):
    DailyRecord.objects.create(
        cage=cage, date=cage.stocking_date + timedelta(days=1), feed_amount=Decimal(kg)
    )


def _harvest(cage, user, **kwargs):
    params = {
        "harvest_date": timezone.localdate(),
        "total_weight": Decimal("450"),
        "average_body_weight": Decimal("480"),
        "estimated_count": 937,
    }
    params.update(kwargs)
    return harvest_service.record_harvest(cage, user=user, **params)


def test_harvest_fcr_uses_gain_over_stocked_biomass(stocked_cage):
    _feed(stocked_cage, "600")
    # 600 kg feed / (450 kg harvested - 50 kg stocked)
    assert harvest_service.harvest_fcr(stocked_cage, Decimal("450")) == 1.5


def test_record_harvest_closes_cycle(stocked_cage, admin):
    _feed(stocked_cage, "600")
    harvest = _harvest(
        stocked_cage, admin,
        size_breakdown=[{"range": "400g-500g", "percentage": "60"}, {"range": "500g-600g", "percentage": 40}],
    )

    assert harvest.fcr == Decimal("1.50")
    assert harvest.stocking == stocked_cage.current_stocking()
    assert harvest.size_breakdown == [
        {"range": "400g-500g", "percentage": 60.0},
        {"range": "500g-600g", "percentage": 40.0},
    ]
    stocked_cage.refresh_from_db()
    assert stocked_cage.status == Cage.HARVESTED
    assert stocked_cage.current_count == 0
    assert stocked_cage.current_weight == Decimal("0")


def test_manual_fcr_is_kept(stocked_cage, admin):
    harvest = _harvest(stocked_cage, admin, fcr=Decimal("1.8"))
    assert harvest.fcr == Decimal("1.80")


def test_fcr_required_when_it_cannot_be_derived(stocked_cage, admin):
    with pytest.raises(ValidationError) as exc:
        _harvest(stocked_cage, admin)
    assert "fcr" in exc.value.message_dict
    assert not HarvestRecord.objects.exists()


@pytest.mark.parametrize("field", ["total_weight", "average_body_weight", "estimated_count"])
def test_harvest_rejects_non_positive_values(stocked_cage, admin, field):
    with pytest.raises(ValidationError) as exc:
        _harvest(stocked_cage, admin, fcr=Decimal("1.5"), **{field: 0})
    assert field in exc.value.message_dict


def test_cannot_harvest_empty_cage(cage, admin):
    with pytest.raises(ValidationError):
        _harvest(cage, admin, fcr=Decimal("1.5"))


def test_harvest_date_not_before_stocking(stocked_cage, admin):
    with pytest.raises(ValidationError) as exc:
        _harvest(stocked_cage, admin, fcr=Decimal("1.5"),
                 harvest_date=stocked_cage.stocking_date - timedelta(days=1))
    assert "harvest_date" in exc.value.message_dict


def test_one_harvest_per_cycle(stocked_cage, admin):
    _harvest(stocked_cage, admin, fcr=Decimal("1.5"))
    Cage.objects.filter(pk=stocked_cage.pk).update(status=Cage.HARVESTING)
    with pytest.raises(ValidationError):
        _harvest(stocked_cage, admin, fcr=Decimal("1.5"))


def test_size_breakdown_cannot_exceed_100_percent(stocked_cage, admin):
    with pytest.raises(ValidationError) as exc:
        _harvest(stocked_cage, admin, fcr=Decimal("1.5"),
                 size_breakdown=[{"range": "A", "percentage": 70}, {"range": "B", "percentage": 40}])
    assert "size_breakdown" in exc.value.message_dict


def test_add_sampling_data_skips_blank_rows(stocked_cage, admin):
    harvest = _harvest(stocked_cage, admin, fcr=Decimal("1.5"))
    rows = harvest_service.add_sampling_data(
        harvest,
        crate_size=25,
        samples=[
            {"size": "Reg", "quantity": 4, "abw": Decimal("550")},
            {"size": "Eco", "quantity": 2, "abw": Decimal("450")},
            {"size": "S3", "quantity": None, "abw": None},
        ],
        user=admin,
    )
    assert len(rows) == 2
    reg = HarvestSampling.objects.get(harvest=harvest, size="Reg")
    assert reg.size_range == "500g-600g"
    assert reg.crate_size == 25
    harvest.refresh_from_db()
    assert harvest.crate_size == 25


def test_add_sampling_data_replaces_previous_samples(stocked_cage, admin):
    harvest = _harvest(stocked_cage, admin, fcr=Decimal("1.5"))
    harvest_service.add_sampling_data(harvest, crate_size=50, samples=[{"size": "S1", "quantity": 3, "abw": 650}])
    harvest_service.add_sampling_data(harvest, crate_size=50, samples=[{"size": "S2", "quantity": 1, "abw": 750}])
    assert list(harvest.samplings.values_list("size", flat=True)) == ["S2"]


@pytest.mark.parametrize("crate_size, samples", [
    (40, [{"size": "Reg", "quantity": 1, "abw": 500}]),
    (50, []),
    (50, [{"size": "XL", "quantity": 1, "abw": 900}]),
])
def test_add_sampling_data_validation(stocked_cage, admin, crate_size, samples):
    harvest = _harvest(stocked_cage, admin, fcr=Decimal("1.5"))
    with pytest.raises(ValidationError):
        harvest_service.add_sampling_data(harvest, crate_size=crate_size, samples=samples)
