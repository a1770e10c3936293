from decimal import Decimal

import pytest
from django.core import mail

from aquaculture.models import Notification
from aquaculture.tasks import refresh_cage_metrics, send_low_stock_alerts
from aquaculture.templatetags.farm_filters import cedis, percentage, weight
from feed_inventory.models import FeedType


@pytest.mark.django_db
def test_low_stock_alert_task_notifies_admins(company, admin, staff, feed_type, settings):
    settings.LOW_STOCK_FACTOR = 1.2
    FeedType.objects.create(company=company, name="Starter 2mm", current_stock=Decimal("110"),
                            minimum_stock=Decimal("100"))

    result = send_low_stock_alerts.delay()

    assert result.get() == 1
    note = Notification.objects.get(user=admin)
    assert note.type == Notification.WARNING
    assert "Starter 2mm" in note.message
    assert "Grower 4mm" not in note.message
    assert not Notification.objects.filter(user=staff).exists()
    assert len(mail.outbox) == 1


@pytest.mark.django_db
def test_low_stock_alert_task_is_quiet_when_stocked(company, admin, feed_type):
    assert send_low_stock_alerts.delay().get() == 0
    assert not Notification.objects.exists()


@pytest.mark.django_db
def test_refresh_cage_metrics_task(stocked_cage):
    stocked_cage.current_count = 900
    stocked_cage.current_weight = Decimal("75")
    stocked_cage.save()

    assert refresh_cage_metrics.delay().get() == 1

    stocked_cage.refresh_from_db()
    assert stocked_cage.mortality_rate == Decimal("10.00")
    assert stocked_cage.growth_rate == Decimal("50.00")


def test_cedis_filter(settings):
    settings.CURRENCY_SYMBOL = "₵"
    assert cedis(1234.5) == "₵1,234.50"
    assert cedis("-20", 0) == "-₵20"
    assert cedis(None) == "-"
    assert cedis("abc") == "-"


def test_weight_and_percentage_filters():
    assert weight(1500) == "1,500.0 kg"
    assert weight("82.26", "g") == "82.3 g"
    assert weight("") == "-"
    assert percentage(12.345) == "12.3%"
    assert percentage(5, 0) == "5%"
    assert percentage(None) == "-"
