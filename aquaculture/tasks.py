import logging

from celery import shared_task
from django.urls import reverse

from feed_inventory.stock import low_stock_alerts

from .models import Cage, Company, Notification
from .services.cages import refresh_growth_metrics
from .services.notifications import notify_company_admins

logger = logging.getLogger(__name__)


def send_low_stock_alerts_sync():
    """Notify each company's admins about feed types running low.

    Returns the number of companies alerted.
    """
    alerted = 0
    for company in Company.objects.filter(is_active=True):
        low = low_stock_alerts(company)
        if not low:
            continue
        lines = [f"{ft.name}: {ft.current_stock} kg (minimum {ft.minimum_stock} kg)" for ft in low]
        notify_company_admins(
            company,
            f"{len(low)} feed type(s) low on stock",
            "\n".join(lines),
            type=Notification.WARNING,
            link=reverse("feed_inventory:stock_levels"),
            email=True,
        )
        alerted += 1
    logger.info("send_low_stock_alerts: alerted %s companies", alerted)
    return alerted


def refresh_cage_metrics_sync():
    count = 0
    for cage in Cage.objects.filter(status__in=Cage.RECORDABLE_STATUSES):
        refresh_growth_metrics(cage)
        count += 1
    logger.info("refresh_cage_metrics: refreshed %s cages", count)
    return count


@shared_task
def send_low_stock_alerts():
    """Celery task wrapper around the synchronous alert sweep."""
    return send_low_stock_alerts_sync()


@shared_task
def refresh_cage_metrics():
    return refresh_cage_metrics_sync()
