# fishfarm/celery.py
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'fishfarm.settings')

app = Celery('fishfarm')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

app.conf.beat_schedule = {
    'low-stock-alerts-daily': {
        'task': 'aquaculture.tasks.send_low_stock_alerts',
        'schedule': crontab(hour=6, minute=0),
    },
    'refresh-cage-metrics-daily': {
        'task': 'aquaculture.tasks.refresh_cage_metrics',
        'schedule': crontab(hour=0, minute=30),
    },
}
