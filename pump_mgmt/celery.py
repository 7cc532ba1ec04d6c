# pump_mgmt/celery.py
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'pump_mgmt.settings')

app = Celery('pump_mgmt')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

app.conf.beat_schedule = {
    'check-approaching-deadlines-hourly': {
        'task': 'workorders.tasks.check_approaching_deadlines',
        'schedule': crontab(minute=0),
    },
    'check-units-not-dispatched-daily': {
        'task': 'workorders.tasks.check_units_not_dispatched',
        'schedule': crontab(minute=0, hour=9),
    },
    'cleanup-old-notifications-daily': {
        'task': 'workorders.tasks.cleanup_old_notifications',
        'schedule': crontab(minute=0, hour=2),
    },
}
