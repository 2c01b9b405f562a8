"""
Celery application for the RideCycle backend.

The only periodic work is the pair of expiry sweeps; both run on the
``marketplace_tasks`` queue and reuse the service-layer locking.
"""

import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ridecycleBackend.settings")

app = Celery("ridecycleBackend")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

MARKETPLACE_QUEUE = "marketplace_tasks"

app.conf.beat_schedule = {
    "expire-stale-offers": {
        "task": "marketplace.tasks.expire_stale_offers_task",
        "schedule": crontab(minute=5),  # hourly
        "options": {"expires": 15 * 60, "queue": MARKETPLACE_QUEUE},
    },
    "expire-unpaid-orders": {
        "task": "marketplace.tasks.expire_unpaid_orders_task",
        "schedule": crontab(minute="*/15"),
        "options": {"expires": 10 * 60, "queue": MARKETPLACE_QUEUE},
    },
}

app.conf.update(
    task_routes={"marketplace.tasks.*": {"queue": MARKETPLACE_QUEUE}},
    task_default_queue=MARKETPLACE_QUEUE,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=24 * 60 * 60,
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_soft_time_limit=5 * 60,
    task_time_limit=10 * 60,
    worker_max_tasks_per_child=1000,
)
