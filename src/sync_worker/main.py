"""Celery app for the supplier sync worker.

Runs the scheduled catalog sync and tracking refresh, plus on-demand order
submission. Start beat alongside the worker for the schedule.
"""

from datetime import timedelta

from celery import Celery
from celery.schedules import crontab

from dropship_service.config import get_settings
from dropship_service.log_config import configure_logging

settings = get_settings()
configure_logging(settings)

app = Celery(
    "sync_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "sync_worker.tasks.sync_products",
        "sync_worker.tasks.submit_orders",
        "sync_worker.tasks.track_orders",
    ],
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=900,
    task_soft_time_limit=840,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="sync",
    task_routes={
        "sync_worker.tasks.*": {"queue": "sync"},
    },
)


def every(minutes: int) -> crontab | timedelta:
    """
    Beat schedule for a fixed interval.

    Intervals that line up with the clock become crontabs; any other
    interval runs every ``minutes`` from beat start.
    """
    if minutes < 1:
        raise ValueError(f"Schedule interval must be at least 1 minute, got {minutes}")
    if minutes < 60 and 60 % minutes == 0:
        return crontab(minute=f"*/{minutes}")
    if minutes % 60 == 0 and minutes < 1440 and 24 % (minutes // 60) == 0:
        return crontab(minute=0, hour=f"*/{minutes // 60}")
    return timedelta(minutes=minutes)


app.conf.beat_schedule = {
    "sync-supplier-products": {
        "task": "sync_worker.tasks.sync_products.sync_supplier_products",
        "schedule": every(settings.sync_products_interval_minutes),
    },
    "refresh-open-orders-tracking": {
        "task": "sync_worker.tasks.track_orders.refresh_open_orders_tracking",
        "schedule": every(settings.tracking_refresh_interval_minutes),
    },
}


def run() -> None:
    """Entry point of the `dropship-worker` script."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "sync"])


if __name__ == "__main__":
    run()
