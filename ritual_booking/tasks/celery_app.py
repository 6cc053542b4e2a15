from datetime import timedelta

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from ritual_booking.core.config import settings
from ritual_booking.core.logging import setup_logging

celery_app = Celery(
    "ritual_booking",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["ritual_booking.tasks.expirations"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "expire-pending-bookings": {
            "task": "bookings.expire_pending",
            "schedule": timedelta(minutes=settings.celery_expiration_interval_minutes),
            # A sweep that missed its turn is superseded by the next one.
            "options": {"expires": settings.celery_expiration_interval_minutes * 60},
        },
    },
)


@celery_setup_logging.connect
def configure_worker_logging(**_kwargs) -> None:
    setup_logging()
