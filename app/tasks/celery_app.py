"""
Configuración de Celery para tareas asíncronas y programadas.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import get_settings

settings = get_settings()

celery_app = Celery(
    "reagentes",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# ── Celery Beat ──────────────────────────────────────
celery_app.conf.beat_schedule = {
    "expire-lots-daily": {
        "task": "stock.expire_lots",
        "schedule": crontab(hour=0, minute=5),
    },
    "release-expired-reservations": {
        "task": "stock.release_expired_reservations",
        "schedule": crontab(minute="*/15"),
    },
    "check-low-stock": {
        "task": "stock.check_low_stock",
        "schedule": crontab(hour="7,13", minute=0),
    },
}

# Auto-descubrir tareas en app/tasks/
celery_app.autodiscover_tasks(["app.tasks"])
