from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "approval_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "app.workers.escalation_tasks",
        "app.workers.notification_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
)

celery_app.conf.beat_schedule = {}

if settings.ESCALATION_SCHEDULER == "celery":
    celery_app.conf.beat_schedule["escalate-overdue-approvals"] = {
        "task": "app.workers.escalation_tasks.escalate_overdue_items",
        "schedule": float(settings.ESCALATION_TICK_SECONDS),
        # A tick that waited longer than one interval is superseded by the next
        "options": {"expires": float(settings.ESCALATION_TICK_SECONDS)},
    }
