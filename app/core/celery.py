"""
Celery: eventos de ciclo de vida (cola "events") y tick de facturación recurrente
(cola "billing", disparado por beat).
"""
from celery import Celery
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

celery_app = Celery(
    "workspace_billing",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.modules.billing.tasks",
        "app.modules.subscriptions.tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,

    # Un tick procesa todas las suscripciones vencidas en una sola ejecución
    task_time_limit=15 * 60,
    task_soft_time_limit=12 * 60,
    # Si el worker muere a mitad de tick, el mensaje se reentrega; la guarda sobre
    # next_billing_date evita facturar dos veces
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # Los reportes de tick se consultan poco después de ejecutarse
    result_expires=6 * 3600,

    task_default_queue="events",
    task_routes={
        "app.modules.billing.tasks.*": {"queue": "events"},
        "app.modules.subscriptions.tasks.*": {"queue": "billing"},
    },

    beat_schedule={
        "process-subscription-billing": {
            "task": "app.modules.subscriptions.tasks.process_subscription_billing",
            "schedule": settings.SUBSCRIPTION_BILLING_INTERVAL_SECONDS,
            # Un tick vencido sin ejecutar no se acumula con el siguiente
            "options": {"expires": settings.SUBSCRIPTION_BILLING_INTERVAL_SECONDS},
        },
    }
)

if __name__ == "__main__":
    celery_app.start()
