"""
Tareas de Celery para la facturación recurrente de suscripciones.
"""
import logging

from app.core.celery import celery_app
from app.database.database import SessionLocal
from .scheduler import RecurringInvoiceScheduler

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def process_subscription_billing(self):
    """
    Tick periódico (beat): genera las facturas de las suscripciones vencidas.

    No reintenta: lo que falla sigue vencido y se toma en el siguiente tick.
    """
    db = SessionLocal()
    try:
        report = RecurringInvoiceScheduler(db).run_tick()
        return report.model_dump()
    except Exception as exc:
        logger.error(f"Tick de facturación abortado: {str(exc)}")
        return {"status": "failed", "error": str(exc)}
    finally:
        db.close()
