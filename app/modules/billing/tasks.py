"""
Tareas de Celery para eventos de ciclo de vida de documentos.
"""
import logging
from typing import Dict, Any

from app.core.celery import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def record_lifecycle_event(self, event: Dict[str, Any]):
    """
    Entrega el evento a los consumidores (notificaciones, feed de actividad).
    Los consumidores se suscriben al logger `app.modules.billing.activity`.
    """
    try:
        activity_logger = logging.getLogger("app.modules.billing.activity")
        activity_logger.info(
            f"{event['name']} owner={event['owner_id']} documento={event['document_id']} "
            f"payload={event.get('payload', {})}"
        )
        return {"status": "recorded", "event": event["name"], "document_id": event["document_id"]}

    except Exception as exc:
        logger.error(f"No se pudo registrar el evento: {str(exc)}")

        if self.request.retries < self.max_retries:
            raise self.retry(exc=exc, countdown=30 * (2 ** self.request.retries))

        return {"status": "failed", "error": str(exc)}
