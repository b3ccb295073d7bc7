"""
Eventos de ciclo de vida para notificaciones y feed de actividad.

Emisión fire-and-forget: un fallo al emitir se registra y nunca revierte la
escritura del documento.
"""
from datetime import datetime
from typing import Any, Dict, Optional
import logging

from pydantic import BaseModel, Field

from app.common.mixins import utcnow
from app.core.config import settings

logger = logging.getLogger(__name__)


class LifecycleEvent(BaseModel):
    name: str
    owner_id: str
    document_id: str
    payload: Dict[str, Any] = {}
    occurred_at: datetime = Field(default_factory=utcnow)


class EventSink:
    def emit(self, event: LifecycleEvent) -> None:
        raise NotImplementedError


class LogEventSink(EventSink):
    def emit(self, event: LifecycleEvent) -> None:
        logger.info(f"Evento {event.name}: owner={event.owner_id} documento={event.document_id}")


class CeleryEventSink(EventSink):
    """Encola el evento en el worker de Celery."""

    def emit(self, event: LifecycleEvent) -> None:
        from app.modules.billing.tasks import record_lifecycle_event
        record_lifecycle_event.delay(event.model_dump(mode="json"))


def get_event_sink() -> EventSink:
    if settings.EVENT_DISPATCH == "celery":
        return CeleryEventSink()
    return LogEventSink()


def emit_event(
    sink: Optional[EventSink],
    name: str,
    owner_id: str,
    document_id: str,
    **payload: Any
) -> None:
    if sink is None:
        return
    try:
        sink.emit(LifecycleEvent(name=name, owner_id=owner_id, document_id=document_id, payload=payload))
    except Exception as e:
        logger.warning(f"No se pudo emitir el evento {name} de {document_id}: {e}")
