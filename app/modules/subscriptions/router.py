"""
API Router for subscription management.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, status, Query, Response
from sqlalchemy.orm import Session

from app.common.mixins import utcnow
from app.core.config import settings
from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import CallerContext
from app.modules.billing.events import EventSink, get_event_sink
from app.modules.billing.schemas import BulkResult
from app.modules.billing.service import page_size
from app.modules.invoices.schemas import InvoiceOut

from . import analytics, schemas
from .models import SubscriptionStatus
from .service import SubscriptionService

router = APIRouter(
    prefix="/subscriptions",
    tags=["Subscriptions"],
    responses={404: {"description": "Not found"}}
)


@router.post("", response_model=schemas.SubscriptionOut, status_code=status.HTTP_201_CREATED)
def create_subscription(
    subscription_data: schemas.SubscriptionCreate,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """
    Crear suscripción recurrente.

    next_billing_date = start_date + un ciclo (Monthly, Quarterly, Annual).
    """
    service = SubscriptionService(db, event_sink)
    return service.create_subscription(caller, subscription_data)


@router.get("", response_model=List[schemas.SubscriptionOut])
def list_subscriptions(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    status: Optional[SubscriptionStatus] = Query(None, description="active, paused, cancelled"),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = SubscriptionService(db, event_sink=None)
    return service.list_subscriptions(caller, owner_id, status, limit=page_size(limit), offset=offset)


@router.get("/stats", response_model=schemas.SubscriptionStats)
def subscription_stats(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = SubscriptionService(db, event_sink=None)
    return service.get_stats(caller, owner_id)


# ===== ANALYTICS =====

@router.get("/analytics/forecast", response_model=schemas.RevenueForecast)
def revenue_forecast(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    months: Optional[int] = Query(None, ge=1, le=36),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    """
    MRR, ARR y pronóstico de ingresos para los próximos meses.
    """
    service = SubscriptionService(db, event_sink=None)
    subscriptions = service.list_subscriptions(caller, owner_id)
    return analytics.revenue_forecast(subscriptions, months or settings.FORECAST_MONTHS, utcnow())


@router.get("/analytics/cohorts", response_model=schemas.CohortAnalysis)
def cohort_analysis(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = SubscriptionService(db, event_sink=None)
    return analytics.cohort_analysis(service.list_subscriptions(caller, owner_id))


# ===== BULK =====

@router.put("/bulk/pause", response_model=BulkResult)
def bulk_pause_subscriptions(
    request: schemas.BulkSubscriptionRequest,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """
    Pausar varias suscripciones. Cada ítem reporta su propio resultado.
    """
    service = SubscriptionService(db, event_sink)
    return service.bulk_pause(caller, request.subscription_ids)


@router.put("/bulk/resume", response_model=BulkResult)
def bulk_resume_subscriptions(
    request: schemas.BulkSubscriptionRequest,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    service = SubscriptionService(db, event_sink)
    return service.bulk_resume(caller, request.subscription_ids)


# ===== SUBSCRIPTION =====

@router.get("/{subscription_id}", response_model=schemas.SubscriptionOut)
def get_subscription(
    subscription_id: str,
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = SubscriptionService(db, event_sink=None)
    return service.get_subscription(caller, subscription_id, owner_id)


@router.put("/{subscription_id}", response_model=schemas.SubscriptionOut)
def update_subscription(
    subscription_id: str,
    subscription_data: schemas.SubscriptionUpdate,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """
    Actualizar suscripción. status solo acepta 'cancelled'.
    """
    service = SubscriptionService(db, event_sink=None)
    return service.update_subscription(caller, subscription_id, subscription_data)


@router.delete("/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subscription(
    subscription_id: str,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    service = SubscriptionService(db, event_sink=None)
    service.delete_subscription(caller, subscription_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{subscription_id}/pause", response_model=schemas.SubscriptionOut)
def pause_subscription(
    subscription_id: str,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    service = SubscriptionService(db, event_sink)
    return service.pause_subscription(caller, subscription_id)


@router.put("/{subscription_id}/resume", response_model=schemas.SubscriptionOut)
def resume_subscription(
    subscription_id: str,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """
    Reanudar suscripción; el próximo cobro se recalcula desde ahora.
    """
    service = SubscriptionService(db, event_sink)
    return service.resume_subscription(caller, subscription_id)


@router.get("/{subscription_id}/history", response_model=List[schemas.RenewalHistoryEntry])
def subscription_history(
    subscription_id: str,
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = SubscriptionService(db, event_sink=None)
    return service.get_history(caller, subscription_id, owner_id)


@router.post("/{subscription_id}/generate-invoice", response_model=InvoiceOut,
             status_code=status.HTTP_201_CREATED)
def generate_subscription_invoice(
    subscription_id: str,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """
    Facturar el ciclo pendiente ahora, sin esperar al scheduler.
    """
    service = SubscriptionService(db, event_sink)
    return service.generate_invoice(caller, subscription_id)
