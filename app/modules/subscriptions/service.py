"""
Motor de suscripciones: cadencia de facturación, pausa/reanudación y operaciones masivas.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from dateutil.relativedelta import relativedelta
from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.common.exceptions import DocumentNotFoundError, DocumentValidationError
from app.common.mixins import utcnow
from app.modules.auth.schemas import CallerContext
from app.modules.billing.calculator import serialize_line_items, to_decimal
from app.modules.billing.events import EventSink, emit_event, get_event_sink
from app.modules.billing.identifiers import generate_document_id
from app.modules.billing.lifecycle import require_owner_write, resolve_read_scope
from app.modules.billing.schemas import BulkItemError, BulkResult
from app.modules.billing.store import DocumentStore, transaction
from app.modules.invoices.service import InvoiceService
from .models import BillingCycle, Subscription, SubscriptionStatus
from .schemas import (
    DueSubscription, RenewalHistoryEntry, SubscriptionCreate, SubscriptionStats, SubscriptionUpdate
)

logger = logging.getLogger(__name__)

CYCLE_DELTAS = {
    BillingCycle.MONTHLY: relativedelta(months=1),
    BillingCycle.QUARTERLY: relativedelta(months=3),
    BillingCycle.ANNUAL: relativedelta(years=1),
}

CYCLE_MONTHS = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.ANNUAL: 12,
}

TWO_PLACES = Decimal("0.01")


def advance_billing_date(moment: datetime, cycle: BillingCycle) -> datetime:
    """Siguiente fecha de cobro con aritmética de calendario (31-ene + 1 mes = 28/29-feb)."""
    return moment + CYCLE_DELTAS[BillingCycle(cycle)]


def monthly_equivalent(amount, cycle: BillingCycle) -> Decimal:
    return to_decimal(amount) / CYCLE_MONTHS[BillingCycle(cycle)]


class SubscriptionService:
    """Servicio para suscripciones recurrentes"""

    def __init__(self, db: Session, event_sink: Optional[EventSink] = None):
        self.db = db
        self.store = DocumentStore(db, Subscription, "subscription_id")
        self.events = event_sink if event_sink is not None else get_event_sink()

    def _emit(self, name: str, subscription: Subscription, **payload) -> None:
        emit_event(self.events, name, subscription.owner_id, subscription.subscription_id, **payload)

    def _owned(self, caller: CallerContext, subscription_id: str) -> Subscription:
        owner_id = require_owner_write(caller, None)
        subscription = self.store.get(owner_id, subscription_id)
        if subscription is None:
            raise DocumentNotFoundError(detail=f"Suscripción {subscription_id} no encontrada")
        return subscription

    # ===== CRUD =====

    def create_subscription(self, caller: CallerContext, data: SubscriptionCreate) -> Subscription:
        owner_id = require_owner_write(caller, data.owner_id)
        start_date = data.start_date or utcnow()
        if data.end_date is not None and data.end_date <= start_date:
            raise DocumentValidationError(detail="end_date debe ser posterior a start_date")

        subscription = Subscription(
            owner_id=owner_id,
            subscription_id=generate_document_id("SUB"),
            custom_subscription_id=data.custom_subscription_id,
            counterparty_id=data.counterparty_id,
            counterparty_name=data.counterparty_name,
            billing_cycle=data.billing_cycle,
            amount=data.amount,
            start_date=start_date,
            end_date=data.end_date,
            next_billing_date=advance_billing_date(start_date, data.billing_cycle),
            status=SubscriptionStatus.ACTIVE,
            invoices_generated=0,
            items=serialize_line_items(data.items),
            notes=data.notes,
        )
        with transaction(self.db):
            subscription = self.store.put(owner_id, subscription)

        logger.info(
            f"Suscripción {subscription.subscription_id} creada ({subscription.billing_cycle.value}), "
            f"próximo cobro {subscription.next_billing_date.isoformat()}"
        )
        self._emit("subscription.created", subscription, billing_cycle=subscription.billing_cycle.value)
        return subscription

    def get_subscription(self, caller: CallerContext, subscription_id: str,
                         owner_id: Optional[str] = None) -> Subscription:
        scope = resolve_read_scope(caller, owner_id)
        if scope is not None:
            subscription = self.store.get(scope, subscription_id)
        else:
            matches = self.store.scan_all({"subscription_id": subscription_id}, limit=1)
            subscription = matches[0] if matches else None
        if subscription is None:
            raise DocumentNotFoundError(detail=f"Suscripción {subscription_id} no encontrada")
        return subscription

    def list_subscriptions(
        self,
        caller: CallerContext,
        owner_id: Optional[str] = None,
        status: Optional[SubscriptionStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Subscription]:
        scope = resolve_read_scope(caller, owner_id)
        filters = {"status": status}
        if scope is None:
            return self.store.scan_all(filters, limit=limit, offset=offset)
        return self.store.query_by_owner(scope, filters, limit=limit, offset=offset)

    def update_subscription(self, caller: CallerContext, subscription_id: str,
                            data: SubscriptionUpdate) -> Subscription:
        """
        Actualización por campos. Cambiar el ciclo no mueve next_billing_date;
        el nuevo ciclo aplica desde el siguiente cobro.
        """
        subscription = self._owned(caller, subscription_id)
        changes = data.model_dump(exclude_unset=True)

        if "status" in changes:
            if changes["status"] != SubscriptionStatus.CANCELLED:
                raise DocumentValidationError(
                    detail="Use los endpoints de pausa/reanudación para cambiar el estado"
                )
        if "items" in changes:
            changes["items"] = serialize_line_items(data.items or [])
        if changes.get("end_date") is not None and changes["end_date"] <= subscription.start_date:
            raise DocumentValidationError(detail="end_date debe ser posterior a start_date")
        for field in ("amount", "billing_cycle"):
            if field in changes and changes[field] is None:
                raise DocumentValidationError(detail=f"{field} no puede ser nulo")

        if not changes:
            raise DocumentValidationError(detail="No hay campos para actualizar")

        with transaction(self.db):
            subscription = self.store.update_fields(subscription.owner_id, subscription_id, changes)
        logger.info(f"Suscripción {subscription_id} actualizada: {', '.join(sorted(changes))}")
        return subscription

    def delete_subscription(self, caller: CallerContext, subscription_id: str) -> None:
        """Borrado administrativo; las facturas ya generadas se conservan."""
        subscription = self._owned(caller, subscription_id)
        with transaction(self.db):
            self.store.delete(subscription.owner_id, subscription_id)
        logger.info(f"Suscripción {subscription_id} eliminada por {caller.caller_id}")

    # ===== PAUSA / REANUDACIÓN =====

    def pause_subscription(self, caller: CallerContext, subscription_id: str) -> Subscription:
        """Pausa sin tocar next_billing_date."""
        subscription = self._owned(caller, subscription_id)
        if subscription.status != SubscriptionStatus.ACTIVE:
            raise DocumentValidationError(
                detail=f"Solo se pueden pausar suscripciones activas (estado: {subscription.status.value})"
            )

        with transaction(self.db):
            subscription = self.store.update_fields(
                subscription.owner_id,
                subscription_id,
                {"status": SubscriptionStatus.PAUSED, "paused_at": utcnow()},
                expected={"status": SubscriptionStatus.ACTIVE}
            )
        logger.info(f"Suscripción {subscription_id} pausada")
        self._emit("subscription.paused", subscription)
        return subscription

    def resume_subscription(self, caller: CallerContext, subscription_id: str,
                            now: Optional[datetime] = None) -> Subscription:
        """Reanuda y recalcula next_billing_date desde ahora; la fecha previa a la pausa se descarta."""
        subscription = self._owned(caller, subscription_id)
        if subscription.status != SubscriptionStatus.PAUSED:
            raise DocumentValidationError(
                detail=f"Solo se pueden reanudar suscripciones pausadas (estado: {subscription.status.value})"
            )

        now = now or utcnow()
        next_billing_date = advance_billing_date(now, subscription.billing_cycle)

        with transaction(self.db):
            subscription = self.store.update_fields(
                subscription.owner_id,
                subscription_id,
                {
                    "status": SubscriptionStatus.ACTIVE,
                    "resumed_at": now,
                    "next_billing_date": next_billing_date,
                },
                expected={"status": SubscriptionStatus.PAUSED}
            )
        logger.info(f"Suscripción {subscription_id} reanudada, próximo cobro {next_billing_date.isoformat()}")
        self._emit("subscription.resumed", subscription, next_billing_date=next_billing_date.isoformat())
        return subscription

    def _bulk(self, operation, caller: CallerContext, subscription_ids: List[str]) -> BulkResult:
        """Aplica la operación ítem por ítem; un fallo no detiene el lote."""
        result = BulkResult()
        for subscription_id in subscription_ids:
            try:
                operation(caller, subscription_id)
                result.succeeded.append(subscription_id)
            except HTTPException as e:
                result.failed.append(subscription_id)
                result.errors.append(BulkItemError(
                    subscription_id=subscription_id, error=str(e.detail), status_code=e.status_code
                ))
        logger.info(f"Operación masiva: {len(result.succeeded)} ok, {len(result.failed)} con error")
        return result

    def bulk_pause(self, caller: CallerContext, subscription_ids: List[str]) -> BulkResult:
        return self._bulk(self.pause_subscription, caller, subscription_ids)

    def bulk_resume(self, caller: CallerContext, subscription_ids: List[str]) -> BulkResult:
        return self._bulk(self.resume_subscription, caller, subscription_ids)

    # ===== CONSULTAS =====

    def get_stats(self, caller: CallerContext, owner_id: Optional[str] = None) -> SubscriptionStats:
        subscriptions = self.list_subscriptions(caller, owner_id)
        stats = SubscriptionStats(total=len(subscriptions))
        monthly_revenue = Decimal("0")
        for subscription in subscriptions:
            if subscription.status == SubscriptionStatus.ACTIVE:
                stats.active += 1
                monthly_revenue += monthly_equivalent(subscription.amount, subscription.billing_cycle)
            elif subscription.status == SubscriptionStatus.PAUSED:
                stats.paused += 1
            else:
                stats.cancelled += 1
        stats.monthly_revenue = monthly_revenue.quantize(TWO_PLACES)
        stats.annual_revenue = (monthly_revenue * 12).quantize(TWO_PLACES)
        return stats

    def get_history(self, caller: CallerContext, subscription_id: str,
                    owner_id: Optional[str] = None) -> List[RenewalHistoryEntry]:
        """Facturas generadas por la suscripción, más recientes primero."""
        subscription = self.get_subscription(caller, subscription_id, owner_id)
        invoices = InvoiceService(self.db, self.events).subscription_history(
            subscription.owner_id, subscription_id
        )
        return [
            RenewalHistoryEntry(
                invoice_id=invoice.invoice_id,
                custom_invoice_id=invoice.custom_document_id,
                amount=invoice.total,
                date=invoice.created_at,
                status=invoice.status.value,
            )
            for invoice in invoices
        ]

    def generate_invoice(self, caller: CallerContext, subscription_id: str, now: Optional[datetime] = None):
        """
        Factura el ciclo pendiente bajo demanda, con la misma unidad de trabajo y
        la misma guarda que el scheduler.
        """
        from .scheduler import RecurringInvoiceScheduler

        subscription = self._owned(caller, subscription_id)
        if subscription.status != SubscriptionStatus.ACTIVE:
            raise DocumentValidationError(
                detail=f"Solo se facturan suscripciones activas (estado: {subscription.status.value})"
            )

        scheduler = RecurringInvoiceScheduler(self.db, self.events)
        due = DueSubscription(
            owner_id=subscription.owner_id,
            subscription_id=subscription.subscription_id,
            next_billing_date=subscription.next_billing_date,
        )
        return scheduler.run_cycle(due, now or utcnow())


def summarize_by_cycle(subscriptions: List[Subscription]) -> Dict[BillingCycle, List[Subscription]]:
    buckets: Dict[BillingCycle, List[Subscription]] = {cycle: [] for cycle in BillingCycle}
    for subscription in subscriptions:
        buckets[subscription.billing_cycle].append(subscription)
    return buckets
