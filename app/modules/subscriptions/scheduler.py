"""
Scheduler de facturación recurrente.

En cada tick selecciona las suscripciones activas vencidas y genera una factura
por ciclo. La única protección contra ticks concurrentes es el compare-and-swap
sobre next_billing_date: la factura y el avance de la suscripción se escriben en
la misma transacción, condicionados a que next_billing_date siga siendo el valor
observado al seleccionar.
"""
from datetime import datetime
from typing import List, Optional, Tuple
import logging

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.common.exceptions import ConditionalWriteError, DocumentNotFoundError
from app.common.mixins import utcnow
from app.modules.billing.events import EventSink, emit_event, get_event_sink
from app.modules.billing.store import DocumentStore, transaction
from app.modules.invoices.models import Invoice
from app.modules.invoices.service import InvoiceService
from .models import Subscription, SubscriptionStatus
from .schemas import DueSubscription, TickFailure, TickReport
from .service import advance_billing_date

logger = logging.getLogger(__name__)

GENERATED = "generated"
SKIPPED = "skipped"
FAILED = "failed"


class RecurringInvoiceScheduler:

    def __init__(self, db: Session, event_sink: Optional[EventSink] = None):
        self.db = db
        self.events = event_sink if event_sink is not None else get_event_sink()
        self.subscriptions = DocumentStore(db, Subscription, "subscription_id")
        self.invoices = InvoiceService(db, self.events)

    def select_due(self, now: datetime) -> List[DueSubscription]:
        """Suscripciones activas con next_billing_date <= now (y dentro de end_date)."""
        rows = (
            self.db.query(Subscription)
            .filter(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.next_billing_date <= now,
                or_(Subscription.end_date.is_(None), Subscription.next_billing_date <= Subscription.end_date)
            )
            .order_by(Subscription.next_billing_date)
            .all()
        )
        return [
            DueSubscription(
                owner_id=row.owner_id,
                subscription_id=row.subscription_id,
                next_billing_date=row.next_billing_date,
            )
            for row in rows
        ]

    def run_cycle(self, due: DueSubscription, now: datetime) -> Invoice:
        """
        Una unidad de trabajo: leer suscripción, escribir factura, avanzar suscripción.

        Lanza ConditionalWriteError si otro proceso ya facturó este ciclo.
        """
        subscription = self.subscriptions.get(due.owner_id, due.subscription_id, refresh=True)
        if subscription is None:
            raise DocumentNotFoundError(detail=f"Suscripción {due.subscription_id} no encontrada")
        if subscription.status != SubscriptionStatus.ACTIVE:
            raise ConditionalWriteError(detail=f"Suscripción {due.subscription_id} ya no está activa")
        if subscription.next_billing_date != due.next_billing_date:
            raise ConditionalWriteError(detail=f"El ciclo de {due.subscription_id} ya fue facturado")

        # Se avanza desde la fecha programada, no desde now
        next_billing_date = advance_billing_date(due.next_billing_date, subscription.billing_cycle)
        invoices_generated = (subscription.invoices_generated or 0) + 1

        with transaction(self.db):
            invoice = self.invoices.build_subscription_invoice(subscription, now)
            invoice = self.invoices.store.put(invoice.owner_id, invoice)
            self.subscriptions.update_fields(
                due.owner_id,
                due.subscription_id,
                {
                    "next_billing_date": next_billing_date,
                    "invoices_generated": invoices_generated,
                    "last_invoice_date": now,
                },
                expected={"next_billing_date": due.next_billing_date, "status": SubscriptionStatus.ACTIVE}
            )

        logger.info(
            f"Factura {invoice.invoice_id} generada para suscripción {due.subscription_id}; "
            f"próximo cobro {next_billing_date.isoformat()}"
        )
        emit_event(
            self.events, "invoice.generated", invoice.owner_id, invoice.invoice_id,
            subscription_id=due.subscription_id, total=str(invoice.total)
        )
        return invoice

    def process(self, due: DueSubscription, now: datetime) -> Tuple[str, Optional[str]]:
        """Procesa una suscripción y devuelve (resultado, error); nunca lanza."""
        try:
            self.run_cycle(due, now)
            return GENERATED, None
        except ConditionalWriteError as e:
            logger.info(f"Suscripción {due.subscription_id} omitida: {e.detail}")
            return SKIPPED, None
        except HTTPException as e:
            logger.error(f"Fallo facturando suscripción {due.subscription_id}: {e.detail}")
            return FAILED, str(e.detail)
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error inesperado facturando suscripción {due.subscription_id}")
            return FAILED, str(e)

    def run_tick(self, now: Optional[datetime] = None) -> TickReport:
        """
        Un tick del scheduler. Cada suscripción vencida se procesa de forma
        independiente; las que fallan siguen vencidas y se reintentan en el próximo tick.
        """
        now = now or utcnow()
        report = TickReport()

        try:
            due_subscriptions = self.select_due(now)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"No se pudieron seleccionar suscripciones vencidas: {e}")
            report.failed.append(TickFailure(subscription_id="*", error="selección de vencidas fallida"))
            return report

        report.due = len(due_subscriptions)
        for due in due_subscriptions:
            outcome, error = self.process(due, now)
            if outcome == GENERATED:
                report.generated.append(due.subscription_id)
            elif outcome == SKIPPED:
                report.skipped.append(due.subscription_id)
            else:
                report.failed.append(TickFailure(subscription_id=due.subscription_id, error=error or ""))

        logger.info(
            f"Tick de facturación: {report.due} vencidas, {len(report.generated)} generadas, "
            f"{len(report.skipped)} omitidas, {len(report.failed)} fallidas"
        )
        return report


