"""
Modelos de suscripciones recurrentes de facturación.
"""
from sqlalchemy import Column, String, Integer, Numeric, DateTime, Text, JSON, Enum as SQLEnum
from app.database.database import Base
from app.common.mixins import OwnerMixin, TimestampMixin
import enum


class BillingCycle(str, enum.Enum):
    """Ciclos de facturación."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class SubscriptionStatus(str, enum.Enum):
    """Estados de suscripción."""
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class Subscription(Base, OwnerMixin, TimestampMixin):
    """
    Acuerdo de facturación recurrente de un vendor con un cliente.

    next_billing_date solo avanza; invoices_generated sube en uno por ciclo facturado.
    """
    __tablename__ = "subscriptions"

    subscription_id = Column(String(64), primary_key=True)
    custom_subscription_id = Column(String(100), nullable=True)

    counterparty_id = Column(String(64), nullable=False, index=True)
    counterparty_name = Column(String(255), nullable=True)

    billing_cycle = Column(SQLEnum(BillingCycle), nullable=False, default=BillingCycle.MONTHLY)
    amount = Column(Numeric(15, 2), nullable=False, default=0)

    # Fechas
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    next_billing_date = Column(DateTime, nullable=False, index=True)
    last_invoice_date = Column(DateTime, nullable=True)
    paused_at = Column(DateTime, nullable=True)
    resumed_at = Column(DateTime, nullable=True)

    status = Column(SQLEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE, index=True)
    invoices_generated = Column(Integer, nullable=False, default=0)

    # Plantilla de ítems para cada factura generada
    items = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Subscription(id={self.subscription_id}, owner={self.owner_id}, status={self.status})>"
