"""
Pydantic schemas for subscription management.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
from decimal import Decimal

from app.modules.billing.schemas import LineItem
from .models import BillingCycle, SubscriptionStatus


CYCLE_ALIASES = {
    "monthly": BillingCycle.MONTHLY,
    "quarterly": BillingCycle.QUARTERLY,
    "annual": BillingCycle.ANNUAL,
    "annually": BillingCycle.ANNUAL,
    "yearly": BillingCycle.ANNUAL,
}


def _parse_cycle(v):
    if v is None or isinstance(v, BillingCycle):
        return v
    key = str(v).strip().lower()
    if key not in CYCLE_ALIASES:
        raise ValueError("billing_cycle debe ser Monthly, Quarterly o Annual")
    return CYCLE_ALIASES[key]


def _to_naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Las fechas se guardan en UTC sin tzinfo; un offset explícito se convierte a UTC."""
    if v is None or v.tzinfo is None:
        return v
    return v.astimezone(timezone.utc).replace(tzinfo=None)


# ===== SUBSCRIPTION SCHEMAS =====

class SubscriptionCreate(BaseModel):
    """Schema para crear suscripción."""
    owner_id: Optional[str] = Field(None, description="Debe coincidir con el vendor autenticado")
    custom_subscription_id: Optional[str] = Field(None, max_length=100)
    counterparty_id: str = Field(..., min_length=1, max_length=64, description="Cliente facturado")
    counterparty_name: Optional[str] = Field(None, max_length=255)
    billing_cycle: BillingCycle = Field(..., description="Monthly, Quarterly o Annual")
    amount: Decimal = Field(..., ge=0, description="Monto por ciclo")
    start_date: Optional[datetime] = Field(None, description="Por defecto: ahora (UTC)")
    end_date: Optional[datetime] = None
    items: List[LineItem] = []
    notes: Optional[str] = None

    @field_validator('billing_cycle', mode='before')
    @classmethod
    def normalize_cycle(cls, v):
        return _parse_cycle(v)

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_dates(cls, v):
        return _to_naive_utc(v)


class SubscriptionUpdate(BaseModel):
    """Schema para actualizar suscripción (solo los campos enviados)."""
    custom_subscription_id: Optional[str] = Field(None, max_length=100)
    counterparty_name: Optional[str] = Field(None, max_length=255)
    billing_cycle: Optional[BillingCycle] = None
    amount: Optional[Decimal] = Field(None, ge=0)
    end_date: Optional[datetime] = None
    items: Optional[List[LineItem]] = None
    notes: Optional[str] = None
    status: Optional[SubscriptionStatus] = Field(None, description="Solo 'cancelled'; pausa y reanudación tienen endpoints propios")

    @field_validator('billing_cycle', mode='before')
    @classmethod
    def normalize_cycle(cls, v):
        return _parse_cycle(v)

    @field_validator('end_date')
    @classmethod
    def normalize_end_date(cls, v):
        return _to_naive_utc(v)


class SubscriptionOut(BaseModel):
    """Schema de respuesta para suscripción."""
    owner_id: str
    subscription_id: str
    custom_subscription_id: Optional[str] = None
    counterparty_id: str
    counterparty_name: Optional[str] = None
    billing_cycle: BillingCycle
    amount: Decimal
    start_date: datetime
    end_date: Optional[datetime] = None
    next_billing_date: datetime
    last_invoice_date: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    status: SubscriptionStatus
    invoices_generated: int
    items: List[Dict] = []
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BulkSubscriptionRequest(BaseModel):
    subscription_ids: List[str] = Field(..., min_length=1, max_length=500)


class RenewalHistoryEntry(BaseModel):
    invoice_id: str
    custom_invoice_id: Optional[str] = None
    amount: Decimal
    date: datetime
    status: str
    type: str = "invoice_generated"


class SubscriptionStats(BaseModel):
    total: int = 0
    active: int = 0
    paused: int = 0
    cancelled: int = 0
    monthly_revenue: Decimal = Decimal("0.00")
    annual_revenue: Decimal = Decimal("0.00")


# ===== ANALYTICS SCHEMAS =====

class CycleBreakdown(BaseModel):
    count: int = 0
    revenue: Decimal = Decimal("0.00")


class ForecastMonth(BaseModel):
    month: str = Field(..., description="YYYY-MM")
    projected_revenue: Decimal
    billing_count: int


class RevenueForecast(BaseModel):
    total_active_subscriptions: int
    current_mrr: Decimal
    current_arr: Decimal
    avg_subscription_value: Decimal
    churn_rate: Decimal = Field(..., description="(paused + cancelled) / total * 100")
    billing_cycle_breakdown: Dict[str, CycleBreakdown]
    subscriptions_by_status: Dict[str, int]
    forecast: List[ForecastMonth]


class Cohort(BaseModel):
    month: str = Field(..., description="YYYY-MM de creación")
    created: int = 0
    active: int = 0
    paused: int = 0
    cancelled: int = 0
    total_revenue: Decimal = Decimal("0.00")


class CohortAnalysis(BaseModel):
    cohorts: List[Cohort]


# ===== SCHEDULER =====

class DueSubscription(BaseModel):
    """Foto de una suscripción vencida al momento de seleccionarla."""
    owner_id: str
    subscription_id: str
    next_billing_date: datetime


class TickFailure(BaseModel):
    subscription_id: str
    error: str


class TickReport(BaseModel):
    due: int = 0
    generated: List[str] = []
    skipped: List[str] = []
    failed: List[TickFailure] = []
