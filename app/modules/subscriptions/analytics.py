"""
Proyecciones de ingresos recurrentes (MRR/ARR, pronóstico mensual, cohortes).

Solo lectura: trabaja sobre las suscripciones ya cargadas y no modifica nada.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List

from dateutil.relativedelta import relativedelta

from app.modules.billing.calculator import to_decimal
from .models import BillingCycle, Subscription, SubscriptionStatus
from .schemas import Cohort, CohortAnalysis, CycleBreakdown, ForecastMonth, RevenueForecast
from .service import monthly_equivalent, summarize_by_cycle

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES)


def month_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


def current_mrr(active: List[Subscription]) -> Decimal:
    """Todas las cadencias normalizadas a su equivalente mensual."""
    return sum((monthly_equivalent(s.amount, s.billing_cycle) for s in active), ZERO)


def monthly_forecast(active: List[Subscription], months: int, now: datetime) -> List[ForecastMonth]:
    """
    Por cada uno de los próximos `months` meses: base mensual (suscripciones
    Monthly) más las no mensuales cuyo next_billing_date cae en ese mes.
    """
    buckets = summarize_by_cycle(active)
    monthly = buckets[BillingCycle.MONTHLY]
    baseline = sum((to_decimal(s.amount) for s in monthly), ZERO)
    non_monthly = buckets[BillingCycle.QUARTERLY] + buckets[BillingCycle.ANNUAL]

    first_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    forecast = []
    for offset in range(months):
        month = month_key(first_month + relativedelta(months=offset))
        billed = [s for s in non_monthly if s.next_billing_date and month_key(s.next_billing_date) == month]
        forecast.append(ForecastMonth(
            month=month,
            projected_revenue=_money(baseline + sum((to_decimal(s.amount) for s in billed), ZERO)),
            billing_count=len(monthly) + len(billed),
        ))
    return forecast


def revenue_forecast(subscriptions: List[Subscription], months: int, now: datetime) -> RevenueForecast:
    active = [s for s in subscriptions if s.status == SubscriptionStatus.ACTIVE]
    by_status: Dict[str, int] = {status.value: 0 for status in SubscriptionStatus}
    for subscription in subscriptions:
        by_status[subscription.status.value] += 1

    mrr = current_mrr(active)
    total_amount = sum((to_decimal(s.amount) for s in active), ZERO)
    avg_value = total_amount / len(active) if active else ZERO

    churned = by_status[SubscriptionStatus.PAUSED.value] + by_status[SubscriptionStatus.CANCELLED.value]
    churn_rate = Decimal(churned) / Decimal(len(subscriptions)) * 100 if subscriptions else ZERO

    breakdown = {
        cycle.value: CycleBreakdown(
            count=len(items),
            revenue=_money(sum((to_decimal(s.amount) for s in items), ZERO))
        )
        for cycle, items in summarize_by_cycle(active).items()
    }

    return RevenueForecast(
        total_active_subscriptions=len(active),
        current_mrr=_money(mrr),
        current_arr=_money(mrr * 12),
        avg_subscription_value=_money(avg_value),
        churn_rate=_money(churn_rate),
        billing_cycle_breakdown=breakdown,
        subscriptions_by_status=by_status,
        forecast=monthly_forecast(active, months, now),
    )


def cohort_analysis(subscriptions: List[Subscription]) -> CohortAnalysis:
    """Suscripciones agrupadas por mes de creación."""
    cohorts: Dict[str, Cohort] = {}
    for subscription in subscriptions:
        key = month_key(subscription.created_at)
        cohort = cohorts.setdefault(key, Cohort(month=key))
        cohort.created += 1
        setattr(cohort, subscription.status.value, getattr(cohort, subscription.status.value) + 1)
        cohort.total_revenue += to_decimal(subscription.amount)

    ordered = [cohorts[key] for key in sorted(cohorts)]
    for cohort in ordered:
        cohort.total_revenue = _money(cohort.total_revenue)
    return CohortAnalysis(cohorts=ordered)
