"""
Tests para suscripciones recurrentes

- Aritmética de ciclos (fin de mes, bisiestos, trimestral, anual)
- Pausa/reanudación y operaciones masivas con fallos parciales
- Scheduler: una factura por ciclo, ticks concurrentes, aislamiento de fallos
- Historial, facturación bajo demanda, estadísticas y analítica
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from app.common.exceptions import ConditionalWriteError, DocumentValidationError
from app.common.mixins import utcnow
from app.modules.invoices.models import Invoice
from app.modules.invoices.service import InvoiceService
from app.modules.subscriptions import analytics
from app.modules.subscriptions import tasks
from app.modules.subscriptions.models import BillingCycle, Subscription, SubscriptionStatus
from app.modules.subscriptions.scheduler import (
    FAILED, GENERATED, SKIPPED, RecurringInvoiceScheduler
)
from app.modules.subscriptions.schemas import SubscriptionCreate
from app.modules.subscriptions.service import SubscriptionService, advance_billing_date
from conftest import VENDOR_ID


def new_subscription(service, caller, **overrides):
    data = {
        "counterparty_id": "client-1",
        "billing_cycle": "Monthly",
        "amount": "100",
        "start_date": datetime(2025, 1, 31),
    }
    data.update(overrides)
    return service.create_subscription(caller, SubscriptionCreate(**data))


def invoice_count(db, subscription_id):
    return db.query(Invoice).filter(Invoice.subscription_id == subscription_id).count()


# ===== CICLOS =====

class TestAdvanceBillingDate:

    def test_month_end_clamps(self):
        assert advance_billing_date(datetime(2025, 1, 31), BillingCycle.MONTHLY) == datetime(2025, 2, 28)

    def test_leap_year(self):
        assert advance_billing_date(datetime(2024, 1, 31), BillingCycle.MONTHLY) == datetime(2024, 2, 29)
        assert advance_billing_date(datetime(2024, 2, 29), BillingCycle.ANNUAL) == datetime(2025, 2, 28)

    def test_quarterly_is_three_calendar_months(self):
        start = datetime(2025, 1, 31)
        assert advance_billing_date(start, BillingCycle.QUARTERLY) == datetime(2025, 4, 30)
        # Tres pasos mensuales arrastran el recorte de febrero
        stepped = start
        for _ in range(3):
            stepped = advance_billing_date(stepped, BillingCycle.MONTHLY)
        assert stepped == datetime(2025, 4, 28)

    def test_annual(self):
        assert advance_billing_date(datetime(2025, 6, 15, 9, 30), BillingCycle.ANNUAL) == datetime(2026, 6, 15, 9, 30)

    def test_cycle_aliases(self):
        data = SubscriptionCreate(counterparty_id="c", billing_cycle="Yearly", amount="1")
        assert data.billing_cycle == BillingCycle.ANNUAL
        with pytest.raises(ValueError):
            SubscriptionCreate(counterparty_id="c", billing_cycle="weekly", amount="1")


# ===== CRUD =====

class TestSubscriptionCrud:

    def test_create_via_api(self, client, vendor_headers, event_sink):
        response = client.post(
            "/subscriptions",
            json={
                "counterparty_id": "client-1",
                "billing_cycle": "Quarterly",
                "amount": "300",
                "start_date": "2025-01-31T00:00:00",
            },
            headers=vendor_headers
        )
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["subscription_id"].startswith("SUB-")
        assert data["status"] == "active"
        assert data["invoices_generated"] == 0
        assert data["next_billing_date"].startswith("2025-04-30")
        assert event_sink.names() == ["subscription.created"]

    def test_end_date_must_follow_start(self, db_session, vendor):
        with pytest.raises(DocumentValidationError):
            new_subscription(
                SubscriptionService(db_session), vendor,
                start_date=datetime(2025, 5, 1), end_date=datetime(2025, 4, 1)
            )

    def test_create_with_utc_suffix(self, db_session, client, vendor_headers):
        """Fechas ISO con 'Z' (toISOString) se guardan en UTC sin tzinfo."""
        response = client.post(
            "/subscriptions",
            json={
                "counterparty_id": "client-1",
                "billing_cycle": "Monthly",
                "amount": "100",
                "start_date": "2025-01-31T00:00:00.000Z",
                "end_date": "2030-01-01T00:00:00.000Z",
            },
            headers=vendor_headers
        )
        assert response.status_code == 201, response.text
        stored = db_session.get(Subscription, (VENDOR_ID, response.json()["subscription_id"]))
        assert stored.start_date == datetime(2025, 1, 31)
        assert stored.end_date == datetime(2030, 1, 1)
        assert stored.next_billing_date == datetime(2025, 2, 28)

    def test_create_with_offset_converts_to_utc(self, db_session, client, vendor_headers):
        response = client.post(
            "/subscriptions",
            json={
                "counterparty_id": "client-1",
                "billing_cycle": "Monthly",
                "amount": "100",
                "start_date": "2025-03-10T05:30:00+05:30",
            },
            headers=vendor_headers
        )
        assert response.status_code == 201, response.text
        stored = db_session.get(Subscription, (VENDOR_ID, response.json()["subscription_id"]))
        assert stored.start_date == datetime(2025, 3, 10, 0, 0)
        assert stored.next_billing_date == datetime(2025, 4, 10, 0, 0)

    def test_update_end_date_with_timezone(self, db_session, vendor, client, vendor_headers):
        subscription = new_subscription(SubscriptionService(db_session), vendor)
        url = f"/subscriptions/{subscription.subscription_id}"

        response = client.put(url, json={"end_date": "2030-01-01T00:00:00Z"}, headers=vendor_headers)
        assert response.status_code == 200, response.text
        assert response.json()["end_date"].startswith("2030-01-01T00:00:00")

        response = client.put(url, json={"end_date": "2025-01-31T02:00:00+05:30"}, headers=vendor_headers)
        assert response.status_code == 400

    def test_pm_cannot_create(self, client, pm_headers):
        response = client.post(
            "/subscriptions",
            json={"counterparty_id": "client-1", "billing_cycle": "Monthly", "amount": "10"},
            headers=pm_headers
        )
        assert response.status_code == 403

    def test_update_cycle_keeps_next_date(self, db_session, vendor, client, vendor_headers):
        subscription = new_subscription(SubscriptionService(db_session), vendor)
        response = client.put(
            f"/subscriptions/{subscription.subscription_id}",
            json={"billing_cycle": "annual", "amount": "1200"},
            headers=vendor_headers
        )
        data = response.json()
        assert data["billing_cycle"] == "annual"
        assert Decimal(data["amount"]) == Decimal("1200")
        assert data["next_billing_date"].startswith("2025-02-28")

    def test_update_status_only_cancel(self, db_session, vendor, client, vendor_headers):
        subscription = new_subscription(SubscriptionService(db_session), vendor)
        url = f"/subscriptions/{subscription.subscription_id}"

        assert client.put(url, json={"status": "paused"}, headers=vendor_headers).status_code == 400
        response = client.put(url, json={"status": "cancelled"}, headers=vendor_headers)
        assert response.json()["status"] == "cancelled"

    def test_delete(self, db_session, vendor, client, vendor_headers):
        subscription = new_subscription(SubscriptionService(db_session), vendor)
        url = f"/subscriptions/{subscription.subscription_id}"

        assert client.delete(url, headers=vendor_headers).status_code == 204
        assert client.get(url, headers=vendor_headers).status_code == 404

    def test_isolation(self, db_session, vendor, other_vendor, client, other_vendor_headers, pm_headers):
        service = SubscriptionService(db_session)
        own = new_subscription(service, vendor)
        new_subscription(service, other_vendor)

        listing = client.get("/subscriptions", headers=other_vendor_headers).json()
        assert [s["owner_id"] for s in listing] == ["vendor-2"]
        assert client.get(f"/subscriptions/{own.subscription_id}", headers=other_vendor_headers).status_code == 404
        assert len(client.get("/subscriptions", headers=pm_headers).json()) == 2


# ===== PAUSA / REANUDACIÓN =====

class TestPauseResume:

    def test_pause_keeps_next_date(self, db_session, vendor, event_sink):
        service = SubscriptionService(db_session, event_sink)
        subscription = new_subscription(service, vendor)

        paused = service.pause_subscription(vendor, subscription.subscription_id)
        assert paused.status == SubscriptionStatus.PAUSED
        assert paused.paused_at is not None
        assert paused.next_billing_date == datetime(2025, 2, 28)
        assert "subscription.paused" in event_sink.names()

    def test_pause_twice(self, db_session, vendor):
        service = SubscriptionService(db_session)
        subscription = new_subscription(service, vendor)
        service.pause_subscription(vendor, subscription.subscription_id)
        with pytest.raises(DocumentValidationError):
            service.pause_subscription(vendor, subscription.subscription_id)

    def test_resume_recomputes_from_now(self, db_session, vendor):
        service = SubscriptionService(db_session)
        subscription = new_subscription(service, vendor)
        service.pause_subscription(vendor, subscription.subscription_id)

        resume_at = datetime(2025, 6, 10, 12, 0)
        resumed = service.resume_subscription(vendor, subscription.subscription_id, now=resume_at)
        assert resumed.status == SubscriptionStatus.ACTIVE
        assert resumed.resumed_at == resume_at
        assert resumed.next_billing_date == datetime(2025, 7, 10, 12, 0)
        assert resumed.next_billing_date > resume_at

    def test_resume_via_api_is_after_now(self, db_session, vendor, client, vendor_headers):
        service = SubscriptionService(db_session)
        subscription = new_subscription(service, vendor, start_date=datetime(2024, 1, 1))
        service.pause_subscription(vendor, subscription.subscription_id)

        before = utcnow()
        response = client.put(f"/subscriptions/{subscription.subscription_id}/resume", headers=vendor_headers)
        assert response.status_code == 200
        assert datetime.fromisoformat(response.json()["next_billing_date"]) > before

    def test_resume_discards_later_pre_pause_date(self, db_session, vendor):
        """La fecha previa a la pausa no se conserva aunque sea posterior."""
        service = SubscriptionService(db_session)
        subscription = new_subscription(service, vendor, start_date=datetime(2030, 1, 1),
                                        billing_cycle=BillingCycle.ANNUAL)
        assert subscription.next_billing_date == datetime(2031, 1, 1)
        service.pause_subscription(vendor, subscription.subscription_id)

        resumed = service.resume_subscription(vendor, subscription.subscription_id, now=datetime(2026, 1, 1))
        assert resumed.next_billing_date == datetime(2027, 1, 1)

    def test_resume_active(self, db_session, vendor):
        service = SubscriptionService(db_session)
        subscription = new_subscription(service, vendor)
        with pytest.raises(DocumentValidationError):
            service.resume_subscription(vendor, subscription.subscription_id)


class TestBulkOperations:

    def test_bulk_pause_partial_failure(self, db_session, vendor, client, vendor_headers):
        service = SubscriptionService(db_session)
        first = new_subscription(service, vendor)
        second = new_subscription(service, vendor)

        ids = [first.subscription_id, "SUB-inexistente", second.subscription_id]
        response = client.put("/subscriptions/bulk/pause", json={"subscription_ids": ids}, headers=vendor_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["succeeded"] == [first.subscription_id, second.subscription_id]
        assert data["failed"] == ["SUB-inexistente"]
        assert data["errors"][0]["status_code"] == 404

    def test_bulk_resume_reports_invalid_state(self, db_session, vendor):
        service = SubscriptionService(db_session)
        paused = new_subscription(service, vendor)
        active = new_subscription(service, vendor)
        service.pause_subscription(vendor, paused.subscription_id)

        result = service.bulk_resume(vendor, [paused.subscription_id, active.subscription_id])
        assert result.succeeded == [paused.subscription_id]
        assert result.failed == [active.subscription_id]
        assert result.errors[0].status_code == 400

    def test_bulk_requires_ids(self, client, vendor_headers):
        response = client.put("/subscriptions/bulk/pause", json={"subscription_ids": []}, headers=vendor_headers)
        assert response.status_code == 422


# ===== SCHEDULER =====

class TestRecurringInvoiceScheduler:

    def test_generates_one_invoice_per_cycle(self, db_session, vendor, event_sink):
        subscription = new_subscription(
            SubscriptionService(db_session), vendor, custom_subscription_id="PLAN-ORO",
            items=[{"description": "Plan Oro", "amount": "100", "igst_rate": "18"}]
        )
        scheduler = RecurringInvoiceScheduler(db_session, event_sink)
        now = datetime(2025, 3, 1)

        report = scheduler.run_tick(now)
        assert report.due == 1
        assert report.generated == [subscription.subscription_id]

        invoice = db_session.query(Invoice).filter(Invoice.subscription_id == subscription.subscription_id).one()
        assert invoice.owner_id == VENDOR_ID
        assert invoice.status.value == "draft"
        assert invoice.total == Decimal("118")
        assert invoice.custom_document_id.startswith("PLAN-ORO-INV-")
        assert invoice.extra["billing_period_start"].startswith("2025-02-28")

        refreshed = scheduler.subscriptions.get(VENDOR_ID, subscription.subscription_id, refresh=True)
        assert refreshed.next_billing_date == datetime(2025, 3, 28)
        assert refreshed.invoices_generated == 1
        assert refreshed.last_invoice_date == now
        assert "invoice.generated" in event_sink.names()

        # Mismo instante: ya no está vencida
        second = scheduler.run_tick(now)
        assert second.due == 0
        assert invoice_count(db_session, subscription.subscription_id) == 1

    def test_amount_used_without_items(self, db_session, vendor):
        subscription = new_subscription(SubscriptionService(db_session), vendor, amount="250")
        RecurringInvoiceScheduler(db_session).run_tick(datetime(2025, 3, 1))

        invoice = db_session.query(Invoice).filter(Invoice.subscription_id == subscription.subscription_id).one()
        assert invoice.subtotal == Decimal("250")
        assert invoice.total == Decimal("250")

    def test_not_due_paused_or_ended(self, db_session, vendor):
        service = SubscriptionService(db_session)
        new_subscription(service, vendor, start_date=datetime(2025, 3, 1))
        paused = new_subscription(service, vendor)
        service.pause_subscription(vendor, paused.subscription_id)
        new_subscription(service, vendor, end_date=datetime(2025, 2, 1))

        report = RecurringInvoiceScheduler(db_session).run_tick(datetime(2025, 3, 1))
        assert report.due == 0
        assert db_session.query(Invoice).count() == 0

    def test_concurrent_ticks_bill_once(self, session_factory, vendor):
        db_a, db_b = session_factory(), session_factory()
        try:
            subscription = new_subscription(SubscriptionService(db_a), vendor)
            now = datetime(2025, 3, 1)
            scheduler_a = RecurringInvoiceScheduler(db_a)
            scheduler_b = RecurringInvoiceScheduler(db_b)

            due_a = scheduler_a.select_due(now)
            due_b = scheduler_b.select_due(now)
            assert len(due_a) == len(due_b) == 1

            assert scheduler_a.process(due_a[0], now) == (GENERATED, None)
            assert scheduler_b.process(due_b[0], now) == (SKIPPED, None)
            assert invoice_count(db_a, subscription.subscription_id) == 1
        finally:
            db_a.close()
            db_b.close()

    def test_lost_race_rolls_back_invoice(self, session_factory, vendor, monkeypatch):
        db_a, db_b = session_factory(), session_factory()
        try:
            subscription = new_subscription(SubscriptionService(db_a), vendor)
            now = datetime(2025, 3, 1)
            scheduler_a = RecurringInvoiceScheduler(db_a)
            scheduler_b = RecurringInvoiceScheduler(db_b)
            due = scheduler_b.select_due(now)[0]

            original_build = InvoiceService.build_subscription_invoice
            raced = []

            def racing_build(self, sub, moment):
                # El otro tick termina entre la lectura y la escritura condicional
                if not raced:
                    raced.append(True)
                    scheduler_a.run_cycle(due, moment)
                return original_build(self, sub, moment)

            monkeypatch.setattr(InvoiceService, "build_subscription_invoice", racing_build)

            with pytest.raises(ConditionalWriteError):
                scheduler_b.run_cycle(due, now)
            assert invoice_count(db_a, subscription.subscription_id) == 1

            refreshed = scheduler_a.subscriptions.get(VENDOR_ID, subscription.subscription_id, refresh=True)
            assert refreshed.invoices_generated == 1
            assert refreshed.next_billing_date == datetime(2025, 3, 28)
        finally:
            db_a.close()
            db_b.close()

    def test_failure_is_isolated(self, db_session, vendor, monkeypatch):
        service = SubscriptionService(db_session)
        broken = new_subscription(service, vendor)
        healthy = new_subscription(service, vendor)
        original_build = InvoiceService.build_subscription_invoice

        def flaky_build(self, subscription, now):
            if subscription.subscription_id == broken.subscription_id:
                raise RuntimeError("plantilla corrupta")
            return original_build(self, subscription, now)

        monkeypatch.setattr(InvoiceService, "build_subscription_invoice", flaky_build)

        scheduler = RecurringInvoiceScheduler(db_session)
        report = scheduler.run_tick(datetime(2025, 3, 1))
        assert report.generated == [healthy.subscription_id]
        assert [f.subscription_id for f in report.failed] == [broken.subscription_id]
        assert "plantilla corrupta" in report.failed[0].error

        untouched = scheduler.subscriptions.get(VENDOR_ID, broken.subscription_id, refresh=True)
        assert untouched.next_billing_date == datetime(2025, 2, 28)
        assert untouched.invoices_generated == 0
        assert invoice_count(db_session, broken.subscription_id) == 0

    def test_process_reports_failure(self, db_session, vendor, monkeypatch):
        subscription = new_subscription(SubscriptionService(db_session), vendor)
        scheduler = RecurringInvoiceScheduler(db_session)
        due = scheduler.select_due(datetime(2025, 3, 1))[0]

        def broken_build(self, subscription, now):
            raise RuntimeError("sin conexión")

        monkeypatch.setattr(InvoiceService, "build_subscription_invoice", broken_build)
        outcome, error = scheduler.process(due, datetime(2025, 3, 1))
        assert outcome == FAILED
        assert error == "sin conexión"
        assert invoice_count(db_session, subscription.subscription_id) == 0

    def test_catches_up_one_cycle_per_tick(self, db_session, vendor):
        subscription = new_subscription(SubscriptionService(db_session), vendor, start_date=datetime(2025, 1, 1))
        scheduler = RecurringInvoiceScheduler(db_session)
        now = datetime(2025, 5, 15)

        for _ in range(4):
            assert scheduler.run_tick(now).generated == [subscription.subscription_id]
        assert scheduler.run_tick(now).due == 0

        refreshed = scheduler.subscriptions.get(VENDOR_ID, subscription.subscription_id, refresh=True)
        assert refreshed.invoices_generated == 4
        assert refreshed.next_billing_date == datetime(2025, 6, 1)

    def test_celery_task(self, db_session, session_factory, vendor, monkeypatch):
        subscription = new_subscription(SubscriptionService(db_session), vendor, start_date=datetime(2024, 1, 1))
        monkeypatch.setattr(tasks, "SessionLocal", session_factory)

        result = tasks.process_subscription_billing()
        assert result["generated"] == [subscription.subscription_id]
        assert result["failed"] == []


# ===== FACTURACIÓN BAJO DEMANDA E HISTORIAL =====

class TestGenerateAndHistory:

    def test_generate_invoice_now(self, db_session, vendor, client, vendor_headers, pm_headers):
        subscription = new_subscription(SubscriptionService(db_session), vendor, start_date=datetime(2030, 1, 1))
        url = f"/subscriptions/{subscription.subscription_id}"

        response = client.post(f"{url}/generate-invoice", headers=vendor_headers)
        assert response.status_code == 201, response.text
        invoice = response.json()
        assert invoice["subscription_id"] == subscription.subscription_id
        assert Decimal(invoice["total"]) == Decimal("100")

        refreshed = client.get(url, headers=vendor_headers).json()
        assert refreshed["invoices_generated"] == 1
        assert refreshed["next_billing_date"].startswith("2030-03-01")

        history = client.get(f"{url}/history", headers=pm_headers).json()
        assert [entry["invoice_id"] for entry in history] == [invoice["invoice_id"]]
        assert history[0]["type"] == "invoice_generated"

        by_subscription = client.get(
            "/invoices", params={"subscription_id": subscription.subscription_id}, headers=vendor_headers
        ).json()
        assert len(by_subscription) == 1

    def test_generate_for_paused(self, db_session, vendor, client, vendor_headers):
        service = SubscriptionService(db_session)
        subscription = new_subscription(service, vendor)
        service.pause_subscription(vendor, subscription.subscription_id)

        response = client.post(
            f"/subscriptions/{subscription.subscription_id}/generate-invoice", headers=vendor_headers
        )
        assert response.status_code == 400

    def test_history_newest_first(self, db_session, vendor):
        service = SubscriptionService(db_session)
        subscription = new_subscription(service, vendor, start_date=datetime(2025, 1, 1))
        scheduler = RecurringInvoiceScheduler(db_session)
        scheduler.run_tick(datetime(2025, 2, 1))
        scheduler.run_tick(datetime(2025, 3, 1))

        history = service.get_history(vendor, subscription.subscription_id)
        assert len(history) == 2
        assert history[0].date >= history[1].date


# ===== ESTADÍSTICAS Y ANALÍTICA =====

def transient(cycle, amount, status=SubscriptionStatus.ACTIVE, next_billing_date=None, created_at=None):
    return Subscription(
        owner_id=VENDOR_ID,
        subscription_id=f"SUB-{cycle.value}-{amount}",
        counterparty_id="client-1",
        billing_cycle=cycle,
        amount=Decimal(amount),
        start_date=datetime(2024, 1, 1),
        next_billing_date=next_billing_date or datetime(2025, 2, 1),
        status=status,
        invoices_generated=0,
        created_at=created_at or datetime(2025, 1, 5),
    )


class TestStatsAndAnalytics:

    def test_stats(self, db_session, vendor, client, vendor_headers):
        service = SubscriptionService(db_session)
        new_subscription(service, vendor, amount="100")
        new_subscription(service, vendor, billing_cycle="Quarterly", amount="300")
        new_subscription(service, vendor, billing_cycle="Annual", amount="1200")
        paused = new_subscription(service, vendor, amount="999")
        service.pause_subscription(vendor, paused.subscription_id)

        stats = client.get("/subscriptions/stats", headers=vendor_headers).json()
        assert stats["total"] == 4
        assert stats["active"] == 3
        assert stats["paused"] == 1
        assert Decimal(stats["monthly_revenue"]) == Decimal("300.00")
        assert Decimal(stats["annual_revenue"]) == Decimal("3600.00")

    def test_revenue_forecast(self):
        subscriptions = [
            transient(BillingCycle.MONTHLY, "100"),
            transient(BillingCycle.QUARTERLY, "300", next_billing_date=datetime(2025, 3, 10)),
            transient(BillingCycle.ANNUAL, "1200", next_billing_date=datetime(2025, 2, 1)),
            transient(BillingCycle.MONTHLY, "50", status=SubscriptionStatus.CANCELLED),
        ]
        forecast = analytics.revenue_forecast(subscriptions, 3, datetime(2025, 1, 15))

        assert forecast.total_active_subscriptions == 3
        assert forecast.current_mrr == Decimal("300.00")
        assert forecast.current_arr == Decimal("3600.00")
        assert forecast.avg_subscription_value == Decimal("533.33")
        assert forecast.churn_rate == Decimal("25.00")
        assert forecast.subscriptions_by_status == {"active": 3, "paused": 0, "cancelled": 1}
        assert forecast.billing_cycle_breakdown["quarterly"].revenue == Decimal("300.00")
        assert [(m.month, m.projected_revenue, m.billing_count) for m in forecast.forecast] == [
            ("2025-01", Decimal("100.00"), 1),
            ("2025-02", Decimal("1300.00"), 2),
            ("2025-03", Decimal("400.00"), 2),
        ]

    def test_forecast_without_subscriptions(self):
        forecast = analytics.revenue_forecast([], 2, datetime(2025, 12, 1))
        assert forecast.current_mrr == Decimal("0.00")
        assert forecast.churn_rate == Decimal("0.00")
        assert [m.month for m in forecast.forecast] == ["2025-12", "2026-01"]

    def test_cohorts(self):
        subscriptions = [
            transient(BillingCycle.MONTHLY, "100", created_at=datetime(2025, 2, 3)),
            transient(BillingCycle.MONTHLY, "40", status=SubscriptionStatus.PAUSED, created_at=datetime(2025, 2, 20)),
            transient(BillingCycle.ANNUAL, "1200", created_at=datetime(2025, 1, 9)),
        ]
        cohorts = analytics.cohort_analysis(subscriptions).cohorts

        assert [c.month for c in cohorts] == ["2025-01", "2025-02"]
        assert cohorts[1].created == 2
        assert cohorts[1].active == 1
        assert cohorts[1].paused == 1
        assert cohorts[1].total_revenue == Decimal("140.00")

    def test_analytics_routes(self, db_session, vendor, client, pm_headers):
        new_subscription(SubscriptionService(db_session), vendor)

        forecast = client.get("/subscriptions/analytics/forecast", params={"months": 6}, headers=pm_headers)
        assert forecast.status_code == 200
        assert len(forecast.json()["forecast"]) == 6

        cohorts = client.get("/subscriptions/analytics/cohorts", headers=pm_headers).json()
        assert cohorts["cohorts"][0]["created"] == 1
