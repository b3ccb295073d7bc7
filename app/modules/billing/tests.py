"""
Tests para el núcleo de documentos comerciales

- Cálculo de totales (subtotal + CGST + SGST + IGST)
- Identificadores y alias de numeración
- Reglas de autorización y máquinas de estado
- Adaptador de almacenamiento particionado por vendor
- Resolución de proyecto/cliente
- Emisión de eventos best-effort
"""

import re
import pytest
from decimal import Decimal

from app.common.exceptions import (
    ConditionalWriteError, DocumentAuthorizationError, DocumentNotFoundError, DocumentValidationError
)
from app.modules.auth.schemas import CallerRole
from app.modules.billing.calculator import compute_totals, to_decimal
from app.modules.billing.events import LogEventSink, emit_event, get_event_sink
from app.modules.billing.identifiers import (
    QUOTATION_ID_ALIASES, alias_fields, generate_document_id, resolve_custom_id
)
from app.modules.billing.lifecycle import require_owner_write, resolve_read_scope
from app.modules.billing.models import ProjectRecord
from app.modules.billing.references import ReferenceResolver
from app.modules.billing.schemas import LineItem, ProjectLinkage, SuppliedTotals
from app.modules.billing.store import DocumentStore
from app.modules.quotations.models import Quotation, QuotationStatus
from app.modules.quotations.service import QUOTATION_STATE_MACHINE


def item(amount, cgst="0", sgst="0", igst="0", description="Servicio"):
    return LineItem(
        description=description, amount=Decimal(amount),
        cgst_amount=Decimal(cgst), sgst_amount=Decimal(sgst), igst_amount=Decimal(igst)
    )


def new_quotation(owner_id, quotation_id, status=QuotationStatus.DRAFT, total="100"):
    return Quotation(
        owner_id=owner_id, quotation_id=quotation_id, counterparty_id="client-1",
        line_items=[], subtotal=Decimal(total), total=Decimal(total), status=status, extra={}
    )


# ===== CALCULADORA =====

class TestComputeTotals:

    def test_empty_items(self):
        totals = compute_totals([])
        assert totals.subtotal == 0
        assert totals.total == 0
        assert totals.total == totals.subtotal + totals.cgst + totals.sgst + totals.igst

    def test_single_item(self):
        totals = compute_totals([item("1000", cgst="90", sgst="90")])
        assert totals.subtotal == Decimal("1000")
        assert totals.cgst == Decimal("90")
        assert totals.sgst == Decimal("90")
        assert totals.igst == 0
        assert totals.total == Decimal("1180")

    def test_many_items_total_invariant(self):
        items = [item(str(10 * i), cgst="1.25", sgst="1.25", igst=str(i)) for i in range(1, 40)]
        totals = compute_totals(items)
        assert totals.subtotal == sum(Decimal(str(10 * i)) for i in range(1, 40))
        assert totals.total == totals.subtotal + totals.cgst + totals.sgst + totals.igst

    def test_supplied_aggregates_are_trusted(self):
        supplied = SuppliedTotals(subtotal=Decimal("500"), cgst=Decimal("10"), total=Decimal("999"))
        totals = compute_totals([item("1000", cgst="90")], supplied)
        assert totals.subtotal == Decimal("500")
        assert totals.cgst == Decimal("10")
        assert totals.sgst == 0
        assert totals.total == Decimal("999")

    def test_zero_aggregates_fall_back_to_items(self):
        supplied = SuppliedTotals(subtotal=Decimal("0"), total=Decimal("0"))
        totals = compute_totals([item("200", igst="36")], supplied)
        assert totals.subtotal == Decimal("200")
        assert totals.igst == Decimal("36")
        assert totals.total == Decimal("236")

    def test_supplied_subtotal_without_total_recomputes_total(self):
        supplied = SuppliedTotals(subtotal=Decimal("300"))
        totals = compute_totals([item("200", cgst="18", sgst="18")], supplied)
        assert totals.total == Decimal("336")

    def test_items_as_stored_json(self):
        stored = [{"amount": "150.50", "cgst_amount": "13.55", "sgst_amount": "13.55", "igst_amount": None}]
        totals = compute_totals(stored)
        assert totals.subtotal == Decimal("150.50")
        assert totals.total == Decimal("177.60")

    def test_to_decimal(self):
        assert to_decimal(None) == 0
        assert to_decimal("") == 0
        assert to_decimal("abc") == 0
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(7) == Decimal("7")


class TestLineItem:

    def test_amount_derived_from_quantity(self):
        line = LineItem(description="Horas", quantity=Decimal("3"), unit_amount=Decimal("25.50"))
        assert line.amount == Decimal("76.50")

    def test_tax_amount_derived_from_rate(self):
        line = LineItem(description="Licencia", amount=Decimal("1000"), cgst_rate=Decimal("9"), sgst_rate=Decimal("9"))
        assert line.cgst_amount == Decimal("90.00")
        assert line.sgst_amount == Decimal("90.00")
        assert line.igst_amount == Decimal("0.00")

    def test_explicit_tax_amount_wins(self):
        line = LineItem(description="X", amount=Decimal("100"), igst_rate=Decimal("18"), igst_amount=Decimal("17"))
        assert line.igst_amount == Decimal("17")


# ===== IDENTIFICADORES =====

class TestIdentifiers:

    def test_generate_document_id_format(self):
        document_id = generate_document_id("QT")
        assert re.fullmatch(r"QT-\d{13}-[0-9a-f]{8}", document_id)

    def test_generated_ids_are_unique(self):
        assert len({generate_document_id("INV") for _ in range(200)}) == 200

    def test_first_non_empty_alias_wins(self):
        values = {"custom_quote_id": "  ", "quote_number": None, "quote_code": "QC-9", "quote_no": "Q-1"}
        assert resolve_custom_id(values, QUOTATION_ID_ALIASES) == "QC-9"

    def test_no_alias(self):
        assert resolve_custom_id({}, QUOTATION_ID_ALIASES) is None

    def test_alias_fields(self):
        assert alias_fields("Q-7", QUOTATION_ID_ALIASES) == {alias: "Q-7" for alias in QUOTATION_ID_ALIASES}
        assert alias_fields(None, QUOTATION_ID_ALIASES) == {}


# ===== AUTORIZACIÓN Y ESTADOS =====

class TestLifecycleRules:

    def test_owner_write_requires_vendor(self, pm):
        with pytest.raises(DocumentAuthorizationError):
            require_owner_write(pm, None)

    def test_owner_write_rejects_other_partition(self, vendor):
        with pytest.raises(DocumentAuthorizationError):
            require_owner_write(vendor, "vendor-2")
        assert require_owner_write(vendor, vendor.caller_id) == vendor.caller_id

    def test_read_scope(self, vendor, pm):
        assert resolve_read_scope(vendor) == vendor.caller_id
        assert resolve_read_scope(pm) is None
        assert resolve_read_scope(pm, "vendor-9") == "vendor-9"
        with pytest.raises(DocumentAuthorizationError):
            resolve_read_scope(vendor, "vendor-9")

    def test_invalid_transition(self, pm):
        with pytest.raises(DocumentValidationError):
            QUOTATION_STATE_MACHINE.check(QuotationStatus.DRAFT, QuotationStatus.APPROVED, pm)

    def test_transition_wrong_role(self, vendor):
        with pytest.raises(DocumentAuthorizationError):
            QUOTATION_STATE_MACHINE.check(
                QuotationStatus.SENT_TO_PM_FOR_REVIEW, QuotationStatus.APPROVED, vendor
            )

    def test_targets_from(self):
        targets = QUOTATION_STATE_MACHINE.targets_from(
            QuotationStatus.SENT_TO_PM_FOR_REVIEW, CallerRole.PROJECT_MANAGER
        )
        assert set(targets) == {QuotationStatus.APPROVED, QuotationStatus.REJECTED}

    def test_parse_status(self):
        assert QUOTATION_STATE_MACHINE.parse_status("Approved") == QuotationStatus.APPROVED
        with pytest.raises(DocumentValidationError):
            QUOTATION_STATE_MACHINE.parse_status("archived")


# ===== ALMACENAMIENTO =====

class TestDocumentStore:

    def test_put_and_get(self, db_session):
        store = DocumentStore(db_session, Quotation, "quotation_id")
        store.put("vendor-1", new_quotation(None, "QT-1"))
        db_session.commit()

        doc = store.get("vendor-1", "QT-1")
        assert doc.owner_id == "vendor-1"
        assert doc.created_at is not None
        assert store.get("vendor-2", "QT-1") is None

    def test_put_rejects_owner_change(self, db_session):
        store = DocumentStore(db_session, Quotation, "quotation_id")
        with pytest.raises(DocumentValidationError):
            store.put("vendor-1", new_quotation("vendor-2", "QT-1"))

    def test_update_fields_rejects_key_fields(self, db_session):
        store = DocumentStore(db_session, Quotation, "quotation_id")
        store.put("vendor-1", new_quotation(None, "QT-1"))
        for field in ("owner_id", "quotation_id", "created_at"):
            with pytest.raises(DocumentValidationError):
                store.update_fields("vendor-1", "QT-1", {field: "x"})

    def test_update_fields_rejects_unknown_fields(self, db_session):
        store = DocumentStore(db_session, Quotation, "quotation_id")
        store.put("vendor-1", new_quotation(None, "QT-1"))
        with pytest.raises(DocumentValidationError):
            store.update_fields("vendor-1", "QT-1", {"color": "red"})

    def test_update_fields_sets_updated_at(self, db_session):
        store = DocumentStore(db_session, Quotation, "quotation_id")
        created = store.put("vendor-1", new_quotation(None, "QT-1"))
        before = created.updated_at
        updated = store.update_fields("vendor-1", "QT-1", {"counterparty_name": "ACME"})
        assert updated.counterparty_name == "ACME"
        assert updated.updated_at >= before

    def test_update_missing_document(self, db_session):
        store = DocumentStore(db_session, Quotation, "quotation_id")
        with pytest.raises(DocumentNotFoundError):
            store.update_fields("vendor-1", "QT-404", {"counterparty_name": "ACME"})

    def test_conditional_update_conflict(self, db_session):
        store = DocumentStore(db_session, Quotation, "quotation_id")
        store.put("vendor-1", new_quotation(None, "QT-1"))
        with pytest.raises(ConditionalWriteError):
            store.update_fields(
                "vendor-1", "QT-1", {"status": QuotationStatus.APPROVED},
                expected={"status": QuotationStatus.SENT_TO_PM_FOR_REVIEW}
            )
        assert store.get("vendor-1", "QT-1", refresh=True).status == QuotationStatus.DRAFT

    def test_query_by_owner_isolation_and_scan(self, db_session):
        store = DocumentStore(db_session, Quotation, "quotation_id")
        store.put("vendor-1", new_quotation(None, "QT-1"))
        store.put("vendor-1", new_quotation(None, "QT-2", status=QuotationStatus.APPROVED))
        store.put("vendor-2", new_quotation(None, "QT-3"))
        db_session.commit()

        own = store.query_by_owner("vendor-1")
        assert {doc.quotation_id for doc in own} == {"QT-1", "QT-2"}
        approved = store.query_by_owner("vendor-1", {"status": QuotationStatus.APPROVED})
        assert [doc.quotation_id for doc in approved] == ["QT-2"]
        assert len(store.scan_all()) == 3
        assert len(store.scan_all({"status": [QuotationStatus.DRAFT]})) == 2

    def test_delete(self, db_session):
        store = DocumentStore(db_session, Quotation, "quotation_id")
        store.put("vendor-1", new_quotation(None, "QT-1"))
        store.delete("vendor-1", "QT-1")
        assert store.get("vendor-1", "QT-1") is None
        with pytest.raises(DocumentNotFoundError):
            store.delete("vendor-1", "QT-1")


# ===== REFERENCIAS =====

class TestReferenceResolver:

    def test_resolves_project_and_client(self, db_session):
        db_session.add(ProjectRecord(project_id="P-1", workspace_id="W-1", client_id="C-1"))
        db_session.commit()

        context = ReferenceResolver(db_session).resolve_project_context("W-1")
        assert context.project_id == "P-1"
        assert context.client_id == "C-1"

    def test_falls_back_to_source_client(self, db_session):
        db_session.add(ProjectRecord(project_id="P-2", workspace_id="W-2", source_client_id="SC-2"))
        db_session.commit()
        assert ReferenceResolver(db_session).resolve_project_context("W-2").client_id == "SC-2"

    def test_not_found_is_not_fatal(self, db_session):
        resolver = ReferenceResolver(db_session)
        assert resolver.resolve_project_context("W-missing") is None
        assert resolver.resolve_project_context(None) is None

        linkage = ProjectLinkage(workspace_id="W-missing", project_id="mine", client_id="C-mine")
        assert resolver.stamp(linkage) == linkage

    def test_stamp_client_preference(self, db_session):
        db_session.add(ProjectRecord(project_id="P-1", workspace_id="W-1", client_id="C-1"))
        db_session.commit()
        resolver = ReferenceResolver(db_session)
        linkage = ProjectLinkage(workspace_id="W-1", project_id="stale", client_id="C-payload")

        stamped = resolver.stamp(linkage)
        assert stamped.project_id == "P-1"
        assert stamped.client_id == "C-1"
        assert resolver.stamp(linkage, prefer_supplied_client=True).client_id == "C-payload"


# ===== EVENTOS =====

class TestEvents:

    def test_emit_failure_is_swallowed(self):
        class BrokenSink(LogEventSink):
            def emit(self, event):
                raise RuntimeError("broker caído")

        emit_event(BrokenSink(), "invoice.created", "vendor-1", "INV-1")

    def test_emit_records_event(self, event_sink):
        emit_event(event_sink, "quotation.created", "vendor-1", "QT-1", total="10")
        assert event_sink.names() == ["quotation.created"]
        assert event_sink.events[0].payload == {"total": "10"}

    def test_log_sink_selected_by_settings(self):
        assert isinstance(get_event_sink(), LogEventSink)


class TestHealth:

    def test_health_checks_database(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "ok"
