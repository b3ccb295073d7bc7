"""
Tests para el módulo de cotizaciones

- Creación con totales calculados o informados
- Numeración personalizada y vínculo con el proyecto
- Aislamiento entre vendors y visibilidad para el PM
- Envío al PM y aprobación/rechazo
"""

import pytest
from decimal import Decimal

from app.common.exceptions import DocumentNotFoundError
from app.modules.billing.models import ProjectRecord
from app.modules.quotations.models import QuotationStatus
from app.modules.quotations.schemas import QuotationCreate
from app.modules.quotations.service import QuotationService
from conftest import VENDOR_ID


def quotation_payload(**overrides):
    payload = {
        "counterparty_id": "client-1",
        "counterparty_name": "ACME Ltda",
        "line_items": [
            {"description": "Diseño", "amount": "1000", "cgst_amount": "90", "sgst_amount": "90"}
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def project(db_session):
    db_session.add(ProjectRecord(project_id="P-1", workspace_id="W-1", client_id="C-1", name="Portal"))
    db_session.commit()


def create_quotation(client, headers, **overrides):
    response = client.post("/quotations", json=quotation_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# ===== CREACIÓN =====

class TestCreateQuotation:

    def test_totals_from_items(self, client, vendor_headers, event_sink):
        data = create_quotation(client, vendor_headers)

        assert data["quotation_id"].startswith("QT-")
        assert data["owner_id"] == VENDOR_ID
        assert data["status"] == "draft"
        assert Decimal(data["subtotal"]) == Decimal("1000")
        assert Decimal(data["cgst"]) == Decimal("90")
        assert Decimal(data["sgst"]) == Decimal("90")
        assert Decimal(data["total"]) == Decimal("1180")
        assert event_sink.names() == ["quotation.created"]

    def test_display_id_falls_back_to_quotation_id(self, client, vendor_headers):
        data = create_quotation(client, vendor_headers)
        assert data["custom_document_id"] == data["quotation_id"]

    def test_supplied_aggregates(self, client, vendor_headers):
        data = create_quotation(client, vendor_headers, subtotal="900", total="950")
        assert Decimal(data["subtotal"]) == Decimal("900")
        assert Decimal(data["total"]) == Decimal("950")

    def test_empty_items(self, client, vendor_headers):
        data = create_quotation(client, vendor_headers, line_items=[])
        assert Decimal(data["total"]) == 0

    def test_custom_number_aliases(self, client, vendor_headers):
        data = create_quotation(client, vendor_headers, quote_code="COT-2025-001", quote_no="ignored")
        assert data["custom_document_id"] == "COT-2025-001"
        assert data["extra"]["custom_quote_id"] == "COT-2025-001"
        assert data["extra"]["quote_no"] == "COT-2025-001"

    def test_presentation_fields_kept(self, client, vendor_headers):
        data = create_quotation(
            client, vendor_headers,
            quotation_date="2025-03-01", terms_and_conditions="30 días", extra={"color": "azul"}
        )
        assert data["extra"]["quotation_date"] == "2025-03-01"
        assert data["extra"]["terms_and_conditions"] == "30 días"
        assert data["extra"]["color"] == "azul"

    def test_project_linkage_resolved(self, client, vendor_headers, project):
        data = create_quotation(client, vendor_headers, workspace_id="W-1", project_id="otro", client_id="C-9")
        assert data["project_id"] == "P-1"
        assert data["client_id"] == "C-1"

    def test_unknown_workspace_does_not_fail(self, client, vendor_headers):
        data = create_quotation(client, vendor_headers, workspace_id="W-404", client_id="C-9")
        assert data["client_id"] == "C-9"
        assert data["project_id"] is None

    def test_missing_counterparty(self, client, vendor_headers):
        payload = quotation_payload()
        del payload["counterparty_id"]
        response = client.post("/quotations", json=payload, headers=vendor_headers)
        assert response.status_code == 422

    def test_cannot_write_other_partition(self, client, vendor_headers):
        response = client.post("/quotations", json=quotation_payload(owner_id="vendor-2"), headers=vendor_headers)
        assert response.status_code == 403


# ===== LECTURA =====

class TestReadQuotations:

    def test_vendor_isolation(self, client, vendor_headers, other_vendor_headers):
        own = create_quotation(client, vendor_headers)
        create_quotation(client, other_vendor_headers)

        listing = client.get("/quotations", headers=vendor_headers).json()
        assert [q["quotation_id"] for q in listing] == [own["quotation_id"]]

        response = client.get(f"/quotations/{own['quotation_id']}", headers=other_vendor_headers)
        assert response.status_code == 404

        response = client.get("/quotations", params={"owner_id": VENDOR_ID}, headers=other_vendor_headers)
        assert response.status_code == 403

    def test_pm_does_not_see_drafts(self, client, vendor_headers, pm_headers):
        draft = create_quotation(client, vendor_headers)
        sent = create_quotation(client, vendor_headers)
        client.put(f"/quotations/{sent['quotation_id']}/send-to-pm", headers=vendor_headers)

        listing = client.get("/quotations", headers=pm_headers).json()
        assert [q["quotation_id"] for q in listing] == [sent["quotation_id"]]

        response = client.get(f"/quotations/{draft['quotation_id']}", headers=pm_headers)
        assert response.status_code == 404
        assert client.get("/quotations", params={"status": "draft"}, headers=pm_headers).json() == []

    def test_filters(self, client, vendor_headers):
        create_quotation(client, vendor_headers, workspace_id="W-1", task_id="T-1")
        create_quotation(client, vendor_headers, workspace_id="W-2")

        listing = client.get("/quotations", params={"task_id": "T-1"}, headers=vendor_headers).json()
        assert len(listing) == 1
        assert listing[0]["workspace_id"] == "W-1"

    def test_invalid_status_filter(self, client, vendor_headers):
        response = client.get("/quotations", params={"status": "archived"}, headers=vendor_headers)
        assert response.status_code == 400

    def test_stats(self, client, vendor_headers, pm_headers):
        first = create_quotation(client, vendor_headers)
        create_quotation(client, vendor_headers, line_items=[], total="20")
        client.put(f"/quotations/{first['quotation_id']}/send-to-pm", headers=vendor_headers)
        client.put(f"/quotations/{first['quotation_id']}/status", json={"status": "approved"}, headers=pm_headers)

        stats = client.get("/quotations/stats", headers=vendor_headers).json()
        assert stats["total_count"] == 2
        assert Decimal(stats["total_value"]) == Decimal("1200")
        assert stats["approved_count"] == 1
        assert stats["by_status"] == {"approved": 1, "draft": 1}
        assert stats["this_month_count"] == 2


# ===== EDICIÓN =====

class TestUpdateQuotation:

    def test_new_items_recompute_totals(self, client, vendor_headers, event_sink):
        quotation = create_quotation(client, vendor_headers, total="5000")
        response = client.put(
            f"/quotations/{quotation['quotation_id']}",
            json={"line_items": [{"description": "Horas", "quantity": "2", "unit_amount": "100", "igst_rate": "18"}]},
            headers=vendor_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["subtotal"]) == Decimal("200")
        assert Decimal(data["igst"]) == Decimal("36")
        assert Decimal(data["total"]) == Decimal("236")
        assert "quotation.updated" in event_sink.names()

    def test_partial_update_keeps_other_fields(self, client, vendor_headers):
        quotation = create_quotation(client, vendor_headers, task_id="T-1")
        response = client.put(
            f"/quotations/{quotation['quotation_id']}",
            json={"counterparty_name": "Nuevo nombre"},
            headers=vendor_headers
        )
        data = response.json()
        assert data["counterparty_name"] == "Nuevo nombre"
        assert data["task_id"] == "T-1"
        assert Decimal(data["total"]) == Decimal("1180")

    def test_workspace_change_restamps_project(self, client, vendor_headers, project):
        quotation = create_quotation(client, vendor_headers)
        response = client.put(
            f"/quotations/{quotation['quotation_id']}", json={"workspace_id": "W-1"}, headers=vendor_headers
        )
        assert response.json()["project_id"] == "P-1"

    def test_empty_update(self, client, vendor_headers):
        quotation = create_quotation(client, vendor_headers)
        response = client.put(f"/quotations/{quotation['quotation_id']}", json={}, headers=vendor_headers)
        assert response.status_code == 400

    def test_other_vendor_cannot_update(self, client, vendor_headers, other_vendor_headers):
        quotation = create_quotation(client, vendor_headers)
        response = client.put(
            f"/quotations/{quotation['quotation_id']}", json={"counterparty_name": "X"}, headers=other_vendor_headers
        )
        assert response.status_code == 404

    def test_pdf_url(self, client, vendor_headers):
        quotation = create_quotation(client, vendor_headers)
        response = client.patch(
            f"/quotations/{quotation['quotation_id']}",
            json={"pdf_url": "https://files.example.com/q.pdf"},
            headers=vendor_headers
        )
        assert response.json()["pdf_url"] == "https://files.example.com/q.pdf"


# ===== FLUJO DE APROBACIÓN =====

class TestQuotationLifecycle:

    def test_send_and_approve(self, client, vendor_headers, pm_headers, event_sink, project):
        quotation = create_quotation(client, vendor_headers, workspace_id="W-1")
        quotation_id = quotation["quotation_id"]

        sent = client.put(f"/quotations/{quotation_id}/send-to-pm", headers=vendor_headers)
        assert sent.status_code == 200
        assert sent.json()["status"] == "sent_to_pm_for_review"
        assert sent.json()["sent_to_pm_at"] is not None

        approved = client.put(
            f"/quotations/{quotation_id}/status",
            json={"status": "approved", "feedback": "OK"},
            headers=pm_headers
        )
        assert approved.status_code == 200
        data = approved.json()
        assert data["status"] == "approved"
        assert data["pm_approval"]["pm_id"] == "pm-1"
        assert data["pm_approval"]["feedback"] == "OK"
        assert "quotation.sent_to_pm" in event_sink.names()
        assert event_sink.names()[-1] == "quotation.status_changed"

    def test_pm_rejects(self, client, vendor_headers, pm_headers):
        quotation = create_quotation(client, vendor_headers)
        client.put(f"/quotations/{quotation['quotation_id']}/send-to-pm", headers=vendor_headers)
        response = client.put(
            f"/quotations/{quotation['quotation_id']}/status",
            json={"status": "rejected", "feedback": "Muy caro", "owner_id": VENDOR_ID},
            headers=pm_headers
        )
        assert response.json()["status"] == "rejected"

    def test_send_twice_is_invalid(self, client, vendor_headers):
        quotation = create_quotation(client, vendor_headers)
        client.put(f"/quotations/{quotation['quotation_id']}/send-to-pm", headers=vendor_headers)
        response = client.put(f"/quotations/{quotation['quotation_id']}/send-to-pm", headers=vendor_headers)
        assert response.status_code == 400

    def test_approved_cannot_go_back_to_draft(self, client, vendor_headers, pm_headers):
        quotation = create_quotation(client, vendor_headers)
        quotation_id = quotation["quotation_id"]
        client.put(f"/quotations/{quotation_id}/send-to-pm", headers=vendor_headers)
        client.put(f"/quotations/{quotation_id}/status", json={"status": "approved"}, headers=pm_headers)

        response = client.put(f"/quotations/{quotation_id}/status", json={"status": "draft"}, headers=pm_headers)
        assert response.status_code == 400

    def test_missing_quotation(self, client, pm_headers):
        response = client.put("/quotations/QT-404/status", json={"status": "approved"}, headers=pm_headers)
        assert response.status_code == 404


class TestQuotationService:

    def test_mark_po_sent_never_raises(self, db_session, vendor, event_sink):
        service = QuotationService(db_session, event_sink)
        assert service.mark_po_sent(vendor, "QT-404") is False

    def test_mark_po_sent_from_draft(self, db_session, vendor, event_sink):
        service = QuotationService(db_session, event_sink)
        quotation = service.create_quotation(vendor, QuotationCreate(**quotation_payload()))

        assert service.mark_po_sent(vendor, quotation.quotation_id) is True
        assert service.get(vendor, quotation.quotation_id).status == QuotationStatus.PO_SENT_TO_PM_FOR_REVIEW

    def test_get_missing(self, db_session, vendor):
        with pytest.raises(DocumentNotFoundError):
            QuotationService(db_session).get(vendor, "QT-404")
