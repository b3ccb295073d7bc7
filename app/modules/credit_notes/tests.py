"""
Tests para notas crédito
"""

import pytest
from decimal import Decimal

from app.common.exceptions import DocumentAuthorizationError
from app.modules.credit_notes.schemas import CreditNoteCreate
from app.modules.credit_notes.service import CreditNoteService

CREDIT_NOTE = {
    "counterparty_id": "client-1",
    "credit_note_no": "NC-15",
    "reason": "Descuento por demora",
    "line_items": [{"description": "Ajuste", "amount": "50", "cgst_rate": "9", "sgst_rate": "9"}],
}


@pytest.fixture
def invoice(client, vendor_headers):
    response = client.post(
        "/invoices",
        json={"counterparty_id": "client-1", "workspace_id": "W-3", "task_id": "T-3",
              "line_items": [{"description": "Servicio", "amount": "500"}]},
        headers=vendor_headers
    )
    return response.json()


class TestCreditNotes:

    def test_create_for_invoice(self, client, vendor_headers, invoice, event_sink):
        response = client.post(
            "/credit-notes", json={**CREDIT_NOTE, "invoice_id": invoice["invoice_id"]}, headers=vendor_headers
        )
        assert response.status_code == 201, response.text
        data = response.json()

        assert data["credit_note_id"].startswith("CN-")
        assert data["status"] == "draft"
        assert data["invoice_id"] == invoice["invoice_id"]
        assert data["custom_document_id"] == "NC-15"
        assert data["extra"]["credit_note_number"] == "NC-15"
        assert data["extra"]["reason"] == "Descuento por demora"
        assert data["task_id"] == "T-3"
        assert Decimal(data["cgst"]) == Decimal("4.50")
        assert Decimal(data["total"]) == Decimal("59")
        assert "credit_note.created" in event_sink.names()

    def test_standalone(self, client, vendor_headers):
        response = client.post("/credit-notes", json=CREDIT_NOTE, headers=vendor_headers)
        assert response.status_code == 201
        assert response.json()["invoice_id"] is None

    def test_display_id_falls_back_to_credit_note_id(self, client, vendor_headers):
        payload = {key: value for key, value in CREDIT_NOTE.items() if key != "credit_note_no"}
        data = client.post("/credit-notes", json=payload, headers=vendor_headers).json()
        assert data["custom_document_id"] == data["credit_note_id"]

    def test_invoice_of_other_vendor(self, client, other_vendor_headers, invoice):
        response = client.post(
            "/credit-notes", json={**CREDIT_NOTE, "invoice_id": invoice["invoice_id"]}, headers=other_vendor_headers
        )
        assert response.status_code == 404

    def test_update(self, client, vendor_headers):
        credit_note = client.post("/credit-notes", json=CREDIT_NOTE, headers=vendor_headers).json()
        response = client.put(
            f"/credit-notes/{credit_note['credit_note_id']}",
            json={"reason": "Devolución parcial", "line_items": [{"description": "Ajuste", "amount": "80"}]},
            headers=vendor_headers
        )
        data = response.json()
        assert data["extra"]["reason"] == "Devolución parcial"
        assert data["extra"]["credit_note_no"] == "NC-15"
        assert Decimal(data["total"]) == Decimal("80")

    def test_list_by_invoice_and_stats(self, client, vendor_headers, pm_headers, invoice):
        client.post("/credit-notes", json={**CREDIT_NOTE, "invoice_id": invoice["invoice_id"]}, headers=vendor_headers)
        client.post("/credit-notes", json=CREDIT_NOTE, headers=vendor_headers)

        listing = client.get(
            "/credit-notes", params={"invoice_id": invoice["invoice_id"]}, headers=vendor_headers
        ).json()
        assert len(listing) == 1

        stats = client.get("/credit-notes/stats", headers=pm_headers).json()
        assert stats["total_count"] == 2
        assert stats["approved_count"] == 0
        assert stats["by_status"] == {"draft": 2}

    def test_service_requires_vendor(self, db_session, pm):
        with pytest.raises(DocumentAuthorizationError):
            CreditNoteService(db_session).create_credit_note(pm, CreditNoteCreate(**CREDIT_NOTE))
