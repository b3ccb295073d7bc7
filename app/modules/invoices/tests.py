"""
Tests para facturas manuales

- Creación, referencia a cotización y numeración personalizada
- Flujo de estados por rol (envío, aprobación del PM, pago, anulación)
- Restricción de edición en facturas pagadas o anuladas
"""

import pytest
from decimal import Decimal

from conftest import VENDOR_ID

INVOICE = {
    "counterparty_id": "client-1",
    "invoice_number": "FAC-001",
    "invoice_date": "2025-04-01",
    "due_date": "2025-05-01",
    "line_items": [
        {"description": "Soporte mensual", "amount": "200", "igst_rate": "18"}
    ],
}


@pytest.fixture
def invoice(client, vendor_headers):
    response = client.post("/invoices", json=INVOICE, headers=vendor_headers)
    assert response.status_code == 201, response.text
    return response.json()


def set_status(client, headers, invoice_id, status, **body):
    return client.put(f"/invoices/{invoice_id}/status", json={"status": status, **body}, headers=headers)


class TestCreateInvoice:

    def test_create(self, invoice, event_sink):
        assert invoice["invoice_id"].startswith("INV-")
        assert invoice["status"] == "draft"
        assert invoice["custom_document_id"] == "FAC-001"
        assert invoice["extra"]["custom_invoice_id"] == "FAC-001"
        assert invoice["extra"]["due_date"] == "2025-05-01"
        assert Decimal(invoice["igst"]) == Decimal("36")
        assert Decimal(invoice["total"]) == Decimal("236")
        assert event_sink.names() == ["invoice.created"]

    def test_display_id_falls_back_to_invoice_id(self, client, vendor_headers):
        payload = {key: value for key, value in INVOICE.items() if key != "invoice_number"}
        data = client.post("/invoices", json=payload, headers=vendor_headers).json()
        assert data["custom_document_id"] == data["invoice_id"]
        assert "custom_invoice_id" not in data["extra"]

    def test_quote_must_exist_in_partition(self, client, vendor_headers):
        response = client.post("/invoices", json={**INVOICE, "quote_id": "QT-404"}, headers=vendor_headers)
        assert response.status_code == 404

    def test_quote_of_other_vendor(self, client, vendor_headers, other_vendor_headers):
        quotation = client.post(
            "/quotations", json={"counterparty_id": "client-1"}, headers=other_vendor_headers
        ).json()
        response = client.post(
            "/invoices", json={**INVOICE, "quote_id": quotation["quotation_id"]}, headers=vendor_headers
        )
        assert response.status_code == 404

    def test_inherits_linkage_from_quote(self, client, vendor_headers):
        quotation = client.post(
            "/quotations",
            json={"counterparty_id": "client-1", "workspace_id": "W-5", "subtask_id": "S-5"},
            headers=vendor_headers
        ).json()
        response = client.post(
            "/invoices", json={**INVOICE, "quote_id": quotation["quotation_id"]}, headers=vendor_headers
        )
        data = response.json()
        assert data["workspace_id"] == "W-5"
        assert data["subtask_id"] == "S-5"

    def test_pm_cannot_create(self, client, pm_headers):
        assert client.post("/invoices", json=INVOICE, headers=pm_headers).status_code == 403


class TestInvoiceLifecycle:

    def test_full_flow(self, client, vendor_headers, pm_headers, invoice, event_sink):
        invoice_id = invoice["invoice_id"]

        sent = set_status(client, vendor_headers, invoice_id, "sent_to_pm")
        assert sent.json()["status"] == "sent_to_pm"

        approved = set_status(client, pm_headers, invoice_id, "approved_by_pm", feedback="Conforme")
        assert approved.json()["status"] == "approved_by_pm"
        assert approved.json()["pm_approval"]["feedback"] == "Conforme"

        paid = set_status(client, vendor_headers, invoice_id, "paid")
        assert paid.json()["status"] == "paid"
        assert event_sink.names().count("invoice.status_changed") == 3

    def test_vendor_cannot_approve(self, client, vendor_headers, invoice):
        invoice_id = invoice["invoice_id"]
        set_status(client, vendor_headers, invoice_id, "sent_to_pm")
        assert set_status(client, vendor_headers, invoice_id, "approved_by_pm").status_code == 403

    def test_pm_cannot_mark_paid(self, client, vendor_headers, pm_headers, invoice):
        invoice_id = invoice["invoice_id"]
        set_status(client, vendor_headers, invoice_id, "sent_to_pm")
        set_status(client, pm_headers, invoice_id, "approved_by_pm")
        assert set_status(client, pm_headers, invoice_id, "paid").status_code == 403

    def test_cannot_pay_draft(self, client, vendor_headers, invoice):
        assert set_status(client, vendor_headers, invoice["invoice_id"], "paid").status_code == 400

    def test_other_vendor_cannot_change_status(self, client, other_vendor_headers, invoice):
        response = set_status(client, other_vendor_headers, invoice["invoice_id"], "sent_to_pm")
        assert response.status_code == 404

    def test_pm_rejection(self, client, vendor_headers, pm_headers, invoice):
        invoice_id = invoice["invoice_id"]
        set_status(client, vendor_headers, invoice_id, "sent_to_pm")
        response = set_status(client, pm_headers, invoice_id, "rejected_by_pm", owner_id=VENDOR_ID)
        assert response.json()["status"] == "rejected_by_pm"
        assert response.json()["pm_approval"]["status"] == "rejected_by_pm"


class TestUpdateInvoice:

    def test_update_supplied_total(self, client, vendor_headers, invoice):
        response = client.put(
            f"/invoices/{invoice['invoice_id']}", json={"total": "250"}, headers=vendor_headers
        )
        data = response.json()
        assert Decimal(data["total"]) == Decimal("250")
        assert Decimal(data["subtotal"]) == Decimal("200")

    def test_paid_invoice_is_locked(self, client, vendor_headers, pm_headers, invoice):
        invoice_id = invoice["invoice_id"]
        set_status(client, vendor_headers, invoice_id, "sent_to_pm")
        set_status(client, pm_headers, invoice_id, "approved_by_pm")
        set_status(client, vendor_headers, invoice_id, "paid")

        response = client.put(f"/invoices/{invoice_id}", json={"notes": "tarde"}, headers=vendor_headers)
        assert response.status_code == 400

    def test_void_invoice_is_locked(self, client, vendor_headers, invoice):
        invoice_id = invoice["invoice_id"]
        set_status(client, vendor_headers, invoice_id, "void")
        response = client.put(f"/invoices/{invoice_id}", json={"notes": "x"}, headers=vendor_headers)
        assert response.status_code == 400


class TestReadInvoices:

    def test_list_and_stats(self, client, vendor_headers, pm_headers, invoice):
        client.post("/invoices", json={**INVOICE, "line_items": [], "total": "100"}, headers=vendor_headers)
        set_status(client, vendor_headers, invoice["invoice_id"], "sent_to_pm")

        drafts = client.get("/invoices", params={"status": "draft"}, headers=vendor_headers).json()
        assert len(drafts) == 1

        stats = client.get("/invoices/stats", headers=pm_headers).json()
        assert stats["total_count"] == 2
        assert Decimal(stats["total_value"]) == Decimal("336")
        assert stats["by_status"] == {"draft": 1, "sent_to_pm": 1}

    def test_pm_reads_any_partition(self, client, pm_headers, invoice):
        response = client.get(f"/invoices/{invoice['invoice_id']}", headers=pm_headers)
        assert response.status_code == 200
        assert response.json()["owner_id"] == VENDOR_ID

    def test_pagination(self, client, vendor_headers, invoice):
        for _ in range(3):
            client.post("/invoices", json=INVOICE, headers=vendor_headers)
        page = client.get("/invoices", params={"limit": 2, "offset": 1}, headers=vendor_headers).json()
        assert len(page) == 2
