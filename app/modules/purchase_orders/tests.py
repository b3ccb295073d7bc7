"""
Tests para órdenes de compra

- Creación desde una cotización propia (herencia de ítems, totales y vínculo)
- Efecto secundario sobre el estado de la cotización
- Cadena cotización -> orden de compra -> factura
"""

import pytest
from decimal import Decimal

from app.modules.billing.models import ProjectRecord
from app.modules.quotations.service import QuotationService
from conftest import VENDOR_ID

QUOTATION = {
    "counterparty_id": "client-1",
    "counterparty_name": "ACME Ltda",
    "workspace_id": "W-1",
    "task_id": "T-1",
    "quote_number": "COT-7",
    "line_items": [
        {"description": "Implementación", "amount": "1000", "cgst_amount": "90", "sgst_amount": "90"}
    ],
}


@pytest.fixture
def quotation(client, vendor_headers):
    response = client.post("/quotations", json=QUOTATION, headers=vendor_headers)
    assert response.status_code == 201
    return response.json()


def quotation_status(client, headers, quotation_id):
    return client.get(f"/quotations/{quotation_id}", headers=headers).json()["status"]


class TestCreatePurchaseOrder:

    def test_inherits_from_quotation(self, client, vendor_headers, quotation, event_sink):
        response = client.post(
            "/purchase-orders", json={"quotation_id": quotation["quotation_id"]}, headers=vendor_headers
        )
        assert response.status_code == 201, response.text
        data = response.json()

        assert data["purchase_order_id"].startswith("PO-")
        assert data["status"] == "sent_to_pm"
        assert data["status_type"] == "pending"
        assert data["purchase_order_number"] == quotation["quotation_id"]
        assert data["counterparty_id"] == "client-1"
        assert data["task_id"] == "T-1"
        assert data["extra"]["reference_quote_number"] == "COT-7"
        assert Decimal(data["total"]) == Decimal("1180")
        assert len(data["line_items"]) == 1
        assert "purchase_order.created" in event_sink.names()

    def test_display_id_falls_back_to_po_id(self, client, vendor_headers):
        quotation = client.post(
            "/quotations", json={"counterparty_id": "client-1"}, headers=vendor_headers
        ).json()
        data = client.post(
            "/purchase-orders", json={"quotation_id": quotation["quotation_id"]}, headers=vendor_headers
        ).json()
        assert data["custom_document_id"] == data["purchase_order_id"]
        assert data["extra"]["reference_quote_number"] == quotation["quotation_id"]

    def test_custom_number_and_own_items(self, client, vendor_headers, quotation):
        response = client.post(
            "/purchase-orders",
            json={
                "quotation_id": quotation["quotation_id"],
                "custom_po_id": "OC-001",
                "line_items": [{"description": "Parcial", "amount": "500"}],
            },
            headers=vendor_headers
        )
        data = response.json()
        assert data["purchase_order_number"] == "OC-001"
        assert data["custom_document_id"] == "OC-001"
        assert Decimal(data["total"]) == Decimal("500")

    def test_supplied_client_wins(self, client, vendor_headers, quotation, db_session):
        db_session.add(ProjectRecord(project_id="P-1", workspace_id="W-1", client_id="C-resuelto"))
        db_session.commit()

        response = client.post(
            "/purchase-orders",
            json={"quotation_id": quotation["quotation_id"], "client_id": "C-vendor"},
            headers=vendor_headers
        )
        data = response.json()
        assert data["client_id"] == "C-vendor"
        assert data["project_id"] == "P-1"

    def test_quotation_of_other_vendor(self, client, other_vendor_headers, quotation):
        response = client.post(
            "/purchase-orders", json={"quotation_id": quotation["quotation_id"]}, headers=other_vendor_headers
        )
        assert response.status_code == 404

    def test_missing_quotation(self, client, vendor_headers):
        response = client.post("/purchase-orders", json={"quotation_id": "QT-404"}, headers=vendor_headers)
        assert response.status_code == 404

    def test_pm_cannot_create(self, client, pm_headers, quotation):
        response = client.post(
            "/purchase-orders", json={"quotation_id": quotation["quotation_id"]}, headers=pm_headers
        )
        assert response.status_code == 403


class TestQuotationSideEffect:

    def test_quotation_moves_to_po_sent(self, client, vendor_headers, quotation):
        client.post("/purchase-orders", json={"quotation_id": quotation["quotation_id"]}, headers=vendor_headers)
        assert quotation_status(client, vendor_headers, quotation["quotation_id"]) == "po_sent_to_pm_for_review"

    def test_side_effect_failure_keeps_purchase_order(self, client, vendor_headers, quotation, monkeypatch):
        def broken_change_status(self, *args, **kwargs):
            raise RuntimeError("almacén caído")

        monkeypatch.setattr(QuotationService, "change_status", broken_change_status)

        response = client.post(
            "/purchase-orders", json={"quotation_id": quotation["quotation_id"]}, headers=vendor_headers
        )
        assert response.status_code == 201
        purchase_order_id = response.json()["purchase_order_id"]

        monkeypatch.undo()
        assert client.get(f"/purchase-orders/{purchase_order_id}", headers=vendor_headers).status_code == 200
        assert quotation_status(client, vendor_headers, quotation["quotation_id"]) == "draft"

    def test_rejected_quotation_is_not_moved(self, client, vendor_headers, pm_headers, quotation):
        quotation_id = quotation["quotation_id"]
        client.put(f"/quotations/{quotation_id}/send-to-pm", headers=vendor_headers)
        client.put(f"/quotations/{quotation_id}/status", json={"status": "rejected"}, headers=pm_headers)

        response = client.post("/purchase-orders", json={"quotation_id": quotation_id}, headers=vendor_headers)
        assert response.status_code == 201
        assert quotation_status(client, vendor_headers, quotation_id) == "rejected"


class TestReadPurchaseOrders:

    def test_list_and_filters(self, client, vendor_headers, other_vendor_headers, pm_headers, quotation):
        client.post("/purchase-orders", json={"quotation_id": quotation["quotation_id"]}, headers=vendor_headers)

        own = client.get(
            "/purchase-orders", params={"quotation_id": quotation["quotation_id"]}, headers=vendor_headers
        ).json()
        assert len(own) == 1
        assert client.get("/purchase-orders", headers=other_vendor_headers).json() == []

        across = client.get("/purchase-orders", headers=pm_headers).json()
        assert [po["owner_id"] for po in across] == [VENDOR_ID]


class TestDocumentChain:

    def test_quotation_purchase_order_invoice(self, client, vendor_headers, quotation):
        quotation_id = quotation["quotation_id"]
        assert Decimal(quotation["subtotal"]) == Decimal("1000")
        assert Decimal(quotation["cgst"]) + Decimal(quotation["sgst"]) == Decimal("180")
        assert Decimal(quotation["total"]) == Decimal("1180")

        po = client.post("/purchase-orders", json={"quotation_id": quotation_id}, headers=vendor_headers)
        assert po.status_code == 201
        assert quotation_status(client, vendor_headers, quotation_id) == "po_sent_to_pm_for_review"

        invoice = client.post(
            "/invoices",
            json={
                "quote_id": quotation_id,
                "counterparty_id": quotation["counterparty_id"],
                "line_items": quotation["line_items"],
            },
            headers=vendor_headers
        )
        assert invoice.status_code == 201, invoice.text
        data = invoice.json()
        assert data["quote_id"] == quotation_id
        assert data["task_id"] == "T-1"
        assert Decimal(data["total"]) == Decimal("1180")
