from pydantic import Field
from typing import Optional

from app.modules.billing.schemas import BillingDocumentBase, BillingDocumentOut
from app.modules.purchase_orders.models import PurchaseOrderStatus, PurchaseOrderStatusType


class PurchaseOrderCreate(BillingDocumentBase):
    quotation_id: str = Field(..., min_length=1, max_length=64)
    custom_po_id: Optional[str] = Field(None, max_length=100)
    purchase_order_number: Optional[str] = Field(None, max_length=100)
    reference_quote_number: Optional[str] = Field(None, max_length=100)
    # Si se omite se toma de la cotización
    counterparty_id: Optional[str] = Field(None, min_length=1, max_length=64)


class PurchaseOrderOut(BillingDocumentOut):
    purchase_order_id: str
    quotation_id: str
    purchase_order_number: str
    status: PurchaseOrderStatus
    status_type: PurchaseOrderStatusType
