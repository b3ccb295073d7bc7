from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import date

from app.modules.billing.schemas import BillingDocumentBase, BillingDocumentUpdate, BillingDocumentOut
from app.modules.invoices.models import InvoiceStatus


class InvoiceFields(BaseModel):
    custom_invoice_id: Optional[str] = Field(None, max_length=100)
    invoice_number: Optional[str] = Field(None, max_length=100)
    invoice_code: Optional[str] = Field(None, max_length=100)
    invoice_no: Optional[str] = Field(None, max_length=100)
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None


class InvoiceCreate(InvoiceFields, BillingDocumentBase):
    quote_id: Optional[str] = Field(None, max_length=64, description="Cotización de origen")


class InvoiceUpdate(InvoiceFields, BillingDocumentUpdate):
    pass


class InvoiceOut(BillingDocumentOut):
    invoice_id: str
    quote_id: Optional[str] = None
    subscription_id: Optional[str] = None
    status: InvoiceStatus
    pm_approval: Optional[Dict[str, Any]] = None
    pdf_url: Optional[str] = None
