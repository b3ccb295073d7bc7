from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import date, datetime

from app.modules.billing.schemas import BillingDocumentBase, BillingDocumentUpdate, BillingDocumentOut
from app.modules.quotations.models import QuotationStatus


class QuotationFields(BaseModel):
    """Numeración personalizada (alias) y datos de presentación de la cotización."""
    custom_quote_id: Optional[str] = Field(None, max_length=100)
    quote_number: Optional[str] = Field(None, max_length=100)
    quote_code: Optional[str] = Field(None, max_length=100)
    quote_no: Optional[str] = Field(None, max_length=100)
    quotation_date: Optional[date] = None
    expiry_date: Optional[date] = None
    terms_and_conditions: Optional[str] = None
    customer_notes: Optional[str] = None
    project_name: Optional[str] = Field(None, max_length=255)
    workspace_name: Optional[str] = Field(None, max_length=255)
    task_name: Optional[str] = Field(None, max_length=255)
    subtask_name: Optional[str] = Field(None, max_length=255)


class QuotationCreate(QuotationFields, BillingDocumentBase):
    pass


class QuotationUpdate(QuotationFields, BillingDocumentUpdate):
    pass


class QuotationPdfUpdate(BaseModel):
    pdf_url: str = Field(..., min_length=1, max_length=1000)


class QuotationOut(BillingDocumentOut):
    quotation_id: str
    status: QuotationStatus
    sent_to_pm_at: Optional[datetime] = None
    pm_approval: Optional[Dict[str, Any]] = None
    pdf_url: Optional[str] = None
