from pydantic import BaseModel, Field
from typing import Optional
from datetime import date

from app.modules.billing.schemas import BillingDocumentBase, BillingDocumentUpdate, BillingDocumentOut
from app.modules.credit_notes.models import CreditNoteStatus


class CreditNoteFields(BaseModel):
    custom_credit_note_id: Optional[str] = Field(None, max_length=100)
    credit_note_number: Optional[str] = Field(None, max_length=100)
    credit_note_code: Optional[str] = Field(None, max_length=100)
    credit_note_no: Optional[str] = Field(None, max_length=100)
    credit_note_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = None


class CreditNoteCreate(CreditNoteFields, BillingDocumentBase):
    invoice_id: Optional[str] = Field(None, max_length=64, description="Factura que corrige")


class CreditNoteUpdate(CreditNoteFields, BillingDocumentUpdate):
    pass


class CreditNoteOut(BillingDocumentOut):
    credit_note_id: str
    invoice_id: Optional[str] = None
    status: CreditNoteStatus
