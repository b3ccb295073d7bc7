from app.database.database import Base
from sqlalchemy import Column, String, Enum
from app.modules.billing.models import BillingDocumentMixin
import enum


class CreditNoteStatus(str, enum.Enum):
    DRAFT = "draft"


class CreditNote(Base, BillingDocumentMixin):
    __tablename__ = "credit_notes"

    credit_note_id = Column(String(64), primary_key=True)
    # Factura corregida; opcional (nota crédito independiente)
    invoice_id = Column(String(64), nullable=True, index=True)
    status = Column(Enum(CreditNoteStatus), nullable=False, default=CreditNoteStatus.DRAFT, index=True)
