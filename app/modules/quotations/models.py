from app.database.database import Base
from sqlalchemy import Column, String, DateTime, Enum, JSON
from app.modules.billing.models import BillingDocumentMixin
import enum


class QuotationStatus(str, enum.Enum):
    DRAFT = "draft"                                         # Solo visible para el vendor
    SENT_TO_PM_FOR_REVIEW = "sent_to_pm_for_review"
    PO_SENT_TO_PM_FOR_REVIEW = "po_sent_to_pm_for_review"   # Al crear una orden de compra
    APPROVED = "approved"
    REJECTED = "rejected"


class Quotation(Base, BillingDocumentMixin):
    __tablename__ = "quotations"

    quotation_id = Column(String(64), primary_key=True)
    status = Column(Enum(QuotationStatus), nullable=False, default=QuotationStatus.DRAFT, index=True)

    sent_to_pm_at = Column(DateTime, nullable=True)
    # {pm_id, status, feedback, approved_at}
    pm_approval = Column(JSON, nullable=True)
    pdf_url = Column(String(1000), nullable=True)
