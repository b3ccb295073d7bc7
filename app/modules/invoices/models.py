from app.database.database import Base
from sqlalchemy import Column, String, Enum, JSON
from app.modules.billing.models import BillingDocumentMixin
import enum


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"                     # Borrador, editable
    SENT_TO_PM = "sent_to_pm"           # En revisión del PM
    APPROVED_BY_PM = "approved_by_pm"
    REJECTED_BY_PM = "rejected_by_pm"
    PAID = "paid"                       # Pagada
    VOID = "void"                       # Anulada


class Invoice(Base, BillingDocumentMixin):
    __tablename__ = "invoices"

    invoice_id = Column(String(64), primary_key=True)

    # Origen: cotización (factura manual) o suscripción (factura recurrente)
    quote_id = Column(String(64), nullable=True, index=True)
    subscription_id = Column(String(64), nullable=True, index=True)

    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT, index=True)
    pm_approval = Column(JSON, nullable=True)
    pdf_url = Column(String(1000), nullable=True)
