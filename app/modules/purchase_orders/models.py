from app.database.database import Base
from sqlalchemy import Column, String, Enum
from app.modules.billing.models import BillingDocumentMixin
import enum


class PurchaseOrderStatus(str, enum.Enum):
    SENT_TO_PM = "sent_to_pm"


class PurchaseOrderStatusType(str, enum.Enum):
    PENDING = "pending"


class PurchaseOrder(Base, BillingDocumentMixin):
    """Orden de compra; siempre nace de una cotización del mismo vendor."""
    __tablename__ = "purchase_orders"

    purchase_order_id = Column(String(64), primary_key=True)
    quotation_id = Column(String(64), nullable=False, index=True)
    purchase_order_number = Column(String(100), nullable=False)

    status = Column(Enum(PurchaseOrderStatus), nullable=False, default=PurchaseOrderStatus.SENT_TO_PM, index=True)
    status_type = Column(Enum(PurchaseOrderStatusType), nullable=False, default=PurchaseOrderStatusType.PENDING)
