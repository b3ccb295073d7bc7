from app.database.database import Base
from sqlalchemy import Column, String, Numeric, JSON
from app.common.mixins import OwnerMixin, TimestampMixin


class BillingDocumentMixin(OwnerMixin, TimestampMixin):
    """Columnas compartidas por cotizaciones, órdenes de compra, facturas y notas crédito."""

    custom_document_id = Column(String(100), nullable=True, index=True)

    # Cliente al que se emite el documento
    counterparty_id = Column(String(64), nullable=True, index=True)
    counterparty_name = Column(String(255), nullable=True)

    line_items = Column(JSON, nullable=False, default=list)

    # Totales
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    cgst = Column(Numeric(15, 2), nullable=False, default=0)
    sgst = Column(Numeric(15, 2), nullable=False, default=0)
    igst = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    # Vínculo con proyecto/workspace
    project_id = Column(String(64), nullable=True)
    workspace_id = Column(String(64), nullable=True, index=True)
    task_id = Column(String(64), nullable=True, index=True)
    subtask_id = Column(String(64), nullable=True, index=True)
    client_id = Column(String(64), nullable=True)

    # Campos poco usados (alias de numeración, fechas de la cotización, notas...)
    extra = Column(JSON, nullable=False, default=dict)


class ProjectRecord(Base):
    """Proyecto de un workspace; lo mantiene el módulo de workspaces."""
    __tablename__ = "pm_projects"

    project_id = Column(String(64), primary_key=True)
    workspace_id = Column(String(64), nullable=False, index=True)
    client_id = Column(String(64), nullable=True)
    source_client_id = Column(String(64), nullable=True)
    name = Column(String(255), nullable=True)
