from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import CallerContext
from app.modules.billing.events import EventSink, get_event_sink
from app.modules.billing.schemas import DocumentStats, StatusUpdate
from app.modules.billing.service import page_size
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.schemas import InvoiceCreate, InvoiceUpdate, InvoiceOut

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """
    Crear una factura manual en borrador.

    Puede referenciar una cotización propia (quote_id).
    """
    service = InvoiceService(db, event_sink)
    return service.create_invoice(caller, invoice_data)


@router.get("", response_model=List[InvoiceOut])
def list_invoices(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    workspace_id: Optional[str] = Query(None),
    task_id: Optional[str] = Query(None),
    subtask_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="draft, sent_to_pm, approved_by_pm, rejected_by_pm, paid, void"),
    subscription_id: Optional[str] = Query(None, description="Facturas generadas por una suscripción"),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = InvoiceService(db, event_sink=None)
    return service.list(
        caller,
        owner_id=owner_id,
        filters={
            "workspace_id": workspace_id,
            "task_id": task_id,
            "subtask_id": subtask_id,
            "status": status,
            "subscription_id": subscription_id,
        },
        limit=page_size(limit),
        offset=offset
    )


@router.get("/stats", response_model=DocumentStats)
def invoice_stats(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = InvoiceService(db, event_sink=None)
    return service.stats(caller, owner_id)


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: str,
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = InvoiceService(db, event_sink=None)
    return service.get(caller, invoice_id, owner_id)


@router.put("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
    invoice_id: str,
    invoice_update: InvoiceUpdate,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """
    Actualizar una factura propia (no pagada ni anulada).

    Si se envían ítems se recalculan los totales.
    """
    service = InvoiceService(db, event_sink)
    return service.update_invoice(caller, invoice_id, invoice_update)


@router.put("/{invoice_id}/status", response_model=InvoiceOut)
def update_invoice_status(
    invoice_id: str,
    status_data: StatusUpdate,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    """
    Cambiar el estado de una factura.

    - vendor: draft -> sent_to_pm, draft -> void, approved_by_pm -> paid
    - project-manager: sent_to_pm -> approved_by_pm | rejected_by_pm
    """
    service = InvoiceService(db, event_sink)
    return service.update_status(
        caller, invoice_id, status_data.status,
        feedback=status_data.feedback, owner_id=status_data.owner_id
    )
