from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import CallerContext
from app.modules.billing.events import EventSink, get_event_sink
from app.modules.billing.schemas import DocumentStats, StatusUpdate
from app.modules.billing.service import page_size
from app.modules.quotations.service import QuotationService
from app.modules.quotations.schemas import QuotationCreate, QuotationUpdate, QuotationOut, QuotationPdfUpdate

quotations_router = APIRouter(prefix="/quotations", tags=["Quotations"])


@quotations_router.post("", response_model=QuotationOut, status_code=status.HTTP_201_CREATED)
def create_quotation(
    quotation_data: QuotationCreate,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """
    Crear una cotización en borrador.

    Los totales se calculan desde los ítems salvo que se envíen agregados distintos de cero.
    """
    service = QuotationService(db, event_sink)
    return service.create_quotation(caller, quotation_data)


@quotations_router.get("", response_model=List[QuotationOut])
def list_quotations(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    workspace_id: Optional[str] = Query(None),
    task_id: Optional[str] = Query(None),
    subtask_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="draft, sent_to_pm_for_review, po_sent_to_pm_for_review, approved, rejected"),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    """
    Listar cotizaciones.

    El vendor solo ve las suyas; el PM ve las de todos los vendors excepto borradores.
    """
    service = QuotationService(db, event_sink=None)
    return service.list(
        caller,
        owner_id=owner_id,
        filters={"workspace_id": workspace_id, "task_id": task_id, "subtask_id": subtask_id, "status": status},
        limit=page_size(limit),
        offset=offset
    )


@quotations_router.get("/stats", response_model=DocumentStats)
def quotation_stats(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = QuotationService(db, event_sink=None)
    return service.stats(caller, owner_id)


@quotations_router.get("/{quotation_id}", response_model=QuotationOut)
def get_quotation(
    quotation_id: str,
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = QuotationService(db, event_sink=None)
    return service.get(caller, quotation_id, owner_id)


@quotations_router.put("/{quotation_id}", response_model=QuotationOut)
def update_quotation(
    quotation_id: str,
    quotation_update: QuotationUpdate,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """
    Actualizar una cotización propia.

    Si se envían ítems se recalculan subtotal, impuestos y total.
    """
    service = QuotationService(db, event_sink)
    return service.update_quotation(caller, quotation_id, quotation_update)


@quotations_router.patch("/{quotation_id}", response_model=QuotationOut)
def update_quotation_pdf(
    quotation_id: str,
    pdf_data: QuotationPdfUpdate,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """Guardar la URL del PDF generado"""
    service = QuotationService(db, event_sink=None)
    return service.update_pdf_url(caller, quotation_id, pdf_data.pdf_url)


@quotations_router.put("/{quotation_id}/send-to-pm", response_model=QuotationOut)
def send_quotation_to_pm(
    quotation_id: str,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """Enviar la cotización a revisión del PM (draft -> sent_to_pm_for_review)"""
    service = QuotationService(db, event_sink)
    return service.send_to_pm(caller, quotation_id)


@quotations_router.put("/{quotation_id}/status", response_model=QuotationOut)
def update_quotation_status(
    quotation_id: str,
    status_data: StatusUpdate,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_pm())
):
    """
    Aprobar o rechazar una cotización.

    Queda registrado quién decidió, cuándo y el feedback.
    """
    service = QuotationService(db, event_sink)
    return service.update_status(
        caller, quotation_id, status_data.status,
        feedback=status_data.feedback, owner_id=status_data.owner_id
    )
