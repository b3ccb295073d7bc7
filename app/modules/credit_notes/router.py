from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import CallerContext
from app.modules.billing.events import EventSink, get_event_sink
from app.modules.billing.schemas import DocumentStats
from app.modules.billing.service import page_size
from app.modules.credit_notes.service import CreditNoteService
from app.modules.credit_notes.schemas import CreditNoteCreate, CreditNoteUpdate, CreditNoteOut

credit_notes_router = APIRouter(prefix="/credit-notes", tags=["Credit Notes"])


@credit_notes_router.post("", response_model=CreditNoteOut, status_code=status.HTTP_201_CREATED)
def create_credit_note(
    credit_note_data: CreditNoteCreate,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """Crear nota crédito, opcionalmente sobre una factura propia"""
    service = CreditNoteService(db, event_sink)
    return service.create_credit_note(caller, credit_note_data)


@credit_notes_router.get("", response_model=List[CreditNoteOut])
def list_credit_notes(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    invoice_id: Optional[str] = Query(None),
    workspace_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = CreditNoteService(db, event_sink=None)
    return service.list(
        caller,
        owner_id=owner_id,
        filters={"invoice_id": invoice_id, "workspace_id": workspace_id},
        limit=page_size(limit),
        offset=offset
    )


@credit_notes_router.get("/stats", response_model=DocumentStats)
def credit_note_stats(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = CreditNoteService(db, event_sink=None)
    return service.stats(caller, owner_id)


@credit_notes_router.get("/{credit_note_id}", response_model=CreditNoteOut)
def get_credit_note(
    credit_note_id: str,
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = CreditNoteService(db, event_sink=None)
    return service.get(caller, credit_note_id, owner_id)


@credit_notes_router.put("/{credit_note_id}", response_model=CreditNoteOut)
def update_credit_note(
    credit_note_id: str,
    credit_note_update: CreditNoteUpdate,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    service = CreditNoteService(db, event_sink)
    return service.update_credit_note(caller, credit_note_id, credit_note_update)
