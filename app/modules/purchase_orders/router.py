from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import CallerContext
from app.modules.billing.events import EventSink, get_event_sink
from app.modules.billing.service import page_size
from app.modules.purchase_orders.service import PurchaseOrderService
from app.modules.purchase_orders.schemas import PurchaseOrderCreate, PurchaseOrderOut

purchase_orders_router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])


@purchase_orders_router.post("", response_model=PurchaseOrderOut, status_code=status.HTTP_201_CREATED)
def create_purchase_order(
    po_data: PurchaseOrderCreate,
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
    caller: CallerContext = Depends(AuthDependencies.require_vendor())
):
    """
    Crear una orden de compra a partir de una cotización propia.

    Estado inicial sent_to_pm / pending.
    """
    service = PurchaseOrderService(db, event_sink)
    return service.create_purchase_order(caller, po_data)


@purchase_orders_router.get("", response_model=List[PurchaseOrderOut])
def list_purchase_orders(
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    status: Optional[str] = Query(None),
    quotation_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = PurchaseOrderService(db, event_sink=None)
    return service.list(
        caller,
        owner_id=owner_id,
        filters={"status": status, "quotation_id": quotation_id},
        limit=page_size(limit),
        offset=offset
    )


@purchase_orders_router.get("/{purchase_order_id}", response_model=PurchaseOrderOut)
def get_purchase_order(
    purchase_order_id: str,
    owner_id: Optional[str] = Query(None, description="Vendor (solo PM)"),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(AuthDependencies.require_any_role())
):
    service = PurchaseOrderService(db, event_sink=None)
    return service.get(caller, purchase_order_id, owner_id)
