import logging

from app.common.exceptions import DocumentNotFoundError
from app.modules.auth.schemas import CallerContext
from app.modules.billing.identifiers import PURCHASE_ORDER_ID_ALIASES, display_id, resolve_custom_id
from app.modules.billing.lifecycle import require_owner_write
from app.modules.billing.schemas import LineItem
from app.modules.billing.service import BillingDocumentService, TOTAL_FIELDS
from app.modules.purchase_orders.models import PurchaseOrder, PurchaseOrderStatus, PurchaseOrderStatusType
from app.modules.purchase_orders.schemas import PurchaseOrderCreate
from app.modules.quotations.models import Quotation
from app.modules.quotations.service import QuotationService

logger = logging.getLogger(__name__)


class PurchaseOrderService(BillingDocumentService):
    """Servicio para órdenes de compra"""

    model = PurchaseOrder
    key_field = "purchase_order_id"
    id_prefix = "PO"
    document_type = "purchase_order"
    status_enum = PurchaseOrderStatus
    initial_status = PurchaseOrderStatus.SENT_TO_PM
    custom_id_aliases = PURCHASE_ORDER_ID_ALIASES
    extra_field_names = ("reference_quote_number",)
    # El cliente enviado por el vendor gana sobre el resuelto
    prefer_supplied_client = True

    def _inherit_from_quotation(self, po_data: PurchaseOrderCreate, quotation: Quotation) -> PurchaseOrderCreate:
        """Completa lo que el vendor no envió con los datos de la cotización."""
        updates = {}
        if po_data.counterparty_id is None:
            updates["counterparty_id"] = quotation.counterparty_id
            if po_data.counterparty_name is None:
                updates["counterparty_name"] = quotation.counterparty_name

        has_totals = any(getattr(po_data, field) for field in TOTAL_FIELDS)
        if not po_data.line_items and not has_totals:
            updates["line_items"] = [LineItem(**item) for item in quotation.line_items or []]
            for field in TOTAL_FIELDS:
                updates[field] = getattr(quotation, field)

        for field in ("project_id", "workspace_id", "task_id", "subtask_id", "client_id"):
            if getattr(po_data, field) is None and getattr(quotation, field) is not None:
                updates[field] = getattr(quotation, field)

        if po_data.reference_quote_number is None:
            updates["reference_quote_number"] = display_id(quotation, "quotation_id")

        return po_data.model_copy(update=updates)

    def create_purchase_order(self, caller: CallerContext, po_data: PurchaseOrderCreate) -> PurchaseOrder:
        """
        Crear orden de compra desde una cotización.

        La cotización pasa a po_sent_to_pm_for_review como efecto secundario; si ese
        paso falla la orden se mantiene.
        """
        owner_id = require_owner_write(caller, po_data.owner_id)

        quotations = QuotationService(self.db, self.events, self.resolver)
        quotation = quotations.store.get(owner_id, po_data.quotation_id)
        if quotation is None:
            raise DocumentNotFoundError(detail=f"Cotización {po_data.quotation_id} no encontrada")

        po_data = self._inherit_from_quotation(po_data, quotation)
        number = resolve_custom_id(po_data.model_dump(), PURCHASE_ORDER_ID_ALIASES) or quotation.quotation_id

        purchase_order = self.build_document(
            caller,
            po_data,
            quotation_id=quotation.quotation_id,
            purchase_order_number=number,
            status_type=PurchaseOrderStatusType.PENDING,
        )
        purchase_order = self.save_new(
            purchase_order, "purchase_order.created",
            quotation_id=quotation.quotation_id, purchase_order_number=number
        )

        quotations.mark_po_sent(caller, quotation.quotation_id)
        return purchase_order
