from datetime import datetime
from decimal import Decimal
from typing import List
import logging

from app.common.exceptions import DocumentNotFoundError, DocumentValidationError
from app.modules.auth.schemas import CallerContext, CallerRole
from app.modules.billing.calculator import compute_totals, to_decimal
from app.modules.billing.identifiers import INVOICE_ID_ALIASES, alias_fields, generate_document_id
from app.modules.billing.lifecycle import DocumentStateMachine, require_owner_write
from app.modules.billing.schemas import DocumentTotals
from app.modules.billing.service import BillingDocumentService, LINKAGE_FIELDS
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.invoices.schemas import InvoiceCreate, InvoiceUpdate
from app.modules.quotations.models import Quotation

logger = logging.getLogger(__name__)


INVOICE_STATE_MACHINE = DocumentStateMachine(
    "invoice",
    InvoiceStatus,
    {
        (InvoiceStatus.DRAFT, InvoiceStatus.SENT_TO_PM): CallerRole.VENDOR,
        (InvoiceStatus.DRAFT, InvoiceStatus.VOID): CallerRole.VENDOR,
        (InvoiceStatus.SENT_TO_PM, InvoiceStatus.APPROVED_BY_PM): CallerRole.PROJECT_MANAGER,
        (InvoiceStatus.SENT_TO_PM, InvoiceStatus.REJECTED_BY_PM): CallerRole.PROJECT_MANAGER,
        (InvoiceStatus.APPROVED_BY_PM, InvoiceStatus.PAID): CallerRole.VENDOR,
    }
)


class InvoiceService(BillingDocumentService):
    """Servicio para facturas"""

    model = Invoice
    key_field = "invoice_id"
    id_prefix = "INV"
    document_type = "invoice"
    status_enum = InvoiceStatus
    initial_status = InvoiceStatus.DRAFT
    approved_status = InvoiceStatus.APPROVED_BY_PM
    state_machine = INVOICE_STATE_MACHINE
    custom_id_aliases = INVOICE_ID_ALIASES
    extra_field_names = ("invoice_date", "due_date", "notes", "terms_and_conditions")

    def check_editable(self, doc) -> None:
        if doc.status in (InvoiceStatus.PAID, InvoiceStatus.VOID):
            raise DocumentValidationError(
                detail=f"No se puede modificar una factura en estado {doc.status.value}"
            )

    def create_invoice(self, caller: CallerContext, invoice_data: InvoiceCreate) -> Invoice:
        """
        Crear factura manual.
        Si referencia una cotización, ésta debe existir en la partición del vendor.
        """
        owner_id = require_owner_write(caller, invoice_data.owner_id)

        if invoice_data.quote_id:
            quotation = self.db.query(Quotation).filter(
                Quotation.owner_id == owner_id,
                Quotation.quotation_id == invoice_data.quote_id
            ).first()
            if quotation is None:
                raise DocumentNotFoundError(detail=f"Cotización {invoice_data.quote_id} no encontrada")
            inherited = {
                field: getattr(quotation, field) for field in LINKAGE_FIELDS
                if getattr(invoice_data, field) is None and getattr(quotation, field) is not None
            }
            invoice_data = invoice_data.model_copy(update=inherited)

        invoice = self.build_document(caller, invoice_data, quote_id=invoice_data.quote_id)
        return self.save_new(invoice, "invoice.created", quote_id=invoice.quote_id)

    def update_invoice(self, caller: CallerContext, invoice_id: str, invoice_update: InvoiceUpdate) -> Invoice:
        return self.update(caller, invoice_id, invoice_update)

    def update_status(self, caller: CallerContext, invoice_id: str, status,
                      feedback=None, owner_id=None) -> Invoice:
        return self.change_status(caller, invoice_id, status, feedback=feedback, owner_id=owner_id)

    def build_subscription_invoice(self, subscription, now: datetime) -> Invoice:
        """
        Factura en borrador para un ciclo de la suscripción (sin persistir).

        Los ítems se copian de la plantilla de la suscripción; si no suman nada,
        la factura se emite por el monto de la suscripción sin impuestos.
        """
        items = list(subscription.items or [])
        totals = compute_totals(items)
        if not totals.total:
            amount = to_decimal(subscription.amount)
            totals = DocumentTotals(subtotal=amount, total=amount)

        timestamp = int(now.timestamp() * 1000)
        base_id = subscription.custom_subscription_id or subscription.subscription_id
        custom_id = f"{base_id}-INV-{timestamp}"

        extra = {
            "notes": "Generada automáticamente desde la suscripción",
            "billing_cycle": subscription.billing_cycle.value,
            "billing_period_start": subscription.next_billing_date.isoformat(),
        }
        extra.update(alias_fields(custom_id, self.custom_id_aliases))

        return Invoice(
            owner_id=subscription.owner_id,
            invoice_id=generate_document_id(self.id_prefix),
            custom_document_id=custom_id,
            counterparty_id=subscription.counterparty_id,
            counterparty_name=subscription.counterparty_name,
            line_items=items,
            status=InvoiceStatus.DRAFT,
            subscription_id=subscription.subscription_id,
            extra=extra,
            **totals.as_columns()
        )

    def subscription_history(self, owner_id: str, subscription_id: str) -> List[Invoice]:
        return self.store.query_by_owner(owner_id, {"subscription_id": subscription_id})
