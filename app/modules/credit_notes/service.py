import logging

from app.common.exceptions import DocumentNotFoundError
from app.modules.auth.schemas import CallerContext
from app.modules.billing.identifiers import CREDIT_NOTE_ID_ALIASES
from app.modules.billing.lifecycle import require_owner_write
from app.modules.billing.service import BillingDocumentService, LINKAGE_FIELDS
from app.modules.credit_notes.models import CreditNote, CreditNoteStatus
from app.modules.credit_notes.schemas import CreditNoteCreate, CreditNoteUpdate
from app.modules.invoices.models import Invoice

logger = logging.getLogger(__name__)


class CreditNoteService(BillingDocumentService):
    """Servicio para notas crédito"""

    model = CreditNote
    key_field = "credit_note_id"
    id_prefix = "CN"
    document_type = "credit_note"
    status_enum = CreditNoteStatus
    initial_status = CreditNoteStatus.DRAFT
    custom_id_aliases = CREDIT_NOTE_ID_ALIASES
    extra_field_names = ("credit_note_date", "reason", "notes")

    def create_credit_note(self, caller: CallerContext, credit_note_data: CreditNoteCreate) -> CreditNote:
        owner_id = require_owner_write(caller, credit_note_data.owner_id)

        if credit_note_data.invoice_id:
            invoice = self.db.query(Invoice).filter(
                Invoice.owner_id == owner_id,
                Invoice.invoice_id == credit_note_data.invoice_id
            ).first()
            if invoice is None:
                raise DocumentNotFoundError(detail=f"Factura {credit_note_data.invoice_id} no encontrada")
            # Mismo vínculo de proyecto que la factura
            inherited = {
                field: getattr(invoice, field) for field in LINKAGE_FIELDS
                if getattr(credit_note_data, field) is None and getattr(invoice, field) is not None
            }
            credit_note_data = credit_note_data.model_copy(update=inherited)

        credit_note = self.build_document(caller, credit_note_data, invoice_id=credit_note_data.invoice_id)
        return self.save_new(credit_note, "credit_note.created", invoice_id=credit_note.invoice_id)

    def update_credit_note(self, caller: CallerContext, credit_note_id: str,
                           credit_note_update: CreditNoteUpdate) -> CreditNote:
        return self.update(caller, credit_note_id, credit_note_update)
