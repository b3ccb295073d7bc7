from fastapi import HTTPException
from typing import Optional
import logging

from app.common.mixins import utcnow
from app.modules.auth.schemas import CallerContext, CallerRole
from app.modules.billing.identifiers import QUOTATION_ID_ALIASES
from app.modules.billing.lifecycle import DocumentStateMachine
from app.modules.billing.schemas import ProjectLinkage
from app.modules.billing.service import BillingDocumentService, LINKAGE_FIELDS
from app.modules.billing.store import transaction
from app.modules.quotations.models import Quotation, QuotationStatus
from app.modules.quotations.schemas import QuotationCreate, QuotationUpdate

logger = logging.getLogger(__name__)


QUOTATION_STATE_MACHINE = DocumentStateMachine(
    "quotation",
    QuotationStatus,
    {
        (QuotationStatus.DRAFT, QuotationStatus.SENT_TO_PM_FOR_REVIEW): CallerRole.VENDOR,
        # Efecto de crear una orden de compra
        (QuotationStatus.DRAFT, QuotationStatus.PO_SENT_TO_PM_FOR_REVIEW): CallerRole.VENDOR,
        (QuotationStatus.SENT_TO_PM_FOR_REVIEW, QuotationStatus.PO_SENT_TO_PM_FOR_REVIEW): CallerRole.VENDOR,
        (QuotationStatus.APPROVED, QuotationStatus.PO_SENT_TO_PM_FOR_REVIEW): CallerRole.VENDOR,
        # Decisiones del PM
        (QuotationStatus.SENT_TO_PM_FOR_REVIEW, QuotationStatus.APPROVED): CallerRole.PROJECT_MANAGER,
        (QuotationStatus.SENT_TO_PM_FOR_REVIEW, QuotationStatus.REJECTED): CallerRole.PROJECT_MANAGER,
        (QuotationStatus.PO_SENT_TO_PM_FOR_REVIEW, QuotationStatus.APPROVED): CallerRole.PROJECT_MANAGER,
        (QuotationStatus.PO_SENT_TO_PM_FOR_REVIEW, QuotationStatus.REJECTED): CallerRole.PROJECT_MANAGER,
    }
)


class QuotationService(BillingDocumentService):
    """Servicio para cotizaciones"""

    model = Quotation
    key_field = "quotation_id"
    id_prefix = "QT"
    document_type = "quotation"
    status_enum = QuotationStatus
    initial_status = QuotationStatus.DRAFT
    approved_status = QuotationStatus.APPROVED
    state_machine = QUOTATION_STATE_MACHINE
    custom_id_aliases = QUOTATION_ID_ALIASES
    extra_field_names = (
        "quotation_date", "expiry_date", "terms_and_conditions", "customer_notes",
        "project_name", "workspace_name", "task_name", "subtask_name",
    )
    # El borrador es privado del vendor
    pm_visible_statuses = (
        QuotationStatus.SENT_TO_PM_FOR_REVIEW,
        QuotationStatus.PO_SENT_TO_PM_FOR_REVIEW,
        QuotationStatus.APPROVED,
        QuotationStatus.REJECTED,
    )

    def create_quotation(self, caller: CallerContext, quotation_data: QuotationCreate) -> Quotation:
        """Crear cotización en borrador"""
        quotation = self.build_document(caller, quotation_data)
        return self.save_new(quotation, "quotation.created", status=quotation.status.value)

    def update_quotation(self, caller: CallerContext, quotation_id: str,
                         quotation_update: QuotationUpdate) -> Quotation:
        return self.update(caller, quotation_id, quotation_update)

    def send_to_pm(self, caller: CallerContext, quotation_id: str) -> Quotation:
        """
        Enviar la cotización a revisión del PM.
        Se vuelve a resolver el vínculo con el proyecto antes de enviarla.
        """
        quotation = self._owned_document(caller, quotation_id)
        linkage = self.resolver.stamp(
            ProjectLinkage(**{field: getattr(quotation, field) for field in LINKAGE_FIELDS})
        )

        quotation = self.change_status(
            caller,
            quotation_id,
            QuotationStatus.SENT_TO_PM_FOR_REVIEW,
            owner_id=quotation.owner_id,
            sent_to_pm_at=utcnow(),
            project_id=linkage.project_id,
            client_id=linkage.client_id,
        )
        self._emit("quotation.sent_to_pm", quotation, workspace_id=quotation.workspace_id)
        return quotation

    def update_status(self, caller: CallerContext, quotation_id: str, status,
                      feedback: Optional[str] = None, owner_id: Optional[str] = None) -> Quotation:
        """Aprobación o rechazo por parte del PM."""
        return self.change_status(caller, quotation_id, status, feedback=feedback, owner_id=owner_id)

    def update_pdf_url(self, caller: CallerContext, quotation_id: str, pdf_url: str) -> Quotation:
        quotation = self._owned_document(caller, quotation_id)
        with transaction(self.db):
            quotation = self.store.update_fields(quotation.owner_id, quotation_id, {"pdf_url": pdf_url})
        logger.info(f"PDF de cotización {quotation_id} actualizado")
        return quotation

    def mark_po_sent(self, caller: CallerContext, quotation_id: str) -> bool:
        """
        Efecto secundario de crear una orden de compra. Nunca propaga errores:
        la orden ya quedó guardada.
        """
        try:
            self.change_status(
                caller, quotation_id, QuotationStatus.PO_SENT_TO_PM_FOR_REVIEW, owner_id=caller.caller_id
            )
            return True
        except HTTPException as e:
            logger.warning(f"No se actualizó el estado de la cotización {quotation_id}: {e.detail}")
        except Exception as e:
            logger.error(f"Error actualizando cotización {quotation_id} tras crear la orden de compra: {e}")
        return False
