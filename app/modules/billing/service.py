"""
Servicio base de documentos comerciales.

Cada tipo de documento (cotización, orden de compra, factura, nota crédito)
hereda de BillingDocumentService y declara su modelo, su prefijo de id, sus
alias de numeración y su máquina de estados.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
import logging

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.common.exceptions import DocumentAuthorizationError, DocumentNotFoundError, DocumentValidationError
from app.common.mixins import utcnow
from app.core.config import settings
from app.modules.auth.schemas import CallerContext
from app.modules.billing.calculator import compute_totals, serialize_line_items
from app.modules.billing.events import EventSink, emit_event, get_event_sink
from app.modules.billing.identifiers import alias_fields, generate_document_id, resolve_custom_id
from app.modules.billing.lifecycle import DocumentStateMachine, require_owner_write, resolve_read_scope
from app.modules.billing.references import ReferenceResolver
from app.modules.billing.schemas import (
    BillingDocumentBase, BillingDocumentUpdate, DocumentStats, PMApproval, ProjectLinkage, SuppliedTotals
)
from app.modules.billing.store import DocumentStore, transaction

logger = logging.getLogger(__name__)

TOTAL_FIELDS = ("subtotal", "cgst", "sgst", "igst", "total")
LINKAGE_FIELDS = ("project_id", "workspace_id", "task_id", "subtask_id", "client_id")


def month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class BillingDocumentService:
    model = None
    key_field: str = None
    id_prefix: str = None
    document_type: str = None
    status_enum = None
    initial_status = None
    approved_status = None
    state_machine: Optional[DocumentStateMachine] = None
    custom_id_aliases: tuple = ()
    # Campos tipados del payload que se guardan en `extra`
    extra_field_names: tuple = ()
    # None: el PM ve todos los estados
    pm_visible_statuses: Optional[tuple] = None
    prefer_supplied_client: bool = False

    def __init__(self, db: Session, event_sink: Optional[EventSink] = None,
                 resolver: Optional[ReferenceResolver] = None):
        self.db = db
        self.store = DocumentStore(db, self.model, self.key_field)
        self.resolver = resolver or ReferenceResolver(db)
        self.events = event_sink if event_sink is not None else get_event_sink()

    # ===== Helpers =====

    def document_id_of(self, doc) -> str:
        return getattr(doc, self.key_field)

    def parse_status(self, value):
        if self.state_machine is not None:
            return self.state_machine.parse_status(value)
        try:
            return self.status_enum(str(value).strip().lower())
        except ValueError:
            raise DocumentValidationError(detail=f"Estado inválido '{value}'")

    def _extra_from(self, values: Dict[str, Any], base: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        extra = dict(base or {})
        extra.update(values.get("extra") or {})
        for name in self.extra_field_names:
            if values.get(name) is not None:
                extra[name] = values[name]
        custom_id = resolve_custom_id(values, self.custom_id_aliases)
        extra.update(alias_fields(custom_id, self.custom_id_aliases))
        return extra

    def _emit(self, name: str, doc, **payload) -> None:
        emit_event(self.events, name, doc.owner_id, self.document_id_of(doc), **payload)

    def _owned_document(self, caller: CallerContext, document_id: str):
        owner_id = require_owner_write(caller, None)
        doc = self.store.get(owner_id, document_id)
        if doc is None:
            raise DocumentNotFoundError(detail=f"{self.document_type} {document_id} no encontrado")
        return doc

    # ===== Creación =====

    def build_document(self, caller: CallerContext, payload: BillingDocumentBase, **fields):
        """Arma el documento nuevo (sin persistir): totales, vínculo, numeración."""
        owner_id = require_owner_write(caller, payload.owner_id)
        values = payload.model_dump(mode="json")

        totals = compute_totals(payload.line_items, payload.supplied_totals())
        linkage = self.resolver.stamp(payload.linkage(), prefer_supplied_client=self.prefer_supplied_client)
        document_id = generate_document_id(self.id_prefix)

        columns = {
            "owner_id": owner_id,
            self.key_field: document_id,
            # Sin alias de numeración se muestra el id del documento
            "custom_document_id": resolve_custom_id(values, self.custom_id_aliases) or document_id,
            "counterparty_id": payload.counterparty_id,
            "counterparty_name": payload.counterparty_name,
            "line_items": serialize_line_items(payload.line_items),
            "status": self.initial_status,
            "extra": self._extra_from(values),
        }
        columns.update(totals.as_columns())
        columns.update(linkage.model_dump())
        columns.update(fields)
        return self.model(**columns)

    def save_new(self, doc, event_name: str, **event_payload):
        with transaction(self.db):
            doc = self.store.put(doc.owner_id, doc)
        logger.info(f"{self.document_type} {self.document_id_of(doc)} creado para owner {doc.owner_id}")
        self._emit(event_name, doc, total=str(doc.total), **event_payload)
        return doc

    # ===== Lectura =====

    def get(self, caller: CallerContext, document_id: str, owner_id: Optional[str] = None):
        scope = resolve_read_scope(caller, owner_id)
        if scope is not None:
            doc = self.store.get(scope, document_id)
        else:
            matches = self.store.scan_all({self.key_field: document_id}, limit=1)
            doc = matches[0] if matches else None

        if doc is None or not self._visible_to(caller, doc):
            raise DocumentNotFoundError(detail=f"{self.document_type} {document_id} no encontrado")
        return doc

    def _visible_to(self, caller: CallerContext, doc) -> bool:
        if caller.is_pm and self.pm_visible_statuses is not None:
            return doc.status in self.pm_visible_statuses
        return True

    def list(
        self,
        caller: CallerContext,
        owner_id: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List:
        scope = resolve_read_scope(caller, owner_id)
        filters = dict(filters or {})

        if filters.get("status") is not None:
            filters["status"] = self.parse_status(filters["status"])
        if caller.is_pm and self.pm_visible_statuses is not None:
            if filters.get("status") is None:
                filters["status"] = list(self.pm_visible_statuses)
            elif filters["status"] not in self.pm_visible_statuses:
                return []

        if scope is None:
            return self.store.scan_all(filters, limit=limit, offset=offset)
        return self.store.query_by_owner(scope, filters, limit=limit, offset=offset)

    def stats(self, caller: CallerContext, owner_id: Optional[str] = None) -> DocumentStats:
        docs = self.list(caller, owner_id)
        current_month = month_start(utcnow())

        stats = DocumentStats()
        by_status: Dict[str, int] = {}
        for doc in docs:
            value = doc.total or Decimal("0")
            stats.total_count += 1
            stats.total_value += value
            by_status[doc.status.value] = by_status.get(doc.status.value, 0) + 1
            if doc.created_at and doc.created_at >= current_month:
                stats.this_month_count += 1
                stats.this_month_value += value
        stats.by_status = by_status
        if self.approved_status is not None:
            stats.approved_count = by_status.get(self.approved_status.value, 0)
        return stats

    # ===== Edición =====

    def check_editable(self, doc) -> None:
        """Hook para restringir edición por estado."""

    def update(self, caller: CallerContext, document_id: str, payload: BillingDocumentUpdate,
               **extra_deltas):
        doc = self._owned_document(caller, document_id)
        self.check_editable(doc)

        changes = payload.model_dump(mode="json", exclude_unset=True)
        deltas: Dict[str, Any] = {}

        for field in ("counterparty_id", "counterparty_name") + LINKAGE_FIELDS:
            if field in changes:
                deltas[field] = changes[field]

        if payload.line_items is not None:
            # Ítems nuevos: se recalcula todo e ignora cualquier agregado previo
            deltas["line_items"] = serialize_line_items(payload.line_items)
            deltas.update(compute_totals(payload.line_items).as_columns())
        elif any(getattr(payload, field) is not None for field in TOTAL_FIELDS):
            supplied = SuppliedTotals(**{field: getattr(payload, field) for field in TOTAL_FIELDS})
            deltas.update(compute_totals(doc.line_items, supplied).as_columns())

        custom_id = resolve_custom_id(changes, self.custom_id_aliases)
        if custom_id:
            deltas["custom_document_id"] = custom_id
        if "extra" in changes or custom_id or any(name in changes for name in self.extra_field_names):
            deltas["extra"] = self._extra_from(changes, base=doc.extra)

        if "workspace_id" in deltas:
            linkage = ProjectLinkage(**{field: deltas.get(field, getattr(doc, field)) for field in LINKAGE_FIELDS})
            stamped = self.resolver.stamp(linkage, prefer_supplied_client=self.prefer_supplied_client)
            deltas["project_id"] = stamped.project_id
            deltas["client_id"] = stamped.client_id

        deltas.update(extra_deltas)
        if not deltas:
            raise DocumentValidationError(detail="No hay campos para actualizar")

        with transaction(self.db):
            doc = self.store.update_fields(doc.owner_id, document_id, deltas)
        logger.info(f"{self.document_type} {document_id} actualizado: {', '.join(sorted(deltas))}")
        self._emit(f"{self.document_type}.updated", doc, fields=sorted(deltas))
        return doc

    # ===== Estados =====

    def change_status(
        self,
        caller: CallerContext,
        document_id: str,
        status: Any,
        feedback: Optional[str] = None,
        owner_id: Optional[str] = None,
        **extra_deltas
    ):
        """Transición controlada por rol con compare-and-swap sobre el estado actual."""
        if self.state_machine is None:
            raise DocumentValidationError(detail=f"{self.document_type} no admite cambios de estado")

        doc = self.get(caller, document_id, owner_id)
        current = doc.status
        target = self.state_machine.parse_status(status)
        self.state_machine.check(current, target, caller)
        if caller.is_vendor and doc.owner_id != caller.caller_id:
            raise DocumentAuthorizationError(detail="No puede modificar documentos de otro vendor")

        deltas: Dict[str, Any] = {"status": target}
        if caller.is_pm and hasattr(self.model, "pm_approval"):
            deltas["pm_approval"] = PMApproval(
                pm_id=caller.caller_id,
                status=target.value,
                feedback=feedback,
                approved_at=utcnow()
            ).model_dump(mode="json")
        deltas.update(extra_deltas)

        with transaction(self.db):
            doc = self.store.update_fields(doc.owner_id, document_id, deltas, expected={"status": current})
        logger.info(f"{self.document_type} {document_id}: {current.value} -> {target.value} por {caller.caller_id}")
        self._emit(
            f"{self.document_type}.status_changed", doc,
            previous_status=current.value, status=target.value,
            changed_by=caller.caller_id, feedback=feedback
        )
        return doc


def page_size(limit: Optional[int]) -> int:
    if limit is None:
        return settings.DEFAULT_PAGE_SIZE
    return min(limit, settings.MAX_PAGE_SIZE)
