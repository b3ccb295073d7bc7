from typing import Any, Dict, Mapping, Optional, Sequence
from uuid import uuid4
import time


# Alias de numeración personalizada en orden de prioridad
QUOTATION_ID_ALIASES = ("custom_quote_id", "quote_number", "quote_code", "quote_no")
INVOICE_ID_ALIASES = ("custom_invoice_id", "invoice_number", "invoice_code", "invoice_no")
CREDIT_NOTE_ID_ALIASES = ("custom_credit_note_id", "credit_note_number", "credit_note_code", "credit_note_no")
PURCHASE_ORDER_ID_ALIASES = ("custom_po_id", "purchase_order_number")


def generate_document_id(prefix: str) -> str:
    """{PREFIX}-{timestamp ms}-{8 hex aleatorios}"""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid4().hex[:8]}"


def resolve_custom_id(values: Mapping[str, Any], aliases: Sequence[str]) -> Optional[str]:
    """Primer alias no vacío según la prioridad."""
    for alias in aliases:
        value = values.get(alias)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def alias_fields(custom_id: Optional[str], aliases: Sequence[str]) -> Dict[str, str]:
    """Todos los alias apuntando al id canónico, para búsquedas antiguas."""
    if not custom_id:
        return {}
    return {alias: custom_id for alias in aliases}


def display_id(doc, key_field: str) -> str:
    return doc.custom_document_id or getattr(doc, key_field)
