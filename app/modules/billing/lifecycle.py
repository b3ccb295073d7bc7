"""
Máquinas de estado de los documentos y reglas de autorización por rol.

Regla uniforme para los cuatro tipos de documento:
- crear y editar: rol vendor y caller_id == owner_id del documento
- aprobar/rechazar/escalar: según la tabla de transiciones de cada tipo
- lectura: el PM ve todas las particiones, el vendor solo la suya
"""
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple
import logging

from app.common.exceptions import DocumentAuthorizationError, DocumentValidationError
from app.modules.auth.schemas import CallerContext, CallerRole

logger = logging.getLogger(__name__)


def require_owner_write(caller: CallerContext, owner_id: Optional[str]) -> str:
    """Solo el vendor dueño de la partición escribe en ella. Devuelve el owner efectivo."""
    if not caller.is_vendor:
        raise DocumentAuthorizationError(detail="Solo un vendor puede crear o editar documentos")
    if owner_id is not None and owner_id != caller.caller_id:
        raise DocumentAuthorizationError(detail="No puede escribir documentos de otro vendor")
    return caller.caller_id


def resolve_read_scope(caller: CallerContext, owner_id: Optional[str] = None) -> Optional[str]:
    """
    Partición a leer. Para un vendor siempre la propia; para un PM la indicada
    o None (lectura entre vendors).
    """
    if caller.is_pm:
        return owner_id
    if owner_id is not None and owner_id != caller.caller_id:
        raise DocumentAuthorizationError(detail="No tiene acceso a documentos de otro vendor")
    return caller.caller_id


class DocumentStateMachine:
    """Transiciones permitidas (origen, destino) -> rol que puede ejecutarlas."""

    def __init__(self, document_type: str, status_enum, transitions: Dict[Tuple[Enum, Enum], CallerRole]):
        self.document_type = document_type
        self.status_enum = status_enum
        self.transitions = transitions

    def parse_status(self, value) -> Enum:
        if isinstance(value, self.status_enum):
            return value
        try:
            return self.status_enum(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(s.value for s in self.status_enum)
            raise DocumentValidationError(detail=f"Estado inválido '{value}'. Valores permitidos: {valid}")

    def targets_from(self, current: Enum, role: Optional[CallerRole] = None) -> Iterable[Enum]:
        return [
            target for (source, target), allowed in self.transitions.items()
            if source == current and (role is None or allowed == role)
        ]

    def check(self, current: Enum, target: Enum, caller: CallerContext) -> None:
        allowed_role = self.transitions.get((current, target))
        if allowed_role is None:
            raise DocumentValidationError(
                detail=f"Transición inválida de {self.document_type}: {current.value} -> {target.value}"
            )
        if caller.role != allowed_role:
            raise DocumentAuthorizationError(
                detail=f"El rol {caller.role.value} no puede mover {self.document_type} a {target.value}"
            )
