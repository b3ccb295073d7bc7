"""
Errores de dominio para el subsistema de facturación.

Todos heredan de HTTPException: los servicios los lanzan directamente y FastAPI
los serializa sin manejadores adicionales. El scheduler y las operaciones masivas
los capturan por tipo para reportarlos por ítem.
"""
from typing import Any, Optional

from fastapi import HTTPException, status


class BillingError(HTTPException):
    """Base de los errores del subsistema de facturación."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False

    def __init__(self, detail: Any = None, headers: Optional[dict] = None):
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)


class DocumentValidationError(BillingError):
    """Campo requerido ausente, rol mal formado o transición inválida."""
    status_code = status.HTTP_400_BAD_REQUEST


class DocumentAuthorizationError(BillingError):
    """Rol incorrecto o acceso a la partición de otro vendor."""
    status_code = status.HTTP_403_FORBIDDEN


class DocumentNotFoundError(BillingError):
    status_code = status.HTTP_404_NOT_FOUND


class ConditionalWriteError(BillingError):
    """La condición de una escritura condicional ya no se cumple (carrera perdida)."""
    status_code = status.HTTP_409_CONFLICT
    retryable = True


class PersistenceError(BillingError):
    """Almacén no disponible; el cliente puede reintentar."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
