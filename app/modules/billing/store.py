"""
Adaptador de almacenamiento para documentos particionados por vendor.

Los métodos solo hacen flush; el commit lo decide el servicio que orquesta la
unidad de trabajo (ver `transaction`).
"""
from contextlib import contextmanager
from typing import Any, Dict, List, Optional
import logging

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.common.exceptions import (
    ConditionalWriteError, DocumentNotFoundError, DocumentValidationError, PersistenceError
)
from app.common.mixins import utcnow

logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session):
    """Commit al salir; rollback y PersistenceError ante fallos del almacén."""
    try:
        yield
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error de persistencia: {e}")
        raise PersistenceError(detail="Almacén de documentos no disponible, reintente")


class DocumentStore:
    """Acceso a una tabla con clave (owner_id, <key_field>)."""

    def __init__(self, db: Session, model, key_field: str):
        self.db = db
        self.model = model
        self.key_field = key_field
        self.columns = {column.name for column in model.__table__.columns}
        self.immutable_fields = {"owner_id", key_field, "created_at"}

    def _key_column(self):
        return getattr(self.model, self.key_field)

    def _check_fields(self, fields) -> None:
        unknown = set(fields) - self.columns
        if unknown:
            raise DocumentValidationError(detail=f"Campos desconocidos: {', '.join(sorted(unknown))}")

    def put(self, owner_id: str, doc):
        """Upsert incondicional (creación o reescritura completa)."""
        if doc.owner_id is None:
            doc.owner_id = owner_id
        elif doc.owner_id != owner_id:
            raise DocumentValidationError(detail="El owner de un documento no puede cambiar")
        if getattr(doc, self.key_field) is None:
            raise DocumentValidationError(detail=f"{self.key_field} es requerido")

        now = utcnow()
        if doc.created_at is None:
            doc.created_at = now
        doc.updated_at = now
        doc = self.db.merge(doc)
        self.db.flush()
        return doc

    def update_fields(
        self,
        owner_id: str,
        document_id: str,
        deltas: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ):
        """
        Actualización dirigida por campos.

        `expected` agrega condiciones al WHERE (compare-and-swap); si no se cumplen
        se lanza ConditionalWriteError.
        """
        if not deltas:
            raise DocumentValidationError(detail="No hay campos para actualizar")
        immutable = set(deltas) & self.immutable_fields
        if immutable:
            raise DocumentValidationError(
                detail=f"Campos inmutables no se pueden actualizar: {', '.join(sorted(immutable))}"
            )
        self._check_fields(deltas)
        self._check_fields(expected or {})

        values = dict(deltas)
        values["updated_at"] = utcnow()

        stmt = update(self.model).where(
            self.model.owner_id == owner_id,
            self._key_column() == document_id
        )
        for field, value in (expected or {}).items():
            stmt = stmt.where(getattr(self.model, field) == value)

        result = self.db.execute(stmt.values(**values).execution_options(synchronize_session=False))
        if result.rowcount == 0:
            if expected and self.get(owner_id, document_id, refresh=True) is not None:
                raise ConditionalWriteError(
                    detail=f"{self.key_field}={document_id} fue modificado por otra operación"
                )
            raise DocumentNotFoundError(detail=f"{self.key_field}={document_id} no encontrado")

        self.db.flush()
        return self.get(owner_id, document_id, refresh=True)

    def delete(self, owner_id: str, document_id: str) -> None:
        doc = self.get(owner_id, document_id)
        if doc is None:
            raise DocumentNotFoundError(detail=f"{self.key_field}={document_id} no encontrado")
        self.db.delete(doc)
        self.db.flush()

    def get(self, owner_id: str, document_id: str, refresh: bool = False):
        query = self.db.query(self.model).filter(
            self.model.owner_id == owner_id,
            self._key_column() == document_id
        )
        if refresh:
            query = query.populate_existing()
        return query.first()

    def _filtered(self, query, filters: Dict[str, Any]):
        filters = {field: value for field, value in (filters or {}).items() if value is not None}
        self._check_fields(filters)
        for field, value in filters.items():
            column = getattr(self.model, field)
            if isinstance(value, (list, tuple, set, frozenset)):
                query = query.filter(column.in_(list(value)))
            else:
                query = query.filter(column == value)
        return query

    def query_by_owner(
        self,
        owner_id: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List:
        query = self.db.query(self.model).filter(self.model.owner_id == owner_id)
        query = self._filtered(query, filters).order_by(self.model.created_at.desc())
        if limit is not None:
            query = query.offset(offset).limit(limit)
        return query.all()

    def scan_all(
        self,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List:
        """Lectura entre vendors. Solo para el rol PM y el scheduler."""
        query = self._filtered(self.db.query(self.model), filters)
        query = query.order_by(self.model.created_at.desc())
        if limit is not None:
            query = query.offset(offset).limit(limit)
        return query.all()
