from typing import Optional
import logging

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.modules.billing.models import ProjectRecord
from app.modules.billing.schemas import ProjectLinkage

logger = logging.getLogger(__name__)


class ProjectContext(BaseModel):
    client_id: Optional[str] = None
    project_id: str


class ReferenceResolver:
    """Resuelve cliente y proyecto canónico de un workspace."""

    def __init__(self, db: Session):
        self.db = db

    def resolve_project_context(self, workspace_id: Optional[str]) -> Optional[ProjectContext]:
        """
        Busca el proyecto del workspace. No encontrado o error de lectura devuelve
        None: la creación del documento nunca falla por falta de vínculo.
        """
        if not workspace_id:
            return None
        try:
            project = (
                self.db.query(ProjectRecord)
                .filter(ProjectRecord.workspace_id == workspace_id)
                .first()
            )
        except SQLAlchemyError as e:
            logger.warning(f"No se pudo resolver el proyecto del workspace {workspace_id}: {e}")
            return None

        if project is None:
            logger.debug(f"Workspace {workspace_id} sin proyecto asociado")
            return None

        return ProjectContext(
            client_id=project.client_id or project.source_client_id,
            project_id=project.project_id
        )

    def stamp(self, linkage: ProjectLinkage, prefer_supplied_client: bool = False) -> ProjectLinkage:
        """
        Completa el vínculo del documento. El proyecto resuelto es canónico; el
        cliente resuelto gana salvo que `prefer_supplied_client` lo invierta.
        """
        context = self.resolve_project_context(linkage.workspace_id)
        if context is None:
            return linkage

        if prefer_supplied_client:
            client_id = linkage.client_id or context.client_id
        else:
            client_id = context.client_id or linkage.client_id

        return linkage.model_copy(update={"project_id": context.project_id, "client_id": client_id})
