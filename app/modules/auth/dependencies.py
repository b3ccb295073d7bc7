"""
Dependencias de autenticación para FastAPI.

La sesión y el rol los resuelve el servicio de identidad; aquí solo se verifica
el token y se construye el contexto del llamador, en el que confía el núcleo.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError
import jwt

from app.common.exceptions import DocumentAuthorizationError, DocumentValidationError
from app.modules.auth.schemas import CallerContext, CallerRole
from app.core.config import settings

# Security scheme
security = HTTPBearer()

class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def get_caller_context(
        credentials: HTTPAuthorizationCredentials = Depends(security)
    ) -> CallerContext:
        """
        Obtener contexto del llamador desde token JWT.
        Claims esperados: sub (id del llamador) y role.
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No se pudieron validar las credenciales",
            headers={"WWW-Authenticate": "Bearer"},
        )

        try:
            payload = jwt.decode(
                credentials.credentials,
                settings.APP_SECRET_STRING,
                algorithms=[settings.ALGORITHM]
            )
        except jwt.PyJWTError:
            raise credentials_exception

        caller_id = payload.get("sub")
        if caller_id is None:
            raise credentials_exception

        try:
            return CallerContext(caller_id=str(caller_id), role=payload.get("role"))
        except ValidationError:
            raise DocumentValidationError(detail="Rol del llamador inválido")

    @staticmethod
    def require_role(allowed_roles: list[CallerRole]):
        """
        Dependencia para requerir roles específicos.
        """
        def role_checker(caller: CallerContext = Depends(AuthDependencies.get_caller_context)):
            if caller.role not in allowed_roles:
                raise DocumentAuthorizationError(
                    detail=f"Se requiere uno de estos roles: {', '.join(r.value for r in allowed_roles)}"
                )
            return caller
        return role_checker

    @staticmethod
    def require_vendor():
        return AuthDependencies.require_role([CallerRole.VENDOR])

    @staticmethod
    def require_pm():
        return AuthDependencies.require_role([CallerRole.PROJECT_MANAGER])

    @staticmethod
    def require_any_role():
        """Dependencia que acepta cualquier rol válido."""
        return AuthDependencies.require_role([CallerRole.VENDOR, CallerRole.PROJECT_MANAGER])

# Instancias de dependencias
get_caller_context = AuthDependencies.get_caller_context
require_vendor = AuthDependencies.require_vendor
require_pm = AuthDependencies.require_pm
require_any_role = AuthDependencies.require_any_role
