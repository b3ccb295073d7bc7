from pydantic import BaseModel, Field, field_validator
from enum import Enum


class CallerRole(str, Enum):
    VENDOR = "vendor"
    PROJECT_MANAGER = "project-manager"


# Alias aceptados para cada rol (los tokens antiguos usan "pm")
ROLE_ALIASES = {
    "vendor": CallerRole.VENDOR,
    "pm": CallerRole.PROJECT_MANAGER,
    "project-manager": CallerRole.PROJECT_MANAGER,
    "project_manager": CallerRole.PROJECT_MANAGER,
}


class CallerContext(BaseModel):
    """Identidad del llamador resuelta por el servicio de autenticación."""
    caller_id: str = Field(..., min_length=1)
    role: CallerRole

    @field_validator('role', mode='before')
    @classmethod
    def normalize_role(cls, v):
        if isinstance(v, CallerRole):
            return v
        if isinstance(v, str) and v.strip().lower() in ROLE_ALIASES:
            return ROLE_ALIASES[v.strip().lower()]
        raise ValueError(f"Rol inválido: {v!r}")

    @property
    def is_vendor(self) -> bool:
        return self.role == CallerRole.VENDOR

    @property
    def is_pm(self) -> bool:
        return self.role == CallerRole.PROJECT_MANAGER
