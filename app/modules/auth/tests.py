"""
Tests del contexto del llamador: token JWT, normalización de roles y
restricción por rol en las rutas.
"""

import jwt
import pytest
from pydantic import ValidationError

from app.core.config import settings
from app.modules.auth.schemas import CallerContext, CallerRole
from conftest import bearer


class TestCallerContext:

    @pytest.mark.parametrize("raw", ["pm", "PM", "project-manager", "project_manager", " Project-Manager "])
    def test_pm_aliases(self, raw):
        caller = CallerContext(caller_id="u-1", role=raw)
        assert caller.role == CallerRole.PROJECT_MANAGER
        assert caller.is_pm
        assert not caller.is_vendor

    def test_vendor(self):
        caller = CallerContext(caller_id="u-1", role="vendor")
        assert caller.is_vendor

    def test_unknown_role(self):
        with pytest.raises(ValidationError):
            CallerContext(caller_id="u-1", role="admin")

    def test_empty_caller_id(self):
        with pytest.raises(ValidationError):
            CallerContext(caller_id="", role="vendor")


class TestAuthDependencies:

    def test_missing_token(self, client):
        response = client.get("/quotations")
        assert response.status_code in (401, 403)

    def test_bad_signature(self, client):
        token = jwt.encode({"sub": "vendor-1", "role": "vendor"}, "otro-secreto", algorithm=settings.ALGORITHM)
        response = client.get("/quotations", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_without_subject(self, client):
        token = jwt.encode({"role": "vendor"}, settings.APP_SECRET_STRING, algorithm=settings.ALGORITHM)
        response = client.get("/quotations", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_invalid_role_claim(self, client):
        response = client.get("/quotations", headers=bearer("u-1", "admin"))
        assert response.status_code == 400

    def test_vendor_only_route_rejects_pm(self, client, pm_headers):
        response = client.post("/quotations", json={"line_items": []}, headers=pm_headers)
        assert response.status_code == 403

    def test_pm_only_route_rejects_vendor(self, client, vendor_headers):
        response = client.put(
            "/quotations/QT-1/status", json={"status": "approved"}, headers=vendor_headers
        )
        assert response.status_code == 403
