"""
DevFocus - Application Tests
============================

Health, root endpoint, error rendering and process-wide resources.
"""

import sqlite3
import subprocess
import sys

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError, OperationalError, StatementError

from devfocus.api import main
from devfocus.api.main import map_database_error
from devfocus.core import database
from devfocus.core import mailer as mailer_module
from devfocus.core.assistant import Assistant, CompletionClient
from devfocus.core.assistant import service as assistant_service
from devfocus.core.exceptions import ConflictError, ValidationError
from devfocus.core.mailer import Mailer


class TestHealth:
    """Tests for /health and /."""

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["version"] == "0.1.0"

    async def test_root(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "DevFocus"
        assert data["api"] == "/api/v1"


class TestErrorRendering:
    """Errors share one body shape: {error, detail, code}."""

    async def test_domain_error_shape(self, client: AsyncClient, auth_headers: dict):
        response = await client.get(
            "/api/v1/tasks/00000000-0000-0000-0000-000000000000", headers=auth_headers
        )

        assert response.status_code == 404
        assert response.json() == {
            "error": "Not Found",
            "detail": "Task not found",
            "code": "NOT_FOUND",
        }

    async def test_malformed_json_is_400(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/tasks",
            headers={**auth_headers, "Content-Type": "application/json"},
            content="{not json",
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_validation_detail_names_field(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/sessions",
            headers=auth_headers,
            json={"taskId": "nope"},
        )

        assert response.status_code == 400
        assert "taskId" in response.json()["detail"]

    def test_unique_violation_maps_to_conflict(self):
        error = IntegrityError(
            "INSERT INTO users ...", {}, sqlite3.IntegrityError("UNIQUE constraint failed: users.email")
        )

        assert isinstance(map_database_error(error), ConflictError)

    def test_not_null_violation_maps_to_validation(self):
        error = IntegrityError(
            "INSERT INTO tasks ...", {}, sqlite3.IntegrityError("NOT NULL constraint failed: tasks.title")
        )

        assert isinstance(map_database_error(error), ValidationError)

    def test_statement_error_maps_to_validation(self):
        error = StatementError("bad value", "SELECT 1", {}, ValueError("bad"))

        assert isinstance(map_database_error(error), ValidationError)

    def test_operational_error_is_not_mapped(self):
        error = OperationalError("SELECT 1", {}, sqlite3.OperationalError("database is locked"))

        assert map_database_error(error) is None


class TestLifespan:
    """Startup and shutdown of process-wide resources."""

    async def test_shutdown_closes_provider_clients(self, monkeypatch: pytest.MonkeyPatch):
        async def noop() -> None:
            return None

        mail_http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(202)))
        ai_http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        monkeypatch.setattr(main, "init_db", noop)
        monkeypatch.setattr(main, "close_db", noop)
        monkeypatch.setattr(mailer_module, "_mailer", Mailer(api_key="", client=mail_http))
        monkeypatch.setattr(
            assistant_service,
            "_assistant",
            Assistant(client=CompletionClient(api_key="", client=ai_http)),
        )

        async with main.lifespan(main.app):
            assert not mail_http.is_closed

        assert mail_http.is_closed
        assert ai_http.is_closed
        assert mailer_module._mailer is None
        assert assistant_service._assistant is None

    async def test_shutdown_without_provider_clients(self, monkeypatch: pytest.MonkeyPatch):
        async def noop() -> None:
            return None

        monkeypatch.setattr(main, "init_db", noop)
        monkeypatch.setattr(main, "close_db", noop)
        monkeypatch.setattr(mailer_module, "_mailer", None)
        monkeypatch.setattr(assistant_service, "_assistant", None)

        async with main.lifespan(main.app):
            pass

        assert mailer_module._mailer is None


class TestClientImports:
    """The client library does not pull in the server's database layer."""

    def test_client_import_skips_database(self):
        code = (
            "import sys\n"
            "import devfocus.client\n"
            "loaded = [m for m in ('devfocus.core.database', 'devfocus.core.models', 'sqlalchemy')"
            " if m in sys.modules]\n"
            "print(','.join(loaded))\n"
        )
        result = subprocess.run(
            [sys.executable, "-c", code],
            capture_output=True,
            text=True,
            check=True,
        )

        assert result.stdout.strip() == ""


class TestDatabaseEngine:
    """The engine is built on first use and rebuilt after close."""

    async def test_engine_built_lazily(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(database, "_engine", None)
        monkeypatch.setattr(database, "_session_factory", None)

        factory = database.get_session_factory()

        assert database._engine is not None
        assert factory is database.get_session_factory()
        assert database.get_engine() is database._engine

        await database.close_db()

        assert database._engine is None
        assert database._session_factory is None
