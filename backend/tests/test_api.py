"""
test_api.py — HTTP contract of the projects, files and analysis routers.

The app runs without its lifespan (no Tesseract, no PostgreSQL): sessions
come from the SQLite fixture, the recognizer is scripted, and jobs run
in-process as background tasks, which TestClient completes before
returning the response.
"""

import asyncio
import logging

import pytest
from fastapi.testclient import TestClient

from app import config
from app.api import deps
from app.main import app
from app.services.analysis_orchestrator import AnalysisOrchestrator
from conftest import ScriptedRecognizer, recognition, seed_element


@pytest.fixture
def client(session_factory, tmp_path, monkeypatch):
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))
    recognizer = ScriptedRecognizer([recognition("Pilar P1 : 20x40\nLaje L1 : 15cm\nfck=30")])

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_recognizer] = lambda: recognizer
    app.dependency_overrides[deps.get_dispatch_mode] = lambda: "inline"
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_project(client, name="Residencial Aurora"):
    response = client.post("/api/projects", json={"name": name})
    assert response.status_code == 201
    return response.json()["id"]


class TestProjects:

    def test_create_and_get(self, client):
        project_id = _create_project(client)
        response = client.get(f"/api/projects/{project_id}")
        assert response.status_code == 200
        assert response.json()["name"] == "Residencial Aurora"

    def test_unknown_project(self, client):
        assert client.get("/api/projects/missing").status_code == 404


class TestFiles:

    def test_upload_runs_extraction(self, client):
        project_id = _create_project(client)
        response = client.post(
            f"/api/files/{project_id}",
            files={"file": ("planta.png", b"\x89PNG fake", "image/png")},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "pending"

        status = client.get(f"/api/files/status/{body['file_id']}").json()
        assert status["status"] == "completed"
        assert status["type"] == "image"
        assert [e["type"] for e in status["extracted_data"]["elements"]] == ["pillar", "slab"]

    def test_dwg_upload_ends_in_error(self, client):
        project_id = _create_project(client)
        response = client.post(
            f"/api/files/{project_id}",
            files={"file": ("planta.dwg", b"AC1027", "image/vnd.dwg")},
        )
        status = client.get(f"/api/files/status/{response.json()['file_id']}").json()
        assert status["status"] == "error"
        assert status["error_message"] == "DWG processing not implemented yet"
        assert status["extracted_data"] is None

    def test_unsupported_mime_type(self, client):
        project_id = _create_project(client)
        response = client.post(
            f"/api/files/{project_id}",
            files={"file": ("notas.txt", b"fck=30", "text/plain")},
        )
        assert response.status_code == 400

    def test_upload_to_unknown_project(self, client):
        response = client.post(
            "/api/files/missing",
            files={"file": ("planta.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert response.status_code == 404

    def test_oversized_upload(self, client, monkeypatch):
        monkeypatch.setattr(config, "MAX_FILE_SIZE", 4)
        project_id = _create_project(client)
        response = client.post(
            f"/api/files/{project_id}",
            files={"file": ("planta.png", b"\x89PNG fake", "image/png")},
        )
        assert response.status_code == 413

    def test_unknown_file_status(self, client):
        assert client.get("/api/files/status/missing").status_code == 404


class TestAnalysis:

    def test_full_cycle(self, client, session_factory):
        project_id = _create_project(client)
        asyncio.run(seed_element(session_factory, project_id, "pillar",
                                 {"width": 20, "height": 40, "length": 300}, steel_weight=40))

        started = client.post(f"/api/analysis/{project_id}/start")
        assert started.status_code == 200
        job_id = started.json()["id"]

        status = client.get(f"/api/analysis/status/{job_id}").json()
        assert status["status"] == "completed"
        assert status["progress"] == 100

        results = client.get(f"/api/analysis/results/{job_id}")
        assert results.status_code == 200
        assert results.json()["inconsistencies"][0]["rule"] == "NBR 6118 - Taxa máxima de armadura em pilares"

        history = client.get(f"/api/analysis/project/{project_id}").json()
        assert [h["id"] for h in history] == [job_id]

    def test_start_while_processing_is_rejected(self, client, session_factory):
        project_id = _create_project(client)
        asyncio.run(AnalysisOrchestrator(session_factory).start(project_id))
        response = client.post(f"/api/analysis/{project_id}/start")
        assert response.status_code == 400
        assert "andamento" in response.json()["detail"]

    def test_results_of_processing_job(self, client, session_factory):
        project_id = _create_project(client)
        job = asyncio.run(AnalysisOrchestrator(session_factory).start(project_id))
        response = client.get(f"/api/analysis/results/{job['id']}")
        assert response.status_code == 400

    def test_cancel(self, client, session_factory):
        project_id = _create_project(client)
        job = asyncio.run(AnalysisOrchestrator(session_factory).start(project_id))
        first = client.post(f"/api/analysis/cancel/{job['id']}")
        second = client.post(f"/api/analysis/cancel/{job['id']}")
        assert first.status_code == 200
        assert first.json()["status"] == "cancelled"
        assert second.status_code == 400

    def test_unknown_job(self, client):
        assert client.get("/api/analysis/status/missing").status_code == 404
        assert client.post("/api/analysis/cancel/missing").status_code == 404

    def test_start_for_unknown_project(self, client):
        assert client.post("/api/analysis/missing/start").status_code == 404


class TestHealth:

    def test_health_and_tracing_headers(self, client):
        response = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.status_code == 200
        assert response.json()["status"] == "active"
        assert response.headers["X-Request-ID"] == "abc-123"
        assert "X-Process-Time" in response.headers

    def test_request_log_line(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="estrutura-api.middleware"):
            client.get("/api/projects/missing", headers={"X-Request-ID": "req-42"})
        records = [r for r in caplog.records if r.name == "estrutura-api.middleware"]
        assert [r.getMessage() for r in records] == ["request completed"]
        assert records[0].http_status == 404
        assert records[0].request_id == "req-42"
