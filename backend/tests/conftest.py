"""
conftest.py — Shared pytest fixtures for the Estrutura backend test suite.

Database-backed tests run against a throw-away SQLite file through aiosqlite.
The engine uses NullPool so each ``asyncio.run`` call in a test opens fresh
connections on its own event loop.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import asyncio
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def session_factory(tmp_path):
    """async_sessionmaker bound to a fresh SQLite database with all tables."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from sqlalchemy.pool import NullPool
    from app.db import create_tables

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'estrutura_test.db'}",
        poolclass=NullPool,
    )
    asyncio.run(create_tables(engine))
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


async def seed_project(factory, name: str = "Edifício Teste") -> str:
    from app.models.orm_models import Project

    async with factory() as session:
        project = Project(name=name)
        session.add(project)
        await session.commit()
        return project.id


async def seed_element(
    factory,
    project_id: str,
    element_type: str,
    dimensions: dict,
    fck: float = 25.0,
    steel_weight: float = 0.0,
    number: str = "1",
) -> str:
    from app.models.orm_models import StructuralElement

    async with factory() as session:
        element = StructuralElement(
            project_id=project_id,
            type=element_type,
            number=number,
            dimensions=dimensions,
            materials={"concrete": {"fck": fck, "volume": 0}, "steel": {"ratio": 0, "weight": steel_weight}},
            location={"level": 0, "position": ""},
        )
        session.add(element)
        await session.commit()
        return element.id


async def seed_file(factory, project_id: str, file_type: str, path: str, name: str = "planta") -> str:
    from app.models.orm_models import ProjectFile

    async with factory() as session:
        record = ProjectFile(
            project_id=project_id, name=name, type=file_type, path=path, size=0, status="pending",
        )
        session.add(record)
        await session.commit()
        return record.id


# ---------------------------------------------------------------------------
# Recognizer double
# ---------------------------------------------------------------------------

from app.services.ocr_service import OpticalRecognizer, RecognitionResult  # noqa: E402


class ScriptedRecognizer(OpticalRecognizer):
    """
    OpticalRecognizer stand-in. ``outcomes`` is consumed one entry per
    recognize() call: an Exception instance is raised, anything else is
    returned. The last outcome repeats once the script runs out.
    """

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.terminated = False

    async def initialize(self):
        return None

    async def recognize(self, image_path):
        self.calls.append(image_path)
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def terminate(self):
        self.terminated = True

    def progress(self):
        return {"status": "ready", "progress": 0}


def recognition(text: str, confidence: float = 0.95) -> RecognitionResult:
    return RecognitionResult(text=text, confidence=confidence, blocks=[])


class RecordingSleep:
    """Replaces asyncio.sleep; records requested delays without waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture(scope="session")
def compliance_engine():
    """ComplianceEngine with default NBR 6118 limits."""
    from app.services.compliance_engine import ComplianceEngine
    return ComplianceEngine()
