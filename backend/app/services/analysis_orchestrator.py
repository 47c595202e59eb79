"""
Analysis Orchestrator — lifecycle of asynchronous compliance analyses.

Report status state machine:
    processing → completed
               → error
               → cancelled

start()  inserts a "processing" report. The partial unique index on
         project_reports makes the insert itself the uniqueness check, so
         two concurrent starts for one project cannot both succeed.
run()    executes the compliance engine and writes the terminal state with
         UPDATE ... WHERE status = 'processing'. Whichever of run/cancel
         lands first wins; the other becomes a no-op.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.models.orm_models import Project, ProjectReport, utcnow
from app.services.compliance_engine import (
    ComplianceEngine,
    StructuralAnalysis,
    analyze_project,
)
from app.services.errors import (
    AnalysisInProgressError,
    AnalysisNotCompletedError,
    InvalidJobStateError,
    JobNotFoundError,
)

logger = logging.getLogger("estrutura-orchestrator")

Dispatcher = Callable[[str], None]
Analyzer = Callable[..., Awaitable[StructuralAnalysis]]

PROGRESS_STARTED = 10
PROGRESS_DONE = 100


def report_to_analysis(report: ProjectReport) -> dict:
    return {
        "id": report.id,
        "project_id": report.project_id,
        "elements": report.elements or [],
        "total_area": report.total_area or 0.0,
        "total_concrete": report.total_concrete or 0.0,
        "total_steel": report.total_steel or 0.0,
        "inconsistencies": report.inconsistencies or [],
        "optimizations": report.optimizations or [],
        "created_at": report.created_at.isoformat() if report.created_at else None,
        "updated_at": report.updated_at.isoformat() if report.updated_at else None,
    }


class AnalysisOrchestrator:

    def __init__(
        self,
        session_factory=None,
        dispatcher: Optional[Dispatcher] = None,
        engine: Optional[ComplianceEngine] = None,
        analyzer: Analyzer = analyze_project,
    ):
        if session_factory is None:
            from app.db import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.engine = engine or ComplianceEngine()
        self.analyzer = analyzer

    async def start(self, project_id: str) -> dict:
        async with self.session_factory() as session:
            if await session.get(Project, project_id) is None:
                raise JobNotFoundError(f"Project {project_id} not found")

            report = ProjectReport(project_id=project_id, status="processing", progress=0)
            session.add(report)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise AnalysisInProgressError(
                    "Já existe uma análise em andamento para este projeto"
                ) from exc
            job_id = report.id

        logger.info(f"[{project_id}] Analysis {job_id} queued")

        if self.dispatcher is not None:
            try:
                self.dispatcher(job_id)
            except Exception as exc:
                await self._finish(job_id, status="error", error_message=f"Dispatch failed: {exc}")
                raise

        return {"id": job_id, "project_id": project_id, "status": "processing"}

    async def run(self, job_id: str) -> str:
        """Execute the analysis for ``job_id`` and return the resulting status.

        Failures are recorded on the report, never raised: this runs inside
        a worker and the worker must survive a bad project.
        """
        async with self.session_factory() as session:
            report = await session.get(ProjectReport, job_id)
            if report is None:
                raise JobNotFoundError(f"Analysis {job_id} not found")
            if report.status != "processing":
                logger.info(f"[{job_id}] Skipping run, status is {report.status}")
                return report.status
            project_id = report.project_id

        await self._set_progress(job_id, PROGRESS_STARTED)

        try:
            async with self.session_factory() as session:
                analysis = await self.analyzer(session, project_id, self.engine)
        except Exception as exc:
            written = await self._finish(job_id, status="error", error_message=str(exc))
            logger.error(f"[{job_id}] Analysis failed: {exc}")
            return "error" if written else await self._current_status(job_id)

        written = await self._finish(
            job_id,
            status="completed",
            progress=PROGRESS_DONE,
            elements=analysis.elements,
            total_area=analysis.total_area,
            total_concrete=analysis.total_concrete,
            total_steel=analysis.total_steel,
            inconsistencies=[i.to_dict() for i in analysis.inconsistencies],
            optimizations=[o.to_dict() for o in analysis.optimizations],
            completed_at=utcnow(),
        )
        if not written:
            status = await self._current_status(job_id)
            logger.info(f"[{job_id}] Result discarded, job already {status}")
            return status

        logger.info(f"[{job_id}] Analysis completed for project {project_id}")
        return "completed"

    async def status(self, job_id: str) -> dict:
        report = await self._get(job_id)
        return {
            "status": report.status,
            "error_message": report.error_message,
            "progress": report.progress,
            "results": report_to_analysis(report) if report.status == "completed" else None,
        }

    async def results(self, job_id: str) -> dict:
        report = await self._get(job_id)
        if report.status != "completed":
            raise AnalysisNotCompletedError("Análise ainda não concluída")
        return report_to_analysis(report)

    async def cancel(self, job_id: str) -> dict:
        async with self.session_factory() as session:
            result = await session.execute(
                update(ProjectReport)
                .where(ProjectReport.id == job_id, ProjectReport.status == "processing")
                .values(status="cancelled", completed_at=utcnow(), updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if result.rowcount == 0:
            await self._get(job_id)     # raises JobNotFoundError for unknown ids
            raise InvalidJobStateError("Apenas análises em andamento podem ser canceladas")

        logger.info(f"[{job_id}] Analysis cancelled")
        return {"id": job_id, "status": "cancelled"}

    async def history(self, project_id: str) -> list[dict]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProjectReport)
                .where(ProjectReport.project_id == project_id)
                .order_by(ProjectReport.created_at, ProjectReport.id)
            )
            reports = result.scalars().all()
        return [
            {
                "id": r.id,
                "status": r.status,
                "progress": r.progress,
                "error_message": r.error_message,
                "total_area": r.total_area,
                "total_concrete": r.total_concrete,
                "total_steel": r.total_steel,
                "created_at": r.created_at.isoformat() if r.created_at else None,
                "completed_at": r.completed_at.isoformat() if r.completed_at else None,
            }
            for r in reports
        ]

    # ── internals ─────────────────────────────────────────────────────────────

    async def _get(self, job_id: str) -> ProjectReport:
        async with self.session_factory() as session:
            report = await session.get(ProjectReport, job_id)
        if report is None:
            raise JobNotFoundError(f"Analysis {job_id} not found")
        return report

    async def _current_status(self, job_id: str) -> str:
        return (await self._get(job_id)).status

    async def _set_progress(self, job_id: str, progress: int) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(ProjectReport)
                .where(ProjectReport.id == job_id, ProjectReport.status == "processing")
                .values(progress=progress, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def _finish(self, job_id: str, **values) -> bool:
        """Conditional terminal write. False when the job already left "processing"."""
        values.setdefault("updated_at", utcnow())
        if values.get("status") in ("error", "cancelled"):
            values.setdefault("completed_at", utcnow())
        async with self.session_factory() as session:
            result = await session.execute(
                update(ProjectReport)
                .where(ProjectReport.id == job_id, ProjectReport.status == "processing")
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount == 1
