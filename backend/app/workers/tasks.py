"""
Celery Tasks — extraction and analysis jobs, run off the FastAPI process.

Each task bridges into the async services through _run_async(), which gives
every task its own event loop. The job row (project_files / project_reports)
is the source of truth for status; task return values are informational.
"""
import asyncio
import logging

from app.workers.celery_app import celery_app

logger = logging.getLogger("estrutura-celery")

_recognizer = None


def _run_async(coro):
    """Run an async coroutine in a sync Celery task context (new event loop)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _with_sessions(work):
    """Give one task a private engine; pooled connections cannot cross event loops."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from app.db import DATABASE_URL, build_engine

    engine = build_engine(DATABASE_URL)
    try:
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        return await work(factory)
    finally:
        await engine.dispose()


def _get_recognizer():
    """One recognizer per worker process, initialised lazily on first use."""
    global _recognizer
    if _recognizer is None:
        from app.services.ocr_service import TesseractRecognizer
        _recognizer = TesseractRecognizer()
    return _recognizer


@celery_app.task(bind=True, name="tasks.process_project_file")
def process_project_file(self, file_id: str):
    """Extract elements, tables and notes from one uploaded drawing."""
    from app.services.document_processor import DocumentProcessor

    self.update_state(state="PROGRESS", meta={"step": "Extracting drawing", "pct": 10})
    recognizer = _get_recognizer()
    try:
        extracted = _run_async(_with_sessions(
            lambda factory: DocumentProcessor(recognizer, factory).process(file_id)
        ))
    except Exception as e:
        # Status and message are already on the file row
        logger.error(f"File processing failed for {file_id}: {e}")
        return {"status": "error", "file_id": file_id, "error": str(e)}

    return {
        "status": "completed",
        "file_id": file_id,
        "elements": len(extracted.elements),
        "tables": len(extracted.tables),
        "notes": len(extracted.notes),
    }


@celery_app.task(bind=True, name="tasks.run_structural_analysis")
def run_structural_analysis(self, job_id: str):
    """Run the NBR 6118 compliance analysis for one report row."""
    from app.services.analysis_orchestrator import AnalysisOrchestrator

    self.update_state(state="PROGRESS", meta={"step": "Analysing elements", "pct": 10})
    try:
        status = _run_async(_with_sessions(
            lambda factory: AnalysisOrchestrator(factory).run(job_id)
        ))
    except Exception as e:
        logger.error(f"Structural analysis failed for {job_id}: {e}")
        return {"status": "error", "job_id": job_id, "error": str(e)}
    return {"status": status, "job_id": job_id}
