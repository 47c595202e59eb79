"""FastAPI dependency injection — sessions, recognizer, services and job dispatch."""
import logging

from fastapi import BackgroundTasks, Depends, Request

from app import config
from app.db import AsyncSessionLocal, get_db  # noqa: F401  (re-exported for routers)
from app.services.analysis_orchestrator import AnalysisOrchestrator
from app.services.document_processor import DocumentProcessor
from app.services.ocr_service import OpticalRecognizer

logger = logging.getLogger("estrutura-api.deps")


def get_session_factory():
    return AsyncSessionLocal


def get_dispatch_mode() -> str:
    return config.TASK_DISPATCH


def get_recognizer(request: Request) -> OpticalRecognizer:
    """The process-wide recognizer created in the app lifespan."""
    recognizer = getattr(request.app.state, "recognizer", None)
    if recognizer is None:
        from app.services.ocr_service import TesseractRecognizer
        recognizer = TesseractRecognizer()
        request.app.state.recognizer = recognizer
    return recognizer


class JobDispatcher:
    """
    Hands extraction and analysis jobs to Celery. When dispatch mode is
    "inline", or the broker cannot be reached, the job runs in-process as a
    FastAPI background task instead. Either way the job row carries status.
    """

    def __init__(
        self,
        background_tasks: BackgroundTasks,
        session_factory,
        recognizer: OpticalRecognizer,
        mode: str = "celery",
    ):
        self.background_tasks = background_tasks
        self.session_factory = session_factory
        self.recognizer = recognizer
        self.mode = mode

    def _send_to_celery(self, task_name: str, job_id: str) -> bool:
        if self.mode != "celery":
            return False
        try:
            from app.workers import tasks
            getattr(tasks, task_name).delay(job_id)
            logger.info(f"[{job_id}] Celery task {task_name} dispatched.")
            return True
        except Exception as exc:
            logger.warning(f"[{job_id}] Celery not available ({exc}). Running in-process.")
            return False

    def analysis(self, job_id: str) -> None:
        if not self._send_to_celery("run_structural_analysis", job_id):
            orchestrator = AnalysisOrchestrator(self.session_factory)
            self.background_tasks.add_task(orchestrator.run, job_id)

    def file(self, file_id: str) -> None:
        if not self._send_to_celery("process_project_file", file_id):
            self.background_tasks.add_task(self._process_inline, file_id)

    async def _process_inline(self, file_id: str) -> None:
        processor = DocumentProcessor(self.recognizer, self.session_factory)
        try:
            await processor.process(file_id)
        except Exception as exc:
            # Already recorded on the file row by the processor
            logger.error(f"[{file_id}] Inline processing failed: {exc}")


def get_dispatcher(
    background_tasks: BackgroundTasks,
    session_factory=Depends(get_session_factory),
    recognizer: OpticalRecognizer = Depends(get_recognizer),
    mode: str = Depends(get_dispatch_mode),
) -> JobDispatcher:
    return JobDispatcher(background_tasks, session_factory, recognizer, mode=mode)


def get_orchestrator(
    session_factory=Depends(get_session_factory),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(session_factory, dispatcher=dispatcher.analysis)
