"""Analysis API — start, poll, fetch and cancel NBR 6118 compliance analyses."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_orchestrator
from app.models.api_models import (
    AnalysisCancelResponse,
    AnalysisHistoryItem,
    AnalysisStartResponse,
    AnalysisStatusResponse,
    StructuralAnalysisResponse,
)
from app.services.analysis_orchestrator import AnalysisOrchestrator
from app.services.errors import JobNotFoundError, PipelineError

logger = logging.getLogger("estrutura-api.analysis")

router = APIRouter(prefix="/api/analysis", tags=["Structural Analysis"])


def _http_error(exc: PipelineError) -> HTTPException:
    if isinstance(exc, JobNotFoundError):
        return HTTPException(404, str(exc))
    return HTTPException(400, str(exc))


@router.post("/{project_id}/start", response_model=AnalysisStartResponse)
async def start_analysis(
    project_id: str,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Queue an analysis. 400 when one is already processing for this project."""
    try:
        return await orchestrator.start(project_id)
    except PipelineError as exc:
        raise _http_error(exc)


@router.get("/status/{job_id}", response_model=AnalysisStatusResponse)
async def analysis_status(
    job_id: str,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.status(job_id)
    except PipelineError as exc:
        raise _http_error(exc)


@router.get("/results/{job_id}", response_model=StructuralAnalysisResponse)
async def analysis_results(
    job_id: str,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.results(job_id)
    except PipelineError as exc:
        raise _http_error(exc)


@router.post("/cancel/{job_id}", response_model=AnalysisCancelResponse)
async def cancel_analysis(
    job_id: str,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.cancel(job_id)
    except PipelineError as exc:
        raise _http_error(exc)


@router.get("/project/{project_id}", response_model=list[AnalysisHistoryItem])
async def analysis_history(
    project_id: str,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Every analysis run for the project, oldest first."""
    return await orchestrator.history(project_id)
