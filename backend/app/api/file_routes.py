"""Files API — drawing upload, extraction dispatch and status."""
import os
import shutil
import uuid
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app import config
from app.api.deps import JobDispatcher, get_db, get_dispatcher
from app.models.api_models import FileStatusResponse, FileUploadResponse
from app.models.orm_models import Project, ProjectFile
from app.services.document_processor import file_type_for_mime, get_file_status
from app.services.errors import JobNotFoundError

logger = logging.getLogger("estrutura-api.files")

router = APIRouter(prefix="/api/files", tags=["Drawing Files"])


def _save_upload(file: UploadFile, dest_dir: str) -> tuple[str, int]:
    """Save an uploaded file and return its path and size in bytes."""
    ext = os.path.splitext(file.filename or "")[-1].lower()
    filename = f"{uuid.uuid4().hex}{ext}"
    path = os.path.join(dest_dir, filename)
    os.makedirs(dest_dir, exist_ok=True)
    with open(path, "wb") as fh:
        shutil.copyfileobj(file.file, fh)
    return path, os.path.getsize(path)


@router.post("/{project_id}", response_model=FileUploadResponse)
async def upload_file(
    project_id: str,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
):
    """Store a PDF, image or DWG drawing and queue its extraction."""
    file_type = file_type_for_mime(file.content_type)
    if file_type is None:
        raise HTTPException(400, f"Tipo de arquivo não suportado: {file.content_type}")

    if await db.get(Project, project_id) is None:
        raise HTTPException(404, "Project not found")

    path, size = _save_upload(file, os.path.join(config.UPLOAD_DIR, project_id))
    if size > config.MAX_FILE_SIZE:
        os.remove(path)
        raise HTTPException(413, f"File exceeds {config.MAX_FILE_SIZE} bytes")

    record = ProjectFile(
        project_id=project_id,
        name=file.filename or os.path.basename(path),
        type=file_type,
        path=path,
        size=size,
        status="pending",
    )
    db.add(record)
    await db.commit()
    logger.info(f"[{record.id}] {file_type} upload stored for project {project_id} ({size} bytes)")

    dispatcher.file(record.id)
    return {"file_id": record.id, "status": "pending"}


@router.get("/status/{file_id}", response_model=FileStatusResponse)
async def file_status(file_id: str, db: AsyncSession = Depends(get_db)):
    try:
        return await get_file_status(db, file_id)
    except JobNotFoundError as exc:
        raise HTTPException(404, str(exc))
