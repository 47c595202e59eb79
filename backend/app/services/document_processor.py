"""
Document Processor — turns one uploaded drawing into persisted elements,
tables and technical notes.

File status state machine:
    pending → processing → completed
                         ↘ error

  - "processing" is committed before any extraction work starts.
  - Only "pending" and "error" files are claimed; anything else raises
    InvalidJobStateError and nothing is extracted or written.
  - Extracted rows and the "completed" status are written in one
    transaction, so a reader never sees "completed" without its rows.
  - Any failure (unsupported format, recognizer exhausted, insert error)
    records "error" + error_message and re-raises the original exception.

Dispatch by file type:
  pdf   → PyMuPDF text per page + pdfplumber table geometry per page
  image → optical recognizer (with retry) → elements + notes, no tables
  dwg   → UnsupportedFormatError
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import update

from app import config
from app.models.orm_models import (
    ProjectFile,
    ProjectTable,
    StructuralElement,
    TechnicalNoteRecord,
    utcnow,
)
from app.services.element_extractor import (
    StructuralElementDraft,
    TechnicalNote,
    extract_elements,
    extract_technical_notes,
)
from app.services.errors import InvalidJobStateError, JobNotFoundError, UnsupportedFormatError
from app.services.ocr_service import OpticalRecognizer, recognize_with_retry
from app.services.table_extractor import TableDraft, detect_page_tables, extract_tables

logger = logging.getLogger("estrutura-processor")

DEFAULT_LOCATION = {"level": 0, "position": ""}

# Statuses a worker may claim; completed is terminal
CLAIMABLE_STATUSES = ("pending", "error")


@dataclass
class ExtractedData:
    elements: list[StructuralElementDraft] = field(default_factory=list)
    tables: list[TableDraft] = field(default_factory=list)
    notes: list[TechnicalNote] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "elements": [e.to_dict() for e in self.elements],
            "tables": [t.to_dict() for t in self.tables],
            "notes": [n.to_dict() for n in self.notes],
        }


@dataclass
class PdfPageContent:
    number: int                         # 1-based
    text: str
    spatial_tables: list[TableDraft] = field(default_factory=list)


@dataclass
class _FileJob:
    id: str
    project_id: str
    type: str
    path: str


def read_pdf_pages(path: str) -> list[PdfPageContent]:
    """Page text from PyMuPDF and table geometry from pdfplumber. Blocking."""
    import fitz          # PyMuPDF
    import pdfplumber

    pages: list[PdfPageContent] = []
    with fitz.open(path) as doc, pdfplumber.open(path) as plumber:
        for index, page in enumerate(doc):
            number = index + 1
            spatial = []
            if index < len(plumber.pages):
                spatial = detect_page_tables(plumber.pages[index], number)
            pages.append(PdfPageContent(number=number, text=page.get_text(), spatial_tables=spatial))
    return pages


class DocumentProcessor:

    def __init__(
        self,
        recognizer: OpticalRecognizer,
        session_factory=None,
        max_retries: int = config.OCR_MAX_RETRIES,
        backoff_seconds: float = config.OCR_RETRY_BACKOFF_SECONDS,
        sleep=asyncio.sleep,
    ):
        if session_factory is None:
            from app.db import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.recognizer = recognizer
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    async def process(self, file_id: str) -> ExtractedData:
        job = await self._mark_processing(file_id)
        logger.info(f"[{file_id}] Processing {job.type} file for project {job.project_id}")

        try:
            extracted = await self.extract(job.type, job.path)
            await self._save(job, extracted)
        except Exception as exc:
            await self._mark_error(file_id, str(exc))
            logger.error(f"[{file_id}] Processing failed: {exc}")
            raise

        logger.info(
            f"[{file_id}] Completed: {len(extracted.elements)} elements, "
            f"{len(extracted.tables)} tables, {len(extracted.notes)} notes"
        )
        return extracted

    # ── Extraction ────────────────────────────────────────────────────────────

    async def extract(self, file_type: str, path: str) -> ExtractedData:
        if file_type == "pdf":
            return await self._extract_pdf(path)
        if file_type == "image":
            return await self._extract_image(path)
        if file_type == "dwg":
            raise UnsupportedFormatError("DWG processing not implemented yet")
        raise UnsupportedFormatError(f"Unsupported file type: {file_type}")

    async def _extract_pdf(self, path: str) -> ExtractedData:
        pages = await asyncio.to_thread(read_pdf_pages, path)
        data = ExtractedData()
        for page in pages:
            for element in extract_elements(page.text):
                element.page = page.number
                data.elements.append(element)
            for note in extract_technical_notes(page.text):
                note.page = page.number
                data.notes.append(note)
            heuristic = extract_tables(page.text, page=page.number)
            data.tables.extend(page.spatial_tables or heuristic)
        return data

    async def _extract_image(self, path: str) -> ExtractedData:
        result = await recognize_with_retry(
            self.recognizer,
            path,
            max_retries=self.max_retries,
            backoff_seconds=self.backoff_seconds,
            sleep=self._sleep,
        )
        return ExtractedData(
            elements=extract_elements(result.text),
            notes=extract_technical_notes(result.text),
        )

    # ── Persistence ───────────────────────────────────────────────────────────

    async def _mark_processing(self, file_id: str) -> _FileJob:
        """Claim the file for extraction. Only pending or failed files can be claimed."""
        async with self.session_factory() as session:
            record = await session.get(ProjectFile, file_id)
            if record is None:
                raise JobNotFoundError(f"File {file_id} not found")
            job = _FileJob(id=record.id, project_id=record.project_id, type=record.type, path=record.path)
            current = record.status
            claimed = await session.execute(
                update(ProjectFile)
                .where(ProjectFile.id == file_id, ProjectFile.status.in_(CLAIMABLE_STATUSES))
                .values(status="processing", error_message=None, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        if claimed.rowcount == 0:
            raise InvalidJobStateError(f"File {file_id} is already {current}")
        return job

    async def _save(self, job: _FileJob, extracted: ExtractedData) -> None:
        rows = []
        for element in extracted.elements:
            rows.append(StructuralElement(
                project_id=job.project_id,
                file_id=job.id,
                type=element.type,
                number=element.number,
                dimensions=dict(element.dimensions),
                materials={
                    "concrete": {"fck": config.DEFAULT_CONCRETE_FCK_MPA, "volume": 0},
                    "steel": {"ratio": 0, "weight": config.DEFAULT_STEEL_WEIGHT_KG},
                },
                location=dict(DEFAULT_LOCATION),
            ))
        for table in extracted.tables:
            rows.append(ProjectTable(
                project_id=job.project_id,
                file_id=job.id,
                type=table.type,
                data=table.data,
                location=dict(table.location),
            ))
        for note in extracted.notes:
            rows.append(TechnicalNoteRecord(
                project_id=job.project_id,
                file_id=job.id,
                type=note.type,
                content=note.content,
                value=note.value,
                location={"page": note.page} if note.page is not None else None,
            ))

        async with self.session_factory() as session:
            async with session.begin():
                session.add_all(rows)
                record = await session.get(ProjectFile, job.id)
                record.status = "completed"
                record.extracted_data = extracted.to_dict()

    async def _mark_error(self, file_id: str, message: str) -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(ProjectFile)
                    .where(ProjectFile.id == file_id)
                    .values(status="error", error_message=message, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except Exception as exc:
            logger.error(f"[{file_id}] Could not record error status: {exc}")


async def get_file_status(session, file_id: str) -> dict:
    record = await session.get(ProjectFile, file_id)
    if record is None:
        raise JobNotFoundError(f"File {file_id} not found")
    return {
        "id": record.id,
        "project_id": record.project_id,
        "name": record.name,
        "type": record.type,
        "status": record.status,
        "error_message": record.error_message,
        "extracted_data": record.extracted_data if record.status == "completed" else None,
    }


def file_type_for_mime(mime_type: Optional[str]) -> Optional[str]:
    """Map an upload's content type onto pdf | dwg | image, or None."""
    mime = (mime_type or "").lower()
    if "pdf" in mime:
        return "pdf"
    if "dwg" in mime or "acad" in mime:
        return "dwg"
    if mime.startswith("image/"):
        return "image"
    return None
