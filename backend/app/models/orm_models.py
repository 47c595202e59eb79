"""ORM Models for the structural extraction service — SQLAlchemy 2.0"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import (
    JSON, CheckConstraint, String, Text, Integer, Float, DateTime, ForeignKey, Index, text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

FILE_STATUSES = ("pending", "processing", "completed", "error")
ANALYSIS_STATUSES = ("processing", "completed", "error", "cancelled")


def status_check(statuses, name):
    allowed = ", ".join(f"'{s}'" for s in statuses)
    return CheckConstraint(f"status IN ({allowed})", name=name)


def gen_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


# ── PROJECTS ──────────────────────────────────────────────────────────────────
class Project(Base):
    __tablename__ = "projects"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    files: Mapped[list["ProjectFile"]] = relationship("ProjectFile", back_populates="project")
    elements: Mapped[list["StructuralElement"]] = relationship(
        "StructuralElement", back_populates="project"
    )


# ── FILES (extraction jobs) ───────────────────────────────────────────────────
class ProjectFile(Base):
    """
    One uploaded drawing. Status state machine:
    pending → processing → completed | error
    """
    __tablename__ = "project_files"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)        # pdf | image | dwg
    path: Mapped[str] = mapped_column(Text, nullable=False)
    size: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    extracted_data: Mapped[Optional[dict]] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
    project: Mapped["Project"] = relationship("Project", back_populates="files")

    __table_args__ = (status_check(FILE_STATUSES, "check_project_files_status"),)


# ── EXTRACTED RECORDS ─────────────────────────────────────────────────────────
class StructuralElement(Base):
    __tablename__ = "structural_elements"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), index=True)
    file_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("project_files.id"))
    type: Mapped[str] = mapped_column(String(10), nullable=False)        # pillar | beam | slab
    number: Mapped[str] = mapped_column(String(50), nullable=False)
    dimensions: Mapped[dict] = mapped_column(JSONType, nullable=False)  # width/height/length/thickness
    materials: Mapped[dict] = mapped_column(JSONType, nullable=False)   # concrete.fck, steel.weight
    location: Mapped[Optional[dict]] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    project: Mapped["Project"] = relationship("Project", back_populates="elements")


class TechnicalNoteRecord(Base):
    __tablename__ = "technical_notes"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), index=True)
    file_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("project_files.id"))
    type: Mapped[str] = mapped_column(String(10), nullable=False)        # fck | steel | load
    content: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    location: Mapped[Optional[dict]] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ProjectTable(Base):
    __tablename__ = "project_tables"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), index=True)
    file_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("project_files.id"))
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    data: Mapped[dict] = mapped_column(JSONType, nullable=False)        # {"headers": [...], "rows": [...]}
    location: Mapped[Optional[dict]] = mapped_column(JSONType)          # {"page", "x", "y"}
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# ── ANALYSIS JOBS + SNAPSHOTS ─────────────────────────────────────────────────
class ProjectReport(Base):
    """
    One analysis run. Status state machine:
    processing → completed | error | cancelled

    The partial unique index makes "one processing run per project" an atomic
    property of the INSERT itself.
    """
    __tablename__ = "project_reports"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="processing")
    progress: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    elements: Mapped[Optional[list]] = mapped_column(JSONType)
    total_area: Mapped[Optional[float]] = mapped_column(Float)
    total_concrete: Mapped[Optional[float]] = mapped_column(Float)
    total_steel: Mapped[Optional[float]] = mapped_column(Float)
    inconsistencies: Mapped[Optional[list]] = mapped_column(JSONType)
    optimizations: Mapped[Optional[list]] = mapped_column(JSONType)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        status_check(ANALYSIS_STATUSES, "check_project_reports_status"),
        Index("idx_project_reports_project", "project_id", "created_at"),
        Index(
            "uq_project_reports_processing",
            "project_id",
            unique=True,
            postgresql_where=text("status = 'processing'"),
            sqlite_where=text("status = 'processing'"),
        ),
    )
