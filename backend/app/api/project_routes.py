"""Projects API — the container that files, elements and analyses hang off."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.models.api_models import ProjectCreateRequest, ProjectResponse
from app.models.orm_models import Project

logger = logging.getLogger("estrutura-api.projects")

router = APIRouter(prefix="/api/projects", tags=["Projects"])


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(payload: ProjectCreateRequest, db: AsyncSession = Depends(get_db)):
    project = Project(name=payload.name, description=payload.description)
    db.add(project)
    await db.commit()
    logger.info(f"[{project.id}] Project created: {project.name}")
    return {"id": project.id, "name": project.name, "description": project.description}


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, db: AsyncSession = Depends(get_db)):
    project = await db.get(Project, project_id)
    if project is None:
        raise HTTPException(404, "Project not found")
    return {"id": project.id, "name": project.name, "description": project.description}
