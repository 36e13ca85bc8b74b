"""API routes for projects and their directory trees."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from charavault.api.deps import get_db, get_paths, get_project, get_scanner
from charavault.models.project import Project
from charavault.repositories import ProjectRepository
from charavault.services.directory_scanner import DirectoryScanner
from charavault.services.project_paths import ProjectPaths, normalize_relative_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


class ProjectCreateRequest(BaseModel):
    """Request to register a project directory."""
    name: str = Field(..., min_length=1, max_length=200)
    path: str = Field(..., min_length=1, description="Directory relative to the data root")
    description: Optional[str] = None


class ProjectUpdateRequest(BaseModel):
    """Request to rename or re-describe a project."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None


@router.get("")
def list_projects(db: Session = Depends(get_db)):
    """List all projects."""
    return [project.to_dict() for project in ProjectRepository(db).list_all()]


@router.post("", status_code=201)
def create_project(
    request: ProjectCreateRequest,
    db: Session = Depends(get_db),
    paths: ProjectPaths = Depends(get_paths),
):
    """Register a project, creating its directory under the data root if needed."""
    repo = ProjectRepository(db)
    relative_path = normalize_relative_path(request.path)
    if not relative_path:
        raise HTTPException(status_code=400, detail="Project path must not be the data root")

    if repo.get_by_path(relative_path):
        raise HTTPException(status_code=409, detail=f"A project already uses path '{relative_path}'")

    project_dir = paths.directory_for(relative_path)
    project_dir.mkdir(parents=True, exist_ok=True)

    created = repo.create(request.name, relative_path, request.description)
    logger.info(f"Created project '{created.name}' at {project_dir}")
    return created.to_dict()


@router.get("/{project_id}")
def get_project_details(project: Project = Depends(get_project)):
    return project.to_dict()


@router.patch("/{project_id}")
def update_project(
    request: ProjectUpdateRequest,
    project: Project = Depends(get_project),
    db: Session = Depends(get_db),
):
    updated = ProjectRepository(db).update(project.id, name=request.name, description=request.description)
    return updated.to_dict()


@router.delete("/{project_id}")
def delete_project(project: Project = Depends(get_project), db: Session = Depends(get_db)):
    """Forget a project and its annotations. Files on disk are left alone."""
    ProjectRepository(db).delete(project.id)
    return {"success": True, "message": f"Project {project.id} deleted"}


@router.get("/{project_id}/tree")
def get_project_tree(
    project: Project = Depends(get_project),
    paths: ProjectPaths = Depends(get_paths),
    scanner: DirectoryScanner = Depends(get_scanner),
):
    """Directory tree of a project as nested nodes."""
    project_dir = paths.project_dir(project)
    if not project_dir.is_dir():
        raise HTTPException(status_code=404, detail=f"Project directory missing: {project.path}")
    return scanner.scan(project_dir).to_nested()
