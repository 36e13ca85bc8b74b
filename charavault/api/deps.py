"""FastAPI dependencies: services are built from objects held on ``app.state``."""

from typing import Iterator

from fastapi import Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from charavault.config import SystemConfig
from charavault.models.project import Project
from charavault.repositories import ProjectRepository
from charavault.services.content_hash import ContentHasher
from charavault.services.directory_scanner import DirectoryScanner
from charavault.services.file_extra_info_service import FileExtraInfoService
from charavault.services.project_paths import ProjectPaths
from charavault.services.search_service import SearchService


def get_db(request: Request) -> Iterator[Session]:
    """
    Get a database session.

    Usage in FastAPI endpoints:
        @router.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    yield from request.app.state.database.sessions()


def get_config(request: Request) -> SystemConfig:
    return request.app.state.config


def get_paths(request: Request) -> ProjectPaths:
    return request.app.state.paths


def get_hasher(request: Request) -> ContentHasher:
    return request.app.state.hasher


def get_scanner(request: Request) -> DirectoryScanner:
    return request.app.state.scanner


def _load_project(project_id: int, db: Session) -> Project:
    project = ProjectRepository(db).get_by_id(project_id)
    if not project:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return project


def get_project(project_id: int, db: Session = Depends(get_db)) -> Project:
    """Project named by a ``{project_id}`` path parameter."""
    return _load_project(project_id, db)


def get_query_project(
    project_id: int = Query(..., alias="projectId"),
    db: Session = Depends(get_db),
) -> Project:
    """Project named by a ``?projectId=`` query parameter."""
    return _load_project(project_id, db)


def get_file_extra_info_service(
    db: Session = Depends(get_db),
    paths: ProjectPaths = Depends(get_paths),
    hasher: ContentHasher = Depends(get_hasher),
    scanner: DirectoryScanner = Depends(get_scanner),
) -> FileExtraInfoService:
    return FileExtraInfoService(db, paths, hasher, scanner)


def get_search_service(
    db: Session = Depends(get_db),
    paths: ProjectPaths = Depends(get_paths),
    scanner: DirectoryScanner = Depends(get_scanner),
) -> SearchService:
    return SearchService(db, paths, scanner)
