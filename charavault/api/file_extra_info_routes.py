"""API routes for file annotations (tags, links, notes, stars)."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from charavault.api.deps import get_file_extra_info_service, get_query_project
from charavault.models.project import Project
from charavault.services.file_extra_info_service import FileExtraInfoService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/file-extra-info", tags=["file-extra-info"])


class FileExtraInfoUpdate(BaseModel):
    """Annotation changes; omitted fields are left as they are."""
    relative_paths: Optional[List[str]] = Field(None, alias="relativePaths")
    tags: Optional[List[str]] = None
    links: Optional[List[str]] = None
    starred: Optional[bool] = None
    notes: Optional[str] = None

    model_config = {"populate_by_name": True}


class SyncPathsRequest(BaseModel):
    project_ids: List[int] = Field(..., alias="projectIds", min_length=1)

    model_config = {"populate_by_name": True}


@router.get("")
def list_file_extra_info(service: FileExtraInfoService = Depends(get_file_extra_info_service)):
    """All annotations across projects."""
    return [info.to_dict() for info in service.list_all()]


@router.post("/sync-paths")
def sync_paths(
    request: SyncPathsRequest,
    service: FileExtraInfoService = Depends(get_file_extra_info_service),
):
    """Re-locate annotated files after renames and moves."""
    try:
        report = service.sync_paths(request.project_ids)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return report.to_dict()


@router.get("/{file_path:path}")
def get_file_extra_info(
    file_path: str,
    project: Project = Depends(get_query_project),
    service: FileExtraInfoService = Depends(get_file_extra_info_service),
):
    """Annotations for a file; an empty record is created on first access."""
    return service.get_or_register(project, file_path).to_dict()


@router.put("/{file_path:path}")
def update_file_extra_info(
    file_path: str,
    changes: FileExtraInfoUpdate,
    project: Project = Depends(get_query_project),
    service: FileExtraInfoService = Depends(get_file_extra_info_service),
):
    info = service.update(project, file_path, changes.model_dump(exclude_unset=True))
    return info.to_dict()


@router.delete("/{file_path:path}")
def delete_file_extra_info(
    file_path: str,
    project: Project = Depends(get_query_project),
    service: FileExtraInfoService = Depends(get_file_extra_info_service),
):
    if not service.delete(project, file_path):
        raise HTTPException(status_code=404, detail="File extra info not found")
    return {"success": True, "message": "File extra info deleted"}
