"""API routes for importing images from the web."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from charavault.api.deps import get_config, get_db, get_file_extra_info_service, get_paths
from charavault.config import SystemConfig
from charavault.repositories import ProjectRepository
from charavault.services.character_cards import add_source_url_metadata, detect_image_type
from charavault.services.file_extra_info_service import FileExtraInfoService
from charavault.services.project_paths import ProjectPaths, normalize_relative_path, write_atomic

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])

MEDIA_TYPES = {"png": "image/png", "jpeg": "image/jpeg"}


@router.post("/source-url")
async def tag_source_url(
    file: UploadFile = File(...),
    source_url: str = Form(..., alias="sourceUrl"),
    project_id: Optional[int] = Form(None, alias="projectId"),
    relative_path: Optional[str] = Form(None, alias="relativePath"),
    config: SystemConfig = Depends(get_config),
    db: Session = Depends(get_db),
    paths: ProjectPaths = Depends(get_paths),
    service: FileExtraInfoService = Depends(get_file_extra_info_service),
):
    """
    Record where an image came from.

    The tagged image is returned. When ``projectId`` and ``relativePath`` are
    given it is also saved into that project and the URL is added to the
    file's annotation links.
    """
    data = await file.read()
    if len(data) > config.max_upload_mb * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"Upload exceeds {config.max_upload_mb} MB")

    image_type = detect_image_type(data, file.content_type)
    tagged = add_source_url_metadata(data, source_url, file.content_type)
    media_type = MEDIA_TYPES.get(image_type, file.content_type or "application/octet-stream")

    if project_id is None or not relative_path:
        return Response(content=tagged, media_type=media_type)

    project = ProjectRepository(db).get_by_id(project_id)
    if not project:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")

    relative_path = normalize_relative_path(relative_path)
    try:
        target = paths.resolve_new_file(project, relative_path)
    except FileExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))

    target.parent.mkdir(parents=True, exist_ok=True)
    write_atomic(target, tagged)
    logger.info(f"Imported {relative_path} into project {project.id} from {source_url}")

    info = service.get_or_register(project, relative_path)
    links = list(info.links or [])
    if source_url not in links:
        info = service.update(project, relative_path, {"links": links + [source_url]})

    return {"success": True, "relativePath": relative_path, "fileExtraInfo": info.to_dict()}
