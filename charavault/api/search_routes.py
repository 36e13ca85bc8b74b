"""API routes for project search."""

from fastapi import APIRouter, Depends, HTTPException, Query

from charavault.api.deps import get_query_project, get_search_service
from charavault.models.project import Project
from charavault.services.search_service import SearchService

router = APIRouter(prefix="/api", tags=["search"])


@router.get("/search")
def search(
    query: str = Query(""),
    project: Project = Depends(get_query_project),
    service: SearchService = Depends(get_search_service),
):
    """Search file names and annotations in one project."""
    try:
        results = service.search(project, query)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [result.model_dump(by_alias=True) for result in results]
