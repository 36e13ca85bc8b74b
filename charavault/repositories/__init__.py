"""Repository pattern for database operations."""

from .project_repository import ProjectRepository
from .file_extra_info_repository import FileExtraInfoRepository

__all__ = [
    "ProjectRepository",
    "FileExtraInfoRepository",
]
