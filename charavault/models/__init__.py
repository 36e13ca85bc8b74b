"""Models package for CharaVault."""

from .project import Project, FileExtraInfo

__all__ = [
    "Project",
    "FileExtraInfo",
]
