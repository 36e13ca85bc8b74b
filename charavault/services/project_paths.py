"""Resolve project and file paths under the data root."""

import logging
import os
import tempfile
from pathlib import Path, PurePosixPath

from charavault.models.project import Project

logger = logging.getLogger(__name__)


class PathOutsideRootError(ValueError):
    """A requested path resolves outside the directory it must stay in."""
    pass


def write_atomic(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` without leaving a half-written file."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def normalize_relative_path(relative_path: str) -> str:
    """Normalize a client-supplied relative path to POSIX form without leading slashes."""
    cleaned = relative_path.replace("\\", "/").strip("/")
    return str(PurePosixPath(cleaned)) if cleaned else ""


class ProjectPaths:
    """Maps project records and relative paths to files on disk."""

    def __init__(self, data_root: Path):
        self.data_root = Path(data_root).resolve()

    def _inside(self, candidate: Path, base: Path) -> Path:
        resolved = candidate.resolve()
        if resolved != base and base not in resolved.parents:
            raise PathOutsideRootError(f"Path escapes {base}: {candidate}")
        return resolved

    def directory_for(self, relative_path: str) -> Path:
        """
        Absolute directory for a project path relative to the data root.

        Raises:
            PathOutsideRootError: If the path leaves the data root
        """
        return self._inside(self.data_root / normalize_relative_path(relative_path), self.data_root)

    def project_dir(self, project: Project) -> Path:
        return self.directory_for(project.path)

    def resolve_file(self, project: Project, relative_path: str) -> Path:
        """
        Absolute path of an existing file inside a project.

        Raises:
            PathOutsideRootError: If the path leaves the project directory
            FileNotFoundError: If no such file exists
        """
        base = self.project_dir(project)
        path = self._inside(base / normalize_relative_path(relative_path), base)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {relative_path}")
        return path

    def resolve_new_file(self, project: Project, relative_path: str) -> Path:
        """
        Absolute path for a file about to be created inside a project.

        Raises:
            PathOutsideRootError: If the path leaves the project directory
            FileExistsError: If something already exists there
        """
        base = self.project_dir(project)
        path = self._inside(base / normalize_relative_path(relative_path), base)
        if path == base or path.exists():
            raise FileExistsError(f"File already exists: {relative_path}")
        return path
