"""
File Extra Info Service
======================

User annotations (tags, links, notes, stars) attached to images by content
hash. Paths are bookkeeping: the same annotations are found again after a
file is renamed, moved, or has its embedded card rewritten.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from charavault.models.project import FileExtraInfo, Project
from charavault.repositories import FileExtraInfoRepository, ProjectRepository
from charavault.services.content_hash import ContentHasher
from charavault.services.directory_scanner import DirectoryScanner
from charavault.services.project_paths import ProjectPaths, normalize_relative_path

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10


@dataclass
class SyncReport:
    """Outcome of a path synchronisation run."""
    updated_count: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": "File path sync complete",
            "updatedCount": self.updated_count,
            "errorCount": self.error_count,
            "errors": self.errors[:MAX_REPORTED_ERRORS],
        }


class FileExtraInfoService:
    """Register, update and re-locate annotations keyed by content hash."""

    def __init__(
        self,
        db: Session,
        paths: ProjectPaths,
        hasher: ContentHasher,
        scanner: DirectoryScanner,
    ):
        self.db = db
        self.paths = paths
        self.hasher = hasher
        self.scanner = scanner
        self.repo = FileExtraInfoRepository(db)
        self.projects = ProjectRepository(db)

    def _hash_file(self, project: Project, relative_path: str) -> tuple[str, str]:
        relative_path = normalize_relative_path(relative_path)
        file_path = self.paths.resolve_file(project, relative_path)
        return self.hasher.digest_file(file_path), relative_path

    def get_or_register(self, project: Project, relative_path: str) -> FileExtraInfo:
        """
        Look up annotations for a file, creating an empty record on first sight.

        Raises:
            FileNotFoundError: If the file does not exist
            PathOutsideRootError: If the path leaves the project
        """
        content_hash, relative_path = self._hash_file(project, relative_path)
        return self.repo.register_path(content_hash, project.id, relative_path)

    def update(self, project: Project, relative_path: str, changes: Dict[str, Any]) -> FileExtraInfo:
        """
        Update annotations for a file, creating them if needed.

        Without an explicit ``relative_paths`` change the file's current path
        is merged into the existing list.
        """
        content_hash, relative_path = self._hash_file(project, relative_path)
        info = self.repo.register_path(content_hash, project.id, relative_path)

        updated = self.repo.update(info.content_hash, changes)
        logger.info(f"Updated annotations for {relative_path} ({content_hash[:12]})")
        return updated

    def delete(self, project: Project, relative_path: str) -> bool:
        content_hash, _ = self._hash_file(project, relative_path)
        return self.repo.delete(content_hash)

    def list_all(self) -> List[FileExtraInfo]:
        return self.repo.list_all()

    def _hash_index(self, project: Project) -> Dict[str, List[str]]:
        """content hash -> relative paths for every file in the project."""
        project_dir = self.paths.project_dir(project)
        tree = self.scanner.scan(project_dir)
        by_path = {tree.absolute_path(node): node.relative_path for node in tree.files()}

        index: Dict[str, List[str]] = {}
        for path, content_hash in self.hasher.digest_files(by_path).items():
            index.setdefault(content_hash, []).append(by_path[path])
        for paths in index.values():
            paths.sort()
        return index

    def sync_paths(self, project_ids: List[int]) -> SyncReport:
        """
        Re-locate annotated files for the given projects.

        Paths that no longer exist are dropped and any file in the project
        with the same content hash is added.

        Raises:
            ValueError: If none of the IDs name an existing project
        """
        projects = self.projects.list_by_ids(project_ids)
        if not projects:
            raise ValueError("No valid projects found")

        report = SyncReport()
        for project in projects:
            try:
                project_dir = self.paths.project_dir(project)
                index = self._hash_index(project)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to scan project {project.id}: {e}")
                report.error_count += 1
                report.errors.append(f"Project {project.id}: {e}")
                continue

            for info in self.repo.list_for_project(project.id):
                try:
                    current = list(info.relative_paths or [])
                    valid = [p for p in current if (project_dir / p).is_file()]
                    for found in index.get(info.content_hash, []):
                        if found not in valid:
                            valid.append(found)

                    if set(valid) != set(current) or len(valid) != len(current):
                        self.repo.update(info.content_hash, {"relative_paths": valid})
                        report.updated_count += 1
                except OSError as e:
                    logger.error(f"Error syncing file {info.content_hash}: {e}")
                    report.error_count += 1
                    report.errors.append(f"File {info.content_hash}: {e}")

        logger.info(f"Path sync: {report.updated_count} updated, {report.error_count} error(s)")
        return report

    def find_paths(self, project: Project, content_hash: str) -> Optional[List[str]]:
        """Relative paths in a project whose content hashes to ``content_hash``."""
        return self._hash_index(project).get(content_hash)
