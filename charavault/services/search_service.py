"""Search project files by name and annotations by notes/tags."""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from charavault.models.project import Project
from charavault.repositories import FileExtraInfoRepository
from charavault.services.directory_scanner import DirectoryScanner
from charavault.services.project_paths import ProjectPaths

logger = logging.getLogger(__name__)

SNIPPET_CONTEXT = 50


class SearchResult(BaseModel):
    """One search hit."""
    id: str
    type: str  # file | note
    name: str
    path: str
    relative_path: str = Field(serialization_alias="relativePath")
    project_id: int = Field(serialization_alias="projectId")
    project_name: str = Field(serialization_alias="projectName")
    match_type: str = Field(serialization_alias="matchType")  # filename | content
    snippet: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    starred: Optional[bool] = None


def make_snippet(text: str, query: str) -> str:
    """Cut ``text`` around the first match of ``query`` (already lower-case)."""
    position = text.lower().find(query)
    start = max(0, position - SNIPPET_CONTEXT)
    end = min(len(text), position + len(query) + SNIPPET_CONTEXT)
    snippet = text[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet = snippet + "..."
    return snippet


class SearchService:
    """Filename and annotation search within one project."""

    def __init__(self, db: Session, paths: ProjectPaths, scanner: DirectoryScanner):
        self.repo = FileExtraInfoRepository(db)
        self.paths = paths
        self.scanner = scanner

    def search(self, project: Project, query: str) -> List[SearchResult]:
        """
        Search a project. Filename matches come first, then annotation matches;
        each group is ordered by name.

        Raises:
            ValueError: If the query is blank
        """
        needle = query.lower().strip()
        if not needle:
            raise ValueError("Search query is required")

        results: List[SearchResult] = []

        try:
            tree = self.scanner.scan(self.paths.project_dir(project))
            for node in tree.files():
                if needle in node.name.lower() or needle in node.relative_path.lower():
                    results.append(SearchResult(
                        id=node.relative_path,
                        type="file",
                        name=node.name,
                        path=node.relative_path,
                        relative_path=node.relative_path,
                        project_id=project.id,
                        project_name=project.name,
                        match_type="filename",
                    ))
        except (OSError, ValueError) as e:
            logger.error(f"Error searching files in project {project.id}: {e}")

        for info in self.repo.list_for_project(project.id):
            snippet = None
            if info.notes and needle in info.notes.lower():
                snippet = make_snippet(info.notes, needle)

            tags = list(info.tags or [])
            if any(needle in tag.lower() for tag in tags):
                snippet = f"Tags: {', '.join(tags)}"

            if snippet is None or not info.relative_paths:
                continue

            # One hit per annotation, at its first known path
            relative_path = info.relative_paths[0]
            results.append(SearchResult(
                id=f"note_{info.id}",
                type="note",
                name=relative_path.rsplit("/", 1)[-1],
                path=relative_path,
                relative_path=relative_path,
                project_id=info.project_id,
                project_name=project.name,
                match_type="content",
                snippet=snippet,
                notes=info.notes,
                tags=tags,
                starred=info.starred,
            ))

        results.sort(key=lambda r: (r.match_type != "filename", r.name.lower()))
        return results
