"""Repository for file annotation (extra info) operations."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from charavault.models.project import FileExtraInfo

logger = logging.getLogger(__name__)

# Columns callers may change through update()
UPDATABLE_FIELDS = {"relative_paths", "tags", "links", "starred", "notes"}


class FileExtraInfoRepository:
    """Handle database operations for file annotations keyed by content hash."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_hash(self, content_hash: str, for_update: bool = False) -> Optional[FileExtraInfo]:
        """Get annotations by content hash."""
        query = self.db.query(FileExtraInfo).filter(FileExtraInfo.content_hash == content_hash)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def list_all(self) -> List[FileExtraInfo]:
        return self.db.query(FileExtraInfo).order_by(FileExtraInfo.id).all()

    def list_for_project(self, project_id: int) -> List[FileExtraInfo]:
        return self.db.query(FileExtraInfo).filter(
            FileExtraInfo.project_id == project_id
        ).order_by(FileExtraInfo.id).all()

    def create(
        self,
        content_hash: str,
        project_id: int,
        relative_paths: List[str],
        tags: Optional[List[str]] = None,
        links: Optional[List[str]] = None,
        starred: bool = False,
        notes: Optional[str] = None,
    ) -> FileExtraInfo:
        """
        Create annotations for a content hash.

        Raises:
            IntegrityError: If the hash is already registered
        """
        info = FileExtraInfo(
            content_hash=content_hash,
            project_id=project_id,
            relative_paths=list(relative_paths),
            tags=tags,
            links=links,
            starred=starred,
            notes=notes,
        )
        self.db.add(info)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(info)
        return info

    def update(self, content_hash: str, changes: Dict[str, Any]) -> Optional[FileExtraInfo]:
        """
        Apply field changes to existing annotations.

        Unknown keys are ignored. Returns None if the hash is not registered.
        """
        info = self.get_by_hash(content_hash, for_update=True)
        if not info:
            return None

        for key, value in changes.items():
            if key in UPDATABLE_FIELDS:
                setattr(info, key, list(value) if isinstance(value, (list, tuple)) else value)

        self.db.commit()
        self.db.refresh(info)
        return info

    def register_path(self, content_hash: str, project_id: int, relative_path: str) -> FileExtraInfo:
        """
        Upsert annotations for a hash and make sure ``relative_path`` is listed.

        Two scans may see the same content at the same time; the unique
        constraint on ``content_hash`` lets only one insert win and the loser
        merges its path into the winner's row.
        """
        for _ in range(2):
            info = self.get_by_hash(content_hash, for_update=True)
            if info is None:
                try:
                    return self.create(content_hash, project_id, [relative_path])
                except IntegrityError:
                    logger.debug(f"Concurrent registration of {content_hash[:12]}, merging path instead")
                    continue

            paths = list(info.relative_paths or [])
            if relative_path not in paths:
                info.relative_paths = paths + [relative_path]
                self.db.commit()
                self.db.refresh(info)
            return info

        raise RuntimeError(f"Could not register path for content hash {content_hash}")

    def delete(self, content_hash: str) -> bool:
        """
        Delete annotations.

        Returns:
            True if deleted, False if not found
        """
        info = self.get_by_hash(content_hash)
        if not info:
            return False

        self.db.delete(info)
        self.db.commit()
        return True
