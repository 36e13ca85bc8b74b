"""Repository for project operations."""

from typing import List, Optional

from sqlalchemy.orm import Session

from charavault.models.project import Project


class ProjectRepository:
    """Handle database operations for projects."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, name: str, path: str, description: Optional[str] = None) -> Project:
        """
        Create a new project.

        Args:
            name: Display name
            path: Project directory, relative to the data root
            description: Optional description

        Returns:
            Created project
        """
        project = Project(name=name, path=path, description=description)
        self.db.add(project)
        self.db.commit()
        self.db.refresh(project)
        return project

    def get_by_id(self, project_id: int) -> Optional[Project]:
        """Get project by ID."""
        return self.db.query(Project).filter(Project.id == project_id).first()

    def get_by_path(self, path: str) -> Optional[Project]:
        """Get project by its relative path."""
        return self.db.query(Project).filter(Project.path == path).first()

    def list_all(self) -> List[Project]:
        """Get all projects, oldest first."""
        return self.db.query(Project).order_by(Project.created_at, Project.id).all()

    def list_by_ids(self, project_ids: List[int]) -> List[Project]:
        if not project_ids:
            return []
        return self.db.query(Project).filter(Project.id.in_(project_ids)).order_by(Project.id).all()

    def update(
        self,
        project_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[Project]:
        """Update a project's name and/or description."""
        project = self.get_by_id(project_id)
        if not project:
            return None

        if name is not None:
            project.name = name
        if description is not None:
            project.description = description

        self.db.commit()
        self.db.refresh(project)
        return project

    def delete(self, project_id: int) -> bool:
        """
        Delete a project and its annotations.

        Returns:
            True if deleted, False if not found
        """
        project = self.get_by_id(project_id)
        if not project:
            return False

        self.db.delete(project)
        self.db.commit()
        return True
