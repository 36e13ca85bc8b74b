"""Database models for projects and their file annotations."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from charavault.db.database import Base


class Project(Base):
    """A directory of images managed as one library."""

    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    path = Column(String(1000), nullable=False, unique=True, index=True)  # Relative to the data root
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    file_extra_info = relationship(
        "FileExtraInfo",
        back_populates="project",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "description": self.description,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class FileExtraInfo(Base):
    """
    User annotations for one image, keyed by its content hash.

    The hash ignores embedded metadata, so annotations follow the image
    across renames, moves and card edits. ``relative_paths`` lists every
    location the same content was seen at inside the project.
    """

    __tablename__ = "file_extra_info"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content_hash = Column(String(128), nullable=False, unique=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    relative_paths = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=True)
    links = Column(JSON, nullable=True)
    starred = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="file_extra_info")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contentHash": self.content_hash,
            "projectId": self.project_id,
            "relativePaths": list(self.relative_paths or []),
            "tags": list(self.tags or []),
            "links": list(self.links or []),
            "starred": bool(self.starred),
            "notes": self.notes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
