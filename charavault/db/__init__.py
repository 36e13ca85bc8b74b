"""Database package for CharaVault."""

from .database import Base, Database

__all__ = ["Base", "Database"]
