"""Pydantic models for configuration validation."""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class PathsConfig(BaseModel):
    """File path configuration."""

    data: Path = Path("data")
    config: Path = Path("config")

    @field_validator('data', 'config')
    @classmethod
    def validate_path(cls, v: Path) -> Path:
        """Ensure paths are cross-platform."""
        return Path(v)


class DatabaseConfig(BaseModel):
    """Annotation database configuration."""

    url: str = "sqlite:///data/charavault.db"
    busy_timeout_seconds: int = Field(default=30, gt=0)
    echo: bool = False

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Ensure the URL names a SQLAlchemy dialect."""
        if "://" not in v:
            raise ValueError('url must be a SQLAlchemy database URL (e.g. sqlite:///data/charavault.db)')
        return v


class ScanConfig(BaseModel):
    """Directory scanning and content hashing configuration."""

    max_workers: Optional[int] = Field(default=None, gt=0, le=64)
    include_hidden: bool = False
    image_extensions: List[str] = Field(
        default_factory=lambda: [".png", ".jpg", ".jpeg"]
    )

    @field_validator('image_extensions')
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        """Lower-case extensions with a leading dot."""
        return [ext.lower() if ext.startswith('.') else f".{ext.lower()}" for ext in v]


class SystemConfig(BaseModel):
    """Top-level system configuration."""

    debug: bool = False
    api_host: str = "localhost"
    api_port: int = Field(default=3001, gt=0, le=65535)
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    max_upload_mb: int = Field(default=50, gt=0)

    paths: PathsConfig = Field(default_factory=PathsConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
