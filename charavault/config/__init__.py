"""Configuration loading and validation."""

from .models import (
    SystemConfig,
    PathsConfig,
    DatabaseConfig,
    ScanConfig,
)
from .loader import ConfigLoader, ConfigLoadError, ConfigValidationError

__all__ = [
    "SystemConfig",
    "PathsConfig",
    "DatabaseConfig",
    "ScanConfig",
    "ConfigLoader",
    "ConfigLoadError",
    "ConfigValidationError",
]
