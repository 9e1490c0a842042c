"""Custom exceptions for stlpreview."""

from pathlib import Path
from typing import Any, Optional


class StlPreviewError(Exception):
    """Base exception for stlpreview."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(StlPreviewError):
    """Raised when configuration is invalid."""

    pass


class MeshLoadError(StlPreviewError):
    """Raised when an STL file cannot be read from disk."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Failed to load STL file '{path}': {reason}")
        self.path = path
        self.reason = reason


class ObjParseError(StlPreviewError):
    """Raised when a serialized OBJ document cannot be parsed."""

    def __init__(self, line_number: int, reason: str):
        super().__init__(f"Invalid OBJ data at line {line_number}: {reason}")
        self.line_number = line_number
        self.reason = reason
