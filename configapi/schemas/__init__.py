"""Pydantic schemas for API validation."""

from .config import (
    ConfigCreate,
    ConfigDetailResponse,
    ConfigListResponse,
    ConfigUpdate,
    CategoryResponse,
    DataTypeValueResponse,
    FlagRowResponse,
    OverrideRowResponse,
)
from .spec import (
    FileSpecResponse,
    FileSpecUpdate,
    SectionSpecResponse,
    SectionSpecUpdate,
)

__all__ = [
    "ConfigCreate",
    "ConfigDetailResponse",
    "ConfigListResponse",
    "ConfigUpdate",
    "CategoryResponse",
    "DataTypeValueResponse",
    "FlagRowResponse",
    "OverrideRowResponse",
    "FileSpecResponse",
    "FileSpecUpdate",
    "SectionSpecResponse",
    "SectionSpecUpdate",
]
