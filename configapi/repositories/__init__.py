"""Data access repositories."""

from .base import BaseRepository
from .config_repository import ConfigOverrideRepository
from .spec_repository import FileSpecRepository, SectionSpecRepository
from .directory_repository import DirectoryRepository

__all__ = [
    "BaseRepository",
    "ConfigOverrideRepository",
    "FileSpecRepository",
    "SectionSpecRepository",
    "DirectoryRepository",
]
