"""Database models."""

from .config_override import ConfigOverride
from .spec import FileSpec, SectionSpec, DataTypeValue
from .directory import DirectoryUser, DirectoryRole, DirectoryUserRole, CustomerLink

__all__ = [
    "ConfigOverride",
    "FileSpec", "SectionSpec", "DataTypeValue",
    "DirectoryUser", "DirectoryRole", "DirectoryUserRole", "CustomerLink",
]
