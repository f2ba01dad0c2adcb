"""Category and section metadata (admin-editable)."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from ..database import Base


class FileSpec(Base):
    """Metadata for one configuration category.

    ``f_name`` matches ``ConfigOverride.category``. Older rows may still use
    ``legacy_category_name``, which the resolver accepts as an alias.
    """

    __tablename__ = "file_specs"

    file_spec_id = Column(Integer, primary_key=True, autoincrement=True)
    f_name = Column(String(150), nullable=False, unique=True)
    file_desc = Column(String(150), nullable=True)
    sort_order = Column(Integer, nullable=True)
    custom_sections_allowed = Column(Boolean, nullable=False, default=False)
    section_sort_used_by_client = Column(Boolean, nullable=False, default=False)
    legacy_category_name = Column(String(150), nullable=True)
    last_reviewed = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(String(150), nullable=True)

    sections = relationship(
        "SectionSpec",
        back_populates="file_spec",
        cascade="all, delete-orphan",
    )


class SectionSpec(Base):
    """Metadata for one section within a category."""

    __tablename__ = "section_specs"

    section_spec_id = Column(Integer, primary_key=True, autoincrement=True)
    file_spec_id = Column(
        Integer,
        ForeignKey("file_specs.file_spec_id", ondelete="CASCADE"),
        nullable=False,
    )
    section_name = Column(String(150), nullable=False)
    section_desc = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=True)
    is_global_default = Column(Boolean, nullable=False, default=False)
    is_optional = Column(Boolean, nullable=False, default=False)
    presence_enforced = Column(Boolean, nullable=False, default=False)
    legacy_section_name = Column(String(150), nullable=True)
    last_reviewed = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(String(150), nullable=True)

    file_spec = relationship("FileSpec", back_populates="sections")


class DataTypeValue(Base):
    """Allowed value for a dropdown-typed property."""

    __tablename__ = "data_type_values"

    id = Column(Integer, primary_key=True, autoincrement=True)
    data_type_id = Column(Integer, nullable=False, index=True)
    value = Column(String(255), nullable=False)
    display = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=True)
