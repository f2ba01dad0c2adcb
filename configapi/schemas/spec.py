"""File and section spec schemas.

These keep the snake_case column names the admin pages already use.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class FileSpecResponse(BaseModel):
    file_spec_id: int
    f_name: str
    file_desc: Optional[str] = None
    sort_order: Optional[int] = None
    custom_sections_allowed: bool = False
    section_sort_used_by_client: bool = False
    legacy_category_name: Optional[str] = None
    last_reviewed: Optional[datetime] = None
    updated_by: Optional[str] = None

    model_config = {"from_attributes": True}


class FileSpecUpdate(BaseModel):
    """Editable file spec fields. Omitted fields are left alone."""
    file_desc: Optional[str] = Field(None, max_length=150)
    sort_order: Optional[int] = None
    custom_sections_allowed: Optional[bool] = None
    section_sort_used_by_client: Optional[bool] = None


class SectionSpecResponse(BaseModel):
    section_spec_id: int
    file_spec_id: int
    section_name: str
    section_desc: Optional[str] = None
    sort_order: Optional[int] = None
    is_global_default: bool = False
    is_optional: bool = False
    presence_enforced: bool = False
    legacy_section_name: Optional[str] = None
    last_reviewed: Optional[datetime] = None
    updated_by: Optional[str] = None

    model_config = {"from_attributes": True}


class SectionSpecUpdate(BaseModel):
    """Editable section spec fields. Omitted fields are left alone."""
    section_name: Optional[str] = Field(None, max_length=150)
    section_desc: Optional[str] = None
    sort_order: Optional[int] = None
    is_global_default: Optional[bool] = None
    is_optional: Optional[bool] = None
    # Older admin clients send the misspelt column name
    presence_enforced: Optional[bool] = Field(
        None, validation_alias=AliasChoices("presence_enforced", "presense_enforced")
    )
