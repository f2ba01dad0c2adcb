"""Configuration schemas.

JSON bodies use camelCase (``configId``, ``customerId``); Python code uses
snake_case. ``populate_by_name`` lets tests and services use either.
"""

from typing import Annotated, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.scope import ScopeLevel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _scalar_to_text(value):
    """Values are stored as text; accept numbers and booleans from clients."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


TextValue = Annotated[str, BeforeValidator(_scalar_to_text)]


class SortKeysResponse(CamelModel):
    category: int
    section: int
    property: int
    comment: int


class OverrideRowResponse(CamelModel):
    """Effective value of one property, with the value it overrides."""
    config_id: int
    category: str
    section: str
    property: str
    value: str
    source_level: ScopeLevel
    sort_keys: SortKeysResponse
    comment: Optional[str] = None
    data_type_id: Optional[int] = None
    tooltip: Optional[str] = None
    section_tooltip: Optional[str] = None
    is_custom: bool = False
    parent_value: Optional[str] = None
    parent_level: Optional[ScopeLevel] = None
    parent_config_id: Optional[int] = None


class ConfigListResponse(CamelModel):
    success: bool = True
    configs: List[OverrideRowResponse]


class ConfigDetailResponse(CamelModel):
    """One stored override row."""
    config_id: int
    level: ScopeLevel
    customer_id: Optional[str] = None
    organization: Optional[str] = None
    site: Optional[str] = None
    agent: Optional[str] = None
    category: str
    section: str
    property: str
    value: str
    comment: Optional[str] = None
    data_type_id: Optional[int] = None
    tooltip: Optional[str] = None
    section_tooltip: Optional[str] = None
    is_custom: bool = False
    modified_by: Optional[str] = None


class ConfigUpdate(CamelModel):
    """Body of PUT /api/configs/{configId}."""
    value: TextValue
    property: str = Field(..., min_length=1)
    level: str = Field(..., description="GLOBAL, CUSTOMER, ORG, SITE or AGENT")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{"value": "60", "property": "RetentionDays", "level": "SITE"}]
        },
    )


class ConfigCreate(CamelModel):
    """Body of POST /api/configs."""
    customer_id: Optional[str] = None
    category: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)
    property: str = Field(..., min_length=1)
    organization: Optional[str] = None
    site: Optional[str] = None
    agent: Optional[str] = None
    level: str
    value: TextValue
    comment: Optional[str] = None
    data_type_id: Optional[int] = None
    tooltip: Optional[str] = None
    section_tooltip: Optional[str] = None


class FlagRowResponse(CamelModel):
    name: str
    overridden_here: bool
    overridden_below: bool


class CategoryResponse(CamelModel):
    name: str
    display_name: str
    sort_order: int
    custom_sections_allowed: bool = False


class DataTypeValueResponse(CamelModel):
    value: str
    display: Optional[str] = None
    sort_order: Optional[int] = None
