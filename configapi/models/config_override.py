"""Configuration override model.

One row holds one value for one property at one scope node. The scope
columns below the row's level are NULL:

    level     customer_id  organization  site   agent
    GLOBAL    NULL         NULL          NULL   NULL
    CUSTOMER  set          NULL          NULL   NULL
    ORG       set          set           NULL   NULL
    SITE      set          set           set    NULL
    AGENT     set          set           set    set

Uniqueness of (node, property) is enforced by an index over the scope
columns with NULL folded to the empty string, since a plain unique
constraint treats every NULL as distinct.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import func
from ..database import Base


class ConfigOverride(Base):
    """A single override row."""

    __tablename__ = "config_overrides"
    __table_args__ = (
        Index("ix_config_overrides_customer_category", "customer_id", "category"),
        Index("ix_config_overrides_property", "category", "section", "property"),
    )

    # Insertion order doubles as the final sort tie-breaker
    config_id = Column(Integer, primary_key=True, autoincrement=True)

    # Scope
    level = Column(String(10), nullable=False)
    customer_id = Column(String(50), nullable=True)
    organization = Column(String(150), nullable=True)
    site = Column(String(150), nullable=True)
    agent = Column(String(150), nullable=True)

    # Property identity
    category = Column(String(150), nullable=False)
    section = Column(String(150), nullable=False)
    property = Column(String(150), nullable=False)

    value = Column(Text, nullable=False)
    comment = Column(Text, nullable=True)

    # Display metadata
    property_sort = Column(Integer, nullable=True)
    comment_sort = Column(Integer, nullable=True)
    data_type_id = Column(Integer, nullable=True)
    tooltip = Column(Text, nullable=True)
    section_tooltip = Column(Text, nullable=True)

    # False for system defaults (GLOBAL rows shipped with the product)
    is_custom = Column(Boolean, nullable=False, default=False)

    created_by = Column(String(150), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    modified_by = Column(String(150), nullable=True)
    modified_at = Column(DateTime(timezone=True), nullable=True)


Index(
    "uq_config_overrides_node_property",
    ConfigOverride.level,
    func.coalesce(ConfigOverride.customer_id, ""),
    func.coalesce(ConfigOverride.organization, ""),
    func.coalesce(ConfigOverride.site, ""),
    func.coalesce(ConfigOverride.agent, ""),
    ConfigOverride.category,
    ConfigOverride.section,
    ConfigOverride.property,
    unique=True,
)
