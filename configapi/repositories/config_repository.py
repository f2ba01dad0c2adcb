"""Read queries over ``config_overrides``.

Writes do not go through here; they are single statements built by the
override writer so they can be echoed in read-only mode.
"""

from typing import List, Optional

from sqlalchemy import and_, or_, select

from ..core.scope import ScopeLevel, ScopeSelector
from ..exceptions import ConfigNotFoundError
from ..models import ConfigOverride, DataTypeValue
from .base import BaseRepository


def _node_clause(level: ScopeLevel, selector: ScopeSelector):
    """WHERE clause matching rows stored exactly at *selector*'s node for *level*."""
    node = selector.node_for(level)
    conditions = [ConfigOverride.level == level.value]
    for column, value in node.items():
        col = getattr(ConfigOverride, column)
        conditions.append(col.is_(None) if value is None else col == value)
    return and_(*conditions)


class ConfigOverrideRepository(BaseRepository[ConfigOverride]):
    """Repository for override lookups."""

    model_class = ConfigOverride
    id_column = "config_id"
    not_found_error = ConfigNotFoundError

    async def rows_on_path(self, selector: ScopeSelector) -> List[ConfigOverride]:
        """All rows on the path from GLOBAL to the selector's deepest node.

        Restricted to ``selector.category`` when set.
        """
        clauses = [_node_clause(level, selector) for level in selector.reachable_levels()]
        stmt = select(ConfigOverride).where(or_(*clauses)).execution_options(populate_existing=True)
        if selector.category:
            stmt = stmt.where(ConfigOverride.category == selector.category)
        result = await self.db.execute(stmt.order_by(ConfigOverride.config_id))
        return list(result.scalars().all())

    async def rows_below_customer(
        self,
        customer_id: str,
        category: str,
        organization: Optional[str] = None,
        site: Optional[str] = None,
    ) -> List[ConfigOverride]:
        """ORG/SITE/AGENT rows of one customer and category, optionally under one org or site."""
        stmt = select(ConfigOverride).where(
            ConfigOverride.customer_id == customer_id,
            ConfigOverride.category == category,
            ConfigOverride.level.in_(
                [ScopeLevel.ORG.value, ScopeLevel.SITE.value, ScopeLevel.AGENT.value]
            ),
        ).execution_options(populate_existing=True)
        if organization is not None:
            stmt = stmt.where(ConfigOverride.organization == organization)
        if site is not None:
            stmt = stmt.where(ConfigOverride.site == site)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_at_node(
        self,
        level: ScopeLevel,
        selector: ScopeSelector,
        section: str,
        property_name: str,
    ) -> Optional[ConfigOverride]:
        stmt = select(ConfigOverride).where(
            _node_clause(level, selector),
            ConfigOverride.category == selector.category,
            ConfigOverride.section == section,
            ConfigOverride.property == property_name,
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def has_global_default(self, category: str, section: str, property_name: str) -> bool:
        stmt = select(ConfigOverride.config_id).where(
            ConfigOverride.level == ScopeLevel.GLOBAL.value,
            ConfigOverride.category == category,
            ConfigOverride.section == section,
            ConfigOverride.property == property_name,
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar() is not None

    async def categories(self, customer_id: Optional[str] = None) -> List[str]:
        """Distinct categories visible to a customer (GLOBAL rows plus their own)."""
        stmt = select(ConfigOverride.category).distinct()
        if customer_id:
            stmt = stmt.where(or_(
                ConfigOverride.level == ScopeLevel.GLOBAL.value,
                ConfigOverride.customer_id == customer_id,
            ))
        else:
            stmt = stmt.where(ConfigOverride.level == ScopeLevel.GLOBAL.value)
        result = await self.db.execute(stmt.order_by(ConfigOverride.category))
        return list(result.scalars().all())

    async def customers(self) -> List[str]:
        stmt = (
            select(ConfigOverride.customer_id)
            .where(ConfigOverride.customer_id.is_not(None))
            .distinct()
            .order_by(ConfigOverride.customer_id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def data_type_values(self, data_type_id: int) -> List[DataTypeValue]:
        stmt = (
            select(DataTypeValue)
            .where(DataTypeValue.data_type_id == data_type_id)
            .order_by(DataTypeValue.sort_order, DataTypeValue.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
