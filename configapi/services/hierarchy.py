"""Configuration hierarchy resolver.

Reads override rows for a scope selector and folds them into one effective
value per property. Also computes the "overridden here / below" flags the
navigation tree shows next to organizations, sites and agents.

Nothing here writes; see ``override_writer`` for mutations.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.scope import LEVEL_COLUMN, ScopeLevel, ScopeSelector
from ..exceptions import ValidationError
from ..models import ConfigOverride, DataTypeValue, FileSpec, SectionSpec
from ..repositories import ConfigOverrideRepository, FileSpecRepository, SectionSpecRepository

logger = logging.getLogger(__name__)

# Missing sort keys go last, in insertion order.
UNSORTED = 1_000_000

_FLAG_LEVELS = (ScopeLevel.ORG, ScopeLevel.SITE, ScopeLevel.AGENT)

PropertyKey = Tuple[str, str, str]  # (category, section, property)
NodePath = Tuple[str, ...]          # (customer_id, organization?, site?, agent?)


@dataclass(frozen=True)
class SortKeys:
    category: int
    section: int
    property: int
    comment: int


@dataclass(frozen=True)
class OverrideRow:
    """Effective value of one property for a selector."""
    config_id: int
    category: str
    section: str
    property: str
    value: str
    source_level: ScopeLevel
    sort_keys: SortKeys
    comment: Optional[str] = None
    data_type_id: Optional[int] = None
    tooltip: Optional[str] = None
    section_tooltip: Optional[str] = None
    is_custom: bool = False
    parent_value: Optional[str] = None
    parent_level: Optional[ScopeLevel] = None
    parent_config_id: Optional[int] = None


@dataclass(frozen=True)
class FlagRow:
    name: str
    overridden_here: bool
    overridden_below: bool


@dataclass(frozen=True)
class CategoryInfo:
    name: str
    display_name: str
    sort_order: int
    custom_sections_allowed: bool = False


@dataclass
class _SortIndex:
    """Sort orders from file/section specs, keyed by category (and legacy alias)."""
    categories: Dict[str, int] = field(default_factory=dict)
    sections: Dict[Tuple[str, str], int] = field(default_factory=dict)

    @classmethod
    def build(cls, file_specs: List[FileSpec], section_specs: List[SectionSpec]) -> "_SortIndex":
        index = cls()
        names_by_id: Dict[int, List[str]] = {}
        for spec in file_specs:
            names = [spec.f_name]
            if spec.legacy_category_name:
                names.append(spec.legacy_category_name)
            names_by_id[spec.file_spec_id] = names
            for name in names:
                index.categories.setdefault(name, _sort_value(spec.sort_order))
        for section in section_specs:
            section_names = [section.section_name]
            if section.legacy_section_name:
                section_names.append(section.legacy_section_name)
            for category in names_by_id.get(section.file_spec_id, []):
                for name in section_names:
                    index.sections.setdefault((category, name), _sort_value(section.sort_order))
        return index

    def keys_for(self, general: ConfigOverride) -> SortKeys:
        return SortKeys(
            category=self.categories.get(general.category, UNSORTED),
            section=self.sections.get((general.category, general.section), UNSORTED),
            property=_sort_value(general.property_sort),
            comment=_sort_value(general.comment_sort),
        )


def _sort_value(value: Optional[int]) -> int:
    return UNSORTED if value is None else value


def _node_path(row: ConfigOverride, level: ScopeLevel) -> NodePath:
    """Path of the node *row* lives under, truncated at *level*."""
    return tuple(
        getattr(row, column)
        for column_level, column in LEVEL_COLUMN.items()
        if column_level.depth <= level.depth
    )


class HierarchyResolver:
    """Resolves effective values and navigation flags for scope selectors."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.config_repo = ConfigOverrideRepository(db)
        self.file_spec_repo = FileSpecRepository(db)
        self.section_spec_repo = SectionSpecRepository(db)

    async def resolve_overrides(self, selector: ScopeSelector) -> List[OverrideRow]:
        """Effective value of every property reachable by *selector*.

        The value comes from the most specific level on the selector's path
        that defines the property; ``parent_*`` fields describe the next less
        specific definition, if any. Rows are ordered by category, section,
        property and comment sort, ties broken by insertion order.
        """
        selector.validate()
        rows = await self.config_repo.rows_on_path(selector)

        chains: Dict[PropertyKey, List[ConfigOverride]] = {}
        for row in rows:
            chains.setdefault((row.category, row.section, row.property), []).append(row)

        sort_index = await self._sort_index()
        resolved: List[Tuple[tuple, OverrideRow]] = []

        for key, chain in chains.items():
            chain.sort(key=lambda r: ScopeLevel.parse(r.level).depth, reverse=True)
            effective = chain[0]
            parent = chain[1] if len(chain) > 1 else None
            general = chain[-1]

            if general.level != ScopeLevel.GLOBAL.value:
                logger.warning(
                    "Property has no GLOBAL default",
                    extra={
                        "category": key[0],
                        "section": key[1],
                        "property": key[2],
                        "config_id": general.config_id,
                    },
                )

            sort_keys = sort_index.keys_for(general)
            row = OverrideRow(
                config_id=effective.config_id,
                category=effective.category,
                section=effective.section,
                property=effective.property,
                value=effective.value,
                source_level=ScopeLevel.parse(effective.level),
                sort_keys=sort_keys,
                comment=effective.comment if effective.comment is not None else general.comment,
                data_type_id=general.data_type_id,
                tooltip=general.tooltip,
                section_tooltip=general.section_tooltip,
                is_custom=bool(effective.is_custom),
                parent_value=parent.value if parent else None,
                parent_level=ScopeLevel.parse(parent.level) if parent else None,
                parent_config_id=parent.config_id if parent else None,
            )
            order = (
                sort_keys.category,
                sort_keys.section,
                sort_keys.property,
                sort_keys.comment,
                general.config_id,
            )
            resolved.append((order, row))

        resolved.sort(key=lambda item: item[0])
        logger.debug(
            "Resolved overrides",
            extra={"level": selector.deepest_level.value, "rows": len(resolved)},
        )
        return [row for _, row in resolved]

    async def resolve_flags(self, level: ScopeLevel, selector: ScopeSelector) -> List[FlagRow]:
        """Names at *level* under the selector with their override flags.

        ``overridden_here``: some row is stored exactly at that node.
        ``overridden_below``: some row is stored at a proper descendant.
        AGENT nodes have no descendants, so their ``overridden_below`` is
        always False.
        """
        level = ScopeLevel.parse(level)
        if level not in _FLAG_LEVELS:
            raise ValidationError(
                f"Flags are only available for ORG, SITE and AGENT, not {level.value}",
                field="level",
            )
        selector.validate()
        if not selector.category:
            raise ValidationError("category is required", field="category")
        if not selector.customer_id:
            raise ValidationError("customerId is required", field="customerId")
        if level.depth >= ScopeLevel.SITE.depth and not selector.organization:
            raise ValidationError(f"{level.value} listing requires organization", field="organization")
        if level == ScopeLevel.AGENT and not selector.site:
            raise ValidationError("AGENT listing requires site", field="site")

        rows = await self.config_repo.rows_below_customer(
            selector.customer_id,
            selector.category,
            organization=selector.organization if level.depth >= ScopeLevel.SITE.depth else None,
            site=selector.site if level == ScopeLevel.AGENT else None,
        )

        # One pass: every row marks its own node "here" and all of that
        # node's proper ancestors "below".
        here: set[NodePath] = set()
        below: set[NodePath] = set()
        candidates: set[NodePath] = set()
        for row in rows:
            row_level = ScopeLevel.parse(row.level)
            node = _node_path(row, row_level)
            here.add(node)
            for depth in range(ScopeLevel.ORG.depth, row_level.depth):
                below.add(node[:depth])
            if row_level.depth >= level.depth:
                candidates.add(node[:level.depth])

        return [
            FlagRow(
                name=node[-1],
                overridden_here=node in here,
                overridden_below=node in below,
            )
            for node in sorted(candidates, key=lambda n: n[-1])
        ]

    async def list_categories(self, customer_id: Optional[str] = None) -> List[CategoryInfo]:
        """Categories with at least one visible row, in file-spec order."""
        names = await self.config_repo.categories(customer_id)
        specs = {}
        for spec in await self.file_spec_repo.list_all():
            specs.setdefault(spec.f_name, spec)
            if spec.legacy_category_name:
                specs.setdefault(spec.legacy_category_name, spec)

        categories = []
        for name in names:
            spec = specs.get(name)
            categories.append(CategoryInfo(
                name=name,
                display_name=(spec.file_desc if spec and spec.file_desc else name),
                sort_order=_sort_value(spec.sort_order if spec else None),
                custom_sections_allowed=bool(spec.custom_sections_allowed) if spec else False,
            ))
        categories.sort(key=lambda c: (c.sort_order, c.name))
        return categories

    async def list_customers(self) -> List[str]:
        return await self.config_repo.customers()

    async def get_override(self, config_id: int) -> ConfigOverride:
        return await self.config_repo.get_by_id(config_id)

    async def list_data_type_values(self, data_type_id: int) -> List[DataTypeValue]:
        return await self.config_repo.data_type_values(data_type_id)

    async def _sort_index(self) -> _SortIndex:
        file_specs = await self.file_spec_repo.list_all()
        section_specs = await self.section_spec_repo.list_all()
        return _SortIndex.build(file_specs, section_specs)
