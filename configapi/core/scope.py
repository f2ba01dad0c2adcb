"""Scope levels and selectors for the configuration hierarchy.

GLOBAL → CUSTOMER → ORG → SITE → AGENT, each level nested in the previous.
A selector names a node in that tree (plus an optional category filter).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..exceptions import InvalidLevelError, ValidationError

_ALIASES = {"ORGANIZATION": "ORG"}


class ScopeLevel(str, Enum):
    """Scope level, ordered from least to most specific."""
    GLOBAL = "GLOBAL"
    CUSTOMER = "CUSTOMER"
    ORG = "ORG"
    SITE = "SITE"
    AGENT = "AGENT"

    @property
    def depth(self) -> int:
        return _DEPTH[self]

    @classmethod
    def parse(cls, raw: Any) -> "ScopeLevel":
        """Case-insensitive parse. ``organization`` is accepted for ORG.

        Raises:
            InvalidLevelError: for anything else, including empty input.
        """
        if isinstance(raw, ScopeLevel):
            return raw
        if not isinstance(raw, str) or not raw.strip():
            raise InvalidLevelError(raw)
        name = raw.strip().upper()
        name = _ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise InvalidLevelError(raw) from None


_DEPTH = {level: index for index, level in enumerate(ScopeLevel)}

# Scope column that a level adds to its parent's node.
LEVEL_COLUMN = {
    ScopeLevel.CUSTOMER: "customer_id",
    ScopeLevel.ORG: "organization",
    ScopeLevel.SITE: "site",
    ScopeLevel.AGENT: "agent",
}
SCOPE_COLUMNS = ("customer_id", "organization", "site", "agent")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class ScopeSelector:
    """Path into the scope tree, optionally restricted to one category.

    Empty strings are normalized to None by ``of``; construct through it
    when values come from a request.
    """
    customer_id: Optional[str] = None
    category: Optional[str] = None
    organization: Optional[str] = None
    site: Optional[str] = None
    agent: Optional[str] = None

    @classmethod
    def of(
        cls,
        customer_id: Optional[str] = None,
        category: Optional[str] = None,
        organization: Optional[str] = None,
        site: Optional[str] = None,
        agent: Optional[str] = None,
    ) -> "ScopeSelector":
        selector = cls(
            customer_id=_clean(customer_id),
            category=_clean(category),
            organization=_clean(organization),
            site=_clean(site),
            agent=_clean(agent),
        )
        selector.validate()
        return selector

    def validate(self) -> None:
        if self.agent and not self.site:
            raise ValidationError("agent requires site", field="site")
        if self.site and not self.organization:
            raise ValidationError("site requires organization", field="organization")
        if self.organization and not self.customer_id:
            raise ValidationError("organization requires customerId", field="customerId")

    @property
    def deepest_level(self) -> ScopeLevel:
        if self.agent:
            return ScopeLevel.AGENT
        if self.site:
            return ScopeLevel.SITE
        if self.organization:
            return ScopeLevel.ORG
        if self.customer_id:
            return ScopeLevel.CUSTOMER
        return ScopeLevel.GLOBAL

    def reachable_levels(self) -> list[ScopeLevel]:
        """Levels from GLOBAL down to the deepest one this selector names."""
        deepest = self.deepest_level.depth
        return [level for level in ScopeLevel if level.depth <= deepest]

    def node_for(self, level: ScopeLevel) -> dict[str, Optional[str]]:
        """Scope column values of the node at *level* on this selector's path.

        Raises:
            ValidationError: the selector does not reach *level*.
        """
        if level.depth > self.deepest_level.depth:
            missing = LEVEL_COLUMN[level]
            raise ValidationError(
                f"{level.value} level requires {missing}", field=missing
            )
        node: dict[str, Optional[str]] = {}
        for column_level, column in LEVEL_COLUMN.items():
            node[column] = getattr(self, column) if column_level.depth <= level.depth else None
        return node
