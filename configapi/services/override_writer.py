"""Override writer - the only code path that mutates ``config_overrides``.

Each operation is one SQL statement built with SQLAlchemy Core from tagged
parameters (see ``core.statements``). In read-only mode the statement is
rendered, logged and handed back instead of executed.

Tenant rule: callers without the employee role only touch rows of their own
customer, and never GLOBAL rows. The customer condition is part of the
statement itself, not a separate check that could race the write.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text, delete, insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import AuthContext
from ..core.config import Settings
from ..core.scope import ScopeLevel, ScopeSelector
from ..core.statements import Param, Plain, SqlEcho, Typed, bind_all, echo_statement
from ..exceptions import ConfigNotFoundError, ForbiddenError, ValidationError
from ..models import ConfigOverride
from ..repositories import ConfigOverrideRepository, FileSpecRepository

logger = logging.getLogger(__name__)

BLOCKED_MESSAGE = "Write blocked (read-only mode)"

_table = ConfigOverride.__table__


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a write. ``sql_echo`` is only set when ``blocked``."""
    applied: bool
    blocked: bool = False
    sql_echo: Optional[SqlEcho] = None
    config_id: Optional[int] = None

    def to_response(self, include_echo: bool) -> dict[str, Any]:
        if not self.blocked:
            body: dict[str, Any] = {"success": True}
            if self.config_id is not None:
                body["configId"] = self.config_id
            return body
        body = {"success": True, "blocked": True, "message": BLOCKED_MESSAGE}
        if include_echo and self.sql_echo is not None:
            body["sqlEcho"] = self.sql_echo.to_dict()
        return body


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def blocked_write(operation: str, statement, actor: AuthContext) -> WriteResult:
    """Render *statement* instead of executing it, and log it at WARNING."""
    echo = echo_statement(statement)
    logger.warning(
        "BLOCKED WRITE (read-only mode)",
        extra={
            "operation": operation,
            "username": actor.username,
            "sql": echo.sql,
            "formatted_sql": echo.formatted_sql,
        },
    )
    return WriteResult(applied=False, blocked=True, sql_echo=echo)


def _required_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


class OverrideWriter:
    """Update, create and delete override rows on behalf of an actor."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.read_only = settings.read_only_mode
        self.config_repo = ConfigOverrideRepository(db)
        self.file_spec_repo = FileSpecRepository(db)

    # --- update ---

    async def write(
        self,
        config_id: int,
        property_name: str,
        value: Optional[str],
        level: Any,
        actor: AuthContext,
    ) -> WriteResult:
        """Set the value of one existing row.

        The row must match ``config_id``, ``property_name`` and ``level``;
        the property and level act as a guard against stale clients.

        Raises:
            InvalidLevelError: unknown level.
            ValidationError: missing value/property, or property/level mismatch.
            ForbiddenError: GLOBAL write by a non-employee, or a foreign customer's row.
            ConfigNotFoundError: no row with ``config_id``.
        """
        scope_level = ScopeLevel.parse(level)
        property_name = _required_text(property_name, "property")
        if value is None:
            raise ValidationError("value is required", field="value")
        if scope_level == ScopeLevel.GLOBAL and not actor.is_employee:
            raise ForbiddenError("Only employees may change GLOBAL defaults")

        params: dict[str, Param] = {
            "config_id": Typed(Integer(), config_id),
            "property_name": Typed(String(150), property_name),
            "level_name": Typed(String(10), scope_level.value),
            "new_value": Typed(Text(), str(value)),
            "actor": Typed(String(150), actor.username),
            "stamp": Typed(DateTime(timezone=True), _utcnow()),
        }
        if not actor.is_employee:
            params["tenant"] = Plain(actor.customer_id)
        b = bind_all(params)

        stmt = (
            update(_table)
            .where(
                _table.c.config_id == b["config_id"],
                _table.c.property == b["property_name"],
                _table.c.level == b["level_name"],
            )
            .values(value=b["new_value"], modified_by=b["actor"], modified_at=b["stamp"])
        )
        if "tenant" in b:
            stmt = stmt.where(_table.c.customer_id == b["tenant"])

        if self.read_only:
            return blocked_write("UPDATE_CONFIG", stmt, actor)

        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            await self._explain_missed_update(config_id, property_name, scope_level, actor)

        await self.db.commit()
        logger.info(
            "Config updated",
            extra={"config_id": config_id, "level": scope_level.value, "username": actor.username},
        )
        return WriteResult(applied=True, config_id=config_id)

    async def _explain_missed_update(
        self,
        config_id: int,
        property_name: str,
        level: ScopeLevel,
        actor: AuthContext,
    ) -> None:
        """Raise the error that explains why an UPDATE matched no row."""
        row = await self.config_repo.get_by_id(config_id)
        if not actor.is_employee and row.customer_id != actor.customer_id:
            raise ForbiddenError("Configuration belongs to another customer")
        if row.property != property_name:
            raise ValidationError("Property does not match configuration", field="property")
        if row.level != level.value:
            raise ValidationError(
                f"Configuration is stored at {row.level}, not {level.value}", field="level"
            )
        # Row changed between the UPDATE and this read; report it as gone.
        raise ConfigNotFoundError(config_id)

    # --- create ---

    async def create(
        self,
        selector: ScopeSelector,
        level: Any,
        section: str,
        property_name: str,
        value: Optional[str],
        actor: AuthContext,
        comment: Optional[str] = None,
        data_type_id: Optional[int] = None,
        tooltip: Optional[str] = None,
        section_tooltip: Optional[str] = None,
    ) -> WriteResult:
        """Insert a new override at the selector's node for *level*.

        A property without a GLOBAL default is a custom property; the
        category must allow custom sections for it to be created.

        Raises:
            InvalidLevelError, ValidationError, ForbiddenError.
        """
        scope_level = ScopeLevel.parse(level)
        selector.validate()
        category = _required_text(selector.category, "category")
        section = _required_text(section, "section")
        property_name = _required_text(property_name, "property")
        if value is None:
            raise ValidationError("value is required", field="value")

        if scope_level == ScopeLevel.GLOBAL:
            if not actor.is_employee:
                raise ForbiddenError("Only employees may create GLOBAL defaults")
        elif not actor.can_access_customer(selector.customer_id):
            raise ForbiddenError("Cannot write configurations of another customer")

        node = selector.node_for(scope_level)

        if not self.read_only:
            existing = await self.config_repo.find_at_node(scope_level, selector, section, property_name)
            if existing is not None:
                raise ValidationError(
                    f"{property_name} is already defined at this {scope_level.value} node "
                    f"(configId {existing.config_id})",
                    field="property",
                )
            if scope_level != ScopeLevel.GLOBAL and not await self.config_repo.has_global_default(
                category, section, property_name
            ):
                spec = await self.file_spec_repo.find_by_category(category)
                if spec is None or not spec.custom_sections_allowed:
                    raise ValidationError(
                        f"Category {category} does not allow custom entries", field="category"
                    )

        now = _utcnow()
        params: dict[str, Param] = {
            "level_name": Typed(String(10), scope_level.value),
            "customer": Typed(String(50), node["customer_id"]),
            "org": Typed(String(150), node["organization"]),
            "site_name": Typed(String(150), node["site"]),
            "agent_name": Typed(String(150), node["agent"]),
            "category_name": Typed(String(150), category),
            "section_name": Typed(String(150), section),
            "property_name": Typed(String(150), property_name),
            "new_value": Typed(Text(), str(value)),
            "comment_text": Typed(Text(), comment),
            "data_type": Typed(Integer(), data_type_id),
            "tooltip_text": Typed(Text(), tooltip),
            "section_tooltip_text": Typed(Text(), section_tooltip),
            "custom": Typed(Boolean(), scope_level != ScopeLevel.GLOBAL),
            "actor": Typed(String(150), actor.username),
            "stamp": Typed(DateTime(timezone=True), now),
        }
        b = bind_all(params)
        stmt = insert(_table).values(
            level=b["level_name"],
            customer_id=b["customer"],
            organization=b["org"],
            site=b["site_name"],
            agent=b["agent_name"],
            category=b["category_name"],
            section=b["section_name"],
            property=b["property_name"],
            value=b["new_value"],
            comment=b["comment_text"],
            data_type_id=b["data_type"],
            tooltip=b["tooltip_text"],
            section_tooltip=b["section_tooltip_text"],
            is_custom=b["custom"],
            created_by=b["actor"],
            created_at=b["stamp"],
        )

        if self.read_only:
            return blocked_write("CREATE_CONFIG", stmt, actor)

        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError as e:
            # A concurrent create for the same node won the race.
            await self.db.rollback()
            raise ValidationError(
                f"{property_name} is already defined at this {scope_level.value} node",
                field="property",
            ) from e
        config_id = result.inserted_primary_key[0]
        logger.info(
            "Config created",
            extra={
                "config_id": config_id,
                "level": scope_level.value,
                "category": category,
                "property": property_name,
                "username": actor.username,
            },
        )
        return WriteResult(applied=True, config_id=config_id)

    # --- delete ---

    async def delete(self, config_id: int, actor: AuthContext) -> WriteResult:
        """Delete a custom, non-GLOBAL row.

        Raises:
            ForbiddenError: system default, GLOBAL row, or another customer's row.
            ConfigNotFoundError: no row with ``config_id``.
        """
        params: dict[str, Param] = {
            "config_id": Typed(Integer(), config_id),
            "custom": Typed(Boolean(), True),
            "global_level": Plain(ScopeLevel.GLOBAL.value),
        }
        if not actor.is_employee:
            params["tenant"] = Plain(actor.customer_id)
        b = bind_all(params)

        stmt = delete(_table).where(
            _table.c.config_id == b["config_id"],
            _table.c.is_custom == b["custom"],
            _table.c.level != b["global_level"],
        )
        if "tenant" in b:
            stmt = stmt.where(_table.c.customer_id == b["tenant"])

        if self.read_only:
            return blocked_write("DELETE_CONFIG", stmt, actor)

        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            row = await self.config_repo.get_by_id(config_id)
            if not row.is_custom or row.level == ScopeLevel.GLOBAL.value:
                raise ForbiddenError("Can only delete custom entries")
            if not actor.is_employee and row.customer_id != actor.customer_id:
                raise ForbiddenError("Configuration belongs to another customer")
            raise ConfigNotFoundError(config_id)

        await self.db.commit()
        logger.info("Config deleted", extra={"config_id": config_id, "username": actor.username})
        return WriteResult(applied=True, config_id=config_id)
