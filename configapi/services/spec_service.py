"""Admin maintenance of category (file) and section specs.

Only a fixed set of columns is editable. ``last_reviewed`` and
``updated_by`` are stamped whenever at least one editable column actually
changes; a request that changes nothing writes nothing.

File spec updates are blocked in read-only mode. Section spec updates keep
working unless ``ADMIN_READ_ONLY`` is also set.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import Boolean, DateTime, Integer, String, Text, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import AuthContext
from ..core.config import Settings
from ..core.statements import Param, Typed, bind_all
from ..exceptions import ValidationError
from ..models import FileSpec, SectionSpec
from ..repositories import FileSpecRepository, SectionSpecRepository
from .override_writer import WriteResult, blocked_write

logger = logging.getLogger(__name__)

FILE_SPEC_FIELDS = {
    "file_desc": String(150),
    "sort_order": Integer(),
    "custom_sections_allowed": Boolean(),
    "section_sort_used_by_client": Boolean(),
}

SECTION_SPEC_FIELDS = {
    "section_name": String(150),
    "section_desc": Text(),
    "sort_order": Integer(),
    "is_global_default": Boolean(),
    "is_optional": Boolean(),
    "presence_enforced": Boolean(),
}


class SpecService:
    """List and update file/section specs."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.file_specs_blocked = settings.read_only_mode
        self.section_specs_blocked = settings.read_only_mode and settings.admin_read_only
        self.file_spec_repo = FileSpecRepository(db)
        self.section_spec_repo = SectionSpecRepository(db)

    async def list_file_specs(self) -> List[FileSpec]:
        return await self.file_spec_repo.list_all()

    async def list_section_specs(self, file_spec_id: int) -> List[SectionSpec]:
        # 404 for an unknown category rather than an empty list
        await self.file_spec_repo.get_by_id(file_spec_id)
        return await self.section_spec_repo.list_for_file(file_spec_id)

    async def update_file_spec(
        self, file_spec_id: int, changes: Dict[str, Any], actor: AuthContext
    ) -> WriteResult:
        spec = await self.file_spec_repo.get_by_id(file_spec_id)
        return await self._apply(
            "UPDATE_FILE_SPEC", FileSpec, "file_spec_id", spec, FILE_SPEC_FIELDS, changes, actor,
            blocked=self.file_specs_blocked,
        )

    async def update_section_spec(
        self, section_spec_id: int, changes: Dict[str, Any], actor: AuthContext
    ) -> WriteResult:
        if "section_name" in changes:
            name = changes["section_name"]
            if name is None or not str(name).strip():
                raise ValidationError("section_name is required", field="section_name")
            changes = {**changes, "section_name": str(name).strip()}

        spec = await self.section_spec_repo.get_by_id(section_spec_id)
        return await self._apply(
            "UPDATE_SECTION_SPEC", SectionSpec, "section_spec_id", spec, SECTION_SPEC_FIELDS, changes, actor,
            blocked=self.section_specs_blocked,
        )

    async def _apply(
        self,
        operation: str,
        model,
        id_column: str,
        current,
        editable: Dict[str, Any],
        changes: Dict[str, Any],
        actor: AuthContext,
        blocked: bool,
    ) -> WriteResult:
        unknown = set(changes) - set(editable)
        if unknown:
            raise ValidationError(f"Not editable: {', '.join(sorted(unknown))}")
        table = model.__table__
        for name, value in changes.items():
            if value is None and not table.c[name].nullable:
                raise ValidationError(f"{name} cannot be null", field=name)

        changed = {
            name: value for name, value in changes.items()
            if getattr(current, name) != value
        }
        entity_id = getattr(current, id_column)
        if not changed:
            logger.debug("Spec update changed nothing", extra={"operation": operation, "id": entity_id})
            return WriteResult(applied=False)

        params: Dict[str, Param] = {
            f"new_{name}": Typed(editable[name], value) for name, value in changed.items()
        }
        params["reviewed_at"] = Typed(DateTime(timezone=True), datetime.now(timezone.utc))
        params["actor"] = Typed(String(150), actor.username)
        params["entity_id"] = Typed(Integer(), entity_id)
        b = bind_all(params)

        values = {name: b[f"new_{name}"] for name in changed}
        stmt = (
            update(table)
            .where(table.c[id_column] == b["entity_id"])
            .values(last_reviewed=b["reviewed_at"], updated_by=b["actor"], **values)
        )

        if blocked:
            return blocked_write(operation, stmt, actor)

        await self.db.execute(stmt)
        await self.db.commit()
        logger.info(
            "Spec updated",
            extra={
                "operation": operation,
                "id": entity_id,
                "fields": sorted(changed),
                "username": actor.username,
            },
        )
        return WriteResult(applied=True)
