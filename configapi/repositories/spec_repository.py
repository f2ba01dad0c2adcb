"""File and section spec repositories."""

from typing import List, Optional

from sqlalchemy import or_, select

from ..exceptions import FileSpecNotFoundError, SectionSpecNotFoundError
from ..models import FileSpec, SectionSpec
from .base import BaseRepository


class FileSpecRepository(BaseRepository[FileSpec]):
    model_class = FileSpec
    id_column = "file_spec_id"
    not_found_error = FileSpecNotFoundError

    async def list_all(self) -> List[FileSpec]:
        stmt = (
            select(FileSpec)
            .order_by(FileSpec.sort_order, FileSpec.f_name)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_by_category(self, category: str) -> Optional[FileSpec]:
        """Match on ``f_name`` first, then on the legacy category name."""
        stmt = select(FileSpec).where(or_(
            FileSpec.f_name == category,
            FileSpec.legacy_category_name == category,
        ))
        result = await self.db.execute(stmt)
        matches = list(result.scalars().all())
        for spec in matches:
            if spec.f_name == category:
                return spec
        return matches[0] if matches else None


class SectionSpecRepository(BaseRepository[SectionSpec]):
    model_class = SectionSpec
    id_column = "section_spec_id"
    not_found_error = SectionSpecNotFoundError

    async def list_for_file(self, file_spec_id: int) -> List[SectionSpec]:
        stmt = (
            select(SectionSpec)
            .where(SectionSpec.file_spec_id == file_spec_id)
            .order_by(SectionSpec.sort_order, SectionSpec.section_name)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_all(self) -> List[SectionSpec]:
        stmt = select(SectionSpec).order_by(SectionSpec.file_spec_id, SectionSpec.sort_order)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
