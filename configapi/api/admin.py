"""Admin maintenance of file (category) and section specs. Employees only."""

from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import EMPLOYEE_ROLE, AuthContext, get_settings, require_roles
from ..core.config import Settings
from ..database import get_db
from ..schemas.spec import FileSpecResponse, FileSpecUpdate, SectionSpecResponse, SectionSpecUpdate
from ..services.spec_service import SpecService

router = APIRouter(prefix="/api/admin", tags=["admin"])

require_employee = require_roles(EMPLOYEE_ROLE)


class FileSpecListResponse(BaseModel):
    success: bool = True
    fileSpecs: List[FileSpecResponse]


class SectionSpecListResponse(BaseModel):
    success: bool = True
    sectionSpecs: List[SectionSpecResponse]


@router.get("/file-specs", response_model=FileSpecListResponse)
async def list_file_specs(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    auth: AuthContext = Depends(require_employee),
):
    specs = await SpecService(db, settings).list_file_specs()
    return FileSpecListResponse(fileSpecs=[FileSpecResponse.model_validate(s) for s in specs])


@router.put("/file-specs/{file_spec_id}")
async def update_file_spec(
    file_spec_id: int,
    body: FileSpecUpdate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    auth: AuthContext = Depends(require_employee),
):
    """Update editable columns. ``last_reviewed`` is stamped when anything changes."""
    result = await SpecService(db, settings).update_file_spec(
        file_spec_id, body.model_dump(exclude_unset=True), auth
    )
    return result.to_response(include_echo=True)


@router.get("/section-specs", response_model=SectionSpecListResponse)
async def list_section_specs(
    file_spec_id: int = Query(..., alias="fileSpecId"),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    auth: AuthContext = Depends(require_employee),
):
    specs = await SpecService(db, settings).list_section_specs(file_spec_id)
    return SectionSpecListResponse(
        sectionSpecs=[SectionSpecResponse.model_validate(s) for s in specs]
    )


@router.put("/section-specs/{section_spec_id}")
async def update_section_spec(
    section_spec_id: int,
    body: SectionSpecUpdate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    auth: AuthContext = Depends(require_employee),
):
    result = await SpecService(db, settings).update_section_spec(
        section_spec_id, body.model_dump(exclude_unset=True), auth
    )
    return result.to_response(include_echo=True)
