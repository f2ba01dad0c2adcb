"""Configuration override API.

Reads return effective values for a scope selector; writes go through the
override writer and honour read-only mode. Every endpoint requires a
verified MFA session. Non-employees only see their own customer plus the
GLOBAL defaults.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import CONFIG_ADMIN_ROLES, AuthContext, get_settings, require_roles
from ..core.config import Settings
from ..core.scope import ScopeSelector
from ..database import get_db
from ..exceptions import ForbiddenError
from ..schemas.config import (
    ConfigCreate,
    ConfigDetailResponse,
    ConfigListResponse,
    ConfigUpdate,
    OverrideRowResponse,
)
from ..services.hierarchy import HierarchyResolver
from ..services.override_writer import OverrideWriter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/configs", tags=["configs"])


def check_customer_access(auth: AuthContext, customer_id: Optional[str]) -> None:
    if customer_id is not None and not auth.can_access_customer(customer_id):
        logger.warning(
            "Cross-customer access denied",
            extra={"username": auth.username, "customer_id": customer_id},
        )
        raise ForbiddenError("Cannot access configurations of another customer")


@router.get("", response_model=ConfigListResponse)
async def list_configs(
    customer_id: Optional[str] = Query(None, alias="customerId"),
    category: Optional[str] = Query(None),
    organization: Optional[str] = Query(None),
    site: Optional[str] = Query(None),
    agent: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_roles()),
):
    """Effective values for a node. ``customerId`` defaults to the caller's own."""
    selector = ScopeSelector.of(
        customer_id=customer_id or auth.customer_id,
        category=category,
        organization=organization,
        site=site,
        agent=agent,
    )
    check_customer_access(auth, selector.customer_id)

    rows = await HierarchyResolver(db).resolve_overrides(selector)
    return ConfigListResponse(configs=[OverrideRowResponse.model_validate(r) for r in rows])


@router.get("/defaults", response_model=ConfigListResponse)
async def list_defaults(
    category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_roles()),
):
    """GLOBAL defaults only."""
    rows = await HierarchyResolver(db).resolve_overrides(ScopeSelector.of(category=category))
    return ConfigListResponse(configs=[OverrideRowResponse.model_validate(r) for r in rows])


@router.get("/{config_id}", response_model=ConfigDetailResponse)
async def get_config(
    config_id: int,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_roles()),
):
    row = await HierarchyResolver(db).get_override(config_id)
    check_customer_access(auth, row.customer_id)
    return row


@router.post("")
async def create_config(
    body: ConfigCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    auth: AuthContext = Depends(require_roles(*CONFIG_ADMIN_ROLES)),
):
    selector = ScopeSelector.of(
        customer_id=body.customer_id or auth.customer_id,
        category=body.category,
        organization=body.organization,
        site=body.site,
        agent=body.agent,
    )
    result = await OverrideWriter(db, settings).create(
        selector,
        body.level,
        body.section,
        body.property,
        body.value,
        auth,
        comment=body.comment,
        data_type_id=body.data_type_id,
        tooltip=body.tooltip,
        section_tooltip=body.section_tooltip,
    )
    return result.to_response(include_echo=auth.is_employee)


@router.put("/{config_id}")
async def update_config(
    config_id: int,
    body: ConfigUpdate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    auth: AuthContext = Depends(require_roles(*CONFIG_ADMIN_ROLES)),
):
    result = await OverrideWriter(db, settings).write(
        config_id, body.property, body.value, body.level, auth
    )
    return result.to_response(include_echo=auth.is_employee)


@router.delete("/{config_id}")
async def delete_config(
    config_id: int,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    auth: AuthContext = Depends(require_roles(*CONFIG_ADMIN_ROLES)),
):
    """Delete a custom entry. System defaults cannot be deleted."""
    result = await OverrideWriter(db, settings).delete(config_id, auth)
    return result.to_response(include_echo=auth.is_employee)
