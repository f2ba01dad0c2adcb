"""Navigation dropdown endpoints: categories, scope nodes, customers, data types.

Organization, site and agent listings carry the override flags shown in the
tree: ``overriddenHere`` when the node has its own rows, ``overriddenBelow``
when one of its descendants does.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import EMPLOYEE_ROLE, AuthContext, require_roles
from ..core.scope import ScopeLevel, ScopeSelector
from ..database import get_db
from ..schemas.config import CamelModel, CategoryResponse, DataTypeValueResponse, FlagRowResponse
from ..services.hierarchy import HierarchyResolver
from .configs import check_customer_access

router = APIRouter(prefix="/api", tags=["navigation"])


class CategoryListResponse(CamelModel):
    success: bool = True
    categories: List[CategoryResponse]


class OrganizationListResponse(CamelModel):
    success: bool = True
    organizations: List[FlagRowResponse]


class SiteListResponse(CamelModel):
    success: bool = True
    sites: List[FlagRowResponse]


class AgentListResponse(CamelModel):
    success: bool = True
    agents: List[FlagRowResponse]


class CustomerListResponse(CamelModel):
    success: bool = True
    customers: List[str]


class DataTypeValuesResponse(CamelModel):
    success: bool = True
    values: List[DataTypeValueResponse]


async def _flags(
    level: ScopeLevel,
    auth: AuthContext,
    db: AsyncSession,
    customer_id: Optional[str],
    category: Optional[str],
    organization: Optional[str] = None,
    site: Optional[str] = None,
) -> List[FlagRowResponse]:
    selector = ScopeSelector.of(
        customer_id=customer_id or auth.customer_id,
        category=category,
        organization=organization,
        site=site,
    )
    check_customer_access(auth, selector.customer_id)
    rows = await HierarchyResolver(db).resolve_flags(level, selector)
    return [FlagRowResponse.model_validate(r) for r in rows]


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories(
    customer_id: Optional[str] = Query(None, alias="customerId"),
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_roles()),
):
    customer_id = customer_id or auth.customer_id
    check_customer_access(auth, customer_id)
    categories = await HierarchyResolver(db).list_categories(customer_id)
    return CategoryListResponse(
        categories=[CategoryResponse.model_validate(c) for c in categories]
    )


@router.get("/organizations", response_model=OrganizationListResponse)
async def list_organizations(
    category: str = Query(...),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_roles()),
):
    flags = await _flags(ScopeLevel.ORG, auth, db, customer_id, category)
    return OrganizationListResponse(organizations=flags)


@router.get("/sites", response_model=SiteListResponse)
async def list_sites(
    category: str = Query(...),
    organization: str = Query(...),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_roles()),
):
    flags = await _flags(ScopeLevel.SITE, auth, db, customer_id, category, organization)
    return SiteListResponse(sites=flags)


@router.get("/agents", response_model=AgentListResponse)
async def list_agents(
    category: str = Query(...),
    organization: str = Query(...),
    site: str = Query(...),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_roles()),
):
    flags = await _flags(ScopeLevel.AGENT, auth, db, customer_id, category, organization, site)
    return AgentListResponse(agents=flags)


@router.get("/customers", response_model=CustomerListResponse)
async def list_customers(
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_roles(EMPLOYEE_ROLE)),
):
    """Every customer with at least one override row. Employees only."""
    return CustomerListResponse(customers=await HierarchyResolver(db).list_customers())


@router.get("/datatypes/{data_type_id}/values", response_model=DataTypeValuesResponse)
async def list_data_type_values(
    data_type_id: int,
    db: AsyncSession = Depends(get_db),
    auth: AuthContext = Depends(require_roles()),
):
    values = await HierarchyResolver(db).list_data_type_values(data_type_id)
    return DataTypeValuesResponse(values=[DataTypeValueResponse.model_validate(v) for v in values])
