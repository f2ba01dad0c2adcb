"""Read-only lookups against the MojoPortal directory."""

from typing import List, Optional, Tuple

from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import CustomerLink, DirectoryRole, DirectoryUser, DirectoryUserRole


class DirectoryRepository:
    """Queries over mp_users, mp_roles, mp_user_roles and users_cid. Never writes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def active_user_with_customer(
        self, user_id: int
    ) -> Optional[Tuple[DirectoryUser, Optional[str]]]:
        """Active user and their customer id (None when unlinked)."""
        stmt = (
            select(DirectoryUser, CustomerLink.cid)
            .outerjoin(CustomerLink, CustomerLink.login_name == DirectoryUser.login_name)
            .where(DirectoryUser.user_id == user_id, DirectoryUser.is_deleted == false())
        )
        result = await self.db.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def is_active(self, user_id: int) -> bool:
        stmt = select(DirectoryUser.user_id).where(
            DirectoryUser.user_id == user_id,
            DirectoryUser.is_deleted == false(),
        )
        result = await self.db.execute(stmt)
        return result.scalar() is not None

    async def role_names(self, user_id: int) -> List[str]:
        stmt = (
            select(DirectoryRole.role_name)
            .join(DirectoryUserRole, DirectoryUserRole.role_id == DirectoryRole.role_id)
            .where(DirectoryUserRole.user_id == user_id)
            .order_by(DirectoryRole.role_name)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
