"""Identity resolution against the MojoPortal directory.

Turns a MojoPortal-issued token into a local user and answers role and
liveness questions for the gates. Read-only: the directory belongs to
MojoPortal and is never written from here.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.token_factory import TokenError, verify_token
from ..exceptions import InvalidExternalTokenError, UnknownUserError
from ..repositories import DirectoryRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalUser:
    user_id: int
    username: str
    email: Optional[str]
    name: Optional[str]
    customer_id: Optional[str]


class IdentityResolver:
    """Maps external identities to directory users and their roles."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.settings = settings
        self.directory = DirectoryRepository(db)

    async def resolve_external_identity(self, external_token: str) -> LocalUser:
        """Verify a MojoPortal token and load the active user it names.

        Raises:
            InvalidExternalTokenError: bad signature, expired, or no ``userId``.
            UnknownUserError: no active directory user with that id.
        """
        try:
            claims = verify_token(
                external_token,
                self.settings.effective_mojo_secret,
                required=("userId",),
            )
            user_id = int(claims["userId"])
        except TokenError as e:
            logger.warning("MojoPortal token rejected", extra={"reason": str(e)})
            raise InvalidExternalTokenError() from e
        except (TypeError, ValueError) as e:
            logger.warning("MojoPortal token has a non-numeric userId")
            raise InvalidExternalTokenError() from e

        found = await self.directory.active_user_with_customer(user_id)
        if found is None:
            logger.warning("MojoPortal user not found or deleted", extra={"user_id": user_id})
            raise UnknownUserError()

        user, customer_id = found
        return LocalUser(
            user_id=user.user_id,
            username=user.login_name,
            email=user.email,
            name=user.name,
            customer_id=customer_id,
        )

    async def resolve_roles(self, user_id: int) -> FrozenSet[str]:
        return frozenset(await self.directory.role_names(user_id))

    async def is_active(self, user_id: int) -> bool:
        return await self.directory.is_active(user_id)
