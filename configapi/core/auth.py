"""Authentication gates exposed as FastAPI dependencies.

Every protected request passes an ordered list of gates:

    session_gate  → Identified    (authToken cookie or Bearer header)
    mfa_gate      → MfaVerified   (mfaToken cookie, bound to the session user)
    role_gate     → Authorized    (roles re-read from the directory)

Each gate returns ``Allow(context)`` or ``Deny(stage, message)``. The first
``Deny`` stops the chain and is turned into the matching exception by
``raise_for``. The gate functions themselves never raise and do no I/O, so
``/auth/check`` can evaluate them without failing the request.

Public interface:
    ``require_session``       - Identified context or 401.
    ``require_mfa``           - MfaVerified context or 403 ``requireMfa``.
    ``require_roles(*roles)`` - context with roles loaded; 403 when none match.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Union

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings
from .token_factory import (
    BindingMismatchError,
    TokenExpiredError,
    TokenMalformedError,
    decode_mfa_token,
    decode_session_token,
)
from ..database import get_directory_db
from ..exceptions import AuthenticationError, ForbiddenError, MfaRequiredError, UnknownUserError
from ..services.identity_service import IdentityResolver

logger = logging.getLogger(__name__)

EMPLOYEE_ROLE = "MSPB_Employees"
CONFIG_ADMIN_ROLES = ("Customer Config Admin", EMPLOYEE_ROLE)

AUTH_COOKIE = "authToken"
MFA_COOKIE = "mfaToken"

_bearer_scheme = HTTPBearer(auto_error=False)


class GateStage(str, Enum):
    SESSION = "session"
    MFA = "mfa"
    ROLE = "role"


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity of the caller, built up as gates pass.

    ``roles`` is empty until a role gate has loaded them.
    """

    username: str
    user_id: int
    email: Optional[str] = None
    customer_id: Optional[str] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)
    mfa_verified: bool = False

    @property
    def is_employee(self) -> bool:
        return EMPLOYEE_ROLE in self.roles

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return any(role in self.roles for role in roles)

    def can_access_customer(self, customer_id: Optional[str]) -> bool:
        """Employees see every customer, everyone else only their own."""
        if self.is_employee:
            return True
        return customer_id is not None and customer_id == self.customer_id


@dataclass(frozen=True)
class Allow:
    context: AuthContext


@dataclass(frozen=True)
class Deny:
    stage: GateStage
    message: str


GateResult = Union[Allow, Deny]


# ---------------------------------------------------------------------------
# Gates (pure)
# ---------------------------------------------------------------------------


def session_gate(token: Optional[str], settings: Settings, now: Optional[float] = None) -> GateResult:
    if not token:
        return Deny(GateStage.SESSION, "No authentication token provided")
    try:
        claims = decode_session_token(token, settings.jwt_secret_key, now=now)
    except TokenExpiredError:
        return Deny(GateStage.SESSION, "Token expired")
    except TokenMalformedError:
        return Deny(GateStage.SESSION, "Invalid token")
    return Allow(AuthContext(
        username=claims.username,
        user_id=claims.user_id,
        email=claims.email,
        customer_id=claims.customer_id,
    ))


def mfa_gate(
    context: AuthContext,
    token: Optional[str],
    settings: Settings,
    now: Optional[float] = None,
) -> GateResult:
    if not token:
        return Deny(GateStage.MFA, "MFA required")
    try:
        decode_mfa_token(token, settings.jwt_secret_key, context.username, now=now)
    except TokenExpiredError:
        return Deny(GateStage.MFA, "MFA expired")
    except BindingMismatchError as e:
        logger.warning(
            "MFA token bound to another user",
            extra={"username": context.username, "token_subject": e.actual},
        )
        return Deny(GateStage.MFA, "MFA verification failed")
    except TokenMalformedError:
        return Deny(GateStage.MFA, "MFA verification failed")
    return Allow(replace(context, mfa_verified=True))


def role_gate(context: AuthContext, required: Iterable[str]) -> GateResult:
    required = tuple(required)
    if not required or context.has_any_role(required):
        return Allow(context)
    return Deny(GateStage.ROLE, "Insufficient permissions")


def raise_for(deny: Deny) -> None:
    """Raise the exception a denied gate maps to."""
    if deny.stage == GateStage.SESSION:
        raise AuthenticationError(deny.message)
    if deny.stage == GateStage.MFA:
        raise MfaRequiredError(deny.message)
    raise ForbiddenError(deny.message)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def extract_auth_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """Cookie first, then ``Authorization: Bearer``."""
    token = request.cookies.get(AUTH_COOKIE)
    if token:
        return token
    if credentials is not None:
        return credentials.credentials
    return None


async def require_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    settings: Settings = Depends(get_settings),
    directory_db: AsyncSession = Depends(get_directory_db),
) -> AuthContext:
    """Require a valid session token for a user still active in the directory."""
    result = session_gate(extract_auth_token(request, credentials), settings, now=time.time())
    if isinstance(result, Deny):
        raise_for(result)

    context = result.context
    if not await IdentityResolver(directory_db, settings).is_active(context.user_id):
        raise UnknownUserError()
    return context


async def require_mfa(
    request: Request,
    context: AuthContext = Depends(require_session),
    settings: Settings = Depends(get_settings),
) -> AuthContext:
    """Require an MFA token bound to the session user."""
    result = mfa_gate(context, request.cookies.get(MFA_COOKIE), settings, now=time.time())
    if isinstance(result, Deny):
        raise_for(result)
    return result.context


def require_roles(*roles: str):
    """Build a dependency that loads the caller's roles and checks them.

    With no arguments it only loads roles, for endpoints whose response
    differs for employees.
    """

    async def dependency(
        context: AuthContext = Depends(require_mfa),
        settings: Settings = Depends(get_settings),
        directory_db: AsyncSession = Depends(get_directory_db),
    ) -> AuthContext:
        user_roles = await IdentityResolver(directory_db, settings).resolve_roles(context.user_id)
        result = role_gate(replace(context, roles=user_roles), roles)
        if isinstance(result, Deny):
            logger.warning(
                "Role check failed",
                extra={"username": context.username, "required": list(roles)},
            )
            raise_for(result)
        return result.context

    return dependency
