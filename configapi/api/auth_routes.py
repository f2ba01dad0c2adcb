"""Authentication and MFA API endpoints.

Public endpoints:
    POST /api/auth/mojo-login    - exchange a MojoPortal token for a session cookie

Session endpoints:
    POST /api/auth/logout        - clear both cookies
    GET  /api/auth/check         - session info and MFA status
    POST /api/auth/mfa/generate  - issue a TOTP secret (once per user)
    POST /api/auth/mfa/verify    - check a TOTP code, set the MFA cookie
    GET  /api/auth/mfa/status    - NO_SECRET, SECRET_ISSUED or ACTIVE

MFA-verified endpoints:
    GET  /api/auth/roles         - directory roles of the caller
"""

import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import (
    AUTH_COOKIE,
    CONFIG_ADMIN_ROLES,
    MFA_COOKIE,
    Allow,
    AuthContext,
    get_settings,
    mfa_gate,
    require_roles,
    require_session,
)
from ..core.config import Settings
from ..core.token_factory import issue_mfa_token, issue_session_token
from ..database import get_directory_db
from ..exceptions import AuthenticationError
from ..services.identity_service import IdentityResolver
from ..services.mfa_service import MfaEngine, MfaState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def get_mfa_engine(request: Request) -> MfaEngine:
    return MfaEngine(request.app.state.mfa_client, request.app.state.settings)


def _set_cookie(response: Response, name: str, value: str, max_age: int, settings: Settings) -> None:
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


# --- Request/Response schemas ---


class MojoLoginRequest(BaseModel):
    external_token: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("externalToken", "mojoToken"),
        description="Token issued by MojoPortal",
    )


class MfaVerifyRequest(BaseModel):
    code: str = Field(
        ...,
        validation_alias=AliasChoices("code", "token"),
        description="Six-digit TOTP code",
    )

    model_config = {"json_schema_extra": {"examples": [{"code": "123456"}]}}


class UserInfo(BaseModel):
    username: str
    email: Optional[str] = None
    displayName: Optional[str] = None
    customerId: Optional[str] = None


class LoginResponse(BaseModel):
    success: bool
    requireMfa: bool
    user: UserInfo


class CheckResponse(BaseModel):
    authenticated: bool
    mfaVerified: bool
    user: UserInfo


class RolesResponse(BaseModel):
    roles: List[str]
    isAdmin: bool
    isEmployee: bool


class MfaStatusResponse(BaseModel):
    state: MfaState


# --- Endpoints ---


@router.post("/mojo-login", response_model=LoginResponse, summary="Log in with a MojoPortal token")
async def mojo_login(
    body: MojoLoginRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
    directory_db: AsyncSession = Depends(get_directory_db),
    mfa: MfaEngine = Depends(get_mfa_engine),
):
    user = await IdentityResolver(directory_db, settings).resolve_external_identity(body.external_token)

    ttl = int(settings.session_ttl_hours * 3600)
    token = issue_session_token(
        username=user.username,
        user_id=user.user_id,
        email=user.email,
        customer_id=user.customer_id,
        secret=settings.jwt_secret_key,
        ttl_seconds=ttl,
        issuer=settings.jwt_issuer,
    )
    require_mfa = await mfa.has_mfa(user.username)
    _set_cookie(response, AUTH_COOKIE, token, ttl, settings)

    logger.info("User logged in", extra={"username": user.username, "require_mfa": require_mfa})
    return LoginResponse(
        success=True,
        requireMfa=require_mfa,
        user=UserInfo(
            username=user.username,
            email=user.email,
            displayName=user.name,
            customerId=user.customer_id,
        ),
    )


@router.post("/logout", summary="Clear the session and MFA cookies")
async def logout(response: Response, auth: AuthContext = Depends(require_session)):
    response.delete_cookie(AUTH_COOKIE, path="/")
    response.delete_cookie(MFA_COOKIE, path="/")
    logger.info("User logged out", extra={"username": auth.username})
    return {"success": True}


@router.get("/check", response_model=CheckResponse, summary="Session status")
async def check(
    request: Request,
    auth: AuthContext = Depends(require_session),
    settings: Settings = Depends(get_settings),
):
    mfa_result = mfa_gate(auth, request.cookies.get(MFA_COOKIE), settings, now=time.time())
    return CheckResponse(
        authenticated=True,
        mfaVerified=isinstance(mfa_result, Allow),
        user=UserInfo(username=auth.username, email=auth.email, customerId=auth.customer_id),
    )


@router.get("/roles", response_model=RolesResponse, summary="Directory roles of the caller")
async def roles(auth: AuthContext = Depends(require_roles())):
    return RolesResponse(
        roles=sorted(auth.roles),
        isAdmin=auth.has_any_role(CONFIG_ADMIN_ROLES),
        isEmployee=auth.is_employee,
    )


@router.post("/mfa/generate", summary="Issue a TOTP secret")
async def generate_mfa(
    auth: AuthContext = Depends(require_session),
    mfa: MfaEngine = Depends(get_mfa_engine),
):
    """Return the new secret and QR code once; afterwards only ``exists``."""
    status = await mfa.get_or_init_secret(auth.username)
    if status.exists:
        return {"needsSetup": False, "exists": True}

    payload = mfa.setup_payload(auth.username, status.secret)
    return {
        "needsSetup": True,
        "secret": payload.secret,
        "qrCode": payload.qr_code,
        "otpauthUrl": payload.otpauth_url,
        "issuer": payload.issuer,
    }


@router.post("/mfa/verify", summary="Verify a TOTP code")
async def verify_mfa(
    body: MfaVerifyRequest,
    response: Response,
    auth: AuthContext = Depends(require_session),
    settings: Settings = Depends(get_settings),
    mfa: MfaEngine = Depends(get_mfa_engine),
):
    if not await mfa.verify_user_code(auth.username, body.code):
        raise AuthenticationError("Invalid MFA code")

    ttl = int(settings.mfa_ttl_hours * 3600)
    token = issue_mfa_token(auth.username, settings.jwt_secret_key, ttl, issuer=settings.jwt_issuer)
    _set_cookie(response, MFA_COOKIE, token, ttl, settings)
    logger.info("MFA verified", extra={"username": auth.username})
    return {"success": True}


@router.get("/mfa/status", response_model=MfaStatusResponse, summary="MFA state of the caller")
async def mfa_status(
    auth: AuthContext = Depends(require_session),
    mfa: MfaEngine = Depends(get_mfa_engine),
):
    return MfaStatusResponse(state=await mfa.state(auth.username))
