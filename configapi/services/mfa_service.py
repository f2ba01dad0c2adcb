"""MFA engine - per-user TOTP lifecycle.

State per user, as seen through the secret service:

    NO_SECRET      no secret stored
    SECRET_ISSUED  secret stored, never used to log in
    ACTIVE         secret stored and at least one successful verification

Secret issuance is idempotent: once a secret exists it is never returned
again, so the generation endpoint cannot be used to re-read it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..core import totp
from ..core.config import Settings
from ..exceptions import UpstreamError, ValidationError
from .mfa_client import SERVICE_NAME, MfaSecretClient

logger = logging.getLogger(__name__)


class MfaState(str, Enum):
    NO_SECRET = "NO_SECRET"
    SECRET_ISSUED = "SECRET_ISSUED"
    ACTIVE = "ACTIVE"


@dataclass(frozen=True)
class MfaSecretStatus:
    exists: bool
    secret: Optional[str] = None


@dataclass(frozen=True)
class MfaSetupPayload:
    secret: str
    otpauth_url: str
    qr_code: str
    issuer: str


class MfaEngine:
    """TOTP secrets, verification and last-auth bookkeeping for one deployment."""

    def __init__(self, client: MfaSecretClient, settings: Settings):
        self.client = client
        self.window = settings.mfa_window
        self.issuer = settings.mfa_issuer

    async def get_or_init_secret(self, username: str) -> MfaSecretStatus:
        """Return the new secret once, or ``exists=True`` without secret material."""
        record = await self.client.get_secret(username)
        if record is not None:
            return MfaSecretStatus(exists=True)

        secret = totp.generate_secret()
        await self.client.set_secret(username, secret)
        logger.info("MFA secret issued", extra={"username": username})
        return MfaSecretStatus(exists=False, secret=secret)

    def setup_payload(self, username: str, secret: str) -> MfaSetupPayload:
        otpauth_url = totp.provisioning_uri(secret, username, self.issuer)
        return MfaSetupPayload(
            secret=secret,
            otpauth_url=otpauth_url,
            qr_code=totp.qr_data_url(otpauth_url),
            issuer=self.issuer,
        )

    def verify_code(self, secret: str, code: str, window: Optional[int] = None) -> bool:
        return totp.verify_code(secret, code, self.window if window is None else window)

    async def record_successful_auth(self, username: str, secret: str) -> None:
        """Best-effort; a failure is logged and never fails the verification."""
        try:
            await self.client.record_auth(username, secret)
        except UpstreamError as e:
            logger.warning(
                "Failed to record MFA auth time",
                extra={"username": username, "error": str(e.original_error)},
            )

    async def has_mfa(self, username: str) -> bool:
        """Login probe. An unreachable service means MFA is not required."""
        try:
            return await self.client.get_secret(username) is not None
        except UpstreamError as e:
            logger.warning(
                "MFA check failed, proceeding without MFA",
                extra={"username": username, "error": str(e.original_error)},
            )
            return False

    async def state(self, username: str) -> MfaState:
        record = await self.client.get_secret(username)
        if record is None:
            return MfaState.NO_SECRET
        if record.last_auth:
            return MfaState.ACTIVE
        return MfaState.SECRET_ISSUED

    async def verify_user_code(self, username: str, code: str) -> bool:
        """Check *code* against the user's stored secret and record the auth.

        Raises:
            ValidationError: the user has no secret yet.
        """
        record = await self.client.get_secret(username)
        if record is None:
            raise ValidationError("MFA not configured", field="code")

        try:
            valid = self.verify_code(record.key, code)
        except ValueError as e:
            logger.error("Stored MFA secret is not valid base32", extra={"username": username})
            raise UpstreamError(SERVICE_NAME, e) from e

        if not valid:
            logger.info("MFA code rejected", extra={"username": username})
            return False

        await self.record_successful_auth(username, record.key)
        return True
