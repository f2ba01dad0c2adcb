"""HTTP client for the external MFA secret service.

The service stores one TOTP secret per user and exposes three operations on
a single endpoint:

    GET  /api/mfa?code=..&user=..                      fetch the user's secret
    POST /api/mfa?code=..&user=..        {user, secret} store a new secret
    POST /api/mfa?code=..&user=..&timeStampOnly=true   record a successful auth

Its responses are loosely shaped: stores answer with an empty body or
``OK``, a user without a secret comes back as plain text or
``{"errorMsg": "No data"}``.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..core.config import Settings
from ..exceptions import UpstreamError

logger = logging.getLogger(__name__)

SERVICE_NAME = "mfa-secret-service"

# Retry configuration for transient failures (transport errors, 5xx).
MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds; exponential: 1s, 2s, 4s


@dataclass(frozen=True)
class MfaRecord:
    """What the service knows about one user."""
    key: str
    last_auth: Optional[str] = None


class MfaSecretClient:
    """Async client for the MFA secret service.

    ``transport`` is passed straight to ``httpx.AsyncClient``; tests inject an
    ``httpx.MockTransport`` there.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
    ) -> None:
        self.base_url = settings.mfa_service_url.rstrip("/")
        self.code = settings.mfa_service_code
        self.timeout = settings.mfa_service_timeout
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute an HTTP request with retry on transient failures.

        Retries on transport errors (refused or reset connections, timeouts)
        and 5xx server errors with exponential backoff. Client errors (4xx)
        are not retried.
        """
        client = await self._get_client()
        last_exc: Optional[Exception] = None

        for attempt in range(MAX_RETRIES):
            try:
                resp = await client.request(method, path, **kwargs)
                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp
                # 5xx - retry
                last_exc = httpx.HTTPStatusError(
                    f"Server error {resp.status_code}",
                    request=resp.request,
                    response=resp,
                )
            except httpx.HTTPStatusError as exc:
                # 4xx from raise_for_status above
                raise UpstreamError(SERVICE_NAME, exc) from exc
            except httpx.TransportError as exc:
                # connect, read and write failures, timeouts, protocol errors
                last_exc = exc

            if attempt < MAX_RETRIES - 1:
                delay = self.retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Request %s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    method, path, attempt + 1, MAX_RETRIES, delay, last_exc,
                )
                await asyncio.sleep(delay)

        raise UpstreamError(SERVICE_NAME, last_exc) from last_exc

    def _params(self, user: str, **extra: str) -> dict[str, str]:
        params = {"code": self.code, "user": user}
        params.update(extra)
        return params

    async def get_secret(self, user: str) -> Optional[MfaRecord]:
        """Fetch the stored secret. None when the user has none."""
        resp = await self._request_with_retry("GET", "/api/mfa", params=self._params(user))
        data = _parse_body(resp.text)
        if data is None or not data.get("key"):
            return None
        last_auth = data.get("last_auth") or data.get("lastAuth")
        return MfaRecord(key=str(data["key"]), last_auth=str(last_auth) if last_auth else None)

    async def set_secret(self, user: str, secret: str) -> None:
        resp = await self._request_with_retry(
            "POST", "/api/mfa",
            params=self._params(user),
            json={"user": user, "secret": secret},
        )
        _parse_body(resp.text)

    async def record_auth(self, user: str, secret: str) -> None:
        """Update the last-auth timestamp. The secret identifies the record."""
        resp = await self._request_with_retry(
            "POST", "/api/mfa",
            params=self._params(user, timeStampOnly="true"),
            json={"user": user, "secret": secret},
        )
        _parse_body(resp.text)


def _parse_body(text: str) -> Optional[dict[str, Any]]:
    """Interpret a service response body.

    Returns ``{}`` for empty/``OK`` acknowledgements, None for "no data",
    and the decoded object otherwise.

    Raises:
        UpstreamError: undecodable body or an ``errorMsg`` other than "no data".
    """
    stripped = (text or "").strip()
    if stripped in ("", "OK", '"OK"'):
        return {}
    if "no data" in stripped.lower() and not stripped.startswith("{"):
        return None

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise UpstreamError(SERVICE_NAME, e) from e
    if not isinstance(data, dict):
        raise UpstreamError(SERVICE_NAME, ValueError("Unexpected response shape"))

    error_msg = data.get("errorMsg")
    if error_msg:
        if "no data" in str(error_msg).lower():
            return None
        raise UpstreamError(SERVICE_NAME, RuntimeError(str(error_msg)))
    return data
