"""Pure functions for issuing and verifying HS256 tokens.

No classes with state, no I/O - just encode/verify over (token, secret, clock).
Three token kinds pass through here:

* MojoPortal tokens (verified only, ``userId`` claim, no ``typ``)
* session tokens (``typ="session"``) carried in the ``authToken`` cookie
* MFA tokens (``typ="mfa"``) carried in the ``mfaToken`` cookie, bound to
  the session's username through the ``sub`` claim
"""

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

SESSION_TOKEN = "session"
MFA_TOKEN = "mfa"


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpiredError(TokenError):
    """Current time is at or past the token's ``exp``."""


class TokenMalformedError(TokenError):
    """Bad structure, bad signature, wrong type, or missing claims."""


class BindingMismatchError(TokenError):
    """Token principal differs from the expected binding."""

    def __init__(self, expected: str, actual: str):
        super().__init__("Token is bound to a different principal")
        self.expected = expected
        self.actual = actual


@dataclass(frozen=True)
class SessionClaims:
    """Decoded session token. Immutable."""
    username: str
    user_id: int
    email: Optional[str]
    customer_id: Optional[str]
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class MfaClaims:
    """Decoded MFA token. Immutable."""
    username: str
    mfa_verified: bool
    verified_at: datetime
    expires_at: datetime


def issue_token(
    claims: dict[str, Any],
    secret: str,
    ttl_seconds: float,
    token_type: Optional[str] = None,
    issuer: Optional[str] = None,
    now: Optional[float] = None,
) -> str:
    """Create a signed HS256 token.

    Args:
        claims: Custom claims. ``iat`` and ``exp`` are always overwritten.
        secret: HMAC signing key.
        ttl_seconds: Seconds until expiry (negative values mint expired tokens).
        token_type: Value of the ``typ`` claim, if any.
        issuer: Value of the ``iss`` claim, if any.
        now: Current UNIX time (injectable for testing).

    Returns:
        Encoded token string.
    """
    if now is None:
        now = time.time()

    payload = dict(claims)
    payload["iat"] = int(now)
    payload["exp"] = int(now + ttl_seconds)
    if token_type is not None:
        payload["typ"] = token_type
    if issuer is not None:
        payload["iss"] = issuer

    header = {"alg": "HS256", "typ": "JWT"}
    segments = [
        _b64encode(json.dumps(header, separators=(",", ":")).encode()),
        _b64encode(json.dumps(payload, separators=(",", ":")).encode()),
    ]
    signing_input = b".".join(segments)
    signature = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    segments.append(_b64encode(signature))
    return b".".join(segments).decode()


def verify_token(
    token: str,
    secret: str,
    token_type: Optional[str] = None,
    required: Iterable[str] = (),
    expected_binding: Optional[str] = None,
    now: Optional[float] = None,
) -> dict[str, Any]:
    """Verify a token and return its claims.

    Checks run in a fixed order: structure and signature, expiry, token
    type and required claims, then binding.

    Raises:
        TokenMalformedError: structure, signature, algorithm, type or claims invalid.
        TokenExpiredError: ``now >= exp``.
        BindingMismatchError: ``expected_binding`` given and not equal to ``sub``.
    """
    if not token:
        raise TokenMalformedError("Empty token")

    try:
        parts = token.encode().split(b".")
        if len(parts) != 3:
            raise TokenMalformedError("Token must have three segments")

        header = json.loads(_b64decode(parts[0]))
        if not isinstance(header, dict) or header.get("alg") != "HS256":
            raise TokenMalformedError("Unsupported algorithm")

        signing_input = parts[0] + b"." + parts[1]
        expected_sig = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
        if not hmac.compare_digest(expected_sig, _b64decode(parts[2])):
            raise TokenMalformedError("Signature mismatch")

        payload = json.loads(_b64decode(parts[1]))
    except (json.JSONDecodeError, UnicodeError, ValueError) as e:
        # binascii.Error is a ValueError subclass
        if isinstance(e, TokenMalformedError):
            raise
        raise TokenMalformedError("Token could not be decoded") from e

    if not isinstance(payload, dict):
        raise TokenMalformedError("Token payload is not an object")

    exp = payload.get("exp")
    if not isinstance(exp, (int, float)):
        raise TokenMalformedError("Token has no expiry")
    if now is None:
        now = time.time()
    if now >= exp:
        raise TokenExpiredError("Token expired")

    if token_type is not None and payload.get("typ") != token_type:
        raise TokenMalformedError(f"Expected a {token_type} token")

    missing = [name for name in required if payload.get(name) in (None, "")]
    if missing:
        raise TokenMalformedError(f"Missing claims: {', '.join(missing)}")

    if expected_binding is not None:
        subject = payload.get("sub")
        if subject != expected_binding:
            raise BindingMismatchError(expected_binding, str(subject))

    return payload


# --- Typed wrappers for the two locally issued token kinds ---


def issue_session_token(
    username: str,
    user_id: int,
    email: Optional[str],
    customer_id: Optional[str],
    secret: str,
    ttl_seconds: float,
    issuer: Optional[str] = None,
    now: Optional[float] = None,
) -> str:
    return issue_token(
        {
            "sub": username,
            "username": username,
            "userId": user_id,
            "email": email,
            "customerId": customer_id,
        },
        secret,
        ttl_seconds,
        token_type=SESSION_TOKEN,
        issuer=issuer,
        now=now,
    )


def decode_session_token(token: str, secret: str, now: Optional[float] = None) -> SessionClaims:
    payload = verify_token(
        token,
        secret,
        token_type=SESSION_TOKEN,
        required=("username", "userId"),
        now=now,
    )
    return SessionClaims(
        username=payload["username"],
        user_id=payload["userId"],
        email=payload.get("email"),
        customer_id=payload.get("customerId"),
        issued_at=_from_timestamp(payload.get("iat", 0)),
        expires_at=_from_timestamp(payload["exp"]),
    )


def issue_mfa_token(
    username: str,
    secret: str,
    ttl_seconds: float,
    issuer: Optional[str] = None,
    now: Optional[float] = None,
) -> str:
    if now is None:
        now = time.time()
    return issue_token(
        {"sub": username, "mfaVerified": True, "verifiedAt": int(now)},
        secret,
        ttl_seconds,
        token_type=MFA_TOKEN,
        issuer=issuer,
        now=now,
    )


def decode_mfa_token(
    token: str,
    secret: str,
    username: str,
    now: Optional[float] = None,
) -> MfaClaims:
    """Verify an MFA token and require it to belong to *username*.

    A token without ``mfaVerified: true`` is treated as malformed; there is
    no unsigned or boolean-only MFA state.
    """
    payload = verify_token(
        token,
        secret,
        token_type=MFA_TOKEN,
        required=("sub", "verifiedAt"),
        expected_binding=username,
        now=now,
    )
    if payload.get("mfaVerified") is not True:
        raise TokenMalformedError("MFA token is not verified")
    return MfaClaims(
        username=payload["sub"],
        mfa_verified=True,
        verified_at=_from_timestamp(payload["verifiedAt"]),
        expires_at=_from_timestamp(payload["exp"]),
    )


def _from_timestamp(value: Any) -> datetime:
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise TokenMalformedError("Invalid timestamp claim") from e


# --- base64url helpers (no padding, URL-safe) ---

def _b64encode(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    padding = 4 - len(data) % 4
    if padding != 4:
        data += b"=" * padding
    return base64.urlsafe_b64decode(data)
