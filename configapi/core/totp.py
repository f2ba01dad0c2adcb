"""RFC 6238 time-based one-time passwords.

Parameters match what authenticator apps assume by default: HMAC-SHA1,
30-second step, 6 digits. Secrets are unpadded base32 strings.
"""

import base64
import binascii
import hashlib
import hmac
import io
import os
import time
from typing import Optional
from urllib.parse import quote, urlencode

import qrcode
import qrcode.image.svg

STEP_SECONDS = 30
DIGITS = 6
SECRET_BYTES = 20


def generate_secret() -> str:
    """Return a fresh random base32 secret (160 bits, no padding)."""
    return base64.b32encode(os.urandom(SECRET_BYTES)).decode("ascii").rstrip("=")


def _decode_secret(secret: str) -> bytes:
    cleaned = secret.replace(" ", "").upper()
    padded = cleaned + "=" * ((8 - len(cleaned) % 8) % 8)
    return base64.b32decode(padded, casefold=True)


def totp_code(secret: str, for_time: Optional[float] = None) -> str:
    """Compute the code for the time-step containing *for_time*.

    Raises:
        ValueError: *secret* is not valid base32.
    """
    if for_time is None:
        for_time = time.time()
    try:
        key = _decode_secret(secret)
    except binascii.Error as e:
        raise ValueError("TOTP secret is not valid base32") from e

    counter = int(for_time // STEP_SECONDS).to_bytes(8, "big")
    digest = hmac.new(key, counter, hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    code_int = (int.from_bytes(digest[offset:offset + 4], "big") & 0x7FFFFFFF) % (10 ** DIGITS)
    return str(code_int).zfill(DIGITS)


def verify_code(secret: str, code: str, window: int = 2, now: Optional[float] = None) -> bool:
    """Check *code* against steps ``T-window .. T+window``.

    Non-numeric or wrong-length input is rejected without computing anything.
    """
    if window < 0:
        raise ValueError("window cannot be negative")
    code = (code or "").strip()
    if len(code) != DIGITS or not code.isdigit():
        return False
    if now is None:
        now = time.time()

    matched = False
    for offset in range(-window, window + 1):
        expected = totp_code(secret, now + offset * STEP_SECONDS)
        # Evaluate every step so timing does not reveal which one matched
        if hmac.compare_digest(expected, code):
            matched = True
    return matched


def provisioning_uri(secret: str, account: str, issuer: str) -> str:
    """Build the ``otpauth://totp/...`` URI authenticator apps import."""
    label = quote(f"{issuer}:{account}", safe=":@")
    query = urlencode({
        "secret": secret,
        "issuer": issuer,
        "algorithm": "SHA1",
        "digits": DIGITS,
        "period": STEP_SECONDS,
    }, quote_via=quote)
    return f"otpauth://totp/{label}?{query}"


def qr_data_url(data: str) -> str:
    """Render *data* as an SVG QR code and return it as a ``data:`` URL."""
    image = qrcode.make(data, image_factory=qrcode.image.svg.SvgPathImage)
    buffer = io.BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"
