"""Password hashing and signed session tokens.

Stored hashes look like ``pbkdf2_sha256$<iterations>$<salt>$<digest>`` so the
iteration count can be raised later without invalidating existing passwords.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets
import time
from typing import Optional

_SCHEME = "pbkdf2_sha256"
_ITERATIONS = 390_000
MIN_PASSWORD_LENGTH = 8


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _unb64(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    digest = _derive(password, salt, _ITERATIONS)
    return f"{_SCHEME}${_ITERATIONS}${_b64(salt)}${_b64(digest)}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Check *password* against a hash produced by :func:`hash_password`."""

    try:
        scheme, iterations, salt, digest = stored_hash.split("$")
        rounds = int(iterations)
        expected = _unb64(digest)
        candidate = _derive(password, _unb64(salt), rounds)
    except (ValueError, binascii.Error):
        return False
    return scheme == _SCHEME and hmac.compare_digest(expected, candidate)


def _sign(payload: str, secret_key: str) -> bytes:
    return hmac.new(secret_key.encode(), payload.encode(), hashlib.sha256).digest()


def issue_session(user_id: int, secret_key: str, *, now: Optional[float] = None) -> str:
    """Return a cookie value ``<user_id>:<issued_at>.<signature>``."""

    issued_at = int(time.time() if now is None else now)
    payload = f"{user_id}:{issued_at}"
    return f"{payload}.{_b64(_sign(payload, secret_key))}"


def read_session(token: str, secret_key: str, max_age: int, *, now: Optional[float] = None) -> Optional[int]:
    """Return the user id carried by *token*, or ``None`` when it is forged, malformed or expired."""

    payload, _, signature = token.rpartition(".")
    if not payload:
        return None
    try:
        user_part, issued_part = payload.split(":")
        user_id, issued_at = int(user_part), int(issued_part)
        provided = _unb64(signature)
    except (ValueError, binascii.Error):
        return None
    if not hmac.compare_digest(_sign(payload, secret_key), provided):
        return None
    if (time.time() if now is None else now) - issued_at > max_age:
        return None
    return user_id
