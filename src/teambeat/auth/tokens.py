"""
Stateless signed tokens for password reset and email verification.

Token format is ``user_id:expires_at_ms:signature`` where the signature is
an unpadded base64url HMAC-SHA256 of ``user_id:expires_at_ms``.

Password reset tokens are keyed by the user's current password hash, so
changing the password invalidates every outstanding token. Email
verification tokens are keyed by a per-user random secret that is cleared
once the address is verified.
"""

import base64
import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from teambeat.config import settings
from teambeat.db.repositories.user import UserRepository


@dataclass
class TokenValidation:
    """Outcome of validating a signed token."""

    valid: bool
    user_id: Optional[str] = None
    error: Optional[str] = None


def _now_ms() -> int:
    return int(time.time() * 1000)


def sign(secret: str, payload: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_signed_token(
    user_id: str, secret: str, ttl_ms: int, now_ms: Optional[int] = None
) -> str:
    expires_at = (now_ms if now_ms is not None else _now_ms()) + ttl_ms
    payload = f"{user_id}:{expires_at}"
    return f"{payload}:{sign(secret, payload)}"


def _check_signed_token(
    token: str,
    secret_for: Callable[[str], Optional[str]],
    expired_error: str,
    now_ms: Optional[int] = None,
) -> TokenValidation:
    parts = token.split(":")
    if len(parts) != 3:
        return TokenValidation(valid=False, error="Invalid token format")

    user_id, expires_at_str, received = parts
    try:
        expires_at = int(expires_at_str)
    except ValueError:
        return TokenValidation(valid=False, error=expired_error)
    if (now_ms if now_ms is not None else _now_ms()) > expires_at:
        return TokenValidation(valid=False, error=expired_error)

    secret = secret_for(user_id)
    if not secret:
        return TokenValidation(valid=False, error="Invalid token")

    expected = sign(secret, f"{user_id}:{expires_at_str}")
    if not hmac.compare_digest(expected.encode("ascii"), received.encode("utf-8")):
        return TokenValidation(valid=False, error="Invalid token")

    return TokenValidation(valid=True, user_id=user_id)


def generate_password_reset_token(
    user_id: str, password_hash: str, now_ms: Optional[int] = None
) -> str:
    """
    Create a password reset token for a user.

    Args:
        user_id: User id
        password_hash: The user's current password hash (signing key)
        now_ms: Reference time in epoch milliseconds (defaults to now)

    Returns:
        Token string valid for password_reset_ttl_minutes
    """
    return generate_signed_token(
        user_id,
        password_hash,
        settings.password_reset_ttl_minutes * 60 * 1000,
        now_ms=now_ms,
    )


def validate_password_reset_token(
    session: Session, token: str, now_ms: Optional[int] = None
) -> TokenValidation:
    """
    Validate a password reset token against the user's current password hash.

    Never raises for bad input; failures come back as ``valid=False`` with
    one of "Invalid token format", "Token has expired" or "Invalid token".
    """
    users = UserRepository(session)

    def secret_for(user_id: str) -> Optional[str]:
        user = users.find_by_id(user_id)
        return user.password_hash if user else None

    return _check_signed_token(token, secret_for, "Token has expired", now_ms=now_ms)


def new_verification_secret() -> str:
    return secrets.token_urlsafe(32)


def generate_email_verification_token(
    user_id: str, verification_secret: str, now_ms: Optional[int] = None
) -> str:
    return generate_signed_token(
        user_id,
        verification_secret,
        settings.email_verification_ttl_hours * 60 * 60 * 1000,
        now_ms=now_ms,
    )


def validate_email_verification_token(
    session: Session, token: str, now_ms: Optional[int] = None
) -> TokenValidation:
    """
    Validate an email verification token against the user's stored secret.

    Failures come back as ``valid=False`` with one of "Invalid token format",
    "Token expired" or "Invalid token".
    """
    users = UserRepository(session)

    def secret_for(user_id: str) -> Optional[str]:
        user = users.find_by_id(user_id)
        return user.email_verification_secret if user else None

    return _check_signed_token(token, secret_for, "Token expired", now_ms=now_ms)
