"""
Authentication API routes.

Registration, login/logout, password changes and resets, and email
verification. Outbound email is not sent; reset and verification links are
written to the log instead.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from teambeat.api.auth import (
    AuthContext,
    clear_session_cookie,
    get_auth_context,
    set_session_cookie,
)
from teambeat.api.deps import get_login_limiter, get_session_store
from teambeat.api.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    PasswordResetRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyEmailRequest,
)
from teambeat.auth.password import hash_password, verify_password
from teambeat.auth.sessions import SessionStore
from teambeat.auth.tokens import (
    generate_email_verification_token,
    generate_password_reset_token,
    new_verification_secret,
    validate_email_verification_token,
    validate_password_reset_token,
)
from teambeat.config import settings
from teambeat.db.connection import get_db
from teambeat.db.repositories import UserRepository
from teambeat.stores.rate_limit import LoginRateLimiter

logger = logging.getLogger(__name__)

router = APIRouter()

RESET_REQUESTED_MESSAGE = (
    "If an account exists with that email, a password reset link has been sent."
)


def _user_payload(user) -> dict[str, Any]:
    return UserResponse.model_validate(user).model_dump()


@router.post("/register")
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    """
    Create an account and log it in.

    Raises:
        HTTPException(409): If the email is already registered
    """
    users = UserRepository(db)
    if users.find_by_email(body.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )

    user = users.create_user(
        email=body.email, password_hash=hash_password(body.password), name=body.name
    )
    secret = new_verification_secret()
    users.set_verification_secret(user.id, secret)
    token = generate_email_verification_token(user.id, secret)
    logger.info(
        f"Email verification link for {user.email}: "
        f"{settings.public_url}/verify-email?token={token}"
    )

    set_session_cookie(response, request, sessions.create(user.id, user.email))
    logger.info(f"Registered user {user.id}")
    return {"success": True, "user": _user_payload(user)}


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
    limiter: LoginRateLimiter = Depends(get_login_limiter),
) -> dict[str, Any]:
    """
    Log in with email and password.

    Failed attempts are counted per email; once the limit is reached further
    attempts are refused until the window ends.

    Raises:
        HTTPException(429): If the email is rate limited
        HTTPException(401): On an unknown email or wrong password
    """
    key = body.email.strip().lower()
    if not limiter.check(key).allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=(
                "Too many login attempts. Please try again in "
                f"{settings.login_window_minutes} minutes."
            ),
        )

    user = UserRepository(db).find_by_email(body.email)
    if user is None or not verify_password(body.password, user.password_hash):
        limiter.record_failure(key)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    limiter.reset(key)
    set_session_cookie(response, request, sessions.create(user.id, user.email))
    return {"success": True, "user": _user_payload(user)}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    sessions: SessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    session_id = request.cookies.get(settings.session_cookie_name)
    if session_id:
        sessions.delete(session_id)
    clear_session_cookie(response)
    return {"success": True}


@router.get("/me")
async def me(auth: AuthContext = Depends(get_auth_context)) -> dict[str, Any]:
    return {"success": True, "user": _user_payload(auth.user)}


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Change the current user's password.

    Raises:
        HTTPException(400): If the current password is wrong
    """
    if not verify_password(body.current_password, auth.user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )
    UserRepository(db).update_password(auth.user_id, hash_password(body.new_password))
    return {"success": True}


@router.post("/request-password-reset")
async def request_password_reset(
    body: PasswordResetRequest, db: Session = Depends(get_db)
) -> dict[str, Any]:
    """Issue a reset token. Always reports success so emails cannot be probed."""
    user = UserRepository(db).find_by_email(body.email)
    if user is not None:
        token = generate_password_reset_token(user.id, user.password_hash)
        logger.info(
            f"Password reset link for {user.email}: "
            f"{settings.public_url}/reset-password?token={token}"
        )
    return {"success": True, "message": RESET_REQUESTED_MESSAGE}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    """
    Set a new password using a reset token.

    Existing sessions of the user are ended.

    Raises:
        HTTPException(400): If the token is malformed, expired or stale
    """
    result = validate_password_reset_token(db, body.token)
    if not result.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)

    UserRepository(db).update_password(result.user_id, hash_password(body.password))
    sessions.delete_user_sessions(result.user_id)
    logger.info(f"Password reset for user {result.user_id}")
    return {"success": True}


@router.post("/send-verification-email")
async def send_verification_email(
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    if auth.user.email_verified:
        return {"success": True, "message": "Email already verified"}
    secret = new_verification_secret()
    UserRepository(db).set_verification_secret(auth.user_id, secret)
    token = generate_email_verification_token(auth.user_id, secret)
    logger.info(
        f"Email verification link for {auth.user.email}: "
        f"{settings.public_url}/verify-email?token={token}"
    )
    return {"success": True, "message": "Verification email sent"}


@router.post("/verify-email")
async def verify_email(
    body: VerifyEmailRequest, db: Session = Depends(get_db)
) -> dict[str, Any]:
    """
    Mark an email address as verified.

    Raises:
        HTTPException(400): If the token is malformed, expired or stale
    """
    result = validate_email_verification_token(db, body.token)
    if not result.valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    UserRepository(db).mark_email_verified(result.user_id)
    return {"success": True}
