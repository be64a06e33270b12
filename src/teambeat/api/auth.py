"""
Session authentication for API endpoints.

Logged-in users carry a session id in an HTTP-only cookie. Endpoints that
need a user depend on get_current_user(), which resolves the cookie against
the in-process SessionStore and loads the user.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from teambeat.api.deps import get_session_store
from teambeat.auth.sessions import SECONDS_PER_DAY, SessionStore
from teambeat.config import settings
from teambeat.db.connection import get_db
from teambeat.db.repositories import UserRepository
from teambeat.models.db import User


@dataclass
class AuthContext:
    """
    The authenticated user for a request.

    Attributes:
        user: The logged-in user
        session_id: Session id from the cookie

    Example:
        >>> @router.get("/boards/{board_id}")
        >>> async def get_board(
        ...     board_id: str,
        ...     auth: AuthContext = Depends(get_auth_context),
        ...     db: Session = Depends(get_db),
        ... ):
        ...     ...
    """

    user: User
    session_id: str

    @property
    def user_id(self) -> str:
        return self.user.id


def get_auth_context(
    session_id: Optional[str] = Cookie(None, alias=settings.session_cookie_name),
    sessions: SessionStore = Depends(get_session_store),
    db: Session = Depends(get_db),
) -> AuthContext:
    """FastAPI dependency resolving the session cookie to a user."""
    return resolve_auth(db, sessions, session_id)


def resolve_auth(
    db: Session, sessions: SessionStore, session_id: Optional[str]
) -> AuthContext:
    """
    Resolve a session id to the logged-in user.

    Used directly by routes that must not hold a request-scoped session.

    Raises:
        HTTPException(401): If the cookie is missing, the session has
            expired, or the user no longer exists
    """
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    user = UserRepository(db).find_by_id(session.user_id)
    if user is None:
        sessions.delete(session_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return AuthContext(user=user, session_id=session_id)


def get_current_user(auth: AuthContext = Depends(get_auth_context)) -> User:
    return auth.user


def set_session_cookie(response: Response, request: Request, session_id: str) -> None:
    """Attach the session cookie: HTTP-only, SameSite=Lax, Secure on https."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session_id,
        max_age=settings.session_ttl_days * SECONDS_PER_DAY,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.session_cookie_name, path="/")
