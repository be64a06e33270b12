"""
Board series API routes.

A series groups the recurring retrospectives of one team. Its members hold
a role (admin, facilitator or member) that governs what they can do on the
series' boards.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from teambeat.api.auth import AuthContext, get_auth_context
from teambeat.api.deps import not_found
from teambeat.api.schemas import MemberAdd, MemberRoleUpdate, SeriesCreate, SeriesResponse
from teambeat.db.connection import get_db
from teambeat.db.repositories import BoardRepository, SeriesRepository, UserRepository
from teambeat.permissions import MANAGER_ROLES, BoardStatus, SeriesRole, is_series_admin

router = APIRouter()


def _require_role(db: Session, series_id: str, user_id: str, admin: bool = False) -> str:
    series_repo = SeriesRepository(db)
    if series_repo.find_by_id(series_id) is None:
        raise not_found("Series")
    role = series_repo.get_user_role_in_series(user_id, series_id)
    if role is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    if admin and not is_series_admin(role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only series admins can manage members",
        )
    return role


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_series(
    body: SeriesCreate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    series = SeriesRepository(db).create_series(
        name=body.name, creator_id=auth.user_id, description=body.description
    )
    return {
        "success": True,
        "series": SeriesResponse.model_validate(series).model_dump(),
        "role": SeriesRole.ADMIN.value,
    }


@router.get("")
async def list_series(
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """List the caller's series with their boards (drafts only for facilitators/admins)."""
    return {
        "success": True,
        "series": SeriesRepository(db).find_series_with_boards_by_user(auth.user_id),
    }


@router.get("/{series_id}")
async def get_series(
    series_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    role = _require_role(db, series_id, auth.user_id)
    series = SeriesRepository(db).find_by_id(series_id)
    boards = BoardRepository(db).find_by_series(series_id)
    if role not in MANAGER_ROLES:
        boards = [b for b in boards if b.status != BoardStatus.DRAFT.value]
    return {
        "success": True,
        "series": SeriesResponse.model_validate(series).model_dump(),
        "role": role,
        "boards": [
            {
                "id": board.id,
                "name": board.name,
                "status": board.status,
                "meeting_date": board.meeting_date,
                "created_at": board.created_at,
            }
            for board in boards
        ],
    }


@router.delete("/{series_id}")
async def delete_series(
    series_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    _require_role(db, series_id, auth.user_id, admin=True)
    SeriesRepository(db).delete_series(series_id)
    return {"success": True}


# ===== Members =====


@router.get("/{series_id}/members")
async def list_members(
    series_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    _require_role(db, series_id, auth.user_id)
    return {"success": True, "members": SeriesRepository(db).get_members(series_id)}


@router.post("/{series_id}/members", status_code=status.HTTP_201_CREATED)
async def add_member(
    series_id: str,
    body: MemberAdd,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Add a registered user to the series by email.

    Raises:
        HTTPException(404): If no user has that email
        HTTPException(409): If the user is already a member
    """
    _require_role(db, series_id, auth.user_id, admin=True)
    user = UserRepository(db).find_by_email(body.email)
    if user is None:
        raise not_found("User")

    series_repo = SeriesRepository(db)
    if series_repo.get_membership(series_id, user.id) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already a member of this series",
        )
    series_repo.add_member(series_id, user.id, body.role.value)
    return {"success": True, "members": series_repo.get_members(series_id)}


def _check_target(db: Session, series_id: str, user_id: str):
    membership = SeriesRepository(db).get_membership(series_id, user_id)
    if membership is None:
        raise not_found("Member")
    return membership


@router.put("/{series_id}/members/{user_id}")
async def update_member_role(
    series_id: str,
    user_id: str,
    body: MemberRoleUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    _require_role(db, series_id, auth.user_id, admin=True)
    membership = _check_target(db, series_id, user_id)
    if is_series_admin(membership.role) and user_id != auth.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot change the role of another admin",
        )
    series_repo = SeriesRepository(db)
    series_repo.update_member_role(series_id, user_id, body.role.value)
    return {"success": True, "members": series_repo.get_members(series_id)}


@router.delete("/{series_id}/members/{user_id}")
async def remove_member(
    series_id: str,
    user_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    _require_role(db, series_id, auth.user_id, admin=True)
    membership = _check_target(db, series_id, user_id)
    if is_series_admin(membership.role) and user_id != auth.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot remove another admin",
        )
    series_repo = SeriesRepository(db)
    series_repo.remove_member(series_id, user_id)
    return {"success": True, "members": series_repo.get_members(series_id)}
