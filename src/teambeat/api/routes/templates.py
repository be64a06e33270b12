"""
Board template routes.
"""

from typing import Any

from fastapi import APIRouter, Depends

from teambeat.api.auth import AuthContext, get_auth_context
from teambeat.services.board_templates import get_template_list

router = APIRouter()


@router.get("")
async def list_templates(auth: AuthContext = Depends(get_auth_context)) -> dict[str, Any]:
    """Templates a new board can be set up from."""
    return {"success": True, "templates": get_template_list()}
