from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user_id, is_platform_admin
from app.modules.auth.schemas import CurrentUserResponse
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(current_user: Dict = Depends(get_current_user_id)):
    """Get current authenticated user (for frontend UI)."""
    return CurrentUserResponse(
        id=current_user["id"],
        email=current_user.get("email"),
        user_metadata=current_user.get("user_metadata") or {},
        is_admin=is_platform_admin(current_user)
    )
