"""
Authentication routes.
"""
import logging

from fastapi import APIRouter, Depends

from app.core.security import get_current_user
from app.models.models import User
from app.schemas.gtd import UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/user", response_model=UserResponse, response_model_by_alias=True)
async def get_me(current_user: User = Depends(get_current_user)):
    """Current user's profile. The user row is created on first request."""
    logger.info(f"[API] GET /auth/user - user_id={current_user.id}")
    return UserResponse.model_validate(current_user)
