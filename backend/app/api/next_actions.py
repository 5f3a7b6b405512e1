"""Context ("next action") CRUD routes."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.models import User
from app.schemas.gtd import NextActionCreateRequest, NextActionResponse, NextActionUpdateRequest
from app.services.contexts import ContextService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[NextActionResponse])
async def list_next_actions(
    name: Optional[str] = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"[API] GET /next-actions - user_id={current_user.id}")
    contexts = await ContextService(db).list_contexts(current_user.id, name)
    return [NextActionResponse.model_validate(c) for c in contexts]


@router.post("", response_model=NextActionResponse, status_code=status.HTTP_201_CREATED)
async def create_next_action(
    request: NextActionCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"[API] POST /next-actions - user_id={current_user.id}, name={request.name}")
    context = await ContextService(db).create_context(current_user.id, request.name)
    return NextActionResponse.model_validate(context)


@router.get("/{context_id}", response_model=NextActionResponse)
async def get_next_action(
    context_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    context = await ContextService(db).get_context(current_user.id, context_id)
    return NextActionResponse.model_validate(context)


@router.put("/{context_id}", response_model=NextActionResponse)
async def update_next_action(
    context_id: str,
    request: NextActionUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"[API] PUT /next-actions/{context_id} - user_id={current_user.id}")
    context = await ContextService(db).update_context(
        current_user.id, context_id, request.model_dump(exclude_unset=True)
    )
    return NextActionResponse.model_validate(context)


@router.delete("/{context_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_next_action(
    context_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"[API] DELETE /next-actions/{context_id} - user_id={current_user.id}")
    await ContextService(db).delete_context(current_user.id, context_id)
