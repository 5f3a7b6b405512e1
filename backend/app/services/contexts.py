"""
Context ("next action" list) record handlers.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ErrorCode, NotFoundError, ValidationError
from app.models.models import Context
from app.services.tasks import TaskService

logger = logging.getLogger(__name__)


class ContextService:
    """CRUD for a user's contexts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_contexts(self, owner_id: str, name_filter: Optional[str] = None) -> list[Context]:
        stmt = (
            select(Context)
            .where(Context.user_id == owner_id)
            .order_by(Context.created_at, Context.id)
        )
        result = await self.db.execute(stmt)
        contexts = list(result.scalars().all())
        if name_filter:
            needle = name_filter.strip().lower()
            contexts = [c for c in contexts if needle in c.name.lower()]
        return contexts

    async def get_context(self, owner_id: str, context_id: str) -> Context:
        stmt = select(Context).where(Context.id == context_id, Context.user_id == owner_id)
        result = await self.db.execute(stmt)
        context = result.scalar_one_or_none()
        if context is None:
            raise NotFoundError(
                message="Next action not found",
                code=ErrorCode.CONTEXT_NOT_FOUND,
                resource_type="next_action",
                resource_id=context_id,
            )
        return context

    async def create_context(self, owner_id: str, name: str) -> Context:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Next action name is required", field="name")

        now = datetime.utcnow()
        context = Context(
            user_id=owner_id,
            name=name,
            task_count=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(context)
        await self.db.commit()
        logger.info(f"[CONTEXTS] Created context {context.id} '{name}'")
        return context

    async def update_context(self, owner_id: str, context_id: str, fields: dict) -> Context:
        context = await self.get_context(owner_id, context_id)
        if fields.get("name"):
            context.name = fields["name"].strip()
        context.updated_at = datetime.utcnow()
        await self.db.commit()
        logger.info(f"[CONTEXTS] Updated context {context.id}")
        return context

    async def delete_context(self, owner_id: str, context_id: str) -> None:
        context = await self.get_context(owner_id, context_id)
        unlinked = await TaskService(self.db).unlink_all(owner_id, context_id=context.id)
        await self.db.delete(context)
        await self.db.commit()
        logger.info(f"[CONTEXTS] Deleted context {context_id} (unlinked {unlinked} tasks)")
