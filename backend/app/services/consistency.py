"""
Task counter maintenance and category derivation.

Projects and contexts cache the number of non-trashed tasks linked to them in
task_count. The cache is never recomputed from a scan: every task mutation
path must call the matching hook below, and each hook issues an atomic
"task_count = task_count +/- 1" UPDATE.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import Context, Project

logger = logging.getLogger(__name__)


class Category:
    """Display labels for tasks."""
    INBOX = "inbox"
    PROJECTS = "projects"
    NEXT_ACTIONS = "nextActions"
    BOTH = "projects & nextActions"

    DERIVED = {INBOX, PROJECTS, NEXT_ACTIONS, BOTH}


def derive_category(
    has_project: bool,
    has_context: bool,
    requested: Optional[str] = None,
) -> str:
    """
    Category for a task given its links.

    Unlinked tasks are always "inbox". Linked tasks get the label matching
    their links unless the caller asked for a custom (non-standard) label,
    which is kept.
    """
    if not has_project and not has_context:
        return Category.INBOX

    requested = (requested or "").strip()
    if requested and requested not in Category.DERIVED and requested.lower() != Category.INBOX:
        return requested

    if has_project and has_context:
        return Category.BOTH
    return Category.PROJECTS if has_project else Category.NEXT_ACTIONS


class CounterUpdater:
    """Applies the increment/decrement policy for task_count."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _adjust(self, model, entity_id: Optional[str], delta: int) -> None:
        if not entity_id:
            return
        await self.db.execute(
            update(model)
            .where(model.id == entity_id)
            .values(task_count=model.task_count + delta, updated_at=datetime.utcnow())
        )
        logger.debug(f"[COUNTERS] {model.__tablename__}.{entity_id} task_count {delta:+d}")

    async def on_task_created(
        self,
        project_id: Optional[str],
        context_id: Optional[str],
    ) -> None:
        """+1 on every record the new task links to."""
        await self._adjust(Project, project_id, 1)
        await self._adjust(Context, context_id, 1)

    async def on_task_relinked(
        self,
        old_project_id: Optional[str],
        new_project_id: Optional[str],
        old_context_id: Optional[str],
        new_context_id: Optional[str],
    ) -> None:
        """Move one count from the old target to the new one, per link that changed."""
        if old_project_id != new_project_id:
            await self._adjust(Project, old_project_id, -1)
            await self._adjust(Project, new_project_id, 1)
        if old_context_id != new_context_id:
            await self._adjust(Context, old_context_id, -1)
            await self._adjust(Context, new_context_id, 1)

    async def on_task_trashed(
        self,
        project_id: Optional[str],
        context_id: Optional[str],
    ) -> None:
        """-1 on every record the task was linked to when trashed."""
        await self._adjust(Project, project_id, -1)
        await self._adjust(Context, context_id, -1)
