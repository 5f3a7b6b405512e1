"""
Task record handlers.

Every write keeps project/context task_count in step through CounterUpdater
and recomputes the category with derive_category.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ErrorCode, NotFoundError
from app.models.models import PRIORITY_UNSET, Context, Project, Task
from app.services.consistency import CounterUpdater, derive_category
from app.services.task_search import TaskScope, TaskSearch

logger = logging.getLogger(__name__)

# Fields update_task_by_id accepts
UPDATABLE_FIELDS = {
    "title",
    "description",
    "due_date",
    "priority",
    "completed",
    "category",
    "project_id",
    "context_id",
}


def parse_due_date(value: Any) -> Optional[datetime]:
    """Accept datetimes, RFC 3339 / ISO 8601 strings or plain dates. Invalid -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"[TASKS] Unparseable due date '{value}'")
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def normalize_priority(priority: Optional[int]) -> int:
    """1..5 is kept, anything else becomes the 99 sentinel."""
    try:
        value = int(priority) if priority is not None else PRIORITY_UNSET
    except (TypeError, ValueError):
        return PRIORITY_UNSET
    return value if 1 <= value <= 5 else PRIORITY_UNSET


class TaskService:
    """CRUD for tasks owned by a single caller per call."""

    def __init__(self, db: AsyncSession, counters: Optional[CounterUpdater] = None):
        self.db = db
        self.counters = counters or CounterUpdater(db)

    async def _require_link(self, model, entity_id: Optional[str], owner_id: str) -> Optional[str]:
        """Linked record must exist and belong to the caller."""
        if not entity_id:
            return None
        stmt = select(model.id).where(model.id == entity_id, model.user_id == owner_id)
        result = await self.db.execute(stmt)
        if result.scalar_one_or_none() is None:
            raise NotFoundError(
                message=f"{model.__name__} not found",
                code=ErrorCode.PROJECT_NOT_FOUND if model is Project else ErrorCode.CONTEXT_NOT_FOUND,
                resource_type=model.__name__.lower(),
                resource_id=entity_id,
            )
        return entity_id

    async def list_tasks(
        self,
        owner_id: str,
        project_id: Optional[str] = None,
        context_id: Optional[str] = None,
        include_completed: bool = True,
    ) -> list[Task]:
        scope = TaskScope(
            project_id=project_id,
            context_id=context_id,
            include_completed=include_completed,
        )
        return await TaskSearch(self.db).list_in_scope(owner_id, scope)

    async def get_task(self, owner_id: str, task_id: str) -> Task:
        stmt = select(Task).where(
            Task.id == task_id,
            Task.user_id == owner_id,
            Task.trashed.is_(False),
        )
        result = await self.db.execute(stmt)
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFoundError(
                message="Task not found",
                code=ErrorCode.TASK_NOT_FOUND,
                resource_type="task",
                resource_id=task_id,
            )
        return task

    async def create_task(
        self,
        owner_id: str,
        title: str,
        description: str = "",
        due_date: Any = None,
        priority: Optional[int] = None,
        category: Optional[str] = None,
        project_id: Optional[str] = None,
        context_id: Optional[str] = None,
    ) -> Task:
        """Insert a task; a missing or unparseable due date defaults to now."""
        project_id = await self._require_link(Project, project_id, owner_id)
        context_id = await self._require_link(Context, context_id, owner_id)

        now = datetime.utcnow()
        task = Task(
            user_id=owner_id,
            project_id=project_id,
            context_id=context_id,
            title=title,
            description=description or "",
            due_date=parse_due_date(due_date) or now,
            priority=normalize_priority(priority),
            completed=False,
            trashed=False,
            category=derive_category(project_id is not None, context_id is not None, category),
            created_at=now,
            updated_at=now,
        )
        self.db.add(task)
        await self.db.flush()
        await self.counters.on_task_created(project_id, context_id)
        await self.db.commit()

        logger.info(
            f"[TASKS] Created task {task.id} '{title}' project={project_id} context={context_id}"
        )
        return task

    async def update_task_by_id(self, owner_id: str, task_id: str, fields: dict) -> Task:
        """Apply only the given fields. Link changes move counters."""
        task = await self.get_task(owner_id, task_id)
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            logger.warning(f"[TASKS] Ignoring unknown update fields: {sorted(unknown)}")

        old_project_id = task.project_id
        old_context_id = task.context_id

        if "project_id" in fields:
            task.project_id = await self._require_link(Project, fields["project_id"], owner_id)
        if "context_id" in fields:
            task.context_id = await self._require_link(Context, fields["context_id"], owner_id)

        if "title" in fields and fields["title"]:
            task.title = fields["title"]
        if "description" in fields and fields["description"] is not None:
            task.description = fields["description"]
        if "due_date" in fields:
            parsed = parse_due_date(fields["due_date"])
            if parsed is not None:
                task.due_date = parsed
        if "priority" in fields:
            task.priority = normalize_priority(fields["priority"])
        if "completed" in fields and fields["completed"] is not None:
            task.completed = bool(fields["completed"])

        requested = fields.get("category", task.category)
        task.category = derive_category(
            task.project_id is not None, task.context_id is not None, requested
        )
        task.updated_at = datetime.utcnow()

        await self.counters.on_task_relinked(
            old_project_id, task.project_id, old_context_id, task.context_id
        )
        await self.db.commit()

        logger.info(f"[TASKS] Updated task {task.id} fields={sorted(set(fields) & UPDATABLE_FIELDS)}")
        return task

    async def complete_task_by_id(self, owner_id: str, task_id: str) -> Task:
        task = await self.get_task(owner_id, task_id)
        task.completed = True
        task.updated_at = datetime.utcnow()
        await self.db.commit()
        logger.info(f"[TASKS] Completed task {task.id}")
        return task

    async def complete_tasks_in_scope(
        self,
        owner_id: str,
        project_id: Optional[str] = None,
        context_id: Optional[str] = None,
    ) -> int:
        """Mark every open, non-trashed task in scope complete. Returns the count."""
        scope = TaskScope(project_id=project_id, context_id=context_id)
        tasks = await TaskSearch(self.db).list_in_scope(owner_id, scope)

        now = datetime.utcnow()
        for task in tasks:
            task.completed = True
            task.updated_at = now
        await self.db.commit()
        count = len(tasks)
        logger.info(
            f"[TASKS] Bulk-completed {count} tasks project={project_id} context={context_id}"
        )
        return count

    async def delete_task(self, owner_id: str, task_id: str) -> None:
        """Soft delete; counters of the links held at delete time go down."""
        task = await self.get_task(owner_id, task_id)
        task.trashed = True
        task.updated_at = datetime.utcnow()
        await self.counters.on_task_trashed(task.project_id, task.context_id)
        await self.db.commit()
        logger.info(f"[TASKS] Trashed task {task.id}")

    async def count_in_scope(
        self,
        owner_id: str,
        project_id: Optional[str] = None,
        context_id: Optional[str] = None,
    ) -> tuple[int, int]:
        """(completed, total) over non-trashed tasks in scope."""
        tasks = await self.list_tasks(owner_id, project_id=project_id, context_id=context_id)
        completed = sum(1 for t in tasks if t.completed)
        return completed, len(tasks)

    async def unlink_all(
        self,
        owner_id: str,
        project_id: Optional[str] = None,
        context_id: Optional[str] = None,
    ) -> int:
        """Detach tasks from a project/context that is going away."""
        stmt = select(Task).where(Task.user_id == owner_id)
        if project_id:
            stmt = stmt.where(Task.project_id == project_id)
        if context_id:
            stmt = stmt.where(Task.context_id == context_id)
        result = await self.db.execute(stmt)
        tasks = list(result.scalars().all())

        for task in tasks:
            if project_id:
                task.project_id = None
            if context_id:
                task.context_id = None
            task.category = derive_category(
                task.project_id is not None, task.context_id is not None, task.category
            )
            task.updated_at = datetime.utcnow()
        return len(tasks)
