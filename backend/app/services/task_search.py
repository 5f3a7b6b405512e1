"""
Task Search.

Structural filtering (owner, not trashed, optionally open-only and scoped to a
project/context) happens in SQL; title relevance is scored in Python with the
same similarity used for entity resolution.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.models import Task
from app.services.fuzzy import all_matches, similarity

logger = logging.getLogger(__name__)


@dataclass
class TaskScope:
    """Structural filter applied before scoring."""
    project_id: Optional[str] = None
    context_id: Optional[str] = None
    include_completed: bool = False


class TaskSearch:
    """Fuzzy task lookup for one user."""

    def __init__(
        self,
        db: AsyncSession,
        threshold: Optional[int] = None,
        scorer: Callable[[str, str], int] = similarity,
    ):
        self.db = db
        self.threshold = settings.search_threshold if threshold is None else threshold
        self.scorer = scorer

    def build_query(self, user_id: str, scope: TaskScope) -> Select:
        stmt = select(Task).where(Task.user_id == user_id, Task.trashed.is_(False))
        if not scope.include_completed:
            stmt = stmt.where(Task.completed.is_(False))
        if scope.project_id:
            stmt = stmt.where(Task.project_id == scope.project_id)
        if scope.context_id:
            stmt = stmt.where(Task.context_id == scope.context_id)
        return stmt.order_by(Task.created_at, Task.id)

    async def list_in_scope(self, user_id: str, scope: TaskScope) -> list[Task]:
        result = await self.db.execute(self.build_query(user_id, scope))
        return list(result.scalars().all())

    async def find_scored(
        self,
        user_id: str,
        scope: TaskScope,
        title_query: str,
        threshold: Optional[int] = None,
    ) -> list[tuple[Task, int]]:
        """Matches with their scores, best first."""
        if not (title_query or "").strip():
            return []

        cutoff = self.threshold if threshold is None else threshold
        candidates = await self.list_in_scope(user_id, scope)
        matches = all_matches(
            title_query,
            candidates,
            key=lambda t: t.title,
            threshold=cutoff,
            scorer=self.scorer,
        )
        logger.info(
            f"[SEARCH] '{title_query}' -> {len(matches)}/{len(candidates)} tasks (threshold={cutoff})"
        )
        return matches

    async def find_relevant(
        self,
        user_id: str,
        scope: TaskScope,
        title_query: str,
        threshold: Optional[int] = None,
    ) -> list[Task]:
        """All tasks in scope whose title scores at or above threshold."""
        return [task for task, _ in await self.find_scored(user_id, scope, title_query, threshold)]
