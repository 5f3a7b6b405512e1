"""
Entity Resolver.

Maps a loosely specified project or context name to one of the user's records:
exact case-insensitive match first, then the best fuzzy match at or above the
threshold, then (for resolve) a newly created record.

Create-on-miss takes no lock: two concurrent resolutions of a brand-new name
can both create a record.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.models import Context, Project
from app.services.audit_logger import AuditLogger, get_audit_logger
from app.services.fuzzy import best_match, normalize, similarity

logger = logging.getLogger(__name__)

NamedEntity = Union[Project, Context]


class EntityKind(str, Enum):
    """Entity kinds that can be resolved by name."""
    PROJECT = "project"
    CONTEXT = "context"


MODELS = {
    EntityKind.PROJECT: Project,
    EntityKind.CONTEXT: Context,
}


@dataclass
class Resolution:
    """Outcome of a name resolution."""
    entity: NamedEntity
    score: int
    created: bool = False

    @property
    def id(self) -> str:
        return self.entity.id


class EntityResolver:
    """Resolves project/context names for one user at a time."""

    def __init__(
        self,
        db: AsyncSession,
        threshold: Optional[int] = None,
        audit_logger: Optional[AuditLogger] = None,
        scorer: Callable[[str, str], int] = similarity,
    ):
        self.db = db
        self.threshold = settings.resolve_threshold if threshold is None else threshold
        self.audit = audit_logger or get_audit_logger()
        self.scorer = scorer

    async def _candidates(self, kind: EntityKind, user_id: str) -> list[NamedEntity]:
        """User's records of this kind in store order (oldest first)."""
        model = MODELS[kind]
        stmt = (
            select(model)
            .where(model.user_id == user_id)
            .order_by(model.created_at, model.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def match_by_name(
        self,
        kind: EntityKind,
        name: Optional[str],
        user_id: str,
    ) -> Optional[Resolution]:
        """Exact then fuzzy lookup. Never creates."""
        query = (name or "").strip()
        if not query:
            return None

        candidates = await self._candidates(kind, user_id)

        wanted = normalize(query)
        for candidate in candidates:
            if normalize(candidate.name) == wanted:
                logger.debug(f"[RESOLVER] Exact {kind.value} match '{query}' -> {candidate.id}")
                return Resolution(entity=candidate, score=100)

        found = best_match(
            query,
            candidates,
            key=lambda c: c.name,
            threshold=self.threshold,
            scorer=self.scorer,
        )
        if found is None:
            logger.debug(f"[RESOLVER] No {kind.value} match for '{query}'")
            return None

        entity, score = found
        logger.info(f"[RESOLVER] Fuzzy {kind.value} match '{query}' -> '{entity.name}' (score={score})")
        return Resolution(entity=entity, score=score)

    async def resolve(
        self,
        kind: EntityKind,
        name: Optional[str],
        user_id: str,
    ) -> Optional[Resolution]:
        """Exact, then fuzzy, then create. Empty name resolves to None."""
        query = (name or "").strip()
        if not query:
            return None

        resolution = await self.match_by_name(kind, query, user_id)
        if resolution is None:
            entity = await self._create(kind, query, user_id)
            resolution = Resolution(entity=entity, score=0, created=True)

        self.audit.log_entity_resolution(
            kind=kind.value,
            name=query,
            entity_id=resolution.id,
            created=resolution.created,
            score=resolution.score,
            user_id=user_id,
        )
        return resolution

    async def resolve_by_name(
        self,
        kind: EntityKind,
        name: Optional[str],
        user_id: str,
    ) -> Optional[str]:
        """Id of the resolved (possibly new) record, or None for an empty name."""
        resolution = await self.resolve(kind, name, user_id)
        return resolution.id if resolution else None

    async def _create(self, kind: EntityKind, name: str, user_id: str) -> NamedEntity:
        model = MODELS[kind]
        now = datetime.utcnow()
        entity = model(user_id=user_id, name=name, task_count=0, created_at=now, updated_at=now)
        self.db.add(entity)
        await self.db.commit()
        logger.info(f"[RESOLVER] Created {kind.value} '{name}' -> {entity.id}")
        return entity
