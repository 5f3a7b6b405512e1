"""
Unit tests for EntityResolver.

Covers exact/fuzzy/create resolution order, the inclusive threshold,
tie-breaking on store order and per-user scoping.
"""
import pytest
from sqlalchemy import func, select

from app.models.models import Context, Project
from app.services.audit_logger import OperationType
from app.services.entity_resolver import EntityKind, EntityResolver


async def count_rows(session, model, user_id) -> int:
    result = await session.execute(
        select(func.count()).select_from(model).where(model.user_id == user_id)
    )
    return result.scalar_one()


class TestResolveByName:
    """Tests for resolve_by_name (create-on-miss)."""

    @pytest.mark.asyncio
    async def test_blank_name_resolves_to_none(self, db_session, user, audit_logger):
        resolver = EntityResolver(db_session, audit_logger=audit_logger)

        assert await resolver.resolve_by_name(EntityKind.PROJECT, "", user.id) is None
        assert await resolver.resolve_by_name(EntityKind.PROJECT, "   ", user.id) is None
        assert await resolver.resolve_by_name(EntityKind.PROJECT, None, user.id) is None
        assert await count_rows(db_session, Project, user.id) == 0

    @pytest.mark.asyncio
    async def test_exact_match_is_case_insensitive(self, db_session, user, factory, audit_logger):
        launch = await factory.project(user.id, "Launch")
        resolver = EntityResolver(db_session, audit_logger=audit_logger)

        resolved = await resolver.resolve_by_name(EntityKind.PROJECT, "launch", user.id)

        assert resolved == launch.id
        assert await count_rows(db_session, Project, user.id) == 1

    @pytest.mark.asyncio
    async def test_miss_creates_once(self, db_session, user, audit_logger):
        resolver = EntityResolver(db_session, audit_logger=audit_logger)

        first = await resolver.resolve(EntityKind.CONTEXT, "Errands", user.id)
        second = await resolver.resolve(EntityKind.CONTEXT, "errands", user.id)

        assert first.created is True
        assert first.entity.task_count == 0
        assert second.created is False
        assert second.id == first.id
        assert await count_rows(db_session, Context, user.id) == 1

    @pytest.mark.asyncio
    async def test_fuzzy_match_reuses_existing(self, db_session, user, factory, audit_logger):
        review = await factory.project(user.id, "Budget Review")
        resolver = EntityResolver(db_session, audit_logger=audit_logger)

        resolution = await resolver.resolve(EntityKind.PROJECT, "budget", user.id)

        assert resolution.id == review.id
        assert resolution.created is False
        assert resolution.score >= 70

    @pytest.mark.asyncio
    async def test_score_at_threshold_is_selected(self, db_session, user, factory, audit_logger):
        alpha = await factory.project(user.id, "Alpha")
        resolver = EntityResolver(
            db_session, threshold=70, audit_logger=audit_logger, scorer=lambda q, c: 70
        )

        assert await resolver.resolve_by_name(EntityKind.PROJECT, "Alfa", user.id) == alpha.id

    @pytest.mark.asyncio
    async def test_score_below_threshold_creates(self, db_session, user, factory, audit_logger):
        alpha = await factory.project(user.id, "Alpha")
        resolver = EntityResolver(
            db_session, threshold=70, audit_logger=audit_logger, scorer=lambda q, c: 69
        )

        resolved = await resolver.resolve_by_name(EntityKind.PROJECT, "Alfa", user.id)

        assert resolved != alpha.id
        assert await count_rows(db_session, Project, user.id) == 2

    @pytest.mark.asyncio
    async def test_tie_keeps_oldest_record(self, db_session, user, factory, audit_logger):
        first = await factory.project(user.id, "Budget A")
        await factory.project(user.id, "Budget B")
        resolver = EntityResolver(db_session, audit_logger=audit_logger, scorer=lambda q, c: 80)

        assert await resolver.resolve_by_name(EntityKind.PROJECT, "budget", user.id) == first.id

    @pytest.mark.asyncio
    async def test_other_users_records_are_invisible(
        self, db_session, user, other_user, factory, audit_logger
    ):
        theirs = await factory.project(other_user.id, "Launch")
        resolver = EntityResolver(db_session, audit_logger=audit_logger)

        resolved = await resolver.resolve_by_name(EntityKind.PROJECT, "Launch", user.id)

        assert resolved != theirs.id
        assert await count_rows(db_session, Project, user.id) == 1
        assert await count_rows(db_session, Project, other_user.id) == 1

    @pytest.mark.asyncio
    async def test_resolution_is_audited(self, db_session, user, audit_logger):
        resolver = EntityResolver(db_session, audit_logger=audit_logger)

        await resolver.resolve(EntityKind.PROJECT, "Launch", user.id)
        await resolver.resolve(EntityKind.PROJECT, "Launch", user.id)

        ops = audit_logger.get_recent_operations()
        assert ops[0]["operation_type"] == OperationType.ENTITY_MATCHED.value
        assert ops[1]["operation_type"] == OperationType.ENTITY_CREATED.value


class TestMatchByName:
    """Tests for the non-creating lookup."""

    @pytest.mark.asyncio
    async def test_miss_never_creates(self, db_session, user, audit_logger):
        resolver = EntityResolver(db_session, audit_logger=audit_logger)

        assert await resolver.match_by_name(EntityKind.PROJECT, "Launch", user.id) is None
        assert await count_rows(db_session, Project, user.id) == 0

    @pytest.mark.asyncio
    async def test_exact_match_preferred_over_fuzzy(self, db_session, user, factory, audit_logger):
        await factory.project(user.id, "Budget Review")
        exact = await factory.project(user.id, "Budget")
        resolver = EntityResolver(db_session, audit_logger=audit_logger)

        resolution = await resolver.match_by_name(EntityKind.PROJECT, "budget", user.id)

        assert resolution.id == exact.id
        assert resolution.score == 100
