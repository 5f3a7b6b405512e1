"""
Unit tests for category derivation and task_count maintenance.
"""
import pytest
from sqlalchemy import func, select

from app.models.models import Context, Project, Task
from app.services.consistency import Category, derive_category
from app.services.tasks import TaskService


class TestDeriveCategory:
    """Unit tests for derive_category."""

    @pytest.mark.parametrize(
        "has_project,has_context,requested,expected",
        [
            (False, False, "projects", Category.INBOX),
            (False, False, "Someday", Category.INBOX),
            (True, False, None, Category.PROJECTS),
            (False, True, "inbox", Category.NEXT_ACTIONS),
            (True, True, "", Category.BOTH),
            (True, True, "projects", Category.BOTH),
            (True, False, "Someday", "Someday"),
        ],
    )
    def test_derivation(self, has_project, has_context, requested, expected):
        assert derive_category(has_project, has_context, requested) == expected


async def live_count(session, model, entity_id) -> int:
    column = Task.project_id if model is Project else Task.context_id
    result = await session.execute(
        select(func.count()).select_from(Task).where(column == entity_id, Task.trashed.is_(False))
    )
    return result.scalar_one()


class TestCounters:
    """task_count follows every create, relink and trash."""

    @pytest.mark.asyncio
    async def test_create_increments_each_link(self, db_session, user, factory):
        project = await factory.project(user.id, "Launch")
        context = await factory.context(user.id, "Calls")
        service = TaskService(db_session)

        task = await service.create_task(
            user.id, "Call Sam", project_id=project.id, context_id=context.id
        )

        await db_session.refresh(project)
        await db_session.refresh(context)
        assert project.task_count == 1
        assert context.task_count == 1
        assert task.category == Category.BOTH

    @pytest.mark.asyncio
    async def test_relink_moves_one_count(self, db_session, user, factory):
        old = await factory.project(user.id, "Old")
        new = await factory.project(user.id, "New")
        service = TaskService(db_session)
        task = await service.create_task(user.id, "Move me", project_id=old.id)

        await service.update_task_by_id(user.id, task.id, {"project_id": new.id})

        await db_session.refresh(old)
        await db_session.refresh(new)
        assert old.task_count == 0
        assert new.task_count == 1

    @pytest.mark.asyncio
    async def test_update_without_link_change_keeps_counts(self, db_session, user, factory):
        project = await factory.project(user.id, "Launch")
        service = TaskService(db_session)
        task = await service.create_task(user.id, "Draft", project_id=project.id)

        await service.update_task_by_id(
            user.id, task.id, {"title": "Draft v2", "project_id": project.id}
        )

        await db_session.refresh(project)
        assert project.task_count == 1

    @pytest.mark.asyncio
    async def test_unlink_sets_inbox(self, db_session, user, factory):
        project = await factory.project(user.id, "Launch")
        service = TaskService(db_session)
        task = await service.create_task(user.id, "Draft", project_id=project.id)

        updated = await service.update_task_by_id(user.id, task.id, {"project_id": None})

        await db_session.refresh(project)
        assert project.task_count == 0
        assert updated.category == Category.INBOX

    @pytest.mark.asyncio
    async def test_trash_decrements(self, db_session, user, factory):
        context = await factory.context(user.id, "Errands")
        service = TaskService(db_session)
        task = await service.create_task(user.id, "Buy milk", context_id=context.id)

        await service.delete_task(user.id, task.id)

        await db_session.refresh(context)
        assert context.task_count == 0

    @pytest.mark.asyncio
    async def test_counts_match_live_tasks_after_mixed_writes(self, db_session, user, factory):
        p1 = await factory.project(user.id, "P1")
        p2 = await factory.project(user.id, "P2")
        ctx = await factory.context(user.id, "Home")
        service = TaskService(db_session)

        a = await service.create_task(user.id, "a", project_id=p1.id, context_id=ctx.id)
        b = await service.create_task(user.id, "b", project_id=p1.id)
        c = await service.create_task(user.id, "c", context_id=ctx.id)
        await service.update_task_by_id(user.id, b.id, {"project_id": p2.id, "context_id": ctx.id})
        await service.delete_task(user.id, a.id)
        await service.complete_task_by_id(user.id, c.id)
        await service.update_task_by_id(user.id, c.id, {"context_id": None})

        for record in (p1, p2, ctx):
            await db_session.refresh(record)
            assert record.task_count == await live_count(db_session, type(record), record.id)
        assert (p1.task_count, p2.task_count, ctx.task_count) == (0, 1, 1)
