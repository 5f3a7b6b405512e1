"""
Unit tests for the task, project and next-action record handlers.
"""
from datetime import datetime

import pytest

from app.core.exceptions import ErrorCode, NotFoundError, ValidationError
from app.models.models import PRIORITY_UNSET
from app.services.consistency import Category
from app.services.contexts import ContextService
from app.services.projects import ProjectService
from app.services.tasks import TaskService, normalize_priority, parse_due_date


class TestParseDueDate:
    """Unit tests for due date parsing."""

    def test_rfc3339_utc(self):
        assert parse_due_date("2026-10-23T09:30:00Z") == datetime(2026, 10, 23, 9, 30)

    def test_offset_converted_to_utc(self):
        assert parse_due_date("2026-10-23T09:30:00+02:00") == datetime(2026, 10, 23, 7, 30)

    def test_date_only(self):
        assert parse_due_date("2026-10-23") == datetime(2026, 10, 23)

    def test_datetime_passthrough(self):
        value = datetime(2026, 1, 2, 3, 4)
        assert parse_due_date(value) == value

    @pytest.mark.parametrize("value", [None, "", "next tuesday", "2026-13-45"])
    def test_invalid_is_none(self, value):
        assert parse_due_date(value) is None


class TestNormalizePriority:
    """Priority is 1..5 or the unset sentinel."""

    @pytest.mark.parametrize(
        "value,expected",
        [(1, 1), (5, 5), (0, PRIORITY_UNSET), (6, PRIORITY_UNSET), (None, PRIORITY_UNSET), ("3", 3), ("high", PRIORITY_UNSET)],
    )
    def test_normalize(self, value, expected):
        assert normalize_priority(value) == expected


class TestTaskService:
    """CRUD behaviour of TaskService."""

    @pytest.mark.asyncio
    async def test_create_defaults(self, db_session, user):
        before = datetime.utcnow()
        task = await TaskService(db_session).create_task(user.id, "Buy milk", due_date="soon")

        assert task.category == Category.INBOX
        assert task.priority == PRIORITY_UNSET
        assert task.completed is False
        assert task.trashed is False
        assert task.due_date >= before.replace(microsecond=0)

    @pytest.mark.asyncio
    async def test_create_rejects_foreign_project(self, db_session, user, other_user, factory):
        theirs = await factory.project(other_user.id, "Secret")

        with pytest.raises(NotFoundError) as exc_info:
            await TaskService(db_session).create_task(user.id, "Sneaky", project_id=theirs.id)

        assert exc_info.value.code == ErrorCode.PROJECT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_get_task_hides_other_users(self, db_session, user, other_user, factory):
        theirs = await factory.task(other_user.id, "Private")

        with pytest.raises(NotFoundError) as exc_info:
            await TaskService(db_session).get_task(user.id, theirs.id)

        assert exc_info.value.code == ErrorCode.TASK_NOT_FOUND

    @pytest.mark.asyncio
    async def test_get_task_hides_trashed(self, db_session, user, factory):
        trashed = await factory.task(user.id, "Gone", trashed=True)

        with pytest.raises(NotFoundError):
            await TaskService(db_session).get_task(user.id, trashed.id)

    @pytest.mark.asyncio
    async def test_partial_update_touches_only_given_fields(self, db_session, user):
        service = TaskService(db_session)
        task = await service.create_task(
            user.id, "Buy milk", description="2 litres", priority=2, due_date="2026-10-20"
        )

        updated = await service.update_task_by_id(user.id, task.id, {"priority": 4})

        assert updated.priority == 4
        assert updated.title == "Buy milk"
        assert updated.description == "2 litres"
        assert updated.due_date == datetime(2026, 10, 20)

    @pytest.mark.asyncio
    async def test_custom_category_kept_when_linked(self, db_session, user, factory):
        project = await factory.project(user.id, "Launch")
        task = await TaskService(db_session).create_task(
            user.id, "Plan", project_id=project.id, category="Someday"
        )

        assert task.category == "Someday"

    @pytest.mark.asyncio
    async def test_complete_tasks_in_scope_counts_open_only(self, db_session, user, factory):
        project = await factory.project(user.id, "Budget Review", task_count=4)
        for title in ("Collect receipts", "Check totals", "Send summary"):
            await factory.task(user.id, title, project_id=project.id)
        await factory.task(user.id, "Already done", project_id=project.id, completed=True)
        await factory.task(user.id, "Trashed", project_id=project.id, trashed=True)
        outside = await factory.task(user.id, "Outside")
        service = TaskService(db_session)

        count = await service.complete_tasks_in_scope(user.id, project_id=project.id)

        assert count == 3
        assert (await service.get_task(user.id, outside.id)).completed is False
        assert await service.count_in_scope(user.id, project_id=project.id) == (4, 4)


class TestProjectAndContextServices:
    """Project and next-action CRUD."""

    @pytest.mark.asyncio
    async def test_blank_project_name_rejected(self, db_session, user):
        with pytest.raises(ValidationError):
            await ProjectService(db_session).create_project(user.id, "   ")

    @pytest.mark.asyncio
    async def test_list_projects_filters_by_name(self, db_session, user, factory):
        await factory.project(user.id, "Launch")
        await factory.project(user.id, "Budget Review")

        projects = await ProjectService(db_session).list_projects(user.id, name_filter="budget")

        assert [p.name for p in projects] == ["Budget Review"]

    @pytest.mark.asyncio
    async def test_delete_project_unlinks_tasks(self, db_session, user, factory):
        project = await factory.project(user.id, "Launch")
        context = await factory.context(user.id, "Calls")
        task = await TaskService(db_session).create_task(
            user.id, "Call press", project_id=project.id, context_id=context.id
        )

        await ProjectService(db_session).delete_project(user.id, project.id)

        await db_session.refresh(task)
        assert task.project_id is None
        assert task.context_id == context.id
        assert task.category == Category.NEXT_ACTIONS
        with pytest.raises(NotFoundError):
            await ProjectService(db_session).get_project(user.id, project.id)

    @pytest.mark.asyncio
    async def test_context_crud(self, db_session, user):
        service = ContextService(db_session)

        context = await service.create_context(user.id, "Errands")
        renamed = await service.update_context(user.id, context.id, {"name": "Out and about"})

        assert renamed.name == "Out and about"
        assert [c.id for c in await service.list_contexts(user.id)] == [context.id]

        await service.delete_context(user.id, context.id)
        with pytest.raises(NotFoundError) as exc_info:
            await service.get_context(user.id, context.id)
        assert exc_info.value.code == ErrorCode.CONTEXT_NOT_FOUND
