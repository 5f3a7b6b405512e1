"""Task CRUD routes."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import ErrorCode, ValidationError
from app.core.security import get_current_user
from app.models.models import User
from app.schemas.gtd import TaskCreateRequest, TaskResponse, TaskUpdateRequest
from app.services.tasks import TaskService, parse_due_date

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_due_date(value: Optional[str]) -> None:
    if value and parse_due_date(value) is None:
        raise ValidationError(
            f"Invalid due date '{value}', expected ISO 8601",
            code=ErrorCode.VAL_INVALID_FORMAT,
            field="dueDate",
        )


@router.get("", response_model=List[TaskResponse])
async def list_tasks(
    project_id: Optional[str] = Query(default=None, alias="projectId"),
    context_id: Optional[str] = Query(default=None, alias="nextActionId"),
    include_completed: bool = Query(default=True, alias="includeCompleted"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the user's non-trashed tasks, optionally scoped."""
    logger.info(f"[API] GET /tasks - user_id={current_user.id}, project={project_id}, context={context_id}")
    tasks = await TaskService(db).list_tasks(
        current_user.id,
        project_id=project_id,
        context_id=context_id,
        include_completed=include_completed,
    )
    return [TaskResponse.model_validate(t) for t in tasks]


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    request: TaskCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"[API] POST /tasks - user_id={current_user.id}")
    _check_due_date(request.due_date)
    task = await TaskService(db).create_task(
        current_user.id,
        title=request.title,
        description=request.description,
        due_date=request.due_date,
        priority=request.priority,
        category=request.category,
        project_id=request.project_id,
        context_id=request.context_id,
    )
    return TaskResponse.model_validate(task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task = await TaskService(db).get_task(current_user.id, task_id)
    return TaskResponse.model_validate(task)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    request: TaskUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Partial update: only keys present in the body are applied."""
    fields = request.model_dump(exclude_unset=True)
    logger.info(f"[API] PUT /tasks/{task_id} - user_id={current_user.id}, fields={sorted(fields)}")
    _check_due_date(fields.get("due_date"))
    task = await TaskService(db).update_task_by_id(current_user.id, task_id, fields)
    return TaskResponse.model_validate(task)


@router.post("/{task_id}/complete", response_model=TaskResponse)
async def complete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"[API] POST /tasks/{task_id}/complete - user_id={current_user.id}")
    task = await TaskService(db).complete_task_by_id(current_user.id, task_id)
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Move a task to the trash."""
    logger.info(f"[API] DELETE /tasks/{task_id} - user_id={current_user.id}")
    await TaskService(db).delete_task(current_user.id, task_id)
