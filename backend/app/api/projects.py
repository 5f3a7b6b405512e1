"""Project CRUD routes."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.models import User
from app.schemas.gtd import ProjectCreateRequest, ProjectResponse, ProjectUpdateRequest
from app.services.projects import ProjectService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    name: Optional[str] = Query(default=None, description="Case-insensitive name filter"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"[API] GET /projects - user_id={current_user.id}")
    projects = await ProjectService(db).list_projects(current_user.id, name)
    return [ProjectResponse.model_validate(p) for p in projects]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    request: ProjectCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"[API] POST /projects - user_id={current_user.id}, name={request.name}")
    project = await ProjectService(db).create_project(current_user.id, request.name, request.description)
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project = await ProjectService(db).get_project(current_user.id, project_id)
    return ProjectResponse.model_validate(project)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    request: ProjectUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    logger.info(f"[API] PUT /projects/{project_id} - user_id={current_user.id}")
    project = await ProjectService(db).update_project(
        current_user.id, project_id, request.model_dump(exclude_unset=True)
    )
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a project; its tasks move back to the inbox."""
    logger.info(f"[API] DELETE /projects/{project_id} - user_id={current_user.id}")
    await ProjectService(db).delete_project(current_user.id, project_id)
