"""
Project record handlers.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ErrorCode, NotFoundError, ValidationError
from app.models.models import Project
from app.services.tasks import TaskService

logger = logging.getLogger(__name__)


class ProjectService:
    """CRUD for a user's projects."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_projects(self, owner_id: str, name_filter: Optional[str] = None) -> list[Project]:
        """Projects in store order, optionally filtered by a case-insensitive substring."""
        stmt = (
            select(Project)
            .where(Project.user_id == owner_id)
            .order_by(Project.created_at, Project.id)
        )
        result = await self.db.execute(stmt)
        projects = list(result.scalars().all())
        if name_filter:
            needle = name_filter.strip().lower()
            projects = [p for p in projects if needle in p.name.lower()]
        return projects

    async def get_project(self, owner_id: str, project_id: str) -> Project:
        stmt = select(Project).where(Project.id == project_id, Project.user_id == owner_id)
        result = await self.db.execute(stmt)
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError(
                message="Project not found",
                code=ErrorCode.PROJECT_NOT_FOUND,
                resource_type="project",
                resource_id=project_id,
            )
        return project

    async def create_project(
        self,
        owner_id: str,
        name: str,
        description: Optional[str] = None,
    ) -> Project:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name is required", field="name")

        now = datetime.utcnow()
        project = Project(
            user_id=owner_id,
            name=name,
            description=description,
            task_count=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(project)
        await self.db.commit()
        logger.info(f"[PROJECTS] Created project {project.id} '{name}'")
        return project

    async def update_project(self, owner_id: str, project_id: str, fields: dict) -> Project:
        """Rename and/or redescribe. task_count is not writable."""
        project = await self.get_project(owner_id, project_id)
        if fields.get("name"):
            project.name = fields["name"].strip()
        if "description" in fields and fields["description"] is not None:
            project.description = fields["description"]
        project.updated_at = datetime.utcnow()
        await self.db.commit()
        logger.info(f"[PROJECTS] Updated project {project.id}")
        return project

    async def delete_project(self, owner_id: str, project_id: str) -> None:
        """Hard delete. Linked tasks are detached and recategorized."""
        project = await self.get_project(owner_id, project_id)
        unlinked = await TaskService(self.db).unlink_all(owner_id, project_id=project.id)
        await self.db.delete(project)
        await self.db.commit()
        logger.info(f"[PROJECTS] Deleted project {project_id} (unlinked {unlinked} tasks)")
