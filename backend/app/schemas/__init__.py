"""
Pydantic schemas for API request/response models.
"""

from app.schemas.gtd import (
    CommandResponse,
    NextActionResponse,
    ProjectResponse,
    TaskResponse,
    UserResponse,
)

__all__ = [
    "CommandResponse",
    "NextActionResponse",
    "ProjectResponse",
    "TaskResponse",
    "UserResponse",
]
