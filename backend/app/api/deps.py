"""
Shared route dependencies.

The completion service is built once in the app lifespan and kept on
app.state; the orchestrator is built per request around the request's DB
session.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.agents.orchestrator import CommandOrchestrator
from app.core.database import get_db
from app.services.completion import CompletionService, create_completion_service


def get_completion_service(request: Request) -> CompletionService:
    """Process-wide completion service."""
    service = getattr(request.app.state, "completion_service", None)
    if service is None:
        service = create_completion_service()
        request.app.state.completion_service = service
    return service


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    completion: CompletionService = Depends(get_completion_service),
) -> CommandOrchestrator:
    return CommandOrchestrator(db, completion)
