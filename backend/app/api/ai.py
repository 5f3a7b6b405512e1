"""
AI command routes.

/command runs the full classify -> resolve -> execute pipeline; the other
routes expose single flows (classification only, chat, summary, task and
project creation from free text).
"""
import logging

from fastapi import APIRouter, Depends

from app.agents.intent_classifier import IntentClassifier
from app.agents.orchestrator import CommandOrchestrator
from app.api.deps import get_completion_service, get_orchestrator
from app.core.security import get_current_user
from app.models.models import User
from app.schemas.gtd import (
    ChatResponse,
    CommandResponse,
    ContextRequest,
    CreatedProjectResponse,
    CreatedTaskResponse,
    ProjectResponse,
    PromptRequest,
    SummarizeResponse,
    TaskResponse,
)
from app.services.completion import CompletionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/command", response_model=CommandResponse, response_model_exclude_none=True)
async def run_command(
    request: PromptRequest,
    current_user: User = Depends(get_current_user),
    orchestrator: CommandOrchestrator = Depends(get_orchestrator),
):
    """Interpret and execute a natural-language command."""
    logger.info(f"[API] POST /ai/command - user_id={current_user.id}, prompt_len={len(request.prompt)}")
    return await orchestrator.handle(request.prompt, current_user)


@router.post("/parse-intent")
async def parse_intent(
    request: PromptRequest,
    current_user: User = Depends(get_current_user),
    completion: CompletionService = Depends(get_completion_service),
):
    """Classify a prompt without executing it. Returns the full envelope."""
    logger.info(f"[API] POST /ai/parse-intent - user_id={current_user.id}")
    payload = await IntentClassifier(completion).classify(request.prompt, user_id=current_user.id)
    return payload.model_dump(by_alias=True)


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: PromptRequest,
    current_user: User = Depends(get_current_user),
    orchestrator: CommandOrchestrator = Depends(get_orchestrator),
):
    logger.info(f"[API] POST /ai/chat - user_id={current_user.id}")
    reply = await orchestrator.chat(request.prompt, current_user.id)
    return ChatResponse(response=reply)


@router.post("/summarize", response_model=SummarizeResponse)
async def summarize(
    request: ContextRequest,
    current_user: User = Depends(get_current_user),
    orchestrator: CommandOrchestrator = Depends(get_orchestrator),
):
    logger.info(f"[API] POST /ai/summarize - user_id={current_user.id}")
    summary = await orchestrator.summarize_text(request.context, current_user.id)
    return SummarizeResponse(summary=summary)


@router.post("/create-task", response_model=CreatedTaskResponse)
async def create_task(
    request: ContextRequest,
    current_user: User = Depends(get_current_user),
    orchestrator: CommandOrchestrator = Depends(get_orchestrator),
):
    """Create one task from a free-text objective."""
    logger.info(f"[API] POST /ai/create-task - user_id={current_user.id}")
    task = await orchestrator.create_task_from_text(
        f"Create a task for the following objective/context:\n{request.context}",
        current_user.id,
        fallback_title=request.context,
    )
    return CreatedTaskResponse(task=TaskResponse.model_validate(task))


@router.post("/create-project", response_model=CreatedProjectResponse)
async def create_project(
    request: PromptRequest,
    current_user: User = Depends(get_current_user),
    orchestrator: CommandOrchestrator = Depends(get_orchestrator),
):
    """Create a project and its tasks from free text. Failed tasks are counted, not fatal."""
    logger.info(f"[API] POST /ai/create-project - user_id={current_user.id}")
    project, tasks, failed = await orchestrator.create_project_from_text(request.prompt, current_user.id)
    return CreatedProjectResponse(
        project=ProjectResponse.model_validate(project),
        tasks=[TaskResponse.model_validate(t) for t in tasks],
        failed_count=failed,
    )
