"""
Command Orchestrator.

Routes a classified command to its flow and assembles the unified response:
classify -> resolve names / search tasks -> record handlers -> response.

Misses and ambiguity never raise: they become informational messages or a
disambiguation list. Classification and completion-service failures
propagate to the API layer.
"""
import logging
import re
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.agents.config import AgentConfig, agent_config
from app.agents.intent_classifier import IntentClassifier
from app.agents.intent_schema import (
    EntityType,
    IntentEnvelope,
    IntentKind,
    TaskDraft,
    UpdateRequest,
    parse_entity_type,
)
from app.core import prompts
from app.core.exceptions import AppException, ValidationError
from app.core.logging import log_with_context
from app.models.models import Context, Project, Task, User
from app.schemas.gtd import (
    CommandResponse,
    NextActionResponse,
    ProjectResponse,
    TaskResponse,
)
from app.services.audit_logger import AuditLogger, OperationType, get_audit_logger
from app.services.completion import CompletionService
from app.services.contexts import ContextService
from app.services.entity_resolver import EntityKind, EntityResolver
from app.services.projects import ProjectService
from app.services.task_search import TaskScope, TaskSearch
from app.services.tasks import TaskService

logger = logging.getLogger(__name__)

Handler = Callable[[str, IntentEnvelope, str], Awaitable[CommandResponse]]

# fieldsToUpdate spellings -> canonical field
UPDATE_FIELD_ALIASES = {
    "title": "title",
    "newtitle": "title",
    "name": "title",
    "description": "description",
    "duedate": "dueDate",
    "due": "dueDate",
    "priority": "priority",
    "projectname": "projectName",
    "project": "projectName",
    "projectid": "projectName",
    "nextactionname": "nextActionName",
    "nextaction": "nextActionName",
    "context": "nextActionName",
    "contextname": "nextActionName",
}


def normalize_update_fields(fields: list[str]) -> set[str]:
    """Canonical names of the fields a caller asked to change. Unknown names are dropped."""
    canonical = set()
    for name in fields:
        key = re.sub(r"[\s_\-]", "", str(name).lower())
        if key in UPDATE_FIELD_ALIASES:
            canonical.add(UPDATE_FIELD_ALIASES[key])
        else:
            logger.debug(f"[ORCHESTRATOR] Ignoring unknown update field '{name}'")
    return canonical


def progress_percentage(completed: int, total: int, decimals: int = 1) -> float:
    """Share of completed tasks in percent. 0 when there are no tasks."""
    if total <= 0:
        return 0.0
    return round(completed * 100.0 / total, decimals)


def _task_out(task: Task) -> TaskResponse:
    return TaskResponse.model_validate(task)


def _project_out(project: Project) -> ProjectResponse:
    return ProjectResponse.model_validate(project)


def _context_out(context: Context) -> NextActionResponse:
    return NextActionResponse.model_validate(context)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class CommandOrchestrator:
    """
    Runs natural-language commands for one request.

    Args:
        db: Session shared by every record handler in this request
        completion: Completion service (process-wide)
        classifier: Intent classifier, built on `completion` if not given
        config: Thresholds and batch policy
        audit_logger: Audit trail for command outcomes
    """

    def __init__(
        self,
        db: AsyncSession,
        completion: CompletionService,
        classifier: Optional[IntentClassifier] = None,
        config: Optional[AgentConfig] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.db = db
        self.completion = completion
        self.config = config or agent_config
        self.audit = audit_logger or get_audit_logger()
        self.classifier = classifier or IntentClassifier(completion, audit_logger=self.audit)

        self.resolver = EntityResolver(db, threshold=self.config.RESOLVE_THRESHOLD, audit_logger=self.audit)
        self.search = TaskSearch(db, threshold=self.config.SEARCH_THRESHOLD)
        self.tasks = TaskService(db)
        self.projects = ProjectService(db)
        self.contexts = ContextService(db)

        self._handlers: dict[IntentKind, Handler] = {
            IntentKind.CHAT: self._handle_chat,
            IntentKind.SUMMARIZE: self._handle_summarize,
            IntentKind.CREATE_TASK: self._handle_create_task,
            IntentKind.CREATE_PROJECT: self._handle_create_project,
            IntentKind.COMPLETE: self._handle_complete,
            IntentKind.UPDATE: self._handle_update,
            IntentKind.LIST: self._handle_list,
        }

    async def handle(self, prompt: str, user: User) -> CommandResponse:
        """
        Classify and execute one command.

        Args:
            prompt: The user's free-text command
            user: Authenticated caller; every read and write is scoped to it

        Returns:
            CommandResponse with only the fields relevant to the intent

        Raises:
            ClassificationParseError: the router reply was malformed
            UpstreamError: the completion service failed
        """
        user_id = user.id
        payload = await self.classifier.classify(prompt, user_id=user_id)
        handler = self._handlers.get(payload.kind, self._handle_unknown)

        log_with_context(
            logger,
            logging.INFO,
            f"[ORCHESTRATOR] Handling intent={payload.kind.value}",
            user_id=user_id,
            intent=payload.kind.value,
        )
        response = await handler(prompt, payload, user_id)

        self.audit.log(
            OperationType.COMMAND_HANDLED,
            message=response.message or response.intent,
            user_id=user_id,
            request_type=response.intent,
            details={"count": response.count, "needs_disambiguation": response.needs_disambiguation},
        )
        return response

    # =========================================================================
    # Public single-purpose flows (also used by the /ai endpoints)
    # =========================================================================

    async def chat(self, prompt: str, user_id: Optional[str] = None) -> str:
        return await self.completion.complete(
            prompts.CHAT_PROMPT, prompt, user_id=user_id, request_type="chat"
        )

    async def summarize_text(self, context: str, user_id: Optional[str] = None) -> str:
        return await self.completion.complete(
            prompts.SUMMARIZER_PROMPT,
            f"Summarize the following context and suggest improvements:\n{context}",
            user_id=user_id,
            request_type="summarize",
        )

    async def create_task_from_text(
        self,
        text: str,
        user_id: str,
        fallback_title: Optional[str] = None,
    ) -> Task:
        """
        Extract one task from free text and create it, resolving names on the way.

        An empty extracted title falls back to `fallback_title`, or to `text`.
        """
        draft = await self.classifier.extract_task(text, user_id=user_id)
        if not draft.title.strip():
            draft.title = (fallback_title if fallback_title is not None else text).strip()[:500]
        return await self._create_from_draft(draft, user_id)

    async def create_project_from_text(self, text: str, user_id: str) -> tuple[Project, list[Task], int]:
        """
        Create a project and the tasks listed with it.

        Returns:
            (project, created tasks, number of tasks that failed)
        """
        draft = await self.classifier.extract_project(text, user_id=user_id)
        project = await self.projects.create_project(
            user_id, draft.project_name, draft.project_description or None
        )

        # Captured up front: a rollback expires the project instance
        project_id = project.id
        created: list[Task] = []
        failed = 0
        rolled_back = False
        for item in draft.tasks:
            try:
                created.append(await self._create_from_draft(item, user_id, project_id=project_id))
            except (AppException, SQLAlchemyError) as e:
                if not self.config.PARTIAL_FAILURE_TOLERANT:
                    raise
                failed += 1
                logger.warning(f"[ORCHESTRATOR] Task '{item.title}' in project {project_id} failed: {e}")
                await self.db.rollback()
                rolled_back = True

        await self.db.refresh(project)
        if rolled_back:
            for task in created:
                await self.db.refresh(task)

        if failed:
            self.audit.log(
                OperationType.BATCH_PARTIAL_FAILURE,
                message=f"{failed} of {len(draft.tasks)} tasks failed",
                success=False,
                user_id=user_id,
                details={"project_id": project.id, "failed_count": failed},
            )
        logger.info(
            f"[ORCHESTRATOR] Project {project.id} created with {len(created)} tasks ({failed} failed)"
        )
        return project, created, failed

    # =========================================================================
    # Intent handlers
    # =========================================================================

    async def _handle_chat(self, prompt: str, payload: IntentEnvelope, user_id: str) -> CommandResponse:
        reply = await self.chat(prompt, user_id)
        return CommandResponse(intent=IntentKind.CHAT.value, message=reply)

    async def _handle_summarize(self, prompt: str, payload: IntentEnvelope, user_id: str) -> CommandResponse:
        intent = IntentKind.SUMMARIZE.value
        request = await self.classifier.extract_summary(prompt, user_id=user_id)

        if not request.is_progress:
            summary = await self.summarize_text(request.context or payload.context or prompt, user_id)
            return CommandResponse(intent=intent, summary=summary)

        name = request.name.strip()
        entity_type = parse_entity_type(request.entity_type, EntityType.PROJECT)
        if not name:
            return CommandResponse(intent=intent, message="Which project, next action or task should I report on?")

        response = CommandResponse(intent=intent)
        if entity_type == EntityType.TASK:
            matches = await self.search.find_relevant(
                user_id, TaskScope(include_completed=True), name, self.config.SEARCH_THRESHOLD
            )
            if not matches:
                return CommandResponse(intent=intent, message=f"I couldn't find any tasks matching '{name}'.")
            completed = sum(1 for t in matches if t.completed)
            total = len(matches)
            label = f"tasks matching '{name}'"
        else:
            kind = EntityKind.PROJECT if entity_type == EntityType.PROJECT else EntityKind.CONTEXT
            resolution = await self.resolver.match_by_name(kind, name, user_id)
            if resolution is None:
                noun = "project" if kind == EntityKind.PROJECT else "next action"
                return CommandResponse(intent=intent, message=f"I couldn't find a {noun} named '{name}'.")

            if kind == EntityKind.PROJECT:
                completed, total = await self.tasks.count_in_scope(user_id, project_id=resolution.id)
                response.project = _project_out(resolution.entity)
            else:
                completed, total = await self.tasks.count_in_scope(user_id, context_id=resolution.id)
                response.next_action = _context_out(resolution.entity)
            label = f"'{resolution.entity.name}'"

        progress = progress_percentage(completed, total, self.config.PROGRESS_DECIMALS)
        response.progress = progress
        response.count = completed
        response.message = f"{completed} of {_plural(total, 'task')} completed in {label} ({progress}%)."
        return response

    async def _handle_create_task(self, prompt: str, payload: IntentEnvelope, user_id: str) -> CommandResponse:
        task = await self.create_task_from_text(prompt, user_id)
        return CommandResponse(
            intent=IntentKind.CREATE_TASK.value,
            message=f"Task '{task.title}' created.",
            task=_task_out(task),
        )

    async def _handle_create_project(self, prompt: str, payload: IntentEnvelope, user_id: str) -> CommandResponse:
        intent = IntentKind.CREATE_PROJECT.value
        try:
            project, created, failed = await self.create_project_from_text(prompt, user_id)
        except ValidationError as e:
            return CommandResponse(intent=intent, message=f"I couldn't create that project: {e.message}")

        message = f"Project '{project.name}' created with {_plural(len(created), 'task')}."
        if failed:
            message += f" {_plural(failed, 'task')} could not be created."
        return CommandResponse(
            intent=intent,
            message=message,
            project=_project_out(project),
            tasks=[_task_out(t) for t in created],
            failed_count=failed,
        )

    async def _handle_complete(self, prompt: str, payload: IntentEnvelope, user_id: str) -> CommandResponse:
        intent = IntentKind.COMPLETE.value
        target = await self.classifier.extract_completion(prompt, user_id=user_id)
        entity_type = parse_entity_type(target.intent_type, EntityType.TASK)

        if entity_type == EntityType.PROJECT:
            name = (target.project_name or target.title).strip()
            if not name:
                return CommandResponse(intent=intent, message="Which project should I mark as done?")
            resolution = await self.resolver.match_by_name(EntityKind.PROJECT, name, user_id)
            if resolution is None:
                return CommandResponse(intent=intent, message=f"I couldn't find a project named '{name}'.")
            count = await self.tasks.complete_tasks_in_scope(user_id, project_id=resolution.id)
            return CommandResponse(
                intent=intent,
                message=f"Marked {_plural(count, 'task')} in '{resolution.entity.name}' as done.",
                project=_project_out(resolution.entity),
                count=count,
            )

        if entity_type == EntityType.CONTEXT:
            name = (target.next_action_name or target.title).strip()
            if not name:
                return CommandResponse(intent=intent, message="Which next action should I mark as done?")
            resolution = await self.resolver.match_by_name(EntityKind.CONTEXT, name, user_id)
            if resolution is None:
                return CommandResponse(intent=intent, message=f"I couldn't find a next action named '{name}'.")
            count = await self.tasks.complete_tasks_in_scope(user_id, context_id=resolution.id)
            return CommandResponse(
                intent=intent,
                message=f"Marked {_plural(count, 'task')} in '{resolution.entity.name}' as done.",
                next_action=_context_out(resolution.entity),
                count=count,
            )

        scope, miss = await self._scope_for(target.project_name, target.next_action_name, user_id)
        if miss:
            return CommandResponse(intent=intent, message=miss)

        task, response = await self._locate_task(intent, target.title, scope, user_id)
        if task is None:
            return response

        task = await self.tasks.complete_task_by_id(user_id, task.id)
        return CommandResponse(
            intent=intent,
            message=f"Marked '{task.title}' as done.",
            task=_task_out(task),
            count=1,
        )

    async def _handle_update(self, prompt: str, payload: IntentEnvelope, user_id: str) -> CommandResponse:
        intent = IntentKind.UPDATE.value
        request = await self.classifier.extract_update(prompt, user_id=user_id)
        entity_type = parse_entity_type(request.entity_type, EntityType.TASK)
        wanted = normalize_update_fields(request.fields_to_update)

        if not wanted:
            return CommandResponse(intent=intent, message="Tell me which fields you'd like to change.")

        if entity_type == EntityType.TASK:
            return await self._update_task(intent, request, wanted, user_id)

        kind = EntityKind.PROJECT if entity_type == EntityType.PROJECT else EntityKind.CONTEXT
        name = request.title or (request.project_name if kind == EntityKind.PROJECT else request.next_action_name)
        noun = "project" if kind == EntityKind.PROJECT else "next action"
        resolution = await self.resolver.match_by_name(kind, name, user_id)
        if resolution is None:
            return CommandResponse(intent=intent, message=f"I couldn't find a {noun} named '{name}'.")

        fields = {}
        if "title" in wanted and request.new_title.strip():
            fields["name"] = request.new_title
        if kind == EntityKind.PROJECT and "description" in wanted:
            fields["description"] = request.description
        if not fields:
            return CommandResponse(
                intent=intent,
                message=f"Those fields can't be changed on a {noun}.",
            )

        if kind == EntityKind.PROJECT:
            project = await self.projects.update_project(user_id, resolution.id, fields)
            return CommandResponse(
                intent=intent,
                message=f"Project '{project.name}' updated.",
                project=_project_out(project),
            )

        context = await self.contexts.update_context(user_id, resolution.id, fields)
        return CommandResponse(
            intent=intent,
            message=f"Next action '{context.name}' updated.",
            next_action=_context_out(context),
        )

    async def _update_task(
        self,
        intent: str,
        request: UpdateRequest,
        wanted: set[str],
        user_id: str,
    ) -> CommandResponse:
        task, response = await self._locate_task(intent, request.title, TaskScope(), user_id)
        if task is None:
            return response

        fields = {}
        if "title" in wanted and request.new_title.strip():
            fields["title"] = request.new_title.strip()
        if "description" in wanted:
            fields["description"] = request.description
        if "dueDate" in wanted:
            fields["due_date"] = request.due_date
        if "priority" in wanted:
            fields["priority"] = request.priority
        if "projectName" in wanted:
            fields["project_id"] = await self.resolver.resolve_by_name(
                EntityKind.PROJECT, request.project_name, user_id
            )
        if "nextActionName" in wanted:
            fields["context_id"] = await self.resolver.resolve_by_name(
                EntityKind.CONTEXT, request.next_action_name, user_id
            )

        task = await self.tasks.update_task_by_id(user_id, task.id, fields)
        return CommandResponse(
            intent=intent,
            message=f"Task '{task.title}' updated.",
            task=_task_out(task),
        )

    async def _handle_list(self, prompt: str, payload: IntentEnvelope, user_id: str) -> CommandResponse:
        intent = IntentKind.LIST.value
        request = await self.classifier.extract_list(prompt, user_id=user_id)
        entity_type = parse_entity_type(request.entity_type, EntityType.TASK)
        query = request.query.strip()

        if entity_type == EntityType.PROJECT:
            projects = await self.projects.list_projects(user_id, query or None)
            return CommandResponse(
                intent=intent,
                message=f"Found {_plural(len(projects), 'project')}.",
                projects=[_project_out(p) for p in projects],
                count=len(projects),
            )

        if entity_type == EntityType.CONTEXT:
            contexts = await self.contexts.list_contexts(user_id, query or None)
            return CommandResponse(
                intent=intent,
                message=f"Found {_plural(len(contexts), 'next action')}.",
                next_actions=[_context_out(c) for c in contexts],
                count=len(contexts),
            )

        response = CommandResponse(intent=intent)
        if not query:
            tasks = await self.search.list_in_scope(user_id, TaskScope())
        else:
            # Project name, then context name, then title substring
            project = await self.resolver.match_by_name(EntityKind.PROJECT, query, user_id)
            context = None if project else await self.resolver.match_by_name(EntityKind.CONTEXT, query, user_id)
            if project:
                tasks = await self.search.list_in_scope(user_id, TaskScope(project_id=project.id))
                response.project = _project_out(project.entity)
            elif context:
                tasks = await self.search.list_in_scope(user_id, TaskScope(context_id=context.id))
                response.next_action = _context_out(context.entity)
            else:
                needle = query.lower()
                tasks = [
                    t for t in await self.search.list_in_scope(user_id, TaskScope())
                    if needle in t.title.lower()
                ]

        response.tasks = [_task_out(t) for t in tasks]
        response.count = len(tasks)
        response.message = f"Found {_plural(len(tasks), 'task')}."
        return response

    async def _handle_unknown(self, prompt: str, payload: IntentEnvelope, user_id: str) -> CommandResponse:
        logger.info(f"[ORCHESTRATOR] Unknown intent '{payload.intent}', returning fallback")
        return CommandResponse(intent=IntentKind.UNKNOWN.value, message=prompts.UNKNOWN_INTENT_MESSAGE)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _create_from_draft(
        self,
        draft: TaskDraft,
        user_id: str,
        project_id: Optional[str] = None,
    ) -> Task:
        """Resolve the draft's names (create-on-miss) and create the task."""
        title = draft.title.strip()
        if not title:
            raise ValidationError("Task title is required", field="title")

        if project_id is None:
            project_id = await self.resolver.resolve_by_name(EntityKind.PROJECT, draft.project_name, user_id)
        context_id = await self.resolver.resolve_by_name(EntityKind.CONTEXT, draft.next_action_name, user_id)

        return await self.tasks.create_task(
            user_id,
            title=title,
            description=draft.description,
            due_date=draft.due_date or None,
            priority=draft.priority,
            category=draft.category or None,
            project_id=project_id,
            context_id=context_id,
        )

    async def _scope_for(
        self,
        project_name: Optional[str],
        context_name: Optional[str],
        user_id: str,
    ) -> tuple[TaskScope, Optional[str]]:
        """Search scope from optional names. Never creates; a miss yields a message."""
        scope = TaskScope()
        if project_name and project_name.strip():
            project = await self.resolver.match_by_name(EntityKind.PROJECT, project_name, user_id)
            if project is None:
                return scope, f"I couldn't find a project named '{project_name}'."
            scope.project_id = project.id
        if context_name and context_name.strip():
            context = await self.resolver.match_by_name(EntityKind.CONTEXT, context_name, user_id)
            if context is None:
                return scope, f"I couldn't find a next action named '{context_name}'."
            scope.context_id = context.id
        return scope, None

    async def _locate_task(
        self,
        intent: str,
        title: str,
        scope: TaskScope,
        user_id: str,
    ) -> tuple[Optional[Task], Optional[CommandResponse]]:
        """
        Exactly one task for a title, or the response to send instead.

        Zero matches give a "not found" message; several give the candidate
        list with needs_disambiguation and nothing is picked.
        """
        title = (title or "").strip()
        if not title:
            return None, CommandResponse(intent=intent, message="Which task do you mean?")

        matches = await self.search.find_relevant(user_id, scope, title, self.config.SEARCH_THRESHOLD)
        self.audit.log(
            OperationType.TASK_SEARCH,
            message=f"'{title}' -> {len(matches)} matches",
            user_id=user_id,
            details={"query": title, "matches": [t.id for t in matches]},
        )

        if not matches:
            return None, CommandResponse(intent=intent, message=f"I couldn't find a task matching '{title}'.")
        if len(matches) > 1:
            return None, CommandResponse(
                intent=intent,
                message=f"I found {len(matches)} tasks matching '{title}'. Which one did you mean?",
                tasks=[_task_out(t) for t in matches],
                needs_disambiguation=True,
                count=len(matches),
            )
        return matches[0], None
