"""
Completion service for the external text-completion provider.

Sends one system message (instruction template with today's date injected)
and one user message, and returns the first choice's text. Supports an
OpenAI-compatible chat completions endpoint (Groq by default) over httpx and
Anthropic's Messages API through the official SDK.
"""
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

import httpx
from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic

from app.core.config import settings
from app.core.exceptions import EmptyResponseError, UpstreamError
from app.services.audit_logger import AuditLogger, get_audit_logger

logger = logging.getLogger(__name__)

# Placeholder substituted with today's date in system prompt templates
DATE_PLACEHOLDER = "{today}"
DATE_FORMAT = "%Y-%m-%d"


class CompletionProvider(str, Enum):
    """Supported completion providers."""
    GROQ = "groq"
    ANTHROPIC = "anthropic"


def inject_current_date(system_prompt: str, today: str) -> str:
    """Put today's date into the system prompt so relative dates resolve."""
    if DATE_PLACEHOLDER in system_prompt:
        return system_prompt.replace(DATE_PLACEHOLDER, today)
    return f"{system_prompt.rstrip()}\n\nToday's date is {today}."


class CompletionService:
    """
    Thin async client for the completion provider.

    No retries: failures surface as UpstreamError / EmptyResponseError and
    the caller decides what to do with them.
    """

    def __init__(
        self,
        provider: CompletionProvider | str | None = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        audit_logger: Optional[AuditLogger] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        anthropic_client: Optional[AsyncAnthropic] = None,
        today: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize the completion service.

        Args:
            provider: "groq" or "anthropic". Uses settings if not provided.
            model: Model identifier sent with every request.
            api_key: Provider API key. Uses settings if not provided.
            base_url: Base URL of the OpenAI-compatible endpoint (groq only).
            timeout: Request timeout in seconds.
            max_tokens: Completion token cap.
            audit_logger: Audit trail for prompt/reply pairs.
            http_client: Pre-built httpx client (tests, shared pools).
            anthropic_client: Pre-built Anthropic client.
            today: Callable returning today's date string (tests).
        """
        self.provider = CompletionProvider(provider or settings.completion_provider)
        self.timeout = timeout or settings.completion_timeout_seconds
        self.max_tokens = max_tokens or settings.completion_max_tokens
        self.audit = audit_logger or get_audit_logger()
        self._today = today or (lambda: datetime.now().strftime(DATE_FORMAT))

        if self.provider == CompletionProvider.ANTHROPIC:
            self.model = model or settings.anthropic_model
            self.api_key = api_key or settings.anthropic_api_key
            self.base_url = None
        else:
            self.model = model or settings.completion_model
            self.api_key = api_key or settings.groq_api_key
            self.base_url = (base_url or settings.completion_base_url).rstrip("/")

        if not self.api_key:
            logger.warning(f"[COMPLETION] No API key configured for {self.provider.value}")

        if http_client is None and self.provider != CompletionProvider.ANTHROPIC:
            http_client = httpx.AsyncClient(timeout=self.timeout)
        self._client = http_client
        self._anthropic = anthropic_client

        logger.info(f"[COMPLETION] Service initialized - provider={self.provider.value}, model={self.model}")

    def _get_client(self) -> httpx.AsyncClient:
        """The shared HTTP client, created once with the service."""
        if self._client is None or self._client.is_closed:
            raise UpstreamError(f"{self.provider.value} HTTP client is not available", provider=self.provider.value)
        return self._client

    def _get_anthropic(self) -> AsyncAnthropic:
        if self._anthropic is None:
            self._anthropic = AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)
        return self._anthropic

    async def close(self) -> None:
        """Close underlying clients."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        if self._anthropic is not None:
            await self._anthropic.close()

    def build_request(self, system_prompt: str, user_prompt: str) -> dict:
        """Request body: one system message followed by one user message."""
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": inject_current_date(system_prompt, self._today())},
                {"role": "user", "content": user_prompt},
            ],
        }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        user_id: Optional[str] = None,
        request_type: str = "chat",
        timeout: Optional[float] = None,
    ) -> str:
        """
        Send a system+user prompt pair and return the raw reply text.

        Args:
            system_prompt: Instruction template (may contain {today})
            user_prompt: The user's raw prompt
            user_id: Caller, for the audit trail
            request_type: Label for logs (intent, createTask, chat, ...)
            timeout: Per-call timeout in seconds, overriding the service default

        Returns:
            Content of the first completion choice

        Raises:
            UpstreamError: transport failure or non-success status
            EmptyResponseError: the provider returned no choices
        """
        request = self.build_request(system_prompt, user_prompt)
        logger.info(
            f"[COMPLETION] Request - provider={self.provider.value}, model={self.model}, type={request_type}"
        )

        start_time = time.time()
        reply: Optional[str] = None
        error_message: Optional[str] = None

        try:
            if self.provider == CompletionProvider.ANTHROPIC:
                reply = await self._complete_anthropic(request, timeout or self.timeout)
            else:
                reply = await self._complete_openai_compatible(request, timeout or self.timeout)
            return reply

        except UpstreamError as e:
            error_message = e.message
            logger.error(f"[COMPLETION] {error_message}")
            raise

        except Exception as e:
            error_message = f"{type(e).__name__}: {e}"
            logger.error(f"[COMPLETION] Unexpected failure - {error_message}")
            raise

        finally:
            latency_ms = int((time.time() - start_time) * 1000)
            if error_message is None and reply is not None:
                logger.info(f"[COMPLETION] Response received - chars={len(reply)}, latency={latency_ms}ms")
            self.audit.log_completion(
                model=self.model,
                prompt=user_prompt,
                reply=reply,
                duration_ms=latency_ms,
                request_type=request_type,
                user_id=user_id,
                error=error_message,
            )

    async def _complete_openai_compatible(self, request: dict, timeout: float) -> str:
        """Chat completions call against an OpenAI-compatible API."""
        client = self._get_client()
        provider = self.provider.value

        try:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=request,
                timeout=timeout,
            )
        except httpx.RequestError as e:
            raise UpstreamError(f"Network error calling {provider}: {str(e)}", provider=provider)

        if response.status_code != 200:
            raise UpstreamError(
                f"{provider} API error ({response.status_code}): {response.text[:500]}",
                provider=provider,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"{provider} returned a non-JSON body: {e}", provider=provider)

        if not isinstance(data, dict):
            raise UpstreamError(f"{provider} returned an unexpected body: {str(data)[:200]}", provider=provider)

        choices = data.get("choices") or []
        if not isinstance(choices, list):
            raise UpstreamError(f"{provider} returned malformed choices", provider=provider)
        if not choices:
            raise EmptyResponseError(provider)

        choice = choices[0]
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise UpstreamError(f"{provider} returned a choice without a message object", provider=provider)

        content = message.get("content")
        if content is None:
            return ""
        if not isinstance(content, str):
            raise UpstreamError(f"{provider} returned non-text message content", provider=provider)
        return content

    async def _complete_anthropic(self, request: dict, timeout: float) -> str:
        """Messages API call; the system message goes in the system parameter."""
        client = self._get_anthropic()
        system = request["messages"][0]["content"]
        messages = request["messages"][1:]

        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=messages,
                timeout=timeout,
            )
        except APIStatusError as e:
            raise UpstreamError(
                f"anthropic API error ({e.status_code}): {e.message}",
                provider="anthropic",
                status_code=e.status_code,
            )
        except APIConnectionError as e:
            raise UpstreamError(f"Network error calling anthropic: {str(e)}", provider="anthropic")

        texts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        if not texts:
            raise EmptyResponseError("anthropic")
        return texts[0]


def create_completion_service() -> CompletionService:
    """Build the process-wide completion service from settings."""
    return CompletionService()
