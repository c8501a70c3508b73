"""Agno agent service with streaming support and managed file search.

Generation and retrieval both happen on the provider side. The agent is
given the shared document store as an OpenAI ``file_search`` built-in tool
when documents are available, and no tool at all otherwise.

Design notes:

1. **Service Wrapper** - Decouples the orchestrator from Agno's interface.
   Agno changes only touch this module, and provider failures leave it as
   tagged ServiceErrors instead of raw SDK exceptions.

2. **One agent per store** - An Agent's tool list is fixed at construction,
   so agents are cached per store name, with ``None`` for plain mode.

3. **Stateless runs** - Conversation history lives in the metadata
   repository, so the agent is created without Agno storage.

4. **Streaming Generator** - Agno yields run events with metadata. We pass
   on only content events as plain strings, in arrival order.

5. **Run errors** - Agno reports a failed model call as a RunError event
   that keeps only the message and a type slug. The model records the
   provider exception of the current run so the failure can still be
   classified by its SDK type and status code.
"""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextvars import ContextVar
from typing import Any, Protocol

from agno.agent import Agent
from agno.models.openai import OpenAIResponses

from src.config import AgentConfig, get_agent_config
from src.errors import ServiceError, ServiceErrorKind, classify_error

logger = logging.getLogger(__name__)

_CONTENT_EVENT = "RunContent"
_ERROR_EVENT = "RunError"

# error_type values of RunError events, used when no provider exception was recorded
_ERROR_TYPE_KINDS = {
    "model_authentication_error": ServiceErrorKind.INVALID_CREDENTIAL,
    "AuthenticationError": ServiceErrorKind.INVALID_CREDENTIAL,
    "PermissionDeniedError": ServiceErrorKind.INVALID_CREDENTIAL,
    "RateLimitError": ServiceErrorKind.RATE_LIMITED,
    "ModelRateLimitError": ServiceErrorKind.RATE_LIMITED,
    "APIConnectionError": ServiceErrorKind.NETWORK_ERROR,
    "APITimeoutError": ServiceErrorKind.NETWORK_ERROR,
    "ConnectError": ServiceErrorKind.NETWORK_ERROR,
    "ConnectionError": ServiceErrorKind.NETWORK_ERROR,
    "TimeoutError": ServiceErrorKind.NETWORK_ERROR,
    "InternalServerError": ServiceErrorKind.UNAVAILABLE,
}

_provider_error: ContextVar[Exception | None] = ContextVar("provider_error", default=None)


class GenerativeService(Protocol):
    """Produces an answer as an ordered sequence of text fragments."""

    def stream_response(
        self,
        message: str,
        store_name: str | None = None,
    ) -> AsyncGenerator[str]: ...


class RecordingOpenAIResponses(OpenAIResponses):
    """OpenAIResponses that records the provider exception of the current run."""

    async def ainvoke_stream(self, *args: Any, **kwargs: Any) -> AsyncIterator[Any]:
        try:
            async for response in super().ainvoke_stream(*args, **kwargs):
                yield response
        except Exception as e:
            _provider_error.set(e)
            raise


def run_error_to_service_error(chunk: Any) -> ServiceError:
    """Classify a RunError event.

    Uses the provider exception recorded during the run when there is one,
    otherwise the event's ``error_type``.
    """
    detail = str(getattr(chunk, "content", "") or "Agent run failed")

    recorded = _provider_error.get()
    if recorded is not None:
        return ServiceError(classify_error(recorded).kind, detail)

    error_type = getattr(chunk, "error_type", None) or ""
    return ServiceError(_ERROR_TYPE_KINDS.get(error_type, ServiceErrorKind.UNKNOWN), detail)


class AgentService:
    """Service for managing the Agno chat agents.

    Wraps Agno's Agent with:
    - OpenAI Responses model configured from AgentConfig
    - Optional file search over the shared document store
    - Clean streaming interface for the chat endpoint
    - Centralized error classification
    """

    def __init__(self, config: AgentConfig | None = None) -> None:
        """Initialize the agent service.

        Args:
            config: Optional agent configuration.
                    Loads from environment if not provided.
        """
        self._config = config or get_agent_config()
        self._agents: dict[str | None, Agent] = {}

    def _create_model(self) -> OpenAIResponses:
        return RecordingOpenAIResponses(
            id=self._config.model_name,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            temperature=self._config.temperature,
            max_output_tokens=self._config.max_tokens,
            timeout=self._config.request_timeout,
        )

    def _create_agent(self, store_name: str | None) -> Agent:
        """Create an agent, scoped to a document store when one is given.

        Args:
            store_name: Document store to search, or None for plain mode.

        Returns:
            Configured Agent.
        """
        instructions = [
            "Provide helpful and accurate responses.",
            "Be concise yet thorough.",
        ]
        tools = None
        if store_name:
            tools = [{"type": "file_search", "vector_store_ids": [store_name]}]
            instructions.insert(
                1, "Search the uploaded documents and cite what you use from them."
            )

        return Agent(
            model=self._create_model(),
            tools=tools,
            description="A helpful assistant answering questions about uploaded documents.",
            instructions=instructions,
            markdown=True,
        )

    def get_agent(self, store_name: str | None = None) -> Agent:
        if store_name not in self._agents:
            self._agents[store_name] = self._create_agent(store_name)
        return self._agents[store_name]

    async def stream_response(
        self,
        message: str,
        store_name: str | None = None,
    ) -> AsyncGenerator[str]:
        """Stream response fragments for a message.

        Args:
            message: The user's message.
            store_name: Document store to search, or None for plain mode.

        Yields:
            Response text fragments as they arrive.

        Raises:
            ServiceError: If the provider call fails.
        """
        agent = self.get_agent(store_name)
        mode = "file search" if store_name else "plain"
        logger.info(f"Generating response in {mode} mode")

        _provider_error.set(None)
        try:
            async for chunk in agent.arun(message, stream=True):
                event = getattr(chunk, "event", _CONTENT_EVENT)
                if event == _ERROR_EVENT:
                    raise run_error_to_service_error(chunk)
                if event != _CONTENT_EVENT:
                    continue

                content = getattr(chunk, "content", None)
                if isinstance(content, str) and content:
                    yield content

        except ServiceError:
            raise
        except Exception as e:
            raise classify_error(_provider_error.get() or e) from e
