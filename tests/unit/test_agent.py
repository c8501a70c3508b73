"""Unit tests for AgentService.

Tests agent construction, per-store caching and stream event filtering.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest
import pytest_check as check
from agno.exceptions import ModelProviderError
from agno.models.openai import OpenAIResponses
from agno.run.agent import RunErrorEvent

from src.config import AgentConfig
from src.errors import ServiceError, ServiceErrorKind

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/responses")


def event(name: str, content=None) -> SimpleNamespace:
    return SimpleNamespace(event=name, content=content)


async def run_events(*events):
    for item in events:
        yield item


async def collect(stream) -> list[str]:
    return [fragment async for fragment in stream]


@pytest.fixture
def config() -> AgentConfig:
    return AgentConfig(
        api_key="sk-test-key",
        model_name="gpt-4o-mini",
        temperature=0.7,
        max_tokens=1024,
        request_timeout=60,
    )


class TestAgentServiceInit:
    """Tests for AgentService agent construction."""

    @patch("src.agent.chat_agent.RecordingOpenAIResponses")
    @patch("src.agent.chat_agent.Agent")
    def test_agents_are_created_lazily(
        self,
        mock_agent_class: MagicMock,
        mock_model: MagicMock,
        config: AgentConfig,
    ) -> None:
        from src.agent.chat_agent import AgentService

        service = AgentService(config=config)

        mock_agent_class.assert_not_called()
        assert service._config == config

    @patch("src.agent.chat_agent.RecordingOpenAIResponses")
    @patch("src.agent.chat_agent.Agent")
    def test_model_uses_config_values(
        self,
        mock_agent_class: MagicMock,
        mock_model: MagicMock,
        config: AgentConfig,
    ) -> None:
        from src.agent.chat_agent import AgentService

        AgentService(config=config).get_agent()

        mock_model.assert_called_once_with(
            id="gpt-4o-mini",
            api_key="sk-test-key",
            base_url=None,
            temperature=0.7,
            max_output_tokens=1024,
            timeout=60.0,
        )

    @patch("src.agent.chat_agent.RecordingOpenAIResponses")
    @patch("src.agent.chat_agent.Agent")
    def test_plain_agent_has_no_tools(
        self,
        mock_agent_class: MagicMock,
        mock_model: MagicMock,
        config: AgentConfig,
    ) -> None:
        from src.agent.chat_agent import AgentService

        AgentService(config=config).get_agent(None)

        call_kwargs = mock_agent_class.call_args.kwargs
        check.is_none(call_kwargs["tools"])
        check.is_true(call_kwargs["markdown"])

    @patch("src.agent.chat_agent.RecordingOpenAIResponses")
    @patch("src.agent.chat_agent.Agent")
    def test_store_agent_gets_file_search(
        self,
        mock_agent_class: MagicMock,
        mock_model: MagicMock,
        config: AgentConfig,
    ) -> None:
        from src.agent.chat_agent import AgentService

        AgentService(config=config).get_agent("vs_123")

        call_kwargs = mock_agent_class.call_args.kwargs
        assert call_kwargs["tools"] == [
            {"type": "file_search", "vector_store_ids": ["vs_123"]}
        ]

    @patch("src.agent.chat_agent.RecordingOpenAIResponses")
    @patch("src.agent.chat_agent.Agent")
    def test_agents_are_cached_per_store(
        self,
        mock_agent_class: MagicMock,
        mock_model: MagicMock,
        config: AgentConfig,
    ) -> None:
        from src.agent.chat_agent import AgentService

        mock_agent_class.side_effect = lambda **kwargs: MagicMock()
        service = AgentService(config=config)

        plain = service.get_agent(None)
        scoped = service.get_agent("vs_123")

        check.is_true(service.get_agent(None) is plain)
        check.is_true(service.get_agent("vs_123") is scoped)
        check.is_false(plain is scoped)
        check.equal(mock_agent_class.call_count, 2)


class TestStreamResponse:
    """Tests for AgentService.stream_response."""

    @patch("src.agent.chat_agent.RecordingOpenAIResponses")
    @patch("src.agent.chat_agent.Agent")
    async def test_yields_only_content_events(
        self,
        mock_agent_class: MagicMock,
        mock_model: MagicMock,
        config: AgentConfig,
    ) -> None:
        from src.agent.chat_agent import AgentService

        mock_agent_class.return_value.arun = MagicMock(
            return_value=run_events(
                event("RunStarted"),
                event("RunContent", "Hel"),
                event("ToolCallStarted", "file_search"),
                event("RunContent", None),
                event("RunContent", "lo"),
                event("RunCompleted", "Hello"),
            )
        )

        fragments = await collect(AgentService(config=config).stream_response("hi"))

        check.equal(fragments, ["Hel", "lo"])
        mock_agent_class.return_value.arun.assert_called_once_with("hi", stream=True)

    @patch("src.agent.chat_agent.RecordingOpenAIResponses")
    @patch("src.agent.chat_agent.Agent")
    async def test_run_error_event_raises(
        self,
        mock_agent_class: MagicMock,
        mock_model: MagicMock,
        config: AgentConfig,
    ) -> None:
        from src.agent.chat_agent import AgentService

        mock_agent_class.return_value.arun = MagicMock(
            return_value=run_events(event("RunContent", "Hi"), event("RunError", "boom"))
        )

        with pytest.raises(ServiceError, match="boom"):
            await collect(AgentService(config=config).stream_response("hi"))


    @pytest.mark.parametrize(
        ("error_type", "kind"),
        [
            ("model_authentication_error", ServiceErrorKind.INVALID_CREDENTIAL),
            ("ModelRateLimitError", ServiceErrorKind.RATE_LIMITED),
            ("APIConnectionError", ServiceErrorKind.NETWORK_ERROR),
            ("model_provider_error", ServiceErrorKind.UNKNOWN),
        ],
    )
    @patch("src.agent.chat_agent.RecordingOpenAIResponses")
    @patch("src.agent.chat_agent.Agent")
    async def test_run_error_event_is_classified_by_error_type(
        self,
        mock_agent_class: MagicMock,
        mock_model: MagicMock,
        config: AgentConfig,
        error_type: str,
        kind: ServiceErrorKind,
    ) -> None:
        from src.agent.chat_agent import AgentService

        mock_agent_class.return_value.arun = MagicMock(
            return_value=run_events(RunErrorEvent(content="failed", error_type=error_type))
        )

        with pytest.raises(ServiceError) as exc_info:
            await collect(AgentService(config=config).stream_response("hi"))

        check.equal(exc_info.value.kind, kind)
        check.equal(exc_info.value.detail, "failed")

    async def test_connection_failure_inside_agent_run_is_network_error(
        self,
        config: AgentConfig,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A real agent run turns the model failure into a RunError event.

        The event only says ``model_provider_error``; the recorded provider
        exception still identifies the connection failure.
        """
        from src.agent.chat_agent import AgentService

        monkeypatch.setenv("AGNO_TELEMETRY", "false")

        async def refused_stream(self, *args, **kwargs):
            raise ModelProviderError(
                message="Connection error.", model_name=self.name, model_id=self.id
            ) from openai.APIConnectionError(request=_REQUEST)
            yield

        with patch.object(OpenAIResponses, "ainvoke_stream", refused_stream):
            with pytest.raises(ServiceError) as exc_info:
                await collect(AgentService(config=config).stream_response("hi"))

        assert exc_info.value.kind == ServiceErrorKind.NETWORK_ERROR

    async def test_rate_limit_inside_agent_run_is_rate_limited(
        self,
        config: AgentConfig,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        from src.agent.chat_agent import AgentService

        monkeypatch.setenv("AGNO_TELEMETRY", "false")

        async def throttled_stream(self, *args, **kwargs):
            response = httpx.Response(429, request=_REQUEST)
            raise ModelProviderError(
                message="Rate limit reached", status_code=429
            ) from openai.RateLimitError("Rate limit reached", response=response, body=None)
            yield

        with patch.object(OpenAIResponses, "ainvoke_stream", throttled_stream):
            with pytest.raises(ServiceError) as exc_info:
                await collect(AgentService(config=config).stream_response("hi"))

        assert exc_info.value.kind == ServiceErrorKind.RATE_LIMITED
