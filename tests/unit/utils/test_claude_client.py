"""
Unit Tests for ClaudeRepairClient

The Anthropic SDK is mocked; no network access.
"""
import httpx
import pytest
from anthropic import APIConnectionError, APIStatusError
from unittest.mock import AsyncMock, MagicMock, patch

from livepreview.core.config import settings
from livepreview.core.exceptions import RepairError
from livepreview.services.ghost_fix.classifier import ErrorKind
from livepreview.services.ghost_fix.repair import FixAttempt, FixRequest
from livepreview.utils.claude_client import (
    CONNECT_TIMEOUT,
    GHOST_FIX_SYSTEM_PROMPT,
    MAX_RETRIES,
    ClaudeRepairClient,
)

API_URL = "https://api.anthropic.com/v1/messages"


def make_response(text):
    response = MagicMock()
    response.content = [MagicMock(text=text)] if text is not None else []
    response.id = "msg_123"
    response.stop_reason = "end_turn"
    response.usage.input_tokens = 100
    response.usage.output_tokens = 50
    return response


def connection_error():
    return APIConnectionError(request=httpx.Request("POST", API_URL))


@pytest.fixture
def fix_request(make_error):
    return FixRequest(
        ai_prompt="Fix this type error:\nReferenceError: Btn is not defined",
        target_file="App.tsx",
        current_content="export default function App(){ return <Btn/> }",
        error=make_error("ReferenceError: Btn is not defined", message="Btn is not defined", line=1, column=39),
        files={
            "App.tsx": "export default function App(){ return <Btn/> }",
            "Button.tsx": "export default function Button() { return <button /> }",
        },
    )


@pytest.fixture
def mock_async_client():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=make_response('<file path="App.tsx">\nfixed\n</file>'))
    return client


class TestClaudeRepairClientInit:
    """Test client construction"""

    def test_default_client_uses_settings(self):
        with patch("livepreview.utils.claude_client.AsyncAnthropic") as mock_anthropic:
            client = ClaudeRepairClient()

        kwargs = mock_anthropic.call_args.kwargs
        assert kwargs["api_key"] == settings.ANTHROPIC_API_KEY
        assert "base_url" not in kwargs
        assert isinstance(kwargs["timeout"], httpx.Timeout)
        assert kwargs["timeout"].connect == CONNECT_TIMEOUT
        assert client.model == settings.CLAUDE_FIX_MODEL

    def test_custom_base_url(self):
        with patch.object(settings, "ANTHROPIC_BASE_URL", " https://proxy.local "), \
                patch("livepreview.utils.claude_client.AsyncAnthropic") as mock_anthropic:
            ClaudeRepairClient()
        assert mock_anthropic.call_args.kwargs["base_url"] == "https://proxy.local"

    def test_injected_client_and_model(self, mock_async_client):
        client = ClaudeRepairClient(async_client=mock_async_client, model="claude-test")
        assert client.async_client is mock_async_client
        assert client.model == "claude-test"


class TestBuildUserMessage:
    def test_sections(self, fix_request):
        message = ClaudeRepairClient.build_user_message(fix_request)

        assert message.startswith("Fix this preview error.")
        assert "Type: type-error\nMessage: Btn is not defined\nFile: App.tsx\nLine: 1\nColumn: 39" in message
        assert "DIRECTIVE:\nFix this type error:" in message
        assert "FILES:\n--- App.tsx ---\nexport default function App(){ return <Btn/> }" in message
        assert "OTHER FILES (read-only context):\n--- Button.tsx ---" in message
        assert "Previous fix attempts" not in message

    def test_previous_attempts_listed(self, fix_request):
        fix_request.previous_attempts = [FixAttempt(error="Btn is not defined", attempt_number=1)]
        message = ClaudeRepairClient.build_user_message(fix_request)
        assert "Previous fix attempts that FAILED (do NOT repeat these):\nAttempt 1: Btn is not defined" in message
        assert message.index("Previous fix attempts") < message.index("FILES:")

    def test_single_file_has_no_context_section(self, make_error):
        request = FixRequest(
            ai_prompt="Fix it",
            target_file="App.tsx",
            current_content="x",
            error=make_error("boom", kind=ErrorKind.UNKNOWN),
            files={"App.tsx": "x"},
        )
        assert "OTHER FILES" not in ClaudeRepairClient.build_user_message(request)


class TestRepair:
    """Test the Messages API round trip"""

    @pytest.mark.asyncio
    async def test_returns_target_file_content(self, mock_async_client, fix_request):
        client = ClaudeRepairClient(async_client=mock_async_client)

        assert await client.repair(fix_request) == {"App.tsx": "fixed"}

        kwargs = mock_async_client.messages.create.call_args.kwargs
        assert kwargs["model"] == settings.CLAUDE_FIX_MODEL
        assert kwargs["max_tokens"] == settings.CLAUDE_MAX_TOKENS
        assert kwargs["system"] == GHOST_FIX_SYSTEM_PROMPT
        assert kwargs["messages"][0]["role"] == "user"
        assert "Btn is not defined" in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_returns_every_file_in_reply(self, mock_async_client, fix_request):
        mock_async_client.messages.create.return_value = make_response(
            '<file path="components/Btn.tsx">\nbtn\n</file>\n<file path="App.tsx">\napp\n</file>'
        )
        files = await ClaudeRepairClient(async_client=mock_async_client).repair(fix_request)
        assert files == {"components/Btn.tsx": "btn", "App.tsx": "app"}

    @pytest.mark.asyncio
    async def test_reply_without_file_content(self, mock_async_client, fix_request):
        mock_async_client.messages.create.return_value = make_response("Sorry, no idea.")
        assert await ClaudeRepairClient(async_client=mock_async_client).repair(fix_request) is None

    @pytest.mark.asyncio
    async def test_empty_response_content(self, mock_async_client, fix_request):
        mock_async_client.messages.create.return_value = make_response(None)
        assert await ClaudeRepairClient(async_client=mock_async_client).repair(fix_request) is None

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self, mock_async_client, fix_request):
        mock_async_client.messages.create.side_effect = [
            connection_error(),
            make_response('<file path="App.tsx">\nfixed\n</file>'),
        ]
        client = ClaudeRepairClient(async_client=mock_async_client)

        with patch.object(client, "_calculate_retry_delay", return_value=0):
            assert await client.repair(fix_request) == {"App.tsx": "fixed"}
        assert mock_async_client.messages.create.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, mock_async_client, fix_request):
        mock_async_client.messages.create.side_effect = connection_error()
        client = ClaudeRepairClient(async_client=mock_async_client)

        with patch.object(client, "_calculate_retry_delay", return_value=0):
            with pytest.raises(RepairError) as exc_info:
                await client.repair(fix_request)

        assert exc_info.value.message.startswith("Claude API error: APIConnectionError")
        assert mock_async_client.messages.create.await_count == MAX_RETRIES + 1

    @pytest.mark.asyncio
    async def test_non_retryable_error_raises_immediately(self, mock_async_client, fix_request):
        mock_async_client.messages.create.side_effect = ValueError("bad request shape")
        client = ClaudeRepairClient(async_client=mock_async_client)

        with pytest.raises(RepairError) as exc_info:
            await client.repair(fix_request)

        assert exc_info.value.message == "Claude API error: ValueError: bad request shape"
        assert mock_async_client.messages.create.await_count == 1


class TestRetryHelpers:
    def _status_error(self, status, error_type):
        response = httpx.Response(status, request=httpx.Request("POST", API_URL))
        return APIStatusError("api error", response=response, body={"error": {"type": error_type}})

    def test_retryable_errors(self, mock_async_client):
        client = ClaudeRepairClient(async_client=mock_async_client)
        assert client._is_retryable_error(connection_error())
        assert client._is_retryable_error(httpx.ConnectError("refused"))
        assert client._is_retryable_error(self._status_error(529, "overloaded_error"))
        assert not client._is_retryable_error(self._status_error(400, "invalid_request_error"))
        assert not client._is_retryable_error(KeyError("content"))

    def test_retry_delay_bounds(self, mock_async_client):
        client = ClaudeRepairClient(async_client=mock_async_client)
        base = settings.CLAUDE_RETRY_BASE_DELAY
        cap = settings.CLAUDE_RETRY_MAX_DELAY

        assert base <= client._calculate_retry_delay(0) <= base * 1.25
        assert cap <= client._calculate_retry_delay(20) <= cap * 1.25
