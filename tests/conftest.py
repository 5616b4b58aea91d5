"""Shared test fixtures for simple_chat tests."""

import json
from typing import Callable, List, Optional

import httpx
import pytest

from simple_chat.adapter import provider_call, provider_stream
from simple_chat.errors import ProviderError
from simple_chat.models import CompletionRequest, CompletionResponse, ModelOption, ServiceConfig, StreamChunk
from simple_chat.prompts import DECISION_EXTRACTION_PROMPT, SUGGESTIONS_PROMPT
from simple_chat.registry import ServiceRegistry


class TrackingSource:
    """Async byte source that records how often it was closed."""

    def __init__(self, parts: List[bytes], fail_after: Optional[int] = None):
        self._parts = list(parts)
        self._fail_after = fail_after
        self._index = 0
        self.close_count = 0

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if self._fail_after is not None and self._index >= self._fail_after:
            raise ConnectionError("connection reset")
        if self._index >= len(self._parts):
            raise StopAsyncIteration
        part = self._parts[self._index]
        self._index += 1
        return part

    async def aclose(self):
        self.close_count += 1


class ScriptedAdapter:
    """
    In-memory provider for orchestrator tests.

    The reply is streamed as the given chunks; extraction prompts get
    the scripted suggestion/decision responses.
    """

    id = "scripted"
    name = "Scripted"

    def __init__(
        self,
        chunks: Optional[List[StreamChunk]] = None,
        suggestions: str = '["What features do you need?"]',
        decisions: str = "[]",
        stream_error: Optional[Exception] = None,
        error_after: int = 0,
    ):
        self.chunks = chunks if chunks is not None else [
            StreamChunk(content="Great! "),
            StreamChunk(content="Tell me more."),
            StreamChunk(finish_reason="stop", done=True),
        ]
        self.suggestions = suggestions
        self.decisions = decisions
        self.stream_error = stream_error
        self.error_after = error_after
        self.timeout = 5.0
        self.model = "scripted-1"
        self.requests: List[CompletionRequest] = []
        self.closed = False

    async def close(self):
        self.closed = True

    def get_available_models(self) -> List[ModelOption]:
        return [ModelOption(id="scripted-1", name="Scripted", context_length=1000, description="test")]

    def get_selected_model(self) -> str:
        return self.model

    def set_model(self, model_id: str) -> None:
        self.model = model_id

    def reply_text(self) -> str:
        return "".join(c.content for c in self.chunks)

    @provider_call
    async def get_completion(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        prompt = request.messages[-1].content
        if prompt.startswith(SUGGESTIONS_PROMPT):
            content = self.suggestions
        elif prompt.startswith(DECISION_EXTRACTION_PROMPT):
            content = self.decisions
        else:
            if self.stream_error is not None:
                raise self.stream_error
            content = self.reply_text()
        return CompletionResponse(content=content, finish_reason="stop", model=self.model)

    @provider_stream
    async def get_completion_stream(self, request: CompletionRequest):
        self.requests.append(request)
        for i, chunk in enumerate(self.chunks):
            if self.stream_error is not None and i >= self.error_after:
                raise self.stream_error
            yield chunk


def sse_body(*events, done: bool = True) -> bytes:
    """Encode events as OpenAI-style SSE frames."""
    frames = [f"data: {json.dumps(e)}\n\n" for e in events]
    if done:
        frames.append("data: [DONE]\n\n")
    return "".join(frames).encode()


def ndjson_body(*events) -> bytes:
    """Encode events as newline-delimited JSON."""
    return "".join(json.dumps(e) + "\n" for e in events).encode()


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def openai_config():
    return ServiceConfig(api_key="sk-test", model="gpt-4", base_url="https://api.test")


@pytest.fixture
def anthropic_config():
    return ServiceConfig(api_key="ak-test", model="claude-3-haiku-20240307", base_url="https://api.test")


@pytest.fixture
def scripted_adapter():
    return ScriptedAdapter()


@pytest.fixture
def scripted_registry(scripted_adapter):
    registry = ServiceRegistry()
    registry.register_factory("scripted", lambda config: scripted_adapter)
    registry.initialize("scripted", ServiceConfig(api_key="key", model="scripted-1"))
    return registry


def provider_failure(message: str = "connection refused") -> ProviderError:
    return ProviderError("Scripted", message)
