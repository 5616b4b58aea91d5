"""Scripted offline client used when no provider credentials are configured."""

import asyncio
import json
import logging
import re
from typing import AsyncIterator, List

from .adapter import DEFAULT_TIMEOUT, provider_call, provider_stream
from .errors import UnknownModelError
from .models import CompletionRequest, CompletionResponse, ModelOption, Role, ServiceConfig, StreamChunk
from .prompts import DECISION_EXTRACTION_PROMPT, SUGGESTIONS_PROMPT

logger = logging.getLogger(__name__)

MOCK_MODEL_ID = "mock-model-v1"

MOCK_MODELS: List[ModelOption] = [
    ModelOption(
        id=MOCK_MODEL_ID,
        name="Offline Mock",
        context_length=8192,
        description="Scripted replies for local development without API keys",
        capabilities=["Text Generation"],
    ),
]

MOCK_SUGGESTIONS = [
    "Tell me more about that",
    "What features do you need?",
    "Who are your target users?",
]


def scripted_reply(user_text: str) -> str:
    """Keyword-matched canned reply."""
    lowered = user_text.lower()
    if "hello" in lowered or re.search(r"\bhi\b", lowered):
        return "Hello! I'm here to help you create your app. What kind of app are you looking to build?"
    if "app" in lowered:
        return "Great! Could you tell me more about what problem your app is trying to solve?"
    return "I understand. Let's explore that further. What features would be most important for your app?"


class MockClient:
    """
    Offline stand-in for a real provider.

    Replies are scripted from the latest user message and streamed word
    by word with a small delay. Extraction prompts get a fixed
    suggestion list and an empty decision list.
    """

    id = "mock"
    name = "Offline Mock"

    def __init__(
        self,
        config: ServiceConfig,
        chunk_delay: float = 0.05,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.config = config
        self.model = config.model or MOCK_MODEL_ID
        self.chunk_delay = chunk_delay
        self.timeout = timeout
        logger.info("Initialized MockClient")

    async def close(self):
        pass

    def get_available_models(self) -> List[ModelOption]:
        return list(MOCK_MODELS)

    def get_selected_model(self) -> str:
        return self.model

    def set_model(self, model_id: str) -> None:
        if model_id not in {m.id for m in MOCK_MODELS}:
            raise UnknownModelError(self.id, model_id)
        self.model = model_id

    def _respond(self, request: CompletionRequest) -> str:
        user_messages = [m for m in request.messages if m.role == Role.USER]
        if not user_messages:
            return scripted_reply("")

        latest = user_messages[-1].content
        if latest.startswith(SUGGESTIONS_PROMPT):
            return json.dumps(MOCK_SUGGESTIONS)
        if latest.startswith(DECISION_EXTRACTION_PROMPT):
            return "[]"
        return scripted_reply(latest)

    @provider_call
    async def get_completion(self, request: CompletionRequest) -> CompletionResponse:
        return CompletionResponse(content=self._respond(request), finish_reason="stop", model=self.model)

    @provider_stream
    async def get_completion_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        words = self._respond(request).split(" ")

        for i, word in enumerate(words):
            content = word if i == len(words) - 1 else word + " "
            yield StreamChunk(content=content)
            await asyncio.sleep(self.chunk_delay)

        yield StreamChunk(finish_reason="stop", done=True)


def create_mock_client(
    config: ServiceConfig,
    chunk_delay: float = 0.05,
    timeout: float = DEFAULT_TIMEOUT,
) -> MockClient:
    """Adapter factory for the registry."""
    return MockClient(config, chunk_delay=chunk_delay, timeout=timeout)
