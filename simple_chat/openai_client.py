"""OpenAI chat completions client with SSE streaming support."""

import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .adapter import (
    DEFAULT_TIMEOUT,
    build_http_client,
    provider_call,
    provider_stream,
    raise_for_status,
    resolve_options,
)
from .errors import UnknownModelError
from .models import CompletionRequest, CompletionResponse, ModelOption, ServiceConfig, StreamChunk
from .streaming import Framing, iter_json_events

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com"

OPENAI_MODELS: List[ModelOption] = [
    ModelOption(
        id="gpt-4-turbo-preview",
        name="GPT-4 Turbo",
        context_length=128000,
        description="Most capable GPT-4 model with broader general knowledge and improved instruction following",
        capabilities=["Text Generation", "Creative Writing", "Reasoning", "Code Generation"],
    ),
    ModelOption(
        id="gpt-4",
        name="GPT-4",
        context_length=8192,
        description="Powerful model for various tasks with strong reasoning and instruction following",
        capabilities=["Text Generation", "Creative Writing", "Reasoning", "Code Generation"],
    ),
    ModelOption(
        id="gpt-3.5-turbo",
        name="GPT-3.5 Turbo",
        context_length=4096,
        description="Fast, cost-effective model with good general capabilities",
        capabilities=["Text Generation", "Creative Writing", "Summarization"],
    ),
]


# ============================================================================
# Wire format
# ============================================================================

class _WireMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")
    content: Optional[str] = None


class _WireChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")
    message: _WireMessage = Field(default_factory=_WireMessage)
    finish_reason: Optional[str] = None


class _WireCompletion(BaseModel):
    model_config = ConfigDict(extra="ignore")
    model: str
    choices: List[_WireChoice]


class _WireDelta(BaseModel):
    model_config = ConfigDict(extra="ignore")
    content: Optional[str] = None


class _WireChunkChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")
    delta: _WireDelta = Field(default_factory=_WireDelta)
    finish_reason: Optional[str] = None


class _WireChunk(BaseModel):
    model_config = ConfigDict(extra="ignore")
    choices: List[_WireChunkChoice] = Field(default_factory=list)


# ============================================================================
# Client
# ============================================================================

class OpenAIClient:
    """
    Async client for the OpenAI chat completions API.

    System prompts stay inline: the prompt is sent as the leading
    "system" message, ahead of the conversation history.
    """

    id = "openai"
    name = "OpenAI"

    def __init__(
        self,
        config: ServiceConfig,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.config = config
        self.model = config.model
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.client = client or build_http_client(timeout)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    def get_available_models(self) -> List[ModelOption]:
        return list(OPENAI_MODELS)

    def get_selected_model(self) -> str:
        return self.model

    def set_model(self, model_id: str) -> None:
        if model_id not in {m.id for m in OPENAI_MODELS}:
            raise UnknownModelError(self.id, model_id)
        self.model = model_id

    @property
    def url(self) -> str:
        return f"{self.base_url}/v1/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, request: CompletionRequest, stream: bool) -> Dict[str, Any]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.extend({"role": m.role.value, "content": m.content} for m in request.messages)

        options = resolve_options(request, self.config)

        return {
            "model": self.model,
            "messages": messages,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "stream": stream,
        }

    @provider_call
    async def get_completion(self, request: CompletionRequest) -> CompletionResponse:
        """Non-streaming chat completion."""
        payload = self._payload(request, stream=False)
        logger.info(f"OpenAI completion: model={self.model}, messages={len(payload['messages'])}")

        resp = await self.client.post(self.url, json=payload, headers=self._headers())
        await raise_for_status(resp)

        completion = _WireCompletion.model_validate(resp.json())
        choice = completion.choices[0]

        return CompletionResponse(
            content=choice.message.content or "",
            finish_reason=choice.finish_reason,
            model=completion.model,
        )

    @provider_stream
    async def get_completion_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """
        Stream a chat completion.

        Each SSE frame carries a delta; the frame with a finish_reason
        becomes the final done chunk. ``data: [DONE]`` is consumed by
        the normalizer.
        """
        payload = self._payload(request, stream=True)
        logger.info(f"Starting OpenAI stream: model={self.model}, messages={len(payload['messages'])}")

        async with self.client.stream("POST", self.url, json=payload, headers=self._headers()) as response:
            await raise_for_status(response)

            async with aclosing(iter_json_events(response.aiter_bytes(), Framing.SSE)) as events:
                async for event in events:
                    try:
                        frame = _WireChunk.model_validate(event)
                    except ValidationError:
                        logger.warning(f"Skipping unexpected OpenAI frame: {str(event)[:100]}")
                        continue

                    if not frame.choices:
                        continue

                    choice = frame.choices[0]
                    if choice.finish_reason:
                        yield StreamChunk(
                            content=choice.delta.content or "",
                            finish_reason=choice.finish_reason,
                            done=True,
                        )
                        return

                    if choice.delta.content:
                        yield StreamChunk(content=choice.delta.content)

        logger.warning("OpenAI stream ended without a finish_reason")
        yield StreamChunk(done=True)


def create_openai_client(config: ServiceConfig, timeout: float = DEFAULT_TIMEOUT) -> OpenAIClient:
    """Adapter factory for the registry."""
    return OpenAIClient(config, timeout=timeout)
