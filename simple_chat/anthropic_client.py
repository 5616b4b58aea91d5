"""Anthropic messages client with streaming support."""

import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Union

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
from .errors import ProviderError, UnknownModelError
from .models import CompletionRequest, CompletionResponse, ModelOption, Role, ServiceConfig, StreamChunk
from .streaming import Framing, iter_json_events

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_API_VERSION = "2023-06-01"

ANTHROPIC_MODELS: List[ModelOption] = [
    ModelOption(
        id="claude-3-opus-20240229",
        name="Claude 3 Opus",
        context_length=200000,
        description="Most powerful Claude model with exceptional intelligence and reasoning",
        capabilities=["Text Generation", "Creative Writing", "Advanced Reasoning", "Code Generation"],
    ),
    ModelOption(
        id="claude-3-5-sonnet-20241022",
        name="Claude 3.5 Sonnet",
        context_length=200000,
        description="Latest Claude model with enhanced reasoning and efficiency",
        capabilities=["Text Generation", "Creative Writing", "Advanced Reasoning", "Code Generation"],
    ),
    ModelOption(
        id="claude-3-7-sonnet-20250219",
        name="Claude 3.7 Sonnet",
        context_length=200000,
        description="Balanced model offering strong performance and efficiency",
        capabilities=["Text Generation", "Creative Writing", "Reasoning", "Code Generation"],
    ),
    ModelOption(
        id="claude-3-haiku-20240307",
        name="Claude 3 Haiku",
        context_length=150000,
        description="Fastest Claude model designed for efficiency and quick responses",
        capabilities=["Text Generation", "Creative Writing", "Basic Reasoning"],
    ),
]


# ============================================================================
# Wire format
# ============================================================================

class _ContentBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: str = "text"
    text: str = ""


class _WireMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")
    model: str
    content: List[_ContentBlock] = Field(default_factory=list)
    stop_reason: Optional[str] = None


class _TextDelta(BaseModel):
    model_config = ConfigDict(extra="ignore")
    text: str = ""


class _StopDelta(BaseModel):
    model_config = ConfigDict(extra="ignore")
    stop_reason: Optional[str] = None


class _ContentBlockDelta(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: Literal["content_block_delta"]
    delta: _TextDelta = Field(default_factory=_TextDelta)


class _MessageDelta(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: Literal["message_delta"]
    delta: _StopDelta = Field(default_factory=_StopDelta)


class _MessageStop(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: Literal["message_stop"]
    stop_reason: Optional[str] = None


class _StreamError(BaseModel):
    model_config = ConfigDict(extra="ignore")
    type: Literal["error"]
    error: Dict[str, Any] = Field(default_factory=dict)


_StreamEvent = Union[_ContentBlockDelta, _MessageDelta, _MessageStop, _StreamError]

# message_start, content_block_start, content_block_stop, ping carry no text
_EVENT_MODELS = {
    "content_block_delta": _ContentBlockDelta,
    "message_delta": _MessageDelta,
    "message_stop": _MessageStop,
    "error": _StreamError,
}


def _decode_event(event: Dict[str, Any]) -> Optional[_StreamEvent]:
    model = _EVENT_MODELS.get(event.get("type"))
    if model is None:
        return None
    try:
        return model.model_validate(event)
    except ValidationError:
        logger.warning(f"Skipping unexpected Anthropic event: {str(event)[:100]}")
        return None


# ============================================================================
# Client
# ============================================================================

class AnthropicClient:
    """
    Async client for the Anthropic messages API.

    Anthropic takes the system prompt as a top-level ``system`` field,
    so system-role history entries are pulled out of the message list
    and merged into it.
    """

    id = "anthropic"
    name = "Anthropic"

    def __init__(
        self,
        config: ServiceConfig,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        api_version: str = DEFAULT_API_VERSION,
    ):
        self.config = config
        self.model = config.model
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self.client = client or build_http_client(timeout)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    def get_available_models(self) -> List[ModelOption]:
        return list(ANTHROPIC_MODELS)

    def get_selected_model(self) -> str:
        return self.model

    def set_model(self, model_id: str) -> None:
        if model_id not in {m.id for m in ANTHROPIC_MODELS}:
            raise UnknownModelError(self.id, model_id)
        self.model = model_id

    @property
    def url(self) -> str:
        return f"{self.base_url}/v1/messages"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.config.api_key,
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }

    def _payload(self, request: CompletionRequest, stream: bool) -> Dict[str, Any]:
        system_parts = [request.system_prompt] if request.system_prompt else []
        messages = []

        for message in request.messages:
            if message.role == Role.SYSTEM:
                system_parts.append(message.content)
            else:
                messages.append({"role": message.role.value, "content": message.content})

        options = resolve_options(request, self.config)

        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "stream": stream,
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)

        return payload

    @provider_call
    async def get_completion(self, request: CompletionRequest) -> CompletionResponse:
        """Non-streaming message completion."""
        payload = self._payload(request, stream=False)
        logger.info(f"Anthropic completion: model={self.model}, messages={len(payload['messages'])}")

        resp = await self.client.post(self.url, json=payload, headers=self._headers())
        await raise_for_status(resp)

        message = _WireMessage.model_validate(resp.json())
        text = "".join(block.text for block in message.content if block.type == "text")

        return CompletionResponse(
            content=text,
            finish_reason=message.stop_reason,
            model=message.model,
        )

    @provider_stream
    async def get_completion_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """
        Stream a message completion.

        Text arrives in content_block_delta events. The stop reason may
        come on message_delta or on message_stop; message_stop ends the
        stream.
        """
        payload = self._payload(request, stream=True)
        logger.info(f"Starting Anthropic stream: model={self.model}, messages={len(payload['messages'])}")

        stop_reason = None

        async with self.client.stream("POST", self.url, json=payload, headers=self._headers()) as response:
            await raise_for_status(response)

            async with aclosing(iter_json_events(response.aiter_bytes(), Framing.NDJSON)) as events:
                async for raw in events:
                    event = _decode_event(raw)

                    if isinstance(event, _ContentBlockDelta):
                        if event.delta.text:
                            yield StreamChunk(content=event.delta.text)

                    elif isinstance(event, _MessageDelta):
                        stop_reason = event.delta.stop_reason or stop_reason

                    elif isinstance(event, _MessageStop):
                        yield StreamChunk(finish_reason=event.stop_reason or stop_reason, done=True)
                        return

                    elif isinstance(event, _StreamError):
                        message = event.error.get("message", "stream error")
                        raise ProviderError(self.name, f"stream error: {message}")

        logger.warning("Anthropic stream ended without message_stop")
        yield StreamChunk(finish_reason=stop_reason, done=True)


def create_anthropic_client(
    config: ServiceConfig,
    timeout: float = DEFAULT_TIMEOUT,
    api_version: str = DEFAULT_API_VERSION,
) -> AnthropicClient:
    """Adapter factory for the registry."""
    return AnthropicClient(config, timeout=timeout, api_version=api_version)
