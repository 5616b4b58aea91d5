"""
Provider adapter contract and shared request plumbing.

Each vendor adapter implements ProviderAdapter on its own. The
behaviour every adapter shares (sampling defaults, the overall call
timeout, tagging failures with the provider name) lives in the
wrappers below and is applied to each adapter method.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Protocol

import httpx

from .errors import ProviderError
from .models import CompletionRequest, CompletionResponse, ModelOption, ServiceConfig, StreamChunk

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1024
DEFAULT_TIMEOUT = 60.0
CONNECT_TIMEOUT = 10.0


class ProviderAdapter(Protocol):
    """Translation layer between the internal message model and one vendor API."""

    id: str
    name: str

    async def get_completion(self, request: CompletionRequest) -> CompletionResponse: ...

    def get_completion_stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]: ...

    def get_available_models(self) -> List[ModelOption]: ...

    def get_selected_model(self) -> str: ...

    def set_model(self, model_id: str) -> None: ...

    async def close(self) -> None: ...


AdapterFactory = Callable[[ServiceConfig], ProviderAdapter]


@dataclass
class SamplingOptions:
    """Sampling parameters after defaults are applied."""
    temperature: float
    max_tokens: int


def resolve_options(request: CompletionRequest, config: ServiceConfig) -> SamplingOptions:
    """Request values win over configured values, which win over defaults."""
    temperature = request.temperature
    if temperature is None:
        temperature = config.temperature
    if temperature is None:
        temperature = DEFAULT_TEMPERATURE

    max_tokens = request.max_tokens or config.max_tokens or DEFAULT_MAX_TOKENS

    return SamplingOptions(temperature=temperature, max_tokens=max_tokens)


def build_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """HTTP client used by the vendor adapters."""
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=CONNECT_TIMEOUT))


async def raise_for_status(response: httpx.Response) -> None:
    """Like Response.raise_for_status, but reads streamed bodies first so errors carry them."""
    if response.is_error:
        await response.aread()
        response.raise_for_status()


def _wrap_error(provider: str, error: Exception, timeout: float) -> ProviderError:
    if isinstance(error, ProviderError):
        return error

    if isinstance(error, TimeoutError):
        return ProviderError(provider, f"request timed out after {timeout}s", error)

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        body = error.response.text[:200]
        return ProviderError(provider, f"HTTP {status}: {body}", error, status_code=status)

    return ProviderError(provider, f"{type(error).__name__}: {error}", error)


def provider_call(method):
    """Apply the call timeout to a completion method and tag its failures."""

    @functools.wraps(method)
    async def wrapper(self, request: CompletionRequest) -> CompletionResponse:
        try:
            async with asyncio.timeout(self.timeout):
                return await method(self, request)
        except Exception as e:
            error = _wrap_error(self.name, e, self.timeout)
            logger.error(f"Error in {self.name} service: {error.message}")
            if error is e:
                raise
            raise error from e

    return wrapper


def provider_stream(method):
    """
    Apply the call timeout to a streaming method and tag its failures.

    The deadline covers connecting and consuming the whole stream.
    Iteration stops after the first chunk with done=True, and the
    underlying stream is closed however iteration ends.
    """

    @functools.wraps(method)
    async def wrapper(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        deadline = asyncio.get_running_loop().time() + self.timeout
        chunks = method(self, request)

        try:
            while True:
                try:
                    async with asyncio.timeout_at(deadline):
                        chunk = await chunks.__anext__()
                except StopAsyncIteration:
                    return

                yield chunk

                if chunk.done:
                    return

        except Exception as e:
            error = _wrap_error(self.name, e, self.timeout)
            logger.error(f"Error in {self.name} stream: {error.message}")
            if error is e:
                raise
            raise error from e

        finally:
            await chunks.aclose()

    return wrapper
