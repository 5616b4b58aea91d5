"""
Conversation orchestration.

A turn runs as one causally ordered sequence on a single task:

    IDLE -> SENDING -> STREAMING -> EXTRACTING -> IDLE

with SENDING/STREAMING -> ERROR -> IDLE when the provider fails.

Turns are queued: a second send_turn waits until the first has
returned to IDLE, so chunks from two streams never mix into one reply.

When the reply cannot be produced, any partial text is discarded,
no assistant message is recorded, and TurnFailedError is raised for
the caller to present.
"""

import asyncio
import inspect
import logging
from contextlib import aclosing
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from .adapter import ProviderAdapter
from .errors import ProviderError, TurnFailedError
from .extractors import extract_decisions, extract_suggestions
from .models import CompletionRequest, ConversationResult, Message, Role, StreamChunk, TurnState
from .prompts import MAIN_SYSTEM_PROMPT
from .registry import ServiceRegistry

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[StreamChunk], Union[None, Awaitable[None]]]


class Conversation:
    """
    Linear message history plus the turn lifecycle.

    The history is the full context sent to the provider on every
    call. Messages are only ever appended.
    """

    def __init__(self, registry: ServiceRegistry, system_prompt: str = MAIN_SYSTEM_PROMPT):
        self.registry = registry
        self.system_prompt = system_prompt
        self.state = TurnState.IDLE
        self.turn_count = 0
        self._messages: List[Message] = []
        self._turn_lock = asyncio.Lock()

    def add_message(self, role: Role, content: str) -> Message:
        message = Message(role=role, content=content)
        self._messages.append(message)
        return message

    def get_messages(self) -> List[Message]:
        return list(self._messages)

    def clear_messages(self):
        self._messages = []

    @property
    def busy(self) -> bool:
        return self._turn_lock.locked()

    async def send_turn(
        self,
        text: str,
        on_chunk: Optional[ChunkCallback] = None,
        stream: bool = True,
    ) -> ConversationResult:
        """
        Run one user turn and return the reply with its follow-ups.

        Args:
            text: User message
            on_chunk: Called with every stream chunk as it arrives
            stream: Use the provider's streaming endpoint

        Raises:
            TurnFailedError: If the provider could not produce a reply
            ServiceNotInitializedError: If no provider is active
        """
        if self.busy:
            logger.debug("Turn in flight, queueing")

        async with self._turn_lock:
            return await self._run_turn(text, on_chunk, stream)

    async def _run_turn(
        self,
        text: str,
        on_chunk: Optional[ChunkCallback],
        stream: bool,
    ) -> ConversationResult:
        service = self.registry.get_active()

        self.turn_count += 1
        turn = self.turn_count
        self.add_message(Role.USER, text)
        self._set_state(TurnState.SENDING, turn)

        request = CompletionRequest(
            messages=self.get_messages(),
            system_prompt=self.system_prompt,
            stream=stream,
        )

        try:
            if stream:
                content, finish_reason = await self._stream_reply(service, request, on_chunk, turn)
            else:
                response = await service.get_completion(request)
                content, finish_reason = response.content, response.finish_reason

            self.add_message(Role.ASSISTANT, content)
            logger.debug(f"Turn {turn}: reply recorded ({len(content)} chars)")

            self._set_state(TurnState.EXTRACTING, turn)
            history = self.get_messages()
            suggestions = await extract_suggestions(service, history)
            decisions = await extract_decisions(service, history)

            return ConversationResult(
                message=content,
                finish_reason=finish_reason,
                suggestions=suggestions,
                decisions=decisions,
            )

        except ProviderError as e:
            self._set_state(TurnState.ERROR, turn)
            logger.error(f"Turn {turn} failed on {service.name}: {e}")
            raise TurnFailedError(service.name, e) from e

        finally:
            self._set_state(TurnState.IDLE, turn)

    async def _stream_reply(
        self,
        service: ProviderAdapter,
        request: CompletionRequest,
        on_chunk: Optional[ChunkCallback],
        turn: int,
    ) -> Tuple[str, Optional[str]]:
        """Accumulate chunk content in order until the done chunk."""
        self._set_state(TurnState.STREAMING, turn)

        parts = []
        finish_reason = None

        async with aclosing(service.get_completion_stream(request)) as chunks:
            async for chunk in chunks:
                if on_chunk is not None:
                    result = on_chunk(chunk)
                    if inspect.isawaitable(result):
                        await result

                parts.append(chunk.content)

                if chunk.done:
                    finish_reason = chunk.finish_reason
                    break

        return "".join(parts), finish_reason

    def _set_state(self, state: TurnState, turn: int):
        self.state = state
        logger.debug(f"Turn {turn} state -> {state.value}")
