"""
HTTP endpoints for the conversation UI.

Sending a message streams the reply as SSE:
- event: chunk   - one StreamChunk as it arrives
- event: result  - the ConversationResult once extraction is done
- event: error   - the turn failed (the store has recorded an error entry)
followed by ``data: [DONE]``.
"""

import asyncio
import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .errors import SimpleChatError, TurnFailedError
from .models import (
    ActiveProviderRequest,
    DecisionUpdate,
    HighlightRequest,
    SelectModelRequest,
    SendMessageRequest,
    StreamChunk,
)
from .store import ConversationStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store(request: Request) -> ConversationStore:
    return request.app.state.store


@router.get("/v1/conversation")
async def get_conversation(store: ConversationStore = Depends(get_store)):
    """Full UI state."""
    return store.snapshot()


@router.post("/v1/conversation/messages")
async def send_message(body: SendMessageRequest, store: ConversationStore = Depends(get_store)):
    """Send a user message; streams by default."""
    logger.info(f"Conversation message: {len(body.content)} chars, stream={body.stream}")

    if body.stream:
        return StreamingResponse(
            _stream_turn(store, body.content),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )

    try:
        result = await store.send_message(body.content, stream=False)
    except TurnFailedError as e:
        return JSONResponse(
            status_code=502,
            content={"error": str(e), "provider": e.provider, "state": store.snapshot()},
        )

    return {"result": result.model_dump(), "state": store.snapshot()}


@router.post("/v1/conversation/highlight")
async def highlight_messages(body: HighlightRequest, store: ConversationStore = Depends(get_store)):
    store.highlight_messages(body.message_ids)
    return {"highlighted_message_ids": store.highlighted_message_ids}


@router.patch("/v1/decisions/{decision_id}")
async def update_decision(
    decision_id: str,
    body: DecisionUpdate,
    store: ConversationStore = Depends(get_store),
):
    decision = store.update_decision(decision_id, body.changes())
    if decision is None:
        raise HTTPException(status_code=404, detail=f"Decision {decision_id} not found")
    return decision.model_dump(mode="json")


@router.delete("/v1/decisions/{decision_id}")
async def remove_decision(decision_id: str, store: ConversationStore = Depends(get_store)):
    if not store.remove_decision(decision_id):
        raise HTTPException(status_code=404, detail=f"Decision {decision_id} not found")
    return {"removed": decision_id}


@router.post("/v1/categories/{category_id}/toggle")
async def toggle_category(category_id: str, store: ConversationStore = Depends(get_store)):
    store.toggle_category(category_id)
    return {"expanded_categories": store.expanded_categories}


@router.get("/v1/providers")
async def list_providers(store: ConversationStore = Depends(get_store)):
    """Initialized providers and which one is active."""
    return {"data": [p.model_dump() for p in store.registry.describe()]}


@router.post("/v1/providers/active")
async def set_active_provider(body: ActiveProviderRequest, store: ConversationStore = Depends(get_store)):
    store.set_active_provider(body.provider_id)
    return {"active_provider": store.registry.active_id}


@router.get("/v1/providers/{provider_id}/models")
async def list_models(provider_id: str, store: ConversationStore = Depends(get_store)):
    registry = store.registry
    return {
        "data": [m.model_dump() for m in registry.list_models(provider_id)],
        "selected": registry.get_selected_model(provider_id),
    }


@router.put("/v1/providers/{provider_id}/model")
async def set_model(
    provider_id: str,
    body: SelectModelRequest,
    store: ConversationStore = Depends(get_store),
):
    store.set_model(provider_id, body.model_id)
    return {"provider_id": provider_id, "selected": store.registry.get_selected_model(provider_id)}


async def _stream_turn(store: ConversationStore, content: str) -> AsyncIterator[str]:
    """
    Run a turn in a task and relay its chunks as SSE.

    The task is cancelled if the client goes away mid-stream.
    """
    queue: asyncio.Queue = asyncio.Queue()

    async def on_chunk(chunk: StreamChunk):
        await queue.put(chunk)

    task = asyncio.create_task(store.send_message(content, on_chunk=on_chunk))
    task.add_done_callback(lambda _: queue.put_nowait(None))

    try:
        while True:
            chunk = await queue.get()
            if chunk is None:
                break
            yield _format_sse_event("chunk", chunk.model_dump())

        try:
            result = task.result()
        except SimpleChatError as e:
            logger.warning(f"Streamed turn failed: {e}")
            yield _format_sse_event("error", {"error": str(e)})
        else:
            yield _format_sse_event("result", result.model_dump())

        yield "data: [DONE]\n\n"

    finally:
        if not task.done():
            task.cancel()


# =============================================================================
# SSE Formatting Helpers
# =============================================================================

def _format_sse_event(event_type: str, data: dict) -> str:
    """Format custom event as SSE."""
    return f"event: {event_type}\ndata: {json.dumps(data)}\n\n"
