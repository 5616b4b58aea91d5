"""
UI-visible conversation state.

Holds what the front-end renders (chat entries, suggestions,
decisions grouped by category, highlight and expansion flags) and
exposes the operations the UI calls. Conversation turns are delegated
to the Conversation orchestrator.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from .conversation import ChunkCallback, Conversation
from .errors import TurnFailedError
from .models import (
    Category,
    ChatEntry,
    ConversationResult,
    Decision,
    DecisionStatus,
    ExtractedDecision,
    Role,
)

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = "Welcome to Simple! How can I help you create your app today?"

INITIAL_SUGGESTIONS = [
    "I want to build a social media app",
    "Create an app for managing tasks",
    "I need a delivery tracking app",
]

FALLBACK_SUGGESTIONS = [
    "Tell me more about that",
    "What features do you need?",
    "Who are your target users?",
]

INITIAL_CATEGORIES = [
    Category(id="purpose", title="App Purpose"),
    Category(id="users", title="User Personas"),
    Category(id="features", title="Features"),
    Category(id="technical", title="Technical Requirements"),
]


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M")


def _coerce_status(value: str) -> DecisionStatus:
    try:
        return DecisionStatus(value.strip().lower())
    except ValueError:
        return DecisionStatus.PENDING


class ConversationStore:
    """
    State container behind the conversation page.

    Decisions are keyed by category plus case-insensitive title: a
    repeated extraction updates the existing decision instead of adding
    a duplicate.
    """

    def __init__(self, conversation: Conversation):
        self.conversation = conversation
        self.messages: List[ChatEntry] = [
            ChatEntry(id=_new_id("msg"), sender=Role.SYSTEM, content=WELCOME_MESSAGE, timestamp=_timestamp())
        ]
        self.is_processing = False
        self.suggestions: List[str] = list(INITIAL_SUGGESTIONS)
        self.highlighted_message_ids: List[str] = []
        self.decisions: List[Decision] = []
        self.categories: List[Category] = list(INITIAL_CATEGORIES)
        self.expanded_categories: List[str] = ["purpose"]
        self._pending_turns = 0
        self._send_lock = asyncio.Lock()

    @property
    def registry(self):
        return self.conversation.registry

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(self, sender: Role, content: str, status: Optional[str] = None) -> ChatEntry:
        entry = ChatEntry(
            id=_new_id("msg"),
            sender=sender,
            content=content,
            timestamp=_timestamp(),
            status=status,
        )
        self.messages.append(entry)
        return entry

    def set_processing(self, is_processing: bool):
        self.is_processing = is_processing

    def set_suggestions(self, suggestions: List[str]):
        self.suggestions = list(suggestions)

    def highlight_messages(self, message_ids: List[str]):
        self.highlighted_message_ids = list(message_ids)

    def clear_highlighted_messages(self):
        self.highlighted_message_ids = []

    async def send_message(
        self,
        content: str,
        on_chunk: Optional[ChunkCallback] = None,
        stream: bool = True,
    ) -> ConversationResult:
        """
        Send a user message through the orchestrator and record the outcome.

        Messages are handled one at a time: a second call waits until the
        first has recorded its reply, and is_processing stays set while any
        call is pending. On failure a system entry tagged status="error" is
        recorded and the TurnFailedError is re-raised.
        """
        self._pending_turns += 1
        self.set_processing(True)

        try:
            async with self._send_lock:
                return await self._send(content, on_chunk, stream)
        finally:
            self._pending_turns -= 1
            self.set_processing(self._pending_turns > 0)

    async def _send(
        self,
        content: str,
        on_chunk: Optional[ChunkCallback],
        stream: bool,
    ) -> ConversationResult:
        user_entry = self.add_message(Role.USER, content, status="sent")

        try:
            result = await self.conversation.send_turn(content, on_chunk=on_chunk, stream=stream)
        except TurnFailedError as e:
            self.add_message(
                Role.SYSTEM,
                f"Sorry, {e.provider} could not respond right now. Please try again.",
                status="error",
            )
            raise

        assistant_entry = self.add_message(Role.ASSISTANT, result.message)
        self.set_suggestions(result.suggestions or FALLBACK_SUGGESTIONS)

        related = [user_entry.id, assistant_entry.id]
        for extracted in result.decisions:
            self.record_decision(extracted, related)

        return result

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def find_decision(self, category: str, title: str) -> Optional[Decision]:
        key = title.strip().casefold()
        for decision in self.decisions:
            if decision.category == category and decision.title.strip().casefold() == key:
                return decision
        return None

    def record_decision(self, extracted: ExtractedDecision, related_message_ids: List[str]) -> Decision:
        """Merge an extracted decision into the list, assigning an id when new."""
        status = _coerce_status(extracted.status)
        existing = self.find_decision(extracted.category, extracted.title)

        if existing is not None:
            merged_ids = existing.related_message_ids + [
                mid for mid in related_message_ids if mid not in existing.related_message_ids
            ]
            updated = existing.model_copy(
                update={
                    "details": extracted.details or existing.details,
                    "status": status,
                    "related_message_ids": merged_ids,
                }
            )
            self._replace_decision(updated)
            logger.debug(f"Updated decision {existing.id}: {existing.title}")
            return updated

        decision = Decision(
            id=_new_id("dec"),
            title=extracted.title,
            details=extracted.details,
            status=status,
            category=extracted.category,
            related_message_ids=list(related_message_ids),
        )
        self.add_decision(decision)
        return decision

    def add_decision(self, decision: Decision):
        self.decisions.append(decision)

    def update_decision(self, decision_id: str, updates: Dict[str, Any]) -> Optional[Decision]:
        for decision in self.decisions:
            if decision.id == decision_id:
                updated = decision.model_copy(update=updates)
                self._replace_decision(updated)
                return updated
        return None

    def remove_decision(self, decision_id: str) -> bool:
        remaining = [d for d in self.decisions if d.id != decision_id]
        removed = len(remaining) != len(self.decisions)
        self.decisions = remaining
        return removed

    def decisions_for_category(self, category_id: str) -> List[Decision]:
        return [d for d in self.decisions if d.category == category_id]

    def _replace_decision(self, updated: Decision):
        self.decisions = [updated if d.id == updated.id else d for d in self.decisions]

    def toggle_category(self, category_id: str):
        if category_id in self.expanded_categories:
            self.expanded_categories = [c for c in self.expanded_categories if c != category_id]
        else:
            self.expanded_categories = self.expanded_categories + [category_id]

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    def set_active_provider(self, provider_id: str):
        self.registry.set_active(provider_id)

    def set_model(self, provider_id: str, model_id: str):
        self.registry.set_model(provider_id, model_id)

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view of the whole state."""
        return {
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "is_processing": self.is_processing,
            "suggestions": list(self.suggestions),
            "highlighted_message_ids": list(self.highlighted_message_ids),
            "decisions": [d.model_dump(mode="json") for d in self.decisions],
            "categories": [c.model_dump() for c in self.categories],
            "expanded_categories": list(self.expanded_categories),
            "active_provider": self.registry.active_id,
        }
