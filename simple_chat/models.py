"""Data models for the conversation service."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Provider-facing Models
# ============================================================================

class Role(str, Enum):
    """Conversation message role."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """One entry of the conversation context sent to providers."""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class CompletionRequest(BaseModel):
    """Provider-independent completion request."""
    messages: List[Message]
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = False


class CompletionResponse(BaseModel):
    """Provider-independent completion response."""
    content: str
    finish_reason: Optional[str] = None
    model: str


class StreamChunk(BaseModel):
    """Incremental fragment of a streamed completion."""
    content: str = ""
    finish_reason: Optional[str] = None
    done: bool = False


class ServiceConfig(BaseModel):
    """Per-provider settings, read-only to adapters."""
    api_key: str = ""
    model: str
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    base_url: Optional[str] = None


class ModelOption(BaseModel):
    """Static catalog entry for a provider model."""
    id: str
    name: str
    context_length: int
    description: str
    capabilities: List[str] = Field(default_factory=list)


# ============================================================================
# Conversation Models
# ============================================================================

class DecisionStatus(str, Enum):
    """Decision confirmation state."""
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CONFLICTING = "conflicting"


class ExtractedDecision(BaseModel):
    """Decision as returned by the extraction call, before an id is assigned."""
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    details: str = ""
    category: str = ""
    status: str = DecisionStatus.PENDING.value

    @field_validator("title", "details", "category", "status", mode="before")
    @classmethod
    def _null_to_default(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class Decision(BaseModel):
    """A requirement inferred from the conversation."""
    id: str
    title: str
    details: str
    status: DecisionStatus = DecisionStatus.PENDING
    category: str
    related_message_ids: List[str] = Field(default_factory=list)


class ConversationResult(BaseModel):
    """Outcome of one user turn."""
    message: str
    finish_reason: Optional[str] = None
    suggestions: List[str] = Field(default_factory=list)
    decisions: List[ExtractedDecision] = Field(default_factory=list)


class TurnState(str, Enum):
    """Conversation turn lifecycle state."""
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    EXTRACTING = "extracting"
    ERROR = "error"


# ============================================================================
# UI State Models
# ============================================================================

class ChatEntry(BaseModel):
    """Message as displayed to the user."""
    id: str
    sender: Role
    content: str
    timestamp: Optional[str] = None
    status: Optional[str] = None


class Category(BaseModel):
    """Display bucket for decisions."""
    id: str
    title: str


class ProviderInfo(BaseModel):
    """Description of an initialized provider."""
    id: str
    name: str
    selected_model: str
    active: bool = False


# ============================================================================
# HTTP Request Models
# ============================================================================

class SendMessageRequest(BaseModel):
    content: str
    stream: bool = True


class HighlightRequest(BaseModel):
    message_ids: List[str] = Field(default_factory=list)


class DecisionUpdate(BaseModel):
    title: Optional[str] = None
    details: Optional[str] = None
    status: Optional[DecisionStatus] = None
    category: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ActiveProviderRequest(BaseModel):
    provider_id: str


class SelectModelRequest(BaseModel):
    model_id: str
