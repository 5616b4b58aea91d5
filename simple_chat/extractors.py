"""
Suggestion and decision extraction.

Both extractors are single-shot completion calls made after a turn's
reply has been appended. The conversation is rendered as a transcript
inside a prompt that asks for a bare JSON array. Model output is
parsed tolerantly; any failure degrades to an empty list so a turn
never fails because of extraction.
"""

import json
import logging
from typing import Any, List, Sequence

from pydantic import ValidationError

from .adapter import ProviderAdapter
from .errors import ProviderError
from .models import CompletionRequest, ExtractedDecision, Message, Role
from .prompts import create_decision_extraction_prompt, create_suggestions_prompt, format_conversation_text

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5

_FENCE = "```"


def strip_code_fence(text: str) -> str:
    """Return the body of a fenced code block, dropping an optional language tag."""
    content = text.strip()

    start = content.find(_FENCE)
    if start == -1:
        return content

    end = content.rfind(_FENCE)
    if end <= start:
        return content

    content = content[start + len(_FENCE):end].strip()

    first_break = content.find("\n")
    if first_break != -1:
        first_line = content[:first_break]
        if "[" not in first_line and "{" not in first_line:
            content = content[first_break:].strip()

    return content


def parse_json_array(text: str) -> List[Any]:
    """
    Parse a JSON array out of model output.

    Handles fenced blocks and leading prose before the first ``[``.
    Trailing text after the array is ignored.

    Raises:
        ValueError: If no JSON array can be decoded
    """
    content = strip_code_fence(text)

    if not content.startswith("["):
        start = content.find("[")
        if start == -1:
            raise ValueError("Response does not contain a JSON array")
        content = content[start:]

    try:
        value, _ = json.JSONDecoder().raw_decode(content)
    except RecursionError:
        raise ValueError("Response JSON is nested too deeply") from None

    if not isinstance(value, list):
        raise ValueError("Response is not a JSON array")

    return value


def parse_suggestions(text: str) -> List[str]:
    try:
        items = parse_json_array(text)
    except ValueError as e:
        logger.warning(f"Failed to parse suggestions: {e}")
        logger.debug(f"Raw suggestions response: {text}")
        return []

    suggestions = [item.strip() for item in items if isinstance(item, str) and item.strip()]
    return suggestions[:MAX_SUGGESTIONS]


def parse_decisions(text: str) -> List[ExtractedDecision]:
    """Decode decision objects; categories and statuses are passed through as given."""
    try:
        items = parse_json_array(text)
    except ValueError as e:
        logger.warning(f"Failed to parse decisions: {e}")
        logger.debug(f"Raw decisions response: {text}")
        return []

    decisions = []
    for item in items:
        if not isinstance(item, dict):
            logger.debug(f"Skipping non-object decision: {str(item)[:100]}")
            continue
        try:
            decision = ExtractedDecision.model_validate(item)
        except ValidationError:
            logger.warning(f"Skipping malformed decision: {str(item)[:100]}")
            continue
        if decision.title:
            decisions.append(decision)

    return decisions


async def _complete(service: ProviderAdapter, prompt: str) -> str:
    response = await service.get_completion(
        CompletionRequest(messages=[Message(role=Role.USER, content=prompt)])
    )
    return response.content


async def extract_suggestions(service: ProviderAdapter, messages: Sequence[Message]) -> List[str]:
    """Ask the provider for 3-5 follow-up prompts."""
    prompt = create_suggestions_prompt(format_conversation_text(messages))
    try:
        content = await _complete(service, prompt)
    except ProviderError as e:
        logger.warning(f"Failed to generate suggestions: {e}")
        return []

    return parse_suggestions(content)


async def extract_decisions(service: ProviderAdapter, messages: Sequence[Message]) -> List[ExtractedDecision]:
    """Ask the provider for the decisions made so far."""
    prompt = create_decision_extraction_prompt(format_conversation_text(messages))
    try:
        content = await _complete(service, prompt)
    except ProviderError as e:
        logger.warning(f"Failed to extract decisions: {e}")
        return []

    return parse_decisions(content)
