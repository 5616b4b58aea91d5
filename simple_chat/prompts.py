"""Fixed prompts and transcript rendering."""

from typing import Iterable

from .models import Message, Role

MAIN_SYSTEM_PROMPT = """You are an AI assistant specialized in helping users create apps through conversation. Your goal is to guide the user through the app creation process, asking relevant questions to understand their requirements, and providing helpful suggestions.

Focus on understanding the following aspects of the app:
1. Purpose - What problem is the app solving?
2. Users - Who will use the app?
3. Features - What key features should the app have?
4. Technical requirements - Any specific platforms, integrations, or technical constraints?

Be conversational but focused. Ask one question at a time. Listen carefully to user responses and adapt your follow-up questions accordingly.

For each response, identify any decisions or requirements mentioned by the user. A decision is any clear choice about the app's purpose, features, users, or technical requirements.

Each of your responses should include:
1. Acknowledgment of what you've understood so far
2. A follow-up question to gather more information
3. Occasionally, a summary of the decisions and requirements identified so far

Avoid being too technical unless the user seems technically knowledgeable. Focus on understanding their needs rather than implementation details initially."""

DECISION_EXTRACTION_PROMPT = """Extract key decisions and requirements from the following conversation about app creation.

For each decision or requirement, provide:
1. A short title (10 words or less)
2. A detailed description of the decision/requirement
3. The category (purpose, users, features, technical)
4. The status (confirmed, pending, conflicting)

A good decision should be specific, actionable, and relevant to the app being created.

VERY IMPORTANT: Format your response EXACTLY as a JSON array of decisions, with no additional text before or after the array, like this:
[
  {
    "title": "Social Media Integration",
    "details": "App should allow users to share content directly to Instagram and Twitter",
    "category": "features",
    "status": "confirmed"
  },
  {
    "title": "Target Audience",
    "details": "Primary users will be young adults aged 18-34 with interest in fitness",
    "category": "users",
    "status": "pending"
  }
]

Only include decisions that have been explicitly mentioned or can be directly inferred from the conversation. If there are none, respond with []."""

SUGGESTIONS_PROMPT = """Based on the conversation so far about app creation, generate 3-5 relevant follow-up questions or suggestions that would help move the conversation forward.

Focus on questions or suggestions that would:
1. Clarify ambiguous requirements
2. Explore important aspects not yet discussed
3. Deepen understanding of already mentioned features
4. Address potential gaps in the requirements

Make these suggestions short (15 words or less), natural, and conversational - as if a user might type them.

VERY IMPORTANT: Format your response EXACTLY as a JSON array of strings, with no additional text before or after the array, like this:
["What features are most important?", "Who are your target users?", "Should it work offline?"]

Do not include any explanation or additional text outside the JSON array."""

_ROLE_LABELS = {
    Role.USER: "User",
    Role.ASSISTANT: "Assistant",
    Role.SYSTEM: "System",
}


def format_conversation_text(messages: Iterable[Message]) -> str:
    """Render history as a flat "User: ...\\n\\nAssistant: ..." transcript, newest last."""
    return "\n\n".join(f"{_ROLE_LABELS[m.role]}: {m.content}" for m in messages)


def create_decision_extraction_prompt(conversation_text: str) -> str:
    return f"{DECISION_EXTRACTION_PROMPT}\n\nConversation:\n{conversation_text}"


def create_suggestions_prompt(conversation_text: str) -> str:
    return f"{SUGGESTIONS_PROMPT}\n\nConversation:\n{conversation_text}"
