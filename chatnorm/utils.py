"""General helper utilities."""

import uuid
from typing import Any, List, Mapping

from .content_utils import join_text_items


def generate_request_id() -> str:
    """Generate a backend request id."""
    return f"agent-{uuid.uuid4()}"


def generate_session_id() -> str:
    return uuid.uuid4().hex


def estimate_tokens(text: str) -> int:
    """Rough token estimate using 4 chars ~= 1 token."""
    if not text:
        return 0
    return max(1, len(text) // 4)


def estimate_contents_tokens(contents: List[Mapping[str, Any]]) -> int:
    """Estimate total tokens for the text carried by canonical contents."""
    total = 0
    for entry in contents:
        for part in entry.get("parts") or []:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                total += estimate_tokens(part["text"])
    return total


def join_system_texts(*texts: str) -> str:
    """Join non-empty instruction blocks with a blank line."""
    return "\n\n".join(text for text in texts if text)


def extract_system_instruction(messages: Any, base_instruction: str, use_context_system_prompt: bool) -> str:
    """Merge the configured instruction with the leading system messages.

    Only the contiguous run of system messages at the start of the history is
    considered, and only when context system prompts are enabled.
    """
    if not use_context_system_prompt or not isinstance(messages, list):
        return base_instruction

    system_texts = []
    for message in messages:
        if not isinstance(message, dict) or message.get("role") != "system":
            break
        text = join_text_items(message.get("content")).strip()
        if text:
            system_texts.append(text)

    return join_system_texts(base_instruction, "\n\n".join(system_texts))


def leading_system_cutoff(messages: List[Any]) -> int:
    """Index of the first message after the leading run of system messages."""
    cutoff = 0
    for index, message in enumerate(messages):
        if isinstance(message, dict) and message.get("role") == "system":
            cutoff = index + 1
        else:
            break
    return cutoff
