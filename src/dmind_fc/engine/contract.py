"""
Developer-prompt contract enforcement.

Some model profiles require a canonical developer message at the head of
every conversation. enforce_developer_prompt() checks a transcript against a
profile's policy and, when it does not comply, strips every developer turn and
prepends the canonical prompt. The same gate is applied on the direct
generation path and through the chat-completions client.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence, TypeVar

from dmind_fc.core.datamodels import Message
from dmind_fc.engine.profiles import DeveloperPromptPolicy

logger = logging.getLogger(__name__)

DEFAULT_REQUIRED_SNIPPETS = [
    "You may use only two tools: SEARCH_TOKEN and EXECUTE_SWAP.",
    "<start_function_call>call:TOOL_NAME{...JSON...}<end_function_call>",
    "If no function call is needed, output normal text without wrappers.",
]

M = TypeVar("M")


def normalize_prompt_text(text: str) -> str:
    """Normalize whitespace: CRLF to LF, trim each line, drop blank lines."""
    lines = (line.strip() for line in text.replace("\r\n", "\n").split("\n"))
    return "\n".join(line for line in lines if line)


def is_developer_prompt_compliant(content: str, policy: DeveloperPromptPolicy) -> bool:
    """Check a developer message body against a policy.

    The body complies when it equals the canonical prompt after normalization,
    or when it contains every required snippet.
    """
    normalized = normalize_prompt_text(content)
    if normalized == normalize_prompt_text(policy.canonical_prompt):
        return True

    snippets = policy.required_snippets
    if snippets is None:
        snippets = DEFAULT_REQUIRED_SNIPPETS
    return all(normalize_prompt_text(snippet) in normalized for snippet in snippets)


def _field(message: Any, name: str) -> Any:
    if isinstance(message, Mapping):
        return message.get(name)
    return getattr(message, name, None)


def _has_compliant_prompt(messages: Sequence[Any], policy: DeveloperPromptPolicy) -> bool:
    developer_count = sum(1 for msg in messages if _field(msg, "role") == "developer")
    if developer_count != 1:
        return False
    if _field(messages[0], "role") != "developer":
        return False

    content = _field(messages[0], "content")
    if not isinstance(content, str):
        return False
    return is_developer_prompt_compliant(content, policy)


def _developer_message(template: Any, prompt: str) -> Any:
    """Build a developer message of the same kind as *template*."""
    if isinstance(template, Mapping):
        return {"role": "developer", "content": prompt}
    if template is not None and hasattr(type(template), "model_validate"):
        return type(template).model_validate({"role": "developer", "content": prompt})
    return Message(role="developer", content=prompt)


def enforce_developer_prompt(
    messages: list[M],
    policy: DeveloperPromptPolicy | None = None,
) -> list[M]:
    """Ensure a transcript opens with the policy's developer prompt.

    Args:
        messages: Conversation turns, as Message models or plain dicts.
        policy: The profile's prompt policy. None means no contract.

    Returns:
        *messages* itself when it already complies (or there is no policy),
        otherwise a new list with developer turns removed and the canonical
        prompt prepended. The input list is never mutated.
    """
    if policy is None:
        return messages

    if messages and _has_compliant_prompt(messages, policy):
        return messages

    template = messages[0] if messages else None
    cleaned = [msg for msg in messages if _field(msg, "role") != "developer"]
    logger.debug(
        "Injecting canonical developer prompt (dropped %d developer messages)",
        len(messages) - len(cleaned),
    )
    return [_developer_message(template, policy.canonical_prompt), *cleaned]
