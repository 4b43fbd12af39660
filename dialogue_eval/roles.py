"""
Role mapping between transcript roles and chat-completion API roles.
"""

import logging

from dialogue_eval.transcripts.base import Role

logger = logging.getLogger(__name__)

_TO_OPENAI: dict[Role, str] = {
    Role.USER: "user",
    Role.ASSISTANT: "assistant",
    Role.HUMAN_AGENT: "assistant",
    Role.DEVELOPER: "developer",
    Role.SYSTEM: "system",
    Role.TOOL: "function",
}

_FROM_OPENAI: dict[str, Role] = {
    "user": Role.USER,
    "assistant": Role.ASSISTANT,
    "system": Role.SYSTEM,
    "developer": Role.DEVELOPER,
    "function": Role.TOOL,
    "tool": Role.TOOL,
}


def to_openai_role(role: Role | str) -> str:
    """Map a transcript role to its chat API role. Unknown roles map to user."""
    try:
        return _TO_OPENAI[Role(role)]
    except ValueError:
        logger.warning(f"Unrecognized role: {role}, defaulting to user")
        return "user"


def from_openai_role(role: str) -> Role:
    """Map a chat API role back to a transcript role. Unknown roles map to user."""
    mapped = _FROM_OPENAI.get(role.lower())
    if mapped is None:
        logger.warning(f"Unrecognized role: {role}, defaulting to user")
        return Role.USER
    return mapped
