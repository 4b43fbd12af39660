"""
Transcript tokenizer - splits raw transcript text into typed tokens.

Line-oriented. A line is one of:
- a role header:     "assistant: Hi there"
- a tool marker:     "tool use: search args: {...}" / "tool response: ..."
- anything else:     content of the current block

Tokens are flat; the parser assembles them into message blocks.
"""

import re
from dataclasses import dataclass
from typing import Literal, Optional

from .base import ROLE_LABELS
from .errors import TokenizeError

TokenType = Literal["role", "content", "tool_use", "tool_response"]

TOOL_USE_LABEL = "tool use"
TOOL_RESPONSE_LABEL = "tool response"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")

# One or two words before the colon; anything else (sentences, URLs'
# "//", a bare leading colon) is never taken for a role header.
_LABEL_SHAPE = re.compile(r"^[A-Za-z0-9_-]+(?: [A-Za-z0-9_-]+)?$")


@dataclass
class Token:
    """A single transcript token. Content tokens grow while tokenizing."""
    type: TokenType
    value: str


def _invalid_role_message(label: str) -> str:
    valid = ", ".join(ROLE_LABELS)
    return f"Invalid role: {label}. Valid roles are: {valid}"


def trim_blank_lines(text: str) -> str:
    """Drop leading and trailing whitespace-only lines, keep inner ones."""
    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def _tool_value(rest: str) -> str:
    """Value after the marker colon, minus a single leading space."""
    return rest[1:] if rest.startswith(" ") else rest


def tokenize(text: str) -> list[Token]:
    """
    Convert transcript text into an ordered list of tokens.

    Every role header yields a role token followed by a content token
    (possibly empty). Content lines extend the current content token,
    including lines that follow tool markers of the same block.

    Raises:
        TokenizeError: If a line starts with an unknown role label
    """
    tokens: list[Token] = []
    content: Optional[Token] = None

    for line in _LINE_BREAK.split(text):
        label, sep, rest = line.lstrip().partition(":")
        label = label.strip()

        if sep and label in (TOOL_USE_LABEL, TOOL_RESPONSE_LABEL):
            token_type = "tool_use" if label == TOOL_USE_LABEL else "tool_response"
            tokens.append(Token(type=token_type, value=_tool_value(rest)))
            continue

        if sep and label in ROLE_LABELS:
            tokens.append(Token(type="role", value=label))
            content = Token(type="content", value=rest.strip())
            tokens.append(content)
            continue

        if sep and _LABEL_SHAPE.match(label) and (not rest or rest[0].isspace()):
            raise TokenizeError(_invalid_role_message(label))

        if content is None:
            if not line.strip():
                continue
            # Orphan content; the parser reports it.
            content = Token(type="content", value=line)
            tokens.append(content)
            continue

        content.value = f"{content.value}\n{line}"

    for token in tokens:
        if token.type == "content":
            token.value = trim_blank_lines(token.value)

    return tokens
