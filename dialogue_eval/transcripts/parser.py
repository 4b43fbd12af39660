"""
Transcript parser - assembles tokens into a TestCase.

A linear scan with one open message block at a time. Tool usages and
tool responses attach to whichever block is open when they appear.
"""

import json
from typing import Optional

from .base import ROLE_LABELS, MessageBlock, TestCase, ToolResponse, ToolUsage
from .errors import ParseError, TokenizeError
from .tokenizer import Token, tokenize, trim_blank_lines

TOOL_ARGS_MARKER = "args:"


def _reject_constant(constant: str):
    # json.loads takes NaN/Infinity; strict JSON does not
    raise ValueError(f"Invalid JSON constant: {constant}")


def parse_tool_usage(value: str, role: Optional[str] = None) -> ToolUsage:
    """
    Parse a tool-use token value of the form "<name> args: <json>".

    Splits on the first literal "args:"; the args text is validated as
    JSON but stored exactly as written (minus surrounding whitespace).

    Raises:
        ParseError: On a missing name, missing args, or invalid JSON
    """
    name, sep, args = value.partition(TOOL_ARGS_MARKER)
    name = name.strip()
    args = args.strip()

    if not sep:
        raise ParseError(
            f"Tool use must be in the form '<name> args: <json>', got: {value!r}",
            role=role,
        )
    if not name:
        raise ParseError("Tool use is missing a tool name", role=role)

    try:
        json.loads(args, parse_constant=_reject_constant)
    except ValueError as e:
        raise ParseError(
            "Tool args must be valid JSON", role=role, tool_name=name
        ) from e

    return ToolUsage(name=name, args=args)


class _BlockBuilder:
    """Parse-call state: the finished blocks and the one currently open."""

    def __init__(self) -> None:
        self.blocks: list[MessageBlock] = []
        self.current: Optional[MessageBlock] = None

    def open(self, label: str) -> None:
        self.close()
        self.current = MessageBlock(role=ROLE_LABELS[label])

    def close(self) -> None:
        if self.current is not None:
            self.current.content = trim_blank_lines(self.current.content)
            self.blocks.append(self.current)
            self.current = None

    def require_open(self, token: Token) -> MessageBlock:
        if self.current is None:
            kind = token.type.replace("_", " ")
            raise ParseError(f"Found {kind} before the first role header: {token.value!r}")
        return self.current


def parse_tokens(tokens: list[Token], name: str) -> TestCase:
    """Build a TestCase from an already tokenized transcript."""
    builder = _BlockBuilder()

    for token in tokens:
        if token.type == "role":
            builder.open(token.value)
        elif token.type == "content":
            builder.require_open(token).content = token.value
        elif token.type == "tool_use":
            block = builder.require_open(token)
            block.tool_usages.append(parse_tool_usage(token.value, role=block.role.value))
        elif token.type == "tool_response":
            block = builder.require_open(token)
            block.tool_responses.append(ToolResponse(content=token.value))

    builder.close()
    return TestCase(id=name, name=name, message_blocks=builder.blocks)


def parse(text: str, name: str) -> TestCase:
    """
    Parse transcript text into a TestCase.

    The id defaults to name; loaders may assign a different one.

    Raises:
        ParseError: On an invalid role label or a malformed tool use
    """
    try:
        tokens = tokenize(text)
    except TokenizeError as e:
        raise ParseError(str(e)) from e
    return parse_tokens(tokens, name)
