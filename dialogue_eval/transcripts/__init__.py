"""
Transcript format: tokenizer, parser, loader and test case models.

Transcript files look like:

    user: can you search the weather in new york?
    assistant: sure
    tool use: weather_search args: {"location": "New York"}
    tool response: 59 °F, rain
    assistant: It's rainy in New York today.
"""

from .base import (
    FileError,
    LoadResult,
    MessageBlock,
    Role,
    TestCase,
    ToolResponse,
    ToolUsage,
)
from .errors import LoadError, ParseError, TokenizeError, TranscriptError
from .loader import TranscriptLoader
from .parser import parse
from .tokenizer import Token, tokenize

__all__ = [
    "FileError",
    "LoadError",
    "LoadResult",
    "MessageBlock",
    "ParseError",
    "Role",
    "TestCase",
    "Token",
    "TokenizeError",
    "ToolResponse",
    "ToolUsage",
    "TranscriptError",
    "TranscriptLoader",
    "parse",
    "tokenize",
]
