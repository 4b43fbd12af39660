"""
Exception hierarchy for transcript tokenizing, parsing and loading.
"""

from typing import Optional


class TranscriptError(Exception):
    """Base exception for transcript handling."""
    pass


class TokenizeError(TranscriptError):
    """Transcript text could not be split into tokens (bad role label)."""
    pass


class ParseError(TranscriptError):
    """
    Token sequence could not be assembled into message blocks.

    role and tool_name, when set, locate the failure inside the transcript.
    """

    def __init__(
        self,
        message: str,
        role: Optional[str] = None,
        tool_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.role = role
        self.tool_name = tool_name


class LoadError(TranscriptError):
    """A transcript file or directory could not be read."""

    def __init__(self, message: str, file_path: str):
        super().__init__(message)
        self.file_path = file_path
