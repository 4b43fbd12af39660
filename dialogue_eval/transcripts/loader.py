"""
TranscriptLoader - loads a directory of transcript files as test cases.

One test case per file. Loading never raises: a missing directory,
an unreadable file, or a transcript that fails to parse is recorded
in LoadResult.errors.
"""

import logging
from pathlib import Path
from typing import Iterable, Union

from dialogue_eval.config import DEFAULT_TRANSCRIPT_EXTENSIONS

from .base import FileError, LoadResult, TestCase
from .errors import LoadError, ParseError, TranscriptError
from .parser import parse

logger = logging.getLogger(__name__)


def _error_message(e: TranscriptError) -> str:
    """Error text for a LoadResult entry, with the block role and tool name when known."""
    message = str(e)
    if isinstance(e, ParseError):
        context = ", ".join(
            f"{label}: {value}"
            for label, value in (("role", e.role), ("tool", e.tool_name))
            if value
        )
        if context:
            message = f"{message} ({context})"
    return message


class TranscriptLoader:
    """
    Load transcript test cases from files.

    Files are taken in name order and filtered by extension. The test
    case name (and id) is the file name without its extension.
    """

    def __init__(self, extensions: Iterable[str] = DEFAULT_TRANSCRIPT_EXTENSIONS):
        self.extensions = tuple(ext.lower() for ext in extensions)

    def load_file(self, file_path: Union[str, Path]) -> TestCase:
        """
        Load a single transcript file.

        Raises:
            LoadError: If the file can't be read
            ParseError: If the transcript is malformed
        """
        path = Path(file_path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise LoadError(f"Failed to read file: {e}", file_path=str(path)) from e
        return parse(text, path.stem)

    def list_files(self, directory: Path) -> list[Path]:
        """Transcript files in a directory, sorted by name."""
        return sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() in self.extensions
        )

    def load_from_directory(
        self,
        directory_path: Union[str, Path],
        stop_on_error: bool = True,
    ) -> LoadResult:
        """
        Load every transcript file in a directory.

        Args:
            directory_path: Directory containing transcript files
            stop_on_error: Stop at the first failing file (test cases
                loaded before it are kept); otherwise collect all errors

        Returns:
            LoadResult with parsed test cases and per-file errors
        """
        result = LoadResult()
        directory = Path(directory_path)

        if not directory.is_dir():
            message = (
                f"Directory not found: {directory_path}"
                if not directory.exists()
                else f"Not a directory: {directory_path}"
            )
            logger.warning(message)
            result.errors.append(FileError(file_path=str(directory_path), message=message))
            return result

        try:
            files = self.list_files(directory)
        except OSError as e:
            message = f"Failed to read directory: {e}"
            logger.warning(message)
            result.errors.append(FileError(file_path=str(directory_path), message=message))
            return result

        for path in files:
            try:
                result.test_cases.append(self.load_file(path))
            except TranscriptError as e:
                logger.warning(f"Failed to load {path}: {e}")
                result.errors.append(FileError(file_path=str(path), message=_error_message(e)))
                if stop_on_error:
                    break

        logger.info(
            f"Loaded {len(result.test_cases)} test cases from {directory_path} "
            f"({len(result.errors)} errors)"
        )
        return result
