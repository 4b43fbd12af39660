"""
Scoring services - compare an agent response with the expected text.

The executor only depends on the ScoringService protocol. Semantic
backends (embedding similarity, LLM judges) plug in behind it.
"""

from typing import Protocol


class ScoringService(Protocol):
    """Contract for response scorers."""

    async def score_strings(self, actual: str, expected: str) -> float:
        """
        Score how well actual matches expected.

        Returns:
            Similarity in [0, 1]. Not necessarily deterministic for a
            remote semantic backend.
        """
        ...


def _normalize(text: str) -> str:
    return " ".join(text.split())


class ExactMatchScoringService:
    """1.0 when the texts match after whitespace normalisation, else 0.0."""

    async def score_strings(self, actual: str, expected: str) -> float:
        return 1.0 if _normalize(actual) == _normalize(expected) else 0.0
