"""Shared test fixtures for dialogue-eval tests."""

import pytest
from unittest.mock import AsyncMock, MagicMock


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

SIMPLE_TRANSCRIPT = "user: hi\nassistant: hello"

WEATHER_TRANSCRIPT = """user: hello
assistant: hello how can I help you?
user: can you please search the weather in new york for me?
assistant: sure
tool use: weather_search args: {"location": "New York"}
tool response: New York, NY, USA: 59 °F Precipitation: 80% Humidity: 96% Wind: 2 mph
assistant: It's rainy in New York, NY, today, with a temperature of 59°F."""

MOCK_COMPLETION_RESPONSE = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "created": 1699000000,
    "model": "test-model",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "hello"},
            "finish_reason": "stop",
        }
    ],
}


# ─────────────────────────────────────────────────────────────────────
# FIXTURES - Collaborators
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def echo_agent():
    """Agent that always replies 'hello'."""
    from dialogue_eval.agents.base import AgentResponse

    agent = MagicMock()
    agent.send_input = AsyncMock(return_value=AgentResponse(response="hello"))
    return agent


@pytest.fixture
def exact_scorer():
    """Real exact-match scoring service."""
    from dialogue_eval.scoring import ExactMatchScoringService
    return ExactMatchScoringService()


@pytest.fixture
def mock_scorer():
    """Scoring service returning a fixed 1.0."""
    scorer = MagicMock()
    scorer.score_strings = AsyncMock(return_value=1.0)
    return scorer


# ─────────────────────────────────────────────────────────────────────
# FIXTURES - Data Models
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def simple_test_case():
    """Two-block test case: user 'hi', expected assistant 'hello'."""
    from dialogue_eval.transcripts import parse
    return parse(SIMPLE_TRANSCRIPT, "simple")


@pytest.fixture
def make_test_case():
    """Factory for n-block test cases with a given id."""
    from dialogue_eval.transcripts.base import MessageBlock, Role, TestCase

    def _make(case_id: str, blocks: int = 2, expected: str = "hello") -> TestCase:
        message_blocks = [
            MessageBlock(role=Role.USER, content=f"{case_id} turn {i}")
            for i in range(blocks - 1)
        ]
        if blocks > 0:
            message_blocks.append(MessageBlock(role=Role.ASSISTANT, content=expected))
        return TestCase(id=case_id, name=case_id, message_blocks=message_blocks)

    return _make


# ─────────────────────────────────────────────────────────────────────
# FIXTURES - Temporary Files
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def transcript_dir(tmp_path):
    """Directory with two valid transcripts."""
    directory = tmp_path / "cases"
    directory.mkdir()
    (directory / "test1.txt").write_text("user: Hello\nassistant: Hi there", encoding="utf-8")
    (directory / "test2.txt").write_text("user: How are you?\nassistant: I'm good", encoding="utf-8")
    return directory


@pytest.fixture
def mixed_transcript_dir(tmp_path):
    """Directory with a failing transcript between two valid ones."""
    directory = tmp_path / "mixed"
    directory.mkdir()
    (directory / "a_valid1.txt").write_text("user: Hello\nassistant: Hi there", encoding="utf-8")
    (directory / "b_invalid.txt").write_text("invalid: content", encoding="utf-8")
    (directory / "c_valid2.txt").write_text("user: How are you?\nassistant: I'm good", encoding="utf-8")
    return directory


@pytest.fixture
def mock_completion_response():
    """Return mock /chat/completions response."""
    return MOCK_COMPLETION_RESPONSE.copy()
