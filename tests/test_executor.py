"""
Tests for EvaluationExecutor - per-case execution, batch isolation,
bounded concurrency and report aggregation.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from dialogue_eval.agents.base import AgentInput, AgentResponse
from dialogue_eval.config import EvaluationConfig
from dialogue_eval.executor import (
    MIN_BLOCKS_ERROR,
    EvaluationExecutor,
    EvaluationReport,
    TestCaseEvaluation,
    chunked,
)
from dialogue_eval.transcripts import parse


def make_executor(scorer, threshold: float = 0.7, max_concurrency: int = 5) -> EvaluationExecutor:
    return EvaluationExecutor(
        scorer, EvaluationConfig(threshold=threshold, max_concurrency=max_concurrency)
    )


class TestExecuteTestCase:
    """Tests for execute_test_case()."""

    @pytest.mark.asyncio
    async def test_matching_response_passes(self, echo_agent, exact_scorer, simple_test_case):
        """'user: hi / assistant: hello' against an echo agent scores 1.0."""
        executor = make_executor(exact_scorer)

        result = await executor.execute_test_case(echo_agent, simple_test_case)

        assert result.success is True
        assert result.score == 1.0
        assert result.error is None
        assert result.response == "hello"
        assert result.test_case_id == "simple"
        assert result.test_case is simple_test_case

    @pytest.mark.asyncio
    async def test_agent_receives_all_but_last_block(self, echo_agent, mock_scorer):
        test_case = parse("system: be brief\nuser: hi\nhuman agent: hey\nassistant: hello", "roles")
        executor = make_executor(mock_scorer)

        await executor.execute_test_case(echo_agent, test_case)

        sent: AgentInput = echo_agent.send_input.call_args.args[0]
        assert [(m.role, m.content) for m in sent.messages] == [
            ("system", "be brief"),
            ("user", "hi"),
            ("human_agent", "hey"),
        ]

    @pytest.mark.asyncio
    async def test_scores_trimmed_strings(self, mock_scorer, simple_test_case):
        agent = MagicMock()
        agent.send_input = AsyncMock(return_value=AgentResponse(response="  hello \n"))
        executor = make_executor(mock_scorer)

        result = await executor.execute_test_case(agent, simple_test_case)

        mock_scorer.score_strings.assert_awaited_once_with("hello", "hello")
        assert result.response == "  hello \n"

    @pytest.mark.asyncio
    async def test_below_threshold_fails(self, echo_agent, mock_scorer, simple_test_case):
        mock_scorer.score_strings.return_value = 0.69
        executor = make_executor(mock_scorer, threshold=0.7)

        result = await executor.execute_test_case(echo_agent, simple_test_case)

        assert result.success is False
        assert result.score == 0.69
        assert result.error == "Response mismatch"
        assert result.response == "hello"

    @pytest.mark.asyncio
    async def test_score_equal_to_threshold_passes(self, echo_agent, mock_scorer, simple_test_case):
        mock_scorer.score_strings.return_value = 0.7
        executor = make_executor(mock_scorer, threshold=0.7)

        result = await executor.execute_test_case(echo_agent, simple_test_case)

        assert result.success is True

    @pytest.mark.asyncio
    async def test_single_block_case_fails(self, echo_agent, mock_scorer, make_test_case):
        executor = make_executor(mock_scorer)

        result = await executor.execute_test_case(echo_agent, make_test_case("one", blocks=1))

        assert result.success is False
        assert result.score == 0
        assert result.error == MIN_BLOCKS_ERROR
        assert result.error == "Test case must have at least 2 message blocks: input and expected output"
        echo_agent.send_input.assert_not_called()

    @pytest.mark.asyncio
    async def test_agent_error_captured(self, mock_scorer, simple_test_case):
        agent = MagicMock()
        agent.send_input = AsyncMock(side_effect=RuntimeError("Agent unavailable"))
        executor = make_executor(mock_scorer)

        result = await executor.execute_test_case(agent, simple_test_case)

        assert result.success is False
        assert result.score == 0
        assert result.response == ""
        assert result.error == "Agent unavailable"

    @pytest.mark.asyncio
    async def test_scoring_error_captured(self, echo_agent, simple_test_case):
        scorer = MagicMock()
        scorer.score_strings = AsyncMock(side_effect=ConnectionError("embedding backend down"))
        executor = make_executor(scorer)

        result = await executor.execute_test_case(echo_agent, simple_test_case)

        assert result.success is False
        assert result.error == "embedding backend down"

    @pytest.mark.asyncio
    async def test_out_of_range_score_fails(self, echo_agent, mock_scorer, simple_test_case):
        mock_scorer.score_strings.return_value = 1.5
        executor = make_executor(mock_scorer)

        result = await executor.execute_test_case(echo_agent, simple_test_case)

        assert result.success is False
        assert "out of range" in result.error

    @pytest.mark.asyncio
    async def test_execution_time_covers_agent_and_scoring(self, mock_scorer, simple_test_case):
        async def slow_reply(agent_input):
            await asyncio.sleep(0.01)
            return AgentResponse(response="hello")

        async def slow_score(actual, expected):
            await asyncio.sleep(0.01)
            return 1.0

        agent = MagicMock()
        agent.send_input = slow_reply
        mock_scorer.score_strings = slow_score
        executor = make_executor(mock_scorer)

        result = await executor.execute_test_case(agent, simple_test_case)

        assert result.execution_time >= 20

    @pytest.mark.asyncio
    async def test_evaluation_is_immutable(self, echo_agent, exact_scorer, simple_test_case):
        result = await make_executor(exact_scorer).execute_test_case(echo_agent, simple_test_case)
        with pytest.raises(Exception):
            result.success = False


class TestExecuteTestCases:
    """Tests for sequential execute_test_cases()."""

    @pytest.mark.asyncio
    async def test_results_in_input_order(self, echo_agent, mock_scorer, make_test_case):
        cases = [make_test_case(f"case-{i}") for i in range(4)]

        results = await make_executor(mock_scorer).execute_test_cases(echo_agent, cases)

        assert [r.test_case_id for r in results] == ["case-0", "case-1", "case-2", "case-3"]

    @pytest.mark.asyncio
    async def test_one_bad_case_does_not_abort_batch(self, echo_agent, mock_scorer, make_test_case):
        cases = [make_test_case("ok-1"), make_test_case("bad", blocks=1), make_test_case("ok-2")]

        results = await make_executor(mock_scorer).execute_test_cases(echo_agent, cases)

        assert [r.success for r in results] == [True, False, True]

    @pytest.mark.asyncio
    async def test_escaping_error_converted(self, echo_agent, mock_scorer, make_test_case, monkeypatch):
        """An exception escaping execute_test_case is still isolated per case."""
        executor = make_executor(mock_scorer)
        original = executor.execute_test_case

        async def flaky(agent, test_case):
            if test_case.id == "boom":
                raise RuntimeError("unexpected")
            return await original(agent, test_case)

        monkeypatch.setattr(executor, "execute_test_case", flaky)

        results = await executor.execute_test_cases(
            echo_agent, [make_test_case("boom"), make_test_case("fine")]
        )

        assert results[0].success is False
        assert results[0].error == "unexpected"
        assert results[0].execution_time == 0
        assert results[1].success is True

    @pytest.mark.asyncio
    async def test_orchestration_fault_propagates(self, echo_agent, mock_scorer, make_test_case):
        def broken_cases():
            yield make_test_case("first")
            raise RuntimeError("corpus iterator broke")

        with pytest.raises(RuntimeError, match="corpus iterator broke"):
            await make_executor(mock_scorer).execute_test_cases(echo_agent, broken_cases())

    @pytest.mark.asyncio
    async def test_empty_input(self, echo_agent, mock_scorer):
        assert await make_executor(mock_scorer).execute_test_cases(echo_agent, []) == []


class TestExecuteInParallel:
    """Tests for bounded-concurrency execute_test_cases_in_parallel()."""

    @staticmethod
    def tracking_agent(delays: dict[str, float]):
        """Agent recording peak concurrency; reply delay keyed by first message."""
        state = {"current": 0, "peak": 0}

        async def send_input(agent_input):
            state["current"] += 1
            state["peak"] = max(state["peak"], state["current"])
            try:
                key = agent_input.messages[0].content.split(" ")[0]
                await asyncio.sleep(delays.get(key, 0.01))
                return AgentResponse(response="hello")
            finally:
                state["current"] -= 1

        agent = MagicMock()
        agent.send_input = send_input
        return agent, state

    @pytest.mark.asyncio
    async def test_respects_concurrency_limit(self, mock_scorer, make_test_case):
        agent, state = self.tracking_agent({})
        cases = [make_test_case(f"c{i}") for i in range(7)]

        results = await make_executor(mock_scorer).execute_test_cases_in_parallel(agent, cases, 3)

        assert len(results) == 7
        assert state["peak"] <= 3
        assert state["peak"] > 1

    @pytest.mark.asyncio
    async def test_order_preserved_regardless_of_completion(self, mock_scorer, make_test_case):
        """Earlier cases finish last, output still follows input order."""
        delays = {"c0": 0.05, "c1": 0.03, "c2": 0.01, "c3": 0.04, "c4": 0.0}
        agent, _ = self.tracking_agent(delays)
        cases = [make_test_case(f"c{i}") for i in range(5)]

        results = await make_executor(mock_scorer).execute_test_cases_in_parallel(agent, cases, 3)

        assert [r.test_case_id for r in results] == ["c0", "c1", "c2", "c3", "c4"]

    @pytest.mark.asyncio
    async def test_chunks_run_sequentially(self, mock_scorer, make_test_case):
        """No case from the next chunk starts before the current chunk finishes."""
        events = []

        async def send_input(agent_input):
            case_id = agent_input.messages[0].content.split(" ")[0]
            events.append(("start", case_id))
            await asyncio.sleep(0.01 if case_id != "c0" else 0.03)
            events.append(("end", case_id))
            return AgentResponse(response="hello")

        agent = MagicMock()
        agent.send_input = send_input
        cases = [make_test_case(f"c{i}") for i in range(4)]

        await make_executor(mock_scorer).execute_test_cases_in_parallel(agent, cases, 2)

        first_chunk_done = max(events.index(("end", "c0")), events.index(("end", "c1")))
        second_chunk_start = min(events.index(("start", "c2")), events.index(("start", "c3")))
        assert first_chunk_done < second_chunk_start

    @pytest.mark.asyncio
    async def test_failures_isolated_within_chunk(self, mock_scorer, make_test_case):
        async def send_input(agent_input):
            if agent_input.messages[0].content.startswith("bad"):
                raise RuntimeError("agent exploded")
            return AgentResponse(response="hello")

        agent = MagicMock()
        agent.send_input = send_input
        cases = [make_test_case("ok1"), make_test_case("bad"), make_test_case("ok2")]

        results = await make_executor(mock_scorer).execute_test_cases_in_parallel(agent, cases, 3)

        assert [r.success for r in results] == [True, False, True]
        assert results[1].error == "agent exploded"

    @pytest.mark.asyncio
    async def test_defaults_to_configured_concurrency(self, mock_scorer, make_test_case):
        agent, state = self.tracking_agent({})
        executor = make_executor(mock_scorer, max_concurrency=2)

        await executor.execute_test_cases_in_parallel(agent, [make_test_case(f"c{i}") for i in range(5)])

        assert state["peak"] <= 2

    @pytest.mark.asyncio
    async def test_invalid_concurrency(self, echo_agent, mock_scorer, make_test_case):
        with pytest.raises(ValueError, match="max_concurrency"):
            await make_executor(mock_scorer).execute_test_cases_in_parallel(
                echo_agent, [make_test_case("c")], 0
            )


class TestChunked:
    def test_last_chunk_smaller(self):
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty(self):
        assert chunked([], 3) == []


class TestDirectoryExecution:
    """Tests for the directory entry points."""

    @pytest.mark.asyncio
    async def test_evaluate_from_directory(self, echo_agent, exact_scorer, tmp_path):
        (tmp_path / "a_pass.txt").write_text("user: hi\nassistant: hello", encoding="utf-8")
        (tmp_path / "b_fail.txt").write_text("user: hi\nuser: again\nassistant: goodbye", encoding="utf-8")

        report = await make_executor(exact_scorer).evaluate_from_directory(echo_agent, tmp_path)

        assert report.total_tests == 2
        assert report.passed_tests == 1
        assert report.failed_tests == 1
        assert report.pass_rate == 0.5
        assert report.duration >= 0

        first, second = report.results
        assert first.test_case.id == "a_pass"
        assert first.passed is True
        assert first.score == 1.0
        assert first.response == "hello"
        assert second.test_case.input == "hi\nagain"
        assert second.test_case.expected == "goodbye"
        assert second.error == "Response mismatch"

    @pytest.mark.asyncio
    async def test_evaluate_missing_directory(self, echo_agent, exact_scorer, tmp_path):
        report = await make_executor(exact_scorer).evaluate_from_directory(
            echo_agent, tmp_path / "missing"
        )

        assert report.total_tests == 0
        assert report.pass_rate == 0
        assert report.results == []

    @pytest.mark.asyncio
    async def test_evaluate_skips_unparseable_files(self, echo_agent, exact_scorer, mixed_transcript_dir):
        report = await make_executor(exact_scorer).evaluate_from_directory(
            echo_agent, mixed_transcript_dir, stop_on_error=False
        )

        assert [r.test_case.id for r in report.results] == ["a_valid1", "c_valid2"]

    @pytest.mark.asyncio
    async def test_evaluate_loaded_test_cases(self, echo_agent, exact_scorer, make_test_case):
        test_cases = [make_test_case("c1"), make_test_case("c2", expected="bye"), make_test_case("c3", blocks=1)]

        report = await make_executor(exact_scorer).evaluate_test_cases(echo_agent, test_cases)

        assert [r.test_case.id for r in report.results] == ["c1", "c2", "c3"]
        assert [r.passed for r in report.results] == [True, False, False]
        assert report.total_tests == 3
        assert report.passed_tests == 1
        assert report.duration >= 0

    @pytest.mark.asyncio
    async def test_execute_from_directory(self, echo_agent, mock_scorer, transcript_dir):
        results = await make_executor(mock_scorer).execute_test_cases_from_directory(
            echo_agent, transcript_dir
        )

        assert [r.test_case_id for r in results] == ["test1", "test2"]

    @pytest.mark.asyncio
    async def test_execute_from_empty_directory(self, echo_agent, mock_scorer, tmp_path):
        results = await make_executor(mock_scorer).execute_test_cases_from_directory(
            echo_agent, tmp_path
        )
        assert results == []
        echo_agent.send_input.assert_not_called()


class TestEvaluationReport:
    """Tests for EvaluationReport.from_evaluations()."""

    def test_empty(self):
        report = EvaluationReport.from_evaluations([], duration=0.0)
        assert report.total_tests == 0
        assert report.pass_rate == 0.0

    def test_case_without_blocks_projects_empty_strings(self, make_test_case):
        evaluation = TestCaseEvaluation(
            test_case_id="empty",
            success=False,
            score=0.0,
            execution_time=0.0,
            error=MIN_BLOCKS_ERROR,
            test_case=make_test_case("empty", blocks=0),
        )

        report = EvaluationReport.from_evaluations([evaluation], duration=1.0)

        assert report.results[0].test_case.input == ""
        assert report.results[0].test_case.expected == ""
        assert report.failed_tests == 1
