"""
EvaluationExecutor - runs transcript test cases against an agent.

For each test case the input conversation (all blocks but the last) is
sent to the agent and the reply is scored against the last block.

Failure isolation:
- Per-case failures (agent errors, scoring errors, malformed cases)
  become failed TestCaseEvaluations; they never abort a batch
- Only a fault in the orchestration itself propagates to the caller

Bounded concurrency: test cases run in consecutive chunks of
max_concurrency. A chunk's cases run concurrently and the whole chunk
finishes before the next starts, so results keep input order.
"""

import asyncio
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Union, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from dialogue_eval.agents.base import AgentInput, AgentMessage
from dialogue_eval.config import EvaluationConfig
from dialogue_eval.transcripts.base import TestCase
from dialogue_eval.transcripts.loader import TranscriptLoader

if TYPE_CHECKING:
    from dialogue_eval.agents.base import Agent
    from dialogue_eval.scoring import ScoringService

logger = logging.getLogger(__name__)

MIN_BLOCKS_ERROR = "Test case must have at least 2 message blocks: input and expected output"
MISMATCH_ERROR = "Response mismatch"


class TestCaseEvaluation(BaseModel):
    """
    Outcome of running one test case.

    Immutable: created once when the case finishes.
    """
    __test__ = False  # not a pytest class
    model_config = ConfigDict(frozen=True)

    test_case_id: str
    success: bool
    score: float = Field(ge=0.0, le=1.0)
    execution_time: float  # milliseconds
    response: str = ""
    error: Optional[str] = None
    test_case: TestCase


class TestCaseSummary(BaseModel):
    """Test case as shown in a report: flattened input and expectation."""
    __test__ = False
    model_config = ConfigDict(frozen=True)

    id: str
    input: str
    expected: str


class EvaluationResult(BaseModel):
    """Per-case line of an EvaluationReport."""
    model_config = ConfigDict(frozen=True)

    test_case: TestCaseSummary
    score: float
    passed: bool
    error: Optional[str] = None
    timestamp: datetime
    response: str = ""


class EvaluationReport(BaseModel):
    """Aggregate over one evaluation run."""
    model_config = ConfigDict(frozen=True)

    total_tests: int
    passed_tests: int
    failed_tests: int
    pass_rate: float = Field(ge=0.0, le=1.0)
    results: list[EvaluationResult]
    timestamp: datetime
    duration: float  # seconds

    @classmethod
    def from_evaluations(
        cls, evaluations: list[TestCaseEvaluation], duration: float
    ) -> "EvaluationReport":
        """Fold per-case evaluations into counts and report lines."""
        total = len(evaluations)
        passed = sum(1 for e in evaluations if e.success)
        now = datetime.now()
        return cls(
            total_tests=total,
            passed_tests=passed,
            failed_tests=total - passed,
            pass_rate=passed / total if total > 0 else 0.0,
            results=[
                EvaluationResult(
                    test_case=TestCaseSummary(
                        id=e.test_case_id,
                        input=e.test_case.input_text,
                        expected=e.test_case.expected_text,
                    ),
                    score=e.score,
                    passed=e.success,
                    error=e.error,
                    timestamp=now,
                    response=e.response,
                )
                for e in evaluations
            ],
            timestamp=now,
            duration=duration,
        )


def _failed_evaluation(
    test_case: TestCase, error: str, execution_time: float = 0.0
) -> TestCaseEvaluation:
    return TestCaseEvaluation(
        test_case_id=test_case.id,
        success=False,
        score=0.0,
        execution_time=execution_time,
        response="",
        error=error,
        test_case=test_case,
    )


def _error_message(e: BaseException) -> str:
    return str(e) or type(e).__name__


def chunked(items: list, size: int) -> list[list]:
    """Split items into consecutive chunks of size (last may be shorter)."""
    return [items[i:i + size] for i in range(0, len(items), size)]


class EvaluationExecutor:
    """
    Executes test cases against an agent and scores the replies.

    Dependency injection: the scoring service is passed in; the agent is
    passed per call. Both are shared by concurrently running cases.

    Usage:
        executor = EvaluationExecutor(scoring_service, EvaluationConfig())
        report = await executor.evaluate_from_directory(agent, "tests/cases")
    """

    def __init__(
        self,
        scoring_service: "ScoringService",
        config: Optional[EvaluationConfig] = None,
        loader: Optional[TranscriptLoader] = None,
    ):
        config = config or EvaluationConfig()
        self.scoring_service = scoring_service
        self.threshold = config.threshold
        self.max_concurrency = config.max_concurrency
        self.loader = loader or TranscriptLoader()

    async def execute_test_case(
        self, agent: "Agent", test_case: TestCase
    ) -> TestCaseEvaluation:
        """
        Execute a single test case.

        Never raises for ordinary errors: any failure is returned as an
        evaluation with success=False, score=0 and the error message.
        """
        start_time = time.perf_counter()
        try:
            if len(test_case.message_blocks) < 2:
                raise ValueError(MIN_BLOCKS_ERROR)

            agent_input = AgentInput(messages=[
                AgentMessage(role=block.role.value, content=block.content)
                for block in test_case.input_blocks
            ])
            expected = test_case.expected_text

            reply = await agent.send_input(agent_input)
            score = await self.scoring_service.score_strings(
                reply.response.strip(), expected.strip()
            )
            score = float(score)
            if not 0.0 <= score <= 1.0:
                raise ValueError(f"Score out of range [0, 1]: {score}")

            execution_time = (time.perf_counter() - start_time) * 1000
            passed = score >= self.threshold

            return TestCaseEvaluation(
                test_case_id=test_case.id,
                success=passed,
                score=score,
                execution_time=execution_time,
                response=reply.response,
                error=None if passed else MISMATCH_ERROR,
                test_case=test_case,
            )

        except Exception as e:
            execution_time = (time.perf_counter() - start_time) * 1000
            logger.debug(f"Test case {test_case.id} failed: {e}")
            return _failed_evaluation(test_case, _error_message(e), execution_time)

    async def _execute_isolated(
        self, agent: "Agent", test_case: TestCase
    ) -> TestCaseEvaluation:
        """execute_test_case, with anything that still escapes recorded as a failure."""
        try:
            return await self.execute_test_case(agent, test_case)
        except Exception as e:
            logger.error(f"Error executing test case {test_case.id}: {_error_message(e)}")
            return _failed_evaluation(test_case, _error_message(e))

    async def execute_test_cases(
        self, agent: "Agent", test_cases: list[TestCase]
    ) -> list[TestCaseEvaluation]:
        """
        Execute test cases one after another.

        Returns:
            One evaluation per test case, in input order

        Raises:
            Exception: Only for faults in the loop itself (not per case)
        """
        results: list[TestCaseEvaluation] = []
        try:
            for test_case in test_cases:
                results.append(await self._execute_isolated(agent, test_case))
        except Exception as e:
            logger.error(f"Fatal error in execute_test_cases: {_error_message(e)}")
            raise
        return results

    async def execute_test_cases_in_parallel(
        self,
        agent: "Agent",
        test_cases: list[TestCase],
        max_concurrency: Optional[int] = None,
    ) -> list[TestCaseEvaluation]:
        """
        Execute test cases with at most max_concurrency in flight.

        Chunks run sequentially; cases within a chunk run concurrently.
        There is no per-case timeout: a hung agent call holds its chunk.

        Returns:
            One evaluation per test case, in input order
        """
        limit = self.max_concurrency if max_concurrency is None else max_concurrency
        if limit < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {limit}")

        results: list[TestCaseEvaluation] = []
        logger.info(
            f"Starting parallel execution of {len(test_cases)} test cases "
            f"with concurrency {limit}"
        )

        for chunk in chunked(test_cases, limit):
            logger.debug(
                f"Executing chunk of {len(chunk)} test cases "
                f"({len(results)}/{len(test_cases)} completed)"
            )
            # gather keeps positional order regardless of completion order
            chunk_results = await asyncio.gather(
                *(self._execute_isolated(agent, test_case) for test_case in chunk)
            )
            results.extend(chunk_results)

        logger.info(f"Completed parallel execution of {len(test_cases)} test cases")
        return results

    async def execute_test_cases_from_directory(
        self,
        agent: "Agent",
        directory_path: Union[str, Path],
        stop_on_error: bool = True,
    ) -> list[TestCaseEvaluation]:
        """Load a transcript directory and execute it sequentially."""
        logger.info(f"Loading test cases from directory: {directory_path}")
        load_result = self.loader.load_from_directory(directory_path, stop_on_error)

        if load_result.errors:
            logger.warning(
                f"Encountered {len(load_result.errors)} errors while loading test cases: "
                + "; ".join(f"{err.file_path}: {err.message}" for err in load_result.errors)
            )

        if not load_result.test_cases:
            logger.warning("No test cases were loaded successfully")
            return []

        logger.info(f"Successfully loaded {len(load_result.test_cases)} test cases")
        return await self.execute_test_cases(agent, load_result.test_cases)

    async def evaluate_from_directory(
        self,
        agent: "Agent",
        directory_path: Union[str, Path],
        stop_on_error: bool = True,
    ) -> EvaluationReport:
        """
        Load a transcript directory, run it in parallel and build a report.

        Files that fail to load are left out of the report; the loader
        logs them.
        """
        start_time = time.perf_counter()

        load_result = self.loader.load_from_directory(directory_path, stop_on_error)
        return await self.evaluate_test_cases(agent, load_result.test_cases, start_time)

    async def evaluate_test_cases(
        self,
        agent: "Agent",
        test_cases: list[TestCase],
        start_time: Optional[float] = None,
    ) -> EvaluationReport:
        """Run already loaded test cases in parallel and build a report."""
        if start_time is None:
            start_time = time.perf_counter()

        evaluations = await self.execute_test_cases_in_parallel(
            agent, test_cases, self.max_concurrency
        )

        duration = time.perf_counter() - start_time
        return EvaluationReport.from_evaluations(evaluations, duration)
