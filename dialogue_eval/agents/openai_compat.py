"""
OpenAICompatibleAgent - evaluates a model served behind an
OpenAI-compatible /chat/completions endpoint (LM Studio, vLLM, OpenAI).

Transient failures (connection errors, timeouts, 429 and 5xx) are
retried with exponential backoff; anything else fails the test case.
"""

import logging
from typing import Optional

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log,
)

from dialogue_eval.agents.base import AgentError, AgentInput, AgentResponse
from dialogue_eval.config import (
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT_SECONDS,
    get_agent_api_key,
    get_agent_base_url,
    get_retry_attempts,
    get_retry_max_wait,
    get_retry_min_wait,
)
from dialogue_eval.roles import to_openai_role

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class RetryableAgentError(AgentError):
    """Agent failure worth retrying (server busy or overloaded)."""
    pass


def is_retryable_error(exception: BaseException) -> bool:
    """Connection problems, timeouts and busy-server responses are retried."""
    return isinstance(exception, (httpx.TransportError, RetryableAgentError))


class OpenAICompatibleAgent:
    """
    Agent implementation backed by a chat-completions endpoint.

    Stateless between calls, so safe for the executor's concurrent use.
    """

    def __init__(
        self,
        model_id: str,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = -1,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if not model_id:
            raise ValueError("model_id is required")
        self.model_id = model_id
        self.base_url = (base_url or get_agent_base_url()).rstrip("/")
        self._api_key = api_key or get_agent_api_key()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

    def _build_payload(self, agent_input: AgentInput) -> dict:
        payload = {
            "model": self.model_id,
            "messages": [
                {"role": to_openai_role(m.role), "content": m.content}
                for m in agent_input.messages
            ],
            "temperature": self.temperature,
            "stream": False,
        }
        if self.max_tokens > 0:
            payload["max_tokens"] = self.max_tokens
        return payload

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post(self, payload: dict) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=self._headers(),
            )

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise RetryableAgentError(
                f"Agent endpoint busy ({response.status_code}) for {self.model_id}"
            )
        if response.status_code >= 400:
            raise AgentError(
                f"Agent error {response.status_code} for {self.model_id}: "
                f"{response.text[:500]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise AgentError(f"Agent returned invalid JSON: {e}") from e

    async def send_input(self, agent_input: AgentInput) -> AgentResponse:
        """Send the conversation and return the first choice's text."""
        payload = self._build_payload(agent_input)

        @retry(
            stop=stop_after_attempt(get_retry_attempts()),
            wait=wait_exponential(multiplier=2, min=get_retry_min_wait(), max=get_retry_max_wait()),
            retry=retry_if_exception(is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async def post_with_retry() -> dict:
            return await self._post(payload)

        data = await post_with_retry()

        try:
            content = data["choices"][0]["message"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise AgentError(f"Unexpected agent response shape: {data!r:.500}") from e

        return AgentResponse(response=content or "")
