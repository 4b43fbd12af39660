"""
Agent Protocol - the contract for the system under evaluation.

This is the WHAT (interface), not the HOW (implementation).
See openai_compat.py for a concrete implementation.
"""

from typing import Protocol

from pydantic import BaseModel, Field


class AgentMessage(BaseModel):
    """One input turn sent to the agent."""
    role: str
    content: str


class AgentInput(BaseModel):
    """Conversation history handed to the agent."""
    messages: list[AgentMessage] = Field(default_factory=list)


class AgentResponse(BaseModel):
    """The agent's reply to an input conversation."""
    response: str


class AgentError(Exception):
    """Agent invocation failed (transport error or unusable reply)."""
    pass


class Agent(Protocol):
    """
    Contract for agents under evaluation.

    Implementations must be safe to call concurrently: the executor
    runs several test cases against one agent at the same time.
    """

    async def send_input(self, agent_input: AgentInput) -> AgentResponse:
        """
        Send a conversation to the agent and return its reply.

        Args:
            agent_input: Messages in order, oldest first

        Returns:
            AgentResponse with the reply text

        Raises:
            Exception on agent failure (the executor records it per case)
        """
        ...
