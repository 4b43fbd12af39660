"""
Agents under evaluation.

- Agent: the protocol the executor drives
- OpenAICompatibleAgent: chat-completions HTTP implementation
"""

from .base import Agent, AgentError, AgentInput, AgentMessage, AgentResponse
from .openai_compat import OpenAICompatibleAgent

__all__ = [
    "Agent",
    "AgentError",
    "AgentInput",
    "AgentMessage",
    "AgentResponse",
    "OpenAICompatibleAgent",
]
