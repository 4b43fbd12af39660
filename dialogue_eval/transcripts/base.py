"""
Transcript models - a parsed conversation test case.

Explicit state: Pydantic models, not dicts. The parser builds these,
the executor consumes them read-only.
"""

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Conversation participant of a message block."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    DEVELOPER = "developer"
    HUMAN_AGENT = "human_agent"
    TOOL = "tool"


# Transcript label -> Role. Labels are matched exactly (case-sensitive).
ROLE_LABELS: dict[str, Role] = {
    "user": Role.USER,
    "assistant": Role.ASSISTANT,
    "human agent": Role.HUMAN_AGENT,
    "system": Role.SYSTEM,
    "developer": Role.DEVELOPER,
    "tool": Role.TOOL,
}


class ToolUsage(BaseModel):
    """A recorded tool invocation. args is JSON text, kept as written."""
    name: str
    args: str


class ToolResponse(BaseModel):
    """A recorded tool result."""
    content: str


class MessageBlock(BaseModel):
    """One turn by one participant, with any tool traffic it made."""
    role: Role
    content: str = ""
    tool_usages: list[ToolUsage] = Field(default_factory=list)
    tool_responses: list[ToolResponse] = Field(default_factory=list)


class TestCase(BaseModel):
    """
    A single conversation test case.

    The last message block is the expected output; every block before
    it is the input conversation sent to the agent.
    """
    __test__ = False  # not a pytest class

    id: str
    name: str
    message_blocks: list[MessageBlock] = Field(default_factory=list)

    @property
    def input_blocks(self) -> list[MessageBlock]:
        return self.message_blocks[:-1]

    @property
    def expected_block(self) -> MessageBlock | None:
        if not self.message_blocks:
            return None
        return self.message_blocks[-1]

    @property
    def input_text(self) -> str:
        """Contents of the input blocks, newline-joined."""
        return "\n".join(block.content for block in self.input_blocks)

    @property
    def expected_text(self) -> str:
        block = self.expected_block
        return block.content if block else ""

    def to_messages(self) -> list[dict]:
        """Input conversation as role/content pairs."""
        return [
            {"role": block.role.value, "content": block.content}
            for block in self.input_blocks
        ]


class FileError(BaseModel):
    """A file (or directory) that failed to load."""
    file_path: str
    message: str


class LoadResult(BaseModel):
    """Outcome of loading a transcript directory."""
    test_cases: list[TestCase] = Field(default_factory=list)
    errors: list[FileError] = Field(default_factory=list)
