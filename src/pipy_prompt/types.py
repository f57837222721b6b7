"""Layout types with Pydantic validation.

A layout is the flattened, message-bounded form of a prompt tree. It reuses the
same part vocabulary the tree carries, so codecs never parse strings.
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

# === Enums ===


class Role(str, Enum):
    """Well-known message roles. Any other string is a custom role."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


# === Parts ===


class TextPart(BaseModel):
    """Text content part."""

    type: Literal["text"] = "text"
    text: str = ""


class ReasoningPart(BaseModel):
    """Reasoning/thinking content part."""

    type: Literal["reasoning"] = "reasoning"
    text: str = ""


class ToolCallPart(BaseModel):
    """Tool/function call part."""

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: Any = None


class ToolResultPart(BaseModel):
    """Tool result part."""

    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    output: Any = None


Part = Annotated[
    TextPart | ReasoningPart | ToolCallPart | ToolResultPart,
    Field(discriminator="type"),
]


# === Messages ===


class PromptMessage(BaseModel):
    """A single message of a layout: a role and its coalesced parts."""

    role: str
    parts: list[Part] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Convenience: concatenated text parts."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def reasoning_text(self) -> str:
        """Convenience: concatenated reasoning parts."""
        return "\n".join(p.text for p in self.parts if isinstance(p, ReasoningPart))

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        """Convenience: all tool calls."""
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    @property
    def tool_results(self) -> list[ToolResultPart]:
        """Convenience: all tool results."""
        return [p for p in self.parts if isinstance(p, ToolResultPart)]


class Layout(BaseModel):
    """Ordered sequence of messages produced by flattening a prompt tree."""

    messages: list[PromptMessage] = Field(default_factory=list)
    dropped_messages: int = 0  # Nested messages skipped while flattening

    @property
    def roles(self) -> list[str]:
        """Convenience: message roles in order."""
        return [m.role for m in self.messages]


# === Completion ===


class CompletionResult(BaseModel):
    """Text returned by a completion provider."""

    text: str = ""
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0


# === Stored data ===


class StoredSummary(BaseModel):
    """Summary persisted across fit runs."""

    content: str
