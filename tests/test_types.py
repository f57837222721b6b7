"""Tests for layout types and errors."""

from pipy_prompt import (
    CompletionResult,
    FitError,
    FitFailure,
    Layout,
    PromptMessage,
    ReasoningPart,
    Role,
    StructuralError,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)


class TestRole:
    def test_values(self):
        assert Role.SYSTEM.value == "system"
        assert Role.USER.value == "user"
        assert Role.ASSISTANT.value == "assistant"
        assert Role.TOOL.value == "tool"


class TestPromptMessage:
    def test_parts_from_dicts(self):
        msg = PromptMessage.model_validate(
            {
                "role": "assistant",
                "parts": [
                    {"type": "reasoning", "text": "hmm"},
                    {"type": "text", "text": "hi"},
                    {"type": "tool-call", "tool_call_id": "c1", "tool_name": "t", "input": {}},
                ],
            }
        )
        assert isinstance(msg.parts[0], ReasoningPart)
        assert isinstance(msg.parts[1], TextPart)
        assert isinstance(msg.parts[2], ToolCallPart)

    def test_convenience_properties(self):
        msg = PromptMessage(
            role="assistant",
            parts=[
                TextPart(text="a"),
                ReasoningPart(text="r"),
                TextPart(text="b"),
                ToolCallPart(tool_call_id="c1", tool_name="t"),
                ToolResultPart(tool_call_id="c1", tool_name="t", output=1),
            ],
        )
        assert msg.text == "ab"
        assert msg.reasoning_text == "r"
        assert [c.tool_call_id for c in msg.tool_calls] == ["c1"]
        assert [r.output for r in msg.tool_results] == [1]


class TestLayout:
    def test_empty(self):
        layout = Layout()
        assert layout.messages == []
        assert layout.roles == []
        assert layout.dropped_messages == 0

    def test_serialization(self):
        layout = Layout(messages=[PromptMessage(role="user", parts=[TextPart(text="hi")])])
        data = layout.model_dump()
        assert data["messages"][0]["parts"][0] == {"type": "text", "text": "hi"}
        assert Layout.model_validate(data) == layout


class TestCompletionResult:
    def test_defaults(self):
        result = CompletionResult(text="x")
        assert result.input_tokens == 0
        assert result.output_tokens == 0


class TestErrors:
    def test_structural_error_message(self):
        error = StructuralError("Message nested inside another message", "root.children[0]", "m1")
        assert str(error) == "Message nested inside another message at root.children[0] (id='m1')"

    def test_fit_error_fields(self):
        error = FitError(
            over_budget_by=5,
            priority=-1,
            iteration=0,
            budget=10,
            total_tokens=15,
            reason=FitFailure.NO_STRATEGIES,
        )
        assert error.over_budget_by == 5
        assert error.priority == -1
        assert error.reason is FitFailure.NO_STRATEGIES
        assert "exceeds budget 10 by 5" in str(error)
        assert "no_strategies" in str(error)
