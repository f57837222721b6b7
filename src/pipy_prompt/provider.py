"""Completion providers used by the default summarizer."""

import json
import logging
from collections.abc import Awaitable
from typing import Protocol

from litellm import acompletion

from .layout import parts_to_text, safe_stringify
from .settings import FitSettings, resolve_config_value
from .types import CompletionResult, Layout, PromptMessage, Role, ToolCallPart, ToolResultPart

logger = logging.getLogger(__name__)


class CompletionProvider(Protocol):
    """Anything that can turn a layout into completion text."""

    def complete(self, layout: Layout) -> CompletionResult | Awaitable[CompletionResult]:
        ...


class LiteLLMProvider:
    """LiteLLM-backed completion provider.

    Errors from LiteLLM propagate unchanged; a failed completion must abort
    the fit rather than silently drop content.

    Example:
        provider = LiteLLMProvider("anthropic/claude-sonnet-4-5")
        result = await provider.complete(layout)
        print(result.text)
    """

    def __init__(
        self,
        model: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        api_key: str | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.api_key = api_key

    @classmethod
    def from_settings(cls, settings: FitSettings) -> "LiteLLMProvider":
        """Create a provider from the summary section of settings."""
        summary = settings.summary
        api_key = resolve_config_value(summary.api_key) if summary.api_key else None
        return cls(
            model=summary.model,
            max_tokens=summary.max_tokens,
            temperature=summary.temperature,
            api_key=api_key,
        )

    def _convert_messages(self, layout: Layout) -> list[dict]:
        """Convert a layout to LiteLLM (OpenAI chat) message format."""
        messages: list[dict] = []

        for msg in layout.messages:
            if msg.role == Role.TOOL.value:
                messages.extend(self._convert_tool_message(msg))
            elif msg.role == Role.ASSISTANT.value:
                messages.append(self._convert_assistant_message(msg))
            else:
                messages.append(
                    {"role": msg.role, "content": parts_to_text(msg.parts, wrap_reasoning=True)}
                )

        return messages

    def _convert_assistant_message(self, msg: PromptMessage) -> dict:
        msg_dict: dict = {"role": "assistant"}
        content = parts_to_text(msg.parts, wrap_reasoning=True)
        if content:
            msg_dict["content"] = content
        tool_calls = msg.tool_calls
        if tool_calls:
            msg_dict["tool_calls"] = [
                {
                    "id": tc.tool_call_id,
                    "type": "function",
                    "function": {
                        "name": tc.tool_name,
                        "arguments": self._stringify_arguments(tc),
                    },
                }
                for tc in tool_calls
            ]
        return msg_dict

    def _convert_tool_message(self, msg: PromptMessage) -> list[dict]:
        converted = []
        for part in msg.parts:
            if isinstance(part, ToolResultPart):
                converted.append(
                    {
                        "role": "tool",
                        "tool_call_id": part.tool_call_id,
                        "content": safe_stringify(part.output),
                    }
                )
        return converted

    def _stringify_arguments(self, call: ToolCallPart) -> str:
        if isinstance(call.input, str):
            return call.input
        return json.dumps(call.input if call.input is not None else {}, default=str)

    def _build_kwargs(self, messages: list[dict]) -> dict:
        """Build kwargs for litellm completion call."""
        kwargs: dict = {
            "model": self.model,
            "messages": messages,
            "stream": False,
        }
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        if self.api_key:
            kwargs["api_key"] = self.api_key
        return kwargs

    async def complete(self, layout: Layout) -> CompletionResult:
        """Send a layout to the model and return its text."""
        kwargs = self._build_kwargs(self._convert_messages(layout))
        logger.debug(f"Requesting completion from {self.model} ({len(layout.messages)} messages)")

        response = await acompletion(**kwargs)
        msg = response.choices[0].message

        result = CompletionResult(text=msg.content or "", model=self.model)
        if response.usage:
            result.input_tokens = response.usage.prompt_tokens or 0
            result.output_tokens = response.usage.completion_tokens or 0
        return result
