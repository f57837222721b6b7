"""Summarization strategy.

The one strategy allowed to perform I/O and persist state: it reads the
previous summary for its id from a store, asks a summarizer (or the ambient
completion provider) for a new one, writes it back, and replaces the node's
children with the summary text.

Because the store outlives a fit run, re-running a fit with the same id can
yield a different summary than the first run did. Concurrent fit runs that
share an id race on ``store.set`` (last write wins); use one id per logical
conversation.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from .errors import ConfigurationError
from .layout import flatten
from .memory import SummaryStore
from .nodes import Child, Node, message, walk
from .strategies import FitContext, Strategy, maybe_await
from .types import (
    Layout,
    PromptMessage,
    ReasoningPart,
    StoredSummary,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)

logger = logging.getLogger(__name__)

SUMMARY_PREFIX = "[Summary of earlier conversation]\n"


SUMMARIZATION_SYSTEM_PROMPT = """You are a conversation summarizer. Your task is to read a conversation and produce a concise summary that captures the key points and context needed to continue it.

Do NOT continue the conversation. Do NOT respond to any questions in the conversation. ONLY output the summary."""


SUMMARIZATION_PROMPT = """The text in <conversation> tags above is a conversation to summarize. Create a concise summary that another LLM will use to continue the conversation.

Be brief but preserve essential information: goals, decisions, open questions, and exact names, numbers and identifiers."""


UPDATE_SUMMARIZATION_PROMPT = """The text in <conversation> tags above is NEW conversation content to incorporate into the existing summary provided in <previous-summary> tags.

Update the existing summary with the new information. RULES:
- PRESERVE all existing information from the previous summary
- ADD new decisions and context from the new content
- If something is no longer relevant, you may remove it

Be brief but preserve exact names, numbers and identifiers."""


class SummarizerContext(BaseModel):
    """Input handed to a summarizer function."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    target: Node
    previous_summary: str | None = None
    provider: Any = None


Summarizer = Callable[[SummarizerContext], str | Awaitable[str]]


def _role_label(role: str) -> str:
    return role[:1].upper() + role[1:] if role else "Unknown"


def serialize_layout(layout: Layout) -> str:
    """
    Serialize a layout to transcript text for summarization.

    This prevents the model from treating it as a conversation to continue.
    """
    parts: list[str] = []

    for msg in layout.messages:
        if msg.role == "assistant":
            parts.extend(_serialize_assistant(msg))
            continue

        if msg.role == "tool":
            for part in msg.parts:
                if isinstance(part, ToolResultPart):
                    parts.append(f"[Tool result]: {_format_value(part.output)}")
            continue

        text = msg.text
        if text:
            parts.append(f"[{_role_label(msg.role)}]: {text}")

    return "\n\n".join(parts)


def _serialize_assistant(msg: PromptMessage) -> list[str]:
    text_parts: list[str] = []
    thinking_parts: list[str] = []
    tool_calls: list[str] = []

    for part in msg.parts:
        if isinstance(part, TextPart):
            text_parts.append(part.text)
        elif isinstance(part, ReasoningPart):
            thinking_parts.append(part.text)
        elif isinstance(part, ToolCallPart):
            if isinstance(part.input, dict):
                args_str = ", ".join(f"{k}={repr(v)}" for k, v in part.input.items())
            else:
                args_str = _format_value(part.input)
            tool_calls.append(f"{part.tool_name}({args_str})")

    serialized = []
    if thinking_parts:
        serialized.append(f"[Assistant thinking]: {chr(10).join(thinking_parts)}")
    if text_parts:
        serialized.append(f"[Assistant]: {chr(10).join(text_parts)}")
    if tool_calls:
        serialized.append(f"[Assistant tool calls]: {'; '.join(tool_calls)}")
    return serialized


def _format_value(value: Any) -> str:
    return value if isinstance(value, str) else repr(value)


def subtree_layout(target: Node) -> Layout:
    """Layout of a subtree; bare content without messages reads as user text."""
    layout = flatten(target)
    if layout.messages or target.is_message:
        return layout
    return flatten(message("user", target))


def build_summary_layout(target: Node, previous_summary: str | None) -> Layout:
    """Build the summarization request for the default summarizer."""
    conversation_text = serialize_layout(subtree_layout(target))

    prompt_text = f"<conversation>\n{conversation_text}\n</conversation>\n\n"
    if previous_summary:
        prompt_text += f"<previous-summary>\n{previous_summary}\n</previous-summary>\n\n"
    prompt_text += UPDATE_SUMMARIZATION_PROMPT if previous_summary else SUMMARIZATION_PROMPT

    return Layout(
        messages=[
            PromptMessage(role="system", parts=[TextPart(text=SUMMARIZATION_SYSTEM_PROMPT)]),
            PromptMessage(role="user", parts=[TextPart(text=prompt_text)]),
        ]
    )


async def default_summarizer(ctx: SummarizerContext) -> str:
    """Summarize through the completion provider found in the ambient context."""
    if ctx.provider is None:
        raise ConfigurationError("The default summarizer requires a completion provider")

    layout = build_summary_layout(ctx.target, ctx.previous_summary)
    result = await maybe_await(ctx.provider.complete(layout))
    if isinstance(result, str):
        return result
    if isinstance(result, Mapping):
        return result["text"]
    return result.text


def _stored_content(entry: Any) -> str | None:
    if entry is None:
        return None
    if isinstance(entry, dict):
        return entry.get("content")
    return entry.content


def summarize(
    id: str,
    store: SummaryStore,
    summarizer: Summarizer | None = None,
    role: str = "system",
) -> Strategy:
    """Strategy that replaces a node's children with a stored, updated summary.

    Args:
        id: Store key; use one per logical conversation
        store: Where the previous summary is read from and the new one written
        summarizer: Custom summary function. If omitted, the provider from the
            ambient context is used with a default prompt.
        role: Message role for the summary when the summarized content held
            messages (otherwise the summary is plain text)

    Raises (from the returned strategy):
        ConfigurationError: no summarizer and no provider in context
    """

    async def strategy(node: Node, ctx: FitContext) -> Node | None:
        previous = _stored_content(await maybe_await(store.get(id)))
        provider = ctx.context.provider

        summarizer_ctx = SummarizerContext(
            target=node,
            previous_summary=previous,
            provider=provider,
        )

        if summarizer is not None:
            summary = await maybe_await(summarizer(summarizer_ctx))
        elif provider is not None:
            summary = await default_summarizer(summarizer_ctx)
        else:
            raise ConfigurationError(
                f'Summary "{id}" requires either a summarizer function or a provider. '
                "Pass context=AmbientContext(provider=...) to fit() or attach one to an ancestor node."
            )

        await maybe_await(store.set(id, StoredSummary(content=summary)))
        logger.debug(f"Summarized {id!r} (previous summary: {previous is not None})")

        text = f"{SUMMARY_PREFIX}{summary}"
        # Summarized messages stay addressable as a message of their own.
        child: Child = message(role, text) if _contains_message(node) else text
        return node.model_copy(update={"children": (child,), "strategy": None})

    return strategy


def _contains_message(node: Node) -> bool:
    return any(n.is_message for _, n in walk(node) if n is not node)


def summary_region(
    *children: Child,
    id: str,
    store: SummaryStore,
    summarizer: Summarizer | None = None,
    priority: int = 0,
    role: str = "system",
) -> Node:
    """A region that summarizes its content when its tier is reduced.

    Example:
        store = InMemoryStore()
        summary_region(*old_messages, id="conv-1", store=store, priority=2)
    """
    return Node(
        id=id,
        priority=priority,
        strategy=summarize(id, store, summarizer, role),
        children=children,
    )
