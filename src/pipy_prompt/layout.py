"""Flatten a prompt tree into an ordered list of messages.

Design: tree (regions + semantic nodes) -> layout (messages with parts only)
-> codec output. Flattening does not introduce new semantics; it reshapes
hierarchy so codecs stay pure and predictable.
"""

import json
import logging
from typing import Any

from .nodes import Node, ReasoningKind, ToolCallKind, ToolResultKind, message, region
from .types import (
    Layout,
    Part,
    PromptMessage,
    ReasoningPart,
    Role,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)

logger = logging.getLogger(__name__)


def flatten(root: Node) -> Layout:
    """Flatten a tree into a layout.

    - Message nodes become layout entries, in document order.
    - Strings and tool-call/tool-result/reasoning nodes inside a message
      become its parts; plain regions are transparent.
    - Adjacent text parts are coalesced.
    - Tool results are split out of non-tool messages into their own
      ``tool`` messages, right after the message that held them.
    - A message nested inside a message is dropped and counted.
    - Content outside any message is not part of the layout.

    Example:
        layout = flatten(region(message("user", "hi")))
        layout.messages[0].text  # "hi"
    """
    messages: list[PromptMessage] = []
    dropped = _collect_messages(root, messages)
    return Layout(messages=messages, dropped_messages=dropped)


def _collect_messages(node: Node, out: list[PromptMessage]) -> int:
    if node.is_message:
        parts, dropped = _collect_parts(node.children)
        out.extend(_split_tool_results(node.role or "", coalesce_parts(parts)))
        return dropped

    if node.is_leaf:
        logger.debug(f"Skipping {node.kind_name} node outside any message")
        return 0

    dropped = 0
    for child in node.children:
        if isinstance(child, str):
            if child:
                logger.debug("Skipping text outside any message")
            continue
        dropped += _collect_messages(child, out)
    return dropped


def _collect_parts(children: tuple[Node | str, ...]) -> tuple[list[Part], int]:
    parts: list[Part] = []
    dropped = 0

    for child in children:
        if isinstance(child, str):
            if child:
                parts.append(TextPart(text=child))
            continue

        kind = child.kind
        if isinstance(kind, ToolCallKind):
            parts.append(
                ToolCallPart(
                    tool_call_id=kind.tool_call_id,
                    tool_name=kind.tool_name,
                    input=kind.input,
                )
            )
        elif isinstance(kind, ToolResultKind):
            parts.append(
                ToolResultPart(
                    tool_call_id=kind.tool_call_id,
                    tool_name=kind.tool_name,
                    output=kind.output,
                )
            )
        elif isinstance(kind, ReasoningKind):
            if kind.text:
                parts.append(ReasoningPart(text=kind.text))
        elif child.is_message:
            # Validation rejects this upstream; never crash a render over it.
            logger.warning(f"Dropping message nested inside a message (id={child.id!r})")
            dropped += 1
        else:
            nested_parts, nested_dropped = _collect_parts(child.children)
            parts.extend(nested_parts)
            dropped += nested_dropped

    return parts, dropped


def _split_tool_results(role: str, parts: list[Part]) -> list[PromptMessage]:
    if role == Role.TOOL.value:
        return [PromptMessage(role=role, parts=parts)]

    results = [p for p in parts if isinstance(p, ToolResultPart)]
    if not results:
        return [PromptMessage(role=role, parts=parts)]

    others = coalesce_parts([p for p in parts if not isinstance(p, ToolResultPart)])
    split: list[PromptMessage] = []
    if others:
        split.append(PromptMessage(role=role, parts=others))
    split.extend(PromptMessage(role=Role.TOOL.value, parts=[r]) for r in results)
    return split


def coalesce_parts(parts: list[Part]) -> list[Part]:
    """Merge adjacent text parts into single parts, dropping empty text."""
    result: list[Part] = []
    buffer = ""

    for part in parts:
        if isinstance(part, TextPart):
            buffer += part.text
            continue

        if buffer:
            result.append(TextPart(text=buffer))
            buffer = ""

        result.append(part)

    if buffer:
        result.append(TextPart(text=buffer))

    return result


def nest(layout: Layout) -> Node:
    """Rebuild a tree from a layout; ``flatten(nest(layout))`` reproduces it."""
    return region(
        *(message(m.role, *(_part_to_child(p) for p in m.parts)) for m in layout.messages)
    )


def _part_to_child(part: Part) -> Node | str:
    if isinstance(part, TextPart):
        return part.text
    if isinstance(part, ReasoningPart):
        return Node(kind=ReasoningKind(text=part.text))
    if isinstance(part, ToolCallPart):
        return Node(
            kind=ToolCallKind(
                tool_call_id=part.tool_call_id,
                tool_name=part.tool_name,
                input=part.input,
            )
        )
    return Node(
        kind=ToolResultKind(
            tool_call_id=part.tool_call_id,
            tool_name=part.tool_name,
            output=part.output,
        )
    )


# === Text helpers ===


def safe_stringify(value: Any, pretty: bool = False) -> str:
    """Stringify a value as JSON; strings pass through unchanged."""
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    try:
        return json.dumps(value, indent=2 if pretty else None, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def parts_to_text(parts: list[Part], wrap_reasoning: bool = False) -> str:
    """Extract text from parts, optionally wrapping reasoning in thinking tags."""
    result = ""
    for part in parts:
        if isinstance(part, TextPart):
            result += part.text
        elif isinstance(part, ReasoningPart) and wrap_reasoning:
            result += f"<thinking>\n{part.text}\n</thinking>\n"
    return result


def layout_to_text(layout: Layout) -> str:
    """Role-prefixed plain text for a whole layout (used for token counting)."""
    lines: list[str] = []
    for msg in layout.messages:
        content = parts_to_text(msg.parts, wrap_reasoning=True)
        for part in msg.parts:
            if isinstance(part, ToolCallPart):
                content += f"[tool-call:{part.tool_name}]{safe_stringify(part.input)}"
            elif isinstance(part, ToolResultPart):
                content += f"[tool-result:{part.tool_name}]{safe_stringify(part.output)}"
        lines.append(f"{msg.role}: {content}")
    return "\n\n".join(lines)
