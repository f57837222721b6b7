"""Token counting: tokenizers and token projections.

A projection turns a subtree into a cheap, representative string; a tokenizer
counts that string. The fit engine uses one projection + tokenizer pair for
every measurement of a run so totals stay comparable, even though the final
codec may count its own wire format slightly differently.
"""

from collections.abc import Callable

from litellm import token_counter

from .layout import layout_to_text, safe_stringify
from .nodes import MessageKind, Node, ReasoningKind, ToolCallKind, ToolResultKind
from .types import Layout

Tokenizer = Callable[[str], int]
Projection = Callable[[Node], str]


def approximate_tokenizer(text: str) -> int:
    """Estimate tokens with the chars/4 heuristic (ceiling division).

    Conservative: tends to overestimate for English prose.
    """
    return (len(text) + 3) // 4


def litellm_tokenizer(model: str) -> Tokenizer:
    """Model-aware tokenizer backed by LiteLLM's token counter.

    Example:
        tokenizer = litellm_tokenizer("openai/gpt-4o")
        tokenizer("Hello, world!")  # 4
    """

    def count(text: str) -> int:
        return token_counter(model=model, text=text)

    return count


# === Projections ===

ROLE_LABELS = {
    "system": "System",
    "user": "User",
    "assistant": "Assistant",
}


def markdown_projection(node: Node) -> str:
    """Role-labelled markdown rendering of a subtree."""
    kind = node.kind

    if isinstance(kind, MessageKind):
        content = _children_markdown(node).rstrip()
        label = ROLE_LABELS.get(kind.role, kind.role)
        return f"{label}: {content}\n\n"

    if isinstance(kind, ReasoningKind):
        return f"<thinking>\n{kind.text}\n</thinking>\n"

    if isinstance(kind, ToolCallKind):
        input_text = safe_stringify(kind.input, pretty=True)
        return f'<tool_call name="{kind.tool_name}">\n{input_text}\n</tool_call>\n'

    if isinstance(kind, ToolResultKind):
        output_text = safe_stringify(kind.output, pretty=True)
        return f'<tool_result name="{kind.tool_name}">\n{output_text}\n</tool_result>\n'

    return _children_markdown(node)


def _children_markdown(node: Node) -> str:
    return "".join(
        child if isinstance(child, str) else markdown_projection(child)
        for child in node.children
    )


def text_projection(node: Node) -> str:
    """Bare concatenation of text and semantic payloads, no role labels."""
    kind = node.kind

    if isinstance(kind, ReasoningKind):
        return kind.text
    if isinstance(kind, ToolCallKind):
        return f"[tool-call:{kind.tool_name}]{safe_stringify(kind.input)}"
    if isinstance(kind, ToolResultKind):
        return f"[tool-result:{kind.tool_name}]{safe_stringify(kind.output)}"

    return "".join(
        child if isinstance(child, str) else text_projection(child)
        for child in node.children
    )


# === Counting ===


def count_tokens(
    node: Node,
    tokenizer: Tokenizer = approximate_tokenizer,
    projection: Projection = markdown_projection,
) -> int:
    """Count tokens for a subtree."""
    return tokenizer(projection(node))


def count_layout_tokens(layout: Layout, tokenizer: Tokenizer = approximate_tokenizer) -> int:
    """Count tokens for a flattened layout."""
    return tokenizer(layout_to_text(layout))
