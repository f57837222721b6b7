"""Prompt IR: regions all the way down.

Every node is a region with a priority, an optional strategy and ordered
children. Attaching a ``kind`` turns a region into a recognized prompt part
(message, tool call, tool result, reasoning) so flattening and codecs never
have to parse strings.

Nodes are immutable. Rewrites go through ``model_copy`` and produce new
subtrees; the same subtree value can be reused across fit runs.

Example:
    from pipy_prompt import region, message, omit_region

    prompt = region(
        message("system", "You are helpful."),
        message(
            "user",
            omit_region("Optional background...", priority=2),
            "What's the weather in Paris?",
        ),
    )
"""

from collections.abc import Callable, Iterator
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .types import Role

# Strategies are typed loosely here; see strategies.Strategy for the signature.
StrategyFn = Callable[..., Any]


# === Ambient context ===


class AmbientContext(BaseModel):
    """Context inherited down the tree and handed to strategies.

    A node's own context overrides values inherited from its ancestors.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    provider: Any = None  # CompletionProvider used by the default summarizer

    def merge(self, override: "AmbientContext | None") -> "AmbientContext":
        """Return this context with non-empty values from override applied."""
        if override is None:
            return self
        updates = {
            name: getattr(override, name)
            for name in type(override).model_fields
            if getattr(override, name) is not None
        }
        return self.model_copy(update=updates) if updates else self


# === Node kinds ===


class MessageKind(BaseModel):
    """Message container with a role."""

    model_config = ConfigDict(frozen=True)

    type: Literal["message"] = "message"
    role: str


class ToolCallKind(BaseModel):
    """Tool call leaf."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str = Field(min_length=1)
    tool_name: str = Field(min_length=1)
    input: Any = None


class ToolResultKind(BaseModel):
    """Tool result leaf."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str = Field(min_length=1)
    tool_name: str = Field(min_length=1)
    output: Any = None


class ReasoningKind(BaseModel):
    """Reasoning leaf."""

    model_config = ConfigDict(frozen=True)

    type: Literal["reasoning"] = "reasoning"
    text: str = ""


NodeKind = Annotated[
    MessageKind | ToolCallKind | ToolResultKind | ReasoningKind,
    Field(discriminator="type"),
]

LEAF_KINDS = ("tool-call", "tool-result", "reasoning")


# === Node ===


class Node(BaseModel):
    """A unit of the prompt tree.

    Lower priority numbers are more important. A node without a strategy is
    never reduced on its own; only a strategy on an ancestor can remove it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    priority: int = 0
    strategy: StrategyFn | None = None
    id: str | None = None
    context: AmbientContext | None = None
    kind: NodeKind | None = None
    children: tuple[Union["Node", str], ...] = ()

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("id must be a non-empty string")
        return value

    @model_validator(mode="after")
    def _leaves_are_childless(self) -> "Node":
        if self.is_leaf and self.children:
            raise ValueError(f"{self.kind_name} nodes cannot have children")
        return self

    @property
    def kind_name(self) -> str:
        """Kind discriminator, or "region" for plain structural nodes."""
        return self.kind.type if self.kind is not None else "region"

    @property
    def is_message(self) -> bool:
        return isinstance(self.kind, MessageKind)

    @property
    def is_leaf(self) -> bool:
        """True for tool-call, tool-result and reasoning nodes."""
        return self.kind is not None and self.kind.type in LEAF_KINDS

    @property
    def role(self) -> str | None:
        """Message role, or None for non-message nodes."""
        return self.kind.role if isinstance(self.kind, MessageKind) else None

    def with_children(self, children: "list[Node | str] | tuple[Node | str, ...]") -> "Node":
        """Copy-on-write: same node with different children."""
        return self.model_copy(update={"children": tuple(children)})


Node.model_rebuild()


Child = Node | str


def walk(root: Node, path: str = "root") -> Iterator[tuple[str, Node]]:
    """Yield (path, node) for every node, pre-order."""
    yield path, root
    for index, child in enumerate(root.children):
        if isinstance(child, Node):
            yield from walk(child, f"{path}.children[{index}]")


# === Constructors ===


def _role_value(role: Role | str) -> str:
    return role.value if isinstance(role, Role) else role


def region(
    *children: Child,
    priority: int = 0,
    strategy: StrategyFn | None = None,
    id: str | None = None,
    context: AmbientContext | None = None,
) -> Node:
    """Create a plain structural region (think: a DOM <div>)."""
    return Node(
        priority=priority,
        strategy=strategy,
        id=id,
        context=context,
        children=children,
    )


def message(
    role: Role | str,
    *children: Child,
    priority: int = 0,
    strategy: StrategyFn | None = None,
    id: str | None = None,
) -> Node:
    """Create a message node.

    Example:
        message("user", "What's the weather?")
    """
    return Node(
        kind=MessageKind(role=_role_value(role)),
        priority=priority,
        strategy=strategy,
        id=id,
        children=children,
    )


def tool_call(
    tool_call_id: str,
    tool_name: str,
    input: Any = None,
    *,
    priority: int = 0,
    strategy: StrategyFn | None = None,
    id: str | None = None,
) -> Node:
    """Create a tool call leaf."""
    return Node(
        kind=ToolCallKind(tool_call_id=tool_call_id, tool_name=tool_name, input=input),
        priority=priority,
        strategy=strategy,
        id=id,
    )


def tool_result(
    tool_call_id: str,
    tool_name: str,
    output: Any = None,
    *,
    priority: int = 0,
    strategy: StrategyFn | None = None,
    id: str | None = None,
) -> Node:
    """Create a tool result leaf."""
    return Node(
        kind=ToolResultKind(tool_call_id=tool_call_id, tool_name=tool_name, output=output),
        priority=priority,
        strategy=strategy,
        id=id,
    )


def reasoning(
    text: str,
    *,
    priority: int = 0,
    strategy: StrategyFn | None = None,
    id: str | None = None,
) -> Node:
    """Create a reasoning leaf."""
    return Node(
        kind=ReasoningKind(text=text),
        priority=priority,
        strategy=strategy,
        id=id,
    )


# === Static transforms (applied at construction, not during fitting) ===


def last(n: int, *children: Child, priority: int = 0, id: str | None = None) -> Node:
    """Keep only the last n children.

    Example:
        last(50, *history)
    """
    kept = children[-n:] if n > 0 else ()
    return Node(priority=priority, id=id, children=kept)


def _intersperse(items: tuple[Child, ...], separator: str) -> list[Child]:
    result: list[Child] = []
    for index, item in enumerate(items):
        if index > 0:
            result.append(separator)
        result.append(item)
    return result


def separator(
    *children: Child,
    value: str = "\n",
    priority: int = 0,
    id: str | None = None,
) -> Node:
    """Join children with a separator string."""
    return Node(priority=priority, id=id, children=_intersperse(children, value))


def examples(
    *children: Child,
    title: str = "Examples:",
    separator: str = "\n\n",
    priority: int = 2,
    id: str | None = None,
) -> Node:
    """A titled block of examples separated by blank lines."""
    body = _intersperse(children, separator)
    if title:
        body = [f"{title}\n", *body]
    return Node(priority=priority, id=id, children=body)


def code_block(
    code: str,
    language: str | None = None,
    *,
    priority: int = 0,
    id: str | None = None,
) -> Node:
    """A fenced code block."""
    fenced = f"```{language or ''}\n{code}\n```\n"
    return Node(priority=priority, id=id, children=(fenced,))
