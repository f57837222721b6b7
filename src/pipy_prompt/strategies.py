"""Reduction strategies and the regions that carry them.

A strategy rewrites a subtree when the prompt is over budget:

    strategy(node, ctx) -> Node | None   (or an awaitable of either)

Returning None removes the node and its subtree from its parent. Strategies
must not mutate their input and must be deterministic for a given FitContext.
The engine awaits awaitable results, so sync and async strategies share one
invocation path.
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from .nodes import AmbientContext, Child, Node
from .tokens import Projection, Tokenizer

TruncateFrom = Literal["start", "end"]


class FitContext(BaseModel):
    """Read-only input handed to a strategy.

    Attributes:
        target: The node being reduced (children already reduced this wave)
        budget: Overall token budget
        tokenizer: Token counting function used for this fit run
        projection: Token projection used for this fit run
        total_tokens: Whole-tree token count before this wave started
        iteration: Fit loop iteration (0-based)
        context: Ambient context merged from the root down to target
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    target: Node
    budget: int
    tokenizer: Tokenizer
    projection: Projection
    total_tokens: int
    iteration: int
    context: AmbientContext = AmbientContext()


Strategy = Callable[[Node, FitContext], Node | None | Awaitable[Node | None]]


async def maybe_await(value: Any) -> Any:
    """Await value if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


# === Strategy factories ===


def omit() -> Strategy:
    """Strategy that removes the node entirely."""

    def strategy(node: Node, ctx: FitContext) -> Node | None:
        return None

    return strategy


def truncate(budget: int, from_: TruncateFrom = "start") -> Strategy:
    """Strategy that drops whole children from one end.

    Drops ``max(1, total_tokens // budget)`` children per invocation, so a
    tree far over budget loses more per wave. Returns None once nothing
    would remain.

    Args:
        budget: Heuristic scale for how many children to drop per wave
        from_: Which end to drop from ("start" keeps the most recent)
    """
    if budget <= 0:
        raise ValueError("truncate budget must be positive")
    if from_ not in ("start", "end"):
        raise ValueError(f"truncate from_ must be 'start' or 'end', got {from_!r}")

    def strategy(node: Node, ctx: FitContext) -> Node | None:
        children = node.children
        if not children:
            return None

        drop_count = max(1, ctx.total_tokens // budget)
        if from_ == "start":
            kept = children[drop_count:]
        else:
            kept = children[: max(0, len(children) - drop_count)]

        if not kept:
            return None
        return node.with_children(kept)

    return strategy


# === Regions ===


def omit_region(*children: Child, priority: int = 0, id: str | None = None) -> Node:
    """A region removed wholesale once its priority tier is reduced.

    Example:
        omit_region(optional_examples, priority=3)
    """
    return Node(priority=priority, id=id, strategy=omit(), children=children)


def truncate_region(
    *children: Child,
    budget: int,
    from_: TruncateFrom = "start",
    priority: int = 0,
    id: str | None = None,
) -> Node:
    """A region that drops children from one end while over budget.

    Example:
        truncate_region(*history, budget=20000, priority=2)
    """
    return Node(
        priority=priority,
        id=id,
        strategy=truncate(budget, from_),
        children=children,
    )
