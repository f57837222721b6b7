"""Fit lifecycle events and hooks.

Hooks observe a fit run; they never change it. Handlers may be sync or async,
and any exception they raise propagates out of ``fit``.
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict

from .errors import FitError
from .nodes import Node

# === Events ===


class FitStartEvent(BaseModel):
    """Fitting started."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: str = "fit_start"
    element: Node
    budget: int
    total_tokens: int


class FitIterationEvent(BaseModel):
    """A reduction wave is about to run."""

    type: str = "fit_iteration"
    iteration: int
    priority: int
    total_tokens: int


class StrategyAppliedEvent(BaseModel):
    """A strategy produced its replacement (None = removed)."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: str = "strategy_applied"
    target: Node
    result: Node | None
    priority: int
    iteration: int


class FitCompleteEvent(BaseModel):
    """The tree fits the budget."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: str = "fit_complete"
    result: Node
    iterations: int
    total_tokens: int


class FitErrorEvent(BaseModel):
    """Fitting failed; the FitError is raised right after this event."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: str = "fit_error"
    error: FitError
    iteration: int
    priority: int
    total_tokens: int


FitEvent = (
    FitStartEvent
    | FitIterationEvent
    | StrategyAppliedEvent
    | FitCompleteEvent
    | FitErrorEvent
)

HookHandler = Callable[[Any], Any | Awaitable[Any]]


@dataclass
class FitHooks:
    """Optional callbacks for each fit lifecycle event.

    Example:
        hooks = FitHooks(on_strategy_applied=lambda e: print(e.target.id))
        await fit(prompt, 1000, hooks=hooks)
    """

    on_fit_start: HookHandler | None = None
    on_fit_iteration: HookHandler | None = None
    on_strategy_applied: HookHandler | None = None
    on_fit_complete: HookHandler | None = None
    on_fit_error: HookHandler | None = None

    async def emit(self, event: FitEvent) -> None:
        """Dispatch an event to its handler, awaiting async handlers."""
        handler = getattr(self, f"on_{event.type}", None)
        if handler is None:
            return
        result = handler(event)
        if inspect.isawaitable(result):
            await result
