"""Fit engine: shrink a prompt tree until it fits a token budget.

Each iteration measures the whole tree, picks the least important priority
that still carries a strategy, and runs one post-order wave applying every
strategy at that priority. Children are reduced before their parents, so a
parent's strategy sees what its children already gave up.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import NoReturn

from .errors import FitError, FitFailure
from .hooks import (
    FitCompleteEvent,
    FitErrorEvent,
    FitHooks,
    FitIterationEvent,
    FitStartEvent,
    StrategyAppliedEvent,
)
from .layout import flatten
from .nodes import AmbientContext, Node, walk
from .provider import LiteLLMProvider
from .settings import DEFAULT_SETTINGS, FitSettings
from .strategies import FitContext, maybe_await
from .tokens import (
    Projection,
    Tokenizer,
    approximate_tokenizer,
    count_tokens,
    litellm_tokenizer,
    markdown_projection,
)
from .types import Layout
from .validate import validate_tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaveRun:
    """Per-wave values shared by every strategy invocation of the wave."""

    budget: int
    tokenizer: Tokenizer
    projection: Projection
    total_tokens: int
    iteration: int
    hooks: FitHooks


Wave = Callable[[Node, int, WaveRun, AmbientContext], Awaitable[tuple[Node | None, bool]]]


def collect_strategy_priorities(root: Node) -> set[int]:
    """Priorities of all nodes in the tree that carry a strategy."""
    return {node.priority for _, node in walk(root) if node.strategy is not None}


async def apply_priority_wave(
    node: Node,
    priority: int,
    run: WaveRun,
    inherited: AmbientContext,
) -> tuple[Node | None, bool]:
    """Apply every strategy at ``priority`` in post-order.

    Strategies run one at a time and all see the token total measured before
    the wave started.

    Returns:
        (replacement node or None if removed, whether anything changed)
    """
    context = inherited.merge(node.context)

    changed = False
    children: list[Node | str] = []
    for child in node.children:
        if isinstance(child, str):
            children.append(child)
            continue
        reduced, child_changed = await apply_priority_wave(child, priority, run, context)
        changed = changed or child_changed
        if reduced is not None:
            children.append(reduced)

    current = node.with_children(children) if changed else node
    if current.strategy is None or current.priority != priority:
        return current, changed

    fit_ctx = FitContext(
        target=current,
        budget=run.budget,
        tokenizer=run.tokenizer,
        projection=run.projection,
        total_tokens=run.total_tokens,
        iteration=run.iteration,
        context=context,
    )
    result = await maybe_await(current.strategy(current, fit_ctx))

    await run.hooks.emit(
        StrategyAppliedEvent(
            target=current,
            result=result,
            priority=priority,
            iteration=run.iteration,
        )
    )

    if result is None:
        logger.debug(f"Removed {current.kind_name} node (id={current.id!r}) at priority {priority}")
        return None, True
    return result, changed or (result is not current and result != current)


async def _fail(
    hooks: FitHooks,
    reason: FitFailure,
    budget: int,
    total_tokens: int,
    priority: int,
    iteration: int,
) -> NoReturn:
    error = FitError(
        over_budget_by=total_tokens - budget,
        priority=priority,
        iteration=iteration,
        budget=budget,
        total_tokens=total_tokens,
        reason=reason,
    )
    logger.debug(str(error))
    await hooks.emit(
        FitErrorEvent(
            error=error,
            iteration=iteration,
            priority=priority,
            total_tokens=total_tokens,
        )
    )
    raise error


async def fit(
    root: Node,
    budget: int,
    tokenizer: Tokenizer = approximate_tokenizer,
    projection: Projection = markdown_projection,
    *,
    context: AmbientContext | None = None,
    hooks: FitHooks | None = None,
    max_iterations: int | None = None,
    wave: Wave = apply_priority_wave,
) -> Node:
    """Reduce a tree until its projected token count fits ``budget``.

    Args:
        root: Tree to fit (never mutated)
        budget: Maximum token count
        tokenizer: Counts tokens of a projected string
        projection: Renders a subtree to the string that gets counted
        context: Ambient context at the root (e.g. a completion provider)
        hooks: Lifecycle callbacks
        max_iterations: Optional ceiling on reduction waves
        wave: Function applying one priority tier

    Returns:
        The reduced tree, or ``root`` itself if it already fits

    Raises:
        StructuralError: If the tree violates a nesting invariant
        FitError: If no strategy is left, a wave made no progress, or
            ``max_iterations`` was reached while still over budget

    Example:
        prompt = region(
            message("system", "You are helpful."),
            message("user", omit_region(background, priority=2), question),
        )
        fitted = await fit(prompt, 4000)
    """
    validate_tree(root)

    hooks = hooks or FitHooks()
    inherited = context or AmbientContext()
    iteration = 0

    total_tokens = count_tokens(root, tokenizer, projection)
    await hooks.emit(FitStartEvent(element=root, budget=budget, total_tokens=total_tokens))

    while True:
        if total_tokens <= budget:
            logger.debug(f"Fit {total_tokens}/{budget} tokens after {iteration} iterations")
            await hooks.emit(
                FitCompleteEvent(result=root, iterations=iteration, total_tokens=total_tokens)
            )
            return root

        priorities = collect_strategy_priorities(root)
        if not priorities:
            await _fail(hooks, FitFailure.NO_STRATEGIES, budget, total_tokens, -1, iteration)

        worst = max(priorities)
        if max_iterations is not None and iteration >= max_iterations:
            await _fail(hooks, FitFailure.MAX_ITERATIONS, budget, total_tokens, worst, iteration)

        logger.debug(
            f"Iteration {iteration}: {total_tokens}/{budget} tokens, reducing priority {worst}"
        )
        await hooks.emit(
            FitIterationEvent(iteration=iteration, priority=worst, total_tokens=total_tokens)
        )

        run = WaveRun(
            budget=budget,
            tokenizer=tokenizer,
            projection=projection,
            total_tokens=total_tokens,
            iteration=iteration,
            hooks=hooks,
        )
        rebuilt, changed = await wave(root, worst, run, inherited)
        if not changed:
            await _fail(hooks, FitFailure.NO_PROGRESS, budget, total_tokens, worst, iteration)

        # Removing the root leaves nothing to render.
        next_root = rebuilt if rebuilt is not None else Node()
        next_tokens = count_tokens(next_root, tokenizer, projection)
        if next_tokens >= total_tokens:
            await _fail(hooks, FitFailure.NO_PROGRESS, budget, total_tokens, worst, iteration)

        root = next_root
        total_tokens = next_tokens
        iteration += 1


async def render(
    root: Node,
    *,
    budget: int | None = None,
    tokenizer: Tokenizer | None = None,
    projection: Projection | None = None,
    context: AmbientContext | None = None,
    hooks: FitHooks | None = None,
    settings: FitSettings | None = None,
) -> Layout:
    """Fit a tree to a budget (if given) and flatten it into a layout.

    Without a budget the tree is only validated and flattened. A budget of
    zero or less yields an empty layout. Unset collaborators come from
    ``settings``: ``tokenizer_model`` selects a LiteLLM tokenizer, and when
    settings are passed explicitly with no provider in ``context``, a
    LiteLLM provider is built from ``settings.summary``.

    Example:
        layout = await render(prompt, budget=8000)
        for msg in layout.messages:
            print(msg.role, msg.text)
    """
    validate_tree(root)

    if budget is None:
        return flatten(root)
    if budget <= 0:
        logger.debug(f"Budget {budget} leaves no room; rendering an empty layout")
        return Layout()

    resolved = settings or DEFAULT_SETTINGS
    if tokenizer is None:
        if resolved.tokenizer_model:
            tokenizer = litellm_tokenizer(resolved.tokenizer_model)
        else:
            tokenizer = approximate_tokenizer

    if settings is not None and (context is None or context.provider is None):
        provider = LiteLLMProvider.from_settings(settings)
        context = (context or AmbientContext()).model_copy(update={"provider": provider})

    fitted = await fit(
        root,
        budget,
        tokenizer,
        projection or markdown_projection,
        context=context,
        hooks=hooks,
        max_iterations=resolved.max_iterations,
    )
    return flatten(fitted)
