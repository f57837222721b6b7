"""
pipy-prompt - Prompts as priority trees, fitted to a token budget.

Build a prompt as a tree of regions and messages, tag the optional parts with
priorities and strategies, then fit the tree to a budget and flatten it into
messages.

Quick start:
    from pipy_prompt import region, message, omit_region, truncate_region, render

    prompt = region(
        message("system", "You are helpful."),
        truncate_region(*history, budget=2000, priority=2),
        message(
            "user",
            omit_region("Background notes...", priority=3),
            "What's the weather in Paris?",
        ),
    )

    layout = await render(prompt, budget=4000)
    for msg in layout.messages:
        print(msg.role, msg.text)

    # Summaries persist across fits with the same id
    store = InMemoryStore()
    summary_region(*old_messages, id="conv-1", store=store, priority=2)
"""

__version__ = "0.51.6"

# Errors
from .errors import (
    ConfigurationError,
    FitError,
    FitFailure,
    PromptError,
    StructuralError,
)

# Fit engine
from .fit import (
    WaveRun,
    apply_priority_wave,
    collect_strategy_priorities,
    fit,
    render,
)

# Hooks
from .hooks import (
    FitCompleteEvent,
    FitErrorEvent,
    FitEvent,
    FitHooks,
    FitIterationEvent,
    FitStartEvent,
    StrategyAppliedEvent,
)

# Layout
from .layout import (
    coalesce_parts,
    flatten,
    layout_to_text,
    nest,
)

# Memory
from .memory import (
    InMemoryStore,
    MemoryEntry,
    SummaryStore,
)

# IR
from .nodes import (
    AmbientContext,
    Child,
    MessageKind,
    Node,
    ReasoningKind,
    ToolCallKind,
    ToolResultKind,
    code_block,
    examples,
    last,
    message,
    reasoning,
    region,
    separator,
    tool_call,
    tool_result,
    walk,
)

# Providers
from .provider import (
    CompletionProvider,
    LiteLLMProvider,
)

# Settings
from .settings import (
    FitSettings,
    SummarySettings,
    load_settings,
    resolve_config_value,
)

# Snapshots
from .snapshot import (
    Snapshot,
    SnapshotDiff,
    SnapshotNode,
    create_snapshot,
    diff_snapshots,
)

# Strategies
from .strategies import (
    FitContext,
    Strategy,
    omit,
    omit_region,
    truncate,
    truncate_region,
)
from .summary import (
    SummarizerContext,
    default_summarizer,
    serialize_layout,
    summarize,
    summary_region,
)

# Tokens
from .tokens import (
    Projection,
    Tokenizer,
    approximate_tokenizer,
    count_layout_tokens,
    count_tokens,
    litellm_tokenizer,
    markdown_projection,
    text_projection,
)

# Layout types (Pydantic models)
from .types import (
    CompletionResult,
    Layout,
    Part,
    PromptMessage,
    ReasoningPart,
    Role,
    StoredSummary,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)

# Validation
from .validate import (
    assert_unique_ids,
    find_duplicate_ids,
    validate_tree,
)

__all__ = [
    # Version
    "__version__",
    # Errors
    "PromptError",
    "StructuralError",
    "ConfigurationError",
    "FitError",
    "FitFailure",
    # IR
    "Node",
    "Child",
    "AmbientContext",
    "MessageKind",
    "ToolCallKind",
    "ToolResultKind",
    "ReasoningKind",
    "region",
    "message",
    "tool_call",
    "tool_result",
    "reasoning",
    "last",
    "separator",
    "examples",
    "code_block",
    "walk",
    # Validation
    "validate_tree",
    "find_duplicate_ids",
    "assert_unique_ids",
    # Layout types
    "Role",
    "TextPart",
    "ReasoningPart",
    "ToolCallPart",
    "ToolResultPart",
    "Part",
    "PromptMessage",
    "Layout",
    "CompletionResult",
    "StoredSummary",
    # Layout
    "flatten",
    "nest",
    "coalesce_parts",
    "layout_to_text",
    # Tokens
    "Tokenizer",
    "Projection",
    "approximate_tokenizer",
    "litellm_tokenizer",
    "markdown_projection",
    "text_projection",
    "count_tokens",
    "count_layout_tokens",
    # Strategies
    "FitContext",
    "Strategy",
    "omit",
    "truncate",
    "omit_region",
    "truncate_region",
    "summarize",
    "summary_region",
    "SummarizerContext",
    "default_summarizer",
    "serialize_layout",
    # Memory
    "SummaryStore",
    "InMemoryStore",
    "MemoryEntry",
    # Providers
    "CompletionProvider",
    "LiteLLMProvider",
    # Fit engine
    "fit",
    "render",
    "apply_priority_wave",
    "collect_strategy_priorities",
    "WaveRun",
    # Hooks
    "FitHooks",
    "FitEvent",
    "FitStartEvent",
    "FitIterationEvent",
    "StrategyAppliedEvent",
    "FitCompleteEvent",
    "FitErrorEvent",
    # Snapshots
    "create_snapshot",
    "diff_snapshots",
    "Snapshot",
    "SnapshotNode",
    "SnapshotDiff",
    # Settings
    "FitSettings",
    "SummarySettings",
    "load_settings",
    "resolve_config_value",
]
