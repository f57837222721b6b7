"""Exceptions raised while building, fitting and summarizing prompts."""

from enum import Enum


class PromptError(Exception):
    """Base class for pipy-prompt errors."""

    pass


class StructuralError(PromptError):
    """Raised when a prompt tree violates a nesting invariant.

    This indicates a programming error in how the tree was assembled and is
    never retried.
    """

    def __init__(self, message: str, path: str = "root", node_id: str | None = None):
        self.path = path
        self.node_id = node_id
        location = f"{path} (id={node_id!r})" if node_id else path
        super().__init__(f"{message} at {location}")


class ConfigurationError(PromptError):
    """Raised when a required collaborator (provider, store) is missing."""

    pass


class FitFailure(str, Enum):
    """Why fitting gave up."""

    NO_STRATEGIES = "no_strategies"
    NO_PROGRESS = "no_progress"
    MAX_ITERATIONS = "max_iterations"


class FitError(PromptError):
    """Raised when the prompt cannot be fit within the budget.

    Happens when no strategies remain while still over budget, when a
    reduction wave made no progress, or when the optional iteration ceiling
    is reached.

    Attributes:
        over_budget_by: How many tokens over budget
        priority: Priority tier where fitting failed (-1 if no strategies)
        iteration: Fit loop iteration that failed
        budget: The requested budget
        total_tokens: Token count when fitting failed
        reason: Which failure condition triggered
    """

    def __init__(
        self,
        over_budget_by: int,
        priority: int,
        iteration: int,
        budget: int,
        total_tokens: int,
        reason: FitFailure = FitFailure.NO_PROGRESS,
    ):
        self.over_budget_by = over_budget_by
        self.priority = priority
        self.iteration = iteration
        self.budget = budget
        self.total_tokens = total_tokens
        self.reason = reason
        super().__init__(
            f"Cannot fit prompt: {total_tokens} tokens exceeds budget {budget} "
            f"by {over_budget_by} at priority {priority} "
            f"(iteration {iteration}, {reason.value})"
        )
