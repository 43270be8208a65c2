"""Error taxonomy shared by ingestion, retrieval, and the agent loop."""

from __future__ import annotations


class AgentError(Exception):
    """Base class for every error raised by this package."""


class InvalidConfig(AgentError):
    """Raised when a component is constructed with inconsistent parameters."""


class IndexMismatch(AgentError):
    """Raised when embeddings disagree with the index they are used against."""


class ProviderError(AgentError):
    """Raised by external providers (embedding, search) on failure."""


class FetchError(ProviderError):
    """Raised when a document source cannot be fetched or parsed."""


class ModelError(AgentError):
    """Raised by the model-decision interface on failure or malformed output."""


class ToolNotFound(AgentError, KeyError):
    """Raised when a tool name is not present in the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")

    def __str__(self) -> str:
        return f"Unknown tool: {self.name}"


class RegistryFrozen(AgentError):
    """Raised when registering a tool after the registry was frozen."""


class PlanningFailed(AgentError):
    """Raised when the planning step fails; the turn is aborted."""


class MaxIterationsExceeded(AgentError):
    """Raised when a turn exceeds the planning/dispatch iteration cap."""

    def __init__(self, max_iterations: int) -> None:
        self.max_iterations = max_iterations
        super().__init__(
            f"Agent did not produce a final answer within {max_iterations} iterations"
        )


class TurnTimeout(AgentError):
    """Raised when a turn exceeds its wall-clock budget."""


class SessionStoreError(AgentError):
    """Raised when the session history store cannot serve a request."""
