"""Application-level error types."""

from __future__ import annotations


class OrchError(Exception):
    """Base error for orchestrator."""


class ConfigurationError(OrchError):
    """Raised when orchestrator configuration is invalid."""


class CatalogError(OrchError):
    """Raised when catalog loading/validation fails."""


class DependencyError(OrchError):
    """Raised when a task depends on an unknown task or on itself."""


class CircularDependencyError(DependencyError):
    """Raised when the plan builder cannot place the remaining tasks."""

    def __init__(self, unresolved: list[str], missing: list[str] | None = None) -> None:
        self.unresolved = sorted(unresolved)
        self.missing = sorted(missing or [])
        message = f"Circular dependency detected: {', '.join(self.unresolved)}"
        if self.missing:
            message += f" (unknown dependencies: {', '.join(self.missing)})"
        super().__init__(message)


class PlanInvariantError(OrchError):
    """Raised when plan building exceeds its iteration bound."""


class PrerequisiteError(OrchError):
    """Raised when a required tool or service is unavailable."""
