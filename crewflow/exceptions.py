"""Exception hierarchy for the orchestration engine.

Only ``CircularDependencyError`` and ``NoAgentsSelectedError`` ever abort a
run. Everything raised inside a single agent's generation loop is converted
into an error ``AgentOutput`` by the loop itself.
"""

from typing import Iterable, Optional


class OrchestrationError(Exception):
    """Base class for engine errors."""


class CircularDependencyError(OrchestrationError):
    """Selected agents depend on each other in a cycle."""

    def __init__(self, roles: Iterable[str]):
        self.roles = list(roles)
        super().__init__(f"Circular dependency detected: {', '.join(self.roles)}")


class NoAgentsSelectedError(OrchestrationError):
    """The run selected no agent known to the registry."""

    def __init__(self, requested: Optional[Iterable[str]] = None):
        self.requested = list(requested or [])
        message = "No valid agents selected"
        if self.requested:
            message += f" (requested: {', '.join(self.requested)})"
        super().__init__(message)


class ManifestError(OrchestrationError):
    pass


class BackendError(OrchestrationError):
    """A generation backend call failed."""


class RepositoryToolError(OrchestrationError):
    """A repository tool could not complete."""


class FileNotFoundInRepository(RepositoryToolError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"File not found: {path}")
