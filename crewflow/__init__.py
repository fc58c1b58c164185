"""
Multi-agent orchestration engine.

A team of role-bound agents works on one task in dependency order, either
sequentially or level by level in parallel. Each agent's response is mined
for file artifacts, and runs against a repository finish with a completion
check that can trigger one targeted remediation round.
"""

from .agents import BUILTIN_AGENTS, AgentRegistry, AgentSpec, default_registry
from .agents.manifest import load_team_manifest
from .backends import GenerationConfig, GenerationResult, LiteLLMBackend, ScriptedBackend
from .events import ProgressBroadcaster, broadcaster
from .exceptions import (
    BackendError,
    CircularDependencyError,
    FileNotFoundInRepository,
    ManifestError,
    NoAgentsSelectedError,
    OrchestrationError,
    RepositoryToolError,
)
from .models import (
    AgentOutput,
    Artifact,
    ExecutionMode,
    ProgressEvent,
    RepositoryContext,
    RepositoryFile,
    RunRequest,
    RunResult,
    RunStatus,
)
from .storage import InMemoryRunStore, SqlRunStore
from .workflows.context_builder import create_execution_summary
from .workflows.orchestrator import Orchestrator, orchestrator


__version__ = "0.1.0"

__all__ = [
    "BUILTIN_AGENTS",
    "AgentRegistry",
    "AgentSpec",
    "default_registry",
    "load_team_manifest",
    "GenerationConfig",
    "GenerationResult",
    "LiteLLMBackend",
    "ScriptedBackend",
    "ProgressBroadcaster",
    "broadcaster",
    "BackendError",
    "CircularDependencyError",
    "FileNotFoundInRepository",
    "ManifestError",
    "NoAgentsSelectedError",
    "OrchestrationError",
    "RepositoryToolError",
    "AgentOutput",
    "Artifact",
    "ExecutionMode",
    "ProgressEvent",
    "RepositoryContext",
    "RepositoryFile",
    "RunRequest",
    "RunResult",
    "RunStatus",
    "InMemoryRunStore",
    "SqlRunStore",
    "create_execution_summary",
    "Orchestrator",
    "orchestrator",
]
