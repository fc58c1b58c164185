from typing import Callable, Optional

from ..core.config import settings
from ..models import RepositoryContext
from .definitions import REPOSITORY_TOOLS, execute_tool_call
from .github import GitHubRepositoryTools
from .repository import (
    CONFIG_FILE_PATHS,
    DirectoryEntry,
    LocalRepositoryTools,
    RepositoryTools,
    SearchHit,
    close_tools,
    read_config_files,
)


ToolFactory = Callable[[RepositoryContext], RepositoryTools]


def github_tool_factory(repository: RepositoryContext) -> RepositoryTools:
    return GitHubRepositoryTools.for_context(repository)


def default_tool_factory() -> Optional[ToolFactory]:
    """GitHub tools when a token is configured, otherwise no tool access."""
    return github_tool_factory if settings.GITHUB_TOKEN else None


__all__ = [
    "CONFIG_FILE_PATHS",
    "REPOSITORY_TOOLS",
    "DirectoryEntry",
    "GitHubRepositoryTools",
    "LocalRepositoryTools",
    "RepositoryTools",
    "SearchHit",
    "ToolFactory",
    "close_tools",
    "default_tool_factory",
    "execute_tool_call",
    "github_tool_factory",
    "read_config_files",
]
