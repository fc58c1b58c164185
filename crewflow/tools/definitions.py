"""Function-calling schemas for the repository tools and their dispatcher."""

import logging
from typing import Any, Dict, List

from ..backends import ToolCall
from ..exceptions import RepositoryToolError
from .repository import RepositoryTools

logger = logging.getLogger(__name__)


REPOSITORY_TOOLS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "get_repository_file",
            "description": (
                "Read the full content of a file that already exists in the repository. "
                "Use it to inspect existing code before modifying it."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "File path relative to the repository root, e.g. src/App.tsx",
                    },
                },
                "required": ["path"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "list_repository_directory",
            "description": "List files and folders at a path in the repository. Use an empty path for the root.",
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Directory path relative to the repository root"},
                },
                "required": ["path"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "search_repository",
            "description": "Search the repository by file name or by file content.",
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Text or file name to look for"},
                    "type": {
                        "type": "string",
                        "enum": ["filename", "content"],
                        "description": "Search file names or file contents",
                    },
                },
                "required": ["query"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_config_files",
            "description": (
                "Read the project's configuration files (package manifests, lint and format configs, "
                "build configs) in one call."
            ),
            "parameters": {"type": "object", "properties": {}},
        },
    },
]


def _require(call: ToolCall, name: str) -> str:
    value = call.arguments.get(name)
    if not isinstance(value, str):
        raise RepositoryToolError(f"Tool {call.name} requires a string '{name}' argument")
    return value


async def execute_tool_call(tools: RepositoryTools, call: ToolCall) -> Any:
    """
    Run one tool call and return a JSON-serializable result.

    Unknown tool names produce an error result instead of raising; tool
    failures propagate so the caller can log them.
    """
    if call.name == "get_repository_file":
        file = await tools.read_file(_require(call, "path"))
        return file.model_dump()

    if call.name == "list_repository_directory":
        path = call.arguments.get("path") or ""
        return [entry.model_dump() for entry in await tools.list_directory(path)]

    if call.name == "search_repository":
        kind = call.arguments.get("type") or "filename"
        if kind not in ("filename", "content"):
            kind = "filename"
        return [hit.model_dump() for hit in await tools.search(_require(call, "query"), kind)]

    if call.name == "get_config_files":
        return [file.model_dump() for file in await tools.read_config_files()]

    logger.error(f"Unknown tool: {call.name}")
    return {"error": f"Unknown tool: {call.name}"}
