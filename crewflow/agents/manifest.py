"""
YAML team manifests.

A manifest adds roles to (or overrides roles of) the built-in registry::

    name: security-team
    agents:
      - role: security
        name: Security Reviewer
        prompt_file: prompts/security.md
        capabilities: [Threat modelling]
        dependencies: [backend]

String values support ``${VAR}`` and ``${VAR:-default}`` substitution.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..exceptions import ManifestError
from .registry import AgentRegistry, AgentSpec


_ENV_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)(:-([^}]*))?\}")


def _substitute_env(value: str) -> str:
    def repl(match: re.Match[str]) -> str:
        var = match.group(1)
        default = match.group(3) or ""
        return os.getenv(var, default)

    return _ENV_PATTERN.sub(repl, value)


def _resolve_env(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _resolve_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_resolve_env(v) for v in obj]
    if isinstance(obj, str):
        return _substitute_env(obj)
    return obj


def _read_prompt(base_dir: Path, rel_path: str) -> str:
    path = Path(rel_path)
    if not path.is_absolute():
        path = base_dir / path
    if not path.exists():
        raise ManifestError(f"Prompt not found: {path}")
    return path.read_text(encoding="utf-8")


def _spec_from_entry(entry: Dict[str, Any], base_dir: Path) -> AgentSpec:
    role = entry.get("role")
    if not role or not isinstance(role, str):
        raise ManifestError(f"Agent entry is missing a 'role': {entry}")

    prompt = entry.get("system_prompt")
    if prompt is None and entry.get("prompt_file"):
        prompt = _read_prompt(base_dir, entry["prompt_file"])
    if not prompt:
        raise ManifestError(f"Agent '{role}' needs 'system_prompt' or 'prompt_file'")

    capabilities = entry.get("capabilities") or []
    dependencies = entry.get("dependencies") or []
    if not isinstance(capabilities, list) or not isinstance(dependencies, list):
        raise ManifestError(f"Agent '{role}': capabilities and dependencies must be lists")

    return AgentSpec(
        role=role,
        name=entry.get("name") or role,
        description=entry.get("description", ""),
        system_prompt=prompt,
        capabilities=tuple(str(c) for c in capabilities),
        dependencies=tuple(str(d) for d in dependencies),
    )


def parse_team_manifest(
    data: Dict[str, Any],
    base_registry: Optional[AgentRegistry] = None,
    base_dir: Optional[Path] = None,
) -> AgentRegistry:
    """Build a registry from already-loaded manifest data."""
    if base_registry is None:
        from . import default_registry
        base_registry = default_registry

    if not isinstance(data, dict):
        raise ManifestError("Team manifest must be a mapping")

    entries = data.get("agents")
    if not isinstance(entries, list) or not entries:
        raise ManifestError("Team manifest must define a non-empty 'agents' list")

    base_dir = base_dir or Path.cwd()
    specs: List[AgentSpec] = [_spec_from_entry(_resolve_env(entry), base_dir) for entry in entries]

    try:
        return base_registry.extend(specs)
    except ValueError as e:
        raise ManifestError(str(e)) from e


def load_team_manifest(path: Path, base_registry: Optional[AgentRegistry] = None) -> AgentRegistry:
    path = Path(path)
    if not path.exists():
        raise ManifestError(f"Team manifest not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ManifestError(f"Invalid YAML in {path}: {e}") from e
    return parse_team_manifest(data, base_registry=base_registry, base_dir=path.parent)
