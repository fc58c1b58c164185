"""
Context assembly: turns an agent spec and an execution context snapshot
into the exact prompt text for one agent invocation.
"""

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..agents import VALIDATOR_ROLE, default_registry
from ..agents.registry import AgentRegistry, AgentSpec
from ..core.config import settings
from ..models import AgentOutput, ExecutionStepType, RepositoryFile
from ..pricing import format_cost
from ..tokens import detect_language
from .artifacts import all_folders, root_folders

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionContext:
    """
    Immutable snapshot of what an agent may see.

    The orchestrator replaces the snapshot at each barrier (after an agent in
    sequential mode, after a whole level in parallel mode). Agents running
    concurrently share one snapshot and never see each other's output.
    """

    task_description: str
    latest_outputs: Mapping[str, AgentOutput] = field(default_factory=lambda: MappingProxyType({}))
    history: Tuple[AgentOutput, ...] = ()
    repository_files: Tuple[RepositoryFile, ...] = ()
    team_roles: Tuple[str, ...] = ()
    is_review: bool = False

    @classmethod
    def create(
        cls,
        task_description: str,
        team_roles: Iterable[str] = (),
        repository_files: Iterable[RepositoryFile] = (),
        previous_outputs: Sequence[AgentOutput] = (),
        is_review: bool = False,
    ) -> "ExecutionContext":
        return cls(task_description=task_description, team_roles=tuple(team_roles),
                   repository_files=tuple(repository_files), is_review=is_review).with_outputs(previous_outputs)

    def with_outputs(self, outputs: Iterable[AgentOutput]) -> "ExecutionContext":
        """New snapshot with outputs appended; the latest output per role wins."""
        outputs = tuple(outputs)
        if not outputs:
            return self
        latest: Dict[str, AgentOutput] = dict(self.latest_outputs)
        for output in outputs:
            latest[output.role] = output
        return replace(self, latest_outputs=MappingProxyType(latest), history=self.history + outputs)

    def with_task(self, task_description: str) -> "ExecutionContext":
        return replace(self, task_description=task_description)

    def outputs_of(self, role: str) -> List[AgentOutput]:
        return [o for o in self.history if o.role == role]

    @property
    def has_repository(self) -> bool:
        return bool(self.repository_files)


CONFIG_FILE_NAMES = frozenset(
    [
        "package.json",
        "tsconfig.json",
        ".gitignore",
        ".editorconfig",
        "pyproject.toml",
        "setup.cfg",
        "requirements.txt",
        "go.mod",
        "cargo.toml",
        "composer.json",
        "gemfile",
        "pom.xml",
        "build.gradle",
    ]
)


def is_config_file(path: str) -> bool:
    name = path.rsplit("/", 1)[-1].lower()
    return (
        name in CONFIG_FILE_NAMES
        or name.startswith(".eslint")
        or name.startswith(".prettier")
        or "config" in name
    )


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "...[truncated]"


def _file_block(file: RepositoryFile) -> str:
    return (
        f"### File: {file.path}\n"
        f"Language: {file.language}\n"
        f"Size: {file.size} bytes (~{file.tokens} tokens)\n\n"
        f"```{file.language}\n{file.content}\n```\n\n"
    )


def structure_rules_section(files: Sequence[RepositoryFile]) -> str:
    roots = sorted(root_folders(files))
    folders = sorted(all_folders(files))

    parts = [
        "# 🚨 CRITICAL - REPOSITORY STRUCTURE RULES 🚨\n\n",
        "**YOU MUST FOLLOW THESE RULES OR YOUR OUTPUT WILL BE REJECTED:**\n\n",
    ]
    if roots:
        parts.append("## Existing Root Folders\n\nThe repository has these root folders:\n")
        parts.extend(f"- `{root}/`\n" for root in roots)
        parts.append(
            "\n**RULE #1: Only use these existing root folders for new files.**\n"
            "**RULE #2: Do not invent new root-level folders (like \"frontend/\", \"backend/\", \"components/\").**\n\n"
        )
    if folders:
        parts.append("## Complete Folder Structure\n\nAll existing folders in the repository:\n\n")
        parts.extend(f"- `{folder}/`\n" for folder in folders)
        parts.append("\n")

    parts.append(
        "## ❌ WRONG (do not do this):\n\n"
        "- `frontend/src/components/Button.tsx` (if \"frontend\" doesn't exist)\n"
        "- `my-components/Card.tsx` (inventing new folders)\n\n"
    )
    if "src" in roots:
        parts.append(
            "## ✅ CORRECT:\n\n"
            "- `src/components/Button.tsx` (uses the existing \"src/\" folder)\n\n"
        )
    parts.append(
        "**If you need a new file, place it in the most appropriate existing folder.**\n\n---\n\n"
    )
    return "".join(parts)


def repository_files_section(files: Sequence[RepositoryFile]) -> str:
    config_files = [f for f in files if is_config_file(f.path)]
    regular_files = [f for f in files if not is_config_file(f.path)]

    parts = [
        "# Repository Context\n\n",
        "The following files from the repository have been provided for context:\n\n",
    ]
    if config_files:
        parts.append(
            "## 🔧 Project Configuration Files\n\n"
            "**These files define the project's conventions, linting rules and build configuration. "
            "You MUST follow them.**\n\n"
        )
        parts.extend(_file_block(f) for f in config_files)
        parts.append(
            "**Instructions based on configuration:**\n"
            "- Follow lint and formatting rules that are present\n"
            "- Follow compiler and build options that are present\n"
            "- Use the dependencies and scripts declared in package manifests\n"
            "- Do not commit files listed in .gitignore\n\n"
        )
    if regular_files:
        parts.append("## 📄 Repository Files\n\n")
        parts.extend(_file_block(f) for f in regular_files)
    parts.append("---\n\n")
    return "".join(parts)


def own_history_section(outputs: Sequence[AgentOutput], registry: AgentRegistry) -> str:
    parts = [
        "# ⚠️ IMPORTANT - Your Previous Work\n\n",
        f"You have already worked on this task {len(outputs)} time(s). ",
        "CONTINUE from where you left off, do NOT start over.\n\n",
        "**Critical Instructions:**\n"
        "- DO NOT create duplicate files\n"
        "- DO NOT recreate artifacts you already created\n"
        "- BUILD UPON your previous work, don't replace it\n"
        "- Focus ONLY on what's still missing\n\n",
    ]

    for index, output in enumerate(outputs, start=1):
        parts.append(f"## Previous Execution #{index}\n\n")
        if output.artifacts:
            parts.append("**Files you already created (DO NOT recreate these):**\n\n")
            for artifact in output.artifacts:
                language = artifact.language or detect_language(artifact.path)
                parts.append(f"### `{artifact.path}` ({artifact.type.value})\n\n```{language}\n{artifact.content}\n```\n\n")
        summary = _truncate(output.content, settings.PREVIOUS_OUTPUT_SUMMARY_CHARS)
        parts.append(f"**Summary of your previous response:**\n{summary}\n\n")
    parts.append("---\n\n")

    logged = [o for o in outputs if o.execution_log is not None]
    if logged:
        parts.append("# 📜 DETAILED EXECUTION HISTORY\n\n")
        for output in logged:
            log = output.execution_log
            parts.append(
                f"## {registry.display_name(output.role)} - Execution Log\n"
                f"- Total Steps: {log.summary.total_steps}\n"
                f"- Tool Calls: {log.summary.total_tool_calls}\n"
                f"- Duration: {log.summary.start_time.isoformat()} to {log.summary.end_time.isoformat()}\n\n"
            )
            key_steps = [
                s for s in log.steps if s.type in (ExecutionStepType.tool_call, ExecutionStepType.thinking)
            ][:10]
            if key_steps:
                parts.append("**Key Steps:**\n")
                for i, step in enumerate(key_steps, start=1):
                    parts.append(f"{i}. [{step.type.value}] {step.content}\n")
                    if step.tool_name:
                        parts.append(f"   Tool: {step.tool_name}\n")
                parts.append("\n")
        parts.append("---\n\n")

    return "".join(parts)


def validator_view_section(context: ExecutionContext, registry: AgentRegistry) -> str:
    team_outputs = [o for o in context.history if o.succeeded and o.role != VALIDATOR_ROLE]

    parts = [
        "# Created Artifacts\n\n",
        "The following files were created by the team as artifacts (not yet in the repository):\n\n",
    ]
    grouped: Dict[str, List[str]] = {}
    for output in team_outputs:
        for artifact in output.artifacts:
            grouped.setdefault(output.role, []).append(f"- **{artifact.path}** ({artifact.type.value})")

    total = sum(len(entries) for entries in grouped.values())
    if total:
        for role, entries in grouped.items():
            parts.append(f"## {registry.display_name(role)} ({len(entries)} file(s))\n\n")
            parts.append("\n".join(entries) + "\n\n")
        parts.append(f"**Total artifacts created: {total}**\n\n")
    else:
        parts.append("⚠️ **No artifacts were created by any agent.**\n\n")
    parts.append("---\n\n")

    parts.append("# Team Member Outputs\n\nReview what each team member planned and implemented:\n\n")
    for output in team_outputs:
        parts.append(f"## {registry.display_name(output.role)}\n\n{output.content}\n\n")
    return "".join(parts)


def dependency_section(spec: AgentSpec, context: ExecutionContext, registry: AgentRegistry) -> str:
    available = [
        (dep, context.latest_outputs[dep])
        for dep in spec.dependencies
        if dep in context.latest_outputs and context.latest_outputs[dep].succeeded
    ]
    if not available:
        return ""

    parts = [
        "# Context from Team Members\n\n",
        "Your team members have already completed their analysis. Use their insights to inform your work:\n\n",
    ]
    for role, output in available:
        parts.append(f"## {registry.display_name(role)}\n\n{output.content}\n\n")
        if output.artifacts:
            parts.append("**Artifacts:**\n")
            parts.extend(f"- {a.path} ({a.type.value})\n" for a in output.artifacts)
            parts.append("\n")
        if output.execution_log is not None:
            parts.append(f"**Execution Summary:**\n- {output.execution_log.summary_line()}\n\n")
    return "".join(parts)


def task_section(spec: AgentSpec) -> str:
    parts = [
        "# Your Task\n\n",
        f"As the {spec.name}, analyze the task and provide your expertise. ",
        "Focus on your specific responsibilities:\n\n",
    ]
    parts.extend(f"- {capability}\n" for capability in spec.capabilities)
    parts.append(
        "\n# Output Requirements\n\n"
        "Provide a comprehensive response following your role's structure. "
        "Include specific, actionable recommendations.\n\n"
        "# CRITICAL - Creating File Artifacts\n\n"
        "Every file you create MUST use this EXACT format:\n\n"
        "```language:full/path/to/file.ext\n"
        "// Complete file content here\n"
        "```\n\n"
        "IMPORTANT:\n"
        "- Use the actual programming language (typescript, javascript, css, python, etc.)\n"
        "- Include the FULL file path relative to the project root\n"
        "- Include the COMPLETE file, never a snippet or a diff\n"
        "- Create ONE code block per file\n"
        "- Never put file content in plain text, only in code blocks\n\n"
    )
    return "".join(parts)


MODIFY_EXISTING_FILES = (
    "# 🔄 CRITICAL - Modifying Existing Files\n\n"
    "⚠️ **YOU MUST PRESERVE ALL EXISTING CONTENT** ⚠️\n\n"
    "When you modify a file that already exists in the repository:\n\n"
    "1. Find the file in the \"Repository Files\" section above\n"
    "2. Start from its ENTIRE content\n"
    "3. Change only the lines that need changing\n"
    "4. Output the COMPLETE file under the SAME path\n\n"
    "❌ WRONG: a partial patch or diff\n"
    "❌ WRONG: a new file with a different name\n"
    "✅ CORRECT: the full file, same path, with your changes applied\n\n"
    "**Artifacts that drop most of an existing file are rejected.**\n\n"
)

REVIEW_CHECKLIST = (
    "# 🛡️ DEFENSIVE EDITING FOR REVIEWS\n\n"
    "You are fixing errors in EXISTING, WORKING code. Make minimal changes.\n\n"
    "## Do NOT:\n"
    "❌ Create new files when fixing existing ones\n"
    "❌ Rename functions, classes or files\n"
    "❌ Change function signatures\n"
    "❌ Refactor code unrelated to the error\n"
    "❌ Remove error handling\n"
    "❌ Add debug statements\n\n"
    "## Do:\n"
    "✅ Read the current file before changing it\n"
    "✅ Fix only the specific error\n"
    "✅ Preserve existing structure and conventions\n"
    "✅ Verify imports are correct\n\n"
)


def build_prompt(
    spec: AgentSpec,
    context: ExecutionContext,
    registry: Optional[AgentRegistry] = None,
) -> str:
    """
    Build the full prompt for one agent invocation.

    Args:
        spec: The agent being invoked
        context: Snapshot of the run as this agent may see it
        registry: Registry used for display names (defaults to the built-in team)

    Returns:
        Prompt text, sections in a fixed order
    """
    registry = registry or default_registry
    files = context.repository_files
    is_validator = spec.role == VALIDATOR_ROLE

    parts = [f"# Task Description\n\n{context.task_description}\n\n"]

    if files:
        parts.append(structure_rules_section(files))
        parts.append(repository_files_section(files))

    if context.team_roles:
        parts.append("# Team Composition\n\nYou are working as part of a team with the following roles:\n")
        parts.extend(f"- {role}\n" for role in context.team_roles)
        parts.append("\n")

    own_outputs = context.outputs_of(spec.role)
    if own_outputs and not is_validator:
        parts.append(own_history_section(own_outputs, registry))

    if is_validator:
        parts.append(validator_view_section(context, registry))
    else:
        parts.append(dependency_section(spec, context, registry))

    parts.append(task_section(spec))

    if files:
        parts.append(MODIFY_EXISTING_FILES)

    if context.is_review:
        parts.append(REVIEW_CHECKLIST)

    return "".join(parts)


def create_execution_summary(outputs: Sequence[AgentOutput], registry: Optional[AgentRegistry] = None) -> str:
    """Markdown summary of a run's outputs."""
    registry = registry or default_registry
    status = "Success" if all(o.succeeded for o in outputs) else "Partial Success"
    total_time = sum(o.execution_time for o in outputs)
    total_cost = sum(o.estimated_cost for o in outputs)

    lines = [
        "# Execution Summary",
        "",
        f"**Agents Executed:** {len(outputs)}",
        f"**Status:** {status}",
        f"**Total Execution Time:** {total_time:.2f}s",
        f"**Estimated Cost:** {format_cost(total_cost)}",
        "",
        "## Agent Outputs",
        "",
    ]
    for output in outputs:
        lines.append(f"### {registry.display_name(output.role)}")
        lines.append(f"- Status: {output.status.value}")
        if output.execution_time:
            lines.append(f"- Execution Time: {output.execution_time:.2f}s")
        if output.artifacts:
            lines.append(f"- Artifacts: {len(output.artifacts)} file(s)")
        if output.total_tokens:
            lines.append(f"- Tokens: {output.total_tokens} ({format_cost(output.estimated_cost)})")
        if output.error:
            lines.append(f"- Error: {output.error}")
        lines.append("")
    return "\n".join(lines)
