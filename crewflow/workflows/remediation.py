"""
Completion validation and remediation.

The cycle is a fixed sequence: validate, remediate when the report says the
work is incomplete, re-validate once, stop. It never recurses.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

from ..agents import VALIDATOR_ROLE, parse_validation_report
from ..agents.completion_validator import COMPLETION_VALIDATOR
from ..agents.registry import AgentRegistry, AgentSpec
from ..models import AgentOutput, MissingFile, ValidationReport
from .context_builder import ExecutionContext

logger = logging.getLogger(__name__)

_SHOULD_FORM = re.compile(r"^(\w+[\s\w-]*?)\s+(?:should|needs to|must)\s+(.+)$", re.IGNORECASE)
_COLON_FORM = re.compile(r"^(\w+[\s\w-]*?):\s*(.+)$", re.IGNORECASE)
_FILE_ACTION = re.compile(r"(?:create|implement|add|build)\s+([^\s,]+\.\w+)", re.IGNORECASE)
_SEPARATORS = re.compile(r"[\s-]")

# invoke(spec, context, label, description) -> output
AgentInvoker = Callable[[AgentSpec, ExecutionContext, str, str], Awaitable[AgentOutput]]


@dataclass
class RemediationTask:
    spec: AgentSpec
    description: str
    missing_files: List[MissingFile] = field(default_factory=list)

    def task_description(self, original: str) -> str:
        lines = []
        for missing in self.missing_files:
            lines.append(f"- {missing.path}: {missing.reason}" if missing.reason else f"- {missing.path}")
        files = "\n".join(lines) if lines else "- (see completion task)"
        return f"{original}\n\n## Completion Task\n{self.description}\n\n## Missing Files\n{files}"


@dataclass
class CompletionResult:
    validation_output: Optional[AgentOutput] = None
    report: Optional[ValidationReport] = None
    parse_error: Optional[str] = None
    remediation_outputs: List[AgentOutput] = field(default_factory=list)
    final_validation_output: Optional[AgentOutput] = None

    @property
    def outputs(self) -> List[AgentOutput]:
        """Every output the cycle produced, in order."""
        produced = [self.validation_output] if self.validation_output else []
        produced.extend(self.remediation_outputs)
        if self.final_validation_output:
            produced.append(self.final_validation_output)
        return produced


def recommendation_text(recommendation: Any) -> Optional[str]:
    if isinstance(recommendation, str):
        return recommendation
    if isinstance(recommendation, dict):
        for key in ("action", "recommendation", "details"):
            if isinstance(recommendation.get(key), str) and recommendation[key]:
                return recommendation[key]
        return json.dumps(recommendation)
    logger.warning(f"Invalid recommendation type: {type(recommendation).__name__}")
    return None


def parse_recommendation(text: str) -> Optional[Tuple[str, str]]:
    """Split "<agent> should <action>" or "<agent>: <action>" into (agent, action)."""
    text = text.strip()
    match = _SHOULD_FORM.match(text) or _COLON_FORM.match(text)
    if not match:
        return None
    return match.group(1).strip(), match.group(2).strip()


def match_agent(name: str, candidates: Iterable[AgentSpec]) -> Optional[AgentSpec]:
    """
    Find the agent a recommendation refers to.

    Tries, in order across all candidates: exact role or display name,
    substring either way, then substring with spaces and hyphens removed.
    Matching is case-insensitive.
    """
    candidates = list(candidates)
    search = name.lower()
    search_clean = _SEPARATORS.sub("", search)
    if not search:
        return None

    for spec in candidates:
        if search in (spec.name.lower(), spec.role.lower()):
            return spec

    for spec in candidates:
        for value in (spec.name.lower(), spec.role.lower()):
            if value in search or search in value:
                return spec

    for spec in candidates:
        for value in (spec.name.lower(), spec.role.lower()):
            clean = _SEPARATORS.sub("", value)
            if clean in search_clean or search_clean in clean:
                return spec

    return None


def extract_file_paths(description: str) -> List[str]:
    return _FILE_ACTION.findall(description)


def parse_remediation_tasks(
    recommendations: Sequence[Any],
    candidates: Iterable[AgentSpec],
    report: Optional[ValidationReport] = None,
) -> List[RemediationTask]:
    """
    Turn validator recommendations into remediation tasks.

    Args:
        recommendations: Strings or objects from the validation report
        candidates: Agents that may be assigned work
        report: Full report, used for missing files attributed to an agent

    Returns:
        One task per recommendation that names a known agent
    """
    candidates = [spec for spec in candidates if spec.role != VALIDATOR_ROLE]
    tasks: List[RemediationTask] = []

    for recommendation in recommendations:
        text = recommendation_text(recommendation)
        if text is None:
            continue

        parsed = parse_recommendation(text)
        if parsed is None:
            logger.warning(f"Could not parse recommendation: {text}")
            continue
        agent_name, description = parsed

        spec = match_agent(agent_name, candidates)
        if spec is None:
            available = ", ".join(f"{c.name} ({c.role})" for c in candidates)
            logger.warning(f"Agent not found for recommendation: {agent_name}. Available agents: {available}")
            continue

        missing = [MissingFile(path=path, reason=description) for path in extract_file_paths(description)]
        if not missing and report is not None:
            missing = [
                m for m in report.missing_files
                if m.mentioned_by and match_agent(m.mentioned_by, [spec]) is spec
            ]

        logger.info(f"Remediation task for {spec.role}: {description} ({len(missing)} files)")
        tasks.append(
            RemediationTask(spec=spec, description=f"Complete missing implementation: {description}", missing_files=missing)
        )

    return tasks


def _report_of(output: AgentOutput) -> Tuple[Optional[ValidationReport], Optional[str]]:
    if not output.succeeded:
        return None, output.error or "validator failed"
    return parse_validation_report(output.content)


async def validate_and_complete(
    context: ExecutionContext,
    team: Sequence[AgentSpec],
    invoke: AgentInvoker,
    registry: Optional[AgentRegistry] = None,
) -> CompletionResult:
    """
    Run the validator, remediate what it reports missing, then re-validate once.

    Args:
        context: Snapshot holding every output produced so far
        team: Agents eligible for remediation work
        invoke: Runs one agent and records its output
        registry: Registry providing the validator agent

    Returns:
        CompletionResult with every output the cycle produced
    """
    validator = (registry.get(VALIDATOR_ROLE) if registry else None) or COMPLETION_VALIDATOR
    result = CompletionResult()

    result.validation_output = await invoke(validator, context, validator.name, "Validating task completeness...")
    report, error = _report_of(result.validation_output)
    if report is None:
        logger.error(f"Failed to parse validation result, skipping remediation: {error}")
        result.parse_error = error
        return result
    result.report = report

    if report.is_complete:
        logger.info("Task 100% complete, no completion round needed")
        return result

    logger.info(f"Task {report.completion_percentage:g}% complete, running completion round")
    tasks = parse_remediation_tasks(report.recommendations, team, report)
    if not tasks:
        logger.info("No actionable completion tasks found")
        return result

    for task in tasks:
        narrowed = context.with_task(task.task_description(context.task_description))
        output = await invoke(task.spec, narrowed, f"{task.spec.name} (Completion)", task.description)
        result.remediation_outputs.append(output)
    logger.info(f"Completion round finished: {len(result.remediation_outputs)} additional outputs")

    if result.remediation_outputs:
        final_context = context.with_outputs(result.remediation_outputs)
        result.final_validation_output = await invoke(
            validator, final_context, f"{validator.name} (Final Check)", "Final validation after completion round..."
        )
        final_report, final_error = _report_of(result.final_validation_output)
        if final_report is not None:
            result.report = final_report
        else:
            logger.warning(f"Final validation could not be parsed: {final_error}")

    return result
