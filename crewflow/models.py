from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .tokens import detect_language, estimate_tokens


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionMode(str, Enum):
    sequential = "sequential"
    parallel = "parallel"


class RunStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    error = "error"


class OutputStatus(str, Enum):
    success = "success"
    error = "error"


class ArtifactType(str, Enum):
    code = "code"
    document = "document"
    diagram = "diagram"
    config = "config"


class ExecutionStepType(str, Enum):
    thinking = "thinking"
    tool_call = "tool_call"
    tool_result = "tool_result"
    message = "message"


# Artifacts and agent outputs

class Artifact(BaseModel):
    model_config = {"frozen": True}

    type: ArtifactType
    path: str
    content: str
    language: Optional[str] = None


class ExecutionStep(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)
    type: ExecutionStepType
    content: str = ""
    tool_name: Optional[str] = None
    tool_input: Optional[Dict[str, Any]] = None
    tool_output: Optional[Any] = None
    error: Optional[str] = None


class ExecutionLogSummary(BaseModel):
    total_steps: int
    total_tool_calls: int
    start_time: datetime
    end_time: datetime


class ExecutionLog(BaseModel):
    steps: List[ExecutionStep] = Field(default_factory=list)
    summary: ExecutionLogSummary

    def summary_line(self) -> str:
        return f"{self.summary.total_steps} steps, {self.summary.total_tool_calls} tool calls"


class AgentOutput(BaseModel):
    """Result of exactly one agent invocation. Never mutated after creation."""

    model_config = {"frozen": True}

    role: str
    content: str = ""
    artifacts: List[Artifact] = Field(default_factory=list)
    status: OutputStatus = OutputStatus.success
    error: Optional[str] = None
    execution_time: float = Field(default=0.0, description="Wall time in seconds")
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost: float = 0.0
    execution_log: Optional[ExecutionLog] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def succeeded(self) -> bool:
        return self.status == OutputStatus.success


# Repository context

class RepositoryFile(BaseModel):
    path: str
    content: str
    size: int = 0
    tokens: int = 0
    language: str = "plaintext"

    @classmethod
    def from_content(cls, path: str, content: str, size: Optional[int] = None) -> "RepositoryFile":
        """Build a file excerpt, deriving size, token estimate and language."""
        return cls(
            path=path,
            content=content,
            size=size if size is not None else len(content.encode("utf-8")),
            tokens=estimate_tokens(content),
            language=detect_language(path),
        )


class RepositoryContext(BaseModel):
    owner: str
    repo: str
    branch: str = "main"
    files: List[RepositoryFile] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


# Runs

class PhaseInfo(BaseModel):
    current_phase: Optional[str] = None
    has_next_phase: bool = False
    next_phase_description: Optional[str] = None


class TaskRun(BaseModel):
    id: str
    task_description: str
    selected_roles: List[str]
    execution_mode: ExecutionMode
    status: RunStatus = RunStatus.pending
    repository: Optional[RepositoryContext] = None
    phase_info: PhaseInfo = Field(default_factory=PhaseInfo)
    model: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def title(self) -> str:
        first_line = self.task_description.split("\n")[0]
        return first_line if len(first_line) <= 50 else first_line[:47] + "..."


class RunRequest(BaseModel):
    task_description: str
    selected_roles: List[str]
    execution_mode: ExecutionMode = ExecutionMode.sequential
    repository: Optional[RepositoryContext] = None
    model: Optional[str] = None
    previous_outputs: List[AgentOutput] = Field(
        default_factory=list, description="Outputs of an earlier run, for review/continuation runs"
    )
    original_run_id: Optional[str] = Field(default=None, description="Run being continued, if any")

    @property
    def is_review(self) -> bool:
        return self.original_run_id is not None


# Completion validation

class MissingFile(BaseModel):
    model_config = {"populate_by_name": True}

    path: str
    mentioned_by: Optional[str] = Field(default=None, alias="mentionedBy")
    reason: Optional[str] = None


class BrokenReference(BaseModel):
    file: str = ""
    issue: str = ""
    line: Optional[int] = None

    @field_validator("line", mode="before")
    @classmethod
    def _line_or_none(cls, value: Any) -> Any:
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None


class IncompletePart(BaseModel):
    agent: str = ""
    issue: str = ""


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _text(value: Any) -> str:
    return "" if value is None else str(value)


class ValidationReport(BaseModel):
    """
    Completion report from the validator agent.

    Only status, percentage and recommendations drive remediation; the other
    fields are diagnostic and accept loose shapes rather than failing the parse.
    """

    model_config = {"populate_by_name": True}

    completion_percentage: float = Field(default=0, alias="completionPercentage")
    status: str = "incomplete"
    planned_files: List[str] = Field(default_factory=list, alias="plannedFiles")
    created_files: List[str] = Field(default_factory=list, alias="createdFiles")
    missing_files: List[MissingFile] = Field(default_factory=list, alias="missingFiles")
    broken_references: List[BrokenReference] = Field(default_factory=list, alias="brokenReferences")
    incomplete_parts: List[IncompletePart] = Field(default_factory=list, alias="incompleteParts")
    recommendations: List[Any] = Field(default_factory=list)

    @field_validator("completion_percentage", mode="before")
    @classmethod
    def _coerce_percentage(cls, value: Any) -> float:
        if isinstance(value, str):
            value = value.strip().rstrip("%")
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        return str(value).strip().lower() if value is not None else "incomplete"

    @field_validator("planned_files", "created_files", mode="before")
    @classmethod
    def _coerce_paths(cls, value: Any) -> List[str]:
        paths = []
        for item in _as_list(value):
            if isinstance(item, dict):
                item = item.get("path") or item.get("file")
            if item:
                paths.append(str(item))
        return paths

    @field_validator("missing_files", mode="before")
    @classmethod
    def _coerce_missing(cls, value: Any) -> List[Dict[str, Any]]:
        entries = []
        for item in _as_list(value):
            if isinstance(item, str):
                entries.append({"path": item})
            elif isinstance(item, dict) and (item.get("path") or item.get("file")):
                entries.append({
                    "path": _text(item.get("path") or item.get("file")),
                    "mentionedBy": item.get("mentionedBy") or item.get("mentioned_by"),
                    "reason": item.get("reason"),
                })
        for entry in entries:
            for key in ("mentionedBy", "reason"):
                if entry.get(key) is not None:
                    entry[key] = _text(entry[key])
        return entries

    @field_validator("broken_references", mode="before")
    @classmethod
    def _coerce_broken(cls, value: Any) -> List[Dict[str, Any]]:
        entries = []
        for item in _as_list(value):
            if isinstance(item, dict):
                entries.append({
                    "file": _text(item.get("file") or item.get("path")),
                    "issue": _text(item.get("issue") or item.get("reference")),
                    "line": item.get("line"),
                })
            elif item is not None:
                entries.append({"issue": _text(item)})
        return entries

    @field_validator("incomplete_parts", mode="before")
    @classmethod
    def _coerce_incomplete(cls, value: Any) -> List[Dict[str, str]]:
        entries = []
        for item in _as_list(value):
            if isinstance(item, dict):
                entries.append({"agent": _text(item.get("agent")), "issue": _text(item.get("issue"))})
            elif item is not None:
                entries.append({"issue": _text(item)})
        return entries

    @field_validator("recommendations", mode="before")
    @classmethod
    def _coerce_recommendations(cls, value: Any) -> List[Any]:
        return _as_list(value)

    @property
    def is_complete(self) -> bool:
        return self.status == "complete" or self.completion_percentage >= 100


class FileCheckReport(BaseModel):
    path: str
    file_kind: str
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


# Progress events

class ProgressEventType(str, Enum):
    run_created = "run_created"
    agent_start = "agent_start"
    agent_progress = "agent_progress"
    agent_complete = "agent_complete"
    agent_error = "agent_error"
    tool_call = "tool_call"
    run_complete = "run_complete"
    run_error = "run_error"


class ProgressEvent(BaseModel):
    type: ProgressEventType
    run_id: str
    role: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.type in (ProgressEventType.run_complete, ProgressEventType.run_error)


class RunResult(BaseModel):
    run_id: str
    status: RunStatus
    outputs: List[AgentOutput] = Field(default_factory=list)
    total_execution_time: float = 0.0
    completed_at: datetime = Field(default_factory=utcnow)
    validation_report: Optional[ValidationReport] = None
    phase_info: PhaseInfo = Field(default_factory=PhaseInfo)
    file_issues: List[FileCheckReport] = Field(default_factory=list)
