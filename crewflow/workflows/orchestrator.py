"""Run orchestration: scheduling, agent execution, validation and bookkeeping."""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..agents import VALIDATOR_ROLE, default_registry, detect_phases
from ..agents.registry import AgentRegistry, AgentSpec
from ..backends import GenerationBackend, GenerationConfig, LiteLLMBackend
from ..events import ProgressSink, emit
from ..exceptions import NoAgentsSelectedError
from ..logging_utils import run_context
from ..models import (
    AgentOutput,
    ExecutionMode,
    ProgressEvent,
    ProgressEventType,
    RepositoryContext,
    RepositoryFile,
    RunRequest,
    RunResult,
    RunStatus,
)
from ..storage import InMemoryRunStore, RunStore
from ..tools import ToolFactory, close_tools, default_tool_factory
from .context_builder import ExecutionContext
from .generation import run_agent
from .remediation import CompletionResult, validate_and_complete
from .scheduler import level_partition, topological_order
from .syntax_checks import check_outputs

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Runs a team of agents over one task.

    Flow:
    1. Create (or resume) the run and resolve the selected agents
    2. Execute them in dependency order, sequentially or level by level
    3. With a repository: validate completion, remediate, re-validate once
    4. Check artifacts, detect phases, mark the run completed
    """

    def __init__(
        self,
        backend: Optional[GenerationBackend] = None,
        registry: Optional[AgentRegistry] = None,
        store: Optional[RunStore] = None,
        tool_factory: Optional[ToolFactory] = None,
        sink: Optional[ProgressSink] = None,
        config: Optional[GenerationConfig] = None,
    ):
        self._backend = backend
        self.registry = registry or default_registry
        self.store = store or InMemoryRunStore()
        self.tool_factory = tool_factory if tool_factory is not None else default_tool_factory()
        self.sink = sink
        self.config = config

    @property
    def backend(self) -> GenerationBackend:
        if self._backend is None:
            self._backend = LiteLLMBackend()
        return self._backend

    async def execute_run(self, request: RunRequest, sink: Optional[ProgressSink] = None) -> RunResult:
        """
        Execute a run end to end.

        Args:
            request: Task, selected roles, mode and optional repository
            sink: Progress sink for this run (defaults to the orchestrator's)

        Returns:
            RunResult with every output in production order

        Raises:
            NoAgentsSelectedError: If no selected role is known
            CircularDependencyError: If the selected agents form a cycle
        """
        sink = sink or self.sink
        started = time.monotonic()

        if request.original_run_id:
            run_id = request.original_run_id
            await self._store_call("update_run_status", run_id, RunStatus.running)
        else:
            run_id = await self.store.create_run(request)
            await self._emit(sink, ProgressEventType.run_created, run_id, data={
                "title": request.task_description.split("\n")[0][:50],
                "description": request.task_description,
                "selectedRoles": list(request.selected_roles),
                "executionMode": request.execution_mode.value,
            })

        with run_context(run_id=run_id):
            logger.info(f"Starting run {run_id} with {len(request.selected_roles)} agents ({request.execution_mode.value})")
            try:
                return await self._execute(run_id, request, sink, started)
            except Exception as e:
                logger.error(f"Run {run_id} failed: {e}", exc_info=True)
                await self._store_call("update_run_status", run_id, RunStatus.error)
                await self._emit(sink, ProgressEventType.run_error, run_id, data={"error": str(e)})
                raise

    async def run_completion_round(
        self,
        run_id: str,
        request: RunRequest,
        existing_outputs: Sequence[AgentOutput],
        sink: Optional[ProgressSink] = None,
    ) -> CompletionResult:
        """Rerun validation and remediation over outputs that already exist."""
        sink = sink or self.sink
        specs = self._resolve(request)
        context = ExecutionContext.create(
            request.task_description,
            team_roles=[s.role for s in specs],
            repository_files=request.repository.files if request.repository else (),
            previous_outputs=existing_outputs,
            is_review=request.is_review,
        )
        with run_context(run_id=run_id):
            logger.info(f"Manual completion round for run {run_id} over {len(existing_outputs)} outputs")
            return await self._validate_and_complete(run_id, request, context, specs, sink)

    async def _execute(self, run_id: str, request: RunRequest, sink, started: float) -> RunResult:
        specs = self._resolve(request)

        files: List[RepositoryFile] = list(request.repository.files) if request.repository else []
        if request.repository and not request.previous_outputs and self.tool_factory is not None:
            files = await self._load_config_files(request.repository, files)

        context = ExecutionContext.create(
            request.task_description,
            team_roles=[s.role for s in specs],
            repository_files=files,
            previous_outputs=request.previous_outputs,
            is_review=request.is_review,
        )

        if request.execution_mode == ExecutionMode.parallel:
            outputs, context = await self._run_parallel(run_id, request, specs, context, sink)
        else:
            outputs, context = await self._run_sequential(run_id, request, specs, context, sink)

        validation_report = None
        if request.repository is not None:
            completion = await self._validate_and_complete(run_id, request, context, specs, sink)
            outputs.extend(completion.outputs)
            validation_report = completion.report

        file_issues = check_outputs(outputs)

        phase_info = detect_phases(outputs)
        await self._store_call("update_run_status", run_id, RunStatus.completed, phase_info)

        total_time = time.monotonic() - started
        await self._emit(sink, ProgressEventType.run_complete, run_id, data={
            "totalExecutionTime": total_time,
            "outputs": len(outputs),
            "phaseInfo": phase_info.model_dump(),
        })
        logger.info(f"Run {run_id} completed with {len(outputs)} outputs in {total_time:.2f}s")

        return RunResult(
            run_id=run_id,
            status=RunStatus.completed,
            outputs=outputs,
            total_execution_time=total_time,
            validation_report=validation_report,
            phase_info=phase_info,
            file_issues=file_issues,
        )

    def _resolve(self, request: RunRequest) -> List[AgentSpec]:
        specs = self.registry.resolve(request.selected_roles)
        if any(s.role == VALIDATOR_ROLE for s in specs):
            logger.info("The completion validator runs after the team, not as a scheduled agent")
            specs = [s for s in specs if s.role != VALIDATOR_ROLE]
        if not specs:
            raise NoAgentsSelectedError(request.selected_roles)
        return specs

    async def _load_config_files(
        self, repository: RepositoryContext, files: List[RepositoryFile]
    ) -> List[RepositoryFile]:
        tools = self.tool_factory(repository)
        try:
            config_files = await tools.read_config_files()
        except Exception as e:
            logger.error(f"Failed to load config files for {repository.full_name}: {e}")
            return files
        finally:
            await close_tools(tools)

        known = {f.path for f in files}
        added = [f for f in config_files if f.path not in known]
        logger.info(f"Auto-loaded {len(added)} config files from {repository.full_name}")
        return added + files

    async def _run_sequential(
        self, run_id: str, request: RunRequest, specs: List[AgentSpec], context: ExecutionContext, sink
    ) -> Tuple[List[AgentOutput], ExecutionContext]:
        outputs: List[AgentOutput] = []
        for spec in topological_order(specs):
            output = await self._invoke(run_id, request, spec, context, sink)
            outputs.append(output)
            context = context.with_outputs([output])
        return outputs, context

    async def _run_parallel(
        self, run_id: str, request: RunRequest, specs: List[AgentSpec], context: ExecutionContext, sink
    ) -> Tuple[List[AgentOutput], ExecutionContext]:
        outputs: List[AgentOutput] = []
        levels = level_partition(specs)
        for index, level in enumerate(levels, start=1):
            logger.info(f"Executing level {index}/{len(levels)}: {[s.role for s in level]}")
            for spec in level:
                await self._agent_started(run_id, spec, sink)

            # One snapshot for the whole level; replaced only after the barrier
            level_outputs = await asyncio.gather(
                *(self._generate(run_id, request, spec, context, sink) for spec in level)
            )

            for spec, output in zip(level, level_outputs):
                await self._agent_finished(run_id, spec, output, sink)
            outputs.extend(level_outputs)
            context = context.with_outputs(level_outputs)
        return outputs, context

    async def _validate_and_complete(
        self, run_id: str, request: RunRequest, context: ExecutionContext, specs: List[AgentSpec], sink
    ) -> CompletionResult:
        async def invoke(spec: AgentSpec, ctx: ExecutionContext, label: str, description: str) -> AgentOutput:
            return await self._invoke(run_id, request, spec, ctx, sink, label=label, description=description)

        return await validate_and_complete(context, specs, invoke, self.registry)

    async def _invoke(
        self,
        run_id: str,
        request: RunRequest,
        spec: AgentSpec,
        context: ExecutionContext,
        sink,
        label: Optional[str] = None,
        description: Optional[str] = None,
    ) -> AgentOutput:
        await self._agent_started(run_id, spec, sink, label, description)
        output = await self._generate(run_id, request, spec, context, sink)
        await self._agent_finished(run_id, spec, output, sink, label)
        return output

    async def _generate(
        self, run_id: str, request: RunRequest, spec: AgentSpec, context: ExecutionContext, sink
    ) -> AgentOutput:
        config = self.config or GenerationConfig()
        if request.model:
            config = GenerationConfig(model=request.model, temperature=config.temperature, max_tokens=config.max_tokens)
        return await run_agent(
            spec,
            context,
            self.backend,
            registry=self.registry,
            repository=request.repository,
            tool_factory=self.tool_factory,
            config=config,
            sink=sink,
            run_id=run_id,
        )

    async def _agent_started(
        self, run_id: str, spec: AgentSpec, sink, label: Optional[str] = None, description: Optional[str] = None
    ) -> None:
        await self._emit(sink, ProgressEventType.agent_start, run_id, spec.role, {
            "agentName": label or spec.name,
            "agentDescription": description or spec.description,
        })

    async def _agent_finished(
        self, run_id: str, spec: AgentSpec, output: AgentOutput, sink, label: Optional[str] = None
    ) -> None:
        await self._store_call("append_output", run_id, output)
        event_type = ProgressEventType.agent_complete if output.succeeded else ProgressEventType.agent_error
        await self._emit(sink, event_type, run_id, spec.role, {
            "agentName": label or spec.name,
            "status": output.status.value,
            "executionTime": output.execution_time,
            "hasArtifacts": bool(output.artifacts),
            "error": output.error,
            "inputTokens": output.input_tokens,
            "outputTokens": output.output_tokens,
            "totalTokens": output.total_tokens,
            "estimatedCost": output.estimated_cost,
        })

    async def _emit(
        self,
        sink,
        event_type: ProgressEventType,
        run_id: str,
        role: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        await emit(sink, ProgressEvent(type=event_type, run_id=run_id, role=role, data=data or {}))

    async def _store_call(self, method: str, *args) -> None:
        try:
            await getattr(self.store, method)(*args)
        except Exception as e:
            logger.error(f"Store {method} failed: {e}", exc_info=True)


# Global instance
orchestrator = Orchestrator()
