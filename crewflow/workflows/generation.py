"""
Generation loop for a single agent invocation.

Two variants share one entry point, ``run_agent``:

- the simple loop re-prompts on a length-truncated response, up to
  MAX_CONTINUATIONS backend calls, and concatenates the text;
- the tool loop keeps a conversation with the backend, executes the tool calls
  it asks for against the repository, and records an execution log.

Every failure inside an agent is converted into an error AgentOutput.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..agents import default_registry
from ..agents.registry import AgentRegistry, AgentSpec
from ..backends import (
    FinishReason,
    GenerationBackend,
    GenerationConfig,
    Message,
    Usage,
    assistant_message,
    tool_message,
    user_message,
)
from ..core.config import settings
from ..events import ProgressSink, emit
from ..logging_utils import run_context
from ..models import (
    AgentOutput,
    ExecutionLog,
    ExecutionLogSummary,
    ExecutionStep,
    ExecutionStepType,
    OutputStatus,
    ProgressEvent,
    ProgressEventType,
    RepositoryContext,
    utcnow,
)
from ..pricing import estimate_cost
from ..tools import REPOSITORY_TOOLS, ToolFactory, close_tools, execute_tool_call
from .artifacts import process_artifacts
from .context_builder import ExecutionContext, build_prompt

logger = logging.getLogger(__name__)

CONTINUE_PROMPT = (
    "Continue your previous response from where you left off. "
    "Do not repeat what you already wrote, just continue:\n\n{content}\n\n[CONTINUE FROM HERE]"
)
CONTINUE_TURN = (
    "Continue your previous response from where you left off. Do not repeat what you already wrote, just continue."
)


@dataclass
class GenerationOutcome:
    text: str = ""
    usage: Usage = field(default_factory=Usage)
    calls: int = 0
    execution_log: Optional[ExecutionLog] = None


class _Reporter:
    """Emits progress events for one agent invocation."""

    def __init__(self, sink: Optional[ProgressSink], run_id: Optional[str], role: str):
        self.sink = sink
        self.run_id = run_id
        self.role = role

    async def send(self, event_type: ProgressEventType, data: Dict[str, Any]) -> None:
        if self.sink is None or self.run_id is None:
            return
        await emit(self.sink, ProgressEvent(type=event_type, run_id=self.run_id, role=self.role, data=data))

    async def progress(self, message: str) -> None:
        await self.send(ProgressEventType.agent_progress, {"message": message})


def _truncate(text: str) -> str:
    limit = settings.EXECUTION_LOG_TRUNCATE_CHARS
    return text if len(text) <= limit else text[:limit] + "...[truncated]"


async def generate_simple(
    backend: GenerationBackend,
    prompt: str,
    system: str,
    config: GenerationConfig,
    reporter: Optional[_Reporter] = None,
) -> GenerationOutcome:
    """
    Call the backend, continuing while the response is cut off by the length limit.

    Args:
        backend: Generation backend
        prompt: Initial prompt
        system: Agent system instructions
        config: Generation parameters
        reporter: Optional progress reporter

    Returns:
        Concatenated text, summed usage and the number of backend calls
    """
    outcome = GenerationOutcome()
    current_prompt = prompt
    max_calls = settings.MAX_CONTINUATIONS

    while True:
        if outcome.calls > 0:
            logger.info(f"Response reached the token limit, continuing ({outcome.calls}/{max_calls})")
            current_prompt = CONTINUE_PROMPT.format(content=outcome.text)
            if reporter is not None:
                await reporter.progress(f"Continuing response (part {outcome.calls + 1})...")

        result = await backend.generate(current_prompt, system, config)
        outcome.text += result.text
        outcome.usage = outcome.usage + result.usage
        outcome.calls += 1

        if result.finish_reason != FinishReason.length or outcome.calls >= max_calls:
            break

    if result.finish_reason == FinishReason.length:
        logger.warning(f"Response still truncated after {outcome.calls} calls, giving up on continuation")

    return outcome


async def generate_with_tools(
    backend: GenerationBackend,
    prompt: str,
    system: str,
    config: GenerationConfig,
    tools,
    reporter: _Reporter,
) -> GenerationOutcome:
    """
    Run the tool-calling conversation for one agent.

    Tool failures are logged and sent back to the model as an error result.
    Tool results are truncated in the execution log only.
    """
    outcome = GenerationOutcome()
    start_time = utcnow()
    steps: List[ExecutionStep] = [
        ExecutionStep(
            type=ExecutionStepType.message,
            content=f"Agent {reporter.role} started execution with tools",
        )
    ]
    messages: List[Message] = [user_message(prompt)]
    max_iterations = settings.MAX_TOOL_ITERATIONS

    for iteration in range(1, max_iterations + 1):
        logger.debug(f"Tool loop iteration {iteration}/{max_iterations}")
        result = await backend.generate_with_tools(messages, system, REPOSITORY_TOOLS, config)
        outcome.usage = outcome.usage + result.usage
        outcome.calls += 1

        if result.text:
            outcome.text += result.text
            steps.append(ExecutionStep(type=ExecutionStepType.thinking, content=_truncate(result.text)))

        if not result.tool_calls:
            if result.finish_reason == FinishReason.length:
                logger.info("Hit the token limit without tool calls, requesting continuation")
                messages.append(assistant_message(result.text))
                messages.append(user_message(CONTINUE_TURN))
                await reporter.progress(f"Continuing response (iteration {iteration})...")
                continue
            break

        logger.info(f"Executing {len(result.tool_calls)} tool calls")
        tool_results = []
        for call in result.tool_calls:
            steps.append(
                ExecutionStep(
                    type=ExecutionStepType.tool_call,
                    content=f"Calling {call.name}",
                    tool_name=call.name,
                    tool_input=call.arguments,
                )
            )
            await reporter.send(ProgressEventType.tool_call, {"toolName": call.name, "arguments": call.arguments})

            try:
                value = await execute_tool_call(tools, call)
                steps.append(
                    ExecutionStep(
                        type=ExecutionStepType.tool_result,
                        content=f"Tool {call.name} completed",
                        tool_name=call.name,
                        tool_output=_truncate(str(value)),
                    )
                )
            except Exception as e:
                logger.error(f"Tool {call.name} failed: {e}")
                value = {"error": str(e)}
                steps.append(
                    ExecutionStep(
                        type=ExecutionStepType.tool_result,
                        content=f"Tool {call.name} failed",
                        tool_name=call.name,
                        error=str(e),
                    )
                )
            tool_results.append((call.id, value))

        messages.append(assistant_message(result.text, result.tool_calls))
        for call_id, value in tool_results:
            messages.append(tool_message(call_id, value))
        await reporter.progress(f"Processing tool results (iteration {iteration})...")
    else:
        logger.warning(f"Max tool iterations reached ({max_iterations})")

    outcome.execution_log = ExecutionLog(
        steps=steps,
        summary=ExecutionLogSummary(
            total_steps=len(steps),
            total_tool_calls=sum(1 for s in steps if s.type == ExecutionStepType.tool_call),
            start_time=start_time,
            end_time=utcnow(),
        ),
    )
    return outcome


async def run_agent(
    spec: AgentSpec,
    context: ExecutionContext,
    backend: GenerationBackend,
    *,
    registry: Optional[AgentRegistry] = None,
    repository: Optional[RepositoryContext] = None,
    tool_factory: Optional[ToolFactory] = None,
    config: Optional[GenerationConfig] = None,
    sink: Optional[ProgressSink] = None,
    run_id: Optional[str] = None,
) -> AgentOutput:
    """
    Execute one agent and return its output.

    The tool loop is used when the backend supports tools, the run has a
    repository and a tool factory is available; otherwise the simple loop.
    Each invocation builds its own tool instance.

    Args:
        spec: Agent to run
        context: Snapshot this agent may see
        backend: Generation backend
        registry: Registry used for display names in the prompt
        repository: Repository the run targets, if any
        tool_factory: Builds repository tools for this invocation
        config: Generation parameters
        sink: Optional progress sink
        run_id: Run id carried on progress events

    Returns:
        AgentOutput with status success or error
    """
    config = config or GenerationConfig()
    reporter = _Reporter(sink, run_id, spec.role)
    started = time.monotonic()

    with run_context(role=spec.role):
        try:
            prompt = build_prompt(spec, context, registry or default_registry)
            await reporter.progress("Analyzing and generating response...")

            use_tools = bool(getattr(backend, "supports_tools", False)) and repository is not None and tool_factory is not None
            if use_tools:
                tools = tool_factory(repository)
                try:
                    outcome = await generate_with_tools(backend, prompt, spec.system_prompt, config, tools, reporter)
                finally:
                    await close_tools(tools)
            else:
                outcome = await generate_simple(backend, prompt, spec.system_prompt, config, reporter)

            pipeline = process_artifacts(outcome.text, context.repository_files, spec.role)
            model = config.model or getattr(backend, "model", None)
            logger.info(
                f"Agent {spec.role} finished after {outcome.calls} backend calls "
                f"({outcome.usage.input_tokens} in / {outcome.usage.output_tokens} out tokens)"
            )
            return AgentOutput(
                role=spec.role,
                content=outcome.text,
                artifacts=pipeline.artifacts,
                status=OutputStatus.success,
                execution_time=time.monotonic() - started,
                input_tokens=outcome.usage.input_tokens,
                output_tokens=outcome.usage.output_tokens,
                estimated_cost=estimate_cost(model, outcome.usage.input_tokens, outcome.usage.output_tokens),
                execution_log=outcome.execution_log,
            )
        except Exception as e:
            logger.error(f"Agent {spec.role} execution error: {e}", exc_info=True)
            return AgentOutput(
                role=spec.role,
                content="",
                status=OutputStatus.error,
                error=str(e),
                execution_time=time.monotonic() - started,
            )
