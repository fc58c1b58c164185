"""
Generation backends.

A backend turns a prompt (or a conversation) plus system instructions into
text, token usage and a finish reason. Backends that support tool calling
also return the tool calls the model asked for.

Conversations use OpenAI-style message dicts, which litellm accepts for
every provider it supports.
"""

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol, Sequence, Union, runtime_checkable

import litellm

from .core.config import settings
from .exceptions import BackendError
from .llm_providers import ProviderConfig, get_provider_config

logger = logging.getLogger(__name__)


class FinishReason(str, Enum):
    stop = "stop"
    length = "length"
    tool_calls = "tool_calls"
    content_filter = "content_filter"


_FINISH_REASON_ALIASES = {
    "stop": FinishReason.stop,
    "end_turn": FinishReason.stop,
    "stop_sequence": FinishReason.stop,
    "eos": FinishReason.stop,
    "length": FinishReason.length,
    "max_tokens": FinishReason.length,
    "tool_calls": FinishReason.tool_calls,
    "tool_use": FinishReason.tool_calls,
    "function_call": FinishReason.tool_calls,
    "content_filter": FinishReason.content_filter,
}


def normalize_finish_reason(value: Optional[str]) -> FinishReason:
    if value is None:
        return FinishReason.stop
    return _FINISH_REASON_ALIASES.get(str(value).lower(), FinishReason.stop)


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(self.input_tokens + other.input_tokens, self.output_tokens + other.output_tokens)


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GenerationResult:
    text: str = ""
    usage: Usage = field(default_factory=Usage)
    finish_reason: FinishReason = FinishReason.stop
    tool_calls: List[ToolCall] = field(default_factory=list)


@dataclass
class GenerationConfig:
    model: Optional[str] = None
    temperature: float = field(default_factory=lambda: settings.GENERATION_TEMPERATURE)
    max_tokens: int = field(default_factory=lambda: settings.GENERATION_MAX_TOKENS)


Message = Dict[str, Any]


@runtime_checkable
class GenerationBackend(Protocol):
    supports_tools: bool

    async def generate(self, prompt: str, system: str, config: GenerationConfig) -> GenerationResult:
        ...

    async def generate_with_tools(
        self,
        messages: Sequence[Message],
        system: str,
        tools: Sequence[Dict[str, Any]],
        config: GenerationConfig,
    ) -> GenerationResult:
        ...


# Conversation helpers

def user_message(content: str) -> Message:
    return {"role": "user", "content": content}


def assistant_message(content: str, tool_calls: Optional[Sequence[ToolCall]] = None) -> Message:
    message: Message = {"role": "assistant", "content": content or ""}
    if tool_calls:
        message["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in tool_calls
        ]
    return message


def tool_message(tool_call_id: str, result: Any) -> Message:
    return {"role": "tool", "tool_call_id": tool_call_id, "content": json.dumps(result, default=str)}


def _parse_arguments(raw: Any, name: str) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning(f"Malformed arguments for tool call {name}: {raw!r}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_completion_response(response: Any) -> GenerationResult:
    """Map an OpenAI-shaped completion response to a GenerationResult."""
    choice = response.choices[0]
    message = choice.message

    tool_calls = []
    for call in getattr(message, "tool_calls", None) or []:
        function = call.function
        tool_calls.append(
            ToolCall(id=call.id, name=function.name, arguments=_parse_arguments(function.arguments, function.name))
        )

    usage = Usage()
    raw_usage = getattr(response, "usage", None)
    if raw_usage:
        usage = Usage(
            input_tokens=getattr(raw_usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(raw_usage, "completion_tokens", 0) or 0,
        )

    return GenerationResult(
        text=getattr(message, "content", None) or "",
        usage=usage,
        finish_reason=normalize_finish_reason(getattr(choice, "finish_reason", None)),
        tool_calls=tool_calls,
    )


class LiteLLMBackend:
    """Backend for any provider litellm can reach."""

    supports_tools = True

    def __init__(self, provider_config: Optional[ProviderConfig] = None):
        self.provider_config = provider_config or get_provider_config()

    @property
    def model(self) -> str:
        return self.provider_config.model_name

    async def generate(self, prompt: str, system: str, config: GenerationConfig) -> GenerationResult:
        messages = [{"role": "system", "content": system}, user_message(prompt)]
        return await self._complete(messages, config)

    async def generate_with_tools(
        self,
        messages: Sequence[Message],
        system: str,
        tools: Sequence[Dict[str, Any]],
        config: GenerationConfig,
    ) -> GenerationResult:
        conversation = [{"role": "system", "content": system}, *messages]
        return await self._complete(conversation, config, tools=list(tools))

    async def _complete(
        self,
        messages: List[Message],
        config: GenerationConfig,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> GenerationResult:
        kwargs = self.provider_config.completion_kwargs()
        if config.model:
            kwargs["model"] = config.model
        if tools:
            kwargs["tools"] = tools

        try:
            response = await litellm.acompletion(
                messages=messages,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                **kwargs,
            )
        except Exception as e:
            raise BackendError(f"{kwargs['model']}: {e}") from e

        return parse_completion_response(response)


@dataclass
class BackendCall:
    kind: str
    system: str
    config: GenerationConfig
    prompt: Optional[str] = None
    messages: List[Message] = field(default_factory=list)
    tools: List[Dict[str, Any]] = field(default_factory=list)


Scripted = Union[GenerationResult, Exception]


class ScriptedBackend:
    """
    Replays canned results, for tests and offline dry runs.

    Results are taken from the queue in call order. A ``responder`` callable,
    when given, is consulted instead and receives the recorded ``BackendCall``.
    Queued exceptions are raised at the call that would consume them.
    """

    def __init__(
        self,
        responses: Optional[Sequence[Scripted]] = None,
        supports_tools: bool = True,
        responder: Optional[Callable[[BackendCall], Scripted]] = None,
        model: str = "scripted",
    ):
        self._queue: Deque[Scripted] = deque(responses or [])
        self.supports_tools = supports_tools
        self.responder = responder
        self.model = model
        self.calls: List[BackendCall] = []

    def queue(self, *responses: Scripted) -> None:
        self._queue.extend(responses)

    async def generate(self, prompt: str, system: str, config: GenerationConfig) -> GenerationResult:
        call = BackendCall(kind="generate", system=system, config=config, prompt=prompt)
        return self._next(call)

    async def generate_with_tools(
        self,
        messages: Sequence[Message],
        system: str,
        tools: Sequence[Dict[str, Any]],
        config: GenerationConfig,
    ) -> GenerationResult:
        if not self.supports_tools:
            raise NotImplementedError("This backend does not support tool calling")
        call = BackendCall(
            kind="generate_with_tools",
            system=system,
            config=config,
            messages=[dict(m) for m in messages],
            tools=list(tools),
        )
        return self._next(call)

    def _next(self, call: BackendCall) -> GenerationResult:
        self.calls.append(call)
        if self.responder is not None:
            result = self.responder(call)
        elif self._queue:
            result = self._queue.popleft()
        else:
            result = GenerationResult()
        if isinstance(result, Exception):
            raise result
        return result
