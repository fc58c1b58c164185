import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.pop("GITHUB_TOKEN", None)

import pytest  # noqa: E402

from crewflow.agents import default_registry  # noqa: E402
from crewflow.backends import FinishReason, GenerationResult, ScriptedBackend, ToolCall, Usage  # noqa: E402
from crewflow.models import RepositoryContext, RepositoryFile  # noqa: E402
from crewflow.storage import InMemoryRunStore  # noqa: E402


def result(text="", finish_reason=FinishReason.stop, tool_calls=None, input_tokens=10, output_tokens=20):
    """Build a backend result with sensible defaults."""
    return GenerationResult(
        text=text,
        usage=Usage(input_tokens, output_tokens),
        finish_reason=finish_reason,
        tool_calls=tool_calls or [],
    )


def tool_call(name, call_id="call_1", **arguments):
    return ToolCall(id=call_id, name=name, arguments=arguments)


def numbered_lines(count, prefix="line"):
    return "\n".join(f"{prefix} {i}" for i in range(count))


@pytest.fixture
def registry():
    return default_registry


@pytest.fixture
def scripted_backend():
    return ScriptedBackend()


@pytest.fixture
def store():
    return InMemoryRunStore()


@pytest.fixture
def repo_files():
    return [
        RepositoryFile.from_content("package.json", '{\n  "name": "demo"\n}'),
        RepositoryFile.from_content("src/App.tsx", numbered_lines(100)),
        RepositoryFile.from_content("src/components/Button.tsx", "export const Button = () => null;"),
        RepositoryFile.from_content("public/index.html", "<html><body></body></html>"),
        RepositoryFile.from_content("README.md", "# Demo"),
    ]


@pytest.fixture
def repository(repo_files):
    return RepositoryContext(owner="acme", repo="demo", branch="main", files=repo_files)


class EventRecorder:
    """Progress sink that keeps every event."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def types(self):
        return [e.type.value for e in self.events]

    def of_type(self, event_type):
        return [e for e in self.events if e.type.value == event_type]


@pytest.fixture
def events():
    return EventRecorder()
