"""
Tests for run stores: in-memory and SQLAlchemy-backed.
"""

import pytest
import pytest_asyncio

from crewflow.db.session import init_models, make_session_factory
from crewflow.models import (
    AgentOutput,
    Artifact,
    ArtifactType,
    ExecutionMode,
    OutputStatus,
    PhaseInfo,
    RepositoryContext,
    RunRequest,
    RunStatus,
)
from crewflow.storage import InMemoryRunStore, RunStore, SqlRunStore


@pytest_asyncio.fixture(params=["memory", "sql"])
async def any_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryRunStore()
        return

    factory = make_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'runs.db'}")
    engine = factory.kw["bind"]
    await init_models(engine)
    yield SqlRunStore(factory)
    await engine.dispose()


def make_request(**overrides):
    data = {
        "task_description": "Build a todo app\nwith tags",
        "selected_roles": ["product-owner", "frontend"],
        "execution_mode": ExecutionMode.parallel,
        "repository": RepositoryContext(owner="acme", repo="todo"),
    }
    data.update(overrides)
    return RunRequest(**data)


class TestRunStores:
    """Behaviour shared by every store."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, any_store):
        assert isinstance(any_store, RunStore)
        run_id = await any_store.create_run(make_request())

        record = await any_store.get_run(run_id)

        assert record.run.id == run_id
        assert record.run.status == RunStatus.running
        assert record.run.execution_mode == ExecutionMode.parallel
        assert record.run.repository.full_name == "acme/todo"
        assert record.run.title == "Build a todo app"
        assert record.outputs == []

    @pytest.mark.asyncio
    async def test_outputs_kept_in_append_order(self, any_store):
        run_id = await any_store.create_run(make_request())
        first = AgentOutput(
            role="product-owner",
            content="stories",
            artifacts=[Artifact(type=ArtifactType.document, path="docs/stories.md", content="# Stories")],
            input_tokens=5,
            output_tokens=7,
            estimated_cost=0.001,
        )
        second = AgentOutput(role="frontend", status=OutputStatus.error, error="timeout")

        await any_store.append_output(run_id, first)
        await any_store.append_output(run_id, second)
        outputs = (await any_store.get_run(run_id)).outputs

        assert [o.role for o in outputs] == ["product-owner", "frontend"]
        assert outputs[0].artifacts[0].path == "docs/stories.md"
        assert outputs[0].total_tokens == 12
        assert outputs[1].status == OutputStatus.error
        assert outputs[1].error == "timeout"

    @pytest.mark.asyncio
    async def test_status_transitions(self, any_store):
        run_id = await any_store.create_run(make_request())
        phase_info = PhaseInfo(current_phase="Phase 1", has_next_phase=True, next_phase_description="Sharing")

        await any_store.update_run_status(run_id, RunStatus.completed, phase_info)
        done = (await any_store.get_run(run_id)).run
        assert done.status == RunStatus.completed
        assert done.completed_at is not None
        assert done.phase_info == phase_info

        await any_store.update_run_status(run_id, RunStatus.running)
        resumed = (await any_store.get_run(run_id)).run
        assert resumed.status == RunStatus.running
        assert resumed.completed_at is None
        assert resumed.phase_info == phase_info

    @pytest.mark.asyncio
    async def test_unknown_run(self, any_store):
        assert await any_store.get_run("missing") is None
        await any_store.update_run_status("missing", RunStatus.error)


class TestInMemoryRunStore:
    @pytest.mark.asyncio
    async def test_output_for_unknown_run_is_dropped(self):
        store = InMemoryRunStore()
        await store.append_output("missing", AgentOutput(role="qa"))
        assert await store.get_run("missing") is None
