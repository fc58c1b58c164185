import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, runtime_checkable
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from .db.models import AgentOutputRow, TaskRunRow
from .models import AgentOutput, PhaseInfo, RunRequest, RunStatus, TaskRun, utcnow

logger = logging.getLogger(__name__)

FINISHED_STATUSES = (RunStatus.completed, RunStatus.error)


@dataclass
class RunRecord:
    run: TaskRun
    outputs: List[AgentOutput] = field(default_factory=list)


@runtime_checkable
class RunStore(Protocol):
    async def create_run(self, request: RunRequest) -> str:
        ...

    async def append_output(self, run_id: str, output: AgentOutput) -> None:
        ...

    async def update_run_status(
        self, run_id: str, status: RunStatus, phase_info: Optional[PhaseInfo] = None
    ) -> None:
        ...

    async def get_run(self, run_id: str) -> Optional[RunRecord]:
        ...


def _new_task_run(request: RunRequest) -> TaskRun:
    return TaskRun(
        id=str(uuid4()),
        task_description=request.task_description,
        selected_roles=list(request.selected_roles),
        execution_mode=request.execution_mode,
        status=RunStatus.running,
        repository=request.repository,
        model=request.model,
    )


class InMemoryRunStore:
    """Process-local store; the default when no database is configured."""

    def __init__(self):
        self._records: Dict[str, RunRecord] = {}

    async def create_run(self, request: RunRequest) -> str:
        run = _new_task_run(request)
        self._records[run.id] = RunRecord(run=run)
        return run.id

    async def append_output(self, run_id: str, output: AgentOutput) -> None:
        record = self._records.get(run_id)
        if record is None:
            logger.warning(f"Dropping output of {output.role} for unknown run {run_id}")
            return
        record.outputs.append(output)

    async def update_run_status(
        self, run_id: str, status: RunStatus, phase_info: Optional[PhaseInfo] = None
    ) -> None:
        record = self._records.get(run_id)
        if record is None:
            logger.warning(f"Cannot update status of unknown run {run_id}")
            return
        changes = {"status": status}
        if phase_info is not None:
            changes["phase_info"] = phase_info
        changes["completed_at"] = utcnow() if status in FINISHED_STATUSES else None
        record.run = record.run.model_copy(update=changes)

    async def get_run(self, run_id: str) -> Optional[RunRecord]:
        return self._records.get(run_id)


class SqlRunStore:
    """Run store on SQLAlchemy's async ORM."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        if session_factory is None:
            from .db.session import AsyncSessionLocal

            session_factory = AsyncSessionLocal
        self._sessions = session_factory

    async def create_run(self, request: RunRequest) -> str:
        run = _new_task_run(request)
        async with self._sessions() as session:
            session.add(
                TaskRunRow(
                    id=run.id,
                    task_description=run.task_description,
                    selected_roles=run.selected_roles,
                    execution_mode=run.execution_mode.value,
                    status=run.status.value,
                    repository=run.repository.model_dump(mode="json") if run.repository else None,
                    phase_info=run.phase_info.model_dump(mode="json"),
                    model=run.model,
                    created_at=run.created_at,
                )
            )
            await session.commit()
        return run.id

    async def append_output(self, run_id: str, output: AgentOutput) -> None:
        async with self._sessions() as session:
            session.add(
                AgentOutputRow(
                    run_id=run_id,
                    role=output.role,
                    content=output.content,
                    artifacts=[a.model_dump(mode="json") for a in output.artifacts],
                    status=output.status.value,
                    error=output.error,
                    execution_time=output.execution_time,
                    input_tokens=output.input_tokens,
                    output_tokens=output.output_tokens,
                    estimated_cost=output.estimated_cost,
                    execution_log=output.execution_log.model_dump(mode="json") if output.execution_log else None,
                    created_at=output.created_at,
                )
            )
            await session.commit()

    async def update_run_status(
        self, run_id: str, status: RunStatus, phase_info: Optional[PhaseInfo] = None
    ) -> None:
        values = {
            "status": status.value,
            "completed_at": utcnow() if status in FINISHED_STATUSES else None,
        }
        if phase_info is not None:
            values["phase_info"] = phase_info.model_dump(mode="json")

        async with self._sessions() as session:
            res = await session.execute(
                update(TaskRunRow).where(TaskRunRow.id == run_id).values(**values)
            )
            if not res.rowcount:
                await session.rollback()
                logger.warning(f"Cannot update status of unknown run {run_id}")
                return
            await session.commit()

    async def get_run(self, run_id: str) -> Optional[RunRecord]:
        async with self._sessions() as session:
            result = await session.execute(
                select(TaskRunRow).options(selectinload(TaskRunRow.outputs)).where(TaskRunRow.id == run_id)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return RunRecord(run=self._run_from_row(row), outputs=[self._output_from_row(o) for o in row.outputs])

    @staticmethod
    def _run_from_row(row: TaskRunRow) -> TaskRun:
        return TaskRun(
            id=row.id,
            task_description=row.task_description,
            selected_roles=row.selected_roles,
            execution_mode=row.execution_mode,
            status=row.status,
            repository=row.repository,
            phase_info=row.phase_info or PhaseInfo(),
            model=row.model,
            created_at=row.created_at,
            completed_at=row.completed_at,
        )

    @staticmethod
    def _output_from_row(row: AgentOutputRow) -> AgentOutput:
        return AgentOutput(
            role=row.role,
            content=row.content,
            artifacts=row.artifacts or [],
            status=row.status,
            error=row.error,
            execution_time=row.execution_time,
            input_tokens=row.input_tokens,
            output_tokens=row.output_tokens,
            estimated_cost=row.estimated_cost,
            execution_log=row.execution_log,
            created_at=row.created_at,
        )
