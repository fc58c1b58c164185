"""Database models for runs and agent outputs."""

from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


class TaskRunRow(Base):
    """One orchestrated run."""

    __tablename__ = "task_runs"

    id = Column(String(), primary_key=True, default=lambda: str(uuid4()))
    task_description = Column(Text(), nullable=False)
    selected_roles = Column(JSON(), nullable=False)
    execution_mode = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    repository = Column(JSON(), nullable=True)
    phase_info = Column(JSON(), nullable=True)
    model = Column(String(), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    outputs = relationship(
        "AgentOutputRow",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="AgentOutputRow.id",
    )


class AgentOutputRow(Base):
    """One agent invocation's result, in the order it was produced."""

    __tablename__ = "agent_outputs"

    id = Column(Integer(), primary_key=True, autoincrement=True)
    run_id = Column(String(), ForeignKey("task_runs.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(), nullable=False)
    content = Column(Text(), nullable=False, default="")
    artifacts = Column(JSON(), nullable=False)
    status = Column(String(20), nullable=False)
    error = Column(Text(), nullable=True)
    execution_time = Column(Float(), nullable=False, default=0.0)
    input_tokens = Column(Integer(), nullable=False, default=0)
    output_tokens = Column(Integer(), nullable=False, default=0)
    estimated_cost = Column(Float(), nullable=False, default=0.0)
    execution_log = Column(JSON(), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    run = relationship("TaskRunRow", back_populates="outputs")
