"""
Tests for prompt assembly.
"""

from crewflow.agents import default_registry
from crewflow.models import (
    AgentOutput,
    Artifact,
    ArtifactType,
    ExecutionLog,
    ExecutionLogSummary,
    ExecutionStep,
    ExecutionStepType,
    OutputStatus,
    utcnow,
)
from crewflow.workflows.context_builder import (
    ExecutionContext,
    build_prompt,
    create_execution_summary,
    is_config_file,
)


TECH_LEAD = default_registry.get("tech-lead")
FRONTEND = default_registry.get("frontend")
VALIDATOR = default_registry.get("task-completion-validator")


def output(role, content="", artifacts=(), status=OutputStatus.success, **kwargs):
    return AgentOutput(role=role, content=content, artifacts=list(artifacts), status=status, **kwargs)


def code(path, content="export {}"):
    return Artifact(type=ArtifactType.code, path=path, content=content, language="typescript")


class TestExecutionContext:
    """Test the immutable context snapshot."""

    def test_with_outputs_returns_new_snapshot(self):
        base = ExecutionContext.create("task")
        first = output("product-owner", "v1")
        updated = base.with_outputs([first])

        assert base.latest_outputs == {}
        assert base.history == ()
        assert updated.latest_outputs["product-owner"] is first

    def test_latest_output_per_role_wins(self):
        ctx = ExecutionContext.create("task", previous_outputs=[output("frontend", "v1"), output("frontend", "v2")])
        assert ctx.latest_outputs["frontend"].content == "v2"
        assert [o.content for o in ctx.outputs_of("frontend")] == ["v1", "v2"]


class TestPromptSections:
    """Test which sections appear and in which order."""

    def test_task_description_always_first(self):
        prompt = build_prompt(TECH_LEAD, ExecutionContext.create("Build a blog"))
        assert prompt.startswith("# Task Description\n\nBuild a blog")

    def test_dependency_output_included(self):
        """A successful dependency's narrative and artifact list are shown."""
        po = output("product-owner", "User stories: login, logout", [code("docs/stories.md")])
        prompt = build_prompt(TECH_LEAD, ExecutionContext.create("task", previous_outputs=[po]))

        assert "## Product Owner" in prompt
        assert "User stories: login, logout" in prompt
        assert "- docs/stories.md (code)" in prompt

    def test_failed_and_non_dependency_outputs_excluded(self):
        failed = output("tech-lead", "", status=OutputStatus.error, error="boom")
        unrelated = output("qa", "QA notes")
        prompt = build_prompt(FRONTEND, ExecutionContext.create("task", previous_outputs=[failed, unrelated]))

        assert "Context from Team Members" not in prompt
        assert "QA notes" not in prompt

    def test_execution_log_summary_line(self):
        now = utcnow()
        log = ExecutionLog(
            steps=[ExecutionStep(type=ExecutionStepType.tool_call, content="Calling x", tool_name="x")],
            summary=ExecutionLogSummary(total_steps=1, total_tool_calls=1, start_time=now, end_time=now),
        )
        tl = output("tech-lead", "Architecture", execution_log=log)
        prompt = build_prompt(FRONTEND, ExecutionContext.create("task", previous_outputs=[tl]))
        assert "- 1 steps, 1 tool calls" in prompt

    def test_repository_structure_and_config_first(self, repo_files):
        ctx = ExecutionContext.create("task", repository_files=repo_files)
        prompt = build_prompt(FRONTEND, ctx)

        assert "- `src/`" in prompt
        assert "- `src/components/`" in prompt
        assert prompt.index("### File: package.json") < prompt.index("### File: src/App.tsx")
        assert "Modifying Existing Files" in prompt
        assert prompt.index("# Your Task") < prompt.index("Modifying Existing Files")

    def test_no_repository_sections_without_files(self):
        prompt = build_prompt(FRONTEND, ExecutionContext.create("task"))
        assert "REPOSITORY STRUCTURE" not in prompt
        assert "Modifying Existing Files" not in prompt

    def test_own_previous_work(self):
        """Re-execution shows earlier artifacts in full and a truncated summary."""
        earlier = output("frontend", "A" * 600, [code("src/Login.tsx", "export const Login = 1;")])
        prompt = build_prompt(FRONTEND, ExecutionContext.create("task", previous_outputs=[earlier]))

        assert "Your Previous Work" in prompt
        assert "export const Login = 1;" in prompt
        assert "A" * 500 + "...[truncated]" in prompt
        assert "A" * 501 not in prompt

    def test_capabilities_and_artifact_format(self):
        prompt = build_prompt(FRONTEND, ExecutionContext.create("task"))
        for capability in FRONTEND.capabilities:
            assert f"- {capability}" in prompt
        assert "```language:full/path/to/file.ext" in prompt

    def test_review_checklist_only_for_reviews(self):
        assert "DEFENSIVE EDITING" not in build_prompt(FRONTEND, ExecutionContext.create("task"))
        review = ExecutionContext.create("task", is_review=True)
        assert "DEFENSIVE EDITING" in build_prompt(FRONTEND, review)


class TestValidatorView:
    """Test the completion validator's whole-team view."""

    def test_groups_and_counts_all_artifacts(self):
        outputs = [
            output("frontend", "Built UI", [code("src/App.tsx"), code("src/Nav.tsx")]),
            output("backend", "Built API", [code("api/server.ts")]),
            output("frontend", "Remediation", [code("src/hooks/useAuth.ts")]),
            output("qa", "", status=OutputStatus.error, error="boom"),
        ]
        prompt = build_prompt(VALIDATOR, ExecutionContext.create("task", previous_outputs=outputs))

        assert "## Frontend Developer (3 file(s))" in prompt
        assert "## Backend Developer (1 file(s))" in prompt
        assert "**Total artifacts created: 4**" in prompt
        assert "Built UI" in prompt
        assert "Remediation" in prompt
        assert "Your Previous Work" not in prompt
        assert "Context from Team Members" not in prompt

    def test_no_artifacts_notice(self):
        prompt = build_prompt(VALIDATOR, ExecutionContext.create("task", previous_outputs=[output("qa", "notes")]))
        assert "No artifacts were created by any agent" in prompt


class TestHelpers:
    def test_config_file_detection(self):
        assert is_config_file("package.json")
        assert is_config_file("apps/web/tsconfig.json")
        assert is_config_file(".eslintrc.cjs")
        assert is_config_file("vite.config.ts")
        assert not is_config_file("src/App.tsx")

    def test_execution_summary(self):
        summary = create_execution_summary([
            output("product-owner", "ok", execution_time=1.5, input_tokens=1000, output_tokens=500, estimated_cost=0.02),
            output("tech-lead", "", status=OutputStatus.error, error="timeout"),
        ])
        assert "**Agents Executed:** 2" in summary
        assert "**Status:** Partial Success" in summary
        assert "### Technical Lead" in summary
        assert "- Error: timeout" in summary
        assert "**Estimated Cost:** $0.0200" in summary
        assert "- Tokens: 1500 ($0.0200)" in summary
