"""
Tests for the agent registry, team manifests and role-specific parsing.
"""

import json

import pytest

from crewflow.agents import (
    BUILTIN_AGENTS,
    PRODUCT_OWNER,
    VALIDATOR_ROLE,
    default_registry,
    detect_phases,
    parse_validation_report,
)
from crewflow.agents.manifest import load_team_manifest, parse_team_manifest
from crewflow.agents.product_owner import GENERIC_NEXT_PHASE
from crewflow.agents.registry import AgentRegistry, AgentSpec
from crewflow.exceptions import ManifestError
from crewflow.models import AgentOutput, OutputStatus


def spec(role, *dependencies, name=None):
    return AgentSpec(role=role, name=name or role.title(), system_prompt=f"You are {role}.", dependencies=dependencies)


class TestAgentRegistry:
    """Test registry construction and lookups."""

    def test_builtin_team(self):
        assert default_registry.roles() == [
            "product-owner", "tech-lead", "frontend", "backend", "devops", "qa", VALIDATOR_ROLE,
        ]
        assert len(default_registry) == len(BUILTIN_AGENTS)
        assert default_registry.get("tech-lead").dependencies == ("product-owner",)

    def test_team_prompts_carry_structure_rules(self):
        for agent in BUILTIN_AGENTS:
            if agent.role == VALIDATOR_ROLE:
                continue
            assert "Respect the existing project structure" in agent.system_prompt, agent.role
        assert "```typescript:" in default_registry.get("frontend").system_prompt

    def test_duplicate_role_rejected(self):
        with pytest.raises(ValueError, match="Duplicate agent role"):
            AgentRegistry([spec("a"), spec("a")])

    def test_unknown_dependency_rejected(self):
        with pytest.raises(ValueError, match="unknown roles: ghost"):
            AgentRegistry([spec("a", "ghost")])

    def test_resolve_keeps_order_and_skips_unknown(self):
        resolved = default_registry.resolve(["qa", "designer", "frontend", "qa"])
        assert [s.role for s in resolved] == ["qa", "frontend"]

    def test_display_name_falls_back_to_role(self):
        assert default_registry.display_name("frontend") == "Frontend Developer"
        assert default_registry.display_name("designer") == "designer"

    def test_extend_returns_new_registry(self):
        extended = default_registry.extend([spec("security", "backend")])

        assert "security" in extended
        assert "security" not in default_registry
        assert len(extended) == len(default_registry) + 1

    def test_spec_normalizes_lists(self):
        agent = AgentSpec(role="x", name="X", system_prompt="p", capabilities=["a"], dependencies=["b", "b"])
        assert agent.capabilities == ("a",)
        assert agent.dependencies == ("b",)
        assert hash(agent)


class TestTeamManifest:
    """Test YAML team manifests."""

    def test_load_manifest_with_prompt_file_and_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SECURITY_NAME", "AppSec Reviewer")
        (tmp_path / "prompts").mkdir()
        (tmp_path / "prompts" / "security.md").write_text("You review code for vulnerabilities.", encoding="utf-8")
        manifest = tmp_path / "team.yaml"
        manifest.write_text(
            "name: secure-team\n"
            "agents:\n"
            "  - role: security\n"
            "    name: ${SECURITY_NAME}\n"
            "    description: ${SECURITY_DESC:-Reviews security}\n"
            "    prompt_file: prompts/security.md\n"
            "    capabilities: [Threat modelling]\n"
            "    dependencies: [backend]\n",
            encoding="utf-8",
        )

        registry = load_team_manifest(manifest)
        security = registry.get("security")

        assert security.name == "AppSec Reviewer"
        assert security.description == "Reviews security"
        assert security.system_prompt == "You review code for vulnerabilities."
        assert security.dependencies == ("backend",)
        assert registry.get("frontend") is not None

    def test_manifest_overrides_builtin_role(self):
        registry = parse_team_manifest({"agents": [{"role": "qa", "system_prompt": "Only e2e tests."}]})
        assert registry.get("qa").system_prompt == "Only e2e tests."
        assert registry.get("qa").name == "qa"

    @pytest.mark.parametrize("data,message", [
        ([], "must be a mapping"),
        ({"agents": []}, "non-empty 'agents'"),
        ({"agents": [{"name": "x"}]}, "missing a 'role'"),
        ({"agents": [{"role": "x"}]}, "needs 'system_prompt'"),
        ({"agents": [{"role": "x", "system_prompt": "p", "dependencies": "qa"}]}, "must be lists"),
        ({"agents": [{"role": "x", "system_prompt": "p", "dependencies": ["ghost"]}]}, "unknown roles"),
    ])
    def test_invalid_manifests(self, data, message):
        with pytest.raises(ManifestError, match=message):
            parse_team_manifest(data)

    def test_missing_prompt_file(self, tmp_path):
        with pytest.raises(ManifestError, match="Prompt not found"):
            parse_team_manifest({"agents": [{"role": "x", "prompt_file": "nope.md"}]}, base_dir=tmp_path)

    def test_missing_manifest_and_bad_yaml(self, tmp_path):
        with pytest.raises(ManifestError, match="not found"):
            load_team_manifest(tmp_path / "absent.yaml")

        bad = tmp_path / "bad.yaml"
        bad.write_text("agents: [unclosed", encoding="utf-8")
        with pytest.raises(ManifestError, match="Invalid YAML"):
            load_team_manifest(bad)


class TestPhaseDetection:
    """Test phase planning detection on product owner output."""

    def po(self, content):
        return AgentOutput(role=PRODUCT_OWNER.role, content=content)

    def test_no_product_owner(self):
        info = detect_phases([AgentOutput(role="frontend", content="## PHASE 1")])
        assert info.current_phase is None
        assert not info.has_next_phase

    def test_single_phase(self):
        info = detect_phases([self.po("## 🚀 PHASE 1 - MVP\nEverything")])
        assert info.current_phase == "Phase 1"
        assert not info.has_next_phase
        assert info.next_phase_description is None

    def test_summary_future_phases_preferred(self):
        content = (
            "## 🚀 PHASE 1 - MVP\nLogin\n"
            "## 📋 PHASE 2 - Growth\nReferrals\n"
            "## 📊 PHASE SUMMARY\nFuture Phases:\n- Phase 2: referrals and invites\n"
            "**To continue with Phase 2** ask again."
        )
        info = detect_phases([self.po(content)])
        assert info.has_next_phase
        assert info.next_phase_description == "- Phase 2: referrals and invites"

    def test_phase_two_section_truncated(self):
        content = "## 🚀 PHASE 1 - MVP\nLogin\n## 📋 PHASE 2 - Growth\n" + "x" * 600
        info = detect_phases([self.po(content)])
        assert info.next_phase_description == "x" * 500 + "..."

    def test_generic_description_when_only_mentioned(self):
        info = detect_phases([self.po("## 🚀 PHASE 1 - MVP\nPhase 2 will follow later.")])
        assert info.has_next_phase
        assert info.next_phase_description == GENERIC_NEXT_PHASE

    def test_first_product_owner_output_wins(self):
        first = self.po("## 🚀 PHASE 1 - MVP\nonly one")
        later = self.po("## 🚀 PHASE 3\n## 📋 PHASE 4\n")
        assert detect_phases([first, later]).current_phase == "Phase 1"


class TestValidationReportParsing:
    """Test parsing of the validator's JSON answer."""

    def test_fenced_json(self):
        payload = {
            "completionPercentage": 60,
            "status": "INCOMPLETE",
            "missingFiles": ["src/a.ts", {"path": "src/b.ts", "mentionedBy": "Backend Developer"}],
            "recommendations": ["Backend Developer should create src/b.ts"],
        }
        report, error = parse_validation_report(f"Here you go:\n```json\n{json.dumps(payload)}\n```\nDone.")

        assert error is None
        assert report.status == "incomplete"
        assert not report.is_complete
        assert [m.path for m in report.missing_files] == ["src/a.ts", "src/b.ts"]
        assert report.missing_files[1].mentioned_by == "Backend Developer"

    def test_bare_json_and_percentage_completion(self):
        report, error = parse_validation_report('{"completionPercentage": 100, "status": "incomplete"}')
        assert error is None
        assert report.is_complete

    @pytest.mark.parametrize("content,message", [
        ("", "no content"),
        ("```json\n{not json}\n```", "not valid JSON"),
        ("[1, 2]", "must be a JSON object"),
    ])
    def test_unusable_content(self, content, message):
        report, error = parse_validation_report(content)
        assert report is None
        assert message in error

    def _parse_with(self, **fields):
        payload = {
            "completionPercentage": 40,
            "status": "incomplete",
            "recommendations": ["Frontend Developer should create src/pages/Login.tsx"],
        }
        payload.update(fields)
        report, error = parse_validation_report(f"```json\n{json.dumps(payload)}\n```")
        assert error is None
        assert report.recommendations == ["Frontend Developer should create src/pages/Login.tsx"]
        return report

    def test_incomplete_parts_as_strings(self):
        report = self._parse_with(incompleteParts=["Backend login endpoint has a TODO"])
        assert report.incomplete_parts[0].issue == "Backend login endpoint has a TODO"
        assert report.incomplete_parts[0].agent == ""

    def test_broken_reference_with_path_key(self):
        report = self._parse_with(brokenReferences=[
            {"path": "src/App.tsx", "issue": "imports ./pages/Login which does not exist"},
            {"issue": "dangling import", "line": "n/a"},
        ])
        first, second = report.broken_references
        assert first.file == "src/App.tsx"
        assert second.file == ""
        assert second.line is None

    def test_null_percentage_counts_as_zero(self):
        report = self._parse_with(completionPercentage=None)
        assert report.completion_percentage == 0
        assert not report.is_complete

    @pytest.mark.parametrize("value,expected", [("85%", 85), ("lots", 0), (100, 100)])
    def test_percentage_shapes(self, value, expected):
        assert self._parse_with(completionPercentage=value).completion_percentage == expected

    def test_loose_file_lists(self):
        report = self._parse_with(
            plannedFiles="src/a.ts",
            createdFiles=[{"path": "src/b.ts"}, None],
            missingFiles=[{"file": "src/c.ts", "mentionedBy": "Backend Developer"}, 42],
        )
        assert report.planned_files == ["src/a.ts"]
        assert report.created_files == ["src/b.ts"]
        assert [(m.path, m.mentioned_by) for m in report.missing_files] == [("src/c.ts", "Backend Developer")]

    def test_error_output_is_not_success(self):
        output = AgentOutput(role=VALIDATOR_ROLE, status=OutputStatus.error, error="boom")
        assert not output.succeeded
