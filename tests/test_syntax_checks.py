"""
Tests for advisory syntax and truncation checks.
"""

from crewflow.models import AgentOutput, Artifact, ArtifactType
from crewflow.workflows.syntax_checks import (
    check_file,
    check_html_structure,
    check_outputs,
    clean_artifacts,
    detect_file_kind,
    scan_code,
)


class TestFileKind:
    def test_kinds(self):
        assert detect_file_kind("a/b.tsx") == "typescript"
        assert detect_file_kind("index.mjs") == "javascript"
        assert detect_file_kind("package.json") == "json"
        assert detect_file_kind("Page.astro") == "html"
        assert detect_file_kind("styles.scss") == "css"
        assert detect_file_kind("main.py") == "python"
        assert detect_file_kind("Makefile") == "generic"


class TestCodeScan:
    """Test brace and string scanning outside strings and comments."""

    def test_balanced_code(self):
        """Braces inside strings and comments are ignored."""
        code = 'const a = "{ not a brace";\n// } also not\nfunction f() { return [1, 2]; }\n'
        assert scan_code(code) == ([], [])

    def test_unclosed_brace(self):
        """A missing closer is reported with its line."""
        brace_errors, _ = scan_code("function f() {\n  if (x) {\n}\n")
        assert brace_errors == ["Unclosed: '{' (line 1)"]

    def test_unexpected_closer(self):
        """A mismatched closer stops the scan."""
        brace_errors, _ = scan_code("const a = [1, 2);\n")
        assert brace_errors == ["Unexpected ')' on line 1"]

    def test_unterminated_string(self):
        """A quote broken by a newline is unterminated."""
        _, string_errors = scan_code('const a = "oops\nconst b = 1;\n')
        assert string_errors == ["Unterminated string starting on line 1"]

    def test_template_literal_spans_lines(self):
        """Backtick strings may contain newlines."""
        assert scan_code("const t = `line one\nline two`;\n") == ([], [])


class TestHtmlStructure:
    def test_balanced_markup(self):
        assert check_html_structure('<div class="a"><img src="x.png"><br/></div>') == []

    def test_mismatch_and_unclosed(self):
        errors = check_html_structure("<div><span></div>")
        assert "Tag mismatch: expected </span>, got </div>" in errors
        assert "Unclosed tags: div" in errors


class TestCheckFile:
    """Test per-kind checks and truncation heuristics."""

    def test_valid_typescript(self):
        report = check_file("src/App.tsx", "export function App() {\n  return null;\n}\n")
        assert report.valid
        assert report.warnings == []

    def test_truncated_typescript(self):
        """Ending mid-identifier is flagged as truncation."""
        report = check_file("src/App.tsx", "export function App() {\n  const value = compute")
        assert not report.valid
        assert any("incomplete word" in e for e in report.errors)
        assert any("Unbalanced braces" in e for e in report.errors)
        assert report.warnings == ["Potentially incomplete functions: App"]

    def test_invalid_json(self):
        report = check_file("package.json", '{"name": "demo",')
        assert any(e.startswith("JSON syntax error") for e in report.errors)

    def test_python_uses_parser(self):
        """Python is checked by parsing, not by brace counting."""
        assert check_file("main.py", "def main():\n    return {'a': 1}\n").valid
        report = check_file("main.py", "def main(:\n    pass\n")
        assert report.errors[0].startswith("Python syntax error")

    def test_css_ignores_slashes_in_urls(self):
        """CSS has no line comments, so // inside a value is not one."""
        report = check_file("site.css", "body { background: url(http://example.com/bg.png); }\n")
        assert report.valid

    def test_short_markup_without_closing_html(self):
        report = check_file("index.html", "<html>\n<body>\n")
        assert any("too short" in e for e in report.errors)

    def test_generic_files_only_get_generic_checks(self):
        """Prose ending in a word is fine for unknown kinds."""
        assert check_file("NOTES", "Just some words").valid


class TestOutputReports:
    """Test the post-run report over agent outputs."""

    def test_only_files_with_issues_are_reported(self):
        good = Artifact(type=ArtifactType.code, path="src/a.ts", content="export const a = 1;\n")
        bad = Artifact(type=ArtifactType.code, path="src/b.ts", content="export const b = {\n")
        output = AgentOutput(role="frontend", content="", artifacts=[good, bad])

        reports = check_outputs([output])

        assert [r.path for r in reports] == ["src/b.ts"]
        assert clean_artifacts([good, bad]) == [good]
