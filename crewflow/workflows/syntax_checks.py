"""
Advisory syntax and truncation checks for generated files.

Nothing here removes an artifact from a run. Callers receive a
``FileCheckReport`` per file and decide what to do with it.
"""

import ast
import json
import logging
import re
from typing import Iterable, List, Tuple

from ..models import AgentOutput, Artifact, FileCheckReport

logger = logging.getLogger(__name__)

BRACE_PAIRS = {"{": "}", "[": "]", "(": ")"}
CLOSERS = {v: k for k, v in BRACE_PAIRS.items()}

VOID_TAGS = frozenset(
    ["meta", "link", "br", "hr", "img", "input", "area", "base", "col", "embed", "source", "track", "wbr"]
)
_TAG = re.compile(r"<\/?([a-zA-Z][a-zA-Z0-9-]*)[^>]*>")
_FUNCTION_START = re.compile(
    r"(?:function|const|let|var)\s+(\w+)\s*(?:=\s*)?(?:async\s*)?\([^)]*\)\s*(?:=>)?\s*\{"
)
_TRAILING_WORD = re.compile(r"[a-zA-Z]{3,}$")
_OPEN_ATTRIBUTE = re.compile(r"(class|style|id|href|src)=[\"'][^\"']*$")

MARKUP_EXTENSIONS = ("astro", "html", "vue", "svelte")
# Kinds where a file ending on a bare word is a truncation signal
WORD_END_KINDS = ("typescript", "javascript", "json", "html", "css")


def detect_file_kind(path: str) -> str:
    ext = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    if ext == "json":
        return "json"
    if ext in ("ts", "tsx"):
        return "typescript"
    if ext in ("js", "jsx", "mjs", "cjs"):
        return "javascript"
    if ext == "py":
        return "python"
    if ext in ("html", "htm") or ext in MARKUP_EXTENSIONS:
        return "html"
    if ext in ("css", "scss", "less"):
        return "css"
    return "generic"


def scan_code(content: str, line_comments: bool = True) -> Tuple[List[str], List[str]]:
    """
    Walk C-family source outside of strings and comments.

    Returns:
        Tuple of (brace_errors, string_errors)
    """
    brace_errors: List[str] = []
    string_errors: List[str] = []
    stack: List[Tuple[str, int]] = []
    line = 1
    i = 0
    n = len(content)
    quote = ""
    quote_line = 0

    while i < n:
        char = content[i]
        nxt = content[i + 1] if i + 1 < n else ""

        if char == "\n":
            line += 1
            if quote in ("'", '"'):
                string_errors.append(f"Unterminated string starting on line {quote_line}")
                quote = ""
            i += 1
            continue

        if quote:
            if char == "\\":
                i += 2
                continue
            if char == quote:
                quote = ""
            i += 1
            continue

        if line_comments and char == "/" and nxt == "/":
            end = content.find("\n", i)
            i = n if end == -1 else end
            continue
        if char == "/" and nxt == "*":
            end = content.find("*/", i + 2)
            if end == -1:
                string_errors.append(f"Unterminated block comment starting on line {line}")
                break
            line += content.count("\n", i, end)
            i = end + 2
            continue

        if char in ("'", '"', "`"):
            quote = char
            quote_line = line
        elif char in BRACE_PAIRS:
            stack.append((char, line))
        elif char in CLOSERS:
            if not stack or stack[-1][0] != CLOSERS[char]:
                brace_errors.append(f"Unexpected '{char}' on line {line}")
                return brace_errors, string_errors
            stack.pop()
        i += 1

    if quote:
        string_errors.append(f"Unterminated string starting on line {quote_line}")
    if stack:
        brace_errors.append("Unclosed: " + ", ".join(f"'{c}' (line {ln})" for c, ln in stack))
    return brace_errors, string_errors


def find_incomplete_functions(content: str) -> List[str]:
    incomplete = []
    for match in _FUNCTION_START.finditer(content):
        depth = 0
        for char in content[match.end() - 1:]:
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    break
        if depth > 0:
            incomplete.append(match.group(1))
    return incomplete


def check_html_structure(content: str) -> List[str]:
    errors = []
    stack: List[str] = []

    for match in _TAG.finditer(content):
        full_tag = match.group(0)
        tag = match.group(1).lower()
        if tag in VOID_TAGS or full_tag.endswith("/>"):
            continue
        if full_tag.startswith("</"):
            if not stack:
                errors.append(f"Unexpected closing tag: </{tag}>")
                continue
            expected = stack.pop()
            if expected != tag:
                errors.append(f"Tag mismatch: expected </{expected}>, got </{tag}>")
        else:
            stack.append(tag)

    if stack:
        errors.append(f"Unclosed tags: {', '.join(stack)}")

    quotes = content.count('"')
    if quotes % 2:
        errors.append(f"Unbalanced quotes (found {quotes}, should be even)")
    return errors


def check_truncation(content: str, path: str, kind: str) -> List[str]:
    tail = content[-50:].strip()
    if kind in WORD_END_KINDS and _TRAILING_WORD.search(tail):
        return ["Ends with incomplete word"]

    if kind not in ("generic", "python"):
        last_line = content.rstrip("\n").split("\n")[-1].strip()
        if sum(last_line.count(q) for q in ("'", '"', "`")) % 2:
            return ["Ends with unclosed string"]

    if _OPEN_ATTRIBUTE.search(tail):
        return ["Ends with incomplete HTML attribute"]

    ext = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    if ext in MARKUP_EXTENSIONS:
        if len(content.split("\n")) < 10 and "<html" in content and "</html>" not in content:
            return ["HTML file too short and missing closing tags"]
    return []


def check_file(path: str, content: str) -> FileCheckReport:
    """Run the checks that apply to the file's kind."""
    kind = detect_file_kind(path)
    report = FileCheckReport(path=path, file_kind=kind)

    if kind == "json":
        try:
            json.loads(content)
        except json.JSONDecodeError as e:
            report.errors.append(f"JSON syntax error: {e.msg} (line {e.lineno})")
    elif kind in ("typescript", "javascript", "css"):
        brace_errors, string_errors = scan_code(content, line_comments=kind != "css")
        if brace_errors:
            report.errors.append(f"Unbalanced braces: {'; '.join(brace_errors)}")
        if string_errors:
            report.errors.append(f"Unclosed strings detected: {'; '.join(string_errors)}")
        if kind != "css":
            incomplete = find_incomplete_functions(content)
            if incomplete:
                report.warnings.append(f"Potentially incomplete functions: {', '.join(incomplete)}")
    elif kind == "python":
        try:
            ast.parse(content)
        except SyntaxError as e:
            report.errors.append(f"Python syntax error on line {e.lineno}: {e.msg}")
    elif kind == "html":
        html_errors = check_html_structure(content)
        if html_errors:
            report.errors.append(f"HTML structure errors: {', '.join(html_errors)}")

    for reason in check_truncation(content, path, kind):
        report.errors.append(f"File appears truncated: {reason}")

    return report


def check_artifact(artifact: Artifact) -> FileCheckReport:
    return check_file(artifact.path, artifact.content)


def check_outputs(outputs: Iterable[AgentOutput]) -> List[FileCheckReport]:
    """
    Check every artifact of every output.

    Returns:
        Reports for files with at least one error or warning
    """
    reports = []
    for output in outputs:
        for artifact in output.artifacts:
            report = check_artifact(artifact)
            if report.errors:
                logger.error(f"File {artifact.path} ({report.file_kind}): {', '.join(report.errors)}")
            if report.warnings:
                logger.warning(f"Warnings for {artifact.path}: {report.warnings}")
            if report.errors or report.warnings:
                reports.append(report)
    return reports


def clean_artifacts(artifacts: Iterable[Artifact]) -> List[Artifact]:
    """Artifacts whose checks produced no errors."""
    return [a for a in artifacts if check_artifact(a).valid]
