"""
Task Completion Validator: a meta-agent that compares planned files with
the artifacts the team actually produced.

The validator never writes files. Its answer is a fenced JSON document that
``parse_validation_report`` turns into a ``ValidationReport``.
"""

import json
import logging
import re
from typing import Optional, Tuple

from pydantic import ValidationError

from ..models import ValidationReport
from .registry import AgentSpec

logger = logging.getLogger(__name__)

ROLE = "task-completion-validator"

SYSTEM_PROMPT = """You are a Task Completion Validator. You make sure all planned work was actually implemented.

You are a VALIDATOR ONLY. Do NOT create files or write code. Analyze and recommend
what other agents still need to create.

Files created by agents are ARTIFACTS that have NOT been pushed to the repository yet.
Your context lists them in the "Created Artifacts" section. That list is your source of truth.

VALIDATION WORKFLOW:
1. Read "Created Artifacts": every file the team produced.
2. Read "Team Member Outputs": extract every file path each agent PLANNED.
3. Every planned file missing from the artifacts goes into "missingFiles".
4. Check imports between artifacts for consistency.
5. Look for TODOs or placeholder code in artifacts.
6. completionPercentage = created planned files / planned files * 100

Use repository tools ONLY for files that should already exist in the repository
(configuration, existing modules). Never use them to look for new artifacts.

Output VALID JSON ONLY, in a ```json fenced block:
```json
{
  "completionPercentage": 85,
  "status": "incomplete",
  "plannedFiles": ["src/components/Button.tsx", "src/hooks/useAuth.ts"],
  "createdFiles": ["src/components/Button.tsx"],
  "missingFiles": [
    {"path": "src/hooks/useAuth.ts", "mentionedBy": "Frontend Developer", "reason": "Imported by Login.tsx but not created"}
  ],
  "brokenReferences": [
    {"file": "src/pages/Login.tsx", "issue": "Imports './components/AuthForm' which does not exist", "line": 3}
  ],
  "incompleteParts": [
    {"agent": "Backend Developer", "issue": "Login endpoint contains a TODO"}
  ],
  "recommendations": [
    "Frontend Developer should create src/hooks/useAuth.ts"
  ]
}
```

FORMAT RULES:
- "recommendations" is an array of plain strings, never objects
- Each recommendation reads "<Agent Name> should <action> <filepath>"
- Output the complete JSON object; do not truncate it
"""

COMPLETION_VALIDATOR = AgentSpec(
    role=ROLE,
    name="Task Completion Validator",
    description="Validates that the implementation plan was fully completed",
    system_prompt=SYSTEM_PROMPT,
    capabilities=(
        "Completeness validation",
        "File existence verification",
        "Import validation",
        "Plan adherence checking",
    ),
    dependencies=(),
)


_JSON_BLOCK = re.compile(r"```json\s*([\s\S]*?)\s*```")


def parse_validation_report(content: str) -> Tuple[Optional[ValidationReport], Optional[str]]:
    """
    Parse the validator's response into a report.

    Args:
        content: Raw validator text, ideally containing a ```json block

    Returns:
        Tuple of (report, error_message); exactly one of them is None
    """
    if not content or not content.strip():
        return None, "Validator returned no content"

    match = _JSON_BLOCK.search(content)
    payload = match.group(1) if match else content.strip()

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        return None, f"Validator output is not valid JSON: {e}"

    if not isinstance(data, dict):
        return None, "Validator output must be a JSON object"

    try:
        report = ValidationReport.model_validate(data)
    except ValidationError as e:
        return None, f"Validator output does not match the report schema: {e.error_count()} error(s)"

    return report, None
