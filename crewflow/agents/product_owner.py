"""
Product Owner agent: turns the task into user stories and acceptance criteria.

The product owner is also the only role allowed to split work into phases.
``detect_phases`` reads the phase markers it writes so a run can report
whether a follow-up phase was planned.
"""

import logging
import re
from typing import Iterable, List

from ..models import AgentOutput, PhaseInfo
from .common import REPOSITORY_STRUCTURE_RULES, build_system_prompt
from .registry import AgentSpec

logger = logging.getLogger(__name__)

ROLE = "product-owner"

SYSTEM_PROMPT = build_system_prompt(
    """
You are an experienced Product Owner focused on user value and clear requirements.

Your responsibilities:
- Understand and articulate user needs
- Write user stories with acceptance criteria
- Prioritize features by value and complexity
- Define the "what" and "why", never the "how"
- Keep every requirement testable and measurable

PHASING STRATEGY
Deliver everything in a SINGLE phase unless the user asks for phased delivery,
the work is clearly too large for one pass, or hard technical dependencies
force an order. Multiple features alone are not a reason to split.

If you DO split into phases:
1. Label them "## 🚀 PHASE 1 - <name>", "## 📋 PHASE 2 - <name>", ...
2. Explain why you split.
3. End with:
   ## 📊 PHASE SUMMARY
   **Current Task Scope: PHASE 1 ONLY**
   - <phase 1 features>
   **Future Phases (not in current task):**
   - Phase 2: <description>
   **To continue:** create a new task for the next phase once Phase 1 is reviewed.

Output format:
1. Product Vision & Goals
2. User Stories (with acceptance criteria)
3. Feature Priority (MoSCoW, with phase if split)
4. Success Metrics
5. Edge Cases & Constraints
6. Open Questions
7. Phase Summary (if applicable)
""",
    REPOSITORY_STRUCTURE_RULES,
)

PRODUCT_OWNER = AgentSpec(
    role=ROLE,
    name="Product Owner",
    description="Defines requirements and user stories",
    system_prompt=SYSTEM_PROMPT,
    capabilities=(
        "Requirements definition",
        "User story creation",
        "Feature prioritization",
        "Acceptance criteria",
    ),
    dependencies=(),
)


_PHASE_MARKER = re.compile(r"##\s*[🚀📋🎯]?\s*PHASE\s+(\d+)", re.IGNORECASE)
_PHASE_SUMMARY = re.compile(
    r"##\s*📊?\s*PHASE SUMMARY[\s\S]*?Future Phases.*?:\s*([\s\S]*?)(?=\n##|\*\*To continue|```|\Z)",
    re.IGNORECASE,
)
_PHASE_TWO_SECTION = re.compile(r"##\s*[📋🎯]?\s*PHASE\s+2[^\n]*\n([\s\S]*?)(?=\n##|\Z)", re.IGNORECASE)

GENERIC_NEXT_PHASE = "Additional phases defined. Check Product Owner output for details."


def find_phase_numbers(content: str) -> List[int]:
    return sorted({int(match) for match in _PHASE_MARKER.findall(content)})


def detect_phases(outputs: Iterable[AgentOutput]) -> PhaseInfo:
    """
    Detect phase planning in the first product-owner output.

    Args:
        outputs: All outputs of the run, in execution order

    Returns:
        PhaseInfo; empty when no product owner ran or no markers were found
    """
    product_owner = next((o for o in outputs if o.role == ROLE), None)
    if product_owner is None or not product_owner.content:
        return PhaseInfo()

    content = product_owner.content
    phases = find_phase_numbers(content)
    if not phases:
        return PhaseInfo()

    current_phase = f"Phase {phases[0]}"
    has_next_phase = len(phases) > 1 or "PHASE 2" in content or "Phase 2" in content

    next_phase_description = None
    if has_next_phase:
        summary = _PHASE_SUMMARY.search(content)
        if summary:
            next_phase_description = summary.group(1).strip()
        else:
            section = _PHASE_TWO_SECTION.search(content)
            if section:
                description = section.group(1).strip()
                next_phase_description = description if len(description) <= 500 else description[:500] + "..."
            else:
                next_phase_description = GENERIC_NEXT_PHASE

    logger.info(f"Phase detection: phases={phases} current={current_phase} has_next={has_next_phase}")
    return PhaseInfo(
        current_phase=current_phase,
        has_next_phase=has_next_phase,
        next_phase_description=next_phase_description,
    )
