"""
Built-in agent team.

PLANNING:
- Product Owner: requirements, user stories, phase planning
- Technical Lead: architecture (after Product Owner)

IMPLEMENTATION:
- Frontend Developer, Backend Developer (after Technical Lead)

DELIVERY:
- DevOps Engineer, QA Engineer (after Frontend and Backend)

META:
- Task Completion Validator: compares planned files against produced artifacts
"""

from .registry import AgentRegistry, AgentSpec
from .product_owner import PRODUCT_OWNER, detect_phases
from .tech_lead import TECH_LEAD
from .frontend import FRONTEND
from .backend import BACKEND
from .devops import DEVOPS
from .qa import QA
from .completion_validator import COMPLETION_VALIDATOR, parse_validation_report
from .completion_validator import ROLE as VALIDATOR_ROLE


BUILTIN_AGENTS = (
    PRODUCT_OWNER,
    TECH_LEAD,
    FRONTEND,
    BACKEND,
    DEVOPS,
    QA,
    COMPLETION_VALIDATOR,
)

default_registry = AgentRegistry(BUILTIN_AGENTS)


__all__ = [
    "AgentRegistry",
    "AgentSpec",
    "BUILTIN_AGENTS",
    "default_registry",
    "VALIDATOR_ROLE",
    "PRODUCT_OWNER",
    "TECH_LEAD",
    "FRONTEND",
    "BACKEND",
    "DEVOPS",
    "QA",
    "COMPLETION_VALIDATOR",
    "detect_phases",
    "parse_validation_report",
]
