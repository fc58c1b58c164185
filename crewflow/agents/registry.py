"""Static catalog of agent roles."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentSpec:
    """Immutable description of one agent role."""

    role: str
    name: str
    system_prompt: str
    description: str = ""
    capabilities: Tuple[str, ...] = ()
    dependencies: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        # Accept lists from manifests while keeping AgentSpec hashable.
        object.__setattr__(self, "capabilities", tuple(self.capabilities))
        object.__setattr__(self, "dependencies", tuple(dict.fromkeys(self.dependencies)))


class AgentRegistry:
    """
    Role id to ``AgentSpec`` lookup, resolved once at construction.

    Every dependency must name a role in the registry. A dependency may
    still be absent from the roles a run selects; the scheduler drops
    those edges.
    """

    def __init__(self, specs: Iterable[AgentSpec]):
        self._specs: Dict[str, AgentSpec] = {}
        for spec in specs:
            if spec.role in self._specs:
                raise ValueError(f"Duplicate agent role: {spec.role}")
            self._specs[spec.role] = spec

        for spec in self._specs.values():
            unknown = [dep for dep in spec.dependencies if dep not in self._specs]
            if unknown:
                raise ValueError(f"Agent '{spec.role}' depends on unknown roles: {', '.join(unknown)}")

    def get(self, role: str) -> Optional[AgentSpec]:
        return self._specs.get(role)

    def all(self) -> List[AgentSpec]:
        return list(self._specs.values())

    def roles(self) -> List[str]:
        return list(self._specs)

    def resolve(self, roles: Iterable[str]) -> List[AgentSpec]:
        """Map role ids to specs in the given order, skipping unknown roles."""
        specs = []
        for role in roles:
            spec = self._specs.get(role)
            if spec is None:
                logger.warning(f"Unknown agent role '{role}' ignored")
                continue
            if spec not in specs:
                specs.append(spec)
        return specs

    def display_name(self, role: str) -> str:
        spec = self._specs.get(role)
        return spec.name if spec else role

    def extend(self, specs: Iterable[AgentSpec]) -> "AgentRegistry":
        """Return a new registry with extra roles added (or existing ones replaced)."""
        merged = dict(self._specs)
        for spec in specs:
            merged[spec.role] = spec
        return AgentRegistry(merged.values())

    def __contains__(self, role: object) -> bool:
        return role in self._specs

    def __iter__(self) -> Iterator[AgentSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)
