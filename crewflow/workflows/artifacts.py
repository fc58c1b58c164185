"""
Artifact pipeline: extract file artifacts from generated text and drop the
ones that break repository structure or silently truncate an existing file.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..models import Artifact, ArtifactType, RepositoryFile

logger = logging.getLogger(__name__)

_FENCED_ARTIFACT = re.compile(r"```(\w+):([^\n]+)\n([\s\S]*?)```")

CONFIG_EXTENSIONS = (".json", ".yml", ".yaml", ".env")
DOCUMENT_EXTENSIONS = (".md", ".txt")
DOCUMENT_LANGUAGES = ("markdown", "text")
DIAGRAM_LANGUAGES = ("mermaid", "plantuml")

REJECT_REDUCTION_PERCENT = 50
WARN_REDUCTION_PERCENT = 20


def infer_artifact_type(language: str, path: str) -> ArtifactType:
    lower = path.lower()
    language = language.lower()

    if lower.endswith(CONFIG_EXTENSIONS) or "docker" in lower or "config" in lower:
        return ArtifactType.config
    if lower.endswith(DOCUMENT_EXTENSIONS) or language in DOCUMENT_LANGUAGES:
        return ArtifactType.document
    if language in DIAGRAM_LANGUAGES or lower.endswith(".mmd"):
        return ArtifactType.diagram
    return ArtifactType.code


def extract_artifacts(content: str) -> List[Artifact]:
    """
    Find every ```language:path block in generated text.

    Args:
        content: Full narrative produced by an agent

    Returns:
        Candidate artifacts in order of appearance
    """
    artifacts = []
    for language, path, body in _FENCED_ARTIFACT.findall(content or ""):
        path = path.strip()
        if not path:
            continue
        artifacts.append(
            Artifact(
                type=infer_artifact_type(language, path),
                path=path,
                content=body.strip(),
                language=language.strip(),
            )
        )
    return artifacts


def root_folders(files: Sequence[RepositoryFile]) -> Set[str]:
    """First path segment of every file that lives inside a folder."""
    return {f.path.split("/")[0] for f in files if "/" in f.path}


def all_folders(files: Sequence[RepositoryFile]) -> Set[str]:
    """Every folder and intermediate folder that appears in a file path."""
    folders = set()
    for f in files:
        parts = f.path.split("/")
        for i in range(1, len(parts)):
            folders.add("/".join(parts[:i]))
    return folders


def validate_artifact_paths(
    artifacts: Sequence[Artifact],
    files: Optional[Sequence[RepositoryFile]],
) -> Tuple[List[Artifact], List[str]]:
    """
    Reject artifacts placed under a root folder the repository doesn't have.

    Root-level files (no folder segment) are always accepted. Without
    repository files there is nothing to check against and everything passes.

    Returns:
        Tuple of (accepted_artifacts, warnings)
    """
    if not files:
        return list(artifacts), []

    roots = root_folders(files)
    accepted: List[Artifact] = []
    warnings: List[str] = []

    for artifact in artifacts:
        parts = artifact.path.split("/")
        if len(parts) == 1:
            accepted.append(artifact)
            continue

        if roots and parts[0] not in roots:
            warnings.append(
                f"Artifact path '{artifact.path}' uses non-existent root folder '{parts[0]}'. "
                f"Existing root folders: {', '.join(sorted(roots))}. The artifact was rejected."
            )
            continue

        accepted.append(artifact)

    return accepted, warnings


def line_reduction_percent(original: str, replacement: str) -> float:
    original_lines = len(original.split("\n"))
    new_lines = len(replacement.split("\n"))
    return (original_lines - new_lines) / original_lines * 100


def validate_artifact_completeness(
    artifacts: Sequence[Artifact],
    files: Optional[Sequence[RepositoryFile]],
) -> Tuple[List[Artifact], List[str]]:
    """
    Guard existing files against truncated rewrites.

    More than 50% fewer lines than the original rejects the artifact; a
    reduction between 20% and 50% keeps it with a warning.

    Returns:
        Tuple of (accepted_artifacts, warnings)
    """
    if not files:
        return list(artifacts), []

    originals: Dict[str, str] = {f.path: f.content for f in files}
    accepted: List[Artifact] = []
    warnings: List[str] = []

    for artifact in artifacts:
        original = originals.get(artifact.path)
        if original:
            reduction = line_reduction_percent(original, artifact.content)
            original_lines = len(original.split("\n"))
            new_lines = len(artifact.content.split("\n"))

            if reduction > REJECT_REDUCTION_PERCENT:
                warnings.append(
                    f"CRITICAL: Artifact '{artifact.path}' has {round(reduction)}% content loss "
                    f"({original_lines} -> {new_lines} lines). Suspected truncated output; the artifact was rejected."
                )
                continue
            if reduction > WARN_REDUCTION_PERCENT:
                warnings.append(
                    f"Warning: Artifact '{artifact.path}' has {round(reduction)}% content reduction "
                    f"({original_lines} -> {new_lines} lines). Verify this is intentional."
                )

        accepted.append(artifact)

    return accepted, warnings


@dataclass
class ArtifactPipelineResult:
    artifacts: List[Artifact] = field(default_factory=list)
    candidates: int = 0
    path_warnings: List[str] = field(default_factory=list)
    completeness_warnings: List[str] = field(default_factory=list)

    @property
    def rejected(self) -> int:
        return self.candidates - len(self.artifacts)

    @property
    def warnings(self) -> List[str]:
        return self.path_warnings + self.completeness_warnings


def process_artifacts(
    content: str,
    files: Optional[Sequence[RepositoryFile]] = None,
    role: str = "",
) -> ArtifactPipelineResult:
    """Run extraction, path validation and completeness validation in order."""
    candidates = extract_artifacts(content)
    by_path, path_warnings = validate_artifact_paths(candidates, files)
    accepted, completeness_warnings = validate_artifact_completeness(by_path, files)

    for warning in path_warnings:
        logger.warning(f"[{role}] {warning}")
    for warning in completeness_warnings:
        logger.warning(f"[{role}] {warning}")

    result = ArtifactPipelineResult(
        artifacts=accepted,
        candidates=len(candidates),
        path_warnings=path_warnings,
        completeness_warnings=completeness_warnings,
    )
    if result.rejected:
        logger.error(f"Agent {role}: {result.rejected} of {result.candidates} artifacts rejected")
    logger.info(f"Agent {role} produced {len(accepted)} valid artifacts: {[a.path for a in accepted]}")
    return result
