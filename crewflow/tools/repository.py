"""
Repository tool surface shared by every implementation.

Agents use these tools during the tool-calling loop to read files that were
not part of the excerpts in their prompt.
"""

import fnmatch
import logging
from pathlib import Path
from typing import List, Literal, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from ..exceptions import FileNotFoundInRepository, RepositoryToolError
from ..models import RepositoryFile

logger = logging.getLogger(__name__)

CONFIG_FILE_PATHS = (
    # JavaScript / TypeScript
    "package.json",
    "tsconfig.json",
    ".eslintrc",
    ".eslintrc.json",
    ".eslintrc.js",
    "eslint.config.js",
    ".prettierrc",
    ".prettierrc.json",
    "prettier.config.js",
    "vite.config.ts",
    "vite.config.js",
    "next.config.js",
    "tailwind.config.js",
    "tailwind.config.ts",
    # Python
    "pyproject.toml",
    "setup.cfg",
    "requirements.txt",
    # Other ecosystems
    "go.mod",
    "Cargo.toml",
    "pom.xml",
    "build.gradle",
    "Gemfile",
    "composer.json",
    # Containers
    "Dockerfile",
    "docker-compose.yml",
)

SearchKind = Literal["filename", "content"]

MAX_SEARCH_RESULTS = 30


class DirectoryEntry(BaseModel):
    path: str
    kind: Literal["file", "dir"]
    size: Optional[int] = None


class SearchHit(BaseModel):
    path: str
    matches: List[str] = Field(default_factory=list)


@runtime_checkable
class RepositoryTools(Protocol):
    async def read_file(self, path: str) -> RepositoryFile:
        ...

    async def list_directory(self, path: str = "") -> List[DirectoryEntry]:
        ...

    async def search(self, query: str, kind: SearchKind = "filename") -> List[SearchHit]:
        ...

    async def read_config_files(self) -> List[RepositoryFile]:
        ...


async def read_config_files(tools: RepositoryTools, paths=CONFIG_FILE_PATHS) -> List[RepositoryFile]:
    """Read every well-known config file that exists; missing ones are skipped."""
    found = []
    for path in paths:
        try:
            found.append(await tools.read_file(path))
        except RepositoryToolError:
            continue
    logger.info(f"Found {len(found)} config files")
    return found


async def close_tools(tools: object) -> None:
    aclose = getattr(tools, "aclose", None)
    if aclose is not None:
        await aclose()


class LocalRepositoryTools:
    """Repository tools over a local checkout."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise RepositoryToolError(f"Path escapes repository root: {path}")
        return target

    def _relative(self, target: Path) -> str:
        return target.relative_to(self.root).as_posix()

    async def read_file(self, path: str) -> RepositoryFile:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundInRepository(path)
        try:
            content = target.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise RepositoryToolError(f"File {path} is not valid UTF-8 text") from e
        return RepositoryFile.from_content(self._relative(target), content, size=target.stat().st_size)

    async def list_directory(self, path: str = "") -> List[DirectoryEntry]:
        target = self._resolve(path)
        if not target.is_dir():
            raise RepositoryToolError(f"Path {path} is not a directory")
        entries = []
        for child in sorted(target.iterdir()):
            if child.name == ".git":
                continue
            if child.is_dir():
                entries.append(DirectoryEntry(path=self._relative(child), kind="dir"))
            else:
                entries.append(DirectoryEntry(path=self._relative(child), kind="file", size=child.stat().st_size))
        return entries

    def _walk_files(self):
        for candidate in sorted(self.root.rglob("*")):
            if ".git" in candidate.relative_to(self.root).parts or not candidate.is_file():
                continue
            yield candidate

    async def search(self, query: str, kind: SearchKind = "filename") -> List[SearchHit]:
        hits: List[SearchHit] = []
        needle = query.lower()

        for candidate in self._walk_files():
            if len(hits) >= MAX_SEARCH_RESULTS:
                break

            if kind == "filename":
                name = candidate.name.lower()
                if needle in name or fnmatch.fnmatch(name, needle):
                    hits.append(SearchHit(path=self._relative(candidate)))
                continue

            try:
                lines = candidate.read_text(encoding="utf-8").splitlines()
            except UnicodeDecodeError:
                continue
            matches = [line.strip() for line in lines if needle in line.lower()]
            if matches:
                hits.append(SearchHit(path=self._relative(candidate), matches=matches[:5]))

        return hits

    async def read_config_files(self) -> List[RepositoryFile]:
        return await read_config_files(self)
