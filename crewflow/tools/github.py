"""Repository tools backed by the GitHub REST API."""

import base64
import logging
from typing import Dict, List, Optional, Tuple

import httpx

from ..core.config import settings
from ..exceptions import FileNotFoundInRepository, RepositoryToolError
from ..models import RepositoryContext, RepositoryFile
from .repository import DirectoryEntry, SearchHit, SearchKind, read_config_files

logger = logging.getLogger(__name__)


class GitHubRepositoryTools:
    """
    Read-only access to one branch of one repository.

    File reads are cached per instance under (owner, repo, branch, path).
    Give every agent invocation its own instance; the cache is not locked.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        branch: str = "main",
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self._token = token if token is not None else settings.GITHUB_TOKEN
        self._client = client
        self._owns_client = client is None
        self._cache: Dict[Tuple[str, str, str, str], RepositoryFile] = {}

    @classmethod
    def for_context(cls, repository: RepositoryContext, **kwargs) -> "GitHubRepositoryTools":
        return cls(repository.owner, repository.repo, repository.branch, **kwargs)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/vnd.github+json", "X-GitHub-Api-Version": "2022-11-28"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=settings.GITHUB_API_URL,
                headers=headers,
                timeout=settings.GITHUB_TIMEOUT_SECONDS,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubRepositoryTools":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def _cache_key(self, path: str) -> Tuple[str, str, str, str]:
        return (self.owner, self.repo, self.branch, path)

    async def _get_contents(self, path: str):
        url = f"/repos/{self.owner}/{self.repo}/contents/{path.lstrip('/')}"
        try:
            response = await self.client.get(url, params={"ref": self.branch})
        except httpx.HTTPError as e:
            raise RepositoryToolError(f"Failed to fetch {path}: {e}") from e

        if response.status_code == 404:
            raise FileNotFoundInRepository(path)
        if response.status_code >= 400:
            raise RepositoryToolError(f"Failed to fetch {path}: HTTP {response.status_code}")
        return response.json()

    async def read_file(self, path: str) -> RepositoryFile:
        key = self._cache_key(path)
        if key in self._cache:
            logger.debug(f"Cache hit for {path}")
            return self._cache[key]

        data = await self._get_contents(path)
        if isinstance(data, list) or data.get("type") != "file":
            raise RepositoryToolError(f"Path {path} is not a file")

        content = base64.b64decode(data.get("content", "")).decode("utf-8", errors="replace")
        file = RepositoryFile.from_content(data.get("path", path), content, size=data.get("size"))
        self._cache[key] = file
        return file

    async def list_directory(self, path: str = "") -> List[DirectoryEntry]:
        data = await self._get_contents(path)
        if not isinstance(data, list):
            raise RepositoryToolError(f"Path {path} is not a directory")
        return [
            DirectoryEntry(
                path=item["path"],
                kind="dir" if item.get("type") == "dir" else "file",
                size=item.get("size"),
            )
            for item in data
        ]

    async def search(self, query: str, kind: SearchKind = "filename") -> List[SearchHit]:
        scope = f"repo:{self.owner}/{self.repo}"
        q = f"filename:{query} {scope}" if kind == "filename" else f"{query} {scope}"
        headers = {"Accept": "application/vnd.github.text-match+json"} if kind == "content" else None

        try:
            response = await self.client.get("/search/code", params={"q": q}, headers=headers)
        except httpx.HTTPError as e:
            raise RepositoryToolError(f"Failed to search: {e}") from e
        if response.status_code >= 400:
            raise RepositoryToolError(f"Failed to search: HTTP {response.status_code}")

        hits = []
        for item in response.json().get("items", []):
            matches = [m.get("fragment", "") for m in item.get("text_matches", [])] if kind == "content" else []
            hits.append(SearchHit(path=item["path"], matches=matches))
        return hits

    async def read_config_files(self) -> List[RepositoryFile]:
        return await read_config_files(self)
