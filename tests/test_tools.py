"""
Tests for repository tools: local checkout, GitHub API and tool dispatch.
"""

import base64
import json

import httpx
import pytest

from conftest import tool_call

from crewflow.exceptions import FileNotFoundInRepository, RepositoryToolError
from crewflow.models import RepositoryContext
from crewflow.tools import (
    REPOSITORY_TOOLS,
    GitHubRepositoryTools,
    LocalRepositoryTools,
    close_tools,
    default_tool_factory,
    execute_tool_call,
    github_tool_factory,
)


@pytest.fixture
def checkout(tmp_path):
    (tmp_path / "src" / "components").mkdir(parents=True)
    (tmp_path / "src" / "App.tsx").write_text("import { Button } from './components/Button';\n", encoding="utf-8")
    (tmp_path / "src" / "components" / "Button.tsx").write_text("export const Button = () => null;\n", encoding="utf-8")
    (tmp_path / "package.json").write_text('{"name": "demo"}', encoding="utf-8")
    (tmp_path / "Dockerfile").write_text("FROM node:20\n", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    return LocalRepositoryTools(tmp_path)


class TestLocalRepositoryTools:
    """Test tools over a local checkout."""

    @pytest.mark.asyncio
    async def test_read_file(self, checkout):
        file = await checkout.read_file("src/App.tsx")
        assert file.path == "src/App.tsx"
        assert file.language == "typescript"
        assert "Button" in file.content

    @pytest.mark.asyncio
    async def test_missing_file(self, checkout):
        with pytest.raises(FileNotFoundInRepository):
            await checkout.read_file("src/missing.ts")

    @pytest.mark.asyncio
    async def test_path_escape_rejected(self, checkout):
        with pytest.raises(RepositoryToolError, match="escapes"):
            await checkout.read_file("../outside.txt")

    @pytest.mark.asyncio
    async def test_list_directory_skips_git(self, checkout):
        entries = await checkout.list_directory("")
        paths = [e.path for e in entries]

        assert ".git" not in paths
        assert {"src", "package.json", "Dockerfile"} <= set(paths)
        assert next(e for e in entries if e.path == "src").kind == "dir"

    @pytest.mark.asyncio
    async def test_list_file_is_error(self, checkout):
        with pytest.raises(RepositoryToolError, match="not a directory"):
            await checkout.list_directory("package.json")

    @pytest.mark.asyncio
    async def test_search_by_filename_and_content(self, checkout):
        by_name = await checkout.search("button")
        assert [h.path for h in by_name] == ["src/components/Button.tsx"]

        by_content = await checkout.search("./components/button", kind="content")
        assert [h.path for h in by_content] == ["src/App.tsx"]
        assert by_content[0].matches == ["import { Button } from './components/Button';"]

    @pytest.mark.asyncio
    async def test_read_config_files(self, checkout):
        files = await checkout.read_config_files()
        assert [f.path for f in files] == ["package.json", "Dockerfile"]


class GitHubStub:
    """Minimal GitHub contents and search API."""

    def __init__(self, files, sizes=None):
        self.files = files
        self.sizes = sizes or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/search/code":
            query = request.url.params["q"]
            return httpx.Response(200, json={"items": [
                {"path": p, "text_matches": [{"fragment": "hit"}]} for p in self.files if query.split()[0].split(":")[-1] in p
            ]})

        prefix = "/repos/acme/demo/contents/"
        rel = path[len(prefix):] if path.startswith(prefix) else ""
        if rel in self.files:
            content = base64.b64encode(self.files[rel].encode("utf-8")).decode("ascii")
            return httpx.Response(200, json={"type": "file", "path": rel, "size": self.sizes.get(rel, len(self.files[rel])), "content": content})
        children = [p for p in self.files if p.startswith(f"{rel}/") or not rel]
        if children:
            return httpx.Response(200, json=[{"path": p, "type": "file", "size": len(self.files[p])} for p in children])
        if rel == "private.txt":
            return httpx.Response(403, json={"message": "forbidden"})
        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def github_stub():
    return GitHubStub({"package.json": '{"name": "demo"}', "src/App.tsx": "export default App;"})


@pytest.fixture
def github_tools(github_stub):
    client = httpx.AsyncClient(transport=httpx.MockTransport(github_stub), base_url="https://api.github.test")
    return GitHubRepositoryTools("acme", "demo", "main", token="t", client=client)


class TestGitHubRepositoryTools:
    """Test GitHub tools against a mocked transport."""

    @pytest.mark.asyncio
    async def test_read_file_decodes_and_caches(self, github_tools, github_stub):
        first = await github_tools.read_file("src/App.tsx")
        second = await github_tools.read_file("src/App.tsx")

        assert first.content == "export default App;"
        assert second.content == first.content
        assert len(github_stub.requests) == 1
        assert github_stub.requests[0].url.params["ref"] == "main"

    @pytest.mark.asyncio
    async def test_cache_hit_returns_api_metadata(self):
        stub = GitHubStub({"src/App.tsx": "export default App;"}, sizes={"src/App.tsx": 4096})
        client = httpx.AsyncClient(transport=httpx.MockTransport(stub), base_url="https://api.github.test")
        tools = GitHubRepositoryTools("acme", "demo", "main", token="t", client=client)

        first = await tools.read_file("src/App.tsx")
        second = await tools.read_file("src/App.tsx")
        await client.aclose()

        assert first.size == 4096
        assert second == first
        assert len(stub.requests) == 1

    @pytest.mark.asyncio
    async def test_not_found_and_http_errors(self, github_tools):
        with pytest.raises(FileNotFoundInRepository):
            await github_tools.read_file("src/missing.ts")
        with pytest.raises(RepositoryToolError, match="HTTP 403"):
            await github_tools.read_file("private.txt")

    @pytest.mark.asyncio
    async def test_list_directory(self, github_tools):
        entries = await github_tools.list_directory("src")
        assert [(e.path, e.kind) for e in entries] == [("src/App.tsx", "file")]

        with pytest.raises(RepositoryToolError, match="not a directory"):
            await github_tools.list_directory("package.json")

    @pytest.mark.asyncio
    async def test_search(self, github_tools, github_stub):
        hits = await github_tools.search("App.tsx")
        assert [h.path for h in hits] == ["src/App.tsx"]
        assert github_stub.requests[-1].url.params["q"] == "filename:App.tsx repo:acme/demo"

    @pytest.mark.asyncio
    async def test_config_files_skip_missing(self, github_tools):
        files = await github_tools.read_config_files()
        assert [f.path for f in files] == ["package.json"]

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self, github_tools):
        await close_tools(github_tools)
        assert not github_tools.client.is_closed
        await github_tools.client.aclose()

    def test_factory_uses_repository_context(self):
        tools = github_tool_factory(RepositoryContext(owner="acme", repo="demo", branch="dev"))
        assert (tools.owner, tools.repo, tools.branch) == ("acme", "demo", "dev")

    def test_no_factory_without_token(self):
        assert default_tool_factory() is None


class TestToolDispatch:
    """Test the tool schemas and dispatcher."""

    def test_schemas(self):
        names = [t["function"]["name"] for t in REPOSITORY_TOOLS]
        assert names == ["get_repository_file", "list_repository_directory", "search_repository", "get_config_files"]
        json.dumps(REPOSITORY_TOOLS)

    @pytest.mark.asyncio
    async def test_dispatch(self, checkout):
        file = await execute_tool_call(checkout, tool_call("get_repository_file", path="package.json"))
        assert file["content"] == '{"name": "demo"}'

        listing = await execute_tool_call(checkout, tool_call("list_repository_directory"))
        assert any(entry["path"] == "src" for entry in listing)

        hits = await execute_tool_call(checkout, tool_call("search_repository", query="app", type="bogus"))
        assert hits == [{"path": "src/App.tsx", "matches": []}]

        configs = await execute_tool_call(checkout, tool_call("get_config_files"))
        assert [c["path"] for c in configs] == ["package.json", "Dockerfile"]

    @pytest.mark.asyncio
    async def test_unknown_tool_returns_error(self, checkout):
        assert await execute_tool_call(checkout, tool_call("delete_repo")) == {"error": "Unknown tool: delete_repo"}

    @pytest.mark.asyncio
    async def test_missing_argument_raises(self, checkout):
        with pytest.raises(RepositoryToolError, match="requires a string 'path'"):
            await execute_tool_call(checkout, tool_call("get_repository_file"))
