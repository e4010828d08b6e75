"""Shared fixtures: an in-memory GitHub contents API behind httpx.MockTransport.

``FakeGitHub`` enforces the same ``sha`` compare-and-swap rules as the real
API, so the client and the session can be exercised end to end without a
network.
"""

from __future__ import annotations

import base64
import hashlib
import json
import re
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from studynotes.collection import RemoteConfig
from studynotes.session import NotebookSession
from studynotes.store import LocalStore
from studynotes.sync.github import GitHubContentsClient

API_URL = "https://api.github.test"
_CONTENTS_RE = re.compile(r"^/repos/([^/]+)/([^/]+)/contents/(.+)$")


def blob_sha(content: bytes) -> str:
    """Git blob id, which is what the contents API reports as ``sha``."""
    return hashlib.sha1(b"blob %d\0" % len(content) + content).hexdigest()


class FakeGitHub:
    def __init__(self) -> None:
        self.files: dict[tuple[str, str, str, str], tuple[bytes, str]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_status: int | None = None
        self.after_get: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def seed(
        self,
        content: bytes,
        *,
        owner: str = "alice",
        repo: str = "notes",
        branch: str = "gh-pages",
        path: str = "data/notes.json",
    ) -> str:
        sha = blob_sha(content)
        self.files[(owner, repo, branch, path)] = (content, sha)
        return sha

    def content_of(
        self,
        *,
        owner: str = "alice",
        repo: str = "notes",
        branch: str = "gh-pages",
        path: str = "data/notes.json",
    ) -> bytes | None:
        entry = self.files.get((owner, repo, branch, path))
        return entry[0] if entry else None

    # ------------------------------------------------------------------
    # Transport handler
    # ------------------------------------------------------------------

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"message": "Server Error"})

        m = _CONTENTS_RE.match(request.url.path)
        if m is None:
            return httpx.Response(404, json={"message": "Not Found"})
        owner, repo, path = m.groups()

        if request.method == "GET":
            branch = request.url.params.get("ref", "main")
            entry = self.files.get((owner, repo, branch, path))
            if entry is None:
                return httpx.Response(404, json={"message": "Not Found"})
            content, sha = entry
            encoded = base64.b64encode(content).decode("ascii")
            wrapped = "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60))
            response = httpx.Response(
                200, json={"content": wrapped, "encoding": "base64", "sha": sha, "path": path}
            )
            if self.after_get is not None:
                self.after_get()
            return response

        if request.method == "PUT":
            body = json.loads(request.content)
            key = (owner, repo, body["branch"], path)
            existing = self.files.get(key)
            given = body.get("sha")
            if existing is not None and given is None:
                return httpx.Response(422, json={"message": 'Invalid request.\n\n"sha" wasn\'t supplied.'})
            if existing is not None and given != existing[1]:
                return httpx.Response(409, json={"message": f"{path} does not match {given}"})
            content = base64.b64decode(body["content"])
            sha = blob_sha(content)
            self.files[key] = (content, sha)
            return httpx.Response(
                201 if existing is None else 200,
                json={"content": {"path": path, "sha": sha}, "commit": {"message": body["message"]}},
            )

        return httpx.Response(405, json={"message": "Method Not Allowed"})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture()
def client(github: FakeGitHub) -> GitHubContentsClient:
    with GitHubContentsClient(API_URL, transport=httpx.MockTransport(github)) as c:
        yield c


@pytest.fixture()
def remote() -> RemoteConfig:
    return RemoteConfig(owner="alice", repo="notes", credential="s3cret")


@pytest.fixture()
def store(tmp_path: Path) -> LocalStore:
    return LocalStore(tmp_path / "notes.duckdb")


@pytest.fixture()
def session(store: LocalStore, client: GitHubContentsClient, remote: RemoteConfig) -> NotebookSession:
    return NotebookSession.open(store, client, remote=remote)
