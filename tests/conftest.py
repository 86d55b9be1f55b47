"""Shared fixtures: an in-memory fake of the GitHub repository/contents API."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest

from matrixtodo.client.api import GitHubClient
from matrixtodo.core.config import RemoteConfig

FAKE_API_URL = "http://github.test"
FAKE_TOKEN = "ghp_test"
FAKE_OWNER = "octo"


@dataclass
class FakeGitHub:
    """Stateful stand-in for the GitHub REST API, served through MockTransport.

    Files are stored per (owner/repo, path) with a sha that changes on every
    write. Writes enforce the same sha rules as the real API.
    """

    token: str = FAKE_TOKEN
    api_url: str = FAKE_API_URL
    repos: set[str] = field(default_factory=set)
    files: dict[tuple[str, str], tuple[str, str]] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)
    fail_next: int = 0
    _sha_counter: int = 0

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client_factory(self, config: RemoteConfig) -> GitHubClient:
        return GitHubClient(config, transport=self.transport)

    def read_json(self, repo: str, path: str = "todo.json") -> Any:
        """Decoded JSON content of a stored file."""
        return json.loads(self.files[(repo, path)][0])

    def write_file(self, repo: str, path: str, content: str) -> str:
        """Store a file directly, as if another device had pushed it."""
        self._sha_counter += 1
        sha = f"sha{self._sha_counter}"
        self.files[(repo, path)] = (content, sha)
        return sha

    @staticmethod
    def _json(status: int, data: Any) -> httpx.Response:
        return httpx.Response(status, json=data)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_next > 0:
            self.fail_next -= 1
            return self._json(503, {"message": "Service Unavailable"})
        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return self._json(401, {"message": "Bad credentials"})

        parts = request.url.path.strip("/").split("/")
        if request.method == "POST" and parts == ["user", "repos"]:
            body = json.loads(request.content)
            full_name = f"{FAKE_OWNER}/{body['name']}"
            if full_name in self.repos:
                return self._json(422, {"message": "name already exists on this account"})
            self.repos.add(full_name)
            if body.get("auto_init"):
                self.write_file(full_name, "README.md", f"# {body['name']}\n")
            return self._json(201, {"full_name": full_name, "private": body["private"]})

        if len(parts) < 3 or parts[0] != "repos":
            return self._json(404, {"message": "Not Found"})
        repo = f"{parts[1]}/{parts[2]}"
        if repo not in self.repos:
            return self._json(404, {"message": "Not Found"})
        if len(parts) == 3 and request.method == "GET":
            return self._json(200, {"full_name": repo})

        path = "/".join(parts[4:])
        stored = self.files.get((repo, path))
        if request.method == "GET":
            if stored is None:
                return self._json(404, {"message": "Not Found"})
            encoded = base64.b64encode(stored[0].encode("utf-8")).decode("ascii")
            # Wrapped like the real API
            wrapped = "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60))
            return self._json(
                200,
                {"path": path, "sha": stored[1], "content": wrapped, "encoding": "base64"},
            )
        if request.method == "PUT":
            body = json.loads(request.content)
            if stored is not None and "sha" not in body:
                return self._json(422, {"message": '"sha" wasn\'t supplied.'})
            if stored is not None and body["sha"] != stored[1]:
                return self._json(409, {"message": f"{path} does not match {body['sha']}"})
            content = base64.b64decode(body["content"]).decode("utf-8")
            sha = self.write_file(repo, path, content)
            return self._json(200 if stored else 201, {"content": {"path": path, "sha": sha}})
        return self._json(405, {"message": "Method Not Allowed"})


@pytest.fixture
def fake_github() -> FakeGitHub:
    """A fake GitHub with one empty repository ``octo/tasks``."""
    fake = FakeGitHub()
    fake.repos.add(f"{FAKE_OWNER}/tasks")
    return fake
