"""Tests for RemoteSync against a fake GitHub."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx
import pytest

from matrixtodo.client.sync.remote import RemoteSync
from matrixtodo.client.sync.retry import RetryPolicy
from matrixtodo.core.errors import ValidationError
from matrixtodo.core.models import Task, TaskCollection
from matrixtodo.core.types import Quadrant, SyncOutcome

if TYPE_CHECKING:
    from tests.conftest import FakeGitHub

REPO = "octo/tasks"


def make_collection(*titles: str, stamp: str = "2025-01-01T00:00:00.000Z") -> TaskCollection:
    """Create a collection with one urgent-important task per title."""
    return TaskCollection(
        tasks=[
            Task(f"id-{title}", title, Quadrant.URGENT_IMPORTANT, i, 1000, 1000)
            for i, title in enumerate(titles)
        ],
        last_modified=stamp,
    )


def make_remote(fake: FakeGitHub, retry_policy: RetryPolicy | None = None) -> RemoteSync:
    """Create a RemoteSync configured for octo/tasks on the fake."""
    remote = RemoteSync(
        client_factory=fake.client_factory, retry_policy=retry_policy, api_url=fake.api_url
    )
    remote.configure(REPO, fake.token)
    return remote


class TestConfigure:
    """Tests for configuration state."""

    def test_configure_does_no_io(self, fake_github: FakeGitHub) -> None:
        """Should only store the configuration."""
        remote = make_remote(fake_github)
        assert remote.is_configured
        assert remote.config is not None
        assert remote.config.repo == REPO
        assert fake_github.requests == []

    @pytest.mark.asyncio
    async def test_unconfigured_calls(self, fake_github: FakeGitHub) -> None:
        """Should return NOT_CONFIGURED without touching the network."""
        remote = RemoteSync(client_factory=fake_github.client_factory, api_url=fake_github.api_url)

        for result in (
            await remote.test_connection(),
            await remote.push(make_collection("a")),
            await remote.pull(),
        ):
            assert not result.success
            assert result.outcome is SyncOutcome.NOT_CONFIGURED
        assert fake_github.requests == []

    def test_require_config_unconfigured(self, fake_github: FakeGitHub) -> None:
        """Should raise ValidationError instead of failing on a missing config."""
        remote = RemoteSync(client_factory=fake_github.client_factory, api_url=fake_github.api_url)

        with pytest.raises(ValidationError, match="not configured"):
            remote._require_config()

    @pytest.mark.asyncio
    async def test_invalid_repo_identifier(self, fake_github: FakeGitHub) -> None:
        """Should fail with a message instead of calling the API."""
        remote = make_remote(fake_github)
        remote.configure("just-a-name", fake_github.token)

        result = await remote.push(make_collection("a"))

        assert not result.success
        assert "owner/repo" in result.message
        assert fake_github.requests == []


class TestConnection:
    """Tests for test_connection."""

    @pytest.mark.asyncio
    async def test_success(self, fake_github: FakeGitHub) -> None:
        """Should succeed for an existing repository."""
        result = await make_remote(fake_github).test_connection()
        assert result.success
        assert result.message == "Connection successful"

    @pytest.mark.asyncio
    async def test_repo_not_found(self, fake_github: FakeGitHub) -> None:
        """Should report a missing repository distinctly."""
        remote = make_remote(fake_github)
        remote.configure("octo/missing", fake_github.token)

        result = await remote.test_connection()

        assert not result.success
        assert result.outcome is SyncOutcome.REPO_NOT_FOUND
        assert result.message == "Repository octo/missing does not exist"

    @pytest.mark.asyncio
    async def test_bad_token(self, fake_github: FakeGitHub) -> None:
        """Should report an authentication failure."""
        remote = make_remote(fake_github)
        remote.configure(REPO, "wrong")

        result = await remote.test_connection()

        assert result.outcome is SyncOutcome.AUTH_ERROR
        assert "Bad credentials" in result.message


class TestCreateRepository:
    """Tests for create_private_repository."""

    @pytest.mark.asyncio
    async def test_creates_private_initialized_repo(self, fake_github: FakeGitHub) -> None:
        """Should create a private repository with an initial commit."""
        remote = RemoteSync(client_factory=fake_github.client_factory, api_url=fake_github.api_url)

        result = await remote.create_private_repository("my-todos", fake_github.token)

        assert result.success
        assert result.repo == "octo/my-todos"
        assert "octo/my-todos" in fake_github.repos
        assert ("octo/my-todos", "README.md") in fake_github.files
        body = json.loads(fake_github.requests[-1].content)
        assert body["private"] is True

    @pytest.mark.asyncio
    async def test_created_repo_is_immediately_usable(self, fake_github: FakeGitHub) -> None:
        """A push right after creation should succeed."""
        remote = RemoteSync(client_factory=fake_github.client_factory, api_url=fake_github.api_url)
        created = await remote.create_private_repository("fresh", fake_github.token)
        assert created.repo is not None
        remote.configure(created.repo, fake_github.token)

        result = await remote.push(make_collection("a"))

        assert result.success

    @pytest.mark.asyncio
    async def test_existing_name(self, fake_github: FakeGitHub) -> None:
        """Should fail when the name is taken."""
        remote = make_remote(fake_github)
        result = await remote.create_private_repository("tasks")
        assert not result.success
        assert "already exists" in result.message

    @pytest.mark.asyncio
    async def test_requires_token(self, fake_github: FakeGitHub) -> None:
        """Should refuse to run without any token."""
        remote = RemoteSync(client_factory=fake_github.client_factory, api_url=fake_github.api_url)
        result = await remote.create_private_repository("x")
        assert result.outcome is SyncOutcome.NOT_CONFIGURED


class TestPushPull:
    """Tests for push and pull."""

    @pytest.mark.asyncio
    async def test_push_creates_file(self, fake_github: FakeGitHub) -> None:
        """Should create todo.json when the repository has none."""
        collection = make_collection("a", "b")

        result = await make_remote(fake_github).push(collection)

        assert result.success
        assert result.message == "Sync successful"
        assert result.synced_at is not None
        assert fake_github.read_json(REPO) == collection.to_dict()

    @pytest.mark.asyncio
    async def test_push_commit_message(self, fake_github: FakeGitHub) -> None:
        """Should commit with a timestamped message."""
        await make_remote(fake_github).push(make_collection("a"))

        put = next(r for r in fake_github.requests if r.method == "PUT")
        assert json.loads(put.content)["message"].startswith("Update todo.json - ")

    @pytest.mark.asyncio
    async def test_push_then_pull_on_another_device(self, fake_github: FakeGitHub) -> None:
        """A fresh instance should pull exactly what was pushed."""
        collection = make_collection("a", "b", "c")
        await make_remote(fake_github).push(collection)

        result = await make_remote(fake_github).pull()

        assert result.success
        assert result.message == "Pull successful"
        assert result.collection == collection

    @pytest.mark.asyncio
    async def test_last_write_wins(self, fake_github: FakeGitHub) -> None:
        """The later push should replace the earlier document entirely."""
        first, second = make_remote(fake_github), make_remote(fake_github)
        await first.push(make_collection("from-a"))
        latest = make_collection("from-b", stamp="2025-01-02T00:00:00.000Z")
        await second.push(latest)

        result = await first.pull()

        assert result.collection == latest

    @pytest.mark.asyncio
    async def test_push_retries_stale_sha_once(
        self, fake_github: FakeGitHub, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A concurrent write between reading the sha and writing should not lose our push."""
        fake_github.write_file(REPO, "todo.json", json.dumps(make_collection("old").to_dict()))
        handle = fake_github.handle
        raced = []

        def racing_handle(request: httpx.Request) -> httpx.Response:
            response = handle(request)
            if request.method == "GET" and not raced:
                raced.append(request)
                fake_github.write_file(REPO, "todo.json", json.dumps(make_collection("other").to_dict()))
            return response

        monkeypatch.setattr(fake_github, "handle", racing_handle)
        ours = make_collection("ours")

        result = await make_remote(fake_github).push(ours)

        assert result.success
        assert fake_github.read_json(REPO) == ours.to_dict()
        assert [r.method for r in fake_github.requests] == ["GET", "PUT", "GET", "PUT"]

    @pytest.mark.asyncio
    async def test_push_conflict_twice(
        self, fake_github: FakeGitHub, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should report CONFLICT if the sha goes stale again."""
        fake_github.write_file(REPO, "todo.json", "{}")
        handle = fake_github.handle

        def racing_handle(request: httpx.Request) -> httpx.Response:
            response = handle(request)
            if request.method == "GET":
                fake_github.write_file(REPO, "todo.json", "{}")
            return response

        monkeypatch.setattr(fake_github, "handle", racing_handle)

        result = await make_remote(fake_github).push(make_collection("ours"))

        assert not result.success
        assert result.outcome is SyncOutcome.CONFLICT

    @pytest.mark.asyncio
    async def test_pull_missing_file(self, fake_github: FakeGitHub) -> None:
        """Should report REMOTE_DATA_NOT_FOUND when nothing was pushed yet."""
        result = await make_remote(fake_github).pull()

        assert not result.success
        assert result.outcome is SyncOutcome.REMOTE_DATA_NOT_FOUND
        assert result.message == "Remote data does not exist"

    @pytest.mark.asyncio
    async def test_pull_malformed(self, fake_github: FakeGitHub) -> None:
        """Should report PARSE_ERROR for content that is not a task document."""
        fake_github.write_file(REPO, "todo.json", "not json")
        result = await make_remote(fake_github).pull()
        assert result.outcome is SyncOutcome.PARSE_ERROR

        fake_github.write_file(REPO, "todo.json", '{"todos": [{"title": "no id"}]}')
        result = await make_remote(fake_github).pull()
        assert result.outcome is SyncOutcome.PARSE_ERROR

    @pytest.mark.asyncio
    async def test_pull_unicode(self, fake_github: FakeGitHub) -> None:
        """Should round-trip non-ASCII titles."""
        collection = make_collection("Überprüfen ✓", "日本語")
        await make_remote(fake_github).push(collection)

        result = await make_remote(fake_github).pull()

        assert result.collection == collection


class TestRetry:
    """Tests for retrying transient failures."""

    @pytest.mark.asyncio
    async def test_retries_unavailable(self, fake_github: FakeGitHub) -> None:
        """Should retry a 503 and then succeed."""
        fake_github.fail_next = 2
        remote = make_remote(fake_github, RetryPolicy(max_retries=3, base_delay=0))

        result = await remote.push(make_collection("a"))

        assert result.success
        assert fake_github.read_json(REPO)["todos"][0]["title"] == "a"

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self, fake_github: FakeGitHub) -> None:
        """Should report UNAVAILABLE once retries are exhausted."""
        fake_github.fail_next = 10
        remote = make_remote(fake_github, RetryPolicy(max_retries=2, base_delay=0))

        result = await remote.pull()

        assert result.outcome is SyncOutcome.UNAVAILABLE
        assert len(fake_github.requests) == 3

    @pytest.mark.asyncio
    async def test_no_policy_no_retry(self, fake_github: FakeGitHub) -> None:
        """Should fail on the first 503 without a retry policy."""
        fake_github.fail_next = 1

        result = await make_remote(fake_github).test_connection()

        assert result.outcome is SyncOutcome.UNAVAILABLE
        assert len(fake_github.requests) == 1

    @pytest.mark.asyncio
    async def test_auth_error_not_retried(self, fake_github: FakeGitHub) -> None:
        """Should not retry authentication failures."""
        remote = make_remote(fake_github, RetryPolicy(max_retries=3, base_delay=0))
        remote.configure(REPO, "wrong")

        result = await remote.pull()

        assert result.outcome is SyncOutcome.AUTH_ERROR
        assert len(fake_github.requests) == 1

    def test_policy_only_retries_unavailable(self, fake_github: FakeGitHub) -> None:
        """Should narrow the retryable exceptions to transient failures."""
        remote = make_remote(fake_github, RetryPolicy(max_retries=5, base_delay=0.5))
        assert remote.retry_policy is not None
        assert remote.retry_policy.max_retries == 5
        assert remote.retry_policy.base_delay == 0.5
        assert remote.retry_policy.retryable_exceptions != (Exception,)
