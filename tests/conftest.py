"""
Lester v1 - Test Configuration and Fixtures

Shared fixtures for unit, e2e and integration tests.
"""

import os
from typing import Callable, Optional
from uuid import UUID, uuid4

import pytest

from shared.errors import InvalidInputError, NotFoundError
from shared.jobs import can_transition
from shared.models import (
    Bookmark,
    BookmarkFilter,
    BookmarkInput,
    Tag,
    TagCloudEntry,
    TagJob,
    TagJobStatus,
    TagSuggestion,
    Workspace,
    now_ts,
)

TEST_DB_URL = os.environ.get("TEST_DATABASE_URL")


class InMemoryStore:
    """
    Dict-backed stand-in for LesterStore.

    Follows the same job state machine as the database: a transition only
    applies when the job is in a state that may move to the target, and every
    applied transition bumps attempts.

    ``failures`` maps a method name to an exception raised on every call;
    ``fetch_hook`` runs before each fetch of pending jobs.
    """

    def __init__(self):
        self.workspaces: dict[UUID, Workspace] = {}
        self.bookmarks: dict[UUID, Bookmark] = {}
        self.tags: dict[str, Tag] = {}
        self.bookmark_tags: dict[tuple[UUID, UUID], dict] = {}
        self.jobs: dict[UUID, TagJob] = {}
        self._job_seq: dict[UUID, int] = {}
        self.failures: dict[str, Exception] = {}
        self.fetch_hook: Optional[Callable[[], None]] = None
        self.fetch_calls = 0

    def _check(self, name: str) -> None:
        if name in self.failures:
            raise self.failures[name]

    def migrate(self) -> None:
        self._check("migrate")

    def ping(self) -> bool:
        return "ping" not in self.failures

    def create_workspace(self, name: str) -> Workspace:
        self._check("create_workspace")
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("workspace name is empty")
        workspace = Workspace(id=uuid4(), name=name, created_at=now_ts())
        self.workspaces[workspace.id] = workspace
        return workspace

    def list_workspaces(self) -> list[Workspace]:
        return sorted(self.workspaces.values(), key=lambda w: w.created_at, reverse=True)

    def create_bookmark(self, data: BookmarkInput) -> Bookmark:
        self._check("create_bookmark")
        data = data.cleaned()
        if data.workspace_id not in self.workspaces:
            raise NotFoundError(f"workspace {data.workspace_id} not found")
        now = now_ts()
        bookmark = Bookmark(
            id=uuid4(),
            workspace_id=data.workspace_id,
            url=data.url,
            title=data.title,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )
        self.bookmarks[bookmark.id] = bookmark
        return bookmark

    def get_bookmark(self, bookmark_id: UUID) -> Optional[Bookmark]:
        self._check("get_bookmark")
        return self.bookmarks.get(bookmark_id)

    def list_bookmarks(self, filters: Optional[BookmarkFilter] = None) -> list[Bookmark]:
        filters = filters or BookmarkFilter()
        results = []
        for bookmark in self.bookmarks.values():
            if filters.workspace_id and bookmark.workspace_id != filters.workspace_id:
                continue
            if filters.tag:
                tag = self.tags.get(filters.tag)
                if tag is None or (bookmark.id, tag.id) not in self.bookmark_tags:
                    continue
            if filters.query:
                needle = filters.query.lower()
                if needle not in bookmark.title.lower() and needle not in bookmark.url.lower():
                    continue
            results.append(bookmark)
        return sorted(results, key=lambda b: b.updated_at, reverse=True)

    def delete_bookmark(self, bookmark_id: UUID) -> bool:
        if self.bookmarks.pop(bookmark_id, None) is None:
            return False
        for key in [key for key in self.bookmark_tags if key[0] == bookmark_id]:
            del self.bookmark_tags[key]
        return True

    def list_tags(self) -> list[Tag]:
        return sorted(self.tags.values(), key=lambda t: t.name)

    def get_tag_cloud(self, limit: int = 40) -> list[TagCloudEntry]:
        by_tag: dict[UUID, list[float]] = {}
        for (_, tag_id), row in self.bookmark_tags.items():
            by_tag.setdefault(tag_id, []).append(row["confidence"])
        names = {tag.id: tag.name for tag in self.tags.values()}
        ranked = sorted(by_tag.items(), key=lambda item: (-len(item[1]), names[item[0]]))
        return [
            TagCloudEntry(name=names[tag_id], weight=len(values) * (sum(values) / len(values)))
            for tag_id, values in ranked[:limit]
        ]

    def upsert_tags_for_bookmark(self, bookmark_id: UUID, suggestions) -> list[Tag]:
        self._check("upsert_tags_for_bookmark")
        if bookmark_id not in self.bookmarks:
            raise NotFoundError(f"bookmark {bookmark_id} not found")
        best: dict[str, TagSuggestion] = {}
        for suggestion in suggestions:
            current = best.get(suggestion.name)
            if current is None or suggestion.confidence > current.confidence:
                best[suggestion.name] = suggestion

        tags = []
        for suggestion in best.values():
            tag = self.tags.get(suggestion.name)
            if tag is None:
                tag = Tag(id=uuid4(), name=suggestion.name, created_at=now_ts())
                self.tags[tag.name] = tag
            self.bookmark_tags[(bookmark_id, tag.id)] = {
                "confidence": suggestion.confidence,
                "source": suggestion.source,
                "created_at": now_ts(),
            }
            tags.append(tag)
        return tags

    def enqueue_tag_job(self, bookmark_id: UUID, created_at: Optional[int] = None) -> TagJob:
        now = created_at if created_at is not None else now_ts()
        job = TagJob(id=uuid4(), bookmark_id=bookmark_id, created_at=now, updated_at=now)
        self.jobs[job.id] = job
        self._job_seq[job.id] = len(self._job_seq)
        return job

    def fetch_pending_tag_jobs(self, limit: int) -> list[TagJob]:
        self.fetch_calls += 1
        if self.fetch_hook is not None:
            self.fetch_hook()
        self._check("fetch_pending_tag_jobs")
        pending = [job for job in self.jobs.values() if job.status == TagJobStatus.PENDING]
        pending.sort(key=lambda job: (job.created_at, self._job_seq[job.id]))
        return pending[:limit]

    def update_tag_job_status(self, job_id: UUID, status: TagJobStatus) -> bool:
        self._check("update_tag_job_status")
        job = self.jobs.get(job_id)
        if job is None or not can_transition(job.status, status):
            return False
        self.jobs[job_id] = job.model_copy(update={
            "status": TagJobStatus(status),
            "attempts": job.attempts + 1,
            "updated_at": now_ts(),
        })
        return True

    def claim_tag_job(self, job_id: UUID) -> bool:
        return self.update_tag_job_status(job_id, TagJobStatus.RUNNING)

    def get_tag_job(self, job_id: UUID) -> Optional[TagJob]:
        return self.jobs.get(job_id)

    def tag_job_summary(self) -> dict[str, int]:
        summary: dict[str, int] = {}
        for job in self.jobs.values():
            summary[job.status.value] = summary.get(job.status.value, 0) + 1
        return summary


@pytest.fixture
def store() -> InMemoryStore:
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def workspace(store: InMemoryStore) -> Workspace:
    """A workspace to put bookmarks in."""
    return store.create_workspace("Research")


@pytest.fixture
def add_bookmark(store: InMemoryStore, workspace: Workspace):
    """Create a bookmark and queue its tag job, like the API does."""

    def _add(url: str, title: str, created_at: Optional[int] = None) -> tuple[Bookmark, TagJob]:
        bookmark = store.create_bookmark(
            BookmarkInput(workspace_id=workspace.id, url=url, title=title)
        )
        job = store.enqueue_tag_job(bookmark.id, created_at=created_at)
        return bookmark, job

    return _add


@pytest.fixture(scope="session")
def database_url() -> str:
    """PostgreSQL URL for integration tests."""
    if not TEST_DB_URL:
        pytest.skip("TEST_DATABASE_URL not set")
    return TEST_DB_URL
