"""
Lester v1 - PostgreSQL Store

Persistent storage for workspaces, bookmarks, tags and tag jobs.

Every public method opens its own connection, commits before returning and
closes the connection, so no transaction outlives a single call. Low-level
psycopg errors are re-raised as StoreError (or FatalStoreError when the
database or its schema is gone).
"""

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional
from uuid import UUID, uuid4

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import dict_row
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .errors import FatalStoreError, InvalidInputError, NotFoundError, StoreError
from .jobs import sources_for
from .models import (
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

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS workspaces (
        id UUID PRIMARY KEY,
        name TEXT NOT NULL,
        created_at BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS bookmarks (
        id UUID PRIMARY KEY,
        workspace_id UUID NOT NULL REFERENCES workspaces (id) ON DELETE CASCADE,
        url TEXT NOT NULL,
        title TEXT NOT NULL,
        notes TEXT,
        created_at BIGINT NOT NULL,
        updated_at BIGINT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS bookmarks_workspace_idx ON bookmarks (workspace_id)",
    """
    CREATE TABLE IF NOT EXISTS tags (
        id UUID PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        created_at BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS bookmark_tags (
        bookmark_id UUID NOT NULL REFERENCES bookmarks (id) ON DELETE CASCADE,
        tag_id UUID NOT NULL REFERENCES tags (id) ON DELETE CASCADE,
        confidence REAL NOT NULL,
        source TEXT NOT NULL,
        created_at BIGINT NOT NULL,
        PRIMARY KEY (bookmark_id, tag_id)
    )
    """,
    # No foreign key to bookmarks: jobs are kept as an audit trail
    """
    CREATE TABLE IF NOT EXISTS tag_jobs (
        id UUID PRIMARY KEY,
        seq BIGSERIAL,
        bookmark_id UUID NOT NULL,
        status TEXT NOT NULL CHECK (status IN ('pending', 'running', 'done', 'failed')),
        attempts INTEGER NOT NULL DEFAULT 0,
        created_at BIGINT NOT NULL,
        updated_at BIGINT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS tag_jobs_pending_idx
        ON tag_jobs (created_at, seq) WHERE status = 'pending'
    """,
]

_FATAL_ERRORS = (
    pg_errors.UndefinedTable,
    pg_errors.InvalidCatalogName,
    pg_errors.InvalidSchemaName,
)

BOOKMARK_COLUMNS = "b.id, b.workspace_id, b.url, b.title, b.notes, b.created_at, b.updated_at"
JOB_COLUMNS = "id, bookmark_id, status, attempts, created_at, updated_at"


def _is_missing_database(exc: BaseException) -> bool:
    return isinstance(exc, psycopg.OperationalError) and "does not exist" in str(exc)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, psycopg.OperationalError) and not _is_missing_database(exc)


class LesterStore:
    """
    PostgreSQL-backed store.

    Implements the operations the tag worker needs (fetch, claim and
    transition jobs, look up bookmarks, upsert tags) plus plain CRUD for
    the API and the admin CLI.
    """

    def __init__(
        self,
        database_url: str,
        connect_timeout: int = 10,
        connect_retries: int = 3,
    ):
        """
        Args:
            database_url: PostgreSQL connection string
            connect_timeout: Seconds to wait for a single connection attempt
            connect_retries: Connection attempts before giving up
        """
        self.database_url = database_url
        self.connect_timeout = connect_timeout
        self.connect_retries = max(1, connect_retries)

    def _connect(self) -> psycopg.Connection:
        retrying = Retrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.connect_retries),
            wait=wait_exponential(multiplier=0.5, max=5),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                return psycopg.connect(
                    self.database_url,
                    row_factory=dict_row,
                    connect_timeout=self.connect_timeout,
                )

    @contextmanager
    def connection(self) -> Iterator[psycopg.Connection]:
        """Context manager for database connections with error translation"""
        try:
            conn = self._connect()
        except psycopg.OperationalError as e:
            if _is_missing_database(e):
                raise FatalStoreError(f"Database unavailable: {e}") from e
            raise StoreError(f"Could not connect to database: {e}") from e

        try:
            yield conn
        except _FATAL_ERRORS as e:
            raise FatalStoreError(f"Database schema unavailable: {e}") from e
        except psycopg.Error as e:
            raise StoreError(f"Database error: {e}") from e
        finally:
            conn.close()

    def migrate(self) -> None:
        """Create tables and indexes if they do not exist"""
        with self.connection() as conn:
            for statement in SCHEMA:
                conn.execute(statement)
            conn.commit()
        logger.info("Database schema is up to date")

    def ping(self) -> bool:
        """Return True if the database answers a trivial query"""
        try:
            with self.connection() as conn:
                conn.execute("SELECT 1")
            return True
        except StoreError:
            return False

    # Workspaces

    def create_workspace(self, name: str) -> Workspace:
        """
        Create a workspace.

        Raises:
            InvalidInputError: If the name is blank
        """
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("workspace name is empty")

        workspace = Workspace(id=uuid4(), name=name, created_at=now_ts())
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO workspaces (id, name, created_at)
                VALUES (%(id)s, %(name)s, %(created_at)s)
                """,
                workspace.model_dump(),
            )
            conn.commit()
        return workspace

    def list_workspaces(self) -> list[Workspace]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT id, name, created_at FROM workspaces ORDER BY created_at DESC"
            ).fetchall()
        return [Workspace.model_validate(row) for row in rows]

    # Bookmarks

    def create_bookmark(self, data: BookmarkInput) -> Bookmark:
        """
        Create a bookmark.

        Raises:
            InvalidInputError: If url or title is blank
            NotFoundError: If the workspace does not exist
        """
        data = data.cleaned()
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
        with self.connection() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO bookmarks (
                        id, workspace_id, url, title, notes, created_at, updated_at
                    )
                    VALUES (
                        %(id)s, %(workspace_id)s, %(url)s, %(title)s, %(notes)s,
                        %(created_at)s, %(updated_at)s
                    )
                    """,
                    bookmark.model_dump(),
                )
            except pg_errors.ForeignKeyViolation as e:
                raise NotFoundError(f"workspace {data.workspace_id} not found") from e
            conn.commit()
        return bookmark

    def get_bookmark(self, bookmark_id: UUID) -> Optional[Bookmark]:
        with self.connection() as conn:
            row = conn.execute(
                f"SELECT {BOOKMARK_COLUMNS} FROM bookmarks b WHERE b.id = %s",
                (bookmark_id,),
            ).fetchone()
        return Bookmark.model_validate(row) if row else None

    def list_bookmarks(self, filters: Optional[BookmarkFilter] = None) -> list[Bookmark]:
        """List bookmarks, newest update first, optionally filtered"""
        filters = filters or BookmarkFilter()
        query = f"SELECT {BOOKMARK_COLUMNS} FROM bookmarks b"
        conditions = []
        params: dict = {}

        if filters.tag:
            query += (
                " JOIN bookmark_tags bt ON b.id = bt.bookmark_id"
                " JOIN tags t ON bt.tag_id = t.id"
            )
            conditions.append("t.name = %(tag)s")
            params["tag"] = filters.tag

        if filters.workspace_id:
            conditions.append("b.workspace_id = %(workspace_id)s")
            params["workspace_id"] = filters.workspace_id

        if filters.query:
            conditions.append("(b.title ILIKE %(needle)s OR b.url ILIKE %(needle)s)")
            params["needle"] = f"%{filters.query}%"

        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY b.updated_at DESC"

        with self.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Bookmark.model_validate(row) for row in rows]

    def delete_bookmark(self, bookmark_id: UUID) -> bool:
        """Delete a bookmark and its tag associations; tag jobs are kept"""
        with self.connection() as conn:
            cur = conn.execute("DELETE FROM bookmarks WHERE id = %s", (bookmark_id,))
            conn.commit()
            deleted = cur.rowcount == 1
        return deleted

    # Tags

    def list_tags(self) -> list[Tag]:
        with self.connection() as conn:
            rows = conn.execute("SELECT id, name, created_at FROM tags ORDER BY name").fetchall()
        return [Tag.model_validate(row) for row in rows]

    def get_tag_cloud(self, limit: int = 40) -> list[TagCloudEntry]:
        """Most used tags, weighted by usage count times average confidence"""
        with self.connection() as conn:
            rows = conn.execute(
                """
                SELECT t.name, COUNT(*) AS count, AVG(bt.confidence) AS avg_conf
                FROM tags t
                JOIN bookmark_tags bt ON t.id = bt.tag_id
                GROUP BY t.name
                ORDER BY count DESC, t.name
                LIMIT %(limit)s
                """,
                {"limit": limit},
            ).fetchall()
        return [
            TagCloudEntry(name=row["name"], weight=row["count"] * float(row["avg_conf"]))
            for row in rows
        ]

    def upsert_tags_for_bookmark(
        self,
        bookmark_id: UUID,
        suggestions: Iterable[TagSuggestion],
    ) -> list[Tag]:
        """
        Attach suggested tags to a bookmark in a single transaction.

        Tags are found or created by name. The (bookmark, tag) association is
        inserted or replaced with the new confidence and source. When several
        suggestions share a name, the most confident one is written.

        Raises:
            NotFoundError: If the bookmark no longer exists
        """
        best: dict[str, TagSuggestion] = {}
        for suggestion in suggestions:
            current = best.get(suggestion.name)
            if current is None or suggestion.confidence > current.confidence:
                best[suggestion.name] = suggestion

        tags: list[Tag] = []
        with self.connection() as conn:
            with conn.transaction():
                for suggestion in best.values():
                    now = now_ts()
                    row = conn.execute(
                        """
                        INSERT INTO tags (id, name, created_at)
                        VALUES (%(id)s, %(name)s, %(created_at)s)
                        ON CONFLICT (name) DO UPDATE SET name = EXCLUDED.name
                        RETURNING id, name, created_at
                        """,
                        {"id": uuid4(), "name": suggestion.name, "created_at": now},
                    ).fetchone()
                    tag = Tag.model_validate(row)

                    try:
                        conn.execute(
                            """
                            INSERT INTO bookmark_tags (
                                bookmark_id, tag_id, confidence, source, created_at
                            )
                            VALUES (
                                %(bookmark_id)s, %(tag_id)s, %(confidence)s,
                                %(source)s, %(created_at)s
                            )
                            ON CONFLICT (bookmark_id, tag_id) DO UPDATE SET
                                confidence = EXCLUDED.confidence,
                                source = EXCLUDED.source,
                                created_at = EXCLUDED.created_at
                            """,
                            {
                                "bookmark_id": bookmark_id,
                                "tag_id": tag.id,
                                "confidence": suggestion.confidence,
                                "source": suggestion.source.value,
                                "created_at": now,
                            },
                        )
                    except pg_errors.ForeignKeyViolation as e:
                        raise NotFoundError(f"bookmark {bookmark_id} not found") from e
                    tags.append(tag)
        return tags

    # Tag jobs

    def enqueue_tag_job(self, bookmark_id: UUID) -> TagJob:
        """Create a pending tag job for a bookmark"""
        now = now_ts()
        job = TagJob(
            id=uuid4(),
            bookmark_id=bookmark_id,
            status=TagJobStatus.PENDING,
            attempts=0,
            created_at=now,
            updated_at=now,
        )
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO tag_jobs (id, bookmark_id, status, attempts, created_at, updated_at)
                VALUES (
                    %(id)s, %(bookmark_id)s, %(status)s, %(attempts)s,
                    %(created_at)s, %(updated_at)s
                )
                """,
                {
                    "id": job.id,
                    "bookmark_id": job.bookmark_id,
                    "status": job.status.value,
                    "attempts": job.attempts,
                    "created_at": job.created_at,
                    "updated_at": job.updated_at,
                },
            )
            conn.commit()
        return job

    def fetch_pending_tag_jobs(self, limit: int) -> list[TagJob]:
        """Oldest pending jobs first"""
        with self.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {JOB_COLUMNS}
                FROM tag_jobs
                WHERE status = 'pending'
                ORDER BY created_at ASC, seq ASC
                LIMIT %(limit)s
                """,
                {"limit": limit},
            ).fetchall()
        return [TagJob.model_validate(row) for row in rows]

    def update_tag_job_status(self, job_id: UUID, status: TagJobStatus) -> bool:
        """
        Move a job to ``status`` in one conditional update.

        The update only applies if the job is currently in a state that may
        move to ``status``; it bumps ``updated_at`` and ``attempts``.

        Returns:
            True if the job moved, False if it was not in an allowed state
            (another worker got there first, or the job is terminal)
        """
        status = TagJobStatus(status)
        expected = [state.value for state in sources_for(status)]
        with self.connection() as conn:
            cur = conn.execute(
                """
                UPDATE tag_jobs
                SET status = %(status)s,
                    updated_at = %(now)s,
                    attempts = attempts + 1
                WHERE id = %(id)s AND status = ANY(%(expected)s)
                """,
                {"status": status.value, "now": now_ts(), "id": job_id, "expected": expected},
            )
            conn.commit()
            moved = cur.rowcount == 1
        return moved

    def claim_tag_job(self, job_id: UUID) -> bool:
        """Atomically move a pending job to running; False means another worker has it"""
        return self.update_tag_job_status(job_id, TagJobStatus.RUNNING)

    def get_tag_job(self, job_id: UUID) -> Optional[TagJob]:
        with self.connection() as conn:
            row = conn.execute(
                f"SELECT {JOB_COLUMNS} FROM tag_jobs WHERE id = %s",
                (job_id,),
            ).fetchone()
        return TagJob.model_validate(row) if row else None

    def tag_job_summary(self) -> dict[str, int]:
        """Count of tag jobs per status"""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS count FROM tag_jobs GROUP BY status ORDER BY status"
            ).fetchall()
        return {row["status"]: row["count"] for row in rows}
