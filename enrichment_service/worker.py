"""
Lester v1 - Tag Worker

Polls the store for pending tag jobs and drives each one to a terminal state:

    claim (pending -> running) -> look up bookmark -> suggest tags
        -> upsert tags -> done

A missing bookmark ends the job as failed. Several workers may poll the same
store: the claim is a conditional update, and a worker that loses the race
for a job skips it.
"""

import logging
import threading
from typing import Optional

from shared.errors import FatalStoreError, NotFoundError, StoreError
from shared.jobs import check_transition
from shared.models import TagJob, TagJobStatus
from shared.tagging import RescalePolicy, TaggingRules, rescale_suggestions

logger = logging.getLogger(__name__)


class TagWorker:
    """
    Tag enrichment worker.

    The store must provide ``fetch_pending_tag_jobs``, ``claim_tag_job``,
    ``update_tag_job_status``, ``get_bookmark`` and
    ``upsert_tags_for_bookmark`` (see ``shared.store.LesterStore``).
    """

    def __init__(
        self,
        store,
        rules: Optional[TaggingRules] = None,
        policy: Optional[RescalePolicy] = None,
    ):
        self.store = store
        self.rules = rules or TaggingRules()
        self.policy = policy or RescalePolicy()
        self._stop = threading.Event()

    def stop(self) -> None:
        """Ask the loop to exit before its next fetch"""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def process_job(self, job: TagJob) -> Optional[TagJobStatus]:
        """
        Drive one job from pending to done or failed.

        Returns:
            The terminal status, or None if another worker claimed the job

        Raises:
            StoreError: If the store fails after the job was claimed. The
                job is marked failed if the store still accepts the write,
                and the original error is re-raised.
        """
        if not self.store.claim_tag_job(job.id):
            logger.info(f"Tag job {job.id} was claimed by another worker, skipping")
            return None

        try:
            bookmark = self.store.get_bookmark(job.bookmark_id)
            if bookmark is None:
                logger.warning(f"Missing bookmark {job.bookmark_id} for tag job {job.id}")
                return self._finish(job, TagJobStatus.FAILED)

            suggestions = rescale_suggestions(
                self.rules.suggest(bookmark.url, bookmark.title),
                self.policy,
            )
            try:
                tags = self.store.upsert_tags_for_bookmark(bookmark.id, suggestions)
            except NotFoundError:
                logger.warning(f"Bookmark {bookmark.id} disappeared while tagging job {job.id}")
                return self._finish(job, TagJobStatus.FAILED)

            logger.info(f"Tagged bookmark {bookmark.id} with {len(tags)} tags (job {job.id})")
            return self._finish(job, TagJobStatus.DONE)

        except StoreError:
            logger.error(f"Store failure while processing tag job {job.id}, marking it failed")
            try:
                self._finish(job, TagJobStatus.FAILED)
            except StoreError as e:
                logger.error(f"Could not mark tag job {job.id} failed: {e}")
            raise

    def _finish(self, job: TagJob, status: TagJobStatus) -> TagJobStatus:
        check_transition(TagJobStatus.RUNNING, status)
        if not self.store.update_tag_job_status(job.id, status):
            logger.warning(f"Tag job {job.id} was no longer running when moving it to {status.value}")
        return status

    def process_batch(self, jobs: list[TagJob], continue_on_error: bool = False) -> int:
        """
        Process jobs one after the other.

        Args:
            jobs: Jobs to process, in order
            continue_on_error: Log a StoreError and move on to the next job
                instead of propagating it. FatalStoreError always propagates.

        Returns:
            Number of jobs this worker moved to a terminal state
        """
        processed = 0
        for job in jobs:
            try:
                if self.process_job(job) is not None:
                    processed += 1
            except FatalStoreError:
                raise
            except StoreError as e:
                if not continue_on_error:
                    raise
                logger.error(f"Tag job {job.id} aborted: {e}")
        return processed

    def run_once(self, batch_size: int) -> int:
        """
        Fetch up to ``batch_size`` pending jobs, oldest first, and process them.

        Returns:
            Number of jobs processed
        """
        jobs = self.store.fetch_pending_tag_jobs(batch_size)
        if not jobs:
            return 0
        logger.info(f"Processing {len(jobs)} tag jobs")
        return self.process_batch(jobs)

    def run(self, batch_size: int, poll_interval: float, once: bool = False) -> int:
        """
        Poll for pending jobs until stopped.

        Args:
            batch_size: Maximum jobs fetched per poll
            poll_interval: Seconds to wait after an empty poll
            once: Exit as soon as no pending jobs remain instead of waiting.
                Store errors propagate in this mode.

        Returns:
            Total number of jobs processed

        Raises:
            FatalStoreError: If the store cannot recover
        """
        total = 0
        logger.info(f"Tag worker started (batch_size={batch_size}, once={once})")

        while not self.stopped:
            try:
                jobs = self.store.fetch_pending_tag_jobs(batch_size)
            except FatalStoreError:
                raise
            except StoreError as e:
                if once:
                    raise
                logger.error(f"Failed to fetch pending tag jobs: {e}")
                self._stop.wait(poll_interval)
                continue

            if not jobs:
                if once:
                    break
                self._stop.wait(poll_interval)
                continue

            total += self.process_batch(jobs, continue_on_error=not once)

        logger.info(f"Tag worker stopped after processing {total} jobs")
        return total
