"""
Review workflow for people matching.

Explicit state machine driven by method calls:

    IDLE → FETCHING → MATCHING → PERFECT_SUMMARY | REVIEW_QUEUE | IDLE
    PERFECT_SUMMARY --approve_all--> REVIEW_QUEUE | IDLE
    PERFECT_SUMMARY --review_manually--> REVIEW_QUEUE
    REVIEW_QUEUE --approve/skip/previous/next--> REVIEW_QUEUE | IDLE
    any loaded state --refresh--> REFRESHING → FETCHING ...
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, Sequence

from config.logging import logger
from config.settings import settings
from processing.matching.errors import InputError, WorkflowStateError
from processing.matching.selector import CandidateSelector
from processing.matching.types import (
    CandidateRecord,
    LocalRecord,
    MatchCandidate,
    MatchQueue,
    MatchRun,
)


class RecordStore(Protocol):
    """Source of local records and sink for approved links."""

    def list_unlinked_local_records(self, scope_id) -> Sequence[LocalRecord]:
        ...

    def count_unlinked(self, scope_id) -> int:
        ...

    def persist_link(self, local_id, external_id: str) -> None:
        ...


class DirectoryProvider(Protocol):
    """Source of directory candidates. Raises ProviderError instead of returning partial data."""

    def fetch_all_candidates(self, scope_id, force_refresh: bool = False) -> Sequence[CandidateRecord]:
        ...


class WorkflowState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    MATCHING = "matching"
    PERFECT_SUMMARY = "perfect_summary"
    REVIEW_QUEUE = "review_queue"
    APPROVING = "approving"
    SKIPPING = "skipping"
    REFRESHING = "refreshing"


LOADED_STATES = (
    WorkflowState.IDLE,
    WorkflowState.PERFECT_SUMMARY,
    WorkflowState.REVIEW_QUEUE,
    WorkflowState.REFRESHING,
)


class MatchWorkflow:
    """
    One operator session reviewing proposed links for a single scope.

    Usage:
        workflow = MatchWorkflow(store, directory, scope_id=church_id)
        workflow.load()
        if workflow.state is WorkflowState.PERFECT_SUMMARY:
            workflow.approve_all()
        while workflow.current:
            workflow.approve()
    """

    def __init__(
        self,
        record_store: RecordStore,
        directory: DirectoryProvider,
        scope_id,
        selector: Optional[CandidateSelector] = None,
        max_workers: Optional[int] = None,
    ):
        self.record_store = record_store
        self.directory = directory
        self.scope_id = scope_id
        self.selector = selector or CandidateSelector()
        self.max_workers = max_workers if max_workers is not None else settings.MATCH_WORKERS

        self.state = WorkflowState.IDLE
        self.queue = MatchQueue()
        self.cursor = 0
        self.last_run: Optional[MatchRun] = None
        self.last_error: Optional[Exception] = None

    # -- loading ---------------------------------------------------------

    def unmatched_count(self) -> int:
        """Number of local records still waiting for a link."""
        return self.record_store.count_unlinked(self.scope_id)

    def load(self, force_refresh: bool = False) -> MatchRun:
        """
        Fetch the directory, match every unlinked record and fill the queue.

        Any failure while fetching or matching returns the workflow to IDLE
        with an empty queue and re-raises.
        """
        self._require(*LOADED_STATES)
        run = MatchRun(started_at=datetime.now())
        self.last_error = None

        self.state = WorkflowState.FETCHING
        try:
            candidates = list(self.directory.fetch_all_candidates(self.scope_id, force_refresh=force_refresh))
            records = list(self.record_store.list_unlinked_local_records(self.scope_id))

            self.state = WorkflowState.MATCHING
            matches, rejected = self.selector.select_all(records, candidates, max_workers=self.max_workers)
        except Exception as e:
            logger.error(f"Matching run aborted for scope {self.scope_id}: {e}")
            self._reset(error=e)
            raise

        run.queue = self.selector.build_queue(matches)
        run.rejected = rejected
        run.directory_size = len(candidates)
        run.finished_at = datetime.now()

        self.queue = run.queue
        self.cursor = 0
        self.last_run = run

        if self.queue.perfect:
            self.state = WorkflowState.PERFECT_SUMMARY
        elif self.queue.review:
            self.state = WorkflowState.REVIEW_QUEUE
        else:
            self.state = WorkflowState.IDLE

        logger.info(
            f"Matching run for scope {self.scope_id}: {len(self.queue.perfect)} perfect, "
            f"{len(self.queue.review)} to review, {len(rejected)} rejected "
            f"({run.duration:.1f}s)"
        )
        return run

    def refresh(self) -> MatchRun:
        """Reload, forcing the directory provider to bypass its cache."""
        self._require(*LOADED_STATES)
        self.state = WorkflowState.REFRESHING
        return self.load(force_refresh=True)

    # -- perfect summary -------------------------------------------------

    def approve_all(self) -> int:
        """
        Persist every perfect match in one pass.

        Stops at the first failed write; items already written are
        removed, the failing one and the rest stay in the perfect bucket.
        """
        self._require(WorkflowState.PERFECT_SUMMARY)
        self.state = WorkflowState.APPROVING

        approved = 0
        for item in list(self.queue.perfect):
            try:
                self.record_store.persist_link(item.record.id, item.external_id)
            except Exception as e:
                logger.error(f"Bulk approval stopped after {approved} links: {e}")
                self.last_error = e
                self.state = WorkflowState.PERFECT_SUMMARY
                raise
            self.queue.remove(item.record.id)
            approved += 1

        logger.info(f"Approved {approved} perfect match{'es' if approved != 1 else ''}")
        self.cursor = 0
        self.state = WorkflowState.REVIEW_QUEUE if self.queue.review else WorkflowState.IDLE
        return approved

    def review_manually(self) -> None:
        """Step through perfect matches one by one, ahead of the review items."""
        self._require(WorkflowState.PERFECT_SUMMARY)
        self.queue.merge_perfect_into_review()
        self.cursor = 0
        self.state = WorkflowState.REVIEW_QUEUE

    # -- review queue ----------------------------------------------------

    @property
    def current(self) -> Optional[MatchCandidate]:
        if self.state is not WorkflowState.REVIEW_QUEUE or not self.queue.review:
            return None
        return self.queue.review[self.cursor]

    @property
    def position(self) -> tuple[int, int]:
        """(1-based cursor, queue length) for display."""
        total = len(self.queue.review)
        return (self.cursor + 1 if total else 0, total)

    def approve(self) -> MatchCandidate:
        """Persist the current item's link and drop it from the queue."""
        self._require(WorkflowState.REVIEW_QUEUE)
        item = self.current
        if item is None:
            raise WorkflowStateError("review queue is empty")
        if not item.has_candidate:
            raise InputError(
                f"record {item.record.id} has no proposed directory match to approve",
                record_id=item.record.id,
            )

        self.state = WorkflowState.APPROVING
        try:
            self.record_store.persist_link(item.record.id, item.external_id)
        except Exception as e:
            logger.error(f"Approval failed for record {item.record.id}: {e}")
            self.last_error = e
            self.state = WorkflowState.REVIEW_QUEUE
            raise

        self.queue.remove(item.record.id)
        remaining = len(self.queue.review)
        if self.cursor >= remaining:
            self.cursor = max(remaining - 1, 0)

        logger.info(f"Linked record {item.record.id} to {item.external_id}")
        self.state = WorkflowState.REVIEW_QUEUE if remaining else WorkflowState.IDLE
        return item

    def skip(self) -> Optional[MatchCandidate]:
        """Leave the current item unlinked and move on, wrapping at the end."""
        self._require(WorkflowState.REVIEW_QUEUE)
        self.state = WorkflowState.SKIPPING
        item = self.queue.review[self.cursor] if self.queue.review else None
        if item is not None:
            logger.debug(f"Skipped record {item.record.id}")
            self.cursor = (self.cursor + 1) % len(self.queue.review)
        self.state = WorkflowState.REVIEW_QUEUE
        return self.current

    def previous(self) -> Optional[MatchCandidate]:
        self._require(WorkflowState.REVIEW_QUEUE)
        if self.cursor > 0:
            self.cursor -= 1
        return self.current

    def next(self) -> Optional[MatchCandidate]:
        self._require(WorkflowState.REVIEW_QUEUE)
        if self.cursor < len(self.queue.review) - 1:
            self.cursor += 1
        return self.current

    # -- helpers ---------------------------------------------------------

    def _require(self, *states: WorkflowState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise WorkflowStateError(f"not allowed in state {self.state.value} (expected {allowed})")

    def _reset(self, error: Optional[Exception] = None) -> None:
        self.queue = MatchQueue()
        self.cursor = 0
        self.last_error = error
        self.state = WorkflowState.IDLE
