#!/usr/bin/env python3
"""
Tests for the match review workflow state machine.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from processing.matching import (
    CandidateRecord,
    CandidateSelector,
    FieldComparator,
    InputError,
    LocalRecord,
    MatchWorkflow,
    NicknameIndex,
    PersistenceError,
    ProviderError,
    RecordStoreError,
    WorkflowState,
    WorkflowStateError,
)


class FakeRecordStore:
    """In-memory record store; ids in fail_on raise PersistenceError."""

    def __init__(self, records, fail_on=(), list_error=None, write_error=None):
        self.records = {r.id: r for r in records}
        self.links = {}
        self.fail_on = set(fail_on)
        self.list_error = list_error
        self.write_error = write_error

    def list_unlinked_local_records(self, scope_id):
        if self.list_error:
            raise self.list_error
        return [r for r in self.records.values() if r.id not in self.links]

    def count_unlinked(self, scope_id):
        return len(self.list_unlinked_local_records(scope_id))

    def persist_link(self, local_id, external_id):
        if self.write_error:
            raise self.write_error
        if local_id in self.fail_on:
            raise PersistenceError(f"write failed for {local_id}", local_id=local_id)
        self.links[local_id] = external_id


class FakeDirectory:
    def __init__(self, candidates, error=None):
        self.candidates = candidates
        self.error = error
        self.calls = []

    def fetch_all_candidates(self, scope_id, force_refresh=False):
        self.calls.append((scope_id, force_refresh))
        if self.error:
            raise self.error
        return list(self.candidates)


def setup_directory():
    return [
        CandidateRecord(external_id="pco-alice", name="Alice Jones", emails=("alice@church.org",)),
        CandidateRecord(external_id="pco-carol", name="Carol White", emails=("carol@gmail.com",)),
        CandidateRecord(external_id="pco-bob", name="Robert Smith", emails=("bob@x.com",)),
        CandidateRecord(external_id="pco-dan", name="Daniel Brown", phones=("5550001111",)),
    ]


def setup_records():
    return [
        LocalRecord(id=1, first_name="Alice", last_name="Jones", email="alice@church.org"),  # perfect
        LocalRecord(id=2, first_name="Bob", last_name="Smith", email="bob@x.com"),           # review
        LocalRecord(id=3, first_name="Carol", last_name="White", email="carol@gmail.com"),   # perfect
        LocalRecord(id=4, first_name="Dan", last_name="Brown", phone="5550001111"),          # review
        LocalRecord(id=5, first_name="Zed", last_name="Nobody"),                             # no match
    ]


def make_workflow(records=None, directory=None, store=None):
    store = store or FakeRecordStore(records if records is not None else setup_records())
    directory = directory or FakeDirectory(setup_directory())
    nicknames = NicknameIndex.from_rows([
        ("robert", "has_nickname", "bob"),
        ("daniel", "has_nickname", "dan"),
    ])
    selector = CandidateSelector(FieldComparator(nicknames))
    return MatchWorkflow(store, directory, scope_id="church-1", selector=selector, max_workers=1)


# =============================================================================
# Loading
# =============================================================================

def test_idle_shows_unmatched_count():
    workflow = make_workflow()

    assert workflow.state is WorkflowState.IDLE
    assert workflow.unmatched_count() == 5
    assert workflow.current is None


def test_load_buckets_perfect_and_review():
    workflow = make_workflow()

    run = workflow.load()

    assert workflow.state is WorkflowState.PERFECT_SUMMARY
    assert [m.record.id for m in run.queue.perfect] == [1, 3]
    assert [m.record.id for m in run.queue.review] == [2, 4, 5]
    assert run.directory_size == 4
    assert run.rejected == []
    assert workflow.directory.calls == [("church-1", False)]


def test_load_goes_to_review_when_nothing_is_perfect():
    records = [r for r in setup_records() if r.id in (2, 4)]
    workflow = make_workflow(records=records)

    workflow.load()

    assert workflow.state is WorkflowState.REVIEW_QUEUE
    assert workflow.current.record.id == 2


def test_load_with_nothing_unmatched_returns_to_idle():
    workflow = make_workflow(records=[])

    run = workflow.load()

    assert workflow.state is WorkflowState.IDLE
    assert len(run.queue) == 0


def test_provider_failure_returns_to_idle():
    directory = FakeDirectory([], error=ProviderError("page 3 failed", status_code=502))
    workflow = make_workflow(directory=directory)

    with pytest.raises(ProviderError):
        workflow.load()

    assert workflow.state is WorkflowState.IDLE
    assert len(workflow.queue) == 0
    assert isinstance(workflow.last_error, ProviderError)

    # Retryable once the provider recovers
    directory.error = None
    directory.candidates = setup_directory()
    workflow.load()
    assert workflow.state is WorkflowState.PERFECT_SUMMARY

def test_record_store_failure_returns_to_idle():
    store = FakeRecordStore(setup_records(), list_error=RecordStoreError("database is locked"))
    workflow = make_workflow(store=store)

    with pytest.raises(RecordStoreError):
        workflow.load()

    assert workflow.state is WorkflowState.IDLE
    assert isinstance(workflow.last_error, RecordStoreError)

    store.list_error = None
    workflow.load()
    assert workflow.state is WorkflowState.PERFECT_SUMMARY


def test_unexpected_load_error_returns_to_idle():
    store = FakeRecordStore(setup_records(), list_error=RuntimeError("connection reset"))
    workflow = make_workflow(store=store)

    with pytest.raises(RuntimeError):
        workflow.load()

    assert workflow.state is WorkflowState.IDLE
    assert len(workflow.queue) == 0

    store.list_error = None
    workflow.refresh()
    assert workflow.state is WorkflowState.PERFECT_SUMMARY


def test_matching_failure_returns_to_idle():
    class BrokenSelector(CandidateSelector):
        def select_all(self, records, candidates, max_workers=1):
            raise ValueError("comparator blew up")

    workflow = MatchWorkflow(
        FakeRecordStore(setup_records()),
        FakeDirectory(setup_directory()),
        scope_id="church-1",
        selector=BrokenSelector(),
        max_workers=1,
    )

    with pytest.raises(ValueError):
        workflow.load()

    assert workflow.state is WorkflowState.IDLE
    assert isinstance(workflow.last_error, ValueError)



def test_refresh_forces_provider_bypass():
    workflow = make_workflow()
    workflow.load()

    workflow.refresh()

    assert workflow.directory.calls[-1] == ("church-1", True)
    assert workflow.state is WorkflowState.PERFECT_SUMMARY


# =============================================================================
# Perfect summary
# =============================================================================

def test_approve_all_links_every_perfect_match():
    workflow = make_workflow()
    workflow.load()

    approved = workflow.approve_all()

    assert approved == 2
    assert workflow.record_store.links == {1: "pco-alice", 3: "pco-carol"}
    assert workflow.queue.perfect == []
    assert workflow.state is WorkflowState.REVIEW_QUEUE
    assert workflow.current.record.id == 2
    assert workflow.unmatched_count() == 3


def test_approve_all_stops_on_persistence_failure():
    store = FakeRecordStore(setup_records(), fail_on={3})
    workflow = make_workflow(store=store)
    workflow.load()

    with pytest.raises(PersistenceError):
        workflow.approve_all()

    assert store.links == {1: "pco-alice"}
    assert [m.record.id for m in workflow.queue.perfect] == [3]
    assert workflow.state is WorkflowState.PERFECT_SUMMARY


def test_review_manually_puts_perfect_matches_first():
    workflow = make_workflow()
    workflow.load()

    workflow.review_manually()

    assert workflow.state is WorkflowState.REVIEW_QUEUE
    assert [m.record.id for m in workflow.queue.review] == [1, 3, 2, 4, 5]
    assert workflow.queue.perfect == []
    assert workflow.current.record.id == 1


def test_perfect_summary_actions_need_perfect_summary_state():
    workflow = make_workflow()

    with pytest.raises(WorkflowStateError):
        workflow.approve_all()
    with pytest.raises(WorkflowStateError):
        workflow.review_manually()


# =============================================================================
# Review queue
# =============================================================================

def test_navigation_clamps_to_queue():
    workflow = make_workflow()
    workflow.load()
    workflow.review_manually()

    assert workflow.previous().record.id == 1
    assert workflow.next().record.id == 3
    workflow.next()
    workflow.next()
    assert workflow.next().record.id == 5
    assert workflow.next().record.id == 5
    assert workflow.position == (5, 5)
    assert len(workflow.queue) == 5


def test_approve_removes_item_and_keeps_position():
    workflow = make_workflow()
    workflow.load()
    workflow.review_manually()
    workflow.next()  # record 3

    approved = workflow.approve()

    assert approved.record.id == 3
    assert workflow.record_store.links == {3: "pco-carol"}
    assert [m.record.id for m in workflow.queue.review] == [1, 2, 4, 5]
    assert workflow.current.record.id == 2


def test_approve_last_item_clamps_cursor():
    records = [r for r in setup_records() if r.id in (2, 4)]
    workflow = make_workflow(records=records)
    workflow.load()
    workflow.next()

    workflow.approve()

    assert workflow.cursor == 0
    assert workflow.current.record.id == 2


def test_emptying_the_queue_returns_to_idle():
    records = [r for r in setup_records() if r.id in (2, 4)]
    workflow = make_workflow(records=records)
    workflow.load()

    workflow.approve()
    workflow.approve()

    assert workflow.state is WorkflowState.IDLE
    assert workflow.current is None
    assert workflow.record_store.links == {2: "pco-bob", 4: "pco-dan"}


def test_approve_failure_leaves_queue_untouched():
    store = FakeRecordStore(setup_records(), fail_on={2})
    workflow = make_workflow(store=store)
    workflow.load()
    workflow.approve_all()

    with pytest.raises(PersistenceError):
        workflow.approve()

    assert workflow.state is WorkflowState.REVIEW_QUEUE
    assert workflow.current.record.id == 2
    assert [m.record.id for m in workflow.queue.review] == [2, 4, 5]
    assert isinstance(workflow.last_error, PersistenceError)


def test_unexpected_write_error_keeps_review_position():
    records = [r for r in setup_records() if r.id in (2, 4)]
    workflow = make_workflow(records=records)
    workflow.load()
    workflow.next()
    workflow.record_store.write_error = ConnectionError("database went away")

    with pytest.raises(ConnectionError):
        workflow.approve()

    assert workflow.state is WorkflowState.REVIEW_QUEUE
    assert workflow.current.record.id == 4
    assert workflow.previous().record.id == 2
    assert len(workflow.queue) == 2
    assert isinstance(workflow.last_error, ConnectionError)


def test_unexpected_write_error_keeps_perfect_summary():
    workflow = make_workflow()
    workflow.load()
    workflow.record_store.write_error = ConnectionError("database went away")

    with pytest.raises(ConnectionError):
        workflow.approve_all()

    assert workflow.state is WorkflowState.PERFECT_SUMMARY
    assert [m.record.id for m in workflow.queue.perfect] == [1, 3]

    workflow.record_store.write_error = None
    assert workflow.approve_all() == 2


def test_cannot_approve_item_without_candidate():
    records = [r for r in setup_records() if r.id == 5]
    workflow = make_workflow(records=records)
    workflow.load()

    assert workflow.state is WorkflowState.REVIEW_QUEUE
    with pytest.raises(InputError):
        workflow.approve()
    assert workflow.record_store.links == {}
    assert len(workflow.queue) == 1


def test_skip_advances_and_wraps_without_persisting():
    records = [r for r in setup_records() if r.id in (2, 4)]
    workflow = make_workflow(records=records)
    workflow.load()

    assert workflow.skip().record.id == 4
    assert workflow.skip().record.id == 2
    assert workflow.state is WorkflowState.REVIEW_QUEUE
    assert workflow.record_store.links == {}
    assert len(workflow.queue) == 2


def test_review_actions_need_review_state():
    workflow = make_workflow()

    for action in (workflow.approve, workflow.skip, workflow.next, workflow.previous):
        with pytest.raises(WorkflowStateError):
            action()
