#!/usr/bin/env python3
"""
Match a church's unlinked assessments against its Planning Center list.

Usage:
    python scripts/run_people_matching.py --church-id <id>
    python scripts/run_people_matching.py --church-id <id> --refresh
    python scripts/run_people_matching.py --church-id <id> --approve-perfect
    python scripts/run_people_matching.py --church-id <id> --export-only --output review.csv
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from processing.database import SessionLocal, init_db
from processing.matching import (
    CandidateSelector,
    MatchingError,
    MatchWorkflow,
    WorkflowState,
    load_default_index,
)
from processing.matching.export import export_review_queue
from processing.record_store import SqlRecordStore
from providers.planning_center import PlanningCenterDirectory


def main():
    parser = argparse.ArgumentParser(
        description="Propose Planning Center matches for unlinked assessments"
    )
    parser.add_argument("--church-id", required=True, help="Church whose assessments are matched")
    parser.add_argument(
        "--list-id",
        default=None,
        help=f"Planning Center list id (default: PCO_LIST_ID={settings.PCO_LIST_ID or 'unset'})",
    )
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Refresh the Planning Center list and bypass the directory cache",
    )
    parser.add_argument(
        "--approve-perfect",
        action="store_true",
        help="Link every perfect match without manual review",
    )
    parser.add_argument(
        "--export-only",
        action="store_true",
        help="Only export the review queue, don't approve anything",
    )
    parser.add_argument("--output", type=Path, default=None, help="CSV path for the review queue")

    args = parser.parse_args()

    init_db()
    db = SessionLocal()

    try:
        store = SqlRecordStore(db, church_id=args.church_id)
        directory = PlanningCenterDirectory(list_id=args.list_id)
        selector = CandidateSelector(nicknames=load_default_index())
        workflow = MatchWorkflow(store, directory, scope_id=args.church_id, selector=selector)

        print("=" * 60)
        print("PEOPLE MATCHING")
        print("=" * 60)
        print(f"Unmatched assessments: {workflow.unmatched_count()}")
        print(f"Mode: {'EXPORT ONLY' if args.export_only else 'LIVE'}")
        print("=" * 60)

        try:
            run = workflow.refresh() if args.refresh else workflow.load()
        except MatchingError as e:
            print(f"\nMatching failed: {e}")
            sys.exit(1)

        print(f"\nDirectory size: {run.directory_size}")
        print(f"Perfect matches: {len(run.queue.perfect)}")
        print(f"To review: {len(run.queue.review)}")
        for record_id, reason in run.rejected:
            print(f"  Rejected {record_id}: {reason}")

        if args.approve_perfect and not args.export_only and workflow.state is WorkflowState.PERFECT_SUMMARY:
            try:
                approved = workflow.approve_all()
                print(f"\nApproved {approved} perfect match{'es' if approved != 1 else ''}")
            except MatchingError as e:
                print(f"\nBulk approval stopped: {e}")

        if len(workflow.queue):
            csv_path = export_review_queue(workflow.queue, args.output)
            print(f"\nReview queue exported to: {csv_path}")
        else:
            print("\nAll people matched")

        print(f"\nRemaining unmatched assessments: {workflow.unmatched_count()}")

    finally:
        db.close()


if __name__ == "__main__":
    main()
