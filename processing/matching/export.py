"""
CSV export of a match queue for offline review.
"""

import csv
from pathlib import Path
from typing import Optional

from config.logging import logger
from config.settings import settings
from processing.matching.normalizer import format_phone
from processing.matching.types import MatchCandidate, MatchQueue

RECOMMENDATION_LABELS = {
    "match": "Match",
    "review": "Review Carefully",
    "no_match": "Don't Match",
}


def export_review_queue(queue: MatchQueue, path: Optional[Path] = None) -> Path:
    """
    Export every queued match to CSV.

    Columns:
    - bucket (perfect/review)
    - local record id, name, email, phone
    - proposed directory id, name, emails, phones, status
    - per-field verdicts and the recommendation
    - decision (left blank for the reviewer)

    Returns:
        Path to the created CSV file
    """
    if path is None:
        path = settings.project_root / "data" / "people_review_queue.csv"
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow([
            "bucket",
            "local_id", "local_name", "local_email", "local_phone",
            "directory_id", "directory_name", "directory_emails", "directory_phones", "directory_status",
            "name_verdict", "email_verdict", "phone_verdict",
            "recommendation", "decision",
        ])

        for bucket, items in (("perfect", queue.perfect), ("review", queue.review)):
            for match in items:
                writer.writerow([bucket] + _row(match) + [""])

    logger.info(f"Exported {len(queue)} queued matches to {path}")
    return path


def _row(match: MatchCandidate) -> list:
    record = match.record
    candidate = match.candidate
    verdicts = match.verdicts
    return [
        record.id,
        record.full_name,
        record.email or "",
        format_phone(record.phone),
        candidate.external_id if candidate else "",
        candidate.name if candidate else "no match found",
        "; ".join(candidate.emails) if candidate else "",
        "; ".join(format_phone(p) for p in candidate.phones) if candidate else "",
        (candidate.status or "") if candidate else "",
        verdicts.name.value,
        verdicts.email.value if record.has_email else "",
        verdicts.phone.value if record.has_phone else "",
        RECOMMENDATION_LABELS[match.tier.value],
    ]
