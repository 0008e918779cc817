"""
Data model shared by the matching components.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class FieldVerdict(Enum):
    """Outcome of comparing one field between a local and a candidate record."""
    PERFECT = "perfect"
    CLOSE = "close"
    NO_MATCH = "no_match"

    @property
    def rank(self) -> int:
        return _VERDICT_RANKS[self]


class RecommendationTier(Enum):
    """Fused recommendation for a whole local/candidate pairing."""
    MATCH = "match"
    REVIEW = "review"
    NO_MATCH = "no_match"

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]


_VERDICT_RANKS = {
    FieldVerdict.PERFECT: 2,
    FieldVerdict.CLOSE: 1,
    FieldVerdict.NO_MATCH: 0,
}

_TIER_RANKS = {
    RecommendationTier.MATCH: 2,
    RecommendationTier.REVIEW: 1,
    RecommendationTier.NO_MATCH: 0,
}


@dataclass(frozen=True)
class LocalRecord:
    """A person (assessment) awaiting linkage to the directory."""
    id: object
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    external_id: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def has_email(self) -> bool:
        return bool(self.email and self.email.strip())

    @property
    def has_phone(self) -> bool:
        return bool(self.phone and self.phone.strip())

    @property
    def is_linked(self) -> bool:
        return bool(self.external_id)


@dataclass(frozen=True)
class CandidateRecord:
    """Snapshot of one external directory entry."""
    external_id: str
    name: str
    emails: tuple[str, ...] = ()
    phones: tuple[str, ...] = ()
    status: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    def __repr__(self) -> str:
        return f"<CandidateRecord({self.external_id}, {self.name!r})>"


@dataclass(frozen=True)
class FieldVerdicts:
    """Per-field verdicts for one pairing."""
    name: FieldVerdict = FieldVerdict.NO_MATCH
    email: FieldVerdict = FieldVerdict.NO_MATCH
    phone: FieldVerdict = FieldVerdict.NO_MATCH

    @property
    def score(self) -> int:
        """Sum of verdict ranks, used to break ties between equal tiers."""
        return self.name.rank + self.email.rank + self.phone.rank


@dataclass
class MatchCandidate:
    """A local record together with the best directory entry found for it."""
    record: LocalRecord
    candidate: Optional[CandidateRecord] = None
    verdicts: FieldVerdicts = field(default_factory=FieldVerdicts)
    tier: RecommendationTier = RecommendationTier.NO_MATCH

    @property
    def has_candidate(self) -> bool:
        return self.candidate is not None

    @property
    def external_id(self) -> Optional[str]:
        return self.candidate.external_id if self.candidate else None

    @property
    def is_perfect_match(self) -> bool:
        """True iff a candidate is chosen and every populated field is Perfect."""
        if self.candidate is None:
            return False
        if self.verdicts.name is not FieldVerdict.PERFECT:
            return False
        if self.record.has_email and self.verdicts.email is not FieldVerdict.PERFECT:
            return False
        if self.record.has_phone and self.verdicts.phone is not FieldVerdict.PERFECT:
            return False
        return True

    def __repr__(self) -> str:
        if self.candidate:
            return (
                f"<MatchCandidate({self.record.full_name!r} -> {self.candidate.name!r}, "
                f"{self.tier.value})>"
            )
        return f"<MatchCandidate({self.record.full_name!r}, no match found)>"


@dataclass
class MatchQueue:
    """
    Session-scoped output of a matching run.

    Removing an item never reorders what remains.
    """
    perfect: list[MatchCandidate] = field(default_factory=list)
    review: list[MatchCandidate] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.perfect) + len(self.review)

    def remove(self, local_id) -> Optional[MatchCandidate]:
        """Remove the item for ``local_id`` from whichever bucket holds it."""
        for bucket in (self.perfect, self.review):
            for index, item in enumerate(bucket):
                if item.record.id == local_id:
                    return bucket.pop(index)
        return None

    def merge_perfect_into_review(self) -> None:
        """Move every perfect item in front of the review items."""
        self.review = self.perfect + self.review
        self.perfect = []


@dataclass
class MatchRun:
    """Result of one fetch + match pass."""
    queue: MatchQueue = field(default_factory=MatchQueue)
    rejected: list[tuple[object, str]] = field(default_factory=list)
    directory_size: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration(self) -> float:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0
