"""
Candidate selection: pick the best directory entry for each local record.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional, Sequence

from config.logging import logger
from processing.matching.comparators import FieldComparator
from processing.matching.errors import InputError
from processing.matching.nicknames import NicknameIndex
from processing.matching.recommendation import recommend_for
from processing.matching.types import (
    CandidateRecord,
    FieldVerdicts,
    LocalRecord,
    MatchCandidate,
    MatchQueue,
    RecommendationTier,
)


def validate_local_record(record: LocalRecord) -> None:
    if record is None or record.id is None or record.id == "":
        raise InputError("local record has no id")
    if not record.full_name:
        raise InputError(f"local record {record.id} has no name", record_id=record.id)


def validate_candidate_record(candidate: CandidateRecord) -> None:
    if candidate is None or not candidate.external_id:
        raise InputError("directory record has no id")


class CandidateSelector:
    """
    Scans the whole directory for each unmatched local record.

    Candidates are ranked by tier (MATCH > REVIEW > NO_MATCH), then by the sum
    of verdict ranks. The first best candidate in directory order wins a tie.
    A record whose best tier is NO_MATCH gets no candidate.

    Usage:
        selector = CandidateSelector(FieldComparator(nicknames))
        matches, rejected = selector.select_all(records, directory)
        queue = selector.build_queue(matches)
    """

    def __init__(
        self,
        comparator: Optional[FieldComparator] = None,
        nicknames: Optional[NicknameIndex] = None,
    ):
        self.comparator = comparator or FieldComparator(nicknames)

    def select(self, record: LocalRecord, candidates: Sequence[CandidateRecord]) -> MatchCandidate:
        best: Optional[CandidateRecord] = None
        best_verdicts = FieldVerdicts()
        best_tier = RecommendationTier.NO_MATCH
        best_key = (-1, -1)

        for candidate in candidates:
            verdicts = self.comparator.compare(record, candidate)
            tier = recommend_for(verdicts, record)
            key = (tier.rank, verdicts.score)
            if key > best_key:
                best, best_verdicts, best_tier, best_key = candidate, verdicts, tier, key

        if best is None or best_tier is RecommendationTier.NO_MATCH:
            return MatchCandidate(record=record)

        return MatchCandidate(
            record=record,
            candidate=best,
            verdicts=best_verdicts,
            tier=best_tier,
        )

    def select_all(
        self,
        records: Iterable[LocalRecord],
        candidates: Iterable[CandidateRecord],
        max_workers: int = 1,
    ) -> tuple[list[MatchCandidate], list[tuple[object, str]]]:
        """
        Select candidates for every unlinked record.

        Malformed records are rejected individually; the rest of the batch
        still runs. Output keeps input order.

        Returns:
            (matches, rejected) where rejected holds (record_id, reason)
        """
        rejected: list[tuple[object, str]] = []

        directory = []
        for candidate in candidates:
            try:
                validate_candidate_record(candidate)
            except InputError as e:
                logger.warning(f"Skipping directory record: {e}")
                continue
            directory.append(candidate)

        pending = []
        for record in records:
            try:
                validate_local_record(record)
            except InputError as e:
                logger.warning(f"Rejecting local record: {e}")
                rejected.append((getattr(record, "id", None), str(e)))
                continue
            if record.is_linked:
                logger.debug(f"Record {record.id} already linked to {record.external_id}, skipping")
                continue
            pending.append(record)

        if max_workers > 1 and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=min(max_workers, len(pending))) as executor:
                matches = list(executor.map(lambda r: self.select(r, directory), pending))
        else:
            matches = [self.select(record, directory) for record in pending]

        logger.info(
            f"Matched {len(pending)} records against {len(directory)} directory entries "
            f"({sum(1 for m in matches if m.has_candidate)} with a candidate, "
            f"{len(rejected)} rejected)"
        )
        return matches, rejected

    @staticmethod
    def build_queue(matches: Iterable[MatchCandidate]) -> MatchQueue:
        """Partition matches into perfect and review buckets, keeping order."""
        queue = MatchQueue()
        for match in matches:
            if match.is_perfect_match:
                queue.perfect.append(match)
            else:
                queue.review.append(match)
        return queue
