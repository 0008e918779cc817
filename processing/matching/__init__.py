"""
People Matching Module

Links local assessment records to a people directory by combining:
- Normalized name comparison with a nickname index
- Email and phone comparison
- A rule-based recommendation ladder (Match / Review / No Match)
- A review workflow (bulk approve or step through)
"""

from processing.matching.comparators import FieldComparator
from processing.matching.errors import (
    DatasetLoadError,
    InputError,
    MatchingError,
    PersistenceError,
    ProviderError,
    RecordStoreError,
    WorkflowStateError,
)
from processing.matching.nicknames import NicknameIndex, load_default_index
from processing.matching.recommendation import recommend, recommend_for
from processing.matching.selector import CandidateSelector
from processing.matching.types import (
    CandidateRecord,
    FieldVerdict,
    FieldVerdicts,
    LocalRecord,
    MatchCandidate,
    MatchQueue,
    MatchRun,
    RecommendationTier,
)
from processing.matching.workflow import MatchWorkflow, WorkflowState

__all__ = [
    "CandidateRecord",
    "CandidateSelector",
    "DatasetLoadError",
    "FieldComparator",
    "FieldVerdict",
    "FieldVerdicts",
    "InputError",
    "LocalRecord",
    "MatchCandidate",
    "MatchQueue",
    "MatchRun",
    "MatchWorkflow",
    "MatchingError",
    "NicknameIndex",
    "PersistenceError",
    "ProviderError",
    "RecommendationTier",
    "RecordStoreError",
    "WorkflowState",
    "WorkflowStateError",
    "load_default_index",
    "recommend",
    "recommend_for",
]
