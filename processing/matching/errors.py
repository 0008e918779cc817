"""
Error taxonomy for people matching.
"""

from typing import Optional


class MatchingError(Exception):
    """Base class for all matching errors."""


class InputError(MatchingError):
    """A single local or candidate record is malformed (e.g. missing id)."""

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id


class ProviderError(MatchingError):
    """Directory fetch or pagination failed. The whole run is aborted."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RecordStoreError(MatchingError):
    """Reading local records from the record store failed."""


class PersistenceError(MatchingError):
    """Writing an approved link back to the record store failed."""

    def __init__(self, message: str, local_id=None):
        super().__init__(message)
        self.local_id = local_id


class DatasetLoadError(MatchingError):
    """The nickname dataset is missing or unreadable."""


class WorkflowStateError(MatchingError):
    """Operation is not allowed in the workflow's current state."""
