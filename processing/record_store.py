"""
SQLAlchemy-backed record store for assessments awaiting a directory link.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.logging import logger
from processing.matching.errors import PersistenceError, RecordStoreError
from processing.matching.types import LocalRecord
from processing.models import Assessment


class SqlRecordStore:
    """
    Reads unlinked assessments and writes approved Planning Center ids.

    Usage:
        store = SqlRecordStore(db, church_id="church-1")
        records = store.list_unlinked_local_records("church-1")
        store.persist_link(records[0].id, "pco-123")
    """

    def __init__(self, db: Session, church_id: Optional[str] = None):
        """
        Args:
            db: Database session
            church_id: If set, writes are restricted to this church's rows
        """
        self.db = db
        self.church_id = church_id

    def list_unlinked_local_records(self, scope_id) -> list[LocalRecord]:
        try:
            rows = self._unlinked(scope_id).order_by(Assessment.id).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to load unlinked assessments for church {scope_id}: {e}")
            raise RecordStoreError(f"Failed to load assessments for church {scope_id}: {e}") from e
        return [self._to_record(row) for row in rows]

    def count_unlinked(self, scope_id) -> int:
        try:
            return self._unlinked(scope_id).count()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to count unlinked assessments for church {scope_id}: {e}")
            raise RecordStoreError(f"Failed to count assessments for church {scope_id}: {e}") from e

    def _unlinked(self, scope_id):
        return self.db.query(Assessment).filter(
            Assessment.church_id == scope_id,
            Assessment.planning_center_person_id.is_(None),
        )

    def persist_link(self, local_id, external_id: str) -> None:
        """
        Store the approved Planning Center person id on an assessment.

        Raises:
            PersistenceError: if no row was updated or the write failed
        """
        filters = [Assessment.id == local_id]
        if self.church_id is not None:
            filters.append(Assessment.church_id == self.church_id)

        try:
            updated = (
                self.db.query(Assessment)
                .filter(*filters)
                .update(
                    {Assessment.planning_center_person_id: external_id},
                    synchronize_session=False,
                )
            )
            if updated == 0:
                self.db.rollback()
                raise PersistenceError(
                    f"No assessment was updated for id {local_id}. "
                    f"It may not exist or belong to another church.",
                    local_id=local_id,
                )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to link assessment {local_id} to {external_id}: {e}")
            raise PersistenceError(f"Failed to update assessment {local_id}: {e}", local_id=local_id) from e

        logger.debug(f"Assessment {local_id} linked to Planning Center person {external_id}")

    @staticmethod
    def _to_record(row: Assessment) -> LocalRecord:
        return LocalRecord(
            id=row.id,
            first_name=row.first_name or "",
            last_name=row.last_name or "",
            email=row.email,
            phone=row.phone,
            external_id=row.planning_center_person_id,
        )
