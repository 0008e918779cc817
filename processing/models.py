"""
People Matching Engine - Database Models

SQLAlchemy ORM models for the local records being matched.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Assessment(Base):
    """
    A completed assessment - one person captured locally by a church.
    Linked to Planning Center People once a match is approved.
    """

    __tablename__ = "assessments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    church_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    first_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    last_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    email: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(String(40))

    # Null until an operator approves a match
    planning_center_person_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_assessments_church_pco", "church_id", "planning_center_person_id"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_linked(self) -> bool:
        return self.planning_center_person_id is not None

    def __repr__(self) -> str:
        return f"<Assessment(id={self.id}, name={self.full_name}, pco={self.planning_center_person_id})>"
