# flask_app/models/job.py
"""
Job postings and their schedule entries.
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, db


class JobStatus(str, enum.Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    COMPLETED = "COMPLETED"


class JobPosting(BaseModel):
    __tablename__ = "job_postings"

    id: Mapped[str] = mapped_column(db.String(64), primary_key=True)
    legacy_id: Mapped[int] = mapped_column(db.Integer, nullable=False, unique=True, index=True)
    owner_id: Mapped[str] = mapped_column(
        ForeignKey("people.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(db.Text, nullable=False, default="")
    description: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="job_status_enum"),
        nullable=False,
        default=JobStatus.OPEN,
        index=True,
    )
    legacy_status: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    pay_rate: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    pay_type: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    raw_schedule: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    starts_at: Mapped[date | None] = mapped_column(db.Date, nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    modified_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)

    owner = relationship("Person", back_populates="jobs")
    schedule = relationship(
        "ScheduleEntry",
        back_populates="job",
        order_by="ScheduleEntry.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("idx_job_postings_owner_status", "owner_id", "status"),)

    def __repr__(self):
        return f"<JobPosting {self.id} {self.status.value}>"


class ScheduleEntry(BaseModel):
    """One shift of a job posting, keyed by (job, position)."""

    __tablename__ = "schedule_entries"

    job_id: Mapped[str] = mapped_column(
        ForeignKey("job_postings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(db.Integer, primary_key=True)
    shift_date: Mapped[date] = mapped_column("date", db.Date, nullable=False)
    start_time: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    end_time: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    job = relationship("JobPosting", back_populates="schedule")
