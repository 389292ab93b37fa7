# flask_app/models/person.py
"""
People rebuilt from the legacy users table plus their attribute rows.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, db


class PersonRole(str, enum.Enum):
    TALENT = "TALENT"
    EMPLOYER = "EMPLOYER"
    ADMIN = "ADMIN"


class Person(BaseModel):
    __tablename__ = "people"

    id: Mapped[str] = mapped_column(db.String(64), primary_key=True)
    legacy_id: Mapped[int] = mapped_column(db.Integer, nullable=False, unique=True, index=True)
    login: Mapped[str] = mapped_column(db.String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(db.String(255), nullable=True, index=True)
    legacy_password_hash: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    first_name: Mapped[str] = mapped_column(db.Text, nullable=False, default="")
    last_name: Mapped[str] = mapped_column(db.Text, nullable=False, default="")
    display_name: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    website: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    role: Mapped[PersonRole] = mapped_column(
        Enum(PersonRole, name="person_role_enum"),
        nullable=False,
        default=PersonRole.TALENT,
        index=True,
    )
    status: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    registered_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)

    profile = relationship(
        "PersonProfile",
        back_populates="person",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    jobs = relationship("JobPosting", back_populates="owner", passive_deletes=True)
    skill_assignments = relationship("SkillAssignment", back_populates="person", passive_deletes=True)
    language_assignments = relationship("LanguageAssignment", back_populates="person", passive_deletes=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self):
        return f"<Person {self.id} {self.login!r}>"


class PersonProfile(BaseModel):
    """Derived profile: biography, location and a free-form settings bag."""

    __tablename__ = "person_profiles"

    person_id: Mapped[str] = mapped_column(
        ForeignKey("people.id", ondelete="CASCADE"),
        primary_key=True,
    )
    bio: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    location: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    settings: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)

    person = relationship("Person", back_populates="profile")
