# flask_app/models/assignment.py
"""
Person-to-catalog edges resolved from legacy term relationships.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, db


class SkillAssignment(BaseModel):
    __tablename__ = "skill_assignments"

    person_id: Mapped[str] = mapped_column(ForeignKey("people.id", ondelete="CASCADE"), primary_key=True)
    skill_id: Mapped[str] = mapped_column(ForeignKey("skills.id", ondelete="CASCADE"), primary_key=True)
    proficiency: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    resolved_via: Mapped[str] = mapped_column(db.String(16), nullable=False, default="person")

    person = relationship("Person", back_populates="skill_assignments")
    skill = relationship("Skill", back_populates="assignments")


class LanguageAssignment(BaseModel):
    __tablename__ = "language_assignments"

    person_id: Mapped[str] = mapped_column(ForeignKey("people.id", ondelete="CASCADE"), primary_key=True)
    language_id: Mapped[str] = mapped_column(ForeignKey("languages.id", ondelete="CASCADE"), primary_key=True)
    proficiency: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    resolved_via: Mapped[str] = mapped_column(db.String(16), nullable=False, default="person")

    person = relationship("Person", back_populates="language_assignments")
    language = relationship("Language", back_populates="assignments")
