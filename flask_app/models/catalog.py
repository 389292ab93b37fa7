# flask_app/models/catalog.py
"""
Catalog entities rebuilt from the legacy taxonomies: skills, equipment brands
and spoken languages.

Every row keeps the numeric id it had in the legacy export in ``legacy_id``.
The primary key is derived from it (``skill_10``) so re-imports reproduce the
same identifiers.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, db


class Skill(BaseModel):
    __tablename__ = "skills"

    id: Mapped[str] = mapped_column(db.String(64), primary_key=True)
    legacy_id: Mapped[int] = mapped_column(db.Integer, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    slug: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    category: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    usage_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    is_orphan_root: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    parent_id: Mapped[str | None] = mapped_column(ForeignKey("skills.id"), nullable=True, index=True)

    parent = relationship("Skill", remote_side="Skill.id", back_populates="children")
    children = relationship("Skill", back_populates="parent")
    assignments = relationship("SkillAssignment", back_populates="skill", passive_deletes=True)

    def __repr__(self):
        return f"<Skill {self.id} {self.name!r}>"


class Brand(BaseModel):
    __tablename__ = "brands"

    id: Mapped[str] = mapped_column(db.String(64), primary_key=True)
    legacy_id: Mapped[int] = mapped_column(db.Integer, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    slug: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    category: Mapped[str | None] = mapped_column(db.String(255), nullable=True, index=True)
    usage_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    is_orphan_root: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    parent_id: Mapped[str | None] = mapped_column(ForeignKey("brands.id"), nullable=True, index=True)

    parent = relationship("Brand", remote_side="Brand.id", back_populates="children")
    children = relationship("Brand", back_populates="parent")

    def __repr__(self):
        return f"<Brand {self.id} {self.name!r}>"


class Language(BaseModel):
    __tablename__ = "languages"

    id: Mapped[str] = mapped_column(db.String(64), primary_key=True)
    legacy_id: Mapped[int] = mapped_column(db.Integer, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    code: Mapped[str] = mapped_column(db.String(16), nullable=False)
    usage_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)

    assignments = relationship("LanguageAssignment", back_populates="language", passive_deletes=True)

    __table_args__ = (Index("idx_languages_code", "code"),)

    def __repr__(self):
        return f"<Language {self.id} {self.name!r} ({self.code})>"
