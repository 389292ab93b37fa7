"""
Explicit handle on the destination store for one import run.

Phase functions receive this handle instead of reaching for a global
session, which keeps the transaction boundary in one place.
"""

from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.orm import Session

T = TypeVar("T")


class ImportStore:
    def __init__(self, session: Session):
        self.session = session

    def ping(self) -> None:
        self.session.execute(text("SELECT 1"))

    def add(self, instance) -> None:
        self.session.add(instance)

    def add_all(self, instances: Iterable) -> None:
        self.session.add_all(list(instances))

    def flush(self) -> None:
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def get(self, model: type[T], identity) -> T | None:
        return self.session.get(model, identity)

    def count(self, model: type) -> int:
        return int(self.session.scalar(select(func.count()).select_from(model)) or 0)

    def legacy_ids(self, model: type) -> set[int]:
        return set(self.session.scalars(select(model.legacy_id)))

    def detach_parents(self, model: type) -> None:
        """Null out self-referential parents so rows can be deleted in one statement."""
        self.session.execute(update(model).where(model.parent_id.is_not(None)).values(parent_id=None))

    def clear(self, models: Sequence[type]) -> dict[str, int]:
        """
        Delete every row of ``models``, children first.

        ``models`` is given parents first; it is walked in reverse.
        """

        removed: dict[str, int] = {}
        for model in reversed(list(models)):
            if hasattr(model, "parent_id"):
                self.detach_parents(model)
            result = self.session.execute(delete(model))
            removed[model.__tablename__] = int(result.rowcount or 0)
        return removed
