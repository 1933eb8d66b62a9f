"""Dense ordering of sibling rows within a parent scope.

Active siblings of a scope always hold positions ``0..n-1``. Archived rows
keep whatever position they had when they left the ordering. All work happens
inside the caller's session so a failed operation rolls back every shift.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import Card, Label, Project, ProjectList, Subtask
from .errors import InvalidPositionError

logger = logging.getLogger(__name__)

# positioned model -> column holding the parent id (None for top level)
PARENT_COLUMN: dict[type, Optional[str]] = {
    Project: None,
    ProjectList: "project_id",
    Label: "project_id",
    Card: "list_id",
    Subtask: "card_id",
}


@dataclass(frozen=True)
class Scope:
    model: type
    parent_column: Optional[str] = None
    parent_id: Optional[int] = None

    @classmethod
    def of(cls, entity) -> "Scope":
        model = type(entity)
        column = PARENT_COLUMN[model]
        return cls(model, column, getattr(entity, column) if column else None)

    def statement(self):
        stmt = select(self.model).where(self.model.archived.is_(False))
        if self.parent_column is not None:
            stmt = stmt.where(getattr(self.model, self.parent_column) == self.parent_id)
        return stmt.order_by(self.model.position, self.model.id)

    def __str__(self) -> str:
        if self.parent_column is None:
            return self.model.__tablename__
        return f"{self.model.__tablename__}[{self.parent_column}={self.parent_id}]"


class PositionManager:
    def __init__(self, session: Session) -> None:
        self.session = session

    def active(self, scope: Scope, exclude: Iterable = ()) -> list:
        """Active siblings of ``scope`` in order, minus the ``exclude`` rows."""
        self.session.flush()
        skip = {id(row) for row in exclude}
        return [row for row in self.session.scalars(scope.statement()) if id(row) not in skip]

    def count(self, scope: Scope) -> int:
        return len(self.active(scope))

    def insert_at(self, scope: Scope, entity, index: Optional[int] = None) -> int:
        siblings = self.active(scope, exclude=[entity])
        if index is None:
            index = len(siblings)
        if index < 0 or index > len(siblings):
            raise InvalidPositionError(index, len(siblings))
        siblings.insert(index, entity)
        self._renumber(siblings)
        if entity not in self.session:
            self.session.add(entity)
        logger.debug("inserted into %s at %d", scope, index)
        return index

    def move_to(self, scope: Scope, entity, new_index: int) -> int:
        # removal then insertion, computed against the post-removal ordering
        siblings = self.active(scope, exclude=[entity])
        if new_index < 0 or new_index > len(siblings):
            raise InvalidPositionError(new_index, len(siblings))
        siblings.insert(new_index, entity)
        self._renumber(siblings)
        logger.debug("moved %s in %s to %d", entity.id, scope, new_index)
        return new_index

    def remove_from(self, scope: Scope, entity) -> None:
        siblings = self.active(scope, exclude=[entity])
        self._renumber(siblings)
        logger.debug("removed %s from %s", entity.id, scope)

    def append_all(self, scope: Scope, entities: Iterable) -> None:
        """Re-append ``entities`` at the end, keeping their previous relative order."""
        entities = sorted(entities, key=lambda row: (row.position, row.id))
        if not entities:
            return
        siblings = self.active(scope, exclude=entities)
        self._renumber(siblings + entities)

    @staticmethod
    def _renumber(rows: list) -> None:
        for index, row in enumerate(rows):
            if row.position != index:
                row.position = index
