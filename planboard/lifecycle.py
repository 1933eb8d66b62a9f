"""Archive, restore and delete with explicit cascade over the entity tree.

Children are found through ``CHILDREN``, a table of parent kind to
``(child kind, foreign key column)`` pairs; nothing relies on the database's
own ``ON DELETE CASCADE``.
"""
from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import Callable, Iterator, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import Card, CardLabel, Label, Project, ProjectList, Subtask, now_utc
from .errors import NotFoundError
from .positions import PositionManager, Scope

logger = logging.getLogger(__name__)


class EntityKind(str, enum.Enum):
    PROJECT = "project"
    LIST = "list"
    LABEL = "label"
    CARD = "card"
    CARD_LABEL = "card_label"
    SUBTASK = "subtask"


MODELS: dict[EntityKind, type] = {
    EntityKind.PROJECT: Project,
    EntityKind.LIST: ProjectList,
    EntityKind.LABEL: Label,
    EntityKind.CARD: Card,
    EntityKind.CARD_LABEL: CardLabel,
    EntityKind.SUBTASK: Subtask,
}

CHILDREN: dict[EntityKind, tuple[tuple[EntityKind, str], ...]] = {
    EntityKind.PROJECT: ((EntityKind.LIST, "project_id"), (EntityKind.LABEL, "project_id")),
    EntityKind.LIST: ((EntityKind.CARD, "list_id"),),
    EntityKind.CARD: ((EntityKind.CARD_LABEL, "card_id"), (EntityKind.SUBTASK, "card_id")),
    EntityKind.LABEL: ((EntityKind.CARD_LABEL, "label_id"),),
    EntityKind.CARD_LABEL: (),
    EntityKind.SUBTASK: (),
}

POSITIONED = frozenset(
    {EntityKind.PROJECT, EntityKind.LIST, EntityKind.LABEL, EntityKind.CARD, EntityKind.SUBTASK}
)


class LifecycleManager:
    def __init__(
        self,
        session: Session,
        positions: Optional[PositionManager] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.session = session
        self.positions = positions or PositionManager(session)
        self.clock = clock

    def get(self, kind: EntityKind, entity_id: int):
        row = self.session.get(MODELS[kind], entity_id)
        if row is None:
            raise NotFoundError(kind.value, entity_id)
        return row

    def children(self, kind: EntityKind, entity) -> Iterator[tuple[EntityKind, list]]:
        self.session.flush()
        for child_kind, column in CHILDREN[kind]:
            model = MODELS[child_kind]
            stmt = (
                select(model)
                .where(getattr(model, column) == entity.id)
                .order_by(model.id)
            )
            yield child_kind, list(self.session.scalars(stmt))

    # === Archive ===

    def archive(self, kind: EntityKind, entity_id: int):
        entity = self.get(kind, entity_id)
        if entity.archived and not entity.archived_implicitly:
            return entity

        now = self.clock()
        was_active = not entity.archived
        entity.archived = True
        entity.archived_implicitly = False
        entity.updated_at = now
        if was_active and kind in POSITIONED:
            self.positions.remove_from(Scope.of(entity), entity)

        cascaded = self._archive_descendants(kind, entity, now)
        self.session.flush()
        logger.info("archived %s %s (%d descendants)", kind.value, entity_id, cascaded)
        return entity

    def _archive_descendants(self, kind: EntityKind, entity, now: datetime) -> int:
        archived = 0
        for child_kind, rows in self.children(kind, entity):
            for row in rows:
                if not row.archived:
                    row.archived = True
                    row.archived_implicitly = True
                    row.updated_at = now
                    archived += 1
                archived += self._archive_descendants(child_kind, row, now)
        return archived

    # === Restore ===

    def restore(self, kind: EntityKind, entity_id: int):
        entity = self.get(kind, entity_id)
        if not entity.archived:
            return entity

        now = self.clock()
        entity.archived = False
        entity.archived_implicitly = False
        entity.updated_at = now
        if kind in POSITIONED:
            self.positions.insert_at(Scope.of(entity), entity)

        revived = self._revive_descendants(kind, entity, now)
        self.session.flush()
        logger.info("restored %s %s (%d descendants visible again)", kind.value, entity_id, revived)
        return entity

    def _revive_descendants(self, kind: EntityKind, entity, now: datetime) -> int:
        # only rows archived by a cascade come back; explicit archives stay put
        revived = 0
        for child_kind, rows in self.children(kind, entity):
            implicit = [row for row in rows if row.archived and row.archived_implicitly]
            for row in implicit:
                row.archived = False
                row.archived_implicitly = False
                row.updated_at = now
            if implicit and child_kind in POSITIONED:
                self.positions.append_all(Scope.of(implicit[0]), implicit)
            for row in implicit:
                revived += 1 + self._revive_descendants(child_kind, row, now)
        return revived

    # === Delete ===

    def delete(self, kind: EntityKind, entity_id: int) -> int:
        """Hard-delete the entity and its subtree, returning the number of rows removed."""
        entity = self.get(kind, entity_id)
        if kind in POSITIONED and not entity.archived:
            self.positions.remove_from(Scope.of(entity), entity)

        removed = self._delete_descendants(kind, entity) + 1
        self.session.delete(entity)
        self.session.flush()
        logger.info("deleted %s %s (%d rows)", kind.value, entity_id, removed)
        return removed

    def _delete_descendants(self, kind: EntityKind, entity) -> int:
        removed = 0
        for child_kind, rows in self.children(kind, entity):
            for row in rows:
                removed += self._delete_descendants(child_kind, row) + 1
                self.session.delete(row)
        # children leave before their parent does
        self.session.flush()
        return removed
