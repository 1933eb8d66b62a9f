from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .db import Card, CardLabel, Label, Project, ProjectList, Subtask
from .errors import (
    DuplicateAssociationError,
    LimitExceededError,
    NotFoundError,
    ReferentialViolationError,
    ValidationError,
)
from .lifecycle import EntityKind, LifecycleManager
from .positions import PositionManager, Scope
from .utils import (
    as_flag,
    color_token,
    optional_datetime,
    optional_text,
    reminder_minutes,
    require_text,
)

if TYPE_CHECKING:
    from .storage import Storage

logger = logging.getLogger(__name__)


class EntityStore:
    """Shared get/archive/restore/delete for one entity kind."""

    kind: EntityKind

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    @property
    def now(self) -> datetime:
        return self.storage.clock()

    def managers(self, session: Session) -> tuple[PositionManager, LifecycleManager]:
        positions = PositionManager(session)
        return positions, LifecycleManager(session, positions, self.storage.clock)

    def new(self, model: type, **fields):
        now = self.now
        return model(
            created_at=now,
            updated_at=now,
            archived=False,
            archived_implicitly=False,
            **fields,
        )

    def apply(self, entity, changes: dict[str, Any], cleaners: dict[str, Callable[[Any], Any]]):
        unknown = set(changes) - set(cleaners)
        if unknown:
            raise ValidationError(f"unknown fields: {', '.join(sorted(unknown))}")
        for field, value in changes.items():
            setattr(entity, field, cleaners[field](value))
        entity.updated_at = self.now
        return entity

    def get(self, entity_id: int):
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            return lifecycle.get(self.kind, entity_id)

    def archive(self, entity_id: int):
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            return lifecycle.archive(self.kind, entity_id)

    def restore(self, entity_id: int):
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            return lifecycle.restore(self.kind, entity_id)

    def delete(self, entity_id: int) -> int:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            return lifecycle.delete(self.kind, entity_id)


class PositionedStore(EntityStore):
    def move(self, entity_id: int, index: int):
        with self.storage.transaction() as session:
            positions, lifecycle = self.managers(session)
            entity = lifecycle.get(self.kind, entity_id)
            if entity.archived:
                raise ValidationError(f"archived {self.kind.value} cannot be moved")
            positions.move_to(Scope.of(entity), entity, index)
            entity.updated_at = self.now
            logger.info("moved %s %s to %d", self.kind.value, entity_id, index)
            return entity


# === Projects & labels ===


class ProjectStore(PositionedStore):
    kind = EntityKind.PROJECT

    def create(
        self,
        title: str,
        description: Optional[str] = None,
        labels: Iterable[tuple[str, str]] = (),
        index: Optional[int] = None,
    ) -> Project:
        with self.storage.transaction() as session:
            positions, _ = self.managers(session)
            project = self.new(
                Project,
                title=require_text(title, "title"),
                description=optional_text(description),
            )
            positions.insert_at(Scope(Project), project, index)
            session.flush()
            for label_title, color in labels:
                label = self.new(
                    Label,
                    project_id=project.id,
                    title=require_text(label_title, "title"),
                    color=color_token(color),
                )
                positions.insert_at(Scope.of(label), label)
            logger.info("created project %s", project.id)
            return project

    def update(self, project_id: int, **changes) -> Project:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            project = lifecycle.get(self.kind, project_id)
            return self.apply(
                project,
                changes,
                {
                    "title": lambda v: require_text(v, "title"),
                    "description": optional_text,
                },
            )

    def restore(self, project_id: int) -> Project:
        # lists archived with the project come back with it and count against max_lists
        with self.storage.transaction() as session:
            positions, lifecycle = self.managers(session)
            project = lifecycle.get(self.kind, project_id)
            if project.archived:
                returning = session.scalar(
                    select(func.count())
                    .select_from(ProjectList)
                    .where(
                        ProjectList.project_id == project_id,
                        ProjectList.archived.is_(True),
                        ProjectList.archived_implicitly.is_(True),
                    )
                )
                if returning:
                    self.storage.lists.check_capacity(positions, project_id, returning)
            return lifecycle.restore(self.kind, project_id)


class LabelStore(PositionedStore):
    kind = EntityKind.LABEL

    def create(self, project_id: int, title: str, color: str, index: Optional[int] = None) -> Label:
        with self.storage.transaction() as session:
            positions, lifecycle = self.managers(session)
            lifecycle.get(EntityKind.PROJECT, project_id)
            label = self.new(
                Label,
                project_id=project_id,
                title=require_text(title, "title"),
                color=color_token(color),
            )
            positions.insert_at(Scope.of(label), label, index)
            session.flush()
            logger.info("created label %s in project %s", label.id, project_id)
            return label

    def update(self, label_id: int, **changes) -> Label:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            label = lifecycle.get(self.kind, label_id)
            return self.apply(
                label,
                changes,
                {"title": lambda v: require_text(v, "title"), "color": color_token},
            )


# === Lists ===


class ListStore(PositionedStore):
    kind = EntityKind.LIST

    def check_capacity(self, positions: PositionManager, project_id: int, incoming: int = 1) -> None:
        max_lists = self.storage.settings.max_lists
        active = positions.count(Scope(ProjectList, "project_id", project_id))
        if active + incoming > max_lists:
            raise LimitExceededError(
                f"project {project_id} has {active} lists, {incoming} more exceeds max {max_lists}",
                {"project_id": project_id, "max_lists": max_lists, "active": active, "incoming": incoming},
            )

    def create(self, project_id: int, title: str, index: Optional[int] = None) -> ProjectList:
        with self.storage.transaction() as session:
            positions, lifecycle = self.managers(session)
            lifecycle.get(EntityKind.PROJECT, project_id)
            self.check_capacity(positions, project_id)
            project_list = self.new(
                ProjectList,
                project_id=project_id,
                title=require_text(title, "title"),
            )
            positions.insert_at(Scope.of(project_list), project_list, index)
            session.flush()
            logger.info("created list %s in project %s", project_list.id, project_id)
            return project_list

    def update(self, list_id: int, **changes) -> ProjectList:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            project_list = lifecycle.get(self.kind, list_id)
            return self.apply(project_list, changes, {"title": lambda v: require_text(v, "title")})

    def restore(self, list_id: int) -> ProjectList:
        with self.storage.transaction() as session:
            positions, lifecycle = self.managers(session)
            project_list = lifecycle.get(self.kind, list_id)
            if project_list.archived:
                self.check_capacity(positions, project_list.project_id)
            return lifecycle.restore(self.kind, list_id)


# === Cards ===


CARD_FIELDS: dict[str, Callable[[Any], Any]] = {
    "title": lambda v: require_text(v, "title"),
    "description": optional_text,
    "important": lambda v: as_flag(v, "important"),
    "start_date": lambda v: optional_datetime(v, "start_date"),
    "due_date": lambda v: optional_datetime(v, "due_date"),
    "reminder": reminder_minutes,
    "completed": lambda v: as_flag(v, "completed"),
}


class CardStore(PositionedStore):
    kind = EntityKind.CARD

    def create(
        self,
        list_id: int,
        title: str,
        *,
        project_id: Optional[int] = None,
        description: Optional[str] = None,
        important: bool = False,
        start_date: Optional[datetime] = None,
        due_date: Optional[datetime] = None,
        reminder: Optional[int] = None,
        completed: bool = False,
        index: Optional[int] = None,
    ) -> Card:
        with self.storage.transaction() as session:
            positions, lifecycle = self.managers(session)
            project_list = lifecycle.get(EntityKind.LIST, list_id)
            if project_id is not None and project_id != project_list.project_id:
                raise ReferentialViolationError(
                    f"list {list_id} does not belong to project {project_id}",
                    {"list_id": list_id, "project_id": project_id},
                )
            card = self.new(
                Card,
                project_id=project_list.project_id,
                list_id=list_id,
                title=require_text(title, "title"),
                description=optional_text(description),
                important=as_flag(important, "important"),
                start_date=optional_datetime(start_date, "start_date"),
                due_date=optional_datetime(due_date, "due_date"),
                reminder=reminder_minutes(reminder),
                completed=as_flag(completed, "completed"),
            )
            positions.insert_at(Scope.of(card), card, index)
            session.flush()
            logger.info("created card %s in list %s", card.id, list_id)
            return card

    def update(self, card_id: int, **changes) -> Card:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            card = lifecycle.get(self.kind, card_id)
            return self.apply(card, changes, CARD_FIELDS)

    def toggle_completed(self, card_id: int) -> Card:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            card = lifecycle.get(self.kind, card_id)
            return self.apply(card, {"completed": not card.completed}, CARD_FIELDS)

    def toggle_important(self, card_id: int) -> Card:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            card = lifecycle.get(self.kind, card_id)
            return self.apply(card, {"important": not card.important}, CARD_FIELDS)

    def move(self, card_id: int, index: Optional[int] = None, list_id: Optional[int] = None) -> Card:
        """Reorder a card within its list, or move it to another list of the same project.

        Without ``index`` a card moved to another list is appended at the end
        and a card staying in its list goes last.
        """
        with self.storage.transaction() as session:
            positions, lifecycle = self.managers(session)
            card = lifecycle.get(self.kind, card_id)
            if card.archived:
                raise ValidationError("archived card cannot be moved")

            if list_id is None or list_id == card.list_id:
                scope = Scope.of(card)
                if index is None:
                    index = positions.count(scope) - 1
                positions.move_to(scope, card, index)
            else:
                target = lifecycle.get(EntityKind.LIST, list_id)
                if target.project_id != card.project_id:
                    raise ReferentialViolationError(
                        f"list {list_id} belongs to another project",
                        {"list_id": list_id, "project_id": card.project_id},
                    )
                if target.archived:
                    raise ValidationError(f"list {list_id} is archived")
                positions.remove_from(Scope.of(card), card)
                card.list_id = target.id
                index = positions.insert_at(Scope.of(card), card, index)

            card.updated_at = self.now
            logger.info("moved card %s to list %s at %d", card_id, card.list_id, index)
            return card


# === Subtasks ===


SUBTASK_FIELDS: dict[str, Callable[[Any], Any]] = {
    "value": lambda v: require_text(v, "value"),
    "completed": lambda v: as_flag(v, "completed"),
}


class SubtaskStore(PositionedStore):
    kind = EntityKind.SUBTASK

    def create(
        self,
        card_id: int,
        value: str,
        completed: bool = False,
        index: Optional[int] = None,
    ) -> Subtask:
        with self.storage.transaction() as session:
            positions, lifecycle = self.managers(session)
            card = lifecycle.get(EntityKind.CARD, card_id)
            subtask = self.new(
                Subtask,
                project_id=card.project_id,
                card_id=card_id,
                value=require_text(value, "value"),
                completed=as_flag(completed, "completed"),
            )
            positions.insert_at(Scope.of(subtask), subtask, index)
            session.flush()
            logger.info("created subtask %s on card %s", subtask.id, card_id)
            return subtask

    def update(self, subtask_id: int, **changes) -> Subtask:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            subtask = lifecycle.get(self.kind, subtask_id)
            return self.apply(subtask, changes, SUBTASK_FIELDS)

    def toggle_completed(self, subtask_id: int) -> Subtask:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            subtask = lifecycle.get(self.kind, subtask_id)
            return self.apply(subtask, {"completed": not subtask.completed}, SUBTASK_FIELDS)


# === Card labels ===


class CardLabelStore(EntityStore):
    """Links between cards and labels of the same project.

    A second active link for the same pair raises
    ``DuplicateAssociationError``; an archived link is reactivated instead of
    duplicated.
    """

    kind = EntityKind.CARD_LABEL

    @staticmethod
    def _find(session: Session, card_id: int, label_id: int) -> list[CardLabel]:
        stmt = (
            select(CardLabel)
            .where(CardLabel.card_id == card_id, CardLabel.label_id == label_id)
            .order_by(CardLabel.id)
        )
        return list(session.scalars(stmt))

    def attach(self, card_id: int, label_id: int) -> CardLabel:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            card = lifecycle.get(EntityKind.CARD, card_id)
            label = lifecycle.get(EntityKind.LABEL, label_id)
            if card.project_id != label.project_id:
                raise ReferentialViolationError(
                    f"label {label_id} does not belong to the project of card {card_id}",
                    {"card_id": card_id, "label_id": label_id},
                )

            existing = self._find(session, card_id, label_id)
            if any(not link.archived for link in existing):
                raise DuplicateAssociationError(
                    f"label {label_id} is already attached to card {card_id}",
                    {"card_id": card_id, "label_id": label_id},
                )
            if existing:
                return lifecycle.restore(self.kind, existing[0].id)

            link = self.new(CardLabel, project_id=card.project_id, card_id=card_id, label_id=label_id)
            session.add(link)
            session.flush()
            logger.info("attached label %s to card %s", label_id, card_id)
            return link

    def detach(self, card_id: int, label_id: int) -> CardLabel:
        with self.storage.transaction() as session:
            _, lifecycle = self.managers(session)
            active = [link for link in self._find(session, card_id, label_id) if not link.archived]
            if not active:
                raise NotFoundError(self.kind.value, f"{card_id}/{label_id}")
            return lifecycle.archive(self.kind, active[0].id)
