"""Read side: hierarchical project views with derived card status.

A row is visible only when neither it nor any ancestor is archived. Views
with ``include_archived=True`` return everything, active rows first.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Iterable, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from .db import Card, CardLabel, Label, Project, ProjectList, Subtask, as_utc
from .errors import NotFoundError
from .schemas import (
    CardLabelOut,
    CardOut,
    CardView,
    LabelOut,
    ListOut,
    ListView,
    ProjectOut,
    ProjectSummary,
    ProjectView,
    Reminder,
    SubtaskOut,
)
from .status import derive_status

if TYPE_CHECKING:
    from .storage import Storage


# === Converters ===


def project_out(project: Project) -> ProjectOut:
    return ProjectOut(
        id=project.id,
        title=project.title,
        description=project.description,
        position=project.position,
        archived=project.archived,
        createdAt=project.created_at,
        updatedAt=project.updated_at,
    )


def label_out(label: Label) -> LabelOut:
    return LabelOut(
        id=label.id,
        projectId=label.project_id,
        title=label.title,
        color=label.color,
        position=label.position,
        archived=label.archived,
        createdAt=label.created_at,
        updatedAt=label.updated_at,
    )


def list_out(project_list: ProjectList) -> ListOut:
    return ListOut(
        id=project_list.id,
        projectId=project_list.project_id,
        title=project_list.title,
        position=project_list.position,
        archived=project_list.archived,
        createdAt=project_list.created_at,
        updatedAt=project_list.updated_at,
    )


def card_out(card: Card) -> CardOut:
    return CardOut(
        id=card.id,
        projectId=card.project_id,
        listId=card.list_id,
        title=card.title,
        description=card.description,
        important=card.important,
        startDate=card.start_date,
        dueDate=card.due_date,
        reminder=card.reminder,
        completed=card.completed,
        position=card.position,
        archived=card.archived,
        createdAt=card.created_at,
        updatedAt=card.updated_at,
    )


def card_label_out(link: CardLabel) -> CardLabelOut:
    return CardLabelOut(
        id=link.id,
        projectId=link.project_id,
        cardId=link.card_id,
        labelId=link.label_id,
        archived=link.archived,
        createdAt=link.created_at,
        updatedAt=link.updated_at,
    )


def subtask_out(subtask: Subtask) -> SubtaskOut:
    return SubtaskOut(
        id=subtask.id,
        projectId=subtask.project_id,
        cardId=subtask.card_id,
        value=subtask.value,
        completed=subtask.completed,
        position=subtask.position,
        archived=subtask.archived,
        createdAt=subtask.created_at,
        updatedAt=subtask.updated_at,
    )


def ordered(rows: Iterable) -> list:
    # active rows first; archived ones keep stale positions
    return sorted(rows, key=lambda row: (row.archived, row.position, row.id))


# === Projection ===


class Projection:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def _rows(self, session: Session, model: type, column, value, include_archived: bool) -> list:
        stmt = select(model).where(column == value)
        if not include_archived:
            stmt = stmt.where(model.archived.is_(False))
        return list(session.scalars(stmt))

    def _card_view(
        self,
        card: Card,
        labels: list[Label],
        subtasks: list[Subtask],
        now: datetime,
    ) -> CardView:
        subtasks = ordered(subtasks)
        status = derive_status(
            card.due_date,
            card.start_date,
            card.completed,
            now,
            self.storage.settings.due_soon_days,
        )
        return CardView(
            **card_out(card).model_dump(),
            status=status,
            labels=[label_out(label) for label in ordered(labels)],
            subtasks=[subtask_out(subtask) for subtask in subtasks],
            subtasksCompleted=sum(1 for subtask in subtasks if subtask.completed),
            subtasksTotal=len(subtasks),
        )

    def project_view(
        self,
        project_id: int,
        now: Optional[datetime] = None,
        include_archived: bool = False,
    ) -> ProjectView:
        now = now or self.storage.clock()
        with self.storage.transaction() as session:
            project = session.get(Project, project_id)
            if project is None or (project.archived and not include_archived):
                raise NotFoundError("project", project_id)

            labels = self._rows(session, Label, Label.project_id, project_id, include_archived)
            lists = self._rows(session, ProjectList, ProjectList.project_id, project_id, include_archived)
            cards = self._rows(session, Card, Card.project_id, project_id, include_archived)
            links = self._rows(session, CardLabel, CardLabel.project_id, project_id, include_archived)
            subtasks = self._rows(session, Subtask, Subtask.project_id, project_id, include_archived)

        labels_by_id = {label.id: label for label in labels}
        list_ids = {project_list.id for project_list in lists}
        cards = [card for card in cards if card.list_id in list_ids]
        card_ids = {card.id for card in cards}

        card_labels: dict[int, list[Label]] = defaultdict(list)
        for link in links:
            if link.card_id in card_ids and link.label_id in labels_by_id:
                card_labels[link.card_id].append(labels_by_id[link.label_id])
        card_subtasks: dict[int, list[Subtask]] = defaultdict(list)
        for subtask in subtasks:
            if subtask.card_id in card_ids:
                card_subtasks[subtask.card_id].append(subtask)
        list_cards: dict[int, list[Card]] = defaultdict(list)
        for card in ordered(cards):
            list_cards[card.list_id].append(card)

        return ProjectView(
            project=project_out(project),
            labels=[label_out(label) for label in ordered(labels)],
            lists=[
                ListView(
                    **list_out(project_list).model_dump(),
                    cards=[
                        self._card_view(card, card_labels[card.id], card_subtasks[card.id], now)
                        for card in list_cards[project_list.id]
                    ],
                )
                for project_list in ordered(lists)
            ],
        )

    def card_view(
        self,
        card_id: int,
        now: Optional[datetime] = None,
        include_archived: bool = False,
    ) -> CardView:
        now = now or self.storage.clock()
        with self.storage.transaction() as session:
            card = session.get(Card, card_id)
            if card is None:
                raise NotFoundError("card", card_id)
            if not include_archived:
                project_list = session.get(ProjectList, card.list_id)
                project = session.get(Project, card.project_id)
                if card.archived or project_list.archived or project.archived:
                    raise NotFoundError("card", card_id)

            stmt = (
                select(Label)
                .join(CardLabel, CardLabel.label_id == Label.id)
                .where(CardLabel.card_id == card_id)
            )
            if not include_archived:
                stmt = stmt.where(CardLabel.archived.is_(False), Label.archived.is_(False))
            labels = list(session.scalars(stmt))
            subtasks = self._rows(session, Subtask, Subtask.card_id, card_id, include_archived)

        return self._card_view(card, labels, subtasks, now)

    def list_projects(self, include_archived: bool = False) -> list[ProjectSummary]:
        with self.storage.transaction() as session:
            stmt = select(Project)
            if not include_archived:
                stmt = stmt.where(Project.archived.is_(False))
            projects = ordered(session.scalars(stmt))

            list_counts = dict(
                session.execute(
                    select(ProjectList.project_id, func.count(ProjectList.id))
                    .where(ProjectList.archived.is_(False))
                    .group_by(ProjectList.project_id)
                ).all()
            )
            card_counts = {
                project_id: (total, completed or 0)
                for project_id, total, completed in session.execute(
                    select(
                        Card.project_id,
                        func.count(Card.id),
                        func.sum(case((Card.completed.is_(True), 1), else_=0)),
                    )
                    .join(ProjectList, ProjectList.id == Card.list_id)
                    .where(Card.archived.is_(False), ProjectList.archived.is_(False))
                    .group_by(Card.project_id)
                ).all()
            }

        summaries = []
        for project in projects:
            total, completed = card_counts.get(project.id, (0, 0))
            summaries.append(
                ProjectSummary(
                    **project_out(project).model_dump(),
                    listsCount=list_counts.get(project.id, 0),
                    cardsCount=total,
                    completedCount=completed,
                )
            )
        return summaries

    def due_reminders(self, now: Optional[datetime] = None) -> list[Reminder]:
        """Visible, incomplete cards whose reminder window contains ``now``."""
        now = as_utc(now or self.storage.clock())
        with self.storage.transaction() as session:
            stmt = (
                select(Card)
                .join(ProjectList, ProjectList.id == Card.list_id)
                .join(Project, Project.id == Card.project_id)
                .where(
                    Card.reminder.is_not(None),
                    Card.due_date.is_not(None),
                    Card.completed.is_(False),
                    Card.archived.is_(False),
                    ProjectList.archived.is_(False),
                    Project.archived.is_(False),
                )
            )
            cards = list(session.scalars(stmt))

        reminders = []
        for card in sorted(cards, key=lambda c: (c.due_date, c.id)):
            remind_at = card.due_date - timedelta(minutes=card.reminder)
            if remind_at <= now <= card.due_date:
                reminders.append(Reminder(card=card_out(card), remindAt=remind_at, dueDate=card.due_date))
        return reminders
