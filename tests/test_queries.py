from datetime import datetime, timedelta, timezone

import pytest

from planboard.errors import NotFoundError
from planboard.status import CardStatus

NOW = datetime(2024, 1, 10, tzinfo=timezone.utc)


def test_project_view_shape(storage, board):
    view = storage.queries.project_view(board["project"].id)

    assert view.project.title == "Launch"
    assert [label.title for label in view.labels] == ["bug", "ux"]
    assert [(column.title, column.position) for column in view.lists] == [("Todo", 0), ("Done", 1)]

    todo, done = view.lists
    write, test = todo.cards
    assert (write.title, write.position, test.title, test.position) == ("Write docs", 0, "Test", 1)
    assert [label.title for label in write.labels] == ["bug"]
    assert [subtask.value for subtask in write.subtasks] == ["outline", "draft"]
    assert (write.subtasksCompleted, write.subtasksTotal) == (1, 2)
    assert [card.status for card in done.cards] == [CardStatus.COMPLETED]


def test_status_is_derived_on_read(storage, board):
    write = board["cards"]["write"]
    storage.cards.update(write.id, due_date=datetime(2024, 1, 12, tzinfo=timezone.utc))

    soon = storage.queries.project_view(board["project"].id)
    assert soon.lists[0].cards[0].status == CardStatus.DUE_SOON

    later = storage.queries.project_view(board["project"].id, now=NOW + timedelta(days=5))
    assert later.lists[0].cards[0].status == CardStatus.OVERDUE


def test_due_soon_days_comes_from_settings(storage, board, settings):
    write = board["cards"]["write"]
    storage.cards.update(write.id, due_date=NOW + timedelta(days=5))
    assert storage.queries.card_view(write.id).status == CardStatus.DEFAULT

    storage.settings = settings.model_copy(update={"due_soon_days": 7})
    assert storage.queries.card_view(write.id).status == CardStatus.DUE_SOON


def test_archived_rows_are_hidden(storage, board):
    storage.cards.archive(board["cards"]["test"].id)
    storage.labels.archive(board["labels"]["bug"].id)
    storage.subtasks.archive(board["subtasks"][0].id)

    view = storage.queries.project_view(board["project"].id)
    assert [label.title for label in view.labels] == ["ux"]
    todo = view.lists[0]
    assert [card.title for card in todo.cards] == ["Write docs"]
    assert todo.cards[0].labels == []
    assert [subtask.value for subtask in todo.cards[0].subtasks] == ["draft"]

    full = storage.queries.project_view(board["project"].id, include_archived=True)
    assert [card.title for card in full.lists[0].cards] == ["Write docs", "Test"]
    assert full.lists[0].cards[1].archived


def test_card_view(storage, board):
    write = board["cards"]["write"]
    view = storage.queries.card_view(write.id)
    assert view.title == "Write docs"
    assert [label.title for label in view.labels] == ["bug"]

    storage.cards.archive(write.id)
    with pytest.raises(NotFoundError):
        storage.queries.card_view(write.id)
    assert storage.queries.card_view(write.id, include_archived=True).archived


def test_missing_project(storage):
    with pytest.raises(NotFoundError):
        storage.queries.project_view(42)


def test_list_projects(storage, board):
    other = storage.projects.create("Other")
    summaries = storage.queries.list_projects()

    assert [(s.title, s.position) for s in summaries] == [("Launch", 0), ("Other", 1)]
    launch = summaries[0]
    assert (launch.listsCount, launch.cardsCount, launch.completedCount) == (2, 3, 1)
    assert (summaries[1].listsCount, summaries[1].cardsCount) == (0, 0)

    storage.lists.archive(board["lists"]["done"].id)
    launch = storage.queries.list_projects()[0]
    assert (launch.listsCount, launch.cardsCount, launch.completedCount) == (1, 2, 0)

    storage.projects.move(other.id, 0)
    assert [s.title for s in storage.queries.list_projects()] == ["Other", "Launch"]


def test_due_reminders(storage, board):
    todo = board["lists"]["todo"]
    due = NOW + timedelta(minutes=30)
    storage.cards.create(todo.id, "open window", due_date=due, reminder=60)
    storage.cards.create(todo.id, "too early", due_date=due, reminder=10)
    storage.cards.create(todo.id, "no reminder", due_date=due)
    storage.cards.create(todo.id, "done already", due_date=due, reminder=60, completed=True)
    hidden = storage.cards.create(board["lists"]["done"].id, "archived list", due_date=due, reminder=60)
    storage.lists.archive(hidden.list_id)

    reminders = storage.queries.due_reminders()
    assert [reminder.card.title for reminder in reminders] == ["open window"]
    assert reminders[0].remindAt == due - timedelta(minutes=60)

    assert storage.queries.due_reminders(now=due + timedelta(minutes=1)) == []
