from datetime import datetime, timezone

import pytest
from sqlalchemy.pool import StaticPool

from planboard.config import Settings
from planboard.db import init_db, make_engine, make_session_factory
from planboard.positions import PositionManager, Scope
from planboard.storage import Storage

NOW = datetime(2024, 1, 10, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", due_soon_days=3, max_lists=5)


@pytest.fixture
def storage(engine, settings):
    return Storage(make_session_factory(engine), settings=settings, clock=lambda: NOW)


@pytest.fixture
def ordering(storage):
    """Active rows of a scope as ``(title, position)`` pairs in order."""

    def _ordering(model, column=None, parent_id=None):
        with storage.transaction() as session:
            rows = PositionManager(session).active(Scope(model, column, parent_id))
            return [(getattr(row, "title", None) or row.value, row.position) for row in rows]

    return _ordering


@pytest.fixture
def board(storage):
    """A project with two lists, three cards, two labels and a few subtasks."""
    project = storage.projects.create("Launch", "ship it", labels=[("bug", "red"), ("ux", "#00ff00")])
    view = storage.queries.project_view(project.id)
    bug, ux = view.labels
    todo = storage.lists.create(project.id, "Todo")
    done = storage.lists.create(project.id, "Done")
    write = storage.cards.create(todo.id, "Write docs")
    test = storage.cards.create(todo.id, "Test")
    ship = storage.cards.create(done.id, "Ship", completed=True)
    storage.card_labels.attach(write.id, bug.id)
    storage.card_labels.attach(test.id, ux.id)
    first = storage.subtasks.create(write.id, "outline")
    second = storage.subtasks.create(write.id, "draft", completed=True)
    return {
        "project": project,
        "labels": {"bug": bug, "ux": ux},
        "lists": {"todo": todo, "done": done},
        "cards": {"write": write, "test": test, "ship": ship},
        "subtasks": [first, second],
    }
