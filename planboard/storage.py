from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .config import Settings, get_settings
from .db import init_db, make_engine, make_session_factory, now_utc
from .errors import StorageError
from .queries import Projection
from .stores import CardLabelStore, CardStore, LabelStore, ListStore, ProjectStore, SubtaskStore

logger = logging.getLogger(__name__)


class Storage:
    """SQLite-backed store for projects, lists, cards, labels and subtasks.

    Every operation runs in its own transaction: it commits as a whole or
    rolls back and leaves the previous state untouched.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.settings = settings or get_settings()
        if session_factory is None:
            engine = make_engine(self.settings.resolved_database_url)
            init_db(engine)
            session_factory = make_session_factory(engine)
        self.session_factory = session_factory
        self.clock = clock

        self.projects = ProjectStore(self)
        self.lists = ListStore(self)
        self.labels = LabelStore(self)
        self.cards = CardStore(self)
        self.subtasks = SubtaskStore(self)
        self.card_labels = CardLabelStore(self)
        self.queries = Projection(self)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("transaction rolled back: %s", exc)
            raise StorageError(f"storage failure: {exc}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
