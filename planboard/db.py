from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Text,
    TypeDecorator,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """DateTime that always round-trips as an aware UTC value.

    SQLite drops the offset when storing ``DateTime(timezone=True)``, so values
    are normalised on the way in and re-tagged on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def flag(name: str, default: bool = False) -> Mapped[bool]:
    # stored as 0/1 with CHECK (name IN (0, 1))
    return mapped_column(
        Boolean(create_constraint=True, name=name),
        nullable=False,
        default=default,
    )


def parent_key(table: str) -> Mapped[int]:
    return mapped_column(
        Integer,
        ForeignKey(f"{table}.id", ondelete="CASCADE", onupdate="CASCADE"),
        index=True,
    )


class Timestamped:
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=now_utc)


class Archivable(Timestamped):
    archived: Mapped[bool] = flag("archived")
    # set when the row was archived by an ancestor's cascade, not by itself
    archived_implicitly: Mapped[bool] = flag("archived_implicitly")


class Project(Archivable, Base):
    __tablename__ = "project"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(140))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, index=True)


class Label(Archivable, Base):
    __tablename__ = "project_label"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = parent_key("project")
    title: Mapped[str] = mapped_column(String(80))
    color: Mapped[str] = mapped_column(String(32))
    position: Mapped[int] = mapped_column(Integer)


class ProjectList(Archivable, Base):
    __tablename__ = "project_list"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = parent_key("project")
    title: Mapped[str] = mapped_column(String(80))
    position: Mapped[int] = mapped_column(Integer)


class Card(Archivable, Base):
    __tablename__ = "project_card"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = parent_key("project")
    list_id: Mapped[int] = parent_key("project_list")
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    important: Mapped[bool] = flag("important")
    start_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    reminder: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes before due_date
    completed: Mapped[bool] = flag("completed")
    position: Mapped[int] = mapped_column(Integer)


class CardLabel(Archivable, Base):
    __tablename__ = "card_label"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = parent_key("project")
    card_id: Mapped[int] = parent_key("project_card")
    label_id: Mapped[int] = parent_key("project_label")


class Subtask(Archivable, Base):
    __tablename__ = "card_subtask"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = parent_key("project")
    card_id: Mapped[int] = parent_key("project_card")
    value: Mapped[str] = mapped_column(Text)
    completed: Mapped[bool] = flag("completed")
    position: Mapped[int] = mapped_column(Integer)


def _sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.close()


def make_engine(database_url: str, **kwargs) -> Engine:
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(database_url, **kwargs)
    if is_sqlite:
        event.listen(engine, "connect", _sqlite_pragmas)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    # expire_on_commit=False keeps returned rows readable after the transaction
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
