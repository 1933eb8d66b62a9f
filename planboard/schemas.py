from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from .status import CardStatus


class ErrorEnvelope(BaseModel):
    code: str
    message: str
    details: Optional[dict[str, Any]] = None


class Health(BaseModel):
    status: str = "ok"


class MoveIn(BaseModel):
    position: int


# === Projects ===


class LabelIn(BaseModel):
    title: str = Field(min_length=1, max_length=80)
    color: str = Field(min_length=1, max_length=32)
    position: Optional[int] = None


class LabelPatch(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=80)
    color: Optional[str] = Field(default=None, min_length=1, max_length=32)


class LabelOut(BaseModel):
    id: int
    projectId: int
    title: str
    color: str
    position: int
    archived: bool
    createdAt: datetime
    updatedAt: datetime


class ProjectIn(BaseModel):
    title: str = Field(min_length=1, max_length=140)
    description: Optional[str] = Field(default=None, max_length=2000)
    labels: list[LabelIn] = Field(default_factory=list)
    position: Optional[int] = None


class ProjectPatch(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=140)
    description: Optional[str] = Field(default=None, max_length=2000)


class ProjectOut(BaseModel):
    id: int
    title: str
    description: Optional[str]
    position: int
    archived: bool
    createdAt: datetime
    updatedAt: datetime


class ProjectSummary(ProjectOut):
    listsCount: int
    cardsCount: int
    completedCount: int


# === Lists ===


class ListIn(BaseModel):
    title: str = Field(min_length=1, max_length=80)
    position: Optional[int] = None


class ListPatch(BaseModel):
    title: str = Field(min_length=1, max_length=80)


class ListOut(BaseModel):
    id: int
    projectId: int
    title: str
    position: int
    archived: bool
    createdAt: datetime
    updatedAt: datetime


# === Cards ===


class CardIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=8000)
    important: bool = False
    startDate: Optional[datetime] = None
    dueDate: Optional[datetime] = None
    reminder: Optional[int] = Field(default=None, ge=0)
    completed: bool = False
    position: Optional[int] = None


class CardPatch(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=8000)
    important: Optional[bool] = None
    startDate: Optional[datetime] = None
    dueDate: Optional[datetime] = None
    reminder: Optional[int] = Field(default=None, ge=0)
    completed: Optional[bool] = None


class CardMove(BaseModel):
    toListId: Optional[int] = None
    position: Optional[int] = None


class CardOut(BaseModel):
    id: int
    projectId: int
    listId: int
    title: str
    description: Optional[str]
    important: bool
    startDate: Optional[datetime]
    dueDate: Optional[datetime]
    reminder: Optional[int]
    completed: bool
    position: int
    archived: bool
    createdAt: datetime
    updatedAt: datetime


class CardLabelIn(BaseModel):
    labelId: int


class CardLabelOut(BaseModel):
    id: int
    projectId: int
    cardId: int
    labelId: int
    archived: bool
    createdAt: datetime
    updatedAt: datetime


# === Subtasks ===


class SubtaskIn(BaseModel):
    value: str = Field(min_length=1, max_length=2000)
    completed: bool = False
    position: Optional[int] = None


class SubtaskPatch(BaseModel):
    value: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    completed: Optional[bool] = None


class SubtaskOut(BaseModel):
    id: int
    projectId: int
    cardId: int
    value: str
    completed: bool
    position: int
    archived: bool
    createdAt: datetime
    updatedAt: datetime


# === Hierarchical views ===


class CardView(CardOut):
    status: CardStatus
    labels: list[LabelOut]
    subtasks: list[SubtaskOut]
    subtasksCompleted: int
    subtasksTotal: int


class ListView(ListOut):
    cards: list[CardView]


class ProjectView(BaseModel):
    project: ProjectOut
    labels: list[LabelOut]
    lists: list[ListView]


class Reminder(BaseModel):
    card: CardOut
    remindAt: datetime
    dueDate: datetime
