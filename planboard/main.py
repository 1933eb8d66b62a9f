from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Callable

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import get_settings
from .errors import (
    DuplicateAssociationError,
    InvalidPositionError,
    LimitExceededError,
    NotFoundError,
    PlanboardError,
    ReferentialViolationError,
    StorageError,
    ValidationError,
)
from .logging import setup_logging
from .queries import card_label_out, card_out, label_out, list_out, project_out, subtask_out
from .schemas import (
    CardIn,
    CardLabelIn,
    CardLabelOut,
    CardMove,
    CardOut,
    CardPatch,
    CardView,
    ErrorEnvelope,
    Health,
    LabelIn,
    LabelOut,
    LabelPatch,
    ListIn,
    ListOut,
    ListPatch,
    MoveIn,
    ProjectIn,
    ProjectOut,
    ProjectPatch,
    ProjectSummary,
    ProjectView,
    Reminder,
    SubtaskIn,
    SubtaskOut,
    SubtaskPatch,
)
from .storage import Storage


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    yield


app = FastAPI(title="Planboard API", version="1.0.0", lifespan=lifespan)


@lru_cache
def get_storage() -> Storage:
    return Storage()


# === Helpers ===

STATUS_CODES: dict[type, int] = {
    NotFoundError: 404,
    InvalidPositionError: 409,
    LimitExceededError: 409,
    DuplicateAssociationError: 409,
    ReferentialViolationError: 409,
    ValidationError: 422,
    StorageError: 503,
}

CARD_RENAMES = {"startDate": "start_date", "dueDate": "due_date"}


@app.exception_handler(PlanboardError)
def planboard_error(request: Request, exc: PlanboardError) -> JSONResponse:
    status_code = next(
        (code for cls, code in STATUS_CODES.items() if isinstance(exc, cls)),
        400,
    )
    envelope = ErrorEnvelope(code=exc.code, message=exc.message, details=exc.details)
    return JSONResponse(status_code=status_code, content=envelope.model_dump())


def changes(payload: BaseModel, renames: dict[str, str] | None = None) -> dict:
    renames = renames or {}
    return {renames.get(k, k): v for k, v in payload.model_dump(exclude_unset=True).items()}


def lifecycle_routes(path: str, store_name: str, convert: Callable) -> APIRouter:
    """archive / restore / delete endpoints shared by every entity."""
    router = APIRouter()

    @router.post(f"{path}:archive")
    def archive(entity_id: int, storage: Storage = Depends(get_storage)):
        return convert(getattr(storage, store_name).archive(entity_id))

    @router.post(f"{path}:restore")
    def restore(entity_id: int, storage: Storage = Depends(get_storage)):
        return convert(getattr(storage, store_name).restore(entity_id))

    @router.delete(path, status_code=204)
    def delete(entity_id: int, storage: Storage = Depends(get_storage)):
        getattr(storage, store_name).delete(entity_id)
        return Response(status_code=204)

    return router


# === Health ===


@app.get("/v1/health", response_model=Health)
def health() -> Health:
    return Health()


# === Project endpoints ===


@app.get("/v1/projects", response_model=list[ProjectSummary])
def list_projects(includeArchived: bool = False, storage: Storage = Depends(get_storage)):
    return storage.queries.list_projects(include_archived=includeArchived)


@app.post("/v1/projects", response_model=ProjectOut, status_code=201)
def create_project(payload: ProjectIn, storage: Storage = Depends(get_storage)):
    project = storage.projects.create(
        payload.title,
        payload.description,
        labels=[(label.title, label.color) for label in payload.labels],
        index=payload.position,
    )
    return project_out(project)


@app.get("/v1/projects/{project_id}", response_model=ProjectView)
def get_project(project_id: int, includeArchived: bool = False, storage: Storage = Depends(get_storage)):
    return storage.queries.project_view(project_id, include_archived=includeArchived)


@app.patch("/v1/projects/{project_id}", response_model=ProjectOut)
def update_project(project_id: int, payload: ProjectPatch, storage: Storage = Depends(get_storage)):
    return project_out(storage.projects.update(project_id, **changes(payload)))


@app.post("/v1/projects/{project_id}:move", response_model=ProjectOut)
def move_project(project_id: int, payload: MoveIn, storage: Storage = Depends(get_storage)):
    return project_out(storage.projects.move(project_id, payload.position))


# === Label endpoints ===


@app.post("/v1/projects/{project_id}/labels", response_model=LabelOut, status_code=201)
def create_label(project_id: int, payload: LabelIn, storage: Storage = Depends(get_storage)):
    label = storage.labels.create(project_id, payload.title, payload.color, index=payload.position)
    return label_out(label)


@app.patch("/v1/labels/{label_id}", response_model=LabelOut)
def update_label(label_id: int, payload: LabelPatch, storage: Storage = Depends(get_storage)):
    return label_out(storage.labels.update(label_id, **changes(payload)))


@app.post("/v1/labels/{label_id}:move", response_model=LabelOut)
def move_label(label_id: int, payload: MoveIn, storage: Storage = Depends(get_storage)):
    return label_out(storage.labels.move(label_id, payload.position))


# === List endpoints ===


@app.post("/v1/projects/{project_id}/lists", response_model=ListOut, status_code=201)
def create_list(project_id: int, payload: ListIn, storage: Storage = Depends(get_storage)):
    return list_out(storage.lists.create(project_id, payload.title, index=payload.position))


@app.patch("/v1/lists/{list_id}", response_model=ListOut)
def rename_list(list_id: int, payload: ListPatch, storage: Storage = Depends(get_storage)):
    return list_out(storage.lists.update(list_id, **changes(payload)))


@app.post("/v1/lists/{list_id}:move", response_model=ListOut)
def move_list(list_id: int, payload: MoveIn, storage: Storage = Depends(get_storage)):
    return list_out(storage.lists.move(list_id, payload.position))


# === Card endpoints ===


@app.post("/v1/lists/{list_id}/cards", response_model=CardOut, status_code=201)
def create_card(list_id: int, payload: CardIn, storage: Storage = Depends(get_storage)):
    card = storage.cards.create(
        list_id,
        payload.title,
        description=payload.description,
        important=payload.important,
        start_date=payload.startDate,
        due_date=payload.dueDate,
        reminder=payload.reminder,
        completed=payload.completed,
        index=payload.position,
    )
    return card_out(card)


@app.get("/v1/cards/{card_id}", response_model=CardView)
def get_card(card_id: int, includeArchived: bool = False, storage: Storage = Depends(get_storage)):
    return storage.queries.card_view(card_id, include_archived=includeArchived)


@app.patch("/v1/cards/{card_id}", response_model=CardOut)
def update_card(card_id: int, payload: CardPatch, storage: Storage = Depends(get_storage)):
    return card_out(storage.cards.update(card_id, **changes(payload, CARD_RENAMES)))


@app.post("/v1/cards/{card_id}:move", response_model=CardOut)
def move_card(card_id: int, payload: CardMove, storage: Storage = Depends(get_storage)):
    return card_out(storage.cards.move(card_id, index=payload.position, list_id=payload.toListId))


@app.post("/v1/cards/{card_id}:complete", response_model=CardOut)
def toggle_card_completed(card_id: int, storage: Storage = Depends(get_storage)):
    return card_out(storage.cards.toggle_completed(card_id))


@app.post("/v1/cards/{card_id}:important", response_model=CardOut)
def toggle_card_important(card_id: int, storage: Storage = Depends(get_storage)):
    return card_out(storage.cards.toggle_important(card_id))


@app.post("/v1/cards/{card_id}/labels", response_model=CardLabelOut, status_code=201)
def attach_label(card_id: int, payload: CardLabelIn, storage: Storage = Depends(get_storage)):
    return card_label_out(storage.card_labels.attach(card_id, payload.labelId))


@app.delete("/v1/cards/{card_id}/labels/{label_id}", status_code=204)
def detach_label(card_id: int, label_id: int, storage: Storage = Depends(get_storage)):
    storage.card_labels.detach(card_id, label_id)
    return Response(status_code=204)


# === Subtask endpoints ===


@app.post("/v1/cards/{card_id}/subtasks", response_model=SubtaskOut, status_code=201)
def create_subtask(card_id: int, payload: SubtaskIn, storage: Storage = Depends(get_storage)):
    subtask = storage.subtasks.create(card_id, payload.value, payload.completed, index=payload.position)
    return subtask_out(subtask)


@app.patch("/v1/subtasks/{subtask_id}", response_model=SubtaskOut)
def update_subtask(subtask_id: int, payload: SubtaskPatch, storage: Storage = Depends(get_storage)):
    return subtask_out(storage.subtasks.update(subtask_id, **changes(payload)))


@app.post("/v1/subtasks/{subtask_id}:move", response_model=SubtaskOut)
def move_subtask(subtask_id: int, payload: MoveIn, storage: Storage = Depends(get_storage)):
    return subtask_out(storage.subtasks.move(subtask_id, payload.position))


@app.post("/v1/subtasks/{subtask_id}:toggle", response_model=SubtaskOut)
def toggle_subtask(subtask_id: int, storage: Storage = Depends(get_storage)):
    return subtask_out(storage.subtasks.toggle_completed(subtask_id))


# === Reminders ===


@app.get("/v1/reminders", response_model=list[Reminder])
def reminders(storage: Storage = Depends(get_storage)):
    return storage.queries.due_reminders()


# === Archive / restore / delete ===

for _path, _store, _convert in (
    ("/v1/projects/{entity_id}", "projects", project_out),
    ("/v1/labels/{entity_id}", "labels", label_out),
    ("/v1/lists/{entity_id}", "lists", list_out),
    ("/v1/cards/{entity_id}", "cards", card_out),
    ("/v1/subtasks/{entity_id}", "subtasks", subtask_out),
    ("/v1/card-labels/{entity_id}", "card_labels", card_label_out),
):
    app.include_router(lifecycle_routes(_path, _store, _convert))
