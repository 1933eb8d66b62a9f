from __future__ import annotations

from typing import Any, Optional


class PlanboardError(Exception):
    """Base class for every error raised by the stores."""

    code = "error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(PlanboardError):
    """Referenced id is absent or was hard-deleted."""

    code = "not_found"

    def __init__(self, kind: str, entity_id: Any) -> None:
        super().__init__(f"{kind} {entity_id} not found", {"kind": kind, "id": entity_id})
        self.kind = kind
        self.entity_id = entity_id


class InvalidPositionError(PlanboardError):
    code = "invalid_position"

    def __init__(self, index: int, upper: int) -> None:
        super().__init__(
            f"position {index} outside 0..{upper}",
            {"index": index, "max": upper},
        )


class LimitExceededError(PlanboardError):
    code = "limit_exceeded"


class ValidationError(PlanboardError):
    code = "validation_error"


class DuplicateAssociationError(PlanboardError):
    code = "duplicate_association"


class ReferentialViolationError(PlanboardError):
    code = "referential_violation"


class StorageError(PlanboardError):
    """The transaction failed in the database layer and was rolled back."""

    code = "storage_error"
