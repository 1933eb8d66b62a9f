from __future__ import annotations

import enum
from datetime import datetime, timedelta
from typing import Optional

from .db import as_utc


class CardStatus(str, enum.Enum):
    COMPLETED = "completed"
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    IN_PROGRESS = "in_progress"
    DEFAULT = "default"


def derive_status(
    due_date: Optional[datetime],
    start_date: Optional[datetime],
    completed: bool,
    now: datetime,
    due_soon_days: int,
) -> CardStatus:
    """Compute a card's display status.

    Precedence is completed, overdue, due soon, in progress. The result
    depends on ``now`` and must be recomputed on every read.
    """
    if completed:
        return CardStatus.COMPLETED

    now = as_utc(now)
    due = as_utc(due_date)
    start = as_utc(start_date)

    if due is not None:
        if due < now:
            return CardStatus.OVERDUE
        if due - now <= timedelta(days=due_soon_days):
            return CardStatus.DUE_SOON
    if start is not None and start <= now and (due is None or due >= now):
        return CardStatus.IN_PROGRESS
    return CardStatus.DEFAULT
