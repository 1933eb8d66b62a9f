import re
from datetime import datetime
from typing import Any, Optional

from .db import as_utc
from .errors import ValidationError

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

NAMED_COLORS = frozenset(
    {
        "black",
        "red",
        "green",
        "yellow",
        "blue",
        "magenta",
        "cyan",
        "gray",
        "darkgray",
        "lightred",
        "lightgreen",
        "lightyellow",
        "lightblue",
        "lightmagenta",
        "lightcyan",
        "white",
        "reset",
    }
)


def require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must not be empty", {"field": field})
    return value.strip()


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("description must be text", {"field": "description"})
    return value.strip() or None


def color_token(value: Any) -> str:
    """Accept ``#rgb``, ``#rrggbb`` or a named terminal colour."""
    color = require_text(value, "color")
    if HEX_COLOR.match(color):
        return color.lower()
    if color.lower() in NAMED_COLORS:
        return color.lower()
    raise ValidationError(f"invalid color token {color!r}", {"field": "color"})


def optional_datetime(value: Any, field: str) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise ValidationError(f"{field} must be a datetime", {"field": field})
    return as_utc(value)


def reminder_minutes(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError("reminder must be a non-negative number of minutes", {"field": "reminder"})
    return value


def as_flag(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be true or false", {"field": field})
    return value
