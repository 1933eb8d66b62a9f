from datetime import datetime, timedelta, timezone

import pytest

from planboard.status import CardStatus, derive_status

NOW = datetime(2024, 1, 10, tzinfo=timezone.utc)


def day(n: int) -> datetime:
    return datetime(2024, 1, n, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "due, expected",
    [
        (day(9), CardStatus.OVERDUE),
        (day(12), CardStatus.DUE_SOON),
        (day(13), CardStatus.DUE_SOON),
        (day(20), CardStatus.DEFAULT),
        (None, CardStatus.DEFAULT),
    ],
)
def test_due_date_thresholds(due, expected):
    assert derive_status(due, None, False, NOW, 3) == expected


@pytest.mark.parametrize("due", [day(1), day(11), day(30), None])
def test_completed_wins(due):
    assert derive_status(due, day(1), True, NOW, 3) == CardStatus.COMPLETED


def test_in_progress_after_start():
    assert derive_status(None, day(5), False, NOW, 3) == CardStatus.IN_PROGRESS
    assert derive_status(day(20), day(5), False, NOW, 3) == CardStatus.IN_PROGRESS


def test_due_soon_beats_in_progress():
    assert derive_status(day(11), day(5), False, NOW, 3) == CardStatus.DUE_SOON


def test_future_start_is_default():
    assert derive_status(day(20), day(15), False, NOW, 3) == CardStatus.DEFAULT


def test_zero_day_threshold():
    assert derive_status(NOW + timedelta(hours=1), None, False, NOW, 0) == CardStatus.DEFAULT
    assert derive_status(NOW, None, False, NOW, 0) == CardStatus.DUE_SOON


def test_naive_datetimes_are_utc():
    assert derive_status(datetime(2024, 1, 9), None, False, NOW, 3) == CardStatus.OVERDUE
    assert derive_status(day(12), None, False, datetime(2024, 1, 10), 3) == CardStatus.DUE_SOON
