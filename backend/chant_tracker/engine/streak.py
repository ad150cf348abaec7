"""
Streak tracking — pure functions, no DB access.
"""
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Iterable


@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    last_counted_date: date | None = None

    @classmethod
    def from_row(cls, row: dict | None) -> "StreakState | None":
        if not row:
            return None
        last = row.get("last_counted_date")
        return cls(
            current_streak=row.get("current_streak") or 0,
            longest_streak=row.get("longest_streak") or 0,
            last_counted_date=date.fromisoformat(last) if isinstance(last, str) else last,
        )

    def to_row(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_counted_date": self.last_counted_date.isoformat() if self.last_counted_date else None,
        }


def compute_update(prior: StreakState | None, occurred_on: date, today: date) -> StreakState:
    """
    Returns the streak state after an entry on ``occurred_on``.

    Same-day repeats and entries older than the last counted day return
    ``prior`` unchanged; streak state only ever moves forward.
    """
    if occurred_on > today:
        raise ValueError(f"entry date {occurred_on} is after {today}")

    if prior is None or prior.last_counted_date is None:
        longest = prior.longest_streak if prior else 0
        return StreakState(1, max(longest, 1), occurred_on)

    last = prior.last_counted_date
    if occurred_on <= last:
        return prior

    if occurred_on == last + timedelta(days=1):
        current = prior.current_streak + 1
    else:
        current = 1

    return replace(
        prior,
        current_streak=current,
        longest_streak=max(prior.longest_streak, current),
        last_counted_date=occurred_on,
    )


def replay(dates: Iterable[date], today: date) -> StreakState | None:
    """Fold entry dates, in the order they were recorded, into a final state."""
    state = None
    for occurred_on in dates:
        state = compute_update(state, occurred_on, today)
    return state
