"""
Persists StreakState with optimistic concurrency: read, compute, then a
conditional write that only lands if the row is still what was read.
"""
import logging
from datetime import date

from supabase import Client

from .db import get_streak, insert_streak, update_streak_if_unchanged
from .engine.streak import StreakState, compute_update
from .errors import Internal

logger = logging.getLogger(__name__)


class StreakService:
    def __init__(self, db: Client, max_attempts: int = 5):
        self.db = db
        self.max_attempts = max_attempts

    def current(self, user_id: str) -> StreakState:
        return StreakState.from_row(get_streak(self.db, user_id)) or StreakState()

    def record(self, user_id: str, occurred_on: date, today: date) -> StreakState:
        for attempt in range(1, self.max_attempts + 1):
            row = get_streak(self.db, user_id)
            prior = StreakState.from_row(row)
            new = compute_update(prior, occurred_on, today)

            if new == prior:
                return new

            if row is None:
                written = insert_streak(self.db, {"user_id": user_id, **new.to_row()})
            else:
                written = update_streak_if_unchanged(self.db, user_id, prior.to_row(), new.to_row())

            if written:
                return new
            logger.warning("Streak write conflict for %s... (attempt %d)", user_id[:8], attempt)

        logger.error("Streak update gave up for %s... after %d attempts", user_id[:8], self.max_attempts)
        raise Internal("Could not update streak", code="streak_conflict")
