"""
Shared fixtures. Storage is an in-memory stand-in for the Supabase query
builder, so no test needs a live database.
"""
import os
import threading
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch

os.environ["JWT_SECRET"] = "test-secret-key-for-hs256-signing-only"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from chant_tracker.config import Settings

UNIQUE_KEYS = {
    "users": ("user_id", "phone"),
    "sessions": ("user_id",),
    "chant_entries": ("entry_id",),
    "user_streaks": ("user_id",),
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


DEFAULTS = {
    "users": lambda: {
        "user_id": str(uuid.uuid4()),
        "credential_hash": None,
        "display_name": None,
        "created_at": _now(),
        "updated_at": _now(),
    },
    "chant_entries": lambda: {"entry_id": str(uuid.uuid4()), "recorded_at": _now()},
    "user_streaks": lambda: {"current_streak": 0, "longest_streak": 0, "last_counted_date": None},
}


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.order_by = None
        self.window = None

    def select(self, columns="*", count=None):
        self.op, self.columns = "select", columns
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def upsert(self, row, on_conflict=None):
        self.op, self.payload, self.on_conflict = "upsert", row, on_conflict
        return self

    def update(self, updates):
        self.op, self.payload = "update", updates
        return self

    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.filters.append(lambda r: r.get(column) is None)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.window = (0, n - 1)
        return self

    def range(self, start, end):
        self.window = (start, end)
        return self

    def execute(self):
        with self.db.lock:
            data = getattr(self, f"_{self.op}")()
        return SimpleNamespace(data=data, count=len(data))

    def _matches(self):
        rows = self.db.tables.setdefault(self.table_name, [])
        return [r for r in rows if all(f(r) for f in self.filters)]

    def _project(self, row):
        if self.columns.strip() == "*":
            return dict(row)
        return {c.strip(): row.get(c.strip()) for c in self.columns.split(",")}

    def _select(self):
        rows = self._matches()
        if self.order_by:
            column, desc = self.order_by
            rows = sorted(rows, key=lambda r: r.get(column), reverse=desc)
        if self.window:
            rows = rows[self.window[0]:self.window[1] + 1]
        return [self._project(r) for r in rows]

    def _conflict(self, row):
        for key in UNIQUE_KEYS.get(self.table_name, ()):
            for existing in self.db.tables.setdefault(self.table_name, []):
                if key in row and existing.get(key) == row[key]:
                    return existing
        return None

    def _insert(self):
        row = {**DEFAULTS.get(self.table_name, dict)(), **self.payload}
        if self._conflict(row) is not None:
            raise APIError({
                "code": "23505",
                "message": "duplicate key value violates unique constraint",
                "details": None,
                "hint": None,
            })
        self.db.tables[self.table_name].append(row)
        return [dict(row)]

    def _upsert(self):
        key = self.on_conflict
        for existing in self.db.tables.setdefault(self.table_name, []):
            if existing.get(key) == self.payload.get(key):
                existing.update(self.payload)
                return [dict(existing)]
        return self._insert()

    def _update(self):
        rows = self._matches()
        for r in rows:
            r.update(self.payload)
        return [dict(r) for r in rows]


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.lock = threading.Lock()
        self.closed = False
        self.postgrest = SimpleNamespace(session=SimpleNamespace(close=self._close))

    def _close(self):
        self.closed = True

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> list[dict]:
        with self.lock:
            return [dict(r) for r in self.tables.get(name, [])]

    def snapshot(self) -> "FakeSupabase":
        clone = FakeSupabase()
        with self.lock:
            clone.tables = {name: [dict(r) for r in rows] for name, rows in self.tables.items()}
        return clone


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def settings():
    return Settings(jwt_secret=os.environ["JWT_SECRET"], bcrypt_rounds=4)


@pytest.fixture
def app_client(fake_db):
    """TestClient wired to an empty in-memory database."""
    with patch("chant_tracker.main.get_client", return_value=fake_db):
        from chant_tracker.main import app, limiter
        limiter.reset()
        with TestClient(app, raise_server_exceptions=False) as c:
            yield {"client": c, "db": fake_db}
