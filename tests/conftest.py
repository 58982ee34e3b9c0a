"""Shared fixtures for the test suite."""

from __future__ import annotations

import copy
from datetime import date
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from healthlog.db import get_session
from healthlog.engine import connector
from healthlog.engine.advisor import get_advisor
from healthlog.engine.models import ActivityRecord, MedicationRecord
from healthlog.main import app

USER = "user-1"
OTHER_USER = "user-2"


# ---------------------------------------------------------------------------
# In-memory stand-in for the connector (no real Postgres needed)
# ---------------------------------------------------------------------------

class MemoryDB:
    """Dict-backed replacement for the connector functions.

    Reads hand out copies, so in-memory mutations only land through save_*,
    the same way they would against the database.
    """

    CONNECTOR_FUNCTIONS = (
        "fetch_activity",
        "fetch_latest_prior_activity",
        "insert_activity_if_absent",
        "save_activity",
        "fetch_activity_range",
        "insert_medication",
        "fetch_medication",
        "list_medication_rows",
        "save_medication",
        "append_taken",
        "commit",
    )

    def __init__(self):
        self.activity: dict[tuple[str, date], dict[str, Any]] = {}
        self.medications: dict[int, dict[str, Any]] = {}
        self._next_medication_id = 1
        self.commits = 0
        self.writes = 0

    # activity_records

    async def fetch_activity(self, session, user_id, day, for_update=False):
        return copy.deepcopy(self.activity.get((user_id, day)))

    async def fetch_latest_prior_activity(self, session, user_id, before):
        earlier = [d for (u, d) in self.activity if u == user_id and d < before]
        if not earlier:
            return None
        return copy.deepcopy(self.activity[(user_id, max(earlier))])

    async def insert_activity_if_absent(self, session, record: ActivityRecord) -> bool:
        key = (record.user_id, record.day)
        if key in self.activity:
            return False
        self.activity[key] = connector.activity_params(record)
        self.writes += 1
        return True

    async def save_activity(self, session, record: ActivityRecord) -> None:
        self.activity[(record.user_id, record.day)] = connector.activity_params(record)
        self.writes += 1

    async def fetch_activity_range(self, session, user_id, start, end_exclusive):
        keys = sorted(d for (u, d) in self.activity if u == user_id and start <= d < end_exclusive)
        return [copy.deepcopy(self.activity[(user_id, d)]) for d in keys]

    # medications

    async def insert_medication(self, session, record: MedicationRecord) -> dict[str, Any]:
        row = record.model_dump()
        row["id"] = self._next_medication_id
        row["frequency"] = record.frequency.value
        row["taken_log"] = []
        self._next_medication_id += 1
        self.medications[row["id"]] = row
        self.writes += 1
        return copy.deepcopy(row)

    async def fetch_medication(self, session, medication_id, for_update=False):
        return copy.deepcopy(self.medications.get(medication_id))

    async def list_medication_rows(self, session, user_id):
        return [copy.deepcopy(r) for _, r in sorted(self.medications.items()) if r["user_id"] == user_id]

    async def save_medication(self, session, record: MedicationRecord) -> None:
        row = self.medications[record.id]
        row.update(
            times=list(record.times),
            frequency=record.frequency.value,
            stock_quantity=record.stock_quantity,
            tablets_per_dose=record.tablets_per_dose,
            estimated_refill_date=record.estimated_refill_date,
        )
        self.writes += 1

    async def append_taken(self, session, medication_id, day, time) -> None:
        self.medications[medication_id]["taken_log"].append({"day": day, "time": time})
        self.writes += 1

    async def commit(self, session) -> None:
        self.commits += 1

    # helpers

    def record(self, user_id: str, day: date) -> ActivityRecord | None:
        row = self.activity.get((user_id, day))
        return ActivityRecord.from_row(copy.deepcopy(row)) if row else None

    def seed(self, record: ActivityRecord) -> None:
        self.activity[(record.user_id, record.day)] = connector.activity_params(record)


@pytest.fixture()
def memory_db(monkeypatch):
    """Route every connector call to a fresh MemoryDB."""
    db = MemoryDB()
    for name in MemoryDB.CONNECTOR_FUNCTIONS:
        monkeypatch.setattr(connector, name, getattr(db, name))
    return db


@pytest.fixture()
def session():
    """Placeholder session object; MemoryDB ignores it."""
    return object()


class FakeAdvisor:
    def __init__(self, text: str = "- Keep it up"):
        self.text = text
        self.calls: list[tuple[str, dict, list[str] | None]] = []

    async def generate(self, category, snapshot, goals=None) -> str:
        self.calls.append((category, snapshot, goals))
        return self.text


@pytest.fixture()
def fake_advisor():
    return FakeAdvisor()


@pytest.fixture()
def override_deps(memory_db, fake_advisor):
    """Override the FastAPI dependencies so no real DB or advice service is needed."""
    async def _session():
        yield object()

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_advisor] = lambda: fake_advisor
    yield memory_db
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_deps):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers={"X-User-Id": USER}
    ) as ac:
        yield ac


def make_set(reps: int = 10, weight: float = 20.0, rest_time: int = 60) -> dict[str, Any]:
    """Helper to build a raw set payload."""
    return {"reps": reps, "weight": weight, "rest_time": rest_time}
