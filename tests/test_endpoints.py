"""Endpoint tests: FastAPI app via httpx ASGITransport."""

from __future__ import annotations

from datetime import date
from unittest.mock import patch

import pytest

from healthlog.engine import features
from healthlog.engine.errors import StorageFailure
from healthlog.engine.models import ActivityRecord

from tests.conftest import OTHER_USER, USER, make_set


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_user_header_401(self, client):
        resp = await client.get("/activity?date=2024-03-05", headers={"X-User-Id": ""})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_api_key_enforced_when_configured(self, client):
        with patch("healthlog.auth.settings.api_key", "secret"):
            resp = await client.get("/activity?date=2024-03-05")
            assert resp.status_code == 401
            resp = await client.get("/activity?date=2024-03-05", headers={"X-API-Key": "secret"})
            assert resp.status_code == 200


class TestActivityEndpoints:
    @pytest.mark.asyncio
    async def test_get_creates_with_defaults(self, client, override_deps):
        resp = await client.get("/activity?date=2024-03-05")
        assert resp.status_code == 200
        body = resp.json()
        assert body["day"] == "2024-03-05"
        assert body["target"] == 1000
        assert body["steps_remaining"] == 1000
        assert override_deps.record(USER, date(2024, 3, 5)) is not None

    @pytest.mark.asyncio
    async def test_bad_date_400(self, client):
        resp = await client.get("/activity?date=2024-13-40")
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_default_date_is_today(self, client, monkeypatch):
        monkeypatch.setattr(features, "local_today", lambda tz: date(2024, 6, 1))
        resp = await client.get("/activity")
        assert resp.json()["day"] == "2024-06-01"

    @pytest.mark.asyncio
    async def test_steps(self, client):
        await client.post("/activity/steps", json={"steps": 500, "date": "2024-03-05"})
        resp = await client.post("/activity/steps", json={"steps": 300, "date": "2024-03-05"})
        assert resp.status_code == 200
        assert resp.json()["steps_walked"] == 800

    @pytest.mark.asyncio
    async def test_negative_steps_400(self, client):
        resp = await client.post("/activity/steps", json={"steps": -3, "date": "2024-03-05"})
        assert resp.status_code == 400
        assert resp.json()["retryable"] is False

    @pytest.mark.asyncio
    async def test_string_steps_400(self, client, override_deps):
        resp = await client.post("/activity/steps", json={"steps": "100", "date": "2024-03-05"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"
        assert override_deps.activity == {}

    @pytest.mark.asyncio
    async def test_bool_steps_400(self, client):
        resp = await client.post("/activity/steps", json={"steps": True, "date": "2024-03-05"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_string_target_400(self, client):
        resp = await client.post("/activity/target", json={"target": "5000", "date": "2024-03-05"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_month_target_summary(self, client):
        resp = await client.post(
            "/activity/target", json={"target": 8000, "date": "2024-04-10", "apply_to_whole_month": True}
        )
        assert resp.status_code == 200
        assert resp.json() == {"month": "2024-04", "target": 8000, "days_updated": 30}

        resp = await client.get("/activity/monthly?month=2024-04")
        days = resp.json()
        assert len(days) == 30
        assert days[0]["day"] == "2024-04-01"
        assert all(d["target"] == 8000 and d["fixed_monthly"] for d in days)

    @pytest.mark.asyncio
    async def test_single_day_target(self, client):
        resp = await client.post("/activity/target", json={"target": 2500, "date": "2024-04-10"})
        assert resp.status_code == 200
        assert resp.json()["target"] == 2500
        assert resp.json()["fixed_monthly"] is False

    @pytest.mark.asyncio
    async def test_bad_month_400(self, client):
        resp = await client.get("/activity/monthly?month=April")
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_workout_type(self, client):
        resp = await client.post("/activity/workout-type", json={"workout_type": "pull", "date": "2024-03-05"})
        assert resp.json()["workout_type"] == "pull"
        resp = await client.post("/activity/workout-type", json={"workout_type": "zumba", "date": "2024-03-05"})
        assert resp.status_code == 400


class TestExerciseEndpoints:
    @pytest.mark.asyncio
    async def test_add_update_delete(self, client):
        resp = await client.post(
            "/activity/exercises",
            json={"name": "Bench", "category": "push", "sets": [make_set(10, 50)], "date": "2024-03-05"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["total_volume"] == 500
        ex_id = body["exercises"][0]["id"]

        resp = await client.put(
            f"/activity/exercises/{ex_id}",
            json={"sets": [make_set(5, 50)], "notes": "lighter", "date": "2024-03-05"},
        )
        assert resp.json()["total_volume"] == 250
        assert resp.json()["exercises"][0]["notes"] == "lighter"

        resp = await client.get("/activity/exercises/push?date=2024-03-05")
        assert [e["name"] for e in resp.json()["exercises"]] == ["Bench"]

        resp = await client.delete(f"/activity/exercises/{ex_id}?date=2024-03-05")
        assert resp.json()["total_volume"] == 0
        assert resp.json()["exercises"] == []

    @pytest.mark.asyncio
    async def test_invalid_set_422_with_index(self, client, override_deps):
        resp = await client.post(
            "/activity/exercises",
            json={
                "name": "Bench",
                "category": "push",
                "sets": [make_set(), {"reps": 0, "weight": 5}],
                "date": "2024-03-05",
            },
        )
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] == "validation_error"
        assert body["index"] == 1
        assert override_deps.activity == {}

    @pytest.mark.asyncio
    async def test_update_unknown_404(self, client):
        await client.get("/activity?date=2024-03-05")
        resp = await client.put("/activity/exercises/9", json={"sets": [make_set()], "date": "2024-03-05"})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_bool_reps_422(self, client, override_deps):
        resp = await client.post(
            "/activity/exercises",
            json={"name": "Bench", "category": "push", "sets": [{"reps": True, "weight": 5}], "date": "2024-03-05"},
        )
        assert resp.status_code == 422
        assert resp.json()["index"] == 0
        assert override_deps.activity == {}

    @pytest.mark.asyncio
    async def test_string_weight_422(self, client):
        resp = await client.post(
            "/activity/exercises",
            json={"name": "Bench", "category": "push", "sets": [make_set(), {"reps": 5, "weight": "5"}], "date": "2024-03-05"},
        )
        assert resp.status_code == 422
        assert resp.json()["index"] == 1


class TestMedicationEndpoints:
    @pytest.mark.asyncio
    async def test_lifecycle(self, client, monkeypatch):
        monkeypatch.setattr(features, "local_today", lambda tz: date(2024, 3, 1))
        resp = await client.post(
            "/medications",
            json={
                "tablet_name": "Metformin",
                "times": ["08:00", "20:00"],
                "start_date": "2024-02-01",
                "frequency": "Daily",
                "stock_quantity": 30,
            },
        )
        assert resp.status_code == 201
        med = resp.json()
        assert med["estimated_refill_date"] == "2024-03-13"

        resp = await client.put(f"/medications/{med['id']}/stock", json={"stock_quantity": 4})
        assert resp.json()["estimated_refill_date"] == "2024-02-29"

        await client.post(f"/medications/{med['id']}/taken", json={"time": "08:00"})
        await client.post(f"/medications/{med['id']}/taken", json={"time": "08:00"})
        resp = await client.get(f"/medications/{med['id']}/taken?date=2024-03-01")
        assert resp.json()["taken"] == ["08:00"]

        resp = await client.get("/medications")
        assert [m["tablet_name"] for m in resp.json()] == ["Metformin"]

    @pytest.mark.asyncio
    async def test_missing_fields_400(self, client):
        resp = await client.post("/medications", json={"tablet_name": "X"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_string_stock_400(self, client):
        resp = await client.post(
            "/medications",
            json={
                "tablet_name": "X",
                "times": ["08:00"],
                "start_date": "2024-02-01",
                "frequency": "Daily",
                "stock_quantity": "30",
            },
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_not_found_404(self, client):
        resp = await client.put("/medications/77/stock", json={"stock_quantity": 4})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_other_users_403(self, client):
        resp = await client.post(
            "/medications",
            json={"tablet_name": "X", "times": ["08:00"], "start_date": "2024-02-01", "frequency": "Daily"},
            headers={"X-User-Id": OTHER_USER},
        )
        med_id = resp.json()["id"]
        resp = await client.put(f"/medications/{med_id}/stock", json={"stock_quantity": 4})
        assert resp.status_code == 403


class TestStorageFailure:
    @pytest.mark.asyncio
    async def test_503_retryable(self, client, monkeypatch):
        async def _down(*args, **kwargs):
            raise StorageFailure("Storage unavailable during fetch_activity")

        monkeypatch.setattr("healthlog.engine.connector.fetch_activity", _down)
        resp = await client.get("/activity?date=2024-03-05")
        assert resp.status_code == 503
        assert resp.json()["retryable"] is True
        assert resp.headers["retry-after"] == "1"


class TestAdviceEndpoints:
    @pytest.mark.asyncio
    async def test_fitness_snapshot(self, client, override_deps):
        override_deps.seed(ActivityRecord(user_id=USER, day=date(2024, 3, 5), steps_walked=600))
        resp = await client.get("/recommendations/snapshot/fitness?date=2024-03-05")
        assert resp.status_code == 200
        body = resp.json()
        assert body["steps_remaining"] == 400
        assert body["status"] == "yellow"

    @pytest.mark.asyncio
    async def test_unknown_snapshot_404(self, client):
        resp = await client.get("/recommendations/snapshot/diet")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_advice_passthrough(self, client, fake_advisor):
        resp = await client.get("/recommendations/fitness?date=2024-03-05&goals=strength")
        assert resp.status_code == 200
        body = resp.json()
        assert body["recommendations"] == fake_advisor.text
        category, snapshot, goals = fake_advisor.calls[0]
        assert category == "fitness"
        assert snapshot["target"] == 1000
        assert goals == ["strength"]

    @pytest.mark.asyncio
    async def test_sleep_advice(self, client, fake_advisor):
        resp = await client.get("/recommendations/sleep?bedtime=23:00&wake_time=06:30")
        assert resp.status_code == 200
        assert resp.json()["snapshot"]["duration_hours"] == 7.5


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
