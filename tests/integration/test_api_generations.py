from __future__ import annotations

from fastapi.testclient import TestClient

from mealgen.app.main import create_app


def _client() -> TestClient:
    return TestClient(create_app())


def test_health() -> None:
    with _client() as client:
        r = client.get("/api/health")

    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["environment"] == "local"


def test_create_get_cancel_generation() -> None:
    with _client() as client:
        r = client.post("/api/generations", json={"meal_type": "dinner"})
        assert r.status_code == 201, r.text
        created = r.json()
        gid = created["generation_id"]

        assert created["snapshot"]["status"] == "running"
        assert created["snapshot"]["ticks"] == 0
        assert created["view"]["stage_title"] == "Analyzing Your Family"
        assert created["view"]["can_cancel"] is True
        assert created["resolution"] is None

        r = client.get(f"/api/generations/{gid}")
        assert r.status_code == 200
        assert r.json()["snapshot"]["run_number"] == 1

        listed = client.get("/api/generations").json()["generations"]
        assert gid in {g["generation_id"] for g in listed}

        r = client.post(f"/api/generations/{gid}/cancel")
        assert r.status_code == 200
        assert r.json()["cancelled"] is True
        assert r.json()["snapshot"]["status"] == "cancelled"

        r = client.post(f"/api/generations/{gid}/cancel")
        assert r.json()["cancelled"] is False

        r = client.get(f"/api/generations/{gid}")
        assert r.json()["view"]["headline"] == "Generation Cancelled"
        assert r.json()["resolution"] is None


def test_custom_stage_table() -> None:
    stages = [
        {"id": "think", "title": "Thinking", "duration_seconds": 5},
        {"id": "write", "title": "Writing", "duration_seconds": 5},
    ]
    with _client() as client:
        r = client.post("/api/generations", json={"stages": stages, "tick_interval_seconds": 0.5})

        assert r.status_code == 201, r.text
        view = r.json()["view"]
        assert view["stage_title"] == "Thinking"
        assert view["stage_position"] == "1/2"
        assert view["time_estimate"] == "0s / 10s"


def test_invalid_configuration_is_unprocessable() -> None:
    with _client() as client:
        empty = client.post("/api/generations", json={"stages": []})
        zero = client.post(
            "/api/generations",
            json={"stages": [{"id": "a", "title": "A", "duration_seconds": 0}]},
        )
        bad_tick = client.post("/api/generations", json={"tick_interval_seconds": 0})
        bad_profile = client.post("/api/generations", json={"profile": "brunch"})

    assert empty.status_code == 422
    assert "stages" in empty.json()["detail"]
    assert zero.status_code == 422
    assert bad_tick.status_code == 422
    assert bad_profile.status_code == 422


def test_unknown_generation_is_404() -> None:
    with _client() as client:
        assert client.get("/api/generations/nope").status_code == 404
        assert client.post("/api/generations/nope/cancel").status_code == 404
        assert client.delete("/api/generations/nope").status_code == 404


def test_delete_generation() -> None:
    with _client() as client:
        gid = client.post("/api/generations", json={"profile": "compact"}).json()["generation_id"]

        assert client.delete(f"/api/generations/{gid}").status_code == 204
        assert client.get(f"/api/generations/{gid}").status_code == 404
