"""Tests for the HTTP adapter."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import main
from service_hydration import HydrationService


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, repo, clock):
    svc = HydrationService(repo, clock=clock, notify=main.push_notice, state_key="api")
    monkeypatch.setattr(main, "svc", svc)
    main.notices.clear()
    with TestClient(main.app) as c:
        yield c
    main.notices.clear()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"ok": True}


def test_set_weight_and_drink(client: TestClient) -> None:
    res = client.post("/weight", json={"weight_kg": 70})
    assert res.status_code == 200
    assert res.json()["state"]["daily_goal_ml"] == 2310

    res = client.post("/drinks")
    assert res.status_code == 200
    body = res.json()
    assert body["goal_just_reached"] is False
    assert body["percentage"] == 15
    assert body["event"]["amountMl"] == 350

    state = client.get("/state").json()
    assert state["current_intake_ml"] == 350
    assert state["remaining_ml"] == 1960


def test_invalid_weight_is_400(client: TestClient) -> None:
    res = client.post("/weight", json={"weight_kg": 250})
    assert res.status_code == 400
    assert "30-200" in res.json()["detail"]


def test_drink_before_goal_is_400(client: TestClient) -> None:
    assert client.post("/drinks").status_code == 400


def test_cup_size(client: TestClient) -> None:
    assert client.post("/cup", json={"size_ml": 500}).json()["state"]["cup_size_ml"] == 500
    assert client.post("/cup", json={"size_ml": 0}).status_code == 400


def test_undo_with_nothing_to_undo(client: TestClient) -> None:
    assert client.post("/drinks/undo").json()["status"] == "nothing_to_undo"


def test_history_reset_and_clear(client: TestClient, repo) -> None:
    client.post("/weight", json={"weight_kg": 60})
    for _ in range(3):
        client.post("/drinks")

    history = client.get("/history", params={"limit": 2}).json()
    assert [h["totalAfterMl"] for h in history] == [1050, 700]

    assert client.post("/reset").json()["state"]["current_intake_ml"] == 0

    res = client.delete("/data")
    assert res.json()["erased"] is True
    assert "api" not in repo.data


def test_notices_are_drained(client: TestClient) -> None:
    client.post("/weight", json={"weight_kg": 70})

    first = client.get("/notices").json()
    assert {"level": "success", "message": "Goal set! Drink 2.3L daily"} in [
        {"level": n["level"], "message": n["message"]} for n in first
    ]
    assert client.get("/notices").json() == []


def test_tip_and_storage(client: TestClient) -> None:
    assert client.get("/tip").json()["tip"]
    assert client.get("/storage").json()["bytes"] > 0


def test_shutdown_flushes_state(monkeypatch: pytest.MonkeyPatch, repo, clock) -> None:
    svc = HydrationService(repo, clock=clock, notify=main.push_notice, state_key="api")
    monkeypatch.setattr(main, "svc", svc)
    with TestClient(main.app):
        svc.state.cup_size_ml = 750
    assert '"cupSizeMl": 750' in repo.data["api"]
