"""Tests for the HTTP surface."""

from __future__ import annotations

from datetime import timedelta

from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from countkeeper.db.time import utcnow
from countkeeper.models import Scope, Subject
from countkeeper.services.counter_store import CounterStore


def test_health(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == status.HTTP_200_OK
    assert r.json() == {"status": "ok"}


def test_root(client: TestClient) -> None:
    r = client.get("/")
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["name"] == "countkeeper"


def test_system_health_reports_database(client: TestClient) -> None:
    r = client.get("/api/v1/system/health")
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert data["database"] == "ok"
    assert data["status"] == "ok"


def test_schedules_registered_on_startup(client: TestClient) -> None:
    r = client.get("/api/v1/system/schedules")
    assert r.status_code == status.HTTP_200_OK
    schedules = {item["name"]: item for item in r.json()}
    assert set(schedules) == {"month", "year"}
    assert schedules["month"]["spec"] == "5 8 1 * *"
    assert schedules["year"]["spec"] == "10 8 1 1 *"
    assert schedules["month"]["state"] == "scheduled"
    assert schedules["month"]["timezone"] == "UTC"
    assert schedules["month"]["next_fire_time"] is not None


def test_score_endpoint(client: TestClient, db_session: Session, subject: Subject, scope: Scope) -> None:
    store = CounterStore(db_session)
    now = utcnow()
    store.increment(subject.id, scope.id, "COUNT", now, delta=2)
    store.increment(subject.id, scope.id, "BATTLE", now - timedelta(minutes=1))

    r = client.get(f"/api/v1/scores/{subject.id}/{scope.id}")
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert data["subject_id"] == subject.id
    assert data["today"] + data["yesterday"] == 3
    assert data["all_time"] == 3

    r = client.get(f"/api/v1/scores/{subject.id}/{scope.id}", params={"counter_type": "BATTLE"})
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["all_time"] == 1
    assert r.json()["counter_type"] == "BATTLE"


def test_score_endpoint_unknown_subject_is_empty(client: TestClient, scope: Scope) -> None:
    r = client.get(f"/api/v1/scores/1/{scope.id}")
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["all_time"] == 0


def test_score_endpoint_rejects_unknown_type(client: TestClient, subject: Subject, scope: Scope) -> None:
    r = client.get(f"/api/v1/scores/{subject.id}/{scope.id}", params={"counter_type": "RAID"})
    assert r.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
