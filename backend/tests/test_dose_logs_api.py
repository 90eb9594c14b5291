"""Tests for dose logging endpoints."""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient


async def _protocol(client: AsyncClient, headers: dict) -> int:
    resp = await client.post(
        "/api/v1/protocols",
        headers=headers,
        json={"peptide_name": "Ipamorelin", "dose": "100mcg", "doses_per_day": 2, "start_date": "2024-01-01"},
    )
    return resp.json()["id"]


@pytest.mark.asyncio
async def test_log_dose_copies_protocol_and_sets_taken_at(client: AsyncClient, auth_headers: dict):
    protocol_id = await _protocol(client, auth_headers)
    resp = await client.post(
        "/api/v1/dose-logs",
        headers=auth_headers,
        json={"protocol_id": protocol_id, "scheduled_for": "2024-03-01T08:00:00Z", "notes": "left arm"},
    )
    assert resp.status_code == 200, resp.text
    log = resp.json()
    assert log["peptide_name"] == "Ipamorelin"
    assert log["dose"] == "100mcg"
    assert log["status"] == "taken"
    assert log["taken_at"] is not None
    assert log["dose_number"] == 1
    assert log["notes"] == "left arm"


@pytest.mark.asyncio
async def test_same_slot_is_updated_not_duplicated(client: AsyncClient, auth_headers: dict):
    protocol_id = await _protocol(client, auth_headers)
    first = await client.post(
        "/api/v1/dose-logs",
        headers=auth_headers,
        json={"protocol_id": protocol_id, "scheduled_for": "2024-03-01T08:00:00Z"},
    )
    second = await client.post(
        "/api/v1/dose-logs",
        headers=auth_headers,
        json={"protocol_id": protocol_id, "scheduled_for": "2024-03-01T20:00:00Z", "status": "skipped"},
    )
    assert second.json()["id"] == first.json()["id"]
    assert second.json()["status"] == "skipped"
    assert second.json()["taken_at"] is None

    other_dose = await client.post(
        "/api/v1/dose-logs",
        headers=auth_headers,
        json={"protocol_id": protocol_id, "scheduled_for": "2024-03-01T20:00:00Z", "dose_number": 2},
    )
    assert other_dose.json()["id"] != first.json()["id"]

    resp = await client.get("/api/v1/dose-logs", headers=auth_headers)
    assert len(resp.json()) == 2


@pytest.mark.asyncio
async def test_log_validation(client: AsyncClient, auth_headers: dict):
    protocol_id = await _protocol(client, auth_headers)
    resp = await client.post(
        "/api/v1/dose-logs",
        headers=auth_headers,
        json={"protocol_id": protocol_id, "scheduled_for": "2024-03-01T08:00:00Z", "status": "overdue"},
    )
    assert resp.status_code == 422
    resp = await client.post(
        "/api/v1/dose-logs",
        headers=auth_headers,
        json={"protocol_id": 9999, "scheduled_for": "2024-03-01T08:00:00Z"},
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_filters_and_order(client: AsyncClient, auth_headers: dict):
    protocol_id = await _protocol(client, auth_headers)
    start = date(2024, 3, 1)
    for i in range(4):
        day = (start + timedelta(days=i)).isoformat()
        await client.post(
            "/api/v1/dose-logs",
            headers=auth_headers,
            json={"protocol_id": protocol_id, "scheduled_for": f"{day}T08:00:00Z"},
        )

    resp = await client.get(
        "/api/v1/dose-logs",
        headers=auth_headers,
        params={"from_date": "2024-03-02", "to_date": "2024-03-03"},
    )
    assert [log["scheduled_for"][:10] for log in resp.json()] == ["2024-03-03", "2024-03-02"]

    resp = await client.get("/api/v1/dose-logs", headers=auth_headers, params={"limit": 1})
    assert resp.json()[0]["scheduled_for"][:10] == "2024-03-04"

    resp = await client.get("/api/v1/dose-logs", headers=auth_headers, params={"protocol_id": protocol_id + 1})
    assert resp.json() == []


@pytest.mark.asyncio
async def test_delete_log(client: AsyncClient, auth_headers: dict):
    protocol_id = await _protocol(client, auth_headers)
    resp = await client.post(
        "/api/v1/dose-logs",
        headers=auth_headers,
        json={"protocol_id": protocol_id, "scheduled_for": "2024-03-01T08:00:00Z"},
    )
    log_id = resp.json()["id"]

    assert (await client.delete(f"/api/v1/dose-logs/{log_id}", headers=auth_headers)).status_code == 204
    assert (await client.delete(f"/api/v1/dose-logs/{log_id}", headers=auth_headers)).status_code == 404
    assert (await client.get("/api/v1/dose-logs", headers=auth_headers)).json() == []
