"""Tests for the Garmin upload, import history and daily summary endpoints."""

import io
import json
import zipfile
from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from pepmetrics.config import settings
from pepmetrics.models.garmin_data import GarminDailyData

CSV_CONTENT = (
    "Activity Type,Date,Title,Distance,Calories,Time,Avg HR,Max HR\n"
    "Running,2024-05-01 07:00:00,Morning Run,5.00,400,00:30:00,150,172\n"
    "Cycling,2024-05-03 18:00:00,Evening Ride,20.00,600,01:00:00,130,160\n"
)


def _export_zip() -> bytes:
    today = date.today()
    start, end = today - timedelta(days=5), today
    day1, day2 = (today - timedelta(days=2)).isoformat(), (today - timedelta(days=1)).isoformat()
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(
            f"DI_CONNECT/DI-Connect-Wellness/{start}_{end}_1_sleepData.json",
            json.dumps([{"calendarDate": day1, "sleepTimeSeconds": 27000}]),
        )
        zf.writestr(
            f"DI_CONNECT/DI-Connect-Aggregator/UDSFile_{start}_{end}.json",
            json.dumps(
                [
                    {"calendarDate": day1, "totalSteps": 8000, "restingHeartRate": 50},
                    {"calendarDate": day2, "totalSteps": 11000},
                ]
            ),
        )
        zf.writestr("DI_CONNECT/DI-Connect-Wellness/2015-01-01_2015-02-01_1_sleepData.json", "[]")
    return buf.getvalue()


async def _upload(client: AsyncClient, headers: dict, name: str, content: bytes, content_type: str, **data):
    return await client.post(
        "/api/v1/garmin/import",
        headers=headers,
        files={"file": (name, content, content_type)},
        data=data,
    )


@pytest.mark.asyncio
async def test_import_requires_auth(client: AsyncClient):
    resp = await client.post(
        "/api/v1/garmin/import", files={"file": ("a.csv", CSV_CONTENT.encode(), "text/csv")}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_zip_import_and_daily_listing(client: AsyncClient, auth_headers: dict):
    resp = await _upload(client, auth_headers, "export.zip", _export_zip(), "application/zip", target_days="30")
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["file_type"] == "zip_export"
    assert data["records_imported"] == 2
    assert data["records_updated"] == 0
    assert set(data["data_types"]) == {"sleep", "daily_summary"}
    assert data["scan_result"]["relevant_files"] == 2
    assert data["scan_result"]["skipped_files"] == 1

    resp = await client.get("/api/v1/garmin/daily", headers=auth_headers)
    assert resp.status_code == 200
    page = resp.json()
    assert page["total"] == 2
    newest, oldest = page["items"]
    assert newest["steps"] == 11000
    assert newest["sleep_duration_hours"] is None
    assert oldest["sleep_duration_hours"] == 7.5
    assert oldest["resting_hr"] == 50

    # same export again only updates
    resp = await _upload(client, auth_headers, "export.zip", _export_zip(), "application/zip", target_days="30")
    assert resp.json()["records_imported"] == 0
    assert resp.json()["records_updated"] == 2


@pytest.mark.asyncio
async def test_csv_import_and_history(client: AsyncClient, auth_headers: dict):
    resp = await _upload(client, auth_headers, "Activities.csv", CSV_CONTENT.encode(), "text/csv")
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["file_type"] == "activity_csv"
    assert data["records_imported"] == 2
    assert data["date_range"] == {"start": "2024-05-01", "end": "2024-05-03"}

    resp = await _upload(client, auth_headers, "Activities.csv", CSV_CONTENT.encode(), "text/csv")
    assert resp.json()["records_imported"] == 0
    assert resp.json()["records_updated"] == 2

    resp = await client.get("/api/v1/garmin/imports", headers=auth_headers)
    assert resp.status_code == 200
    history = resp.json()
    assert len(history["imports"]) == 2
    assert all(i["status"] == "completed" for i in history["imports"])
    assert history["activity_stats"]["total_activities"] == 2
    assert history["activity_stats"]["date_range"] == {"start": "2024-05-01", "end": "2024-05-03"}

    resp = await client.get(
        "/api/v1/garmin/daily",
        headers=auth_headers,
        params={"from_date": "2024-05-01", "to_date": "2024-05-31"},
    )
    items = resp.json()["items"]
    assert [i["date"] for i in items] == ["2024-05-03", "2024-05-01"]
    assert items[1]["calories_total"] == 400
    assert items[1]["active_minutes"] == 30


@pytest.mark.asyncio
async def test_single_json_import(client: AsyncClient, auth_headers: dict):
    content = json.dumps([{"calendarDate": "2024-03-01", "lastNightAvg": 62}]).encode()
    resp = await _upload(client, auth_headers, "hrv.json", content, "application/json")
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["file_type"] == "full_export"
    assert data["records_imported"] == 1
    assert data["data_types"] == ["hrv"]


@pytest.mark.asyncio
async def test_rejects_unsupported_and_empty_files(client: AsyncClient, auth_headers: dict):
    resp = await _upload(client, auth_headers, "notes.txt", b"hello", "text/plain")
    assert resp.status_code == 400

    resp = await _upload(client, auth_headers, "Activities.csv", b"", "text/csv")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Empty file"


@pytest.mark.asyncio
async def test_rejects_oversized_file(client: AsyncClient, auth_headers: dict, monkeypatch):
    monkeypatch.setattr(settings, "garmin_max_text_upload_bytes", 10)
    resp = await _upload(client, auth_headers, "Activities.csv", CSV_CONTENT.encode(), "text/csv")
    assert resp.status_code == 413


@pytest.mark.asyncio
async def test_corrupt_zip_and_unrelated_csv(client: AsyncClient, auth_headers: dict):
    resp = await _upload(client, auth_headers, "export.zip", b"not a zip at all", "application/zip")
    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == "File is not a valid ZIP archive"

    resp = await _upload(client, auth_headers, "people.csv", b"name,age\nann,3\n", "text/csv")
    assert resp.status_code == 400
    assert "Garmin activity export" in resp.json()["detail"]["message"]


@pytest.mark.asyncio
async def test_zip_without_relevant_files_reports_scan(client: AsyncClient, auth_headers: dict):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("2015-01-01_2015-02-01_1_sleepData.json", "[]")
    resp = await _upload(client, auth_headers, "export.zip", buf.getvalue(), "application/zip", target_days="30")
    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["details"] == ["No relevant Garmin data files found for the last 30 days"]
    assert detail["scan_result"]["skipped_files"] == 1


@pytest.mark.asyncio
async def test_daily_pagination(client: AsyncClient, auth_headers: dict, test_user, db_session):
    user_id = test_user[0]
    today = date.today()
    for i in range(3):
        db_session.add(GarminDailyData(user_id=user_id, data_date=today - timedelta(days=i), steps=1000 * (i + 1)))
    await db_session.commit()

    resp = await client.get("/api/v1/garmin/daily", headers=auth_headers, params={"limit": 2})
    page = resp.json()
    assert page["total"] == 3
    assert page["has_more"] is True
    assert [i["steps"] for i in page["items"]] == [1000, 2000]

    resp = await client.get("/api/v1/garmin/daily", headers=auth_headers, params={"limit": 2, "offset": 2})
    assert resp.json()["has_more"] is False
    assert [i["steps"] for i in resp.json()["items"]] == [3000]

    resp = await client.get(
        "/api/v1/garmin/daily",
        headers=auth_headers,
        params={"from_date": "2024-02-01", "to_date": "2024-01-01"},
    )
    assert resp.status_code == 400
