"""HTTP tests for /api/v1/learning-history."""

import csv
import io
from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from lms.config.settings import get_settings
from lms.learning_history.models import AccessType, UserMaterialAccess


BASE = "/api/v1/learning-history"


async def _record(client: AsyncClient, **payload) -> dict:
    resp = await client.post(f"{BASE}/record-access", json=payload, headers={"User-Agent": "pytest-agent"})
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_record_access(client: AsyncClient, catalogue) -> None:
    body = await _record(client, materialId=catalogue.material_id, accessType="VIEW", sessionDuration=20)

    assert body["materialId"] == catalogue.material_id
    assert body["resourceId"] is None
    assert body["accessType"] == "VIEW"
    assert body["sessionDuration"] == 20

    page = (await client.get(f"{BASE}/access")).json()
    assert page["kind"] == "access_history"
    item = page["data"][0]
    assert item["materialTitle"] == "Intro video"
    assert item["userAgent"] == "pytest-agent"
    assert item["ipAddress"] is not None


@pytest.mark.asyncio
async def test_record_resource_access(client: AsyncClient, catalogue) -> None:
    body = await _record(client, resourceId=catalogue.resource_id, accessType="EXTERNAL_LINK")

    assert body["resourceId"] == catalogue.resource_id
    page = (await client.get(f"{BASE}/access", params={"resourceId": catalogue.resource_id})).json()
    assert page["data"][0]["resourceTitle"] == "Cheat sheet"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"accessType": "VIEW"},
        {"materialId": 1, "resourceId": 1, "accessType": "VIEW"},
        {"materialId": 1, "accessType": "PRINT"},
        {"materialId": 1, "accessType": "VIEW", "sessionDuration": -1},
    ],
)
async def test_record_access_validation(client: AsyncClient, catalogue, payload: dict) -> None:
    resp = await client.post(f"{BASE}/record-access", json=payload)

    assert resp.status_code == 422
    assert resp.json()["error"]["category"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_record_access_unknown_target(client: AsyncClient, catalogue) -> None:
    resp = await client.post(f"{BASE}/record-access", json={"resourceId": 777, "accessType": "DOWNLOAD"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_access_history_filters_and_pagination(client: AsyncClient, catalogue) -> None:
    await _record(client, materialId=catalogue.material_id, accessType="VIEW", sessionDuration=10)
    await _record(client, materialId=catalogue.material_id, accessType="DOWNLOAD")
    await _record(client, materialId=catalogue.second_material_id, accessType="VIEW", sessionDuration=5)

    downloads = (await client.get(f"{BASE}/access", params={"accessType": "DOWNLOAD"})).json()
    assert [i["accessType"] for i in downloads["data"]] == ["DOWNLOAD"]

    first_page = (await client.get(f"{BASE}/access", params={"limit": 2})).json()
    assert first_page["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 3,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }
    # Newest first
    assert first_page["data"][0]["materialId"] == catalogue.second_material_id


@pytest.mark.asyncio
async def test_summary(client: AsyncClient, catalogue) -> None:
    empty = (await client.get(f"{BASE}/summary")).json()
    assert empty["totalAccesses"] == 0
    assert empty["mostActiveDay"] == "Sunday"

    await _record(client, materialId=catalogue.material_id, accessType="VIEW", sessionDuration=30)
    await _record(client, materialId=catalogue.material_id, accessType="VIEW", sessionDuration=10)

    summary = (await client.get(f"{BASE}/summary")).json()
    assert summary["kind"] == "summary"
    assert summary["totalAccesses"] == 2
    assert summary["totalSessionTime"] == 40
    assert summary["averageSessionTime"] == 20.0


@pytest.mark.asyncio
async def test_detailed_history_and_patterns(client: AsyncClient, catalogue) -> None:
    for _ in range(3):
        await _record(client, materialId=catalogue.material_id, accessType="VIEW", sessionDuration=6)
    await _record(client, resourceId=catalogue.resource_id, accessType="DOWNLOAD")

    detailed = (await client.get(f"{BASE}/detailed")).json()
    assert detailed["totalAccesses"] == 4
    assert len(detailed["recentAccesses"]) == 4
    assert detailed["materialBreakdown"][0]["accessCount"] == 3
    assert sum(p["accessCount"] for p in detailed["learningPatterns"]) == 4

    patterns = (await client.get(f"{BASE}/patterns")).json()
    assert patterns["kind"] == "patterns"
    assert sum(h["accessCount"] for h in patterns["hourlyBreakdown"]) == 4
    assert patterns["materialBreakdown"][0]["averageTime"] == 6.0


@pytest.mark.asyncio
async def test_stats_report(client: AsyncClient, catalogue) -> None:
    await _record(client, materialId=catalogue.material_id, accessType="DOWNLOAD", sessionDuration=45)
    await _record(client, materialId=catalogue.material_id, accessType="DOWNLOAD", sessionDuration=5)
    await _record(client, materialId=catalogue.second_material_id, accessType="VIEW")

    report = (await client.get(f"{BASE}/reports")).json()

    assert report["kind"] == "stats"
    assert report["userId"] == catalogue.user_id
    assert report["totalStudyTime"] == 50
    assert report["totalMaterialsAccessed"] == 3
    assert report["uniqueMaterialsAccessed"] == 2
    assert report["longestStudySession"] == 45
    assert report["shortestStudySession"] == 5
    assert report["mostUsedAccessType"] == "DOWNLOAD"
    assert len(report["dailyBreakdown"]) == 1
    assert report["dailyBreakdown"][0]["sessionsCount"] == 3


@pytest.mark.asyncio
async def test_stats_report_rejects_inverted_range(client: AsyncClient, catalogue) -> None:
    resp = await client.get(f"{BASE}/reports", params={"startDate": "2026-10-10", "endDate": "2026-10-01"})

    assert resp.status_code == 400
    assert "before" in resp.json()["error"]["detail"]


@pytest.mark.asyncio
async def test_stats_report_unknown_user(client: AsyncClient, catalogue) -> None:
    resp = await client.get(f"{BASE}/reports", params={"userId": 999})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_invalid_date_param(client: AsyncClient, catalogue) -> None:
    resp = await client.get(f"{BASE}/summary", params={"startDate": "last week"})

    assert resp.status_code == 400
    assert "startDate" in resp.json()["error"]["detail"]


@pytest.mark.asyncio
async def test_date_only_end_covers_whole_day(client: AsyncClient, catalogue) -> None:
    await _record(client, materialId=catalogue.material_id, accessType="VIEW", sessionDuration=5)
    page = (await client.get(f"{BASE}/access")).json()
    day = page["data"][0]["accessedAt"][:10]

    summary = (await client.get(f"{BASE}/summary", params={"startDate": day, "endDate": day})).json()
    assert summary["totalAccesses"] == 1


@pytest.mark.asyncio
async def test_date_only_end_stops_before_next_midnight(
    client: AsyncClient, db_session: AsyncSession, catalogue
) -> None:
    for accessed_at in (datetime(2025, 3, 10, 12, 0, tzinfo=UTC), datetime(2025, 3, 11, 0, 0, tzinfo=UTC)):
        db_session.add(
            UserMaterialAccess(
                user_id=catalogue.user_id,
                material_id=catalogue.material_id,
                access_type=AccessType.VIEW.value,
                accessed_at=accessed_at,
            )
        )
    await db_session.commit()

    one_day = {"startDate": "2025-03-10", "endDate": "2025-03-10"}
    two_days = {"startDate": "2025-03-10", "endDate": "2025-03-11"}
    assert (await client.get(f"{BASE}/summary", params=one_day)).json()["totalAccesses"] == 1
    assert (await client.get(f"{BASE}/summary", params=two_days)).json()["totalAccesses"] == 2


# === CSV export ===


@pytest.mark.asyncio
async def test_export_summary_csv(client: AsyncClient, catalogue) -> None:
    await _record(client, materialId=catalogue.material_id, accessType="VIEW", sessionDuration=75)

    resp = await client.get(f"{BASE}/export/summary")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert resp.headers["content-disposition"] == "attachment; filename=summary.csv"
    lines = resp.text.splitlines()
    assert lines[:3] == ["LEARNING SUMMARY", "metric,value", "Total Accesses,1"]
    assert "Total Session Time,1:15" in lines


@pytest.mark.asyncio
async def test_export_access_history_contains_every_row(
    client: AsyncClient, db_session: AsyncSession, catalogue
) -> None:
    now = datetime.now(UTC)
    db_session.add_all(
        [
            UserMaterialAccess(
                user_id=catalogue.user_id,
                material_id=catalogue.material_id,
                access_type=AccessType.VIEW.value,
                session_duration=1,
                accessed_at=now - timedelta(minutes=i + 1),
            )
            for i in range(150)
        ]
    )
    await db_session.commit()

    resp = await client.get(f"{BASE}/export/access_history")

    rows = list(csv.reader(io.StringIO(resp.text)))
    assert rows[0][0] == "accessedAt"
    assert len(rows) - 1 == 150


@pytest.mark.asyncio
@pytest.mark.parametrize("report_type", ["access_history", "detailed", "stats", "patterns", "streak", "time_series"])
async def test_export_every_report_type(client: AsyncClient, catalogue, report_type: str) -> None:
    await _record(client, materialId=catalogue.material_id, accessType="VIEW", sessionDuration=10)

    resp = await client.get(f"{BASE}/export/{report_type}")

    assert resp.status_code == 200
    assert resp.text.endswith("\n")


@pytest.mark.asyncio
async def test_export_unknown_report_type(client: AsyncClient, catalogue) -> None:
    resp = await client.get(f"{BASE}/export/leaderboard")

    assert resp.status_code == 400
    assert "Unknown report type" in resp.json()["error"]["detail"]


# === Permissions ===


@pytest.mark.asyncio
async def test_student_cannot_read_another_users_report(
    client: AsyncClient, catalogue, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(get_settings(), "AUTH_PROVIDER", "header")
    headers = {"X-User-Id": str(catalogue.other_user_id), "X-User-Role": "STUDENT"}

    own = await client.get(f"{BASE}/summary", headers=headers)
    other = await client.get(f"{BASE}/summary", params={"userId": catalogue.user_id}, headers=headers)

    assert own.status_code == 200
    assert other.status_code == 403
