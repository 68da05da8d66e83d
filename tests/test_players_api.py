"""
Tests for Players API Endpoints
===============================

Tests for:
- Creating and fetching player documents
- Domain update endpoints and their error bodies
- Update history and integrity reports
- Bulk updates and external sync
"""

from datetime import datetime

import pytest
from httpx import AsyncClient


def today() -> str:
    return datetime.utcnow().date().isoformat()


# =============================================================================
# DOCUMENTS
# =============================================================================

@pytest.mark.asyncio
async def test_create_player(client: AsyncClient, player_document):
    """Test that a new player document is created."""
    response = await client.post("/api/players", json={"id": "p9", "document": player_document()})

    assert response.status_code == 201
    data = response.json()
    assert data["id"] == "p9"
    assert data["document"]["id"] == "p9"
    assert data["document"]["rugbyProfile"]["jerseyNumber"] == 12


@pytest.mark.asyncio
async def test_create_player_conflict(client: AsyncClient, seeded_players):
    """Test that an existing id returns 409."""
    response = await client.post("/api/players", json={"id": "p1", "document": {}})

    assert response.status_code == 409
    assert response.json()["detail"] == "Player p1 already exists"


@pytest.mark.asyncio
async def test_get_player(client: AsyncClient, seeded_players):
    """Test fetching a stored document."""
    response = await client.get("/api/players/p2")

    assert response.status_code == 200
    assert response.json()["document"]["personalDetails"]["lastName"] == "Okafor"


@pytest.mark.asyncio
async def test_get_player_not_found(client: AsyncClient):
    """Test 404 for an unknown player."""
    response = await client.get("/api/players/ghost")

    assert response.status_code == 404
    assert response.json()["detail"] == "Player ghost not found"


# =============================================================================
# DOMAIN UPDATES
# =============================================================================

@pytest.mark.asyncio
async def test_injury_endpoint_cascades(client: AsyncClient, seeded_players):
    """Test that logging an active injury restricts the player."""
    response = await client.post(
        "/api/players/p1/injuries",
        json={"id": "i1", "type": "Hamstring", "status": "active", "date": today()},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Injury record updated successfully"}

    document = (await client.get("/api/players/p1")).json()["document"]
    assert document["status"]["medical"] == "restricted"
    assert document["status"]["availability"] == "injured"
    assert document["playerValue"]["medicalScore"] == 8


@pytest.mark.asyncio
async def test_update_for_unknown_player_returns_404(client: AsyncClient):
    """Test the error body for a missing player."""
    response = await client.post("/api/players/ghost/injuries", json={"status": "active"})

    assert response.status_code == 404
    assert response.json() == {"success": False, "errors": ["Player not found"], "warnings": []}


@pytest.mark.asyncio
async def test_rejected_update_returns_400(client: AsyncClient, seeded_players):
    """Test the error body for a batch that fails validation."""
    response = await client.post("/api/players/p1/csv-import", json={"data": {"Weight (kg)": "250"}})

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "errors": ["Weight must be between 40-200kg"],
        "warnings": [],
    }


@pytest.mark.asyncio
async def test_malformed_payload_returns_422(client: AsyncClient, seeded_players):
    """Test that request schema errors are caught before the engine."""
    response = await client.post("/api/players/p1/injuries", json={"status": "broken"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_out_of_range_scores_return_422(client: AsyncClient, seeded_players):
    """Test that ratings and value scores outside 0-10 are rejected before the engine."""
    analysis = await client.post(
        "/api/players/p1/ai-analysis", json={"overallRating": 50, "physicalityRating": -4}
    )
    value = await client.post("/api/players/p1/player-value", json={"medicalScore": 10.5})

    assert analysis.status_code == 422
    assert value.status_code == 422
    document = (await client.get("/api/players/p1")).json()["document"]
    assert document["aiRating"]["overall"] == 6


@pytest.mark.asyncio
async def test_training_attendance_uses_path_player(client: AsyncClient, seeded_players):
    """Test that the player id comes from the URL."""
    response = await client.post(
        "/api/players/p1/training/attendance",
        json={"id": "s1", "date": today(), "status": "late", "sessionType": "skills_session"},
    )

    assert response.status_code == 200
    document = (await client.get("/api/players/p1")).json()["document"]
    assert document["trainingAttendance"][0]["playerId"] == "p1"
    assert document["playerValue"]["attendanceScore"] == 10


@pytest.mark.asyncio
async def test_missed_appointment_endpoint(client: AsyncClient, seeded_players):
    """Test that a missed appointment lowers attendance scores."""
    response = await client.post(
        "/api/players/p1/medical/appointments",
        json={"id": "apt_1", "type": "treatment", "date": today(), "status": "missed", "updatedBy": "physio_a"},
    )

    assert response.status_code == 200
    document = (await client.get("/api/players/p1")).json()["document"]
    assert document["playerValue"]["attendanceScore"] == 0
    assert document["cohesionMetrics"]["reliability"] == 0

    [entry] = (await client.get("/api/players/p1/update-history")).json()
    assert entry["updatedBy"] == "physio_a"


@pytest.mark.asyncio
@pytest.mark.parametrize("path, body, message", [
    ("gps-data", {"id": "g1", "totalDistance": 5200, "duration": 62}, "GPS data updated successfully"),
    ("live-match", {"matchId": "m1", "minutesPlayed": 40}, "Live match data updated successfully"),
    ("ai-analysis", {"overallRating": 7.1, "strengths": ["lineout"]}, "AI analysis updated successfully"),
    ("player-value", {"totalScore": 71}, "Player value updated successfully"),
])
async def test_update_endpoints_success(client: AsyncClient, seeded_players, path, body, message):
    """Test the success body of the simple update endpoints."""
    response = await client.post(f"/api/players/p1/{path}", json=body)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": message}


# =============================================================================
# BULK & SYNC
# =============================================================================

@pytest.mark.asyncio
async def test_bulk_update(client: AsyncClient, seeded_players):
    """Test per-player results and the summary message."""
    response = await client.post(
        "/api/players/bulk-update",
        json={
            "playerUpdates": [
                {"playerId": "p1", "updates": {"skills.passing": 8}},
                {"playerId": "ghost", "updates": {"skills.passing": 8}},
            ],
            "updatedBy": "analyst",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Bulk update completed: 1 successful, 1 failed"
    assert [(r["playerId"], r["success"]) for r in data["results"]] == [("p1", True), ("ghost", False)]
    assert data["results"][1]["errors"] == ["Player not found"]


@pytest.mark.asyncio
async def test_sync_endpoint(client: AsyncClient, seeded_players):
    """Test a successful provider sync."""
    response = await client.post("/api/players/p1/sync/statsports", json={"playerLoad": 480})

    assert response.status_code == 200
    assert response.json()["message"] == "Data synced from statsports successfully"

    [entry] = (await client.get("/api/players/p1/update-history")).json()
    assert entry["updatedBy"] == "statsports_api"
    assert entry["source"] == "api_call"


@pytest.mark.asyncio
async def test_sync_unknown_source(client: AsyncClient, seeded_players):
    """Test 400 for an unsupported provider."""
    response = await client.post("/api/players/p1/sync/opta", json={})

    assert response.status_code == 400
    assert response.json()["detail"] == "Unknown data source: opta"


# =============================================================================
# HISTORY & REPORTS
# =============================================================================

@pytest.mark.asyncio
async def test_update_history(client: AsyncClient, seeded_players):
    """Test the history payload and its camelCase keys."""
    await client.post(
        "/api/players/p1/injuries",
        json={"id": "i1", "type": "Ankle", "status": "active", "date": today()},
    )
    await client.post("/api/players/p1/csv-import", json={"data": {"Phone": "0207 946 0000"}})

    response = await client.get("/api/players/p1/update-history")

    assert response.status_code == 200
    [latest, first] = response.json()
    assert latest["category"] == "personal"
    assert latest["source"] == "csv_upload"
    assert first["playerId"] == "p1"
    assert first["category"] == "medical"
    assert first["source"] == "medical_update"
    assert first["updatedBy"] == "medical_staff"
    assert first["reason"] == "Injury active: Ankle"
    assert first["previousValue"]["status.medical"] == "cleared"
    assert first["newValue"]["status.medical"] == "restricted"
    assert "Availability Status" in first["affectedMetrics"]

    paged = await client.get("/api/players/p1/update-history", params={"limit": 1, "offset": 1})
    assert [e["id"] for e in paged.json()] == [first["id"]]


@pytest.mark.asyncio
async def test_update_history_rejects_zero_limit(client: AsyncClient, seeded_players):
    """Test query validation on limit."""
    response = await client.get("/api/players/p1/update-history", params={"limit": 0})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_history_unknown_player_is_empty(client: AsyncClient):
    """Test that an unknown player has no history."""
    response = await client.get("/api/players/ghost/update-history")

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_integrity_report(client: AsyncClient, seeded_players):
    """Test the report for a consistent document."""
    response = await client.get("/api/players/p1/integrity-report")

    assert response.status_code == 200
    data = response.json()
    assert data["consistencyScore"] == 100
    assert data["issues"] == []
    assert data["recommendations"] == []
    assert "lastValidation" in data


@pytest.mark.asyncio
async def test_integrity_report_not_found(client: AsyncClient):
    """Test 404 for a report on an unknown player."""
    response = await client.get("/api/players/ghost/integrity-report")

    assert response.status_code == 404
