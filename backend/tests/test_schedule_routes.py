"""
HTTP-level tests for the scheduling API

Covers the status-code mapping of the error taxonomy and the shape of the
main responses. Generation details are tested at the service level.
"""

from tests.factories import roster


def _create(client, week_id):
    response = client.post(f"/api/weeks/{week_id}/schedule")
    assert response.status_code == 201, response.text
    return response.json()


def test_health_check(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"app_name": "Golf Scheduler API", "status": "healthy"}


def test_create_and_fetch_schedule(client, seed_week):
    week, players = seed_week(roster(8))

    body = _create(client, week.id)

    assert body["status"] == "success"
    assert body["pairings_recorded"] == 12
    stored = client.get(f"/api/weeks/{week.id}/schedule").json()
    assert stored["time_slots"] == body["schedule"]["time_slots"]
    assert len(stored["players"]) == 8


def test_error_categories_map_to_status_codes(client, seed_week):
    week, _ = seed_week(roster(8))
    small_week, _ = seed_week(roster(3), season_id=2)
    _create(client, week.id)

    duplicate = client.post(f"/api/weeks/{week.id}/schedule")
    missing = client.post("/api/weeks/999/schedule")
    too_small = client.post(f"/api/weeks/{small_week.id}/schedule")

    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["category"] == "already_exists"
    assert missing.status_code == 404
    assert too_small.status_code == 422
    assert too_small.json()["detail"]["category"] == "insufficient_resources"


def test_regenerate_increments_count(client, seed_week):
    week, _ = seed_week(roster(8))
    _create(client, week.id)

    response = client.post(f"/api/weeks/{week.id}/schedule/regenerate", json={"retryAttempts": 1})

    assert response.status_code == 200
    assert response.json()["schedule"]["regeneration_count"] == 1
    assert response.json()["backup_id"] is not None
    status = client.get(f"/api/weeks/{week.id}/regeneration-status").json()
    assert status["state"] == "completed"
    assert status["progress"] == 100


def test_status_defaults_to_idle(client):
    status = client.get("/api/weeks/5/regeneration-status").json()

    assert status["state"] == "idle"
    assert client.delete("/api/weeks/5/regeneration-status").json() == {"week_id": 5, "cleared": False}


def test_regeneration_allowed(client, seed_week):
    week, _ = seed_week(roster(8))

    allowed = client.get(f"/api/weeks/{week.id}/regeneration-allowed").json()
    unknown = client.get("/api/weeks/999/regeneration-allowed").json()

    assert allowed == {"week_id": week.id, "allowed": True, "reasons": []}
    assert unknown["allowed"] is False
    assert len(unknown["reasons"]) == 2


def test_edit_with_camel_case_operation(client, seed_week):
    week, _ = seed_week(roster(8))
    body = _create(client, week.id)
    morning = body["schedule"]["time_slots"]["morning"][0]["player_ids"]
    afternoon = body["schedule"]["time_slots"]["afternoon"][0]["player_ids"]

    response = client.post(
        f"/api/weeks/{week.id}/schedule/edits",
        json={"operation": {"type": "swap", "playerId": morning[0], "secondPlayerId": afternoon[0]}},
    )

    assert response.status_code == 200, response.text
    slots = client.get(f"/api/weeks/{week.id}/schedule").json()["time_slots"]
    assert slots["morning"][0]["player_ids"][0] == afternoon[0]
    assert slots["afternoon"][0]["player_ids"][0] == morning[0]


def test_rejected_edit_returns_all_errors(client, seed_week):
    week, _ = seed_week(roster(8))
    body = _create(client, week.id)
    morning = body["schedule"]["time_slots"]["morning"][0]
    afternoon = body["schedule"]["time_slots"]["afternoon"][0]

    response = client.post(
        f"/api/weeks/{week.id}/schedule/edits",
        json={
            "operation": {
                "type": "move",
                "playerId": morning["player_ids"][0],
                "fromFoursomeId": morning["id"],
                "toFoursomeId": afternoon["id"],
            }
        },
    )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["category"] == "validation"
    assert detail["errors"]


def test_validate_proposed_schedule(client, seed_week):
    week, players = seed_week(roster(8))
    ids = [p.id for p in players]

    response = client.post(
        f"/api/weeks/{week.id}/schedule/validate",
        json={"time_slots": {"morning": [{"id": "a", "position": 0, "player_ids": ids[:4] + ids[:1]}]}},
    )

    assert response.status_code == 200
    assert response.json()["is_valid"] is False
    assert any("appears 2 times" in e for e in response.json()["errors"])


def test_validate_rejects_unknown_time_slot(client, seed_week):
    week, players = seed_week(roster(8))
    ids = [p.id for p in players]

    response = client.post(
        f"/api/weeks/{week.id}/schedule/validate",
        json={
            "time_slots": {
                "morning": [{"id": "m1", "position": 0, "player_ids": ids[:2]}],
                "evening": [{"id": "e1", "position": 0, "player_ids": ids[2:6]}],
            }
        },
    )

    assert response.status_code == 422


def test_conflict_report_after_availability_change(client, seed_week):
    week, players = seed_week(roster(8))
    _create(client, week.id)
    dropout = players[0]

    response = client.put(f"/api/weeks/{week.id}/availability/{dropout.id}", json={"status": "unavailable"})
    assert response.status_code == 200
    assert response.json() == {"week_id": week.id, "player_id": dropout.id, "status": "unavailable"}

    report = client.get(f"/api/weeks/{week.id}/schedule/conflicts").json()

    assert report["is_valid"] is False
    assert [c["player_id"] for c in report["conflicts"]] == [dropout.id]
    assert report["suggestions"][0]["kind"] == "remove_player"


def test_clearing_availability_reports_absent(client, seed_week):
    week, players = seed_week(roster(8))
    player = players[0]
    client.put(f"/api/weeks/{week.id}/availability/{player.id}", json={"status": "unavailable"})

    response = client.put(f"/api/weeks/{week.id}/availability/{player.id}", json={})

    assert response.status_code == 200
    assert response.json()["status"] == "absent"


def test_availability_for_unknown_player_or_other_season(client, seed_week):
    week, _ = seed_week(roster(8))
    _, outsiders = seed_week(roster(4), season_id=2)

    assert client.put(f"/api/weeks/{week.id}/availability/9999", json={"status": "available"}).status_code == 404
    response = client.put(f"/api/weeks/{week.id}/availability/{outsiders[0].id}", json={"status": "available"})
    assert response.status_code == 404
    assert client.put("/api/weeks/404/availability/1", json={"status": "available"}).status_code == 404
    assert client.put(f"/api/weeks/{week.id}/availability/1", json={"status": "maybe"}).status_code == 422


def test_delete_schedule_and_history(client, seed_week):
    week, _ = seed_week(roster(8))
    _create(client, week.id)

    history = client.get(f"/api/seasons/{week.season_id}/schedules").json()
    assert [s["week_id"] for s in history] == [week.id]

    assert client.delete(f"/api/weeks/{week.id}/schedule").json() == {"week_id": week.id, "deleted": True}
    assert client.get(f"/api/weeks/{week.id}/schedule").status_code == 404


def test_pairing_metrics_and_reset(client, seed_week):
    week, _ = seed_week(roster(8))
    _create(client, week.id)

    metrics = client.get(f"/api/seasons/{week.season_id}/pairings/metrics").json()
    assert metrics["pair_count"] == 28
    assert metrics["max_pairings"] == 1

    removed = client.delete(f"/api/seasons/{week.season_id}/pairings").json()
    assert removed == {"season_id": week.season_id, "removed": 12}


def test_open_breaker_returns_503_with_retry_after(client):
    for _ in range(5):
        assert client.post("/api/weeks/77/schedule/regenerate").status_code == 404

    response = client.post("/api/weeks/77/schedule/regenerate")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "30"
    status = client.get("/api/circuit-breakers/regenerate_schedule:77").json()
    assert status["state"] == "open"

    reset = client.post("/api/circuit-breakers/reset", json={"opKey": "regenerate_schedule:77"}).json()
    assert reset == {"reset": ["regenerate_schedule:77"]}
    assert client.post("/api/weeks/77/schedule/regenerate").status_code == 404


def test_force_release_lock_without_lock(client):
    assert client.delete("/api/weeks/3/schedule/lock").json() == {"week_id": 3, "released": False}
