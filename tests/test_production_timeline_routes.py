import json

import pytest


def _snapshot():
    return {
        "resources": [
            {"id": "bh-1", "name": "Brewhouse", "type": "brewhouse", "capacity": 20},
            {"id": "t1", "name": "FV-1", "type": "fermenter", "capacity": 30},
            {"id": "t2", "name": "BT-1", "type": "brite", "capacity": 30},
        ],
        "batches": [
            {
                "id": "b1",
                "batchNumber": "B1",
                "status": "FERMENTING",
                "volume": 20,
                "createdAt": "2026-02-28",
                "lots": [
                    {
                        "id": "l1",
                        "lotCode": "L1",
                        "phase": "FERMENTATION",
                        "status": "ACTIVE",
                        "assignments": [
                            {
                                "id": "a1",
                                "tankId": "t1",
                                "phase": "FERMENTATION",
                                "status": "ACTIVE",
                                "plannedStart": "2026-03-01",
                                "plannedEnd": "2026-03-15",
                            }
                        ],
                    }
                ],
            },
            {"id": "b2", "batchNumber": "B2", "status": "PLANNED", "plannedDate": "2026-03-12"},
        ],
    }


def test_health_endpoint(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["success"] is True


def test_timeline_endpoint_returns_events_and_counts(client):
    response = client.post("/api/production/timeline?now=2026-03-10T15:00:00Z", json=_snapshot())

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    data = body["data"]
    assert [event["id"] for event in data["events"]] == ["assignment:a1", "batch:b2"]
    assert data["events"][0]["end"] == "2026-03-15T12:00:00+00:00"
    assert data["events"][1]["resource_id"] == "bh-1"
    assert data["phase_counts"]["fermenting"] == 1
    assert data["phase_counts"]["planned"] == 1
    assert data["current_lots"] == {"b1": "L1", "b2": None}
    assert data["generated_at"] == "2026-03-10T15:00:00+00:00"


def test_reference_time_can_come_from_the_body(client):
    payload = dict(_snapshot(), now="2026-03-20T09:00:00Z")

    response = client.post("/api/production/timeline", json=payload)

    event = response.get_json()["data"]["events"][0]
    assert event["is_overdue"] is True
    assert event["end"] == "2026-03-20T12:00:00+00:00"


def test_phase_counts_endpoint(client):
    response = client.post("/api/production/phase-counts", json=_snapshot())

    assert response.status_code == 200
    assert response.get_json()["data"] == {
        "planned": 1,
        "brewing": 0,
        "fermenting": 1,
        "conditioning": 0,
        "ready": 0,
        "packaging": 0,
        "blended": 0,
        "split": 0,
    }


def test_summary_endpoint_lists_every_resource(client):
    response = client.post(
        "/api/production/timeline/summary?now=2026-03-10T15:00:00Z&window_days=10",
        json=_snapshot(),
    )

    assert response.status_code == 200
    rows = {row["resource_id"]: row for row in response.get_json()["data"]}
    assert set(rows) == {"bh-1", "t1", "t2"}
    assert rows["t1"]["current_label"] == "B1"
    assert rows["t1"]["active_count"] == 1
    assert rows["t1"]["utilisation_percent"] == 50
    assert rows["bh-1"]["planned_count"] == 1
    assert rows["t2"]["current_label"] is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"data": "not json", "content_type": "text/plain"},
        {"json": {}},
        {"json": {"batches": "b1"}},
        {"json": {"batches": [], "resources": "t1"}},
    ],
)
def test_invalid_snapshots_are_rejected(client, kwargs):
    response = client.post("/api/production/timeline", **kwargs)

    assert response.status_code == 422
    assert response.get_json()["success"] is False


def test_batches_without_an_id_are_ignored(client):
    snapshot = _snapshot()
    snapshot["batches"].append({"batchNumber": "missing id", "status": "PLANNED"})

    response = client.post("/api/production/timeline?now=2026-03-10T15:00:00Z", json=snapshot)

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert [event["id"] for event in data["events"]] == ["assignment:a1", "batch:b2"]
    assert data["phase_counts"]["planned"] == 1


def test_invalid_reference_time_is_rejected(client):
    response = client.post("/api/production/timeline?now=someday", json=_snapshot())

    assert response.status_code == 422
    assert "someday" in response.get_json()["errors"]["general"][0]


def test_oversized_snapshot_is_rejected(client):
    payload = {"batches": [{"id": f"b{index}"} for index in range(51)], "resources": []}

    response = client.post("/api/production/timeline", json=payload)

    assert response.status_code == 422


def test_unknown_path_returns_json_404(client):
    response = client.get("/api/production/nowhere")

    assert response.status_code == 404
    assert response.get_json()["success"] is False


def test_wrong_method_returns_json_405(client):
    response = client.get("/api/production/timeline")

    assert response.status_code == 405
    assert response.get_json()["success"] is False


def _cli_json(output):
    return json.loads(output[output.index("{"):])


def test_reconcile_snapshot_command(runner, tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(_snapshot()), encoding="utf-8")

    result = runner.invoke(args=["reconcile-snapshot", str(path), "--now", "2026-03-10T15:00:00Z"])

    assert result.exit_code == 0, result.output
    assert "Reconciled 2 batches" in result.output
    data = _cli_json(result.output)
    assert [event["id"] for event in data["events"]] == ["assignment:a1", "batch:b2"]


def test_reconcile_snapshot_command_counts_only(runner, tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(_snapshot()), encoding="utf-8")

    result = runner.invoke(args=["reconcile-snapshot", str(path), "--counts-only"])

    assert result.exit_code == 0, result.output
    assert _cli_json(result.output)["planned"] == 1


def test_reconcile_snapshot_command_rejects_bad_json(runner, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    result = runner.invoke(args=["reconcile-snapshot", str(path)])

    assert result.exit_code != 0
    assert "not valid JSON" in result.output


def test_timeline_config_command(runner):
    result = runner.invoke(args=["timeline-config"])

    assert result.exit_code == 0
    assert "Timezone: UTC" in result.output
    assert "Reference hour: 12:00" in result.output
