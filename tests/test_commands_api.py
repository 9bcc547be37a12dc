from datetime import datetime, timezone

from backend.app.config import settings
from backend.app.models import CommandStatus
from conftest import (
    ADMIN_HEADERS, FIELD_BOARD, NETWORK_ID, OTHER_NETWORK_ID, RELAY_BOARD, add_command, signed_poll,
    signed_post,
)


def new_command(**overrides):
    body = {
        "networkId": str(NETWORK_ID),
        "targetBoardId": FIELD_BOARD,
        "messageType": "MSG_TYPE_IGNITE",
        "priority": "critical",
        "payload": {"fuse": 1},
        "messageId": "IGN01",
    }
    body.update(overrides)
    return body


async def test_admin_key_required(client, relay, field_unit):
    r = await client.post("/api/v1/commands/", json=new_command())
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid admin key", "message": "Invalid admin key"}
    r = await client.post("/api/v1/commands/", json=new_command(), headers={"x-admin-key": "wrong"})
    assert r.status_code == 401


async def test_non_ascii_admin_key_is_rejected(client):
    r = await client.get(
        "/api/v1/telemetry/", params={"boardId": FIELD_BOARD},
        headers={"x-admin-key": "cl\u00e9-secr\u00e8te".encode("utf-8")},
    )
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid admin key"


async def test_admin_api_disabled_without_key(client, monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", None)
    r = await client.get("/api/v1/commands/00000000-0000-0000-0000-000000000000", headers=ADMIN_HEADERS)
    assert r.status_code == 503
    assert r.json()["error"] == "Admin API disabled"


async def test_unknown_command_uses_error_shape(client):
    r = await client.get("/api/v1/commands/00000000-0000-0000-0000-000000000000", headers=ADMIN_HEADERS)
    assert r.status_code == 404
    assert r.json()["error"] == "Command not found"


async def test_queue_then_poll(client, relay, relay_secret, field_unit):
    r = await client.post("/api/v1/commands/", json=new_command(sourceBoardId=RELAY_BOARD), headers=ADMIN_HEADERS)
    assert r.status_code == 201
    created = r.json()
    assert created["status"] == "PENDING"
    assert created["priority"] == "CRITICAL"
    assert created["sourceDeviceId"] == str(relay.id)

    polled = (await signed_poll(client, relay_secret)).json()
    assert polled["commandId"] == created["id"]
    assert polled["messageType"] == "MSG_TYPE_IGNITE"

    r = await client.get(f"/api/v1/commands/{created['id']}", headers=ADMIN_HEADERS)
    assert r.json()["status"] == "PROCESSING"


async def test_target_must_be_in_network(client, relay, field_unit):
    r = await client.post(
        "/api/v1/commands/", json=new_command(networkId=str(OTHER_NETWORK_ID)), headers=ADMIN_HEADERS
    )
    assert r.status_code == 404


async def test_source_must_be_a_relay(client, relay, field_unit):
    r = await client.post(
        "/api/v1/commands/", json=new_command(sourceBoardId=FIELD_BOARD), headers=ADMIN_HEADERS
    )
    assert r.status_code == 404


async def test_unknown_priority_is_invalid(client, relay, field_unit):
    r = await client.post("/api/v1/commands/", json=new_command(priority="urgent"), headers=ADMIN_HEADERS)
    assert r.status_code == 400


async def test_manual_timeout(client, session, relay, field_unit):
    cmd = await add_command(
        session, field_unit, status=CommandStatus.PROCESSING, dispatched_at=datetime.now(timezone.utc)
    )
    r = await client.post(
        f"/api/v1/commands/{cmd.id}/timeout", json={"reason": "relay went dark"}, headers=ADMIN_HEADERS
    )
    assert r.status_code == 200
    assert r.json()["status"] == "TIMEOUT"
    assert r.json()["errorMessage"] == "relay went dark"


async def test_manual_timeout_needs_processing(client, session, relay, field_unit):
    cmd = await add_command(session, field_unit)
    r = await client.post(f"/api/v1/commands/{cmd.id}/timeout", headers=ADMIN_HEADERS)
    assert r.status_code == 409


async def test_telemetry_history(client, relay, relay_secret, field_unit):
    for altitude in (1.0, 2.0):
        await signed_post(client, "telemetry", {
            "boardId": FIELD_BOARD, "messageType": "MSG_TYPE_GPS", "altitude": altitude,
        }, relay_secret)

    r = await client.get("/api/v1/telemetry/", params={"boardId": FIELD_BOARD}, headers=ADMIN_HEADERS)
    assert r.status_code == 200
    assert [row["altitude"] for row in r.json()] == [1.0, 2.0]

    r = await client.get("/api/v1/telemetry/latest", params={"boardId": FIELD_BOARD}, headers=ADMIN_HEADERS)
    assert r.json()["altitude"] == 2.0
