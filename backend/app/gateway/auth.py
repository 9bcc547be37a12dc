"""
LaunchNet Gateway - Device Authentication

FastAPI dependency guarding every relay-facing route.

Expected headers:
    X-Device-Timestamp: Unix seconds or ISO-8601 date-time
    X-Device-Signature: hex HMAC-SHA256 of boardId|timestamp|operation[|body]

``boardId`` (the relay) comes from the query string, or from the JSON body
when the query has none. The body is signed exactly as sent, so the relay
must not reformat it after signing.
"""

import json

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.database import get_session
from backend.app.errors import (
    DeviceNotFound, DeviceNotProvisioned, InvalidSignature,
    InvalidTimestamp, MissingBoardId, MissingCredentials,
)
from backend.app.gateway import directory
from backend.app.gateway.security import (
    build_canonical_message, is_timestamp_valid, verify_signature,
)
from backend.app.models import Device


TIMESTAMP_HEADER = "x-device-timestamp"
SIGNATURE_HEADER = "x-device-signature"

WRITE_METHODS = ("POST", "PUT", "PATCH")


def operation_name(request: Request) -> str:
    """Last path segment: "poll", "telemetry" or "ack"."""
    return request.url.path.rstrip("/").rsplit("/", 1)[-1]


def claimed_board_id(request: Request, body: bytes | None):
    """The authenticating relay: ``boardId`` query parameter, else body field.

    Telemetry bodies name the reporting unit, which is often a field unit
    forwarded by the relay, so relays put their own id in the query string.
    """
    board_id = request.query_params.get("boardId")
    if board_id or body is None:
        return board_id
    try:
        document = json.loads(body)
    except ValueError:
        return None
    if isinstance(document, dict):
        board_id = document.get("boardId")
        if isinstance(board_id, str):
            return board_id
    return None


async def authenticate_device(
    request: Request, session: AsyncSession = Depends(get_session)
) -> Device:
    """Admit the request or raise an AuthenticationError subclass.

    Nothing is written before this returns. Rejections are logged by the
    app-level error handler.
    """
    timestamp = request.headers.get(TIMESTAMP_HEADER)
    signature = request.headers.get(SIGNATURE_HEADER)
    if not timestamp or not signature:
        raise MissingCredentials("Missing X-Device-Timestamp or X-Device-Signature header")

    if not is_timestamp_valid(timestamp):
        raise InvalidTimestamp("Message timestamp is too old or invalid", timestamp=timestamp)

    body = await request.body() if request.method in WRITE_METHODS else None
    board_id = claimed_board_id(request, body)
    if not board_id:
        raise MissingBoardId("boardId must be provided in query string or request body")

    device = await directory.find_by_board_id(session, board_id)
    if device is None:
        raise DeviceNotFound(f"No device registered with boardId: {board_id}", board_id=board_id)
    if not device.device_secret:
        raise DeviceNotProvisioned(
            "Device secret not configured. Provision this device first.", board_id=board_id
        )

    message = build_canonical_message(device.board_id, timestamp, operation_name(request), body)
    if not verify_signature(device.device_secret, message, signature):
        raise InvalidSignature("HMAC signature verification failed", board_id=board_id)

    request.state.device = device
    return device
