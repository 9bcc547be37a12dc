"""
LaunchNet API - Gateway Endpoints

Called by base stations (NodeMCU relays) only. Every route is behind the
HMAC device gate.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.database import get_session
from backend.app.gateway.acks import acknowledge_command
from backend.app.gateway.auth import authenticate_device
from backend.app.gateway.dispatch import dispatch_next
from backend.app.gateway.ingest import ingest_telemetry
from backend.app.models import CommandPriority, Device
from backend.app.schemas import (
    AckRequest, AckResponse, CommandDescriptor, TelemetryAccepted, TelemetryReport,
)

router = APIRouter(prefix="/gateway", tags=["gateway"])


@router.get("/poll", response_model=CommandDescriptor, responses={204: {"description": "Nothing queued"}})
async def poll(
    relay: Device = Depends(authenticate_device),
    session: AsyncSession = Depends(get_session),
):
    """Hand the polling relay its next command, or 204 to save bandwidth."""
    dispatched = await dispatch_next(session, relay)
    if dispatched is None:
        return Response(status_code=204)

    command, target_board_id = dispatched
    return CommandDescriptor(
        command_id=command.id,
        target_board_id=target_board_id,
        message_type=command.message_type,
        message_id=command.message_id,
        payload=command.payload,
        priority=CommandPriority(command.priority).name,
    )


@router.post("/telemetry", response_model=TelemetryAccepted, status_code=201)
async def telemetry(
    report: TelemetryReport,
    relay: Device = Depends(authenticate_device),
    session: AsyncSession = Depends(get_session),
):
    """Store a report forwarded by a relay, discovering unknown units."""
    device = await ingest_telemetry(session, relay, report)
    return TelemetryAccepted(device_id=device.id)


@router.post("/ack", response_model=AckResponse)
async def ack(
    data: AckRequest,
    relay: Device = Depends(authenticate_device),
    session: AsyncSession = Depends(get_session),
):
    """Close a dispatched command with its outcome."""
    await acknowledge_command(session, relay, data)
    return AckResponse()
