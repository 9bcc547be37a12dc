"""
LaunchNet API - Command Endpoints

Operator side of the command queue. The dispatch engine only consumes
commands; these routes create and inspect them.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.admin import require_admin_key
from backend.app.database import get_session
from backend.app.errors import CommandNotFound, NotFound
from backend.app.gateway import directory
from backend.app.gateway.sweeper import time_out_command
from backend.app.models import Command, DeviceType
from backend.app.schemas import CommandCreate, CommandOut, TimeoutRequest

router = APIRouter(prefix="/commands", tags=["commands"], dependencies=[Depends(require_admin_key)])


@router.post("/", response_model=CommandOut, status_code=201)
async def queue_command(data: CommandCreate, session: AsyncSession = Depends(get_session)):
    """Queue a command for a field unit, optionally pinned to one relay."""
    target = await directory.find_by_board_id(session, data.target_board_id)
    if not target or target.network_id != data.network_id:
        raise NotFound("Target device not found in network", board_id=data.target_board_id)

    source_id = None
    if data.source_board_id:
        source = await directory.find_by_board_id(session, data.source_board_id)
        if (
            not source
            or source.network_id != data.network_id
            or source.device_type != DeviceType.BASE_STATION
        ):
            raise NotFound("Source base station not found in network", board_id=data.source_board_id)
        source_id = source.id

    cmd = Command(
        network_id=data.network_id,
        source_device_id=source_id,
        target_device_id=target.id,
        message_type=data.message_type,
        priority=data.priority.value,
        payload=data.payload,
        message_id=data.message_id,
        created_by=data.created_by,
        max_retries=data.max_retries,
    )
    session.add(cmd)
    await session.commit()
    await session.refresh(cmd)
    return CommandOut.from_command(cmd)


@router.get("/{command_id}", response_model=CommandOut)
async def get_command(command_id: UUID, session: AsyncSession = Depends(get_session)):
    cmd = await session.get(Command, command_id)
    if cmd is None:
        raise CommandNotFound(command_id=str(command_id))
    return CommandOut.from_command(cmd)


@router.post("/{command_id}/timeout", response_model=CommandOut)
async def timeout_command(
    command_id: UUID,
    data: TimeoutRequest | None = None,
    session: AsyncSession = Depends(get_session),
):
    """Give up on a dispatched command that was never acknowledged."""
    cmd = await time_out_command(session, command_id, reason=data.reason if data else None)
    return CommandOut.from_command(cmd)
