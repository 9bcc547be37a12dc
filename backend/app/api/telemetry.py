from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.api.admin import require_admin_key
from backend.app.database import get_session
from backend.app.errors import NotFound
from backend.app.gateway import directory
from backend.app.models import Telemetry
from backend.app.schemas import TelemetryOut

router = APIRouter(prefix="/telemetry", tags=["telemetry"], dependencies=[Depends(require_admin_key)])


@router.get("/", response_model=List[TelemetryOut])
async def get_telemetry_history(
    board_id: str = Query(..., alias="boardId"),
    limit: int = Query(100, ge=1, le=1000),
    session: AsyncSession = Depends(get_session)
):
    device = await directory.find_by_board_id(session, board_id)
    if device is None:
        raise NotFound("Device not found", board_id=board_id)

    stmt = (
        select(Telemetry)
        .where(Telemetry.device_id == device.id)
        .order_by(Telemetry.received_at.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    # Oldest first so the map trail draws in order
    return list(reversed(result.scalars().all()))


@router.get("/latest", response_model=TelemetryOut)
async def get_latest_telemetry(
    board_id: str = Query(..., alias="boardId"),
    session: AsyncSession = Depends(get_session)
):
    device = await directory.find_by_board_id(session, board_id)
    if device is None:
        raise NotFound("Device not found", board_id=board_id)

    stmt = (
        select(Telemetry)
        .where(Telemetry.device_id == device.id)
        .order_by(Telemetry.received_at.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFound("No telemetry for device", board_id=board_id)
    return entry
