"""
LaunchNet Gateway - Device Directory

The only writer of device rows. Kept behind plain functions taking the
session so the auth gate and the ingestor never build queries themselves.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models import Device, DeviceStatus, DeviceType, utcnow

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


async def find_by_board_id(session: AsyncSession, board_id: str):
    result = await session.execute(select(Device).where(Device.board_id == board_id))
    return result.scalar_one_or_none()


async def find_any_relay(session: AsyncSession):
    stmt = (
        select(Device)
        .where(Device.device_type == DeviceType.BASE_STATION)
        .order_by(Device.created_at)
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create(session: AsyncSession, **fields) -> Device:
    """Explicit registration. The secret is provisioned separately."""
    device = Device(**fields)
    session.add(device)
    await session.flush()
    return device


async def update(session: AsyncSession, device: Device, **fields) -> Device:
    for name, value in fields.items():
        setattr(device, name, value)
    await session.flush()
    return device


async def create_discovered(session: AsyncSession, board_id: str, network_id, **fields):
    """Insert a field unit first seen in telemetry.

    Two reports for the same new board can race; the unique board_id makes
    the loser's insert a no-op. Returns ``(device, created)``.
    """
    values = dict(
        id=uuid.uuid4(),
        board_id=board_id,
        device_type=DeviceType.FIELD_UNIT,
        network_id=network_id,
        status=DeviceStatus.DISCOVERED,
        last_seen=utcnow(),
        created_at=utcnow(),
        updated_at=utcnow(),
        **fields,
    )
    dialect = session.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Auto-discovery needs an upsert-capable database, got {dialect}")

    stmt = insert(Device).values(**values).on_conflict_do_nothing(index_elements=["board_id"])
    result = await session.execute(stmt)
    created = result.rowcount == 1

    device = await find_by_board_id(session, board_id)
    if created:
        logger.info(f"Discovered new field unit {board_id} in network {network_id}")
    else:
        logger.info(f"Field unit {board_id} was discovered concurrently, updating instead")
    return device, created
