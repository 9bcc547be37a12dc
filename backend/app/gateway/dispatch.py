"""
LaunchNet Gateway - Dispatch Selector

Hands a polling base station at most one command per poll. LoRa links are
slow, so a relay never gets a batch: the highest priority pending command
for its network (oldest first within a tier) or nothing.
"""

import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.errors import RelayNotFound
from backend.app.gateway import directory
from backend.app.gateway.lifecycle import transition
from backend.app.models import Command, CommandStatus, Device, DeviceStatus, DeviceType, utcnow

logger = logging.getLogger(__name__)

# Claims lost to a concurrent poller before we give up and report nothing
MAX_CLAIM_ATTEMPTS = 5


def pending_for_relay(relay: Device):
    """Next pending command addressed to ``relay`` or broadcast to its network."""
    return (
        select(Command)
        .where(
            Command.network_id == relay.network_id,
            Command.status == CommandStatus.PENDING,
            or_(Command.source_device_id.is_(None), Command.source_device_id == relay.id),
        )
        .order_by(Command.priority.desc(), Command.created_at.asc())
        .limit(1)
        .with_for_update(skip_locked=True)
    )


async def find_next_pending(session: AsyncSession, relay: Device):
    result = await session.execute(pending_for_relay(relay))
    return result.scalar_one_or_none()


async def claim(session: AsyncSession, command: Command) -> bool:
    """PENDING -> PROCESSING, False if another poller got there first."""
    return await transition(session, command, CommandStatus.PROCESSING)


async def dispatch_next(session: AsyncSession, relay: Device):
    """Claim the next command for ``relay``.

    Returns ``(command, target_board_id)`` or None when nothing is queued.
    The poll bookkeeping and the claim are committed together.
    """
    if relay.device_type != DeviceType.BASE_STATION:
        raise RelayNotFound(board_id=relay.board_id)

    now = utcnow()
    await directory.update(
        session, relay, last_polled=now, last_seen=now, status=DeviceStatus.ONLINE
    )

    for _ in range(MAX_CLAIM_ATTEMPTS):
        command = await find_next_pending(session, relay)
        if command is None:
            break
        if await claim(session, command):
            target_board_id = None
            if command.target_device_id is not None:
                target_board_id = await session.scalar(
                    select(Device.board_id).where(Device.id == command.target_device_id)
                )
            await session.commit()
            logger.info(
                f"Dispatched command {command.id} ({command.message_type.value}) "
                f"to relay {relay.board_id}"
            )
            return command, target_board_id
    else:
        logger.warning(f"Relay {relay.board_id} lost {MAX_CLAIM_ATTEMPTS} claims in a row")

    await session.commit()
    return None
