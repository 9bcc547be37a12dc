"""
LaunchNet Gateway - Timeout Sweep

Commands a relay took but never acknowledged stay PROCESSING forever unless
something closes them. This runs beside the request path, never inside it.
"""

import asyncio
import logging
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.config import settings
from backend.app.errors import CommandNotFound, InvalidTransition
from backend.app.gateway.lifecycle import transition
from backend.app.models import Command, CommandStatus, utcnow

logger = logging.getLogger(__name__)


async def time_out_command(session: AsyncSession, command_id, reason=None) -> Command:
    """Manually mark one PROCESSING command as TIMEOUT."""
    command = await session.get(Command, command_id)
    if command is None:
        raise CommandNotFound(command_id=str(command_id))
    if command.status != CommandStatus.PROCESSING:
        raise InvalidTransition(
            f"Only PROCESSING commands can time out, this one is {command.status.value}",
            command_id=str(command_id),
        )

    message = reason or "Timed out by operator"
    if not await transition(session, command, CommandStatus.TIMEOUT, error_message=message):
        await session.rollback()
        raise InvalidTransition("Command changed state concurrently", command_id=str(command_id))
    await session.commit()
    logger.info(f"Command {command_id} marked TIMEOUT: {message}")
    return command


async def sweep_timeouts(session: AsyncSession, older_than=None) -> int:
    """Move every command PROCESSING for longer than ``older_than`` seconds to TIMEOUT.

    Returns the number of commands timed out.
    """
    window = settings.command_ack_timeout if older_than is None else older_than
    cutoff = utcnow() - timedelta(seconds=window)
    stmt = select(Command).where(
        Command.status == CommandStatus.PROCESSING,
        Command.dispatched_at < cutoff,
    )
    stale = (await session.execute(stmt)).scalars().all()

    swept = 0
    message = f"No acknowledgment within {window}s"
    for command in stale:
        if await transition(session, command, CommandStatus.TIMEOUT, error_message=message):
            swept += 1
    await session.commit()

    if swept:
        logger.info(f"Timed out {swept} unacknowledged command(s)")
    return swept


async def run_sweeper(session_factory, interval=None):
    """Periodic sweep loop, started from the app lifespan."""
    interval = settings.timeout_sweep_interval if interval is None else interval
    logger.info(f"Timeout sweeper running every {interval}s")
    while True:
        await asyncio.sleep(interval)
        try:
            async with session_factory() as session:
                await sweep_timeouts(session)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Timeout sweep failed")
