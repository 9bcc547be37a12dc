import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.errors import CommandAlreadyFinalized, CommandNotFound
from backend.app.gateway.lifecycle import is_terminal, transition
from backend.app.models import Command, CommandStatus, Device
from backend.app.schemas import AckRequest

logger = logging.getLogger(__name__)


async def acknowledge_command(session: AsyncSession, relay: Device, ack: AckRequest) -> Command:
    """Close a command with the outcome a relay reported.

    A repeated ack with the same outcome is accepted without touching the
    row; radios retransmit. A different outcome on a finished command is a
    conflict.
    """
    stmt = select(Command).where(
        Command.id == ack.command_id, Command.network_id == relay.network_id
    )
    command = (await session.execute(stmt)).scalar_one_or_none()
    if command is None:
        raise CommandNotFound(command_id=str(ack.command_id), board_id=relay.board_id)

    target = CommandStatus.COMPLETED if ack.success else CommandStatus.FAILED

    if is_terminal(command.status):
        if command.status == target:
            logger.info(f"Duplicate ack for command {command.id} ignored")
            return command
        raise CommandAlreadyFinalized(
            f"Command is already {command.status.value}",
            command_id=str(command.id),
            board_id=relay.board_id,
        )

    fields = {"response_data": ack.response_data or {}}
    if not ack.success and ack.error_message:
        fields["error_message"] = ack.error_message

    if not await transition(session, command, target, **fields):
        # Lost a race against another ack or the timeout sweep
        await session.rollback()
        raise CommandAlreadyFinalized(command_id=str(command.id), board_id=relay.board_id)

    await session.commit()
    logger.info(f"Command {command.id} {target.value} (ack from relay {relay.board_id})")
    return command
