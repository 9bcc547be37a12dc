"""
LaunchNet Gateway - Command Lifecycle

    PENDING ──► PROCESSING ──► COMPLETED | FAILED | TIMEOUT
       └──────────────────────► COMPLETED | FAILED

Terminal states have no exits. Every transition is a conditional UPDATE on
the status the caller observed, so two writers racing on the same command
cannot both succeed.
"""

import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from backend.app.errors import InvalidTransition
from backend.app.models import Command, CommandStatus, utcnow

logger = logging.getLogger(__name__)

TRANSITIONS = {
    CommandStatus.PENDING: frozenset({
        CommandStatus.PROCESSING,
        CommandStatus.COMPLETED,
        CommandStatus.FAILED,
    }),
    CommandStatus.PROCESSING: frozenset({
        CommandStatus.COMPLETED,
        CommandStatus.FAILED,
        CommandStatus.TIMEOUT,
    }),
    CommandStatus.COMPLETED: frozenset(),
    CommandStatus.FAILED: frozenset(),
    CommandStatus.TIMEOUT: frozenset(),
}

TERMINAL_STATES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def can_transition(current: CommandStatus, target: CommandStatus) -> bool:
    return target in TRANSITIONS[current]


def is_terminal(status: CommandStatus) -> bool:
    return status in TERMINAL_STATES


async def transition(session: AsyncSession, command: Command, target: CommandStatus, **fields) -> bool:
    """Move ``command`` to ``target`` if it is still in the status we loaded.

    Raises InvalidTransition for an illegal edge. Returns False when another
    writer changed the status first; the caller decides what that means.
    """
    current = command.status
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move command from {current.value} to {target.value}",
            command_id=str(command.id),
        )

    now = utcnow()
    values = dict(status=target, updated_at=now, **fields)
    if target is CommandStatus.PROCESSING:
        values.setdefault("dispatched_at", now)
    elif is_terminal(target):
        values.setdefault("completed_at", now)

    stmt = (
        update(Command)
        .where(Command.id == command.id, Command.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount != 1:
        logger.debug(f"Command {command.id} left {current.value} before we could move it")
        return False

    for name, value in values.items():
        set_committed_value(command, name, value)
    logger.debug(f"Command {command.id}: {current.value} -> {target.value}")
    return True
