import json
import os
import time
import uuid
from datetime import datetime, timedelta, timezone

# Must be set before the app modules read their settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["TIMEOUT_SWEEP_INTERVAL"] = "0"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.app import models
from backend.app.database import Base, get_session
from backend.app.gateway.security import build_canonical_message, generate_device_secret, sign
from backend.app.main import app

NETWORK_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
OTHER_NETWORK_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")

RELAY_BOARD = "100000000001"
FIELD_BOARD = "200000000001"
ADMIN_HEADERS = {"x-admin-key": "test-admin-key"}


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def add_device(session, board_id, device_type=models.DeviceType.BASE_STATION,
                     network_id=NETWORK_ID, secret=None, **fields):
    device = models.Device(
        board_id=board_id,
        device_type=device_type,
        network_id=network_id,
        device_secret=secret,
        **fields,
    )
    session.add(device)
    await session.commit()
    return device


async def add_command(session, target, priority=models.CommandPriority.NORMAL,
                      network_id=NETWORK_ID, created_at=None, **fields):
    fields.setdefault("message_type", models.MessageType.MSG_TYPE_PING)
    command = models.Command(
        network_id=network_id,
        target_device_id=target.id,
        priority=priority.value,
        created_at=created_at or datetime.now(timezone.utc),
        **fields,
    )
    session.add(command)
    await session.commit()
    return command


@pytest.fixture
def relay_secret():
    return generate_device_secret()


@pytest.fixture
async def relay(session, relay_secret):
    return await add_device(session, RELAY_BOARD, secret=relay_secret)


@pytest.fixture
async def field_unit(session):
    return await add_device(
        session, FIELD_BOARD, device_type=models.DeviceType.FIELD_UNIT,
        status=models.DeviceStatus.ONLINE,
    )


def staggered(count, start=None):
    """Distinct, increasing creation times."""
    start = start or datetime.now(timezone.utc) - timedelta(minutes=10)
    return [start + timedelta(seconds=i) for i in range(count)]


def signed_headers(board_id, secret, operation, body=None, timestamp=None):
    timestamp = str(int(time.time())) if timestamp is None else str(timestamp)
    message = build_canonical_message(board_id, timestamp, operation, body)
    return {
        "X-Device-Timestamp": timestamp,
        "X-Device-Signature": sign(secret, message),
        "Content-Type": "application/json",
    }


async def signed_poll(client, secret, board_id=RELAY_BOARD, **kwargs):
    return await client.get(
        "/api/v1/gateway/poll",
        params={"boardId": board_id},
        headers=signed_headers(board_id, secret, "poll", **kwargs),
    )


async def signed_post(client, operation, document, secret, board_id=RELAY_BOARD):
    body = json.dumps(document).encode()
    return await client.post(
        f"/api/v1/gateway/{operation}",
        params={"boardId": board_id},
        content=body,
        headers=signed_headers(board_id, secret, operation, body),
    )


async def reload(session_factory, model, ident):
    async with session_factory() as fresh:
        return await fresh.get(model, ident)
