import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Column, DateTime, Enum, Float, ForeignKey, Index, Integer, String, Text, Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB

from backend.app.database import Base

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow():
    return datetime.now(timezone.utc)


class DeviceType(str, enum.Enum):
    BASE_STATION = "BASE_STATION"
    FIELD_UNIT = "FIELD_UNIT"


class DeviceStatus(str, enum.Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    DISCOVERED = "DISCOVERED"
    LOW_BATTERY = "LOW_BATTERY"


class MessageType(str, enum.Enum):
    MSG_TYPE_POSA = "MSG_TYPE_POSA"
    MSG_TYPE_BATT = "MSG_TYPE_BATT"
    MSG_TYPE_GPS = "MSG_TYPE_GPS"
    MSG_TYPE_COORD = "MSG_TYPE_COORD"
    MSG_TYPE_PING = "MSG_TYPE_PING"
    MSG_TYPE_PONG = "MSG_TYPE_PONG"
    MSG_TYPE_SET_R = "MSG_TYPE_SET_R"
    MSG_TYPE_RES_ID = "MSG_TYPE_RES_ID"
    MSG_TYPE_MSG = "MSG_TYPE_MSG"
    MSG_TYPE_IGNITE = "MSG_TYPE_IGNITE"


# Instructions only travel server -> device, never in a report
TELEMETRY_MESSAGE_TYPES = frozenset(MessageType) - {MessageType.MSG_TYPE_IGNITE}


class CommandStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"


class CommandPriority(enum.IntEnum):
    """Stored as its rank so ``ORDER BY priority DESC`` puts CRITICAL first."""
    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3


class Device(Base):
    __tablename__ = "devices"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    board_id = Column(String(12), unique=True, nullable=False)
    device_type = Column(Enum(DeviceType, native_enum=False, length=16), nullable=False)
    network_id = Column(Uuid, nullable=False, index=True)
    status = Column(
        Enum(DeviceStatus, native_enum=False, length=16),
        nullable=False,
        default=DeviceStatus.DISCOVERED,
    )
    name = Column(String(128))
    latitude = Column(Float)
    longitude = Column(Float)
    altitude = Column(Float)
    battery_voltage = Column(Float)
    battery_percent = Column(Integer)
    last_seen = Column(DateTime(timezone=True))
    last_polled = Column(DateTime(timezone=True))
    firmware_version = Column(String(32))
    device_secret = Column(String(128))
    extra = Column("metadata", JSONType)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Command(Base):
    __tablename__ = "commands"
    __table_args__ = (
        Index("ix_commands_dispatch", "network_id", "status", "priority", "created_at"),
    )
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    network_id = Column(Uuid, nullable=False)
    source_device_id = Column(Uuid, ForeignKey("devices.id", ondelete="SET NULL"), index=True)
    target_device_id = Column(Uuid, ForeignKey("devices.id", ondelete="SET NULL"), index=True)
    message_type = Column(Enum(MessageType, native_enum=False, length=24), nullable=False)
    priority = Column(Integer, nullable=False, default=CommandPriority.NORMAL.value)
    status = Column(
        Enum(CommandStatus, native_enum=False, length=16),
        nullable=False,
        default=CommandStatus.PENDING,
    )
    payload = Column(JSONType)
    message_id = Column(String(5))
    created_by = Column(String(64))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    dispatched_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    response_data = Column(JSONType)
    error_message = Column(Text)
    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=3)


class Telemetry(Base):
    __tablename__ = "telemetry"
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    network_id = Column(Uuid, nullable=False, index=True)
    device_id = Column(Uuid, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True)
    message_type = Column(Enum(MessageType, native_enum=False, length=24), nullable=False)
    message_id = Column(String(5))
    data = Column(JSONType, nullable=False, default=dict)
    latitude = Column(Float)
    longitude = Column(Float)
    altitude = Column(Float)
    battery_voltage = Column(Float)
    rssi = Column(Integer)
    snr = Column(Float)
    received_at = Column(DateTime(timezone=True), default=utcnow, index=True)
