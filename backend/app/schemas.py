import json

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, Dict, Any
from uuid import UUID

from backend.app.models import (
    Command, CommandPriority, CommandStatus, MessageType, TELEMETRY_MESSAGE_TYPES,
)

BOARD_ID_PATTERN = r"^\d{12}$"

# Upper bound on a reported battery voltage
MAX_REPORTED_VOLTAGE = 20.0


class CamelModel(BaseModel):
    """Devices speak camelCase JSON; attributes stay snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def strict_json(value):
    """Reject documents the database cannot store as JSON (NaN, Infinity)."""
    if value is not None:
        json.dumps(value, allow_nan=False)
    return value


# --- Gateway (device-facing) ---

class TelemetryReport(CamelModel):
    board_id: str = Field(pattern=BOARD_ID_PATTERN)
    message_type: MessageType
    message_id: Optional[str] = Field(None, min_length=5, max_length=5)
    data: Optional[Dict[str, Any]] = None
    latitude: Optional[float] = Field(None, allow_inf_nan=False)
    longitude: Optional[float] = Field(None, allow_inf_nan=False)
    altitude: Optional[float] = Field(None, allow_inf_nan=False)
    battery_voltage: Optional[float] = Field(None, ge=0, le=MAX_REPORTED_VOLTAGE, allow_inf_nan=False)
    rssi: Optional[int] = None
    snr: Optional[float] = Field(None, allow_inf_nan=False)

    @field_validator("message_type")
    @classmethod
    def reportable_type(cls, value: MessageType) -> MessageType:
        if value not in TELEMETRY_MESSAGE_TYPES:
            raise ValueError(f"{value.value} cannot be reported as telemetry")
        return value

    @field_validator("data")
    @classmethod
    def finite_data(cls, value):
        return strict_json(value)


class TelemetryAccepted(CamelModel):
    success: bool = True
    device_id: UUID


class AckRequest(CamelModel):
    # The relay is identified by the auth gate; the body copy is optional
    board_id: Optional[str] = Field(None, pattern=BOARD_ID_PATTERN)
    command_id: UUID
    success: bool
    response_data: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = Field(None, max_length=1024)

    @field_validator("response_data")
    @classmethod
    def finite_response(cls, value):
        return strict_json(value)


class AckResponse(CamelModel):
    success: bool = True


class CommandDescriptor(CamelModel):
    command_id: UUID
    target_board_id: Optional[str] = None
    message_type: MessageType
    message_id: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    priority: str


# --- Operator-facing ---

class CommandCreate(CamelModel):
    network_id: UUID
    target_board_id: str = Field(pattern=BOARD_ID_PATTERN)
    source_board_id: Optional[str] = Field(None, pattern=BOARD_ID_PATTERN)
    message_type: MessageType
    priority: CommandPriority = CommandPriority.NORMAL
    payload: Optional[Dict[str, Any]] = None
    message_id: Optional[str] = Field(None, min_length=5, max_length=5)
    created_by: Optional[str] = Field(None, max_length=64)
    max_retries: int = Field(3, ge=0)

    @field_validator("priority", mode="before")
    @classmethod
    def priority_by_name(cls, value):
        if isinstance(value, str):
            try:
                return CommandPriority[value.upper()]
            except KeyError:
                raise ValueError(f"unknown priority {value!r}")
        return value


class CommandOut(CamelModel):
    id: UUID
    network_id: UUID
    source_device_id: Optional[UUID] = None
    target_device_id: Optional[UUID] = None
    message_type: MessageType
    priority: str
    status: CommandStatus
    message_id: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    dispatched_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    response_data: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    max_retries: int = 3

    @classmethod
    def from_command(cls, cmd: Command) -> "CommandOut":
        return cls(
            id=cmd.id,
            network_id=cmd.network_id,
            source_device_id=cmd.source_device_id,
            target_device_id=cmd.target_device_id,
            message_type=cmd.message_type,
            priority=CommandPriority(cmd.priority).name,
            status=cmd.status,
            message_id=cmd.message_id,
            payload=cmd.payload,
            created_at=cmd.created_at,
            dispatched_at=cmd.dispatched_at,
            completed_at=cmd.completed_at,
            response_data=cmd.response_data,
            error_message=cmd.error_message,
            retry_count=cmd.retry_count,
            max_retries=cmd.max_retries,
        )


class TimeoutRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=1024)


class TelemetryOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    device_id: UUID
    network_id: UUID
    message_type: MessageType
    message_id: Optional[str] = None
    data: Dict[str, Any]
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    battery_voltage: Optional[float] = None
    rssi: Optional[int] = None
    snr: Optional[float] = None
    received_at: datetime
