"""
LaunchNet Gateway - Telemetry Ingestor

A relay forwards what it heard over LoRa. The reported board may be the
relay itself, a known field unit, or a unit nobody has registered yet, in
which case it is created as DISCOVERED.
"""

import logging
import math

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.config import settings
from backend.app.errors import DeviceNotFoundInNetwork, NoRelayAvailable
from backend.app.gateway import directory
from backend.app.models import Device, DeviceStatus, Telemetry, utcnow
from backend.app.schemas import TelemetryReport

logger = logging.getLogger(__name__)

POSITION_FIELDS = ("latitude", "longitude", "altitude")


def battery_percentage(voltage: float, min_voltage=None, max_voltage=None) -> int:
    """Linear map of ``voltage`` onto 0..100, rounded half up and clamped."""
    if not math.isfinite(voltage):
        raise ValueError(f"battery voltage must be finite, got {voltage!r}")
    low = settings.battery_min_voltage if min_voltage is None else min_voltage
    high = settings.battery_max_voltage if max_voltage is None else max_voltage
    # Clamp first so huge readings cannot overflow the scaling
    voltage = max(low, min(high, voltage))
    return math.floor((voltage - low) / (high - low) * 100 + 0.5)


def is_low_battery(percent: int) -> bool:
    return percent < settings.low_battery_threshold


async def discovery_network(session: AsyncSession, relay: Device):
    """Network a newly discovered field unit joins."""
    if settings.discovery_network_policy == "any_relay":
        any_relay = await directory.find_any_relay(session)
        if any_relay is None:
            raise NoRelayAvailable()
        return any_relay.network_id
    return relay.network_id


def in_relay_network(device: Device, relay: Device) -> bool:
    """A relay may only report on units of its own network.

    Under the ``any_relay`` policy networks are not isolated, so any relay
    may report on any unit.
    """
    if settings.discovery_network_policy == "any_relay":
        return True
    return device.network_id == relay.network_id


def reported_fields(report: TelemetryReport) -> dict:
    """Device columns carried by the report; absent values are left out."""
    fields = {
        name: getattr(report, name)
        for name in POSITION_FIELDS
        if getattr(report, name) is not None
    }
    if report.battery_voltage is not None:
        fields["battery_voltage"] = report.battery_voltage
        fields["battery_percent"] = battery_percentage(report.battery_voltage)
    return fields


async def ingest_telemetry(session: AsyncSession, relay: Device, report: TelemetryReport) -> Device:
    fields = reported_fields(report)

    device = await directory.find_by_board_id(session, report.board_id)
    created = False
    if device is None:
        network_id = await discovery_network(session, relay)
        device, created = await directory.create_discovered(
            session, report.board_id, network_id, **fields
        )
    if not in_relay_network(device, relay):
        raise DeviceNotFoundInNetwork(board_id=report.board_id, relay=relay.board_id)

    if not created:
        status = DeviceStatus.ONLINE
        percent = fields.get("battery_percent")
        if percent is not None and is_low_battery(percent):
            status = DeviceStatus.LOW_BATTERY
            logger.warning(f"Device {device.board_id} battery low ({percent}%)")
        await directory.update(session, device, last_seen=utcnow(), status=status, **fields)

    session.add(Telemetry(
        network_id=device.network_id,
        device_id=device.id,
        message_type=report.message_type,
        message_id=report.message_id,
        data=report.data or {},
        latitude=report.latitude,
        longitude=report.longitude,
        altitude=report.altitude,
        battery_voltage=report.battery_voltage,
        rssi=report.rssi,
        snr=report.snr,
        received_at=utcnow(),
    ))
    await session.commit()

    logger.debug(
        f"Telemetry {report.message_type.value} for {device.board_id} via relay {relay.board_id}"
    )
    return device
