#!/usr/bin/env python3
"""
LaunchNet Device Provisioning Tool

Registers a device if needed, generates its HMAC secret, stores it in the
database and optionally flashes it to the board over serial.

Usage:
    python backend/scripts/provision_device.py --board 100000000001 \\
        --type BASE_STATION --network 6f1c...e2 -d /dev/ttyUSB0
    python backend/scripts/provision_device.py --board 100000000001 --rotate
    python backend/scripts/provision_device.py --list
"""

import argparse
import asyncio
import time
import uuid

import serial
import serial.tools.list_ports

from backend.app.database import AsyncSessionLocal, init_db
from backend.app.gateway import directory
from backend.app.gateway.security import generate_device_secret
from backend.app.models import DeviceType


def list_ports():
    """List available serial ports."""
    ports = serial.tools.list_ports.comports()
    if not ports:
        print("No serial ports found.")
        return
    print("Available serial ports:")
    for port in ports:
        print(f"  {port.device} - {port.description}")


def write_secret(device, board_id, secret):
    """Send the board id and secret to the relay's serial console."""
    print(f"Connecting to {device}...")

    try:
        ser = serial.Serial(device, 115200, timeout=2)
    except serial.SerialException as e:
        print(f"ERROR: Could not open {device}: {e}")
        return False

    time.sleep(1)
    ser.reset_input_buffer()

    def send_command(cmd, echo=True):
        """Send a command and print response."""
        print(f"> {cmd if echo else cmd.split(' ')[0] + ' ****'}")
        ser.write(f"{cmd}\n".encode())
        time.sleep(0.5)
        while ser.in_waiting:
            line = ser.readline().decode('utf-8', errors='ignore').strip()
            if line:
                print(f"  {line}")

    send_command(f"board {board_id}")
    send_command(f"secret {secret}", echo=False)
    send_command("p")

    ser.close()
    print("\nBoard configured.")
    return True


async def provision(board_id, device_type=None, network_id=None, name=None, rotate=False):
    """Returns the new secret, or None if the device already had one."""
    await init_db()
    async with AsyncSessionLocal() as session:
        device = await directory.find_by_board_id(session, board_id)
        if device is None:
            if not device_type or not network_id:
                raise SystemExit(f"ERROR: {board_id} is not registered; pass --type and --network")
            device = await directory.create(
                session,
                board_id=board_id,
                device_type=DeviceType(device_type),
                network_id=uuid.UUID(network_id),
                name=name,
            )
            print(f"Registered {device_type} {board_id}")

        if device.device_secret and not rotate:
            print(f"{board_id} already provisioned (use --rotate to replace the secret)")
            return None

        secret = generate_device_secret()
        await directory.update(session, device, device_secret=secret)
        await session.commit()
        return secret


def main():
    parser = argparse.ArgumentParser(description="LaunchNet Device Provisioning")
    parser.add_argument('--board', help='12-digit board ID')
    parser.add_argument('--type', choices=[t.value for t in DeviceType], help='Device type when registering')
    parser.add_argument('--network', help='Network UUID when registering')
    parser.add_argument('--name', help='Display name when registering')
    parser.add_argument('--rotate', action='store_true', help='Replace an existing secret')
    parser.add_argument('-d', '--device', help='Serial device path to flash the secret to')
    parser.add_argument('--list', action='store_true', help='List available ports')

    args = parser.parse_args()

    if args.list:
        list_ports()
        return

    if not args.board:
        print("ERROR: No board specified. Use --board 123456789012")
        return

    secret = asyncio.run(provision(args.board, args.type, args.network, args.name, args.rotate))
    if secret is None:
        return

    print(f"Board ID: {args.board}")
    print(f"Secret:   {secret}")
    print("Store this secret securely; it cannot be recovered.")

    if args.device:
        write_secret(args.device, args.board, secret)


if __name__ == "__main__":
    main()
