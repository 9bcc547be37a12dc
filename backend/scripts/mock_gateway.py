"""
LaunchNet Mock Base Station

Simulates a NodeMCU relay: polls for commands with signed requests,
pretends to forward them over LoRa, acknowledges them and pushes telemetry
for itself and one field unit.

Usage:
    python backend/scripts/mock_gateway.py --board 100000000001 --secret <hex> \\
        --field-unit 200000000001 --api http://localhost:8000/api/v1/gateway
"""

import argparse
import asyncio
import json
import random
import time

import httpx

from backend.app.gateway.security import build_canonical_message, sign


class MockRelay:
    def __init__(self, board_id, secret, field_unit, api_url):
        self.board_id = board_id
        self.secret = secret
        self.field_unit = field_unit
        self.api_url = api_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=5.0)
        self.voltage = 4.1
        self.lat = 48.915197
        self.lng = 37.791765
        print(f"\n[INIT] Starting Mock Base Station")
        print(f"       Board: {self.board_id}")
        print(f"       Field: {self.field_unit}")
        print(f"       API:   {self.api_url}\n")

    def headers(self, operation, body=None):
        timestamp = str(int(time.time()))
        message = build_canonical_message(self.board_id, timestamp, operation, body)
        return {
            "X-Device-Timestamp": timestamp,
            "X-Device-Signature": sign(self.secret, message),
            "Content-Type": "application/json",
        }

    async def post(self, operation, document):
        # Sign exactly the bytes that go on the wire
        body = json.dumps(document, separators=(",", ":")).encode()
        return await self.client.post(
            f"{self.api_url}/{operation}",
            params={"boardId": self.board_id},
            content=body,
            headers=self.headers(operation, body),
        )

    async def push_telemetry(self):
        """Battery drains slowly, the field unit drifts a little."""
        self.voltage = max(3.0, self.voltage - random.uniform(0.0, 0.01))
        self.lat += random.uniform(-0.00005, 0.00005)
        self.lng += random.uniform(-0.00005, 0.00005)

        reports = [
            {"boardId": self.board_id, "messageType": "MSG_TYPE_POSA", "data": {"status": "Gateway online"}},
            {
                "boardId": self.field_unit,
                "messageType": "MSG_TYPE_GPS",
                "latitude": round(self.lat, 6),
                "longitude": round(self.lng, 6),
                "batteryVoltage": round(self.voltage, 3),
                "rssi": random.randint(-110, -60),
                "snr": round(random.uniform(-5, 10), 1),
            },
        ]
        for report in reports:
            try:
                r = await self.post("telemetry", report)
                if r.status_code != 201:
                    print(f"! Telemetry rejected {r.status_code}: {r.text}")
            except httpx.HTTPError as e:
                print(f"Failed to push telemetry: {e}")

    async def poll_commands(self):
        try:
            r = await self.client.get(
                f"{self.api_url}/poll", params={"boardId": self.board_id}, headers=self.headers("poll")
            )
        except httpx.HTTPError as e:
            print(f"! Poll Error: {e}")
            return

        if r.status_code == 204:
            return
        if r.status_code != 200:
            print(f"! Poll rejected {r.status_code}: {r.text}")
            return
        await self.handle_command(r.json())

    async def handle_command(self, cmd):
        ctype = cmd["messageType"]
        print(f"[CMD] {cmd['commandId']} {ctype} -> {cmd.get('targetBoardId')} ({cmd['priority']})")
        await asyncio.sleep(0.5)  # LoRa round trip

        # Field units occasionally miss a packet
        success = random.random() > 0.1
        ack = {"boardId": self.board_id, "commandId": cmd["commandId"], "success": success}
        if success:
            ack["responseData"] = {"messageId": cmd.get("messageId"), "reply": "MSG_TYPE_PONG" if ctype == "MSG_TYPE_PING" else "OK"}
        else:
            ack["errorMessage"] = "No LoRa response from field unit"

        try:
            r = await self.post("ack", ack)
            print(f"[ACK] {cmd['commandId']} success={success} -> {r.status_code}")
        except httpx.HTTPError as e:
            print(f"Failed to ack: {e}")

    async def run(self, interval):
        print("[SYS] Mock Base Station Online")
        while True:
            await self.poll_commands()
            await self.push_telemetry()
            await asyncio.sleep(interval)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--board", required=True, help="Base station board ID")
    parser.add_argument("--secret", required=True, help="Hex device secret")
    parser.add_argument("--field-unit", default="200000000001", help="Field unit board ID to report for")
    parser.add_argument("--api", default="http://localhost:8000/api/v1/gateway", help="Gateway API URL")
    parser.add_argument("--interval", type=float, default=2.0, help="Seconds between polls")
    args = parser.parse_args()

    relay = MockRelay(args.board, args.secret, args.field_unit, args.api)
    try:
        asyncio.run(relay.run(args.interval))
    except KeyboardInterrupt:
        print("\nShutdown")
