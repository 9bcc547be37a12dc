#!/usr/bin/env python3
"""
One-shot timeout sweep, for cron instead of the in-process sweeper.

Usage:
    python backend/scripts/sweep_timeouts.py --older-than 120
"""

import argparse
import asyncio

from backend.app.database import AsyncSessionLocal
from backend.app.gateway.sweeper import sweep_timeouts


async def run(older_than):
    async with AsyncSessionLocal() as session:
        return await sweep_timeouts(session, older_than)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Time out unacknowledged commands")
    parser.add_argument("--older-than", type=int, default=None, help="Seconds since dispatch (default: COMMAND_ACK_TIMEOUT)")
    args = parser.parse_args()

    swept = asyncio.run(run(args.older_than))
    print(f"Timed out {swept} command(s)")
