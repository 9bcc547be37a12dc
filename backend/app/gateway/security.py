"""
LaunchNet Gateway - Message Signing Primitives

Relays sign every request with HMAC-SHA256 over a canonical message:

    boardId|timestamp|operation[|payload]

The relay firmware and this module must build those bytes exactly the same
way, otherwise every signature fails.
"""

import hashlib
import hmac
import json
import re
import secrets
import time
from datetime import datetime, timezone

from backend.app.config import settings

SEPARATOR = b"|"
SECRET_BYTES = 32

SIGNATURE_PATTERN = re.compile(r"[0-9a-f]{64}")


def generate_device_secret() -> str:
    """Random 256-bit device secret, hex-encoded."""
    return secrets.token_hex(SECRET_BYTES)


def canonical_payload(payload) -> bytes:
    """Raw bodies are signed byte for byte; anything else as sorted compact JSON."""
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def build_canonical_message(board_id: str, timestamp, operation: str, payload=None) -> bytes:
    parts = [board_id.encode("utf-8"), str(timestamp).encode("utf-8"), operation.encode("utf-8")]
    if payload is not None:
        parts.append(canonical_payload(payload))
    return SEPARATOR.join(parts)


def sign(secret: str, message) -> str:
    """Lower-case hex HMAC-SHA256 of ``message`` keyed with the hex ``secret``."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(bytes.fromhex(secret), message, hashlib.sha256).hexdigest()


def verify_signature(secret: str, message, signature) -> bool:
    """Constant-time check of a supplied signature.

    Only 64 lower-case hex characters are accepted; anything else is simply
    invalid.
    """
    if not isinstance(signature, str) or not SIGNATURE_PATTERN.fullmatch(signature):
        return False
    expected = bytes.fromhex(sign(secret, message))
    return hmac.compare_digest(expected, bytes.fromhex(signature))


def parse_timestamp(timestamp):
    """Epoch seconds from an int, an all-digit string or an ISO-8601 string.

    Returns None when the value cannot be parsed.
    """
    if isinstance(timestamp, bool):
        return None
    if isinstance(timestamp, (int, float)):
        return float(timestamp)
    if not isinstance(timestamp, str):
        return None

    value = timestamp.strip()
    if value.isdigit():
        return float(value)
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def is_timestamp_valid(timestamp, max_age=None, max_skew=None, now=None) -> bool:
    """True if the message is at most ``max_age`` seconds old and at most
    ``max_skew`` seconds ahead of the server clock."""
    max_age = settings.timestamp_max_age if max_age is None else max_age
    max_skew = settings.timestamp_max_skew if max_skew is None else max_skew

    message_time = parse_timestamp(timestamp)
    if message_time is None:
        return False

    age = (time.time() if now is None else now) - message_time
    return -max_skew <= age <= max_age
