import re

import pytest

from backend.app.gateway.security import (
    build_canonical_message, generate_device_secret, is_timestamp_valid, parse_timestamp,
    sign, verify_signature,
)

SECRET = "ab" * 32
NOW = 1_760_000_000


def test_canonical_message_without_payload():
    assert build_canonical_message("100000000001", "1760000000", "poll") == b"100000000001|1760000000|poll"


def test_canonical_message_keeps_timestamp_text():
    message = build_canonical_message("100000000001", "2025-10-09T08:53:20Z", "poll")
    assert message.split(b"|")[1] == b"2025-10-09T08:53:20Z"


def test_canonical_message_sorts_payload_keys():
    a = build_canonical_message("100000000001", 1, "ack", {"b": 1, "a": {"d": 2, "c": 3}})
    b = build_canonical_message("100000000001", 1, "ack", {"a": {"c": 3, "d": 2}, "b": 1})
    assert a == b == b'100000000001|1|ack|{"a":{"c":3,"d":2},"b":1}'


def test_canonical_message_uses_raw_body_verbatim():
    body = b'{"boardId": "100000000001",  "success": true}'
    message = build_canonical_message("100000000001", 1, "ack", body)
    assert message.endswith(b"|" + body)


def test_signature_is_deterministic_lowercase_hex():
    message = build_canonical_message("100000000001", NOW, "poll")
    signature = sign(SECRET, message)
    assert signature == sign(SECRET, message)
    assert re.fullmatch(r"[0-9a-f]{64}", signature)


def test_device_signature_round_trips():
    secret = generate_device_secret()
    assert len(secret) == 64
    device_side = sign(secret, build_canonical_message("100000000001", NOW, "telemetry", {"x": 1}))
    server_side = build_canonical_message("100000000001", NOW, "telemetry", {"x": 1})
    assert verify_signature(secret, server_side, device_side)


@pytest.mark.parametrize("field, tampered", [
    ("board_id", "100000000002"),
    ("timestamp", NOW + 1),
    ("operation", "ack"),
    ("payload", {"success": False}),
])
def test_tampering_any_field_breaks_signature(field, tampered):
    parts = dict(board_id="100000000001", timestamp=NOW, operation="poll", payload={"success": True})
    signature = sign(SECRET, build_canonical_message(**parts))
    parts[field] = tampered
    assert not verify_signature(SECRET, build_canonical_message(**parts), signature)


def test_wrong_secret_is_rejected():
    message = build_canonical_message("100000000001", NOW, "poll")
    assert not verify_signature("cd" * 32, message, sign(SECRET, message))


@pytest.mark.parametrize("signature", ["", "zz" * 32, "ab" * 31, "ab" * 33, "abc", None])
def test_malformed_signature_is_invalid_not_an_error(signature):
    assert verify_signature(SECRET, "100000000001|1|poll", signature) is False


def test_signature_must_be_lowercase_hex_without_padding():
    message = "100000000001|1|poll"
    signature = sign(SECRET, message)
    assert verify_signature(SECRET, message, signature)
    assert not verify_signature(SECRET, message, signature.upper())
    spaced = " ".join(signature[i:i + 2] for i in range(0, 64, 2))
    assert not verify_signature(SECRET, message, spaced)
    assert not verify_signature(SECRET, message, signature + "\n")


def test_every_body_byte_is_signed():
    # Bodies that are not valid UTF-8 still differ byte for byte
    first = build_canonical_message("100000000001", NOW, "telemetry", b'{"x":"\xff"}')
    second = build_canonical_message("100000000001", NOW, "telemetry", b'{"x":"\xfe"}')
    assert first != second
    assert not verify_signature(SECRET, second, sign(SECRET, first))


def test_str_and_bytes_messages_sign_alike():
    assert sign(SECRET, "100000000001|1|poll") == sign(SECRET, b"100000000001|1|poll")


@pytest.mark.parametrize("offset, valid", [
    (0, True),
    (299, True),
    (300, True),
    (301, False),
    (-59, True),
    (-60, True),
    (-61, False),
    (3600, False),
])
def test_replay_window(offset, valid):
    assert is_timestamp_valid(NOW - offset, now=NOW) is valid
    assert is_timestamp_valid(str(NOW - offset), now=NOW) is valid


def test_iso_timestamps():
    assert is_timestamp_valid("2025-10-09T08:53:20Z", now=NOW)
    assert is_timestamp_valid("2025-10-09T08:53:20+00:00", now=NOW + 200)
    assert is_timestamp_valid("2025-10-09T08:53:20", now=NOW)
    assert not is_timestamp_valid("2025-10-09T08:40:00Z", now=NOW)


@pytest.mark.parametrize("value", ["", "yesterday", "-5", "2025-13-45T00:00:00Z", True, None, [1]])
def test_unparsable_timestamps_are_rejected(value):
    assert parse_timestamp(value) is None
    assert not is_timestamp_valid(value, now=NOW)


def test_window_is_configurable():
    assert not is_timestamp_valid(NOW - 100, max_age=60, now=NOW)
    assert is_timestamp_valid(NOW + 100, max_skew=120, now=NOW)
