import struct

import pytest

from binary_apns import (Notification, NotificationPriority, Payload,
                         PayloadTooLargeError, MalformedTokenError,
                         InvalidNotificationError)
from binary_apns.apns_protocol import (Frame, decode_frame, encode_notification,
                                       pack_frame, parse_error_response,
                                       status_message)
from binary_apns.errors import FrameDecodeError

SPACED_TOKEN = ("00 11 22 33 44 55 66 77 88 99 aa bb cc dd ee ff "
                "00 11 22 33 44 55 66 77 88 99 aa bb cc dd ee ff")
TOKEN = SPACED_TOKEN.replace(" ", "")


def make_notification(payload='hi', token=TOKEN, identifier=12, **kwargs):
    notification = Notification(token, payload, **kwargs)
    notification.identifier = identifier
    return notification


def test_single_frame_on_the_wire():
    notification = make_notification({"aps": {"alert": "hi"}},
                                     token=SPACED_TOKEN)
    expected = bytes.fromhex(
        "02 0000004e"
        "03 0004 0000000c"
        "02 0016") + b'{"aps":{"alert":"hi"}}' + bytes.fromhex(
        "01 0020" + TOKEN +
        "04 0004 00000000"
        "05 0001 0a")
    assert pack_frame(notification) == expected


def test_body_has_no_header():
    notification = make_notification()
    assert pack_frame(notification)[5:] == encode_notification(notification)


def test_item_order():
    body = encode_notification(make_notification())
    ids = []
    offset = 0
    while offset < len(body):
        item_id, item_len = struct.unpack_from("!BH", body, offset)
        ids.append(item_id)
        offset += 3 + item_len
    assert ids == [3, 2, 1, 4, 5]


def test_payload_limit_boundary():
    # {"aps":{"alert":""}} is 20 bytes
    assert pack_frame(make_notification('x' * 236))
    with pytest.raises(PayloadTooLargeError):
        pack_frame(make_notification('x' * 237))


def test_payload_checked_before_token():
    notification = make_notification('x' * 300, token='nothex')
    with pytest.raises(PayloadTooLargeError) as excinfo:
        pack_frame(notification)
    assert excinfo.value.notification is notification


@pytest.mark.parametrize("token", [
    "abc",
    "zz" * 32,
    "00" * 33,
])
def test_malformed_token(token):
    notification = make_notification(token=token)
    with pytest.raises(MalformedTokenError) as excinfo:
        pack_frame(notification)
    assert excinfo.value.notification is notification


def test_token_is_normalized():
    notification = Notification(" AB" * 32, "hi")
    assert notification.token == "ab" * 32


def test_unassigned_identifier():
    with pytest.raises(InvalidNotificationError):
        pack_frame(Notification(TOKEN, "hi"))


def test_invalid_priority():
    with pytest.raises(InvalidNotificationError):
        pack_frame(make_notification(priority=7))


def test_expiration_range():
    with pytest.raises(InvalidNotificationError):
        pack_frame(make_notification(expiration=2 ** 32))


def test_decode_round_trip():
    notification = make_notification(
        Payload(alert='hello', badge=2), identifier=0xFFFFFFFF,
        expiration=1700000000, priority=NotificationPriority.delayed)
    frame = decode_frame(pack_frame(notification))
    assert frame == Frame(identifier=0xFFFFFFFF,
                          payload=b'{"aps":{"alert":"hello","badge":2}}',
                          token=bytes.fromhex(TOKEN),
                          expiration=1700000000,
                          priority=5)


def test_decode_ignores_item_order():
    frame = pack_frame(make_notification())
    body = frame[5:]
    # move the identifier item behind the priority item
    reordered = frame[:5] + body[7:] + body[:7]
    assert decode_frame(reordered) == decode_frame(frame)


@pytest.mark.parametrize("data", [
    b"\x02\x00",
    b"\x01\x00\x00\x00\x00",
    b"\x02\x00\x00\x00\x05\x03\x00\x04\x00\x00",
    b"\x02\x00\x00\x00\x03\x09\x00\x00",
])
def test_decode_malformed(data):
    with pytest.raises(FrameDecodeError):
        decode_frame(data)


def test_parse_error_response():
    assert parse_error_response(b"\x08\x08\x00\x00\x00\x0e") == (8, 8, 14)


@pytest.mark.parametrize("status, message", [
    (0, "No Error"),
    (1, "Processing error"),
    (2, "Missing device Token"),
    (7, "Invalid payload size"),
    (8, "Invalid token"),
    (10, "Shutdown"),
    (255, "Unknown error"),
    (9, "Unknown error"),
    (42, "Unknown error"),
])
def test_status_message(status, message):
    assert status_message(status) == message
