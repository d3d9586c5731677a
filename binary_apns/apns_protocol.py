"""
APNs binary provider protocol related methods & constants

Enhanced notification format (command 2), error-response packets and
feedback service records, all big-endian.
"""
import struct
from typing import NamedTuple

from .errors import (FrameDecodeError, InvalidNotificationError,
                     MalformedTokenError, PayloadTooLargeError)
from .notification import Notification, TOKEN_LENGTH, token_bytes

PRODUCTION_SERVER_ADDR = 'gateway.push.apple.com'
SANDBOX_SERVER_ADDR = 'gateway.sandbox.push.apple.com'
SERVER_PORT = 2195

FEEDBACK_PRODUCTION_SERVER_ADDR = 'feedback.push.apple.com'
FEEDBACK_SANDBOX_SERVER_ADDR = 'feedback.sandbox.push.apple.com'
FEEDBACK_SERVER_PORT = 2196

MAX_PAYLOAD_SIZE = 256

NOTIFICATION_COMMAND = 2
ERROR_RESPONSE_COMMAND = 8

DEVICE_TOKEN_ITEM = 1
PAYLOAD_ITEM = 2
IDENTIFIER_ITEM = 3
EXPIRATION_ITEM = 4
PRIORITY_ITEM = 5
_ITEM_IDS = (DEVICE_TOKEN_ITEM, PAYLOAD_ITEM, IDENTIFIER_ITEM, EXPIRATION_ITEM,
             PRIORITY_ITEM)

FRAME_HEADER_FORMAT = "!BI"
ITEM_HEADER_FORMAT = "!BH"
ERROR_FORMAT = "!BBI"
ERROR_RESPONSE_SIZE = struct.calcsize(ERROR_FORMAT)

FEEDBACK_HEADER_FORMAT = "!IH"
FEEDBACK_HEADER_SIZE = struct.calcsize(FEEDBACK_HEADER_FORMAT)

NO_ERROR = 0

SUCCESS_MESSAGE = "Success"
UNKNOWN_ERROR_MESSAGE = "Unknown error"

STATUS_MESSAGES = {
    0: "No Error",
    1: "Processing error",
    2: "Missing device Token",
    3: "Missing Topic",
    4: "Missing Payload",
    5: "Invalid token size",
    6: "Invalid topic size",
    7: "Invalid payload size",
    8: "Invalid token",
    10: "Shutdown",
    255: UNKNOWN_ERROR_MESSAGE,
}


class Frame(NamedTuple):
    identifier: int
    payload: bytes
    token: bytes
    expiration: int
    priority: int


def status_message(status: int) -> str:
    return STATUS_MESSAGES.get(status, UNKNOWN_ERROR_MESSAGE)


def _item(item_id, body):
    return struct.pack(ITEM_HEADER_FORMAT, item_id, len(body)) + body


def encode_notification(notification: Notification) -> bytes:
    """
    Serialize the item list of one notification, without the frame header.

    |{id:4}|{payload}|{token:32}|{expiration:4}|{priority:1}
    The payload goes before the token so an oversized payload is reported
    before the token gets parsed.
    """
    if notification.identifier is None:
        raise InvalidNotificationError(
            "Notification has no identifier assigned", notification)
    payload = notification.payload.to_json()
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise PayloadTooLargeError(
            "Payload is {} bytes, limit is {}".format(
                len(payload), MAX_PAYLOAD_SIZE), notification)
    try:
        token = token_bytes(notification.token)
    except MalformedTokenError as exc:
        exc.notification = notification
        raise
    return b''.join((
        _item(IDENTIFIER_ITEM, struct.pack("!I", notification.identifier)),
        _item(PAYLOAD_ITEM, payload),
        _item(DEVICE_TOKEN_ITEM, token),
        _item(EXPIRATION_ITEM,
              struct.pack("!I", notification.expiration_seconds)),
        _item(PRIORITY_ITEM, struct.pack("!B", notification.priority_value)),
    ))


def pack_frame(notification: Notification) -> bytes:
    body = encode_notification(notification)
    return struct.pack(FRAME_HEADER_FORMAT, NOTIFICATION_COMMAND,
                       len(body)) + body


def decode_frame(data: bytes) -> Frame:
    header_size = struct.calcsize(FRAME_HEADER_FORMAT)
    if len(data) < header_size:
        raise FrameDecodeError("Truncated frame header")
    command, frame_len = struct.unpack_from(FRAME_HEADER_FORMAT, data)
    if command != NOTIFICATION_COMMAND:
        raise FrameDecodeError("Unexpected command {}".format(command))
    body = data[header_size:]
    if len(body) != frame_len:
        raise FrameDecodeError("Frame length {} does not match body size {}"
                               .format(frame_len, len(body)))
    items = {}
    offset = 0
    item_header_size = struct.calcsize(ITEM_HEADER_FORMAT)
    while offset < len(body):
        if offset + item_header_size > len(body):
            raise FrameDecodeError("Truncated item header")
        item_id, item_len = struct.unpack_from(ITEM_HEADER_FORMAT, body,
                                               offset)
        if item_id not in _ITEM_IDS:
            raise FrameDecodeError("Unknown item id {}".format(item_id))
        offset += item_header_size
        value = body[offset:offset + item_len]
        if len(value) != item_len:
            raise FrameDecodeError("Truncated item {}".format(item_id))
        offset += item_len
        items[item_id] = value
    try:
        identifier, = struct.unpack("!I", items[IDENTIFIER_ITEM])
        expiration, = struct.unpack("!I", items[EXPIRATION_ITEM])
        priority, = struct.unpack("!B", items[PRIORITY_ITEM])
        token = items[DEVICE_TOKEN_ITEM]
        payload = items[PAYLOAD_ITEM]
    except (KeyError, struct.error) as exc:
        raise FrameDecodeError("Malformed item: {}".format(exc))
    if len(token) != TOKEN_LENGTH:
        raise FrameDecodeError("Invalid token size {}".format(len(token)))
    return Frame(identifier, payload, token, expiration, priority)


def parse_error_response(data: bytes):
    return struct.unpack(ERROR_FORMAT, data)
