import enum
import re
from binascii import unhexlify
from datetime import datetime, timezone
from typing import Mapping, Optional, Union

from .errors import InvalidNotificationError, MalformedTokenError
from .payload import Payload

TOKEN_LENGTH = 32

_WHITESPACE = re.compile(r"\s+")
_HEX_TOKEN = re.compile(r"^[0-9a-f]{%d}$" % (TOKEN_LENGTH * 2))

MAX_EXPIRATION = 0xFFFFFFFF


class NotificationPriority(enum.IntEnum):
    immediate = 10
    delayed = 5


def normalize_token(token_hex: str) -> str:
    return _WHITESPACE.sub("", token_hex).lower()


def token_bytes(token_hex: str) -> bytes:
    """
    Decode a normalized hex device token into its 32 raw bytes.
    """
    if not _HEX_TOKEN.match(token_hex):
        raise MalformedTokenError(
            "Device token must be {} hex digits, got {!r}".format(
                TOKEN_LENGTH * 2, token_hex))
    return unhexlify(token_hex)


def _expiration_seconds(expiration) -> int:
    if isinstance(expiration, datetime):
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        expiration = int(expiration.timestamp())
    if not 0 <= expiration <= MAX_EXPIRATION:
        raise InvalidNotificationError(
            "Expiration out of range: {}".format(expiration))
    return expiration


class Notification:
    """
    One push notification addressed to one device.

    ``identifier`` is assigned by the sending client right before the
    notification is framed; callers leave it unset.
    """

    def __init__(self, token: str,
                 payload: Union[Payload, Mapping, str],
                 *,
                 expiration: Union[int, datetime] = 0,
                 priority: int = NotificationPriority.immediate):
        if isinstance(payload, str):
            payload = Payload(alert=payload)
        elif not isinstance(payload, Payload):
            payload = Payload.from_dict(payload)
        self.token = normalize_token(token)
        self.payload = payload
        self.expiration = expiration
        self.priority = priority
        self.identifier = None  # type: Optional[int]

    @property
    def expiration_seconds(self) -> int:
        try:
            return _expiration_seconds(self.expiration)
        except InvalidNotificationError as exc:
            exc.notification = self
            raise

    @property
    def priority_value(self) -> int:
        try:
            return NotificationPriority(self.priority).value
        except ValueError:
            raise InvalidNotificationError(
                "Unsupported priority: {}".format(self.priority), self)

    def payload_json(self) -> str:
        return self.payload.to_json().decode("utf-8")

    def __repr__(self):
        return "Notification(token={!r}, identifier={}, payload={})".format(
            self.token, self.identifier, self.payload_json())


__all__ = ["Notification", "NotificationPriority", "normalize_token",
           "token_bytes", "TOKEN_LENGTH"]
