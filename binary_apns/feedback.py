import logging
import struct
from binascii import hexlify
from collections import namedtuple
from datetime import datetime, timezone
from typing import List, Optional

from .apns_protocol import (FEEDBACK_HEADER_FORMAT, FEEDBACK_HEADER_SIZE,
                            FEEDBACK_PRODUCTION_SERVER_ADDR,
                            FEEDBACK_SANDBOX_SERVER_ADDR, FEEDBACK_SERVER_PORT)
from .connection import Connector
from .credentials import load_ssl_context
from .errors import CorruptFeedbackStreamError
from .notification import TOKEN_LENGTH

logger = logging.getLogger(__name__)


class FailedDevice(namedtuple('FailedDevice', ['timestamp', 'token'])):
    __slots__ = ()

    @property
    def failed_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)

    def display_token(self) -> str:
        # one group per 8 bytes, for humans only
        return ' '.join(self.token[i:i + 16]
                        for i in range(0, len(self.token), 16))


async def feedback_connect(key_file: str, password: str, *, sandbox=False):
    client = FeedbackClient.from_credentials(key_file, password,
                                             sandbox=sandbox)
    await client.connect()
    return client


class FeedbackClient:
    def __init__(self, connector: Connector, *,
                 read_timeout: Optional[float] = None):
        self._connector = connector
        self.read_timeout = read_timeout
        self._connection = None

    @classmethod
    def from_credentials(cls, key_file: str, password: str, *, sandbox=False,
                         **kwargs):
        context = load_ssl_context(key_file, password)
        host = (FEEDBACK_SANDBOX_SERVER_ADDR if sandbox
                else FEEDBACK_PRODUCTION_SERVER_ADDR)
        return cls(Connector(context, host, FEEDBACK_SERVER_PORT), **kwargs)

    async def connect(self):
        self._connection = await self._connector.connect()

    def disconnect(self):
        self._connector.close()
        self._connection = None

    async def _fetch_next(self) -> Optional[FailedDevice]:
        header = await self._connection.read(FEEDBACK_HEADER_SIZE,
                                             self.read_timeout)
        if not header:
            return None
        if len(header) < FEEDBACK_HEADER_SIZE:
            raise CorruptFeedbackStreamError("Unexpected end of stream")
        timestamp, token_length = struct.unpack(FEEDBACK_HEADER_FORMAT, header)
        if token_length != TOKEN_LENGTH:
            raise CorruptFeedbackStreamError(
                "Invalid token size {}".format(token_length))
        device_token = await self._connection.read(token_length,
                                                   self.read_timeout)
        if device_token is None or len(device_token) < token_length:
            raise CorruptFeedbackStreamError("Unexpected end of stream")
        return FailedDevice(timestamp, hexlify(device_token).decode('ascii'))

    async def fetch_all(self) -> List[FailedDevice]:
        """
        Drain every record until the service closes the stream.

        The service sends its list once per connection, so the connection is
        closed afterwards whether or not the stream was valid.
        """
        if self._connection is None or self._connection.closed:
            await self.connect()
        elements = []
        try:
            while True:
                element = await self._fetch_next()
                if element is None:
                    break
                elements.append(element)
        finally:
            self.disconnect()
        logger.debug("Read %d failed devices", len(elements))
        return elements


__all__ = ["feedback_connect", "FeedbackClient", "FailedDevice"]
