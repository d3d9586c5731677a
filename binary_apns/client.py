import logging
from typing import Callable, Iterable, List, Optional, Sequence

from .apns_protocol import (ERROR_RESPONSE_COMMAND, ERROR_RESPONSE_SIZE,
                            NO_ERROR, PRODUCTION_SERVER_ADDR,
                            SANDBOX_SERVER_ADDR, SERVER_PORT, SUCCESS_MESSAGE,
                            UNKNOWN_ERROR_MESSAGE, pack_frame,
                            parse_error_response, status_message)
from .connection import Connector
from .credentials import load_ssl_context
from .errors import GatewayRejection, TransportError
from .notification import Notification

log = logging.getLogger(__name__)

FIRST_IDENTIFIER = 12
MAX_IDENTIFIER = 0xFFFFFFFF

RESPONSE_TIMEOUT = 2.0
MIN_RESPONSE_TIMEOUT = 0.5

RejectionCallback = Callable[[GatewayRejection, Notification], None]


async def connect(key_file: str, password: str, *, sandbox=False, **kwargs):
    client = ApnsClient.from_credentials(key_file, password, sandbox=sandbox,
                                         **kwargs)
    await client.connect()
    return client


class ApnsClient:
    """
    Sends notifications over one persistent gateway connection.

    The gateway answers only on failure: it writes a single error-response
    packet naming the rejected notification and drops the connection,
    discarding everything written after it. ``send_all`` waits
    ``response_timeout`` seconds for that packet after each write and
    resends the notifications that followed the rejected one on a new
    connection.
    """

    def __init__(self, connector: Connector, *,
                 response_timeout: float = RESPONSE_TIMEOUT,
                 on_rejected: Optional[RejectionCallback] = None,
                 logger: Optional[logging.Logger] = None,
                 first_identifier: int = FIRST_IDENTIFIER):
        if response_timeout < MIN_RESPONSE_TIMEOUT:
            raise ValueError("response_timeout must be at least {}s".format(
                MIN_RESPONSE_TIMEOUT))
        self._connector = connector
        self.response_timeout = response_timeout
        self.on_rejected = on_rejected
        self._log = logger or log
        self._next_message_id = first_identifier & MAX_IDENTIFIER
        self._last_error = SUCCESS_MESSAGE

    @classmethod
    def from_credentials(cls, key_file: str, password: str, *, sandbox=False,
                         no_delay=False, **kwargs):
        context = load_ssl_context(key_file, password)
        host = SANDBOX_SERVER_ADDR if sandbox else PRODUCTION_SERVER_ADDR
        connector = Connector(context, host, SERVER_PORT, no_delay=no_delay)
        return cls(connector, **kwargs)

    @property
    def connected(self) -> bool:
        return self._connector.connected

    @property
    def last_error(self) -> str:
        return self._last_error

    def get_last_error(self) -> str:
        error, self._last_error = self._last_error, SUCCESS_MESSAGE
        return error

    async def connect(self):
        await self._connector.connect()

    def close(self):
        self._connector.close()

    async def send(self, notification: Notification) -> List[GatewayRejection]:
        return await self.send_all([notification])

    async def send_all(self, notifications: Iterable[Notification]) -> List[GatewayRejection]:
        """
        Send ``notifications`` in order, resending past rejections.

        Returns the rejections reported by the gateway. Invalid notifications
        raise before anything is written; transport failures close the
        connection and raise :class:`TransportError` carrying the
        ``undelivered`` suffix and the ``rejections`` seen so far.
        """
        pending = list(notifications)
        rejections = []
        while pending:
            try:
                rejected = await self._send_batch(pending)
            except TransportError as exc:
                exc.undelivered = pending
                exc.rejections = rejections
                raise
            if rejected is None:
                break
            index, rejection = rejected
            rejections.append(rejection)
            # strictly shorter on every pass
            pending = pending[index + 1:]
            if pending:
                self._log.info("Resending %d notifications after identifier %d",
                               len(pending), rejection.identifier)
        return rejections

    def _next_identifier(self) -> int:
        identifier = self._next_message_id
        self._next_message_id = (identifier + 1) & MAX_IDENTIFIER
        return identifier

    def _pack(self, notifications: Sequence[Notification]) -> bytearray:
        buffer = bytearray()
        for notification in notifications:
            notification.identifier = self._next_identifier()
            buffer += pack_frame(notification)
        return buffer

    def _protocol_violation(self, reason):
        self._log.error("Protocol violation: %s", reason)
        self._last_error = UNKNOWN_ERROR_MESSAGE
        self.close()

    async def _send_batch(self, notifications: Sequence[Notification]):
        buffer = self._pack(notifications)
        self._log.debug("Writing %d notifications (%d bytes), identifiers %d..%d",
                        len(notifications), len(buffer),
                        notifications[0].identifier,
                        notifications[-1].identifier)
        try:
            connection = await self._connector.connect()
            connection.write(bytes(buffer))
            await connection.drain()
            response = await connection.read(ERROR_RESPONSE_SIZE,
                                              self.response_timeout)
        except TransportError as exc:
            self.close()
            self._last_error = str(exc)
            raise

        if response is None:
            return None
        if not response:
            # connection has been dropped without a complaint
            self.close()
            return None
        if len(response) < ERROR_RESPONSE_SIZE:
            self._protocol_violation(
                "truncated error response {!r}".format(bytes(response)))
            return None

        command, status, identifier = parse_error_response(response)
        if command != ERROR_RESPONSE_COMMAND:
            self._protocol_violation("unexpected command {}".format(command))
            return None
        if status == NO_ERROR:
            self._log.debug("Ignoring error response with status 0")
            self._last_error = SUCCESS_MESSAGE
            return None

        message = status_message(status)
        self._last_error = message
        self.close()
        for index, notification in enumerate(notifications):
            if notification.identifier == identifier:
                break
        else:
            self._log.warning("%s for unknown identifier %d, dropping %d "
                              "notifications", message, identifier,
                              len(notifications))
            self._last_error = UNKNOWN_ERROR_MESSAGE
            return None

        rejection = GatewayRejection(status, identifier, message)
        self._log.warning("%s|%s|%s", message, notification.token,
                          notification.payload_json())
        if self.on_rejected is not None:
            self.on_rejected(rejection, notification)
        return index, rejection


__all__ = ["connect", "ApnsClient"]
