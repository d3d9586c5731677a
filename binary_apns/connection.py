import asyncio
import logging
import socket
import ssl
from typing import Optional

from .errors import ConnectError, HandshakeError, ReadError, WriteError

logger = logging.getLogger(__name__)


class Connection:
    def __init__(self, reader, writer):
        self.reader = reader
        self.writer = writer
        self._closed = False

    @property
    def closed(self) -> bool:
        return (self._closed or self.reader.at_eof() or
                self.reader.exception() is not None)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.writer.close()

    async def read(self, size: int, timeout: Optional[float] = None) -> Optional[bytes]:
        """
        Read exactly ``size`` bytes.

        Returns fewer bytes (possibly none) when the peer closed the stream
        first, and ``None`` when nothing complete arrived within ``timeout``.
        """
        try:
            return await asyncio.wait_for(self.reader.readexactly(size),
                                          timeout)
        except asyncio.IncompleteReadError as exc:
            return exc.partial
        except asyncio.TimeoutError:
            return None
        except (ssl.SSLError, ConnectionError) as exc:
            raise ReadError(str(exc)) from exc

    def write(self, data: bytes):
        self.writer.write(data)

    async def drain(self):
        try:
            await self.writer.drain()
        except (ssl.SSLError, OSError) as exc:
            raise WriteError(str(exc)) from exc


class Connector:
    """
    Owns the TLS stream to one APNs host and reopens it on demand.

    The ``ssl_context`` already carries the client certificate; it is built
    once (see :func:`binary_apns.credentials.load_ssl_context`) and reused for
    every reconnect. Without a context the stream is plain TCP, which is only
    useful against local test gateways.
    """

    def __init__(self, ssl_context: Optional[ssl.SSLContext], host: str,
                 port: int, *,
                 no_delay: bool = False, connect_timeout: float = 10.0):
        self.ssl_context = ssl_context
        self.host = host
        self.port = port
        self.no_delay = no_delay
        self.connect_timeout = connect_timeout
        self._connection = None

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._connection.closed

    async def connect(self) -> Connection:
        if self.connected:
            return self._connection
        self.close()
        logger.debug("Connecting to %s:%s", self.host, self.port)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port,
                                        ssl=self.ssl_context),
                self.connect_timeout)
        except ssl.SSLError as exc:
            raise HandshakeError("TLS handshake with {}:{} failed: {}".format(
                self.host, self.port, exc)) from exc
        except (OSError, asyncio.TimeoutError) as exc:
            raise ConnectError("Cannot connect to {}:{}: {}".format(
                self.host, self.port, str(exc) or "timed out")) from exc
        sock = writer.get_extra_info('socket')
        if sock is not None:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY,
                            int(self.no_delay))
        self._connection = Connection(reader, writer)
        logger.debug("Connected to %s:%s", self.host, self.port)
        return self._connection

    def close(self):
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.debug("Closed connection to %s:%s", self.host, self.port)


__all__ = ["Connection", "Connector"]
