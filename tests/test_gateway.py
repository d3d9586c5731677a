"""
End-to-end replay against a local gateway speaking the binary protocol.
"""
import asyncio
import struct

import pytest

from binary_apns import ApnsClient, Notification
from binary_apns.apns_protocol import decode_frame
from binary_apns.connection import Connector

BAD_TOKEN = "ff" * 32


class FakeGateway:
    def __init__(self, bad_tokens=()):
        self.bad_tokens = {bytes.fromhex(t) for t in bad_tokens}
        self.observed = []
        self.connections = 0

    async def handle(self, reader, writer):
        self.connections += 1
        rejected = False
        try:
            while True:
                try:
                    header = await reader.readexactly(5)
                    _, length = struct.unpack("!BI", header)
                    frame = decode_frame(header + await reader.readexactly(length))
                except asyncio.IncompleteReadError:
                    break
                if rejected:
                    # discarded, the client reconnects and resends
                    continue
                self.observed.append(frame.token.hex())
                if frame.token in self.bad_tokens:
                    writer.write(struct.pack("!BBI", 8, 8, frame.identifier))
                    await writer.drain()
                    rejected = True
        finally:
            writer.close()


async def start(gateway):
    server = await asyncio.start_server(gateway.handle, '127.0.0.1', 0)
    port = server.sockets[0].getsockname()[1]
    connector = Connector(None, '127.0.0.1', port)
    return server, ApnsClient(connector, response_timeout=0.5)


def tokens(count):
    return ["{:02x}".format(i) * 32 for i in range(count)]


@pytest.mark.asyncio
async def test_every_notification_observed_once():
    gateway = FakeGateway([BAD_TOKEN])
    server, client = await start(gateway)
    batch = tokens(2) + [BAD_TOKEN] + tokens(5)[2:]
    try:
        rejections = await client.send_all(
            Notification(token, "hello") for token in batch)
    finally:
        client.close()
        server.close()

    assert gateway.observed == batch
    assert gateway.connections == 2
    assert [r.message for r in rejections] == ["Invalid token"]
    assert client.get_last_error() == "Invalid token"


@pytest.mark.asyncio
async def test_clean_batch_keeps_connection():
    gateway = FakeGateway()
    server, client = await start(gateway)
    try:
        assert await client.send_all(
            Notification(token, "hello") for token in tokens(3)) == []
        assert client.connected
        await client.send(Notification(tokens(4)[3], "again"))
    finally:
        client.close()
        server.close()

    assert gateway.observed == tokens(4)
    assert gateway.connections == 1
    assert client.get_last_error() == "Success"
