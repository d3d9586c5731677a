from unittest import mock

import pytest

from binary_apns.errors import ConnectError, PayloadTooLargeError
from binary_apns.retrying import RetryingProxy


@pytest.mark.asyncio
async def test_retrying_success():
    client = mock.MagicMock()
    client.send_all = mock.AsyncMock(return_value=[])
    proxy = RetryingProxy(client, resend_timeout=0)
    notifications = ["first", "second"]
    assert await proxy.send_all(notifications) == []
    client.send_all.assert_called_once_with(notifications)


@pytest.mark.asyncio
async def test_retrying_with_transport_error():
    client = mock.MagicMock()
    client.send_all = mock.AsyncMock(side_effect=[ConnectError("refused"), []])
    proxy = RetryingProxy(client, attempts=3, resend_timeout=0)
    assert await proxy.send("notification") == []
    assert client.send_all.call_count == 2


@pytest.mark.asyncio
async def test_retrying_gives_up():
    client = mock.MagicMock()
    error = ConnectError("refused")
    client.send_all = mock.AsyncMock(side_effect=error)
    proxy = RetryingProxy(client, attempts=3, resend_timeout=0)
    with pytest.raises(ConnectError) as excinfo:
        await proxy.send_all(["notification"])
    assert excinfo.value is error
    assert client.send_all.call_count == 3


@pytest.mark.asyncio
async def test_invalid_notification_not_retried():
    client = mock.MagicMock()
    client.send_all = mock.AsyncMock(side_effect=PayloadTooLargeError("big"))
    proxy = RetryingProxy(client, resend_timeout=0)
    with pytest.raises(PayloadTooLargeError):
        await proxy.send_all(["notification"])
    client.send_all.assert_called_once()


def test_proxies_attributes():
    client = mock.MagicMock()
    client.get_last_error.return_value = "Invalid token"
    proxy = RetryingProxy(client)
    assert proxy.get_last_error() == "Invalid token"


def test_attempts_lower_bound():
    with pytest.raises(ValueError):
        RetryingProxy(mock.MagicMock(), attempts=0)
